"""Resolve extracted build directories and patch documents from CLI references."""

from __future__ import annotations

import re
from pathlib import Path
from typing import List, Optional

from ..errors import PatchInputError

#: Directory suffixes tried, in order, for ``--version`` lookups.
VERSION_DIR_SUFFIXES = ("@pretty", "", "@modded", "@pure")

_PATCH_NAME_RE = re.compile(r"\.(patch|diff)$", re.IGNORECASE)


def resolve_reference_path(reference: Path | str, base_dir: Path) -> Path:
    """Resolve a user-supplied path against ``base_dir``.

    An existing absolute path is returned as is, then an existing path below
    ``base_dir``. When neither exists the absolute path, or the rebased one
    for relative input, is returned so callers can report it.
    """
    raw = Path(reference).expanduser()
    if raw.is_absolute() and raw.exists():
        return raw
    rebased = (base_dir / raw).resolve()
    if rebased.exists():
        return rebased
    return raw if raw.is_absolute() else rebased


def resolve_extracted_version_path(version: str, extracted_dir: Path, base_dir: Path) -> Path:
    """Find the extracted build directory for ``version``.

    An existing path wins. Otherwise ``VERSION@pretty``, ``VERSION``,
    ``VERSION@modded`` and ``VERSION@pure`` are tried below ``extracted_dir``,
    then any single ``VERSION@*`` directory.
    """
    if not version:
        raise PatchInputError("No extracted build version given.")

    explicit = resolve_reference_path(version, base_dir)
    if explicit.exists():
        return explicit

    if not extracted_dir.is_dir():
        raise PatchInputError(
            f"Extracted builds directory not found: {extracted_dir}",
            details={"version": version, "extracted_dir": extracted_dir},
        )

    names = sorted(entry.name for entry in extracted_dir.iterdir() if entry.is_dir())
    for suffix in VERSION_DIR_SUFFIXES:
        candidate = f"{version}{suffix}"
        if candidate in names:
            return extracted_dir / candidate

    loose = [name for name in names if name == version or name.startswith(f"{version}@")]
    if len(loose) == 1:
        return extracted_dir / loose[0]
    if len(loose) > 1:
        raise PatchInputError(
            f"Several extracted directories match version {version}: {', '.join(loose)}",
            details={"version": version, "matches": loose},
        )
    raise PatchInputError(
        f"No extracted directory found for version {version}",
        details={"version": version, "extracted_dir": extracted_dir},
    )


def resolve_patch_inputs(
    base_dir: Path,
    default_dir: Path,
    *,
    patch_file: Optional[Path | str] = None,
    patch_dir: Optional[Path | str] = None,
) -> List[Path]:
    """Return the diff documents to apply, in application order.

    A single ``patch_file`` is returned as is. Otherwise every ``*.patch`` and
    ``*.diff`` file of ``patch_dir`` (or ``default_dir``) is returned, sorted
    by file name.
    """
    if patch_file:
        resolved = resolve_reference_path(patch_file, base_dir)
        if not resolved.is_file():
            raise PatchInputError(f"Patch file not found: {resolved}", details={"path": resolved})
        return [resolved]

    directory = resolve_reference_path(patch_dir, base_dir) if patch_dir else default_dir
    if not directory.is_dir():
        raise PatchInputError(f"Patch directory not found: {directory}", details={"path": directory})

    patches = sorted(
        (entry for entry in directory.iterdir() if entry.is_file() and _PATCH_NAME_RE.search(entry.name)),
        key=lambda entry: (entry.name.lower(), entry.name),
    )
    if not patches:
        raise PatchInputError(f"No *.patch or *.diff files in {directory}", details={"path": directory})
    return patches


__all__ = [
    "VERSION_DIR_SUFFIXES",
    "resolve_extracted_version_path",
    "resolve_patch_inputs",
    "resolve_reference_path",
]
