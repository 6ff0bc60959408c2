"""Unified diff parsing into file patches and tagged hunk lines."""

from __future__ import annotations

import posixpath
import re
from dataclasses import dataclass, field
from typing import Literal

from ..errors import MalformedHunkHeader

LineKind = Literal["context", "added", "removed"]

_HUNK_HEADER = re.compile(
    r"^@@ -(?P<old_start>\d+)(?:,(?P<old_count>\d+))? "
    r"\+(?P<new_start>\d+)(?:,(?P<new_count>\d+))? @@"
)
_NO_NEWLINE_MARKER = "\\ No newline at end of file"
_LINE_KINDS: dict[str, LineKind] = {" ": "context", "+": "added", "-": "removed"}


@dataclass(slots=True)
class PatchLine:
    """Single hunk body line tagged with its diff role."""

    kind: LineKind
    text: str


@dataclass(slots=True)
class Hunk:
    """One ``@@`` block. Header counts are informational only."""

    old_start: int
    old_lines: int
    new_start: int
    new_lines: int
    lines: list[PatchLine] = field(default_factory=list)

    @property
    def old_content(self) -> list[str]:
        """Context and removed lines, in order."""
        return [line.text for line in self.lines if line.kind != "added"]

    @property
    def new_content(self) -> list[str]:
        """Context and added lines, in order."""
        return [line.text for line in self.lines if line.kind != "removed"]

    @property
    def added(self) -> list[str]:
        return [line.text for line in self.lines if line.kind == "added"]

    @property
    def removed(self) -> list[str]:
        return [line.text for line in self.lines if line.kind == "removed"]

    @property
    def header(self) -> str:
        return f"@@ -{self.old_start},{self.old_lines} +{self.new_start},{self.new_lines} @@"


@dataclass(slots=True)
class FilePatch:
    """All hunks addressed to one logical file of the source snapshot."""

    old_path: str | None = None
    new_path: str | None = None
    hunks: list[Hunk] = field(default_factory=list)

    @property
    def source_path(self) -> str | None:
        return self.new_path or self.old_path

    @property
    def extension(self) -> str:
        return posixpath.splitext(self.source_path or "")[1].lower()

    @property
    def old_content(self) -> list[str]:
        lines: list[str] = []
        for hunk in self.hunks:
            lines.extend(hunk.old_content)
        return lines


def normalise_patch_path(raw: str | None) -> str | None:
    """Translate a ``---``/``+++`` operand into a slash-separated relative path."""
    if raw is None:
        return None
    candidate = raw.split("\t", 1)[0].strip()
    if len(candidate) >= 2 and candidate[0] == candidate[-1] and candidate[0] in {"'", '"'}:
        candidate = candidate[1:-1]
    if not candidate or candidate == "/dev/null":
        return None
    if candidate.startswith(("a/", "b/")):
        candidate = candidate[2:]
    candidate = candidate.replace("\\\\", "\\").replace("\\", "/")
    normalised = posixpath.normpath(candidate)
    if normalised in {"", "."}:
        return None
    return normalised


def parse_hunk_header(line: str) -> Hunk:
    """Build an empty :class:`Hunk` from its ``@@`` header line."""
    match = _HUNK_HEADER.match(line)
    if not match:
        raise MalformedHunkHeader(f"Malformed hunk header: {line}", details={"line": line})
    old_count = match.group("old_count")
    new_count = match.group("new_count")
    return Hunk(
        old_start=int(match.group("old_start")),
        old_lines=int(old_count) if old_count is not None else 1,
        new_start=int(match.group("new_start")),
        new_lines=int(new_count) if new_count is not None else 1,
    )


def parse_unified_diff(patch_text: str) -> list[FilePatch]:
    """Parse multi-file unified diff text into ordered :class:`FilePatch` records."""
    lines = patch_text.replace("\r", "").split("\n")
    patches: list[FilePatch] = []
    current: FilePatch | None = None
    index = 0

    while index < len(lines):
        line = lines[index]

        if line.startswith("diff --git "):
            current = FilePatch()
            patches.append(current)
            index += 1
            continue

        if line.startswith("--- ") and (current is None or current.hunks):
            # Plain ``diff -u`` output has no ``diff --git`` separator.
            current = FilePatch()
            patches.append(current)

        if current is None:
            index += 1
            continue

        if line.startswith("--- "):
            current.old_path = normalise_patch_path(line[4:])
            index += 1
            continue

        if line.startswith("+++ "):
            current.new_path = normalise_patch_path(line[4:])
            index += 1
            continue

        if not line.startswith("@@"):
            index += 1
            continue

        hunk = parse_hunk_header(line)
        index += 1
        while index < len(lines):
            body = lines[index]
            if body.startswith("diff --git ") or body.startswith("@@ "):
                break
            if body.startswith(_NO_NEWLINE_MARKER):
                index += 1
                continue
            kind = _LINE_KINDS.get(body[:1])
            if kind is None:
                break
            if kind == "removed" and body.startswith("--- ") and _starts_file_header(lines, index):
                break
            hunk.lines.append(PatchLine(kind=kind, text=body[1:]))
            index += 1
        current.hunks.append(hunk)

    return patches


def _starts_file_header(lines: list[str], index: int) -> bool:
    """Return True when ``lines[index]`` opens a ``---``/``+++`` file header pair."""
    return index + 1 < len(lines) and lines[index + 1].startswith("+++ ")


__all__ = [
    "FilePatch",
    "Hunk",
    "LineKind",
    "PatchLine",
    "normalise_patch_path",
    "parse_hunk_header",
    "parse_unified_diff",
]
