"""Per-run state for one target root: file cache, staged edits and export index."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator

from ..telemetry import emit_event
from .exports import ModuleExportIndex, extract_module_exports

LOGGER = logging.getLogger(__name__)

#: Files scanned when building the module export index.
EXPORT_INDEX_SUFFIXES = (".js",)
#: Bytes the configured encoding cannot decode round-trip unchanged through a patch.
ENCODING_ERRORS = "surrogateescape"


def _normalise_line_endings(text: str) -> str:
    """Drop carriage returns so lines split identically on every platform."""
    return text.replace("\r", "")


def split_lines(text: str) -> list[str]:
    """Split text on ``\\n``; a trailing newline yields a final empty element."""
    return _normalise_line_endings(text).split("\n")


def join_lines(lines: list[str]) -> str:
    return "\n".join(lines)


def detect_newline(text: str) -> str:
    """Return ``\\r\\n`` when most line breaks of ``text`` are CRLF, else ``\\n``."""
    return "\r\n" if text.count("\r\n") * 2 > text.count("\n") else "\n"


@dataclass(slots=True)
class _FileState:
    """Cached file contents plus any staged, not yet written, edits."""

    lines: list[str]
    text: str
    newline: str = "\n"
    dirty: bool = False


@dataclass(slots=True)
class PatchContext:
    """Explicit run state shared by every locator and resolver call.

    Files are read at most once and edits are staged in memory, so later hunks
    and file patches see earlier edits. Nothing reaches the disk until
    :meth:`flush` runs, which a dry run never calls.
    """

    target_root: Path
    encoding: str = "utf-8"
    _files: dict[Path, _FileState] = field(default_factory=dict, init=False, repr=False)
    _listing: list[Path] | None = field(default=None, init=False, repr=False)
    _export_index: ModuleExportIndex | None = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        self.target_root = Path(self.target_root).resolve()

    def _state(self, path: Path) -> _FileState:
        resolved = Path(path).resolve()
        state = self._files.get(resolved)
        if state is None:
            raw = resolved.read_bytes().decode(self.encoding, ENCODING_ERRORS)
            lines = split_lines(raw)
            state = _FileState(lines=lines, text=join_lines(lines), newline=detect_newline(raw))
            self._files[resolved] = state
        return state

    def read_text(self, path: Path) -> str:
        """Return the current (possibly staged) contents of ``path``."""
        return self._state(path).text

    def read_lines(self, path: Path) -> list[str]:
        """Return a copy of the current lines of ``path``."""
        return list(self._state(path).lines)

    def stage(self, path: Path, lines: list[str]) -> bool:
        """Replace the in-memory contents of ``path``; return True when they changed."""
        state = self._state(path)
        if lines == state.lines:
            return False
        state.lines = list(lines)
        state.text = join_lines(state.lines)
        state.dirty = True
        return True

    def dirty_paths(self) -> list[Path]:
        return sorted((path for path, state in self._files.items() if state.dirty), key=lambda item: item.as_posix())

    def flush(self) -> list[Path]:
        """Write every staged file once and return the written paths."""
        written: list[Path] = []
        for path in self.dirty_paths():
            state = self._files[path]
            text = state.text if state.newline == "\n" else state.text.replace("\n", state.newline)
            path.write_text(text, encoding=self.encoding, errors=ENCODING_ERRORS, newline="")
            state.dirty = False
            written.append(path)
            LOGGER.info("Wrote %s", path)
            emit_event("file_written", path=path)
        return written

    def iter_files(self, suffix: str | None = None) -> Iterator[Path]:
        """Yield files below the root in path order, optionally filtered by suffix."""
        if self._listing is None:
            self._listing = sorted(
                (path for path in self.target_root.rglob("*") if path.is_file()),
                key=lambda item: item.as_posix(),
            )
        wanted = suffix.lower() if suffix else None
        for path in self._listing:
            if wanted is None or path.suffix.lower() == wanted:
                yield path

    def relative(self, path: Path) -> str:
        try:
            return Path(path).resolve().relative_to(self.target_root).as_posix()
        except ValueError:
            return Path(path).as_posix()

    @property
    def export_index(self) -> ModuleExportIndex:
        """Module export index over the whole root, built on first use."""
        if self._export_index is None:
            index = ModuleExportIndex()
            for suffix in EXPORT_INDEX_SUFFIXES:
                for path in self.iter_files(suffix):
                    index.add(extract_module_exports(self.read_lines(path)))
            LOGGER.debug("Indexed %d bundle module(s) under %s", len(index), self.target_root)
            self._export_index = index
        return self._export_index


__all__ = ["ENCODING_ERRORS", "EXPORT_INDEX_SUFFIXES", "PatchContext", "detect_newline", "join_lines", "split_lines"]
