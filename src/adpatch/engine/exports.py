"""Index of bundler modules and the export names they register."""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

#: How far below a module header the ``x.d(t, {`` export block may start.
MODULE_HEADER_SCAN_LINES = 120
#: How far below the export block opener its entries may extend.
EXPORT_BLOCK_SCAN_LINES = 200

_MODULE_HEADER_RE = re.compile(r"^\s*(\d+):\s*\([^)]*\)\s*=>\s*\{$")
_EXPORT_BLOCK_RE = re.compile(r"\b\w+\.d\(t,\s*\{")
_EXPORT_ENTRY_RE = re.compile(r"^\s*([A-Za-z_$][\w$]*):\s*\(\)\s*=>")
_EXPORT_BLOCK_END = "});"


@dataclass(frozen=True, slots=True)
class ModuleExports:
    """Exports registered by one bundler module."""

    module_id: str
    exports: frozenset[str]


def extract_module_exports(lines: Sequence[str]) -> list[ModuleExports]:
    """Scan bundle lines for ``123: (e, t, r) => {`` modules and their export blocks."""
    modules: list[ModuleExports] = []
    for index, line in enumerate(lines):
        header = _MODULE_HEADER_RE.match(line)
        if not header:
            continue
        exports: set[str] = set()
        block_limit = min(len(lines), index + MODULE_HEADER_SCAN_LINES)
        for inner in range(index + 1, block_limit):
            if not _EXPORT_BLOCK_RE.search(lines[inner]):
                continue
            entry_limit = min(len(lines), inner + EXPORT_BLOCK_SCAN_LINES)
            for entry_index in range(inner + 1, entry_limit):
                entry_line = lines[entry_index]
                if _EXPORT_BLOCK_END in entry_line:
                    break
                entry = _EXPORT_ENTRY_RE.match(entry_line)
                if entry:
                    exports.add(entry.group(1))
            break
        if exports:
            modules.append(ModuleExports(module_id=header.group(1), exports=frozenset(exports)))
    return modules


@dataclass(slots=True)
class ModuleExportIndex:
    """Mapping of module id to the union of its registered export names."""

    modules: dict[str, set[str]] = field(default_factory=dict)

    @classmethod
    def from_lines(cls, lines: Sequence[str]) -> "ModuleExportIndex":
        index = cls()
        index.add(extract_module_exports(lines))
        return index

    def add(self, entries: Iterable[ModuleExports]) -> None:
        for entry in entries:
            self.modules.setdefault(entry.module_id, set()).update(entry.exports)

    def exports_of(self, module_id: str) -> frozenset[str] | None:
        exports = self.modules.get(module_id)
        if not exports:
            return None
        return frozenset(exports)

    def rank(self, export_names: Sequence[str]) -> list[tuple[str, int]]:
        """Return ``(module_id, hits)`` for modules exporting any of ``export_names``, best first."""
        wanted = set(export_names)
        ranked: list[tuple[str, int]] = []
        for module_id, exports in self.modules.items():
            hits = len(wanted & exports)
            if hits:
                ranked.append((module_id, hits))
        ranked.sort(key=lambda item: (-item[1], int(item[0])))
        return ranked

    def __len__(self) -> int:
        return len(self.modules)


__all__ = [
    "EXPORT_BLOCK_SCAN_LINES",
    "MODULE_HEADER_SCAN_LINES",
    "ModuleExportIndex",
    "ModuleExports",
    "extract_module_exports",
]
