"""Reconcile module ids, import aliases and member expressions with the target tree.

Minified bundles import modules as ``alias = r(123)`` and use them as
``alias.name``. Between builds both the alias letters and the numeric module
ids change, so inserted lines must be rewritten before they are spliced in.
Three independent maps are built per hunk and merged into one
:class:`ReplacementPlan`.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Sequence

from ..errors import AmbiguousModuleMatch
from ..telemetry import emit_event
from .alignment import Match
from .context import PatchContext
from .exports import ModuleExportIndex
from .rules import ReplacementRule, collect_rule_replacements
from .similarity import EXPRESSION_LINE_MATCH, line_similarity

LOGGER = logging.getLogger(__name__)

_IDENTIFIER = r"[A-Za-z_$][\w$]*"
_REQUIRE_IMPORT_RE = re.compile(rf"^({_IDENTIFIER})\s*=\s*r\((\d+)\)[,;]?$")
_MEMBER_RE = re.compile(rf"(?<![\w$.])({_IDENTIFIER})\.({_IDENTIFIER})")

_SAME_REMAPPED_MODULE = 10_000
_SAME_ORIGINAL_MODULE = 5_000
_SHARED_EXPORT = 100


@dataclass(frozen=True, slots=True)
class RequireImport:
    """``alias = r(module_id)`` declaration inside a bundled module."""

    alias: str
    module_id: str


@dataclass(frozen=True, slots=True)
class AliasReplacement:
    from_alias: str
    to_alias: str


def parse_require_import(line: str) -> RequireImport | None:
    match = _REQUIRE_IMPORT_RE.match(line.strip())
    if not match:
        return None
    return RequireImport(alias=match.group(1), module_id=match.group(2))


def require_imports(lines: Iterable[str]) -> list[RequireImport]:
    imports: list[RequireImport] = []
    for line in lines:
        parsed = parse_require_import(line)
        if parsed is not None:
            imports.append(parsed)
    return imports


def member_expressions(line: str) -> list[str]:
    """Return ``root.prop`` expressions of ``line`` in order of appearance."""
    return [match.group(0) for match in _MEMBER_RE.finditer(line)]


def alias_export_names(lines: Iterable[str], alias: str) -> list[str]:
    """Names accessed as ``alias.name`` in ``lines``, first occurrence order."""
    names: list[str] = []
    for line in lines:
        for match in _MEMBER_RE.finditer(line):
            if match.group(1) == alias and match.group(2) not in names:
                names.append(match.group(2))
    return names


def used_member_roots(lines: Iterable[str]) -> set[str]:
    return {match.group(1) for line in lines for match in _MEMBER_RE.finditer(line)}


def _expressions_by_property(lines: Iterable[str], aliases: set[str]) -> dict[str, set[str]]:
    grouped: dict[str, set[str]] = {}
    for line in lines:
        for match in _MEMBER_RE.finditer(line):
            if match.group(1) in aliases:
                grouped.setdefault(match.group(2), set()).add(match.group(0))
    return grouped


# --------------------------------------------------------------------------- replacement plan


def _is_identifier_char(char: str) -> bool:
    return char == "_" or char == "$" or char.isalnum()


def _is_identifier_start(char: str) -> bool:
    return char == "_" or char == "$" or char.isalpha()


@dataclass(slots=True)
class ReplacementPlan:
    """Merged replacements applied in one left-to-right scan, longest key first.

    Keys that begin with an identifier character only match where no
    identifier character or dot precedes them; keys ending in an identifier
    character only match where none follows; alias keys (``alias.``) only match
    when a property name follows. A rewritten span is never rescanned, so
    ``a -> b`` and ``b -> c`` cannot chain.

    Inserted ``alias = r(id),`` lines whose alias is in ``dropped_aliases``
    duplicate an import the target already has and are left out by
    :meth:`translate`.
    """

    expressions: Dict[str, str] = field(default_factory=dict)
    aliases: List[AliasReplacement] = field(default_factory=list)
    module_ids: Dict[str, str] = field(default_factory=dict)
    dropped_aliases: FrozenSet[str] = frozenset()
    _by_first_char: Dict[str, List[tuple[str, str]]] = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self) -> None:
        for key, value in self.entries():
            self._by_first_char.setdefault(key[0], []).append((key, value))

    def entries(self) -> list[tuple[str, str]]:
        merged: dict[str, str] = {}
        for source_id, target_id in self.module_ids.items():
            merged[f"r({source_id})"] = f"r({target_id})"
        for replacement in self.aliases:
            merged[f"{replacement.from_alias}."] = f"{replacement.to_alias}."
        merged.update(self.expressions)
        ordered = [(key, value) for key, value in merged.items() if key and key != value]
        ordered.sort(key=lambda item: -len(item[0]))
        return ordered

    def __bool__(self) -> bool:
        return bool(self._by_first_char or self.dropped_aliases)

    @staticmethod
    def _bounded(line: str, start: int, key: str) -> bool:
        if _is_identifier_char(key[0]) and start > 0:
            previous = line[start - 1]
            if _is_identifier_char(previous) or previous == ".":
                return False
        end = start + len(key)
        following = line[end] if end < len(line) else ""
        if key.endswith("."):
            return bool(following) and _is_identifier_start(following)
        if _is_identifier_char(key[-1]) and following and _is_identifier_char(following):
            return False
        return True

    def apply(self, line: str) -> str:
        if not self._by_first_char:
            return line
        pieces: list[str] = []
        index = 0
        length = len(line)
        while index < length:
            for key, value in self._by_first_char.get(line[index], ()):
                if line.startswith(key, index) and self._bounded(line, index, key):
                    pieces.append(value)
                    index += len(key)
                    break
            else:
                pieces.append(line[index])
                index += 1
        return "".join(pieces)

    def _is_dropped(self, line: str) -> bool:
        if not self.dropped_aliases or not line.rstrip().endswith(","):
            return False
        parsed = parse_require_import(line)
        return parsed is not None and parsed.alias in self.dropped_aliases

    def translate(self, lines: Sequence[str]) -> list[str]:
        return [self.apply(line) for line in lines if not self._is_dropped(line)]


# --------------------------------------------------------------------------- module id remapping


def resolve_target_module(index: ModuleExportIndex, export_names: Sequence[str], *, original_id: str | None = None) -> str:
    """Pick the target module exporting the most of ``export_names``.

    Raises :class:`AmbiguousModuleMatch` when nothing matches or when several
    modules tie for the best score (unless the original id is among them).
    """
    ranked = index.rank(export_names)
    if not ranked:
        raise AmbiguousModuleMatch(
            f"No target module exports any of {', '.join(export_names)}",
            details={"exports": list(export_names), "original_id": original_id},
        )
    best_hits = ranked[0][1]
    tied = [module_id for module_id, hits in ranked if hits == best_hits]
    if original_id is not None and original_id in tied:
        return original_id
    if len(tied) > 1:
        raise AmbiguousModuleMatch(
            f"Modules {', '.join(tied)} tie for exports {', '.join(export_names)}",
            details={"exports": list(export_names), "candidates": tied, "original_id": original_id},
        )
    return ranked[0][0]


def added_imports(old_lines: Sequence[str], new_lines: Sequence[str]) -> list[RequireImport]:
    """Imports declared by the new content under an alias the old content lacks."""
    old_aliases = {entry.alias for entry in require_imports(old_lines)}
    return [entry for entry in require_imports(new_lines) if entry.alias not in old_aliases]


def build_module_id_replacements(
    context: PatchContext,
    old_lines: Sequence[str],
    new_lines: Sequence[str],
    warnings: list[str] | None = None,
) -> dict[str, str]:
    """Map module ids of newly added imports onto target modules with matching exports."""
    replacements: dict[str, str] = {}
    for entry in added_imports(old_lines, new_lines):
        export_names = alias_export_names(new_lines, entry.alias)
        if not export_names:
            LOGGER.debug("Import %s = r(%s) has no member accesses; leaving id as is", entry.alias, entry.module_id)
            continue
        try:
            target_id = resolve_target_module(context.export_index, export_names, original_id=entry.module_id)
        except AmbiguousModuleMatch as error:
            message = f"{entry.alias} = r({entry.module_id}) left unmapped: {error}"
            LOGGER.warning("%s", message)
            emit_event("module_match_ambiguous", alias=entry.alias, module_id=entry.module_id, details=error.details)
            if warnings is not None:
                warnings.append(message)
            continue
        if target_id != entry.module_id:
            LOGGER.info("Remapping module r(%s) -> r(%s) for alias %s", entry.module_id, target_id, entry.alias)
            replacements[entry.module_id] = target_id
    return replacements


# --------------------------------------------------------------------------- alias remapping


@dataclass(frozen=True, slots=True)
class _AliasCandidate:
    alias: str
    score: int
    export_hits: int


def build_alias_replacements(
    context: PatchContext,
    old_lines: Sequence[str],
    target_segment: Sequence[str],
    new_lines: Sequence[str],
    module_id_replacements: Dict[str, str],
    target_file_lines: Sequence[str],
) -> list[AliasReplacement]:
    """Pair hunk import aliases with the target segment's import aliases.

    Old aliases used by the new content and aliases the new content adds are
    scored against every target import by module id continuity and shared
    export names. Added aliases are only renamed onto a target import of the
    same module. Old aliases left over are paired positionally with the
    remaining target aliases, counting from the end of both lists.
    """
    old_imports = require_imports(old_lines)
    target_imports = require_imports(target_segment)
    used_aliases = used_member_roots(new_lines)
    local_index = ModuleExportIndex.from_lines(target_file_lines)

    def target_exports(module_id: str) -> frozenset[str] | None:
        exports = local_index.exports_of(module_id)
        if exports is None:
            exports = context.export_index.exports_of(module_id)
        return exports

    replacements: list[AliasReplacement] = []
    resolved_old: set[str] = set()
    resolved_target: set[str] = set()
    candidates_in_order = [(entry, False) for entry in old_imports if entry.alias in used_aliases]
    candidates_in_order += [(entry, True) for entry in added_imports(old_lines, new_lines) if entry.alias in used_aliases]

    for entry, is_added in candidates_in_order:
        export_names = alias_export_names(new_lines, entry.alias)
        preferred = [
            (module_id_replacements.get(entry.module_id), _SAME_REMAPPED_MODULE),
            (entry.module_id, _SAME_ORIGINAL_MODULE),
        ]
        candidates: list[_AliasCandidate] = []
        for target in target_imports:
            if target.alias in resolved_target:
                continue
            score = sum(weight for module_id, weight in preferred if module_id and target.module_id == module_id)
            if is_added and score == 0:
                continue
            exports = target_exports(target.module_id)
            hits = sum(1 for name in export_names if exports and name in exports)
            score += hits * _SHARED_EXPORT
            if score > 0:
                candidates.append(_AliasCandidate(alias=target.alias, score=score, export_hits=hits))

        if not candidates:
            continue
        candidates.sort(key=lambda item: (-item.score, -item.export_hits, item.alias))
        best = candidates[0]
        if len(candidates) > 1 and (candidates[1].score, candidates[1].export_hits) == (best.score, best.export_hits):
            LOGGER.debug("Alias %s is ambiguous between %s and %s", entry.alias, best.alias, candidates[1].alias)
            continue
        resolved_old.add(entry.alias)
        resolved_target.add(best.alias)
        if entry.alias != best.alias:
            replacements.append(AliasReplacement(from_alias=entry.alias, to_alias=best.alias))

    unresolved_old = [entry for entry in old_imports if entry.alias in used_aliases and entry.alias not in resolved_old]
    unresolved_target = [entry for entry in target_imports if entry.alias not in resolved_target]
    pair_count = min(len(unresolved_old), len(unresolved_target))
    if pair_count:
        for old_entry, target_entry in zip(unresolved_old[-pair_count:], unresolved_target[-pair_count:]):
            if old_entry.alias != target_entry.alias:
                LOGGER.debug("Pairing alias %s -> %s by position", old_entry.alias, target_entry.alias)
                replacements.append(AliasReplacement(from_alias=old_entry.alias, to_alias=target_entry.alias))
    return replacements


def redundant_added_imports(
    old_lines: Sequence[str],
    new_lines: Sequence[str],
    target_segment: Sequence[str],
    aliases: Sequence[AliasReplacement],
    module_id_replacements: Dict[str, str],
) -> frozenset[str]:
    """Added aliases whose import, once rewritten, already exists in the target segment."""
    renamed = {replacement.from_alias: replacement.to_alias for replacement in aliases}
    existing = {(entry.alias, entry.module_id) for entry in require_imports(target_segment)}
    redundant: set[str] = set()
    for entry in added_imports(old_lines, new_lines):
        alias = renamed.get(entry.alias, entry.alias)
        module_id = module_id_replacements.get(entry.module_id, entry.module_id)
        if (alias, module_id) in existing:
            LOGGER.debug("Dropping %s = r(%s): target already imports it as %s", entry.alias, entry.module_id, alias)
            redundant.add(entry.alias)
    return frozenset(redundant)


# --------------------------------------------------------------------------- expression remapping


def build_expression_replacements(
    old_lines: Sequence[str],
    target_segment: Sequence[str],
    matches: Sequence[Match],
    new_lines: Sequence[str],
) -> dict[str, str]:
    """Infer ``old expression -> target expression`` pairs from aligned lines."""
    replacements: dict[str, str] = {}

    for match in matches:
        old_expressions = member_expressions(old_lines[match.old_index])
        target_expressions = member_expressions(target_segment[match.target_index])
        if not old_expressions or len(old_expressions) != len(target_expressions):
            continue
        for old_expression, target_expression in zip(old_expressions, target_expressions):
            if old_expression != target_expression:
                replacements[old_expression] = target_expression

    old_aliases = {entry.alias for entry in require_imports(old_lines)}
    target_aliases = {entry.alias for entry in require_imports(target_segment)}
    target_by_property = _expressions_by_property(target_segment, target_aliases)
    for prop, old_expressions in _expressions_by_property(old_lines, old_aliases).items():
        target_expressions = target_by_property.get(prop)
        if not target_expressions or len(old_expressions) != 1 or len(target_expressions) != 1:
            continue
        (old_expression,) = old_expressions
        (target_expression,) = target_expressions
        if old_expression != target_expression:
            replacements[old_expression] = target_expression

    seen: list[str] = []
    for line in new_lines:
        for expression in member_expressions(line):
            if expression.split(".", 1)[0] in old_aliases and expression not in seen:
                seen.append(expression)
    for expression in seen:
        if expression in replacements:
            continue
        source_line = next((line for line in old_lines if expression in member_expressions(line)), None)
        if source_line is None:
            continue
        best_line: str | None = None
        best_score = 0.0
        for target_line in target_segment:
            score = line_similarity(source_line, target_line)
            if score > best_score:
                best_score = score
                best_line = target_line
        if best_line is None or best_score < EXPRESSION_LINE_MATCH:
            continue
        source_expressions = member_expressions(source_line)
        target_expressions = member_expressions(best_line)
        if len(source_expressions) != len(target_expressions):
            continue
        candidate = target_expressions[source_expressions.index(expression)]
        if candidate != expression:
            replacements[expression] = candidate

    return replacements


# --------------------------------------------------------------------------- entry point


@dataclass(slots=True)
class SymbolResolution:
    plan: ReplacementPlan
    warnings: list[str] = field(default_factory=list)


def resolve_symbols(
    context: PatchContext,
    *,
    old_lines: Sequence[str],
    new_lines: Sequence[str],
    target_segment: Sequence[str],
    matches: Sequence[Match],
    target_file_lines: Sequence[str],
    rules: Sequence[ReplacementRule] = (),
) -> SymbolResolution:
    """Build the merged replacement plan for one hunk."""
    warnings: list[str] = []
    module_ids = build_module_id_replacements(context, old_lines, new_lines, warnings)
    expressions = build_expression_replacements(old_lines, target_segment, matches, new_lines)
    expressions.update(collect_rule_replacements(rules, target_file_lines, new_lines))
    aliases = build_alias_replacements(
        context,
        old_lines,
        target_segment,
        new_lines,
        module_ids,
        target_file_lines,
    )
    plan = ReplacementPlan(
        expressions=expressions,
        aliases=aliases,
        module_ids=module_ids,
        dropped_aliases=redundant_added_imports(old_lines, new_lines, target_segment, aliases, module_ids),
    )
    if plan:
        LOGGER.debug("Replacement plan: %s", plan.entries())
    return SymbolResolution(plan=plan, warnings=warnings)


__all__ = [
    "AliasReplacement",
    "ReplacementPlan",
    "RequireImport",
    "SymbolResolution",
    "added_imports",
    "alias_export_names",
    "build_alias_replacements",
    "build_expression_replacements",
    "build_module_id_replacements",
    "member_expressions",
    "parse_require_import",
    "redundant_added_imports",
    "require_imports",
    "resolve_symbols",
    "resolve_target_module",
    "used_member_roots",
]
