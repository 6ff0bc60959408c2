from __future__ import annotations

import logging
import textwrap
from pathlib import Path

import pytest

from adpatch.engine.alignment import Match
from adpatch.engine.context import PatchContext
from adpatch.engine.exports import ModuleExportIndex, extract_module_exports
from adpatch.engine.symbols import (
    AliasReplacement,
    ReplacementPlan,
    build_alias_replacements,
    build_expression_replacements,
    build_module_id_replacements,
    member_expressions,
    parse_require_import,
    redundant_added_imports,
    resolve_target_module,
)
from adpatch.errors import AmbiguousModuleMatch

BUNDLE = textwrap.dedent(
    """
    77: (e, t, r) => {
      r.d(t, {
        render: () => o,
        mount: () => i,
      });
    },
    78: (e, t, r) => {
      r.d(t, {
        render: () => a,
      });
    },
    91: (e, t, r) => {
      r.d(t, {
        useStore: () => s,
      });
    },
    """
).lstrip()


def _context(tmp_path: Path, bundle: str = BUNDLE) -> PatchContext:
    (tmp_path / "bundle.js").write_text(bundle, encoding="utf-8")
    return PatchContext(tmp_path)


def test_require_import_and_member_parsing() -> None:
    parsed = parse_require_import("    q = r(4821),")

    assert parsed is not None
    assert (parsed.alias, parsed.module_id) == ("q", "4821")
    assert parse_require_import("var q = r(4821),") is None
    assert member_expressions("(0, n.jsx)(k.p, { value: e.target.value })") == ["n.jsx", "k.p", "e.target"]


def test_export_index_ranks_modules_by_hits() -> None:
    index = ModuleExportIndex.from_lines(BUNDLE.split("\n"))

    assert len(index) == 3
    assert index.exports_of("77") == frozenset({"render", "mount"})
    assert index.exports_of("404") is None
    assert index.rank(["render", "mount"]) == [("77", 2), ("78", 1)]
    assert [entry.module_id for entry in extract_module_exports(BUNDLE.split("\n"))] == ["77", "78", "91"]


def test_resolve_target_module_handles_ties() -> None:
    index = ModuleExportIndex.from_lines(BUNDLE.split("\n"))

    assert resolve_target_module(index, ["render", "mount"]) == "77"
    assert resolve_target_module(index, ["render"], original_id="78") == "78"
    with pytest.raises(AmbiguousModuleMatch) as excinfo:
        resolve_target_module(index, ["render"], original_id="4821")
    assert excinfo.value.details["candidates"] == ["77", "78"]
    with pytest.raises(AmbiguousModuleMatch):
        resolve_target_module(index, ["missingExport"])


def test_module_ids_of_added_imports_are_remapped(tmp_path: Path) -> None:
    context = _context(tmp_path)
    old = ["  a = r(12),", "  a.start();"]
    new = ["  a = r(12),", "  q = r(4821),", "  s = r(5000);", "  a.start();", "  q.useStore();"]

    replacements = build_module_id_replacements(context, old, new)

    assert replacements == {"4821": "91"}


def test_ambiguous_module_is_reported_as_warning(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    context = _context(tmp_path)
    warnings: list[str] = []

    with caplog.at_level(logging.WARNING, logger="adpatch.engine.symbols"):
        replacements = build_module_id_replacements(context, [], ["q = r(4821),", "q.render();"], warnings)

    assert replacements == {}
    assert len(warnings) == 1
    assert "q = r(4821)" in warnings[0]
    assert any("left unmapped" in record.getMessage() for record in caplog.records)


def test_added_alias_reuses_same_module_import_in_target(tmp_path: Path) -> None:
    context = _context(tmp_path)
    old = ["    a = r(12);", "  a.start('panel');"]
    segment = ["    a = r(12),", "    x = r(77);", "  a.start('panel');"]
    new = ["    a = r(12);", "    q = r(4821);", "  a.start('panel');", "  q.render('panel');"]

    replacements = build_alias_replacements(context, old, segment, new, {"4821": "77"}, segment)

    assert replacements == [AliasReplacement(from_alias="q", to_alias="x")]


def test_added_alias_without_same_module_import_stays(tmp_path: Path) -> None:
    context = _context(tmp_path)
    old = ["    a = r(12),"]
    segment = ["    z = r(91),"]
    new = ["    a = r(12),", "    q = r(4821);", "  q.render();"]

    replacements = build_alias_replacements(context, old, segment, new, {"4821": "77"}, segment)

    assert replacements == []


def test_unresolved_old_aliases_pair_by_position(tmp_path: Path) -> None:
    context = _context(tmp_path, "")
    old = ["    a = r(12),", "    b = r(13);", "  a.one(b.two);"]
    segment = ["    m = r(40),", "    n = r(41);", "  m.one(n.two);"]
    new = [*old, "  b.three();"]

    replacements = build_alias_replacements(context, old, segment, new, {}, segment)

    assert replacements == [AliasReplacement("a", "m"), AliasReplacement("b", "n")]


def test_expression_replacements_from_aligned_lines() -> None:
    old = ["  o = r(5),", "(0, o.jsx)(s.Z, { open: u.open })"]
    target = ["  n = r(6),", "(0, n.jsx)(k.Q, { open: u.open })"]
    new = [*old, "(0, o.jsx)(s.Z, { open: !1 })"]

    replacements = build_expression_replacements(old, target, [Match(0, 0, 1.0), Match(1, 1, 0.9)], new)

    assert replacements == {"o.jsx": "n.jsx", "s.Z": "k.Q"}


def test_replacement_plan_respects_token_boundaries() -> None:
    plan = ReplacementPlan(
        expressions={"k.p": "h.jU"},
        aliases=[AliasReplacement("a", "b")],
        module_ids={"1": "2", "2": "3"},
    )

    assert plan.apply("(0, o.jsx)(k.p, {})") == "(0, o.jsx)(h.jU, {})"
    assert plan.apply("mk.p + k.pp") == "mk.p + k.pp"
    assert plan.apply("a.x + ba.y + a = 1") == "b.x + ba.y + a = 1"
    assert plan.apply("r(1), r(2), rr(1)") == "r(2), r(3), rr(1)"
    assert plan.translate(["k.p", "a.z"]) == ["h.jU", "b.z"]
    assert not ReplacementPlan()


def test_longest_key_wins() -> None:
    plan = ReplacementPlan(expressions={"e.t": "X", "e.target": "Y"})

    assert plan.apply("e.target.value + e.t") == "Y.value + X"


def test_added_imports_already_in_target_are_redundant() -> None:
    old = ["    a = r(12),"]
    segment = ["    a = r(12),", "    x = r(77),"]
    new = [*old, "    q = r(4821),", "    x = r(77),", "    y = r(77),", "    z = r(5),", "  q.render();"]

    redundant = redundant_added_imports(old, new, segment, [AliasReplacement("q", "x")], {"4821": "77"})

    assert redundant == frozenset({"q", "x"})


def test_plan_leaves_out_redundant_import_lines() -> None:
    plan = ReplacementPlan(
        aliases=[AliasReplacement("q", "x")],
        module_ids={"4821": "77"},
        dropped_aliases=frozenset({"q"}),
    )

    assert plan.translate(["    q = r(4821),", "    q = r(4821);", "  q.render();"]) == ["    q = r(77);", "  x.render();"]
    assert ReplacementPlan(dropped_aliases=frozenset({"q"}))
