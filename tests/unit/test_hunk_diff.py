from __future__ import annotations

from adpatch.engine.hunk_diff import DiffOperation, diff_lines, is_hunk_applied, is_translation_present
from adpatch.engine.parser import parse_unified_diff


def _hunk(body: str):
    return parse_unified_diff(f"--- a/x.js\n+++ b/x.js\n@@ -1 +1 @@\n{body}")[0].hunks[0]


def test_diff_lines_reports_replace_between_equal_spans() -> None:
    operations = diff_lines(["a", "b", "c"], ["a", "x", "c"])

    assert operations == [
        DiffOperation("equal", 0, 1, 0, 1),
        DiffOperation("replace", 1, 2, 1, 2),
        DiffOperation("equal", 2, 3, 2, 3),
    ]


def test_diff_lines_consumes_old_side_first_on_ties() -> None:
    operations = diff_lines(["a", "b"], ["b", "a"])

    assert operations == [
        DiffOperation("delete", 0, 1, 0, 0),
        DiffOperation("equal", 1, 2, 0, 1),
        DiffOperation("insert", 2, 2, 1, 2),
    ]


def test_diff_lines_handles_empty_sides() -> None:
    assert diff_lines([], ["x", "y"]) == [DiffOperation("insert", 0, 0, 0, 2)]
    assert diff_lines(["x"], []) == [DiffOperation("delete", 0, 1, 0, 0)]
    assert diff_lines([], []) == []


def test_is_hunk_applied_requires_every_new_anchor() -> None:
    hunk = _hunk(" function greet(name) {\n+  console.info('greeting', name);\n")

    assert not is_hunk_applied("function greet(name) {\n", hunk)
    assert is_hunk_applied("function greet(name) {\n  console.info('greeting', name);\n", hunk)


def test_pure_deletion_is_applied_once_removed_lines_are_gone() -> None:
    hunk = _hunk(" function compute(value) {\n-  console.log('debug', value);\n   return value;\n")

    assert not is_hunk_applied("function compute(value) {\nconsole.log('debug', value);\n", hunk)
    assert is_hunk_applied("function compute(value) {\n  return value;\n", hunk)


def test_hunk_without_anchors_is_never_considered_applied() -> None:
    hunk = _hunk(" }\n+x;\n")

    assert not is_hunk_applied("}\nx;\n", hunk)


def test_renamed_added_lines_count_as_present() -> None:
    hunk = _hunk(" a.start('settings-panel');\n+a.start('second-panel');\n")
    region = "n.start('settings-panel');\nn.start('second-panel');\n"

    assert not is_hunk_applied(region, hunk)
    assert is_translation_present(region, hunk, ["n.start('second-panel');"])
    assert not is_translation_present("n.start('settings-panel');\n", hunk, ["n.start('second-panel');"])


def test_short_added_lines_need_exact_matches() -> None:
    hunk = _hunk(" start();\n+go();\n")

    assert is_translation_present("start();\ngo();\n", hunk, ["go();"])
    assert not is_translation_present("start();\n", hunk, ["go();"])


def test_additions_rewritten_away_are_present_only_without_removals() -> None:
    imports = _hunk(" a = r(12),\n+q = r(4821),\n")
    swap = _hunk(" a = r(12),\n-b = r(13),\n+q = r(4821),\n")
    deletion = _hunk(" keep();\n-drop();\n")

    assert is_translation_present("a = r(12),\n", imports, [])
    assert not is_translation_present("a = r(12),\nb = r(13),\n", swap, [])
    assert not is_translation_present("keep();\n", deletion, [])
