from __future__ import annotations

from adpatch.engine.alignment import Match, align_lines, build_boundary_map


def test_align_lines_skips_inserted_target_lines() -> None:
    old = ["function load(state) {", "  state.ready = true;", "  return state;", "}"]
    target = [
        "function load(state) {",
        "  trace('load');",
        "    state.ready = true;",
        "  return state;",
        "}",
    ]

    matches = align_lines(old, target)

    assert [(match.old_index, match.target_index) for match in matches] == [(0, 0), (1, 2), (2, 3), (3, 4)]
    assert all(match.score == 1.0 for match in matches)


def test_align_lines_is_strictly_monotonic() -> None:
    old = ["alpha();", "beta();", "alpha();", "gamma();", "beta();"]
    target = ["beta();", "alpha();", "gamma();", "alpha();", "beta();", "gamma();"]

    matches = align_lines(old, target)

    assert matches
    for previous, current in zip(matches, matches[1:]):
        assert current.old_index > previous.old_index
        assert current.target_index > previous.target_index


def test_align_lines_respects_window() -> None:
    old = ["settings.open('panel');"]
    target = ["noise();"] * 30 + ["settings.open('panel');"]

    assert align_lines(old, target) == []
    assert align_lines(old, target, window=40)[0].target_index == 30


def test_boundary_map_interpolates_without_matches() -> None:
    assert build_boundary_map(4, 8, []) == [0, 2, 4, 6, 8]
    assert build_boundary_map(2, 1, []) == [0, 1, 1]


def test_boundary_map_pins_matched_lines() -> None:
    boundaries = build_boundary_map(3, 6, [Match(old_index=1, target_index=3, score=1.0)])

    assert boundaries == [0, 3, 4, 6]


def test_boundary_map_takes_smallest_target_for_coincident_points() -> None:
    boundaries = build_boundary_map(2, 5, [Match(old_index=0, target_index=2, score=0.9)])

    assert boundaries[0] == 0
    assert boundaries[1] == 3
    assert boundaries == sorted(boundaries)
