"""LCS edit scripts between a hunk's old and new content."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Sequence

from .parser import Hunk
from .similarity import anchor_coverage, collect_anchors, count_exact_lines

OperationKind = Literal["equal", "insert", "delete", "replace"]


@dataclass(frozen=True, slots=True)
class DiffOperation:
    """Span of an edit script with half-open old/new index ranges."""

    kind: OperationKind
    old_start: int
    old_end: int
    new_start: int
    new_end: int


def _lcs_table(old_lines: Sequence[str], new_lines: Sequence[str]) -> list[list[int]]:
    table = [[0] * (len(new_lines) + 1) for _ in range(len(old_lines) + 1)]
    for old_index in range(len(old_lines) - 1, -1, -1):
        row = table[old_index]
        below = table[old_index + 1]
        for new_index in range(len(new_lines) - 1, -1, -1):
            if old_lines[old_index] == new_lines[new_index]:
                row[new_index] = below[new_index + 1] + 1
            else:
                row[new_index] = max(below[new_index], row[new_index + 1])
    return table


def diff_lines(old_lines: Sequence[str], new_lines: Sequence[str]) -> list[DiffOperation]:
    """Compute ``equal``/``insert``/``delete``/``replace`` spans turning old into new.

    When skipping an old line and skipping a new line keep the same common
    subsequence length, the old line is consumed first.
    """
    table = _lcs_table(old_lines, new_lines)
    operations: list[DiffOperation] = []
    old_index = 0
    new_index = 0
    old_count = len(old_lines)
    new_count = len(new_lines)

    def same(left: int, right: int) -> bool:
        return left < old_count and right < new_count and old_lines[left] == new_lines[right]

    while old_index < old_count or new_index < new_count:
        old_start = old_index
        new_start = new_index
        if same(old_index, new_index):
            while same(old_index, new_index):
                old_index += 1
                new_index += 1
            operations.append(DiffOperation("equal", old_start, old_index, new_start, new_index))
            continue

        while (old_index < old_count or new_index < new_count) and not same(old_index, new_index):
            if new_index >= new_count or (
                old_index < old_count and table[old_index + 1][new_index] >= table[old_index][new_index + 1]
            ):
                old_index += 1
            else:
                new_index += 1

        deleted = old_index - old_start
        inserted = new_index - new_start
        if deleted and inserted:
            kind: OperationKind = "replace"
        elif deleted:
            kind = "delete"
        else:
            kind = "insert"
        operations.append(DiffOperation(kind, old_start, old_index, new_start, new_index))

    return operations


def is_hunk_applied(target_text: str, hunk: Hunk) -> bool:
    """Return True when ``target_text`` already carries the hunk's result.

    The anchors of the new content must all be present. A pure deletion has
    nothing new to look for, so it counts as applied once none of the
    distinctive removed lines remain.
    """
    if not hunk.added:
        kept = {line.strip() for line in hunk.new_content}
        removed_only = [line for line in hunk.removed if line.strip() and line.strip() not in kept]
        if not removed_only:
            return False
        removed_anchors = collect_anchors(removed_only)
        if removed_anchors:
            return anchor_coverage(target_text, removed_anchors) == 0
        return count_exact_lines(target_text, removed_only) == 0

    anchors = collect_anchors(hunk.new_content)
    if not anchors:
        return False
    required = sum(anchor.score for anchor in anchors)
    return anchor_coverage(target_text, anchors) >= required


def is_translation_present(region_text: str, hunk: Hunk, added: Sequence[str]) -> bool:
    """Return True when ``added`` already occurs in ``region_text``.

    ``added`` holds the hunk's added lines as rewritten for the target, so a
    hunk whose inserted lines were renamed on a previous run is still
    recognised. Context lines are not checked here; locating the segment
    already vouched for them. Added lines rewritten away entirely (duplicate
    imports) count as present unless the hunk also removes lines.
    """
    if not hunk.added:
        return False
    if not added:
        return not hunk.removed
    anchors = collect_anchors(added)
    if anchors:
        return anchor_coverage(region_text, anchors) >= sum(anchor.score for anchor in anchors)
    wanted = [line for line in added if line.strip()]
    return bool(wanted) and count_exact_lines(region_text, wanted) == len(wanted)


__all__ = ["DiffOperation", "OperationKind", "diff_lines", "is_hunk_applied", "is_translation_present"]
