"""Old-hunk to target-segment line alignment and boundary interpolation."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence

from .similarity import ALIGN_WINDOW, WEAK_MATCH, line_similarity


@dataclass(frozen=True, slots=True)
class Match:
    """One aligned pair of an old hunk line and a target segment line."""

    old_index: int
    target_index: int
    score: float


def align_lines(
    old_lines: Sequence[str],
    target_lines: Sequence[str],
    *,
    window: int = ALIGN_WINDOW,
    threshold: float = WEAK_MATCH,
) -> list[Match]:
    """Greedily align each old line to a target line ahead of the last match.

    Target lines are never matched twice and the cursor only moves forward, so
    the result is strictly increasing in both indices.
    """
    matches: list[Match] = []
    cursor = 0
    for old_index, old_line in enumerate(old_lines):
        best: Match | None = None
        for target_index in range(cursor, min(len(target_lines), cursor + window)):
            score = line_similarity(old_line, target_lines[target_index])
            if best is None or score > best.score:
                best = Match(old_index=old_index, target_index=target_index, score=score)
            if score == 1.0:
                break
        if best is not None and best.score >= threshold:
            matches.append(best)
            cursor = best.target_index + 1
    return matches


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def build_boundary_map(old_length: int, target_length: int, matches: Sequence[Match]) -> list[int]:
    """Map every old boundary ``0..old_length`` to a target boundary.

    Both edges of every match are fixed points, as are the segment's own start
    and end. A boundary that coincides with fixed points takes the smallest of
    their targets; any other boundary is interpolated linearly between the
    closest fixed points on either side.
    """
    points = [(0, 0), (old_length, target_length)]
    for match in matches:
        points.append((match.old_index, match.target_index))
        points.append((match.old_index + 1, match.target_index + 1))
    points.sort()

    boundaries = [0] * (old_length + 1)
    for boundary in range(old_length + 1):
        previous = points[0]
        following = points[-1]
        for point in points:
            if point[0] <= boundary:
                previous = point
            if point[0] >= boundary:
                following = point
                break
        if previous[0] == following[0]:
            boundaries[boundary] = max(previous[1], following[1])
            continue
        progress = (boundary - previous[0]) / (following[0] - previous[0])
        boundaries[boundary] = _round_half_up(previous[1] + (following[1] - previous[1]) * progress)
    return boundaries


__all__ = ["Match", "align_lines", "build_boundary_map"]
