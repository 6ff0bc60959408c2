"""Locate target files for a file patch and the segment of a file for a hunk."""

from __future__ import annotations

import logging
import posixpath
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from ..errors import NoSegmentFound, NoTargetFileFound
from .context import PatchContext
from .parser import FilePatch
from .similarity import (
    ANCHOR_WINDOW_AFTER,
    ANCHOR_WINDOW_BEFORE,
    FULL_MATCH,
    STRONG_MATCH,
    WEAK_MATCH,
    Anchor,
    anchor_coverage,
    collect_anchors,
    count_exact_lines,
    line_similarity,
)

LOGGER = logging.getLogger(__name__)

#: Directory names that usually start the stable part of a bundled path.
TREE_MARKERS = ("app", "_next", "static")
EXACT_MATCH_SCORE = sys.maxsize


@dataclass(frozen=True, slots=True)
class TargetMatch:
    """Candidate target file for a file patch."""

    path: Path
    reason: str
    score: int
    exact_lines: int

    @property
    def is_exact(self) -> bool:
        return self.reason.startswith("exact-relative:")


@dataclass(frozen=True, slots=True)
class Segment:
    """Half-open line range ``[start, end)`` of a target file."""

    start: int
    end: int
    score: int

    def __len__(self) -> int:
        return self.end - self.start


def candidate_relative_paths(reference: str | None) -> list[str]:
    """Relative paths under which ``reference`` may exist in another snapshot."""
    if not reference:
        return []
    normalised = reference.replace("\\", "/")
    candidates = [normalised.lstrip("/")]
    parts = [part for part in normalised.split("/") if part]
    for marker in TREE_MARKERS:
        if marker in parts[:-1]:
            candidates.append("/".join(parts[parts.index(marker) :]))
    candidates.append(posixpath.basename(normalised))
    unique: list[str] = []
    for candidate in candidates:
        if candidate and candidate not in unique:
            unique.append(candidate)
    return unique


def _exact_match(context: PatchContext, file_patch: FilePatch) -> TargetMatch | None:
    references = [*candidate_relative_paths(file_patch.new_path), *candidate_relative_paths(file_patch.old_path)]
    for relative in references:
        candidate = (context.target_root / relative).resolve()
        if not candidate.is_relative_to(context.target_root):
            continue
        if candidate.is_file():
            return TargetMatch(
                path=candidate,
                reason=f"exact-relative:{relative}",
                score=EXACT_MATCH_SCORE,
                exact_lines=EXACT_MATCH_SCORE,
            )
    return None


def locate_target_files(context: PatchContext, file_patch: FilePatch) -> list[TargetMatch]:
    """Return the best target file(s) for ``file_patch``.

    An existing file at a derived relative path wins outright. Otherwise files
    sharing the patch's extension are scored by anchor coverage, then by the
    number of exact old lines they contain; every file tied with the best on
    both measures is returned, since there is no safe way to pick one.
    """
    exact = _exact_match(context, file_patch)
    if exact is not None:
        return [exact]

    old_lines = file_patch.old_content
    anchors = collect_anchors(old_lines)
    extension = file_patch.extension or None
    scored: list[TargetMatch] = []
    for candidate in context.iter_files(extension):
        content = context.read_text(candidate)
        score = anchor_coverage(content, anchors)
        if score <= 0:
            continue
        scored.append(
            TargetMatch(
                path=candidate,
                reason=f"anchor-score:{score}",
                score=score,
                exact_lines=count_exact_lines(content, old_lines),
            )
        )

    if not scored:
        raise NoTargetFileFound(
            f"No file under {context.target_root} resembles {file_patch.source_path}",
            details={"source_path": file_patch.source_path, "anchors": len(anchors)},
        )

    scored.sort(key=lambda match: (-match.score, -match.exact_lines, match.path.as_posix()))
    best = scored[0]
    tied = [match for match in scored if match.score == best.score and match.exact_lines == best.exact_lines]
    if len(tied) > 1:
        LOGGER.warning(
            "%d target files tie for %s (score %d); applying to all of them",
            len(tied),
            file_patch.source_path,
            best.score,
        )
    return tied


def _segment_score(segment: Sequence[str], anchors: Sequence[Anchor]) -> int:
    score = 0
    for anchor in anchors:
        window_start = max(0, anchor.index - ANCHOR_WINDOW_BEFORE)
        window_end = min(len(segment), anchor.index + ANCHOR_WINDOW_AFTER)
        best = 0.0
        for candidate in segment[window_start:window_end]:
            similarity = line_similarity(anchor.text, candidate.strip())
            if similarity > best:
                best = similarity
        if best >= FULL_MATCH:
            score += anchor.score
        elif best >= STRONG_MATCH:
            score += int(anchor.score * best)
        elif best >= WEAK_MATCH:
            score += anchor.score // 3
    return score


def locate_segment(target_lines: Sequence[str], old_lines: Sequence[str]) -> Segment:
    """Find the target line range that most likely holds ``old_lines`` now."""
    anchors = collect_anchors(old_lines)
    best: Segment | None = None
    for anchor in anchors:
        anchor_text = anchor.text
        for target_index, target_line in enumerate(target_lines):
            trimmed = target_line.strip()
            if trimmed != anchor_text and line_similarity(anchor_text, trimmed) < STRONG_MATCH:
                continue
            start = max(0, target_index - anchor.index)
            end = min(len(target_lines), start + len(old_lines))
            score = _segment_score(target_lines[start:end], anchors)
            if best is None or score > best.score:
                best = Segment(start=start, end=end, score=score)

    if best is None:
        raise NoSegmentFound(
            "Unable to locate any hunk anchor in the target file",
            details={"anchors": [anchor.text for anchor in anchors]},
        )
    return best


__all__ = [
    "EXACT_MATCH_SCORE",
    "Segment",
    "TREE_MARKERS",
    "TargetMatch",
    "candidate_relative_paths",
    "locate_segment",
    "locate_target_files",
]
