"""Line scoring primitives shared by the locators, the aligner and the resolver.

The thresholds below were tuned against real minified bundles. Changing any of
them shifts which segments and alignments win in ways that are hard to predict,
so they are kept as named constants rather than derived values.
"""

from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass
from typing import Iterable, Sequence

#: Maximum number of anchors kept per line list (highest scores first).
MAX_ANCHORS = 12
#: Shortest trimmed line that may serve as an anchor.
MIN_ANCHOR_LENGTH = 8
#: Similarity treated as an exact hit when scoring candidate segments.
FULL_MATCH = 0.98
#: Similarity at which a target line counts as the same line reflowed or renamed.
STRONG_MATCH = 0.72
#: Lowest similarity accepted for an alignment or partial anchor credit.
WEAK_MATCH = 0.52
#: Similarity required to borrow expressions from an unaligned target line.
EXPRESSION_LINE_MATCH = 0.6
#: Forward search distance of the line aligner, in target lines.
ALIGN_WINDOW = 24
#: Window around an anchor's expected offset inside a candidate segment.
ANCHOR_WINDOW_BEFORE = 3
ANCHOR_WINDOW_AFTER = 4

_QUOTE_BONUS = 40
_WORD_BONUS = 15
_REQUIRE_PENALTY = 50
_PUNCTUATION_PENALTY = 100

_QUOTE_RE = re.compile(r"['\"`]")
_WORD_RE = re.compile(r"[^\W\d_]{4,}")
_REQUIRE_LINE_RE = re.compile(r"^\w+\s*=\s*r\(\d+\)")
_PUNCTUATION_RE = re.compile(r"^[\s,.;:{}()\[\]]+$")
_DIGITS_RE = re.compile(r"\d+")
_SINGLE_IDENTIFIER_RE = re.compile(r"\b[a-zA-Z_$]\b")
_WHITESPACE_RE = re.compile(r"\s+")


@dataclass(frozen=True, slots=True)
class Anchor:
    """Distinctive line used to find where a block of lines lives now."""

    line: str
    index: int
    score: int

    @property
    def text(self) -> str:
        return self.line.strip()


def anchor_score(line: str) -> int:
    """Weight ``line`` by how distinctive it is; non-positive means unusable."""
    trimmed = line.strip()
    if len(trimmed) < MIN_ANCHOR_LENGTH:
        return -1
    score = len(trimmed)
    if _QUOTE_RE.search(trimmed):
        score += _QUOTE_BONUS
    if _WORD_RE.search(trimmed):
        score += _WORD_BONUS
    if _REQUIRE_LINE_RE.match(trimmed):
        score -= _REQUIRE_PENALTY
    if _PUNCTUATION_RE.match(trimmed):
        score -= _PUNCTUATION_PENALTY
    return score


def collect_anchors(lines: Sequence[str], limit: int = MAX_ANCHORS) -> list[Anchor]:
    """Return the best-scoring anchors of ``lines``, highest first, order-stable on ties."""
    anchors = [Anchor(line=line, index=index, score=anchor_score(line)) for index, line in enumerate(lines)]
    ranked = sorted((anchor for anchor in anchors if anchor.score > 0), key=lambda anchor: -anchor.score)
    return ranked[:limit]


def anchor_coverage(content: str, anchors: Iterable[Anchor]) -> int:
    """Sum the scores of anchors whose trimmed text occurs in ``content``."""
    return sum(anchor.score for anchor in anchors if anchor.text in content)


def count_exact_lines(content: str, lines: Iterable[str]) -> int:
    """Count non-blank lines whose trimmed text occurs in ``content``."""
    total = 0
    for line in lines:
        trimmed = line.strip()
        if trimmed and trimmed in content:
            total += 1
    return total


def normalise_for_similarity(line: str) -> str:
    """Erase numbering, one-letter identifiers and spacing differences."""
    normalised = _DIGITS_RE.sub("#", line.strip())
    normalised = _SINGLE_IDENTIFIER_RE.sub("v", normalised)
    return _WHITESPACE_RE.sub(" ", normalised)


def _bigrams(value: str) -> Counter[str]:
    padded = f" {value} "
    return Counter(padded[index : index + 2] for index in range(len(padded) - 1))


def line_similarity(left: str, right: str) -> float:
    """Dice coefficient of the normalised lines' character bigrams, in ``[0, 1]``."""
    normalised_left = normalise_for_similarity(left)
    normalised_right = normalise_for_similarity(right)
    if not normalised_left or not normalised_right:
        return 0.0
    if normalised_left == normalised_right:
        return 1.0
    left_bigrams = _bigrams(normalised_left)
    right_bigrams = _bigrams(normalised_right)
    intersection = sum((left_bigrams & right_bigrams).values())
    total = sum(left_bigrams.values()) + sum(right_bigrams.values())
    return (2 * intersection) / total


__all__ = [
    "ALIGN_WINDOW",
    "ANCHOR_WINDOW_AFTER",
    "ANCHOR_WINDOW_BEFORE",
    "Anchor",
    "EXPRESSION_LINE_MATCH",
    "FULL_MATCH",
    "MAX_ANCHORS",
    "MIN_ANCHOR_LENGTH",
    "STRONG_MATCH",
    "WEAK_MATCH",
    "anchor_coverage",
    "anchor_score",
    "collect_anchors",
    "count_exact_lines",
    "line_similarity",
    "normalise_for_similarity",
]
