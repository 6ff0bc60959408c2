"""Apply unified diffs to a shifted snapshot by relocating every hunk."""

from __future__ import annotations

import difflib
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal, Sequence

from ..errors import AdaptivePatchError, NoTargetFileFound
from ..telemetry import emit_event
from .alignment import align_lines, build_boundary_map
from .context import PatchContext, join_lines
from .hunk_diff import DiffOperation, diff_lines, is_hunk_applied, is_translation_present
from .locator import Segment, TargetMatch, locate_segment, locate_target_files
from .parser import FilePatch, Hunk, parse_unified_diff
from .rules import ReplacementRule
from .symbols import ReplacementPlan, SymbolResolution, resolve_symbols

LOGGER = logging.getLogger(__name__)

RecordStatus = Literal["applied", "already-applied", "failed"]


@dataclass(slots=True)
class ApplicationRecord:
    """Outcome of one file patch against one matched target file."""

    source_path: str | None
    target_path: Path | None
    dry_run: bool
    status: RecordStatus
    match_reason: str = ""
    applied_hunks: int = 0
    skipped_hunks: int = 0
    warnings: tuple[str, ...] = ()
    error: str | None = None
    diff: str = ""

    @property
    def ok(self) -> bool:
        return self.status != "failed"

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_path": self.source_path,
            "target_path": self.target_path.as_posix() if self.target_path else None,
            "dry_run": self.dry_run,
            "status": self.status,
            "match_reason": self.match_reason,
            "applied_hunks": self.applied_hunks,
            "skipped_hunks": self.skipped_hunks,
            "warnings": list(self.warnings),
            "error": self.error,
        }


def rebuild_segment(
    target_segment: Sequence[str],
    new_lines: Sequence[str],
    operations: Sequence[DiffOperation],
    boundaries: Sequence[int],
    plan: ReplacementPlan,
) -> list[str]:
    """Replay ``operations`` over the target segment.

    ``equal`` spans and any target lines between mapped boundaries are kept
    verbatim; ``insert`` and ``replace`` spans contribute translated new lines;
    ``delete`` spans drop their mapped target lines.
    """
    rebuilt: list[str] = []
    cursor = 0
    for operation in operations:
        start = max(cursor, boundaries[operation.old_start])
        end = max(start, boundaries[operation.old_end])
        if start > cursor:
            rebuilt.extend(target_segment[cursor:start])
        if operation.kind == "equal":
            rebuilt.extend(target_segment[start:end])
        elif operation.kind in ("insert", "replace"):
            rebuilt.extend(plan.translate(new_lines[operation.new_start : operation.new_end]))
        cursor = end
    if cursor < len(target_segment):
        rebuilt.extend(target_segment[cursor:])
    return rebuilt


@dataclass(slots=True)
class HunkPlacement:
    """Where a hunk lands in a target file and how its new lines are rewritten."""

    segment: Segment
    boundaries: list[int]
    operations: list[DiffOperation]
    resolution: SymbolResolution

    @property
    def plan(self) -> ReplacementPlan:
        return self.resolution.plan

    def region(self, target_lines: Sequence[str], hunk: Hunk) -> list[str]:
        """Target lines around the segment, widened by the hunk's added line count."""
        margin = len(hunk.added)
        return list(target_lines[max(0, self.segment.start - margin) : self.segment.end + margin])


def place_hunk(
    context: PatchContext,
    target_lines: Sequence[str],
    hunk: Hunk,
    *,
    rules: Sequence[ReplacementRule] = (),
) -> HunkPlacement:
    """Locate ``hunk`` inside ``target_lines`` and build its replacement plan."""
    old_lines = hunk.old_content
    new_lines = hunk.new_content
    segment = locate_segment(target_lines, old_lines)
    target_segment = list(target_lines[segment.start : segment.end])
    matches = align_lines(old_lines, target_segment)
    resolution = resolve_symbols(
        context,
        old_lines=old_lines,
        new_lines=new_lines,
        target_segment=target_segment,
        matches=matches,
        target_file_lines=target_lines,
        rules=rules,
    )
    LOGGER.debug(
        "Hunk %s -> lines %d-%d (score %d, %d aligned)",
        hunk.header,
        segment.start + 1,
        segment.end,
        segment.score,
        len(matches),
    )
    return HunkPlacement(
        segment=segment,
        boundaries=build_boundary_map(len(old_lines), len(target_segment), matches),
        operations=diff_lines(old_lines, new_lines),
        resolution=resolution,
    )


def apply_hunk(
    context: PatchContext,
    target_lines: list[str],
    hunk: Hunk,
    *,
    rules: Sequence[ReplacementRule] = (),
    placement: HunkPlacement | None = None,
) -> tuple[list[str], list[str]]:
    """Relocate ``hunk`` inside ``target_lines``; return the new lines and warnings."""
    if placement is None:
        placement = place_hunk(context, target_lines, hunk, rules=rules)
    segment = placement.segment
    rebuilt = rebuild_segment(
        target_lines[segment.start : segment.end],
        hunk.new_content,
        placement.operations,
        placement.boundaries,
        placement.plan,
    )
    return [*target_lines[: segment.start], *rebuilt, *target_lines[segment.end :]], list(placement.resolution.warnings)


def _render_diff(context: PatchContext, path: Path, before: list[str], after: list[str]) -> str:
    relative = context.relative(path)
    diff = list(
        difflib.unified_diff(
            before,
            after,
            fromfile=f"a/{relative}",
            tofile=f"b/{relative}",
            lineterm="",
        )
    )
    if not diff:
        return ""
    text = "\n".join(diff) + "\n"
    # undecodable bytes survive as surrogates; show them as replacement characters
    return text.encode(context.encoding, "surrogateescape").decode(context.encoding, "replace")


def _apply_to_target(
    context: PatchContext,
    file_patch: FilePatch,
    match: TargetMatch,
    *,
    dry_run: bool,
    rules: Sequence[ReplacementRule],
) -> ApplicationRecord:
    source_path = file_patch.source_path
    before = context.read_lines(match.path)
    lines = list(before)
    applied = 0
    skipped = 0
    warnings: list[str] = []

    LOGGER.info("Adaptive patch: %s -> %s (%s)", source_path, match.path, match.reason)
    emit_event("patch_target_matched", source_path=source_path, target_path=match.path, reason=match.reason)

    for number, hunk in enumerate(file_patch.hunks, start=1):
        placement: HunkPlacement | None = None
        try:
            if not is_hunk_applied(join_lines(lines), hunk):
                placement = place_hunk(context, lines, hunk, rules=rules)
                region = join_lines(placement.region(lines, hunk))
                if is_translation_present(region, hunk, placement.plan.translate(hunk.added)):
                    placement = None
        except AdaptivePatchError as error:
            LOGGER.error("Hunk #%d of %s failed on %s: %s", number, source_path, match.path, error)
            emit_event(
                "file_patch_failed",
                source_path=source_path,
                target_path=match.path,
                hunk=number,
                error=str(error),
                details=error.details,
            )
            return ApplicationRecord(
                source_path=source_path,
                target_path=match.path,
                dry_run=dry_run,
                status="failed",
                match_reason=match.reason,
                applied_hunks=applied,
                skipped_hunks=skipped,
                warnings=tuple(warnings),
                error=f"hunk #{number}: {error}",
            )
        if placement is None:
            skipped += 1
            LOGGER.info("Hunk #%d of %s already applied to %s; skipping", number, source_path, match.path)
            emit_event("hunk_skipped", source_path=source_path, target_path=match.path, hunk=number, reason="already-applied")
            continue
        lines, hunk_warnings = apply_hunk(context, lines, hunk, placement=placement)
        warnings.extend(hunk_warnings)
        applied += 1
        emit_event("hunk_applied", source_path=source_path, target_path=match.path, hunk=number)

    changed = context.stage(match.path, lines)
    return ApplicationRecord(
        source_path=source_path,
        target_path=match.path,
        dry_run=dry_run,
        status="applied" if applied else "already-applied",
        match_reason=match.reason,
        applied_hunks=applied,
        skipped_hunks=skipped,
        warnings=tuple(warnings),
        diff=_render_diff(context, match.path, before, lines) if changed else "",
    )


def apply_file_patch(
    context: PatchContext,
    file_patch: FilePatch,
    *,
    dry_run: bool = False,
    rules: Sequence[ReplacementRule] = (),
) -> list[ApplicationRecord]:
    """Apply one file patch to every matched target; failures stay local to it."""
    try:
        matches = locate_target_files(context, file_patch)
    except NoTargetFileFound as error:
        LOGGER.error("%s", error)
        emit_event("file_patch_failed", source_path=file_patch.source_path, error=str(error), details=error.details)
        return [
            ApplicationRecord(
                source_path=file_patch.source_path,
                target_path=None,
                dry_run=dry_run,
                status="failed",
                error=str(error),
            )
        ]
    return [_apply_to_target(context, file_patch, match, dry_run=dry_run, rules=rules) for match in matches]


def apply_adaptive_patch(
    target_root: Path | str,
    patch_text: str,
    dry_run: bool = False,
    *,
    context: PatchContext | None = None,
    rules: Sequence[ReplacementRule] = (),
) -> list[ApplicationRecord]:
    """Apply every file patch of ``patch_text`` to the tree at ``target_root``.

    File patches run in document order and see each other's edits. Edited
    files are written once at the end unless ``dry_run`` is set. A malformed
    hunk header aborts the whole document before anything is touched.
    """
    if context is None:
        context = PatchContext(Path(target_root))
    elif context.target_root != Path(target_root).resolve():
        raise ValueError(f"Context targets {context.target_root}, not {target_root}")

    file_patches = parse_unified_diff(patch_text)
    records: list[ApplicationRecord] = []
    for file_patch in file_patches:
        if not file_patch.hunks:
            LOGGER.debug("Skipping %s: no hunks", file_patch.source_path)
            continue
        records.extend(apply_file_patch(context, file_patch, dry_run=dry_run, rules=rules))

    if not dry_run:
        context.flush()
    return records


def apply_patch_file(
    target_root: Path | str,
    patch_path: Path | str,
    dry_run: bool = False,
    *,
    context: PatchContext | None = None,
    rules: Sequence[ReplacementRule] = (),
) -> list[ApplicationRecord]:
    """Read a diff document from ``patch_path`` and apply it adaptively."""
    patch_text = Path(patch_path).read_text(encoding="utf-8")
    return apply_adaptive_patch(target_root, patch_text, dry_run, context=context, rules=rules)


__all__ = [
    "ApplicationRecord",
    "HunkPlacement",
    "RecordStatus",
    "apply_adaptive_patch",
    "apply_file_patch",
    "apply_hunk",
    "apply_patch_file",
    "place_hunk",
    "rebuild_segment",
]
