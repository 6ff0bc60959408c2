"""Adaptive patch engine: relocate unified-diff hunks onto a shifted target tree."""

from .applier import ApplicationRecord, apply_adaptive_patch, apply_file_patch, apply_patch_file
from .context import PatchContext
from .locator import Segment, TargetMatch, locate_segment, locate_target_files
from .parser import FilePatch, Hunk, PatchLine, parse_unified_diff
from .rules import CaptureKind, ExpressionRule, ReplacementRule

__all__ = [
    "ApplicationRecord",
    "CaptureKind",
    "ExpressionRule",
    "FilePatch",
    "Hunk",
    "PatchContext",
    "PatchLine",
    "ReplacementRule",
    "Segment",
    "TargetMatch",
    "apply_adaptive_patch",
    "apply_file_patch",
    "apply_patch_file",
    "locate_segment",
    "locate_target_files",
    "parse_unified_diff",
]
