"""
Re-apply unified diffs onto shifted snapshots of bundled JavaScript trees.
"""

from .engine import (
    ApplicationRecord,
    ExpressionRule,
    PatchContext,
    apply_adaptive_patch,
    apply_patch_file,
    locate_target_files,
    parse_unified_diff,
)
from .errors import AdaptivePatchError

__all__ = [
    "AdaptivePatchError",
    "ApplicationRecord",
    "ExpressionRule",
    "PatchContext",
    "apply_adaptive_patch",
    "apply_patch_file",
    "locate_target_files",
    "parse_unified_diff",
]
