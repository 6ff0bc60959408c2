"""Error types raised while adapting patches onto a shifted target tree."""

from __future__ import annotations

from typing import Any, Mapping


class AdaptivePatchError(RuntimeError):
    """Base error for adaptive patching; ``details`` carries structured context."""

    def __init__(self, message: str, *, details: Mapping[str, Any] | None = None) -> None:
        super().__init__(message)
        self.details: dict[str, Any] = dict(details or {})


class MalformedHunkHeader(AdaptivePatchError):
    """Raised when an ``@@`` line does not carry the expected numeric ranges."""


class NoTargetFileFound(AdaptivePatchError):
    """Raised when no file under the target root resembles a file patch."""


class NoSegmentFound(AdaptivePatchError):
    """Raised when a matched target file contains none of a hunk's anchors."""


class AmbiguousModuleMatch(AdaptivePatchError):
    """Raised when a newly imported module cannot be resolved to exactly one target module."""


class PatchInputError(AdaptivePatchError):
    """Raised when patch documents or extracted builds cannot be resolved."""


class ConfigError(AdaptivePatchError):
    """Raised when the configuration file cannot be parsed or validated."""


__all__ = [
    "AdaptivePatchError",
    "AmbiguousModuleMatch",
    "ConfigError",
    "MalformedHunkHeader",
    "NoSegmentFound",
    "NoTargetFileFound",
    "PatchInputError",
]
