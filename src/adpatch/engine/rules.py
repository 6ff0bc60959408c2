"""Optional, configurable expression rules layered on top of the symbol resolver.

Some rewrites cannot be inferred from alignment alone, for example a component
reference whose only trace in the target is a nearby JSX call. A rule describes
where to find the target-side expression and which new-content expression it
replaces, so such cases live in configuration instead of the engine.
"""

from __future__ import annotations

import logging
import re
from enum import Enum
from typing import Dict, List, Protocol, Sequence, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field, field_validator

LOGGER = logging.getLogger(__name__)

_IDENTIFIER = r"[A-Za-z_$][\w$]*"
_JSX_COMPONENT_RE = re.compile(rf"\(0,\s*{_IDENTIFIER}\.jsx\)\(([^,]+),\s*\{{")
_CALL_CALLEE_RE = re.compile(rf"\(0,\s*({_IDENTIFIER}(?:\.{_IDENTIFIER}|\.\$)?)\)\(")


@runtime_checkable
class ReplacementRule(Protocol):
    """Anything able to contribute ``from -> to`` expression replacements for a hunk."""

    name: str

    def replacements(self, target_lines: Sequence[str], new_lines: Sequence[str]) -> Dict[str, str]:
        ...


class CaptureKind(str, Enum):
    """Expression shapes a rule can capture from a target line."""

    JSX_COMPONENT = "jsx-component"
    CALL_CALLEE = "call-callee"

    def extract(self, line: str) -> str | None:
        pattern = _JSX_COMPONENT_RE if self is CaptureKind.JSX_COMPONENT else _CALL_CALLEE_RE
        match = pattern.search(line)
        if not match:
            return None
        return match.group(1).strip() or None


class ExpressionRule(BaseModel):
    """Map ``placeholder`` to an expression captured near an anchored target line.

    The rule only fires when ``trigger`` occurs in the hunk's new content. It
    then looks for the first target line containing every ``anchor`` text and
    captures the expression from that line or from up to ``lookback`` lines
    above it, nearest first.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str
    trigger: str
    placeholder: str
    anchor: List[str] = Field(min_length=1)
    capture: CaptureKind = CaptureKind.CALL_CALLEE
    lookback: int = Field(default=0, ge=0)

    @field_validator("anchor", mode="before")
    @classmethod
    def _coerce_anchor(cls, value: object) -> object:
        if isinstance(value, str):
            return [value]
        return value

    def replacements(self, target_lines: Sequence[str], new_lines: Sequence[str]) -> Dict[str, str]:
        if not any(self.trigger in line for line in new_lines):
            return {}
        for index, line in enumerate(target_lines):
            if not all(text in line for text in self.anchor):
                continue
            for offset in range(self.lookback + 1):
                if index - offset < 0:
                    break
                captured = self.capture.extract(target_lines[index - offset])
                if captured:
                    if captured == self.placeholder:
                        return {}
                    LOGGER.debug("Rule %s maps %s -> %s", self.name, self.placeholder, captured)
                    return {self.placeholder: captured}
            return {}
        return {}


def collect_rule_replacements(
    rules: Sequence[ReplacementRule],
    target_lines: Sequence[str],
    new_lines: Sequence[str],
) -> Dict[str, str]:
    """Merge the replacements of every rule; later rules win on conflicting keys."""
    merged: Dict[str, str] = {}
    for rule in rules:
        merged.update(rule.replacements(target_lines, new_lines))
    return merged


__all__ = [
    "CaptureKind",
    "ExpressionRule",
    "ReplacementRule",
    "collect_rule_replacements",
]
