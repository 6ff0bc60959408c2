from __future__ import annotations

import pytest
from pydantic import ValidationError

from adpatch.engine.rules import CaptureKind, ExpressionRule, ReplacementRule, collect_rule_replacements

TARGET = [
    "  children: [",
    "    (0, n.jsx)(h.jU, {",
    "      value: s,",
    "      onChange: (e) => l(e.target.value),",
    "      placeholder: 'Experiment name',",
    "    }),",
    "  ],",
]


def _search_rule(**overrides: object) -> ExpressionRule:
    payload = {
        "name": "experiment-search-input",
        "trigger": "name: 'experimentSearch'",
        "placeholder": "k.p",
        "anchor": ["placeholder: 'Experiment name'"],
        "capture": "jsx-component",
        "lookback": 4,
    }
    payload.update(overrides)
    return ExpressionRule.model_validate(payload)


def test_capture_kinds_extract_expressions() -> None:
    assert CaptureKind.JSX_COMPONENT.extract("(0, n.jsx)(h.jU, {") == "h.jU"
    assert CaptureKind.CALL_CALLEE.extract("const [a, b] = (0, o.useState)('');") == "o.useState"
    assert CaptureKind.CALL_CALLEE.extract("plain(call);") is None


def test_rule_maps_placeholder_to_captured_component() -> None:
    rule = _search_rule()
    new_lines = ["name: 'experimentSearch',", "(0, n.jsx)(k.p, {"]

    assert isinstance(rule, ReplacementRule)
    assert rule.replacements(TARGET, new_lines) == {"k.p": "h.jU"}


def test_rule_requires_trigger_and_reachable_capture() -> None:
    rule = _search_rule()

    assert rule.replacements(TARGET, ["(0, n.jsx)(k.p, {"]) == {}
    assert _search_rule(lookback=1).replacements(TARGET, ["name: 'experimentSearch',"]) == {}
    assert _search_rule(placeholder="h.jU").replacements(TARGET, ["name: 'experimentSearch',"]) == {}


def test_rule_anchor_accepts_single_string() -> None:
    rule = _search_rule(anchor="placeholder: 'Experiment name'")

    assert rule.anchor == ["placeholder: 'Experiment name'"]


def test_rule_rejects_unknown_fields_and_bad_values() -> None:
    with pytest.raises(ValidationError):
        _search_rule(colour="red")
    with pytest.raises(ValidationError):
        _search_rule(lookback=-1)
    with pytest.raises(ValidationError):
        _search_rule(capture="regex")
    with pytest.raises(ValidationError):
        _search_rule(anchor=[])


def test_later_rules_win_on_conflicts() -> None:
    first = _search_rule()
    second = _search_rule(name="callee", capture="call-callee", anchor=["onChange: (0,"], lookback=0)
    target = [*TARGET, "      onChange: (0, u.debounce)(l),"]

    merged = collect_rule_replacements([first, second], target, ["name: 'experimentSearch',"])

    assert merged == {"k.p": "u.debounce"}
