"""Trigger matching and the small JSON-logic dialect used by rule conditions.

A condition is a dict. ``{"var": "payload.amount", ">": 100}`` compares the
value at a dotted path; ``{"and": [...]}`` and ``{"or": [...]}`` combine.
Supported comparisons are ``==``, ``!=``, ``>``, ``<`` and ``regex``. A missing
or empty condition always passes, and so does a malformed one (a non-dict
condition, or an ``and``/``or`` operand that is not a list).
"""

from __future__ import annotations

import re
from typing import Any


_COMPARISONS = ("==", "!=", ">", "<", "regex")


def resolve_path(context: dict[str, Any], path: str) -> Any:
    current: Any = context
    for segment in path.split("."):
        if not isinstance(current, dict):
            return None
        current = current.get(segment)
    return current


def _compare(op: str, value: Any, target: Any) -> bool:
    if op == "==":
        return value == target
    if op == "!=":
        return value != target
    if op == "regex":
        if value is None:
            return False
        return re.search(str(target), str(value)) is not None
    if value is None or target is None:
        return False
    try:
        return value > target if op == ">" else value < target
    except TypeError:
        return False


def evaluate_condition(condition: Any, context: dict[str, Any]) -> bool:
    # anything that is not a well-formed condition passes
    if not condition or not isinstance(condition, dict):
        return True

    if "var" in condition:
        value = resolve_path(context, str(condition["var"]))
        for op in _COMPARISONS:
            if op in condition:
                return _compare(op, value, condition[op])
        return True

    if "and" in condition:
        operands = condition["and"]
        if not isinstance(operands, list):
            return True
        return all(evaluate_condition(item, context) for item in operands)
    if "or" in condition:
        operands = condition["or"]
        if not isinstance(operands, list):
            return True
        return any(evaluate_condition(item, context) for item in operands)
    return True


def matches_trigger(event_type: str, trigger: dict[str, Any] | None) -> bool:
    """``event_types`` entries match exactly, by ``*`` or by a ``prefix.*`` wildcard."""
    if not trigger:
        return False
    patterns = trigger.get("event_types")
    if patterns is None:
        return False
    if isinstance(patterns, str):
        patterns = [patterns]
    for pattern in patterns:
        if pattern == "*" or pattern == event_type:
            return True
        if pattern.endswith("*") and event_type.startswith(pattern[:-1]):
            return True
    return False
