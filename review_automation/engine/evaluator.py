"""Condition evaluator for workflow eligibility."""

from __future__ import annotations

from typing import Any

_MISSING = object()


def get_field(data: Any, path: str, default: Any = _MISSING) -> Any:
    """Resolve a dotted path (``review.location.name``, ``emotions.anger``, ``tags.0``)."""
    current = data
    for part in path.split("."):
        if isinstance(current, dict):
            if part not in current:
                return default
            current = current[part]
        elif isinstance(current, (list, tuple)) and part.isdigit():
            index = int(part)
            if index >= len(current):
                return default
            current = current[index]
        else:
            return default
    return current


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def _loose_equals(actual: Any, expected: Any) -> bool:
    """Equality that treats ``5`` and ``"5"`` alike."""
    if actual == expected:
        return True
    a, b = _as_number(actual), _as_number(expected)
    if a is not None and b is not None:
        return a == b
    return False


def _contains(actual: Any, expected: Any) -> bool:
    if isinstance(actual, str):
        return str(expected) in actual
    if isinstance(actual, (list, tuple, set)):
        return any(_loose_equals(item, expected) for item in actual)
    return False


def _greater_than(actual: Any, expected: Any) -> bool:
    a, b = _as_number(actual), _as_number(expected)
    return a is not None and b is not None and a > b


def _less_than(actual: Any, expected: Any) -> bool:
    a, b = _as_number(actual), _as_number(expected)
    return a is not None and b is not None and a < b


def _in(actual: Any, expected: Any) -> bool:
    return isinstance(expected, (list, tuple)) and any(_loose_equals(actual, v) for v in expected)


def _not_in(actual: Any, expected: Any) -> bool:
    return isinstance(expected, (list, tuple)) and not _in(actual, expected)


OPERATORS = {
    "equals": _loose_equals,
    "not_equals": lambda a, b: not _loose_equals(a, b),
    "contains": _contains,
    "not_contains": lambda a, b: isinstance(a, (str, list, tuple, set)) and not _contains(a, b),
    "greater_than": _greater_than,
    "less_than": _less_than,
    "in": _in,
    "not_in": _not_in,
}


def evaluate_condition(condition: dict, data: dict) -> bool:
    """Evaluate one ``{"field", "operator", "value"}`` predicate.

    A field that is absent (or null) in ``data`` makes the condition false for
    every operator, including the negative ones. Unknown operators are false.
    """
    field = condition.get("field") or ""
    op_func = OPERATORS.get(condition.get("operator", "equals"))
    if not field or op_func is None:
        return False

    actual = get_field(data, field)
    if actual is _MISSING or actual is None:
        return False

    try:
        return bool(op_func(actual, condition.get("value")))
    except (TypeError, ValueError):
        return False


def matches_conditions(conditions: list[dict] | None, data: dict) -> bool:
    """AND all conditions together; an empty list matches everything."""
    if not conditions:
        return True
    return all(evaluate_condition(condition, data) for condition in conditions)
