"""
Rule evaluator for field visibility conditions.

Decides whether a canonical condition list passes for a given value lookup.
Pure evaluation: no I/O, no side effects. The caller supplies the lookup,
which is what lets identical logic run against persisted values on the
server and against live form state on the client.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable
from typing import Any

from metafields.core.ir.conditions import Condition, Operator, is_known_operator

logger = logging.getLogger(__name__)

ValueLookup = Callable[[str], Any]

_NUMERIC_RE = re.compile(r"^\s*[-+]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][-+]?\d+)?\s*$")


# =============================================================================
# Operand Normalization
# =============================================================================


def normalize_operand(value: Any) -> Any:
    """
    Normalize a value for comparison.

    - None becomes the empty string
    - booleans become 1/0 (so a checkbox compares like its stored value)
    - numeric-looking strings become int or float
    - lists and tuples are normalized element-wise
    - everything else passes through unchanged
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, str):
        if value and _NUMERIC_RE.match(value):
            text = value.strip()
            if any(ch in text for ch in ".eE"):
                return float(text)
            try:
                return int(text)
            except ValueError:
                # past the int digit limit
                return float(text)
        return value
    if isinstance(value, (list, tuple)):
        return [normalize_operand(item) for item in value]
    return value


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _to_float(value: Any) -> float | None:
    if _is_number(value):
        return float(value)
    if isinstance(value, str) and value and _NUMERIC_RE.match(value):
        return float(value)
    return None


def _stringify(value: Any) -> str:
    """String form used by substring operators."""
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (list, tuple)):
        return ",".join(_stringify(item) for item in value)
    return str(value)


# =============================================================================
# Comparators
# =============================================================================


def _loose_equal(actual: Any, expected: Any) -> bool:
    if _is_number(actual) and _is_number(expected):
        return float(actual) == float(expected)
    return bool(actual == expected)


def _strict_equal(actual: Any, expected: Any) -> bool:
    if _is_number(actual) and _is_number(expected):
        return float(actual) == float(expected)
    return type(actual) is type(expected) and actual == expected


def _compare_numbers(actual: Any, expected: Any, test: Callable[[float, float], bool]) -> bool:
    left = _to_float(actual)
    right = _to_float(expected)
    if left is None or right is None:
        return False
    return test(left, right)


def _as_list(expected: Any) -> list[Any]:
    if isinstance(expected, list):
        return expected
    return [expected]


def _in(actual: Any, expected: Any) -> bool:
    candidates = _as_list(expected)
    if isinstance(actual, list):
        return any(_in(item, candidates) for item in actual)
    return any(_loose_equal(actual, candidate) for candidate in candidates)


def _contains(actual: Any, expected: Any) -> bool:
    return _stringify(expected) in _stringify(actual)


def _is_empty(actual: Any) -> bool:
    return not actual or actual == "0"


_COMPARATORS: dict[Operator, Callable[[Any, Any], bool]] = {
    Operator.EQ: _loose_equal,
    Operator.STRICT_EQ: _strict_equal,
    Operator.NEQ: lambda a, e: not _loose_equal(a, e),
    Operator.STRICT_NEQ: lambda a, e: not _strict_equal(a, e),
    Operator.GT: lambda a, e: _compare_numbers(a, e, lambda x, y: x > y),
    Operator.GTE: lambda a, e: _compare_numbers(a, e, lambda x, y: x >= y),
    Operator.LT: lambda a, e: _compare_numbers(a, e, lambda x, y: x < y),
    Operator.LTE: lambda a, e: _compare_numbers(a, e, lambda x, y: x <= y),
    Operator.IN: _in,
    Operator.NOT_IN: lambda a, e: not _in(a, e),
    Operator.CONTAINS: _contains,
    Operator.NOT_CONTAINS: lambda a, e: not _contains(a, e),
    Operator.EMPTY: lambda a, _e: _is_empty(a),
    Operator.NOT_EMPTY: lambda a, _e: not _is_empty(a),
}


# =============================================================================
# Public API
# =============================================================================


def evaluate_condition(actual: Any, operator: str, expected: Any) -> bool:
    """
    Evaluate a single comparison.

    Args:
        actual: Current value of the controller field
        operator: Canonical operator symbol (unknown symbols fall back to ==)
        expected: Value from the condition

    Returns:
        True if the condition is met
    """
    left = normalize_operand(actual)
    right = normalize_operand(expected)

    if not is_known_operator(operator):
        logger.debug("Unknown visibility operator %r, using loose equality", operator)
        return _loose_equal(left, right)

    return _COMPARATORS[Operator(operator)](left, right)


def is_satisfied(conditions: Iterable[Condition], lookup: ValueLookup) -> bool:
    """
    Check whether all conditions pass (AND semantics).

    Short-circuits on the first failing condition. An empty condition list
    is always satisfied.
    """
    for condition in conditions:
        if not evaluate_condition(lookup(condition.field), condition.operator, condition.value):
            return False
    return True
