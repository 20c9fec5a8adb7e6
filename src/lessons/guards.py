"""
Value guards for lesson conditions.

A guard maps parameter names to required values. Every key must be present in
the action parameters and compare equal under strict rules: booleans only match
booleans, numbers only match numbers (int and float compare by value), strings
only match strings. There is no coercion, so a form that reports "100" does not
satisfy a guard of 100.

An explicit operator object may replace a plain value:

    {"amount": {"op": ">=", "value": 100}}

Ordered operators only apply to numbers; anything else fails the guard.
"""

from __future__ import annotations

import operator
from collections.abc import Mapping
from numbers import Real
from typing import Any, Callable

from loguru import logger

OPERATOR_KEYS = frozenset({"op", "value"})

_ORDERED_OPS: dict[str, Callable[[Any, Any], bool]] = {
    ">": operator.gt,
    ">=": operator.ge,
    "<": operator.lt,
    "<=": operator.le,
}

_MISSING = object()


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def strict_equal(expected: Any, actual: Any) -> bool:
    """Equality without type coercion (numbers compare by value)."""
    if _is_number(expected) and _is_number(actual):
        return expected == actual
    if _is_number(expected) or _is_number(actual):
        return False
    if isinstance(expected, Mapping) and isinstance(actual, Mapping):
        if expected.keys() != actual.keys():
            return False
        return all(strict_equal(expected[k], actual[k]) for k in expected)
    if isinstance(expected, (list, tuple)) and isinstance(actual, (list, tuple)):
        return len(expected) == len(actual) and all(
            strict_equal(e, a) for e, a in zip(expected, actual)
        )
    return type(expected) is type(actual) and expected == actual


def is_operator_spec(value: Any) -> bool:
    """True for {"op": ..., "value": ...} objects."""
    return isinstance(value, Mapping) and set(value.keys()) == OPERATOR_KEYS


def compare(op: str, expected: Any, actual: Any) -> bool:
    """Apply a guard operator to an actual parameter value."""
    if op == "==":
        return strict_equal(expected, actual)
    if op == "!=":
        return not strict_equal(expected, actual)

    fn = _ORDERED_OPS.get(op)
    if fn is None:
        logger.warning("Unsupported guard operator '{}'", op)
        return False
    if not (_is_number(expected) and _is_number(actual)):
        return False
    return fn(actual, expected)


def guard_satisfied(condition_value: Mapping[str, Any] | None, params: Mapping[str, Any] | None) -> bool:
    """
    Check whether action parameters satisfy a condition's guard.

    Args:
        condition_value: Required parameter values (None means no guard)
        params: Parameters reported with the action

    Returns:
        True when every guarded key is present and matches
    """
    if not condition_value:
        return True
    params = params or {}

    for key, expected in condition_value.items():
        actual = params.get(key, _MISSING)
        if actual is _MISSING:
            logger.debug("Guard key '{}' missing from action params", key)
            return False

        if is_operator_spec(expected):
            ok = compare(expected["op"], expected["value"], actual)
        else:
            ok = strict_equal(expected, actual)

        logger.debug("Checking guard: {} == {!r}, actual {!r} -> {}", key, expected, actual, ok)
        if not ok:
            return False

    return True
