"""Condition evaluation — matches a rule's conditions against an event payload.

All conditions must hold (logical AND); an empty condition list always
matches. Evaluation never raises: values that cannot be compared are coerced
(to NaN for numeric operators, to text for ``contains`` operators) and an
unknown operator simply fails the condition.
"""

import math
from collections.abc import Iterable, Mapping
from enum import Enum
from typing import Any


class Operator(Enum):
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    IN = "in"
    NOT_IN = "not_in"


SEQUENCE_OPERATORS = {Operator.IN.value, Operator.NOT_IN.value}


def resolve_field(payload: Any, path: str) -> Any:
    """Follow a dot-path through nested mappings.

    Returns None as soon as a segment is missing or the current container is
    not a mapping.
    """
    current = payload
    for segment in path.split("."):
        if not isinstance(current, Mapping) or segment not in current:
            return None
        current = current[segment]
    return current


def _strict_equals(left: Any, right: Any) -> bool:
    # Booleans are not numbers here: True must not equal 1.
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left is right
    return left == right


def _as_number(value: Any) -> float:
    if value is None or isinstance(value, bool):
        return math.nan
    if isinstance(value, int | float):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return math.nan
    return math.nan


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, list | tuple):
        return ",".join(_as_text(item) for item in value)
    return str(value)


def _contains(actual: Any, expected: Any) -> bool:
    return _as_text(expected).lower() in _as_text(actual).lower()


def _member_of(actual: Any, candidates: Iterable) -> bool:
    return any(_strict_equals(actual, candidate) for candidate in candidates)


def evaluate_condition(operator: str, actual: Any, expected: Any) -> bool:
    """Apply a single operator to a resolved payload value."""
    if operator == Operator.EQUALS.value:
        return _strict_equals(actual, expected)
    if operator == Operator.NOT_EQUALS.value:
        return not _strict_equals(actual, expected)
    if operator == Operator.GREATER_THAN.value:
        # NaN on either side makes the comparison false
        return _as_number(actual) > _as_number(expected)
    if operator == Operator.LESS_THAN.value:
        return _as_number(actual) < _as_number(expected)
    if operator == Operator.CONTAINS.value:
        return _contains(actual, expected)
    if operator == Operator.NOT_CONTAINS.value:
        return not _contains(actual, expected)
    if operator == Operator.IN.value:
        return isinstance(expected, list | tuple) and _member_of(actual, expected)
    if operator == Operator.NOT_IN.value:
        return isinstance(expected, list | tuple) and not _member_of(actual, expected)
    return False


def evaluate(conditions, payload: Any) -> bool:
    """Return True iff every condition holds for the payload.

    Each condition exposes ``field``, ``operator`` and ``expected`` (the
    decoded comparison value), as the Rule aggregate's Condition entity does.
    """
    return all(
        evaluate_condition(
            condition.operator,
            resolve_field(payload, condition.field),
            condition.expected,
        )
        for condition in conditions
    )
