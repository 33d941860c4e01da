"""Condition evaluation: decide whether a triggered run proceeds.

Conditions combine strictly left to right with a running boolean; there is
no operator precedence or grouping. ``A AND B OR C`` is ``(A and B) or C``
and ``A OR B AND C`` is ``(A or B) and C``. Evaluation stops at the first
false result unless an ``OR`` has already been seen.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from evofit_automation.workflows.models import (
    CombineWith,
    ConditionOperator,
    WorkflowCondition,
)

logger = logging.getLogger(__name__)


def get_nested_value(data: Any, path: str) -> Any:
    """Resolve a dot path (``user.role``) into nested mappings or sequences.

    Missing keys, out-of-range indexes and non-container intermediates all
    resolve to ``None`` rather than raising.
    """
    current = data
    for key in path.split("."):
        if current is None:
            return None
        if isinstance(current, Mapping):
            current = current.get(key)
        elif isinstance(current, Sequence) and not isinstance(current, str | bytes):
            try:
                current = current[int(key)]
            except (ValueError, IndexError):
                return None
        else:
            current = getattr(current, key, None)
    return current


def evaluate_conditions(conditions: list[WorkflowCondition], data: Any) -> bool:
    """Evaluate conditions in order. Empty list returns True."""
    result = True
    combine_with_or = False

    for condition in conditions:
        met = evaluate_condition(condition, data)
        if condition.combine_with == CombineWith.OR:
            combine_with_or = True
            result = result or met
        else:
            result = result and met

        if not result and not combine_with_or:
            break

    return result


def evaluate_condition(condition: WorkflowCondition, data: Any) -> bool:
    """Evaluate a single condition against ``data``."""
    field_value = get_nested_value(data, condition.field)
    return compare(condition.operator, field_value, condition.value)


def compare(operator: str, field_value: Any, expected: Any) -> bool:
    """Apply ``operator`` to a resolved field value.

    Comparisons between incompatible types (``None > 3``) are false instead
    of raising.
    """
    try:
        if operator == ConditionOperator.EQUALS:
            return _strict_equals(field_value, expected)
        if operator == ConditionOperator.NOT_EQUALS:
            return not _strict_equals(field_value, expected)
        if operator == ConditionOperator.CONTAINS:
            return field_value is not None and str(expected) in str(field_value)
        if operator == ConditionOperator.GREATER_THAN:
            return field_value > expected
        if operator == ConditionOperator.LESS_THAN:
            return field_value < expected
        if operator == ConditionOperator.BETWEEN:
            low, high = expected
            return low <= field_value <= high
        if operator == ConditionOperator.IN:
            return _contains(expected, field_value)
        if operator == ConditionOperator.NOT_IN:
            return not _contains(expected, field_value)
    except (TypeError, ValueError):
        return False

    logger.warning("Unknown condition operator: %s", operator)
    return False


def _strict_equals(left: Any, right: Any) -> bool:
    # 1 == True and 1 == 1.0 in Python; only same-kind values compare equal.
    if isinstance(left, bool) or isinstance(right, bool):
        return type(left) is type(right) and left == right
    if isinstance(left, int | float) and isinstance(right, int | float):
        return left == right
    return type(left) is type(right) and left == right


def _contains(container: Any, value: Any) -> bool:
    if container is None:
        raise TypeError("membership test against None")
    if isinstance(container, str):
        return isinstance(value, str) and value in container
    return any(_strict_equals(item, value) for item in container)
