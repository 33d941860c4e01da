"""Fact rules: evaluate condition-trigger expressions against fact payloads.

Expressions are nested ``any`` / ``all`` groups whose leaves compare a fact
against a value::

    {"any": [
        {"fact": "engagement.score", "operator": "lessThan", "value": 30},
        {"fact": "daysSinceLogin", "operator": "greaterThan", "value": 14},
    ]}

A leaf may carry ``path`` to drill into the fact value; it is joined onto the
fact name as a dot path.
"""

from __future__ import annotations

import logging
from typing import Any

from evofit_automation.workflows.conditions import compare, get_nested_value
from evofit_automation.workflows.models import ConditionOperator

logger = logging.getLogger(__name__)

_OPERATOR_ALIASES: dict[str, str] = {
    "equal": ConditionOperator.EQUALS,
    "equals": ConditionOperator.EQUALS,
    "notEqual": ConditionOperator.NOT_EQUALS,
    "notEquals": ConditionOperator.NOT_EQUALS,
    "lessThan": ConditionOperator.LESS_THAN,
    "greaterThan": ConditionOperator.GREATER_THAN,
    "in": ConditionOperator.IN,
    "notIn": ConditionOperator.NOT_IN,
    "contains": ConditionOperator.CONTAINS,
    "between": ConditionOperator.BETWEEN,
}

_INCLUSIVE_OPERATORS = {"lessThanInclusive", "greaterThanInclusive", "doesNotContain"}


def validate_expression(expression: Any) -> None:
    """Raise ValueError if ``expression`` is not a well-formed rule tree."""
    if not isinstance(expression, dict):
        raise ValueError(f"Rule expression must be a mapping, got {type(expression).__name__}")

    groups = [key for key in ("any", "all") if key in expression]
    if groups:
        if len(groups) > 1 or "fact" in expression:
            raise ValueError("Rule group must have exactly one of 'any' or 'all'")
        children = expression[groups[0]]
        if not isinstance(children, list) or not children:
            raise ValueError(f"Rule group '{groups[0]}' must be a non-empty list")
        for child in children:
            validate_expression(child)
        return

    if "fact" not in expression or "operator" not in expression:
        raise ValueError("Rule leaf requires 'fact' and 'operator'")
    operator = expression["operator"]
    if operator not in _OPERATOR_ALIASES and operator not in _INCLUSIVE_OPERATORS:
        raise ValueError(f"Unknown rule operator: {operator!r}")


def evaluate_expression(expression: dict[str, Any], facts: Any) -> bool:
    """Evaluate a validated rule tree against ``facts``."""
    if "any" in expression:
        return any(evaluate_expression(child, facts) for child in expression["any"])
    if "all" in expression:
        return all(evaluate_expression(child, facts) for child in expression["all"])

    path = expression["fact"]
    if expression.get("path"):
        path = f"{path}.{expression['path'].lstrip('$.')}"
    value = get_nested_value(facts, path)
    operator = expression["operator"]
    expected = expression.get("value")

    if operator == "lessThanInclusive":
        return compare(ConditionOperator.LESS_THAN, value, expected) or compare(
            ConditionOperator.EQUALS, value, expected
        )
    if operator == "greaterThanInclusive":
        return compare(ConditionOperator.GREATER_THAN, value, expected) or compare(
            ConditionOperator.EQUALS, value, expected
        )
    if operator == "doesNotContain":
        return value is not None and not compare(ConditionOperator.CONTAINS, value, expected)
    return compare(_OPERATOR_ALIASES[operator], value, expected)


class FactRuleEvaluator:
    """Holds one rule per condition-triggered workflow."""

    def __init__(self) -> None:
        self._rules: dict[str, dict[str, Any]] = {}

    def add_rule(self, workflow_id: str, expression: dict[str, Any]) -> None:
        """Register (or replace) the rule for a workflow."""
        validate_expression(expression)
        self._rules[workflow_id] = expression
        logger.debug("Registered fact rule for workflow %s", workflow_id)

    def remove_rule(self, workflow_id: str) -> bool:
        return self._rules.pop(workflow_id, None) is not None

    def has_rule(self, workflow_id: str) -> bool:
        return workflow_id in self._rules

    def match(self, facts: Any) -> list[str]:
        """Return the ids of workflows whose rule matches ``facts``."""
        return [
            workflow_id
            for workflow_id, expression in self._rules.items()
            if evaluate_expression(expression, facts)
        ]
