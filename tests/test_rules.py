"""Tests for fact-rule expressions used by condition triggers."""

from __future__ import annotations

import pytest

from evofit_automation.workflows.rules import (
    FactRuleEvaluator,
    evaluate_expression,
    validate_expression,
)

CHURN_RULE = {
    "any": [
        {"fact": "engagement.score", "operator": "lessThan", "value": 30},
        {"fact": "daysSinceLogin", "operator": "greaterThan", "value": 14},
    ]
}


class TestValidateExpression:
    def test_valid_nested_tree(self) -> None:
        validate_expression(
            {"all": [CHURN_RULE, {"fact": "plan", "operator": "in", "value": ["basic"]}]}
        )

    @pytest.mark.parametrize(
        "expression",
        [
            "not a mapping",
            {},
            {"any": []},
            {"any": "nope"},
            {"any": [{"fact": "x", "operator": "equal"}], "all": []},
            {"fact": "x"},
            {"fact": "x", "operator": "approximately"},
            {"all": [{"operator": "equal"}]},
        ],
    )
    def test_malformed_trees_raise(self, expression: object) -> None:
        with pytest.raises(ValueError):
            validate_expression(expression)


class TestEvaluateExpression:
    def test_any_matches_either_branch(self) -> None:
        assert evaluate_expression(CHURN_RULE, {"engagement": {"score": 12}}) is True
        assert evaluate_expression(CHURN_RULE, {"daysSinceLogin": 30}) is True
        assert (
            evaluate_expression(CHURN_RULE, {"engagement": {"score": 80}, "daysSinceLogin": 2})
            is False
        )

    def test_all_requires_every_branch(self) -> None:
        rule = {
            "all": [
                {"fact": "plan", "operator": "equal", "value": "basic"},
                {"fact": "usage", "operator": "greaterThanInclusive", "value": 90},
            ]
        }
        assert evaluate_expression(rule, {"plan": "basic", "usage": 90}) is True
        assert evaluate_expression(rule, {"plan": "pro", "usage": 95}) is False

    def test_path_drills_into_fact(self) -> None:
        rule = {
            "fact": "user",
            "path": "$.profile.age",
            "operator": "lessThanInclusive",
            "value": 18,
        }
        assert evaluate_expression(rule, {"user": {"profile": {"age": 18}}}) is True
        assert evaluate_expression(rule, {"user": {"profile": {"age": 19}}}) is False

    def test_does_not_contain(self) -> None:
        rule = {"fact": "tags", "operator": "doesNotContain", "value": "vegan"}
        assert evaluate_expression(rule, {"tags": "keto paleo"}) is True
        assert evaluate_expression(rule, {"tags": "vegan keto"}) is False
        assert evaluate_expression(rule, {}) is False

    def test_missing_fact_does_not_match(self) -> None:
        assert evaluate_expression(CHURN_RULE, {}) is False


class TestFactRuleEvaluator:
    def test_add_and_match(self) -> None:
        evaluator = FactRuleEvaluator()
        evaluator.add_rule("churn-prevention", CHURN_RULE)
        evaluator.add_rule(
            "power-user", {"fact": "sessions", "operator": "greaterThan", "value": 50}
        )

        assert evaluator.has_rule("churn-prevention")
        assert evaluator.match({"daysSinceLogin": 20}) == ["churn-prevention"]
        assert evaluator.match({"sessions": 60}) == ["power-user"]
        assert evaluator.match({"sessions": 60, "daysSinceLogin": 20}) == [
            "churn-prevention",
            "power-user",
        ]

    def test_add_rule_validates(self) -> None:
        evaluator = FactRuleEvaluator()
        with pytest.raises(ValueError):
            evaluator.add_rule("broken", {"any": []})
        assert not evaluator.has_rule("broken")

    def test_remove_rule(self) -> None:
        evaluator = FactRuleEvaluator()
        evaluator.add_rule("churn-prevention", CHURN_RULE)
        assert evaluator.remove_rule("churn-prevention") is True
        assert evaluator.remove_rule("churn-prevention") is False
        assert evaluator.match({"daysSinceLogin": 20}) == []
