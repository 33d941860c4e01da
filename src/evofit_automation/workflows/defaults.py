"""Built-in workflows for the meal-planning platform."""

from __future__ import annotations

from typing import Any

from evofit_automation.workflows.models import WorkflowDefinition
from evofit_automation.workflows.serialization import workflow_from_dict

ONE_DAY_MS = 86_400_000
SEVEN_DAYS_MS = 604_800_000

DEFAULT_WORKFLOWS: list[dict[str, Any]] = [
    {
        "id": "customer-onboarding",
        "name": "Customer Onboarding Automation",
        "description": "Automated onboarding sequence for new customers",
        "trigger": {"type": "event", "event": "user.registered"},
        "conditions": [
            {"id": "is-customer", "field": "user.role", "operator": "equals", "value": "customer"},
        ],
        "actions": [
            {
                "id": "send-welcome-email",
                "type": "email",
                "config": {
                    "template": "welcome-customer",
                    "subject": "Welcome to FitnessMealPlanner!",
                    "delay": 0,
                },
            },
            {
                "id": "schedule-tutorial-email",
                "type": "email",
                "config": {
                    "template": "tutorial-series-1",
                    "subject": "Getting Started with Your Meal Plans",
                    "delay": ONE_DAY_MS,
                },
            },
            {
                "id": "create-sample-meal-plan",
                "type": "createContent",
                "config": {
                    "content_type": "meal-plan",
                    "template": "sample-balanced-diet",
                    "assign_to_user": True,
                },
            },
            {
                "id": "track-onboarding",
                "type": "analytics",
                "config": {
                    "event": "onboarding.started",
                    "properties": ["userId", "source", "timestamp"],
                },
            },
        ],
        "priority": 1,
    },
    {
        "id": "trainer-engagement",
        "name": "Trainer Engagement Optimization",
        "description": "Boost trainer activity and customer management",
        "trigger": {"type": "schedule", "schedule": {"expression": "0 9 * * MON"}},
        "conditions": [
            {
                "id": "low-activity",
                "field": "trainer.weeklyLogins",
                "operator": "lessThan",
                "value": 3,
            },
        ],
        "actions": [
            {
                "id": "send-engagement-tips",
                "type": "email",
                "config": {
                    "template": "trainer-weekly-tips",
                    "subject": "Boost Your Client Results This Week",
                    "personalized": True,
                },
            },
            {
                "id": "highlight-new-features",
                "type": "notification",
                "config": {
                    "type": "in-app",
                    "message": "Check out new meal planning features",
                    "link": "/features/new",
                },
            },
        ],
        "priority": 2,
    },
    {
        "id": "churn-prevention",
        "name": "Automated Churn Prevention",
        "description": "Prevent customer churn through targeted interventions",
        "trigger": {
            "type": "condition",
            "condition": {
                "any": [
                    {"fact": "engagement.score", "operator": "lessThan", "value": 30},
                    {"fact": "daysSinceLogin", "operator": "greaterThan", "value": 14},
                ]
            },
        },
        "conditions": [
            {
                "id": "is-paying-customer",
                "field": "subscription.status",
                "operator": "equals",
                "value": "active",
            },
        ],
        "actions": [
            {
                "id": "send-re-engagement-email",
                "type": "email",
                "config": {
                    "template": "win-back-campaign",
                    "subject": "We Miss You! Here's 20% Off",
                    "include_discount": True,
                    "discount_code": "COMEBACK20",
                },
            },
            {
                "id": "assign-success-manager",
                "type": "assignTask",
                "config": {
                    "task_type": "customer-success-call",
                    "assignee": "success-team",
                    "priority": "high",
                    "due_in": 48,
                },
            },
            {
                "id": "track-intervention",
                "type": "analytics",
                "config": {
                    "event": "churn.prevention.triggered",
                    "properties": ["userId", "riskScore", "interventionType"],
                },
            },
        ],
        "priority": 1,
    },
    {
        "id": "upsell-opportunity",
        "name": "Automated Upsell Campaign",
        "description": "Identify and convert upsell opportunities",
        "trigger": {"type": "event", "event": "usage.limit.approaching"},
        "conditions": [
            {
                "id": "on-basic-plan",
                "field": "subscription.tier",
                "operator": "equals",
                "value": "basic",
            },
            {
                "id": "high-engagement",
                "field": "engagement.score",
                "operator": "greaterThan",
                "value": 70,
                "combine_with": "AND",
            },
        ],
        "actions": [
            {
                "id": "show-upgrade-prompt",
                "type": "notification",
                "config": {
                    "type": "modal",
                    "title": "You're Approaching Your Plan Limits",
                    "message": "Upgrade to Professional for unlimited meal plans",
                    "cta": "View Upgrade Options",
                    "link": "/pricing",
                },
            },
            {
                "id": "send-upgrade-email",
                "type": "email",
                "config": {
                    "template": "upgrade-benefits",
                    "subject": "Unlock More Features with Professional",
                    "delay": ONE_DAY_MS,
                    "include_comparison": True,
                },
            },
            {
                "id": "offer-trial",
                "type": "updateData",
                "config": {"field": "trial.professional", "value": True, "duration": SEVEN_DAYS_MS},
                "on_success": [
                    {
                        "id": "notify-trial-started",
                        "type": "notification",
                        "config": {
                            "type": "success",
                            "message": "Your 7-day Professional trial has started!",
                        },
                    },
                ],
            },
        ],
        "priority": 2,
    },
    {
        "id": "content-quality",
        "name": "Recipe Quality Assurance",
        "description": "Automated quality checks for new recipes",
        "trigger": {"type": "event", "event": "recipe.created"},
        "conditions": [],
        "actions": [
            {
                "id": "validate-nutrition",
                "type": "apiCall",
                "config": {
                    "endpoint": "/api/nutrition/validate",
                    "method": "POST",
                    "body": {"recipeId": "{{recipe.id}}"},
                },
                "on_failure": [
                    {
                        "id": "flag-for-review",
                        "type": "updateData",
                        "config": {"field": "recipe.status", "value": "pending-review"},
                    },
                ],
            },
            {
                "id": "check-ingredients",
                "type": "apiCall",
                "config": {
                    "endpoint": "/api/ingredients/validate",
                    "method": "POST",
                    "body": {"ingredients": "{{recipe.ingredients}}"},
                },
            },
            {
                "id": "auto-categorize",
                "type": "apiCall",
                "config": {
                    "endpoint": "/api/ai/categorize",
                    "method": "POST",
                    "body": {
                        "title": "{{recipe.title}}",
                        "ingredients": "{{recipe.ingredients}}",
                        "nutrition": "{{recipe.nutrition}}",
                    },
                },
            },
        ],
        "priority": 3,
    },
]


def default_workflows() -> list[WorkflowDefinition]:
    """Return fresh definitions; each call builds new metadata."""
    return [workflow_from_dict(data) for data in DEFAULT_WORKFLOWS]
