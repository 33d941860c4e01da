"""Workflow automation: trigger -> conditions -> actions engine."""

from __future__ import annotations

from evofit_automation.workflows.actions import ActionCollaborators, DefaultCollaborators
from evofit_automation.workflows.engine import WorkflowEngine
from evofit_automation.workflows.errors import (
    NestedDepthExceededError,
    WebhookNotFoundError,
    WorkflowCycleError,
    WorkflowDisabledError,
    WorkflowError,
    WorkflowNotFoundError,
)
from evofit_automation.workflows.events import EngineEvent, LifecycleEvents
from evofit_automation.workflows.models import (
    ActionType,
    CombineWith,
    ConditionOperator,
    CronSchedule,
    ExecutionStatus,
    ExecutionStep,
    RetryPolicy,
    StepStatus,
    TriggerType,
    WorkflowAction,
    WorkflowCondition,
    WorkflowDefinition,
    WorkflowExecution,
    WorkflowMetadata,
    WorkflowStats,
    WorkflowTrigger,
)

__all__ = [
    "ActionCollaborators",
    "ActionType",
    "CombineWith",
    "ConditionOperator",
    "CronSchedule",
    "DefaultCollaborators",
    "EngineEvent",
    "ExecutionStatus",
    "ExecutionStep",
    "LifecycleEvents",
    "NestedDepthExceededError",
    "RetryPolicy",
    "StepStatus",
    "TriggerType",
    "WebhookNotFoundError",
    "WorkflowAction",
    "WorkflowCondition",
    "WorkflowCycleError",
    "WorkflowDefinition",
    "WorkflowDisabledError",
    "WorkflowEngine",
    "WorkflowError",
    "WorkflowExecution",
    "WorkflowMetadata",
    "WorkflowNotFoundError",
    "WorkflowStats",
    "WorkflowTrigger",
]
