"""Workflow automation data models."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any


class TriggerType(StrEnum):
    """What starts a workflow run."""

    EVENT = "event"
    SCHEDULE = "schedule"
    WEBHOOK = "webhook"
    MANUAL = "manual"
    CONDITION = "condition"


class ConditionOperator(StrEnum):
    """Field-level predicate operators."""

    EQUALS = "equals"
    NOT_EQUALS = "notEquals"
    CONTAINS = "contains"
    GREATER_THAN = "greaterThan"
    LESS_THAN = "lessThan"
    BETWEEN = "between"
    IN = "in"
    NOT_IN = "notIn"


class CombineWith(StrEnum):
    AND = "AND"
    OR = "OR"


class ActionType(StrEnum):
    """The fixed set of action kinds the engine can dispatch."""

    EMAIL = "email"
    NOTIFICATION = "notification"
    UPDATE_DATA = "updateData"
    API_CALL = "apiCall"
    ASSIGN_TASK = "assignTask"
    CREATE_CONTENT = "createContent"
    ANALYTICS = "analytics"
    WORKFLOW = "workflow"


class ExecutionStatus(StrEnum):
    """Run-level state machine: pending -> running -> terminal."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    SKIPPED = "skipped"

    @property
    def terminal(self) -> bool:
        return self not in (ExecutionStatus.PENDING, ExecutionStatus.RUNNING)


class StepStatus(StrEnum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


def utc_now() -> datetime:
    return datetime.now(UTC)


def generate_execution_id() -> str:
    return f"exec_{uuid.uuid4().hex}"


@dataclass
class CronSchedule:
    """A cron expression and the IANA timezone it is meant for."""

    expression: str
    timezone: str = "UTC"


@dataclass
class WorkflowTrigger:
    """Tagged trigger variant.

    Only the field matching ``type`` is meaningful: ``event`` for event
    triggers, ``schedule`` for schedule triggers, ``webhook`` (a path) for
    webhook triggers and ``condition`` (a fact-rule expression) for condition
    triggers. Manual triggers carry nothing.
    """

    type: TriggerType = TriggerType.MANUAL
    event: str | None = None
    schedule: CronSchedule | None = None
    webhook: str | None = None
    condition: dict[str, Any] | None = None

    @classmethod
    def on_event(cls, name: str) -> WorkflowTrigger:
        return cls(type=TriggerType.EVENT, event=name)

    @classmethod
    def on_schedule(cls, expression: str, timezone: str = "UTC") -> WorkflowTrigger:
        return cls(type=TriggerType.SCHEDULE, schedule=CronSchedule(expression, timezone))

    @classmethod
    def on_webhook(cls, path: str) -> WorkflowTrigger:
        return cls(type=TriggerType.WEBHOOK, webhook=path)

    @classmethod
    def on_condition(cls, expression: dict[str, Any]) -> WorkflowTrigger:
        return cls(type=TriggerType.CONDITION, condition=expression)

    @classmethod
    def manual(cls) -> WorkflowTrigger:
        return cls(type=TriggerType.MANUAL)


@dataclass
class WorkflowCondition:
    """A dot-path predicate evaluated against the run input."""

    field: str
    operator: ConditionOperator
    value: Any = None
    combine_with: CombineWith = CombineWith.AND
    id: str = ""


@dataclass
class RetryPolicy:
    """Linear backoff: the n-th retry waits ``backoff_ms * n``."""

    max_attempts: int = 3
    backoff_ms: int = 0


@dataclass
class WorkflowAction:
    """A typed unit of work plus its success/failure branches."""

    id: str
    type: ActionType
    config: dict[str, Any] = field(default_factory=dict)
    on_success: list[WorkflowAction] = field(default_factory=list)
    on_failure: list[WorkflowAction] = field(default_factory=list)
    retry_policy: RetryPolicy | None = None


@dataclass
class WorkflowMetadata:
    """Run statistics, mutated only by the execution recorder."""

    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)
    execution_count: int = 0
    last_executed_at: datetime | None = None
    success_rate: float = 1.0


@dataclass
class WorkflowDefinition:
    """A trigger -> conditions -> actions automation rule."""

    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    name: str = ""
    description: str = ""
    trigger: WorkflowTrigger = field(default_factory=WorkflowTrigger)
    conditions: list[WorkflowCondition] = field(default_factory=list)
    actions: list[WorkflowAction] = field(default_factory=list)
    enabled: bool = True
    priority: int = 0
    metadata: WorkflowMetadata = field(default_factory=WorkflowMetadata)


@dataclass
class ExecutionStep:
    """One action invocation; retries rewrite this entry in place."""

    action_id: str
    start_time: datetime = field(default_factory=utc_now)
    end_time: datetime | None = None
    status: StepStatus = StepStatus.PENDING
    output: Any = None
    error: str | None = None
    attempts: int = 0


@dataclass
class WorkflowExecution:
    """A single run of a workflow definition."""

    workflow_id: str
    id: str = field(default_factory=generate_execution_id)
    start_time: datetime = field(default_factory=utc_now)
    end_time: datetime | None = None
    status: ExecutionStatus = ExecutionStatus.PENDING
    input: Any = None
    output: Any = None
    error: str | None = None
    steps: list[ExecutionStep] = field(default_factory=list)

    @property
    def duration_ms(self) -> float | None:
        if self.end_time is None:
            return None
        return (self.end_time - self.start_time).total_seconds() * 1000


@dataclass
class WorkflowStats:
    """Aggregate view of a workflow's run history."""

    workflow_id: str
    total_executions: int
    success_rate: float
    successful: int
    failed: int
    avg_duration_ms: int
    last_executed_at: datetime | None = None
