"""Conversion between workflow dataclasses and plain JSON-ready dicts.

Reading accepts both camelCase (``combineWith``, ``retryPolicy``,
``onSuccess``) and snake_case keys; writing always emits snake_case.
"""

from __future__ import annotations

import dataclasses
from datetime import datetime
from enum import Enum
from typing import Any

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
    WorkflowTrigger,
)


def _get(data: dict[str, Any], snake: str, camel: str | None = None, default: Any = None) -> Any:
    if snake in data:
        return data[snake]
    if camel is not None and camel in data:
        return data[camel]
    return default


def _enum(enum_cls: type[Enum], value: Any, what: str) -> Any:
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(str(m.value) for m in enum_cls)  # type: ignore[attr-defined]
        raise ValueError(f"Invalid {what} {value!r}; expected one of: {allowed}") from None


def _datetime(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


# ------------------------------------------------------------------
# Definitions
# ------------------------------------------------------------------


def trigger_from_dict(data: dict[str, Any]) -> WorkflowTrigger:
    trigger_type = _enum(TriggerType, data.get("type", "manual"), "trigger type")
    schedule = data.get("schedule")
    if isinstance(schedule, str):
        schedule = CronSchedule(expression=schedule, timezone=data.get("timezone", "UTC"))
    elif isinstance(schedule, dict):
        schedule = CronSchedule(
            expression=schedule["expression"], timezone=schedule.get("timezone", "UTC")
        )

    trigger = WorkflowTrigger(
        type=trigger_type,
        event=data.get("event"),
        schedule=schedule,
        webhook=data.get("webhook"),
        condition=data.get("condition"),
    )
    required = {
        TriggerType.EVENT: trigger.event,
        TriggerType.SCHEDULE: trigger.schedule,
        TriggerType.WEBHOOK: trigger.webhook,
        TriggerType.CONDITION: trigger.condition,
    }
    if trigger_type in required and not required[trigger_type]:
        raise ValueError(f"Trigger of type '{trigger_type}' requires '{trigger_type}'")
    return trigger


def condition_from_dict(data: dict[str, Any]) -> WorkflowCondition:
    if "field" not in data or "operator" not in data:
        raise ValueError("Condition requires 'field' and 'operator'")
    return WorkflowCondition(
        id=data.get("id", ""),
        field=data["field"],
        operator=_enum(ConditionOperator, data["operator"], "condition operator"),
        value=data.get("value"),
        combine_with=_enum(
            CombineWith, _get(data, "combine_with", "combineWith", "AND"), "combineWith"
        ),
    )


def action_from_dict(data: dict[str, Any]) -> WorkflowAction:
    if "id" not in data or "type" not in data:
        raise ValueError("Action requires 'id' and 'type'")
    retry = _get(data, "retry_policy", "retryPolicy")
    return WorkflowAction(
        id=data["id"],
        type=_enum(ActionType, data["type"], "action type"),
        config=dict(data.get("config") or {}),
        on_success=[action_from_dict(a) for a in _get(data, "on_success", "onSuccess", [])],
        on_failure=[action_from_dict(a) for a in _get(data, "on_failure", "onFailure", [])],
        retry_policy=(
            RetryPolicy(
                max_attempts=int(_get(retry, "max_attempts", "maxAttempts", 3)),
                backoff_ms=int(_get(retry, "backoff_ms", "backoffMs", 0)),
            )
            if retry is not None
            else None
        ),
    )


def metadata_from_dict(data: dict[str, Any]) -> WorkflowMetadata:
    metadata = WorkflowMetadata(
        execution_count=int(_get(data, "execution_count", "executionCount", 0)),
        success_rate=float(_get(data, "success_rate", "successRate", 1.0)),
        last_executed_at=_datetime(_get(data, "last_executed_at", "lastExecutedAt")),
    )
    created = _datetime(_get(data, "created_at", "createdAt"))
    updated = _datetime(_get(data, "updated_at", "updatedAt"))
    if created is not None:
        metadata.created_at = created
    if updated is not None:
        metadata.updated_at = updated
    return metadata


def workflow_from_dict(data: dict[str, Any]) -> WorkflowDefinition:
    """Build a :class:`WorkflowDefinition` from a plain mapping.

    Raises:
        ValueError: If a required key is missing or an enum value is unknown.
    """
    if not data.get("id"):
        raise ValueError("Workflow requires a non-empty 'id'")
    return WorkflowDefinition(
        id=data["id"],
        name=data.get("name", data["id"]),
        description=data.get("description", ""),
        trigger=trigger_from_dict(data.get("trigger") or {"type": "manual"}),
        conditions=[condition_from_dict(c) for c in data.get("conditions", [])],
        actions=[action_from_dict(a) for a in data.get("actions", [])],
        enabled=bool(data.get("enabled", True)),
        priority=int(data.get("priority", 0)),
        metadata=metadata_from_dict(data.get("metadata") or {}),
    )


# ------------------------------------------------------------------
# Generic dump
# ------------------------------------------------------------------


def to_jsonable(value: Any) -> Any:
    """Recursively convert dataclasses, enums and datetimes to JSON types."""
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: to_jsonable(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if hasattr(value, "model_dump"):
        return to_jsonable(value.model_dump())
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, list | tuple | set):
        return [to_jsonable(v) for v in value]
    return value


def workflow_to_dict(workflow: WorkflowDefinition) -> dict[str, Any]:
    return to_jsonable(workflow)


def execution_to_dict(execution: WorkflowExecution) -> dict[str, Any]:
    data = to_jsonable(execution)
    data["duration_ms"] = execution.duration_ms
    return data


def execution_from_dict(data: dict[str, Any]) -> WorkflowExecution:
    """Rebuild an execution. Nested outputs stay as plain dicts."""
    return WorkflowExecution(
        id=data["id"],
        workflow_id=data["workflow_id"],
        start_time=_datetime(data["start_time"]),  # type: ignore[arg-type]
        end_time=_datetime(data.get("end_time")),
        status=ExecutionStatus(data["status"]),
        input=data.get("input"),
        output=data.get("output"),
        error=data.get("error"),
        steps=[
            ExecutionStep(
                action_id=s["action_id"],
                start_time=_datetime(s["start_time"]),  # type: ignore[arg-type]
                end_time=_datetime(s.get("end_time")),
                status=StepStatus(s["status"]),
                output=s.get("output"),
                error=s.get("error"),
                attempts=int(s.get("attempts", 0)),
            )
            for s in data.get("steps", [])
        ],
    )
