"""Shared fixtures for the workflow automation tests."""

from __future__ import annotations

from typing import Any

import pytest

from evofit_automation.workflows.engine import WorkflowEngine
from evofit_automation.workflows.models import (
    ActionType,
    RetryPolicy,
    WorkflowAction,
    WorkflowCondition,
    WorkflowDefinition,
    WorkflowTrigger,
)

_DEFAULT_CONFIGS: dict[ActionType, dict[str, Any]] = {
    ActionType.EMAIL: {"template": "welcome"},
    ActionType.NOTIFICATION: {"message": "hello"},
    ActionType.UPDATE_DATA: {"field": "plan.trial", "value": True},
    ActionType.API_CALL: {"endpoint": "/api/check", "method": "POST"},
    ActionType.ASSIGN_TASK: {"task_type": "call", "assignee": "success-team"},
    ActionType.CREATE_CONTENT: {"content_type": "meal-plan"},
    ActionType.ANALYTICS: {"event": "tracked"},
}


class RecordingCollaborators:
    """Collaborator double that records calls and fails on demand.

    ``failures[name]`` is the number of upcoming calls to ``name`` that
    raise; ``-1`` makes every call raise.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, Any, Any]] = []
        self.failures: dict[str, int] = {}

    def called(self, name: str) -> int:
        return sum(1 for call in self.calls if call[0] == name)

    async def _handle(self, name: str, config: Any, data: Any) -> Any:
        self.calls.append((name, config, data))
        remaining = self.failures.get(name, 0)
        if remaining:
            if remaining > 0:
                self.failures[name] = remaining - 1
            raise RuntimeError(f"{name} unavailable")
        return {"ok": name}

    async def send_email(self, config: Any, data: Any) -> Any:
        return await self._handle("send_email", config, data)

    async def send_notification(self, config: Any, data: Any) -> Any:
        return await self._handle("send_notification", config, data)

    async def update_data(self, config: Any, data: Any) -> Any:
        return await self._handle("update_data", config, data)

    async def call_api(self, config: Any, data: Any) -> Any:
        return await self._handle("call_api", config, data)

    async def assign_task(self, config: Any, data: Any) -> Any:
        return await self._handle("assign_task", config, data)

    async def create_content(self, config: Any, data: Any) -> Any:
        return await self._handle("create_content", config, data)

    async def track_analytics(self, config: Any, data: Any) -> Any:
        return await self._handle("track_analytics", config, data)


def make_action(
    action_id: str,
    action_type: ActionType = ActionType.EMAIL,
    config: dict[str, Any] | None = None,
    retry: RetryPolicy | None = None,
    on_success: list[WorkflowAction] | None = None,
    on_failure: list[WorkflowAction] | None = None,
) -> WorkflowAction:
    return WorkflowAction(
        id=action_id,
        type=action_type,
        config=config if config is not None else dict(_DEFAULT_CONFIGS.get(action_type, {})),
        retry_policy=retry,
        on_success=on_success or [],
        on_failure=on_failure or [],
    )


def make_workflow(
    workflow_id: str = "wf",
    actions: list[WorkflowAction] | None = None,
    conditions: list[WorkflowCondition] | None = None,
    trigger: WorkflowTrigger | None = None,
    enabled: bool = True,
) -> WorkflowDefinition:
    return WorkflowDefinition(
        id=workflow_id,
        name=workflow_id.replace("-", " ").title(),
        trigger=trigger or WorkflowTrigger.manual(),
        conditions=conditions or [],
        actions=actions if actions is not None else [make_action("send")],
        enabled=enabled,
    )


@pytest.fixture()
def collaborators() -> RecordingCollaborators:
    return RecordingCollaborators()


@pytest.fixture()
def engine(collaborators: RecordingCollaborators) -> WorkflowEngine:
    """Engine with an in-memory store and recording collaborators."""
    return WorkflowEngine(collaborators=collaborators)
