"""Action dispatch: typed action configs and the collaborator port.

The engine never sends email or writes data itself. Each action type maps to
exactly one collaborator call; the raw ``config`` mapping on the definition
is decoded into a typed model here, at the dispatch boundary.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

import httpx
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from evofit_automation.workflows.errors import UnknownActionTypeError
from evofit_automation.workflows.models import ActionType, WorkflowAction

logger = logging.getLogger(__name__)

NestedRunner = Callable[[str, Any], Awaitable[Any]]


# ------------------------------------------------------------------
# Typed configs
# ------------------------------------------------------------------


class ActionConfigModel(BaseModel):
    """Base for action configs: camelCase or snake_case keys, extras kept."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )


class EmailConfig(ActionConfigModel):
    template: str
    subject: str = ""
    delay: int = 0  # milliseconds
    personalized: bool = False


class NotificationConfig(ActionConfigModel):
    message: str
    type: str = "in-app"
    title: str = ""
    link: str | None = None
    cta: str | None = None


class UpdateDataConfig(ActionConfigModel):
    field: str
    value: Any = None
    duration: int | None = None  # milliseconds


class ApiCallConfig(ActionConfigModel):
    endpoint: str
    method: str = "GET"
    body: Any = None
    headers: dict[str, str] = Field(default_factory=dict)


class AssignTaskConfig(ActionConfigModel):
    task_type: str
    assignee: str
    priority: str = "normal"
    due_in: int | None = None  # hours


class CreateContentConfig(ActionConfigModel):
    content_type: str
    template: str | None = None
    assign_to_user: bool = False


class AnalyticsConfig(ActionConfigModel):
    event: str
    properties: list[str] = Field(default_factory=list)


class WorkflowCallConfig(ActionConfigModel):
    workflow_id: str


CONFIG_MODELS: dict[ActionType, type[ActionConfigModel]] = {
    ActionType.EMAIL: EmailConfig,
    ActionType.NOTIFICATION: NotificationConfig,
    ActionType.UPDATE_DATA: UpdateDataConfig,
    ActionType.API_CALL: ApiCallConfig,
    ActionType.ASSIGN_TASK: AssignTaskConfig,
    ActionType.CREATE_CONTENT: CreateContentConfig,
    ActionType.ANALYTICS: AnalyticsConfig,
    ActionType.WORKFLOW: WorkflowCallConfig,
}


def decode_config(action: WorkflowAction) -> ActionConfigModel:
    """Validate an action's raw config into its typed model.

    Raises:
        UnknownActionTypeError: If the action type has no config model.
        pydantic.ValidationError: If the config does not fit the model.
    """
    try:
        model = CONFIG_MODELS[ActionType(action.type)]
    except ValueError:
        raise UnknownActionTypeError(str(action.type)) from None
    return model.model_validate(action.config)


# ------------------------------------------------------------------
# Collaborator port
# ------------------------------------------------------------------


class ActionCollaborators(Protocol):
    """External services the engine delegates side effects to.

    Each method returns an opaque success payload or raises.
    """

    async def send_email(self, config: EmailConfig, data: Any) -> Any: ...

    async def send_notification(self, config: NotificationConfig, data: Any) -> Any: ...

    async def update_data(self, config: UpdateDataConfig, data: Any) -> Any: ...

    async def call_api(self, config: ApiCallConfig, data: Any) -> Any: ...

    async def assign_task(self, config: AssignTaskConfig, data: Any) -> Any: ...

    async def create_content(self, config: CreateContentConfig, data: Any) -> Any: ...

    async def track_analytics(self, config: AnalyticsConfig, data: Any) -> Any: ...


def _short_id() -> str:
    return uuid.uuid4().hex[:16]


class DefaultCollaborators:
    """Acknowledge-only collaborators, with real HTTP for ``apiCall``.

    ``call_api`` issues a request with httpx when the endpoint is absolute or
    an ``api_base_url`` is set; relative endpoints without a base URL are
    acknowledged without network I/O.
    """

    def __init__(self, api_base_url: str = "", timeout_seconds: float = 30.0) -> None:
        self._api_base_url = api_base_url.rstrip("/")
        self._timeout = timeout_seconds

    async def send_email(self, config: EmailConfig, data: Any) -> Any:
        logger.info("Email action: template=%s subject=%r", config.template, config.subject)
        return {"sent": True, "message_id": _short_id()}

    async def send_notification(self, config: NotificationConfig, data: Any) -> Any:
        logger.info("Notification action: type=%s message=%r", config.type, config.message)
        return {"delivered": True, "notification_id": _short_id()}

    async def update_data(self, config: UpdateDataConfig, data: Any) -> Any:
        logger.info("Update-data action: %s=%r", config.field, config.value)
        return {"updated": True, "field": config.field, "value": config.value}

    async def call_api(self, config: ApiCallConfig, data: Any) -> Any:
        url = self._resolve_url(config.endpoint)
        if url is None:
            logger.info("API action (no base URL, not sent): %s %s", config.method, config.endpoint)
            return {"status": 200, "data": {}}

        async with httpx.AsyncClient(timeout=self._timeout) as client:
            resp = await client.request(
                config.method.upper(),
                url,
                json=config.body,
                headers=config.headers or None,
            )
        resp.raise_for_status()
        try:
            payload: Any = resp.json()
        except ValueError:
            payload = resp.text
        logger.info("API action: %s %s -> %s", config.method, url, resp.status_code)
        return {"status": resp.status_code, "data": payload}

    async def assign_task(self, config: AssignTaskConfig, data: Any) -> Any:
        logger.info("Assign-task action: %s -> %s", config.task_type, config.assignee)
        return {"assigned": True, "task_id": _short_id()}

    async def create_content(self, config: CreateContentConfig, data: Any) -> Any:
        logger.info("Create-content action: %s", config.content_type)
        return {"created": True, "content_id": _short_id()}

    async def track_analytics(self, config: AnalyticsConfig, data: Any) -> Any:
        logger.info("Analytics action: %s", config.event)
        return {"tracked": True, "event_id": _short_id()}

    def _resolve_url(self, endpoint: str) -> str | None:
        if endpoint.startswith(("http://", "https://")):
            return endpoint
        if self._api_base_url:
            return f"{self._api_base_url}/{endpoint.lstrip('/')}"
        return None


# ------------------------------------------------------------------
# Dispatch
# ------------------------------------------------------------------


async def dispatch_action(
    action: WorkflowAction,
    data: Any,
    collaborators: ActionCollaborators,
    run_nested: NestedRunner,
) -> Any:
    """Execute one attempt of ``action``. Returns its output or raises."""
    config = decode_config(action)
    action_type = ActionType(action.type)

    if action_type == ActionType.EMAIL:
        return await collaborators.send_email(config, data)  # type: ignore[arg-type]
    if action_type == ActionType.NOTIFICATION:
        return await collaborators.send_notification(config, data)  # type: ignore[arg-type]
    if action_type == ActionType.UPDATE_DATA:
        return await collaborators.update_data(config, data)  # type: ignore[arg-type]
    if action_type == ActionType.API_CALL:
        return await collaborators.call_api(config, data)  # type: ignore[arg-type]
    if action_type == ActionType.ASSIGN_TASK:
        return await collaborators.assign_task(config, data)  # type: ignore[arg-type]
    if action_type == ActionType.CREATE_CONTENT:
        return await collaborators.create_content(config, data)  # type: ignore[arg-type]
    if action_type == ActionType.ANALYTICS:
        return await collaborators.track_analytics(config, data)  # type: ignore[arg-type]
    # ActionType.WORKFLOW
    return await run_nested(config.workflow_id, data)  # type: ignore[attr-defined]
