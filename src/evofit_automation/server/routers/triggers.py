"""Inbound event and webhook triggers."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends

from evofit_automation.server.routers._deps import get_engine
from evofit_automation.workflows.engine import WorkflowEngine
from evofit_automation.workflows.serialization import execution_to_dict

router = APIRouter()


@router.post("/events/{event_name}")
async def publish_event(
    event_name: str,
    payload: Any = Body(default=None),
    engine: WorkflowEngine = Depends(get_engine),
) -> dict[str, Any]:
    executions = await engine.publish(event_name, payload)
    return {
        "event": event_name,
        "executions": [execution_to_dict(e) for e in executions],
    }


@router.post("/facts")
async def evaluate_facts(
    facts: Any = Body(default=None),
    engine: WorkflowEngine = Depends(get_engine),
) -> dict[str, Any]:
    executions = await engine.evaluate_facts(facts or {})
    return {"executions": [execution_to_dict(e) for e in executions]}


@router.post("/webhooks/{path:path}")
async def invoke_webhook(
    path: str,
    body: Any = Body(default=None),
    engine: WorkflowEngine = Depends(get_engine),
) -> dict[str, Any]:
    execution = await engine.invoke_webhook(path, body)
    return execution_to_dict(execution)
