"""Workflow registry, manual runs and execution queries."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Query

from evofit_automation.server.routers._deps import get_engine
from evofit_automation.workflows.engine import WorkflowEngine
from evofit_automation.workflows.serialization import (
    execution_to_dict,
    to_jsonable,
    workflow_to_dict,
)

router = APIRouter()


@router.get("/workflows")
async def list_workflows(engine: WorkflowEngine = Depends(get_engine)) -> list[dict[str, Any]]:
    return [workflow_to_dict(w) for w in engine.list_workflows()]


@router.get("/workflows/{workflow_id}")
async def get_workflow(
    workflow_id: str, engine: WorkflowEngine = Depends(get_engine)
) -> dict[str, Any]:
    workflow = engine.get_workflow(workflow_id)
    if workflow is None:
        raise HTTPException(status_code=404, detail=f"Workflow {workflow_id} not found")
    return workflow_to_dict(workflow)


@router.get("/workflows/{workflow_id}/stats")
async def workflow_stats(
    workflow_id: str, engine: WorkflowEngine = Depends(get_engine)
) -> dict[str, Any]:
    return to_jsonable(engine.get_workflow_stats(workflow_id))


@router.get("/workflows/{workflow_id}/executions")
async def workflow_executions(
    workflow_id: str,
    limit: int = Query(default=50, ge=1, le=1000),
    engine: WorkflowEngine = Depends(get_engine),
) -> list[dict[str, Any]]:
    return [execution_to_dict(e) for e in engine.get_execution_history(workflow_id, limit)]


@router.post("/workflows/{workflow_id}/run")
async def run_workflow(
    workflow_id: str,
    payload: Any = Body(default=None),
    execution_id: str | None = Query(default=None),
    engine: WorkflowEngine = Depends(get_engine),
) -> dict[str, Any]:
    execution = await engine.run_workflow(workflow_id, payload, execution_id)
    return execution_to_dict(execution)


@router.get("/executions/{execution_id}")
async def get_execution(
    execution_id: str, engine: WorkflowEngine = Depends(get_engine)
) -> dict[str, Any]:
    execution = engine.get_execution(execution_id)
    if execution is None:
        raise HTTPException(status_code=404, detail=f"Execution {execution_id} not found")
    return execution_to_dict(execution)
