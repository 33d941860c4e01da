"""Shared request helpers for the automation routers."""

from __future__ import annotations

from fastapi import HTTPException, Request

from evofit_automation.workflows.engine import WorkflowEngine


def get_engine(request: Request) -> WorkflowEngine:
    """Return the live engine or fail with 503 while the runtime boots."""
    runtime = getattr(request.app.state, "runtime", None)
    engine = getattr(runtime, "engine", None)
    if engine is None:
        raise HTTPException(status_code=503, detail="Workflow engine not running")
    return engine
