"""EvoFit automation server: FastAPI application."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

import evofit_automation
from evofit_automation.runtime import AutomationRuntime
from evofit_automation.server.routers import triggers, workflows
from evofit_automation.workflows.errors import (
    NestedWorkflowError,
    WorkflowDisabledError,
    WorkflowNotFoundError,
)

logger = logging.getLogger(__name__)


def create_app(runtime: AutomationRuntime | None = None) -> FastAPI:
    """Build the app; the runtime starts with the app and stops on shutdown."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        rt = runtime or AutomationRuntime()
        await rt.start()
        app.state.runtime = rt
        yield
        await rt.stop()

    app = FastAPI(
        title="EvoFit Automation",
        version=evofit_automation.__version__,
        lifespan=lifespan,
    )
    app.include_router(workflows.router)
    app.include_router(triggers.router)

    @app.get("/health")
    async def health(request: Request) -> dict[str, object]:
        rt: AutomationRuntime | None = getattr(request.app.state, "runtime", None)
        engine = rt.engine if rt is not None else None
        return {
            "status": "ok" if engine is not None else "starting",
            "version": evofit_automation.__version__,
            "workflows": len(engine.list_workflows()) if engine is not None else 0,
            "schedules_armed": bool(engine and engine.running),
        }

    @app.exception_handler(WorkflowNotFoundError)
    async def _not_found(request: Request, exc: WorkflowNotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(WorkflowDisabledError)
    async def _disabled(request: Request, exc: WorkflowDisabledError) -> JSONResponse:
        return JSONResponse(status_code=409, content={"detail": str(exc)})

    @app.exception_handler(NestedWorkflowError)
    async def _nested(request: Request, exc: NestedWorkflowError) -> JSONResponse:
        return JSONResponse(status_code=409, content={"detail": str(exc)})

    return app
