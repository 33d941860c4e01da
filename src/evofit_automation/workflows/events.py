"""Lifecycle events: best-effort notifications for logging and metrics."""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from enum import StrEnum
from typing import Any

logger = logging.getLogger(__name__)

Listener = Callable[["EngineEvent", Any], Awaitable[None] | None]


class EngineEvent(StrEnum):
    WORKFLOW_ADDED = "workflow_added"
    WORKFLOW_REMOVED = "workflow_removed"
    EXECUTION_STARTED = "execution_started"
    EXECUTION_SKIPPED = "execution_skipped"
    EXECUTION_COMPLETED = "execution_completed"
    EXECUTION_FAILED = "execution_failed"
    EXECUTION_CANCELLED = "execution_cancelled"
    ACTION_INVOKED = "action_invoked"
    ACTION_RETRY = "action_retry"


class LifecycleEvents:
    """Per-event listener registry.

    Listeners may be plain functions or coroutine functions. A listener that
    raises is logged and otherwise ignored; events never affect a run.
    """

    def __init__(self) -> None:
        self._listeners: dict[EngineEvent, list[Listener]] = {}
        self._pending: set[asyncio.Task[None]] = set()

    def on(self, event: EngineEvent, listener: Listener) -> None:
        """Register ``listener`` for ``event``."""
        self._listeners.setdefault(event, []).append(listener)

    def off(self, event: EngineEvent, listener: Listener) -> bool:
        """Remove a listener. Returns True if it was registered."""
        listeners = self._listeners.get(event, [])
        if listener in listeners:
            listeners.remove(listener)
            return True
        return False

    def listener_count(self, event: EngineEvent) -> int:
        return len(self._listeners.get(event, []))

    def emit_nowait(self, event: EngineEvent, payload: Any) -> None:
        """Notify listeners from synchronous code.

        Coroutine listeners are scheduled on the running loop; with no loop
        running they are dropped.
        """
        for listener in list(self._listeners.get(event, [])):
            try:
                result = listener(event, payload)
            except Exception:
                logger.exception("Lifecycle listener failed for %s", event.value)
                continue
            if inspect.isawaitable(result):
                self._schedule(event, result)

    def _schedule(self, event: EngineEvent, awaitable: Awaitable[None]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running loop; dropped async listener for %s", event.value)
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            return
        task = loop.create_task(self._guard(event, awaitable))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _guard(self, event: EngineEvent, awaitable: Awaitable[None]) -> None:
        try:
            await awaitable
        except Exception:
            logger.exception("Lifecycle listener failed for %s", event.value)

    async def emit(self, event: EngineEvent, payload: Any) -> None:
        """Notify every listener of ``event`` in registration order."""
        for listener in list(self._listeners.get(event, [])):
            try:
                result = listener(event, payload)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Lifecycle listener failed for %s", event.value)
