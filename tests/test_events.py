"""Tests for engine lifecycle events."""

from __future__ import annotations

import asyncio
from unittest.mock import MagicMock

import pytest

from evofit_automation.workflows.events import EngineEvent, LifecycleEvents


class TestLifecycleEvents:
    def test_on_off_and_count(self) -> None:
        events = LifecycleEvents()
        listener = MagicMock()
        events.on(EngineEvent.WORKFLOW_ADDED, listener)
        assert events.listener_count(EngineEvent.WORKFLOW_ADDED) == 1
        assert events.off(EngineEvent.WORKFLOW_ADDED, listener) is True
        assert events.off(EngineEvent.WORKFLOW_ADDED, listener) is False
        assert events.listener_count(EngineEvent.WORKFLOW_ADDED) == 0

    @pytest.mark.asyncio()
    async def test_emit_calls_sync_and_async_listeners(self) -> None:
        events = LifecycleEvents()
        seen: list[str] = []

        def sync_listener(event: EngineEvent, payload: str) -> None:
            seen.append(f"sync:{payload}")

        async def async_listener(event: EngineEvent, payload: str) -> None:
            seen.append(f"async:{payload}")

        events.on(EngineEvent.EXECUTION_STARTED, sync_listener)
        events.on(EngineEvent.EXECUTION_STARTED, async_listener)

        await events.emit(EngineEvent.EXECUTION_STARTED, "x")

        assert seen == ["sync:x", "async:x"]

    @pytest.mark.asyncio()
    async def test_emit_swallows_listener_errors(self) -> None:
        events = LifecycleEvents()
        after = MagicMock()

        async def broken(event: EngineEvent, payload: object) -> None:
            raise RuntimeError("nope")

        events.on(EngineEvent.EXECUTION_FAILED, broken)
        events.on(EngineEvent.EXECUTION_FAILED, after)

        await events.emit(EngineEvent.EXECUTION_FAILED, None)

        after.assert_called_once_with(EngineEvent.EXECUTION_FAILED, None)

    @pytest.mark.asyncio()
    async def test_emit_nowait_schedules_coroutines(self) -> None:
        events = LifecycleEvents()
        done = asyncio.Event()

        async def listener(event: EngineEvent, payload: object) -> None:
            done.set()

        events.on(EngineEvent.WORKFLOW_REMOVED, listener)
        events.emit_nowait(EngineEvent.WORKFLOW_REMOVED, "wf")

        await asyncio.wait_for(done.wait(), timeout=1)

    def test_emit_nowait_without_loop_drops_coroutines(self) -> None:
        events = LifecycleEvents()
        sync_listener = MagicMock()
        called: list[object] = []

        async def listener(event: EngineEvent, payload: object) -> None:
            called.append(payload)

        events.on(EngineEvent.WORKFLOW_ADDED, listener)
        events.on(EngineEvent.WORKFLOW_ADDED, sync_listener)

        events.emit_nowait(EngineEvent.WORKFLOW_ADDED, "wf")

        assert called == []
        sync_listener.assert_called_once_with(EngineEvent.WORKFLOW_ADDED, "wf")
