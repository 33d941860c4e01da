"""Tests for the execution recorder and workflow statistics."""

from __future__ import annotations

from datetime import timedelta

import pytest
from conftest import make_workflow

from evofit_automation.workflows.models import ExecutionStatus, WorkflowExecution
from evofit_automation.workflows.recorder import ExecutionRecorder, rolled_success_rate
from evofit_automation.workflows.store import InMemoryExecutionStore


class TestRolledSuccessRate:
    def test_sequence(self) -> None:
        rate = rolled_success_rate(1.0, 0, True)
        assert rate == 1.0
        rate = rolled_success_rate(rate, 1, False)
        assert rate == 0.5
        rate = rolled_success_rate(rate, 2, True)
        assert rate == pytest.approx(0.6667, abs=1e-4)

    def test_first_run_failure(self) -> None:
        assert rolled_success_rate(1.0, 0, False) == 0.0


class TestExecutionRecorder:
    def test_finish_sets_end_time_and_persists(self) -> None:
        store = InMemoryExecutionStore()
        recorder = ExecutionRecorder(store)
        execution = WorkflowExecution(workflow_id="a")
        recorder.record(execution)

        recorder.finish(execution, ExecutionStatus.COMPLETED)

        assert execution.end_time is not None
        assert store.get(execution.id).status == ExecutionStatus.COMPLETED

    @pytest.mark.asyncio()
    async def test_update_metadata_ignores_skipped(self) -> None:
        recorder = ExecutionRecorder(InMemoryExecutionStore())
        workflow = make_workflow("a")
        execution = WorkflowExecution(workflow_id="a", status=ExecutionStatus.SKIPPED)

        await recorder.update_metadata(workflow, execution)

        assert workflow.metadata.execution_count == 0
        assert workflow.metadata.last_executed_at is None

    @pytest.mark.asyncio()
    async def test_update_metadata_counts_failed(self) -> None:
        recorder = ExecutionRecorder(InMemoryExecutionStore())
        workflow = make_workflow("a")
        execution = WorkflowExecution(workflow_id="a")
        recorder.finish(execution, ExecutionStatus.FAILED)

        await recorder.update_metadata(workflow, execution)

        assert workflow.metadata.execution_count == 1
        assert workflow.metadata.success_rate == 0.0
        assert workflow.metadata.last_executed_at == execution.end_time

    def test_stats_average_over_finished_runs(self) -> None:
        store = InMemoryExecutionStore()
        recorder = ExecutionRecorder(store)
        workflow = make_workflow("a")

        done = WorkflowExecution(workflow_id="a", status=ExecutionStatus.COMPLETED)
        done.end_time = done.start_time + timedelta(milliseconds=100)
        failed = WorkflowExecution(workflow_id="a", status=ExecutionStatus.FAILED)
        failed.end_time = failed.start_time + timedelta(milliseconds=300)
        running = WorkflowExecution(workflow_id="a", status=ExecutionStatus.RUNNING)
        other = WorkflowExecution(workflow_id="b", status=ExecutionStatus.COMPLETED)
        for execution in (done, failed, running, other):
            store.save(execution)

        stats = recorder.stats(workflow)

        assert stats.successful == 1
        assert stats.failed == 1
        assert stats.avg_duration_ms == 200
        assert stats.total_executions == 0
