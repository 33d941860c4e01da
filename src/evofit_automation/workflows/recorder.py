"""Execution recorder: persists run records and rolls up workflow statistics."""

from __future__ import annotations

import asyncio
import logging

from evofit_automation.workflows.models import (
    ExecutionStatus,
    WorkflowDefinition,
    WorkflowExecution,
    WorkflowStats,
    utc_now,
)
from evofit_automation.workflows.store import ExecutionStore

logger = logging.getLogger(__name__)


def rolled_success_rate(previous_rate: float, previous_count: int, succeeded: bool) -> float:
    """O(1) running success rate.

    ``(previous_count * previous_rate + succeeded) / (previous_count + 1)``
    """
    success_count = previous_count * previous_rate + (1 if succeeded else 0)
    return success_count / (previous_count + 1)


class ExecutionRecorder:
    """Writes execution records and updates workflow metadata.

    Metadata updates for one workflow id are serialised with an asyncio
    lock so concurrent runs cannot lose an increment.
    """

    def __init__(self, store: ExecutionStore) -> None:
        self._store = store
        self._locks: dict[str, asyncio.Lock] = {}

    @property
    def store(self) -> ExecutionStore:
        return self._store

    def record(self, execution: WorkflowExecution) -> None:
        """Persist the current state of an execution."""
        self._store.save(execution)

    def finish(self, execution: WorkflowExecution, status: ExecutionStatus) -> None:
        """Move an execution to a terminal status and persist it."""
        execution.status = status
        execution.end_time = utc_now()
        self._store.save(execution)

    async def update_metadata(
        self, workflow: WorkflowDefinition, execution: WorkflowExecution
    ) -> None:
        """Roll a completed or failed run into the workflow's metadata.

        Skipped (and non-terminal) runs leave the metadata untouched.
        """
        if execution.status not in (ExecutionStatus.COMPLETED, ExecutionStatus.FAILED):
            return

        lock = self._locks.setdefault(workflow.id, asyncio.Lock())
        async with lock:
            meta = workflow.metadata
            meta.success_rate = rolled_success_rate(
                meta.success_rate,
                meta.execution_count,
                execution.status == ExecutionStatus.COMPLETED,
            )
            meta.execution_count += 1
            meta.last_executed_at = execution.end_time or utc_now()

        logger.debug(
            "Workflow %s metadata: count=%d success_rate=%.3f",
            workflow.id,
            meta.execution_count,
            meta.success_rate,
        )

    def stats(self, workflow: WorkflowDefinition) -> WorkflowStats:
        """Aggregate the stored history of ``workflow``."""
        executions = self._store.list_executions(workflow.id)
        successful = sum(1 for e in executions if e.status == ExecutionStatus.COMPLETED)
        failed = sum(1 for e in executions if e.status == ExecutionStatus.FAILED)
        durations = [e.duration_ms for e in executions if e.duration_ms is not None]
        avg = round(sum(durations) / len(durations)) if durations else 0

        return WorkflowStats(
            workflow_id=workflow.id,
            total_executions=workflow.metadata.execution_count,
            success_rate=workflow.metadata.success_rate,
            successful=successful,
            failed=failed,
            avg_duration_ms=avg,
            last_executed_at=workflow.metadata.last_executed_at,
        )
