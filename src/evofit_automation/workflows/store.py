"""Execution stores: append-only run records keyed by execution id."""

from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path
from typing import Protocol

from evofit_automation.workflows.models import WorkflowExecution
from evofit_automation.workflows.serialization import (
    execution_from_dict,
    execution_to_dict,
)

logger = logging.getLogger(__name__)


class ExecutionStore(Protocol):
    """Where the engine keeps its execution records."""

    def save(self, execution: WorkflowExecution) -> None: ...

    def get(self, execution_id: str) -> WorkflowExecution | None: ...

    def list_executions(
        self, workflow_id: str | None = None, limit: int | None = None
    ) -> list[WorkflowExecution]: ...

    def close(self) -> None: ...


class InMemoryExecutionStore:
    """Holds live execution objects; later mutations are visible to readers."""

    def __init__(self) -> None:
        self._executions: dict[str, WorkflowExecution] = {}

    def save(self, execution: WorkflowExecution) -> None:
        self._executions[execution.id] = execution

    def get(self, execution_id: str) -> WorkflowExecution | None:
        return self._executions.get(execution_id)

    def list_executions(
        self, workflow_id: str | None = None, limit: int | None = None
    ) -> list[WorkflowExecution]:
        """Return executions in start order, optionally filtered by workflow.

        ``limit`` keeps the most recent ``limit`` records.
        """
        executions = sorted(self._executions.values(), key=lambda e: e.start_time)
        if workflow_id is not None:
            executions = [e for e in executions if e.workflow_id == workflow_id]
        if limit is not None:
            executions = executions[-limit:] if limit > 0 else []
        return executions

    def clear(self) -> None:
        self._executions.clear()

    def close(self) -> None:
        """Nothing to release."""


class SQLiteExecutionStore:
    """Persists executions as JSON documents in a WAL-mode SQLite file."""

    def __init__(self, db_path: Path | str) -> None:
        self._conn = sqlite3.connect(str(db_path), check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.row_factory = sqlite3.Row
        self._init_db()

    def _init_db(self) -> None:
        self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS workflow_executions (
                id TEXT PRIMARY KEY,
                workflow_id TEXT NOT NULL,
                status TEXT NOT NULL,
                start_time TEXT NOT NULL,
                end_time TEXT,
                document TEXT NOT NULL
            );
            CREATE INDEX IF NOT EXISTS idx_exec_workflow
                ON workflow_executions(workflow_id);
            CREATE INDEX IF NOT EXISTS idx_exec_start
                ON workflow_executions(start_time);
        """)
        self._conn.commit()

    def save(self, execution: WorkflowExecution) -> None:
        """Insert or replace the record for ``execution.id``."""
        document = execution_to_dict(execution)
        self._conn.execute(
            """INSERT OR REPLACE INTO workflow_executions
               (id, workflow_id, status, start_time, end_time, document)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (
                execution.id,
                execution.workflow_id,
                execution.status.value,
                execution.start_time.isoformat(),
                execution.end_time.isoformat() if execution.end_time else None,
                json.dumps(document, default=str),
            ),
        )
        self._conn.commit()

    def get(self, execution_id: str) -> WorkflowExecution | None:
        row = self._conn.execute(
            "SELECT document FROM workflow_executions WHERE id = ?", (execution_id,)
        ).fetchone()
        if row is None:
            return None
        return execution_from_dict(json.loads(row["document"]))

    def list_executions(
        self, workflow_id: str | None = None, limit: int | None = None
    ) -> list[WorkflowExecution]:
        """Return executions in start order; ``limit`` keeps the newest."""
        query = "SELECT document FROM workflow_executions"
        params: list[object] = []
        if workflow_id is not None:
            query += " WHERE workflow_id = ?"
            params.append(workflow_id)
        query += " ORDER BY start_time DESC"
        if limit is not None:
            query += " LIMIT ?"
            params.append(max(limit, 0))

        rows = self._conn.execute(query, params).fetchall()
        return [execution_from_dict(json.loads(row["document"])) for row in reversed(rows)]

    def clear(self) -> int:
        """Delete every stored execution. Returns the number of rows removed."""
        cursor = self._conn.execute("DELETE FROM workflow_executions")
        self._conn.commit()
        return cursor.rowcount

    def close(self) -> None:
        self._conn.close()


def create_store(kind: str, db_path: Path | str | None = None) -> ExecutionStore:
    """Build the store named by config (``memory`` or ``sqlite``)."""
    if kind == "memory":
        return InMemoryExecutionStore()
    if kind == "sqlite":
        if db_path is None:
            raise ValueError("sqlite execution store requires a db_path")
        logger.info("Using SQLite execution store at %s", db_path)
        return SQLiteExecutionStore(db_path)
    raise ValueError(f"Unknown execution store: {kind!r}. Expected 'memory' or 'sqlite'.")
