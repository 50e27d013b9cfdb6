"""SQLite implementation of the workflow repository."""

from __future__ import annotations

import asyncio
import json
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from ..contracts import (
    ErrorKind,
    ExecutionRecord,
    ExecutionStatus,
    NodeDefinition,
    NodeState,
    StepRecord,
    WorkflowGraph,
    utcnow,
)
from .repository import WorkflowRepository


def _dumps(value: Any) -> str:
    return json.dumps(value, default=str)


def _loads(value: Optional[str]) -> Any:
    return json.loads(value) if value else None


def _ts(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class SQLiteWorkflowRepository(WorkflowRepository):
    """Persist workflows and executions using SQLite."""

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS workflows (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                status TEXT NOT NULL,
                nodes TEXT NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS executions (
                id TEXT PRIMARY KEY,
                workflow_id TEXT NOT NULL,
                status TEXT NOT NULL,
                trigger_data TEXT,
                result_data TEXT,
                error TEXT,
                error_kind TEXT,
                node_states TEXT,
                started_at TEXT NOT NULL,
                completed_at TEXT
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS step_history (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                execution_id TEXT NOT NULL,
                node_id TEXT NOT NULL,
                started_at TEXT,
                completed_at TEXT,
                status TEXT,
                output TEXT
            )
            """
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _execute(self, query: str, *params: Any) -> int:
        cur = self._conn.cursor()
        cur.execute(query, params)
        self._conn.commit()
        return cur.rowcount

    def _fetchone(self, query: str, *params: Any) -> sqlite3.Row | None:
        cur = self._conn.cursor()
        cur.execute(query, params)
        return cur.fetchone()

    def _fetchall(self, query: str, *params: Any) -> list[sqlite3.Row]:
        cur = self._conn.cursor()
        cur.execute(query, params)
        return cur.fetchall()

    @staticmethod
    def _workflow_from_row(row: sqlite3.Row) -> WorkflowGraph:
        return WorkflowGraph(
            id=row["id"],
            name=row["name"],
            status=row["status"],
            nodes=[NodeDefinition.model_validate(n) for n in json.loads(row["nodes"])],
            created_at=_ts(row["created_at"]),
            updated_at=_ts(row["updated_at"]),
        )

    @staticmethod
    def _execution_from_row(
        row: sqlite3.Row, steps: list[StepRecord] | None = None
    ) -> ExecutionRecord:
        return ExecutionRecord(
            id=row["id"],
            workflow_id=row["workflow_id"],
            status=row["status"],
            trigger_data=_loads(row["trigger_data"]),
            result_data=_loads(row["result_data"]),
            error=row["error"],
            error_kind=row["error_kind"],
            node_states=_loads(row["node_states"]) or {},
            started_at=_ts(row["started_at"]),
            completed_at=_ts(row["completed_at"]),
            steps=steps or [],
        )

    # ------------------------------------------------------------------
    # Workflows
    async def save_workflow(self, workflow: WorkflowGraph) -> WorkflowGraph:
        stored = workflow.model_copy(update={"updated_at": utcnow()})
        nodes = [n.model_dump(mode="json", by_alias=True) for n in stored.nodes]
        await asyncio.to_thread(
            self._execute,
            """
            INSERT OR REPLACE INTO workflows (id, name, status, nodes, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            stored.id,
            stored.name,
            stored.status.value,
            _dumps(nodes),
            stored.created_at.isoformat(),
            stored.updated_at.isoformat(),
        )
        return stored

    async def get_workflow(self, workflow_id: str) -> WorkflowGraph | None:
        row = await asyncio.to_thread(
            self._fetchone,
            "SELECT id, name, status, nodes, created_at, updated_at FROM workflows WHERE id = ?",
            workflow_id,
        )
        return self._workflow_from_row(row) if row else None

    async def list_workflows(self) -> list[WorkflowGraph]:
        rows = await asyncio.to_thread(
            self._fetchall,
            "SELECT id, name, status, nodes, created_at, updated_at FROM workflows ORDER BY updated_at DESC",
        )
        return [self._workflow_from_row(r) for r in rows]

    async def delete_workflow(self, workflow_id: str) -> bool:
        deleted = await asyncio.to_thread(
            self._execute, "DELETE FROM workflows WHERE id = ?", workflow_id
        )
        return deleted > 0

    # ------------------------------------------------------------------
    # Execution records
    async def create_execution_record(self, record: ExecutionRecord) -> ExecutionRecord:
        await asyncio.to_thread(
            self._execute,
            """
            INSERT INTO executions (id, workflow_id, status, trigger_data, node_states, started_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            record.id,
            record.workflow_id,
            record.status.value,
            _dumps(record.trigger_data),
            _dumps(record.node_states),
            record.started_at.isoformat(),
        )
        return record

    async def update_execution_record(
        self,
        execution_id: str,
        *,
        status: ExecutionStatus,
        completed_at: datetime,
        result_data: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None,
        error_kind: Optional[ErrorKind] = None,
        node_states: Optional[Dict[str, NodeState]] = None,
    ) -> None:
        updated = await asyncio.to_thread(
            self._execute,
            """
            UPDATE executions
            SET status = ?, completed_at = ?, result_data = ?, error = ?, error_kind = ?,
                node_states = COALESCE(?, node_states)
            WHERE id = ?
            """,
            status.value,
            completed_at.isoformat(),
            _dumps(result_data) if result_data is not None else None,
            error,
            error_kind,
            _dumps(node_states) if node_states is not None else None,
            execution_id,
        )
        if not updated:
            raise KeyError(f"Execution record {execution_id} not found")

    async def get_execution_record(self, execution_id: str) -> ExecutionRecord | None:
        row = await asyncio.to_thread(
            self._fetchone, "SELECT * FROM executions WHERE id = ?", execution_id
        )
        if not row:
            return None
        step_rows = await asyncio.to_thread(
            self._fetchall,
            "SELECT id, execution_id, node_id, started_at, completed_at, status, output FROM step_history WHERE execution_id = ? ORDER BY id",
            execution_id,
        )
        steps = [
            StepRecord(
                id=r["id"],
                execution_id=r["execution_id"],
                node_id=r["node_id"],
                started_at=_ts(r["started_at"]),
                completed_at=_ts(r["completed_at"]),
                status=r["status"],
                output=_loads(r["output"]),
            )
            for r in step_rows
        ]
        return self._execution_from_row(row, steps)

    async def list_execution_records(
        self, workflow_id: Optional[str] = None
    ) -> list[ExecutionRecord]:
        if workflow_id is None:
            rows = await asyncio.to_thread(
                self._fetchall, "SELECT * FROM executions ORDER BY started_at DESC"
            )
        else:
            rows = await asyncio.to_thread(
                self._fetchall,
                "SELECT * FROM executions WHERE workflow_id = ? ORDER BY started_at DESC",
                workflow_id,
            )
        return [self._execution_from_row(r) for r in rows]

    # ------------------------------------------------------------------
    # Step history
    async def mark_step_started(self, execution_id: str, node_id: str) -> None:
        existing = await asyncio.to_thread(
            self._fetchone,
            "SELECT id FROM step_history WHERE execution_id = ? AND node_id = ?",
            execution_id,
            node_id,
        )
        if existing:
            return
        await asyncio.to_thread(
            self._execute,
            "INSERT INTO step_history (execution_id, node_id, started_at, status) VALUES (?, ?, ?, ?)",
            execution_id,
            node_id,
            utcnow().isoformat(),
            NodeState.RUNNING.value,
        )

    async def mark_step_completed(
        self,
        execution_id: str,
        node_id: str,
        status: NodeState,
        output: Any = None,
    ) -> None:
        updated = await asyncio.to_thread(
            self._execute,
            """
            UPDATE step_history
            SET completed_at = ?, status = ?, output = ?
            WHERE execution_id = ? AND node_id = ? AND completed_at IS NULL
            """,
            utcnow().isoformat(),
            status.value,
            _dumps(output),
            execution_id,
            node_id,
        )
        if updated:
            return
        existing = await asyncio.to_thread(
            self._fetchone,
            "SELECT id FROM step_history WHERE execution_id = ? AND node_id = ?",
            execution_id,
            node_id,
        )
        if existing:
            return
        await asyncio.to_thread(
            self._execute,
            "INSERT INTO step_history (execution_id, node_id, completed_at, status, output) VALUES (?, ?, ?, ?, ?)",
            execution_id,
            node_id,
            utcnow().isoformat(),
            status.value,
            _dumps(output),
        )
