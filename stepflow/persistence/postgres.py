"""PostgreSQL implementation of the workflow repository."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Dict, Optional

import asyncpg

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


def _json(value: Any) -> Any:
    # asyncpg hands JSONB back as text unless a codec is registered
    return json.loads(value) if isinstance(value, str) else value


class PostgresWorkflowRepository(WorkflowRepository):
    """Persist workflows and executions using PostgreSQL."""

    def __init__(self, dsn: str):
        self._dsn = dsn
        self._initialized = False

    async def _connect(self) -> asyncpg.Connection:
        conn = await asyncpg.connect(self._dsn)
        if not self._initialized:
            await self._ensure_schema(conn)
            self._initialized = True
        return conn

    async def _ensure_schema(self, conn: asyncpg.Connection) -> None:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS workflows (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                status TEXT NOT NULL,
                nodes JSONB NOT NULL,
                created_at TIMESTAMPTZ NOT NULL,
                updated_at TIMESTAMPTZ NOT NULL
            )
            """
        )
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS executions (
                id TEXT PRIMARY KEY,
                workflow_id TEXT NOT NULL,
                status TEXT NOT NULL,
                trigger_data JSONB,
                result_data JSONB,
                error TEXT,
                error_kind TEXT,
                node_states JSONB,
                started_at TIMESTAMPTZ NOT NULL,
                completed_at TIMESTAMPTZ
            )
            """
        )
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS step_history (
                id SERIAL PRIMARY KEY,
                execution_id TEXT NOT NULL,
                node_id TEXT NOT NULL,
                started_at TIMESTAMPTZ,
                completed_at TIMESTAMPTZ,
                status TEXT,
                output JSONB
            )
            """
        )

    @staticmethod
    def _workflow_from_row(row: asyncpg.Record) -> WorkflowGraph:
        return WorkflowGraph(
            id=row["id"],
            name=row["name"],
            status=row["status"],
            nodes=[NodeDefinition.model_validate(n) for n in _json(row["nodes"])],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    @staticmethod
    def _execution_from_row(
        row: asyncpg.Record, steps: list[StepRecord] | None = None
    ) -> ExecutionRecord:
        return ExecutionRecord(
            id=row["id"],
            workflow_id=row["workflow_id"],
            status=row["status"],
            trigger_data=_json(row["trigger_data"]),
            result_data=_json(row["result_data"]),
            error=row["error"],
            error_kind=row["error_kind"],
            node_states=_json(row["node_states"]) or {},
            started_at=row["started_at"],
            completed_at=row["completed_at"],
            steps=steps or [],
        )

    # ------------------------------------------------------------------
    async def save_workflow(self, workflow: WorkflowGraph) -> WorkflowGraph:
        stored = workflow.model_copy(update={"updated_at": utcnow()})
        nodes = [n.model_dump(mode="json", by_alias=True) for n in stored.nodes]
        conn = await self._connect()
        try:
            await conn.execute(
                """
                INSERT INTO workflows (id, name, status, nodes, created_at, updated_at)
                VALUES ($1, $2, $3, $4, $5, $6)
                ON CONFLICT (id) DO UPDATE
                SET name = $2, status = $3, nodes = $4, updated_at = $6
                """,
                stored.id,
                stored.name,
                stored.status.value,
                _dumps(nodes),
                stored.created_at,
                stored.updated_at,
            )
        finally:
            await conn.close()
        return stored

    async def get_workflow(self, workflow_id: str) -> WorkflowGraph | None:
        conn = await self._connect()
        try:
            row = await conn.fetchrow(
                "SELECT id, name, status, nodes, created_at, updated_at FROM workflows WHERE id = $1",
                workflow_id,
            )
        finally:
            await conn.close()
        return self._workflow_from_row(row) if row else None

    async def list_workflows(self) -> list[WorkflowGraph]:
        conn = await self._connect()
        try:
            rows = await conn.fetch(
                "SELECT id, name, status, nodes, created_at, updated_at FROM workflows ORDER BY updated_at DESC"
            )
        finally:
            await conn.close()
        return [self._workflow_from_row(r) for r in rows]

    async def delete_workflow(self, workflow_id: str) -> bool:
        conn = await self._connect()
        try:
            result = await conn.execute("DELETE FROM workflows WHERE id = $1", workflow_id)
        finally:
            await conn.close()
        return result != "DELETE 0"

    # ------------------------------------------------------------------
    async def create_execution_record(self, record: ExecutionRecord) -> ExecutionRecord:
        conn = await self._connect()
        try:
            await conn.execute(
                """
                INSERT INTO executions (id, workflow_id, status, trigger_data, node_states, started_at)
                VALUES ($1, $2, $3, $4, $5, $6)
                """,
                record.id,
                record.workflow_id,
                record.status.value,
                _dumps(record.trigger_data),
                _dumps(record.node_states),
                record.started_at,
            )
        finally:
            await conn.close()
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
        conn = await self._connect()
        try:
            result = await conn.execute(
                """
                UPDATE executions
                SET status = $1, completed_at = $2, result_data = $3, error = $4,
                    error_kind = $5, node_states = COALESCE($6, node_states)
                WHERE id = $7
                """,
                status.value,
                completed_at,
                _dumps(result_data) if result_data is not None else None,
                error,
                error_kind,
                _dumps(node_states) if node_states is not None else None,
                execution_id,
            )
        finally:
            await conn.close()
        if result == "UPDATE 0":
            raise KeyError(f"Execution record {execution_id} not found")

    async def get_execution_record(self, execution_id: str) -> ExecutionRecord | None:
        conn = await self._connect()
        try:
            row = await conn.fetchrow("SELECT * FROM executions WHERE id = $1", execution_id)
            if not row:
                return None
            step_rows = await conn.fetch(
                "SELECT id, execution_id, node_id, started_at, completed_at, status, output FROM step_history WHERE execution_id = $1 ORDER BY id",
                execution_id,
            )
        finally:
            await conn.close()
        steps = [
            StepRecord(
                id=r["id"],
                execution_id=r["execution_id"],
                node_id=r["node_id"],
                started_at=r["started_at"],
                completed_at=r["completed_at"],
                status=r["status"],
                output=_json(r["output"]),
            )
            for r in step_rows
        ]
        return self._execution_from_row(row, steps)

    async def list_execution_records(
        self, workflow_id: Optional[str] = None
    ) -> list[ExecutionRecord]:
        conn = await self._connect()
        try:
            if workflow_id is None:
                rows = await conn.fetch("SELECT * FROM executions ORDER BY started_at DESC")
            else:
                rows = await conn.fetch(
                    "SELECT * FROM executions WHERE workflow_id = $1 ORDER BY started_at DESC",
                    workflow_id,
                )
        finally:
            await conn.close()
        return [self._execution_from_row(r) for r in rows]

    # ------------------------------------------------------------------
    async def mark_step_started(self, execution_id: str, node_id: str) -> None:
        conn = await self._connect()
        try:
            await conn.execute(
                """
                INSERT INTO step_history (execution_id, node_id, started_at, status)
                SELECT $1::text, $2::text, $3::timestamptz, $4::text
                WHERE NOT EXISTS (
                    SELECT 1 FROM step_history WHERE execution_id = $1 AND node_id = $2
                )
                """,
                execution_id,
                node_id,
                utcnow(),
                NodeState.RUNNING.value,
            )
        finally:
            await conn.close()

    async def mark_step_completed(
        self,
        execution_id: str,
        node_id: str,
        status: NodeState,
        output: Any = None,
    ) -> None:
        conn = await self._connect()
        try:
            result = await conn.execute(
                """
                UPDATE step_history
                SET completed_at = $1, status = $2, output = $3
                WHERE execution_id = $4 AND node_id = $5 AND completed_at IS NULL
                """,
                utcnow(),
                status.value,
                _dumps(output),
                execution_id,
                node_id,
            )
            if result == "UPDATE 0":
                await conn.execute(
                    """
                    INSERT INTO step_history (execution_id, node_id, completed_at, status, output)
                    SELECT $1::text, $2::text, $3::timestamptz, $4::text, $5::jsonb
                    WHERE NOT EXISTS (
                        SELECT 1 FROM step_history WHERE execution_id = $1 AND node_id = $2
                    )
                    """,
                    execution_id,
                    node_id,
                    utcnow(),
                    status.value,
                    _dumps(output),
                )
        finally:
            await conn.close()
