"""Repository abstraction for workflow and execution persistence."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional, Protocol

from ..contracts import (
    ErrorKind,
    ExecutionRecord,
    ExecutionStatus,
    NodeState,
    WorkflowGraph,
)


class WorkflowRepository(Protocol):
    """Protocol for persistence backends."""

    async def save_workflow(self, workflow: WorkflowGraph) -> WorkflowGraph:
        """Insert or replace a workflow definition."""

    async def get_workflow(self, workflow_id: str) -> WorkflowGraph | None:
        """Retrieve a workflow with all of its nodes."""

    async def list_workflows(self) -> list[WorkflowGraph]:
        """Return all stored workflows."""

    async def delete_workflow(self, workflow_id: str) -> bool:
        """Delete a workflow; ``False`` when it did not exist."""

    async def create_execution_record(self, record: ExecutionRecord) -> ExecutionRecord:
        """Persist a new execution record."""

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
        """Write the terminal fields of an execution record."""

    async def get_execution_record(self, execution_id: str) -> ExecutionRecord | None:
        """Retrieve an execution record including its step history."""

    async def list_execution_records(
        self, workflow_id: Optional[str] = None
    ) -> list[ExecutionRecord]:
        """Return execution records, newest first."""

    async def mark_step_started(self, execution_id: str, node_id: str) -> None:
        """Record the start of a node."""

    async def mark_step_completed(
        self,
        execution_id: str,
        node_id: str,
        status: NodeState,
        output: Any = None,
    ) -> None:
        """Record the terminal state of a node."""
