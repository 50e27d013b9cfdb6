"""In-memory implementation of the workflow repository."""

from __future__ import annotations

import copy
from datetime import datetime
from typing import Any, Dict, Optional

from ..contracts import (
    ErrorKind,
    ExecutionRecord,
    ExecutionStatus,
    NodeState,
    StepRecord,
    WorkflowGraph,
    utcnow,
)
from .repository import WorkflowRepository


class InMemoryWorkflowRepository(WorkflowRepository):
    """Store workflows and executions in local memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts. Records are copied on the way in and
    out so callers never share mutable state with the store.
    """

    def __init__(self) -> None:
        self._workflows: Dict[str, WorkflowGraph] = {}
        self._executions: Dict[str, ExecutionRecord] = {}
        self._step_id = 0

    # ------------------------------------------------------------------
    async def save_workflow(self, workflow: WorkflowGraph) -> WorkflowGraph:
        stored = workflow.model_copy(deep=True, update={"updated_at": utcnow()})
        self._workflows[workflow.id] = stored
        return stored.model_copy(deep=True)

    async def get_workflow(self, workflow_id: str) -> WorkflowGraph | None:
        wf = self._workflows.get(workflow_id)
        return wf.model_copy(deep=True) if wf else None

    async def list_workflows(self) -> list[WorkflowGraph]:
        return [wf.model_copy(deep=True) for wf in self._workflows.values()]

    async def delete_workflow(self, workflow_id: str) -> bool:
        return self._workflows.pop(workflow_id, None) is not None

    # ------------------------------------------------------------------
    async def create_execution_record(self, record: ExecutionRecord) -> ExecutionRecord:
        if record.id in self._executions:
            raise ValueError(f"Execution record {record.id} already exists")
        self._executions[record.id] = record.model_copy(deep=True)
        return record.model_copy(deep=True)

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
        record = self._executions.get(execution_id)
        if record is None:
            raise KeyError(f"Execution record {execution_id} not found")
        record.status = status
        record.completed_at = completed_at
        record.result_data = copy.deepcopy(result_data)
        record.error = error
        record.error_kind = error_kind
        if node_states is not None:
            record.node_states = copy.deepcopy(node_states)

    async def get_execution_record(self, execution_id: str) -> ExecutionRecord | None:
        record = self._executions.get(execution_id)
        return record.model_copy(deep=True) if record else None

    async def list_execution_records(
        self, workflow_id: Optional[str] = None
    ) -> list[ExecutionRecord]:
        records = [
            r.model_copy(deep=True)
            for r in self._executions.values()
            if workflow_id is None or r.workflow_id == workflow_id
        ]
        return sorted(records, key=lambda r: r.started_at, reverse=True)

    # ------------------------------------------------------------------
    async def mark_step_started(self, execution_id: str, node_id: str) -> None:
        record = self._executions.get(execution_id)
        if not record:
            return
        # ignore duplicate starts for the same node
        if any(step.node_id == node_id for step in record.steps):
            return
        self._step_id += 1
        record.steps.append(
            StepRecord(
                id=self._step_id,
                execution_id=execution_id,
                node_id=node_id,
                started_at=utcnow(),
                status=NodeState.RUNNING,
            )
        )

    async def mark_step_completed(
        self,
        execution_id: str,
        node_id: str,
        status: NodeState,
        output: Any = None,
    ) -> None:
        record = self._executions.get(execution_id)
        if not record:
            return
        for step in record.steps:
            if step.node_id == node_id:
                if step.completed_at is None:
                    step.completed_at = utcnow()
                    step.status = status
                    step.output = copy.deepcopy(output)
                return
        self._step_id += 1
        record.steps.append(
            StepRecord(
                id=self._step_id,
                execution_id=execution_id,
                node_id=node_id,
                completed_at=utcnow(),
                status=status,
                output=copy.deepcopy(output),
            )
        )
