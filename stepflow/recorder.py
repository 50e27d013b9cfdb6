"""Audit-first execution recording."""

from __future__ import annotations

import logging
from typing import Any, Optional

from .contracts import (
    ErrorKind,
    ExecutionRecord,
    ExecutionResult,
    ExecutionStatus,
    NodeState,
    utcnow,
)
from .errors import RecorderError
from .execute import NodeListener
from .persistence import WorkflowRepository

logger = logging.getLogger(__name__)


class ExecutionRecorder:
    """Creates execution records before traversal and finalizes them once.

    The ``PENDING`` record is written before any work happens, so a crash
    mid-run still leaves a trace that the execution was attempted.
    """

    def __init__(self, repository: WorkflowRepository) -> None:
        self._repository = repository

    async def begin(self, workflow_id: str, trigger_data: Any = None) -> ExecutionRecord:
        record = ExecutionRecord(
            workflow_id=workflow_id,
            status=ExecutionStatus.PENDING,
            trigger_data=trigger_data,
        )
        record = await self._repository.create_execution_record(record)
        logger.info(f"Execution {record.id} of workflow {workflow_id} PENDING")
        return record

    async def finish(
        self,
        execution_id: str,
        result: Optional[ExecutionResult] = None,
        error: Optional[str] = None,
        error_kind: Optional[ErrorKind] = None,
    ) -> ExecutionStatus:
        """Write the terminal status of ``execution_id``.

        A successful ``result`` stores the full step results; anything else
        stores the error. Raises :class:`RecorderError` when the stored record
        is missing or no longer ``PENDING``.
        """
        existing = await self._repository.get_execution_record(execution_id)
        if existing is None:
            raise RecorderError(f"Execution {execution_id} not found")
        if existing.is_finished:
            raise RecorderError(f"Execution {execution_id} already finished")

        node_states = result.node_states if result is not None else None
        if result is not None and result.succeeded and error is None:
            status = ExecutionStatus.SUCCESS
            await self._repository.update_execution_record(
                execution_id,
                status=status,
                completed_at=utcnow(),
                result_data=result.step_results,
                node_states=node_states,
            )
        else:
            status = ExecutionStatus.FAILED
            error = error or (result.error if result is not None else None) or "Unknown error"
            await self._repository.update_execution_record(
                execution_id,
                status=status,
                completed_at=utcnow(),
                error=error,
                error_kind=error_kind or "workflow",
                node_states=node_states,
            )
        logger.info(f"Execution {execution_id} finished with {status.value}")
        return status

    def step_listener(self, execution_id: str) -> NodeListener:
        """Node-state callback that writes the step history of a run."""

        async def listener(node_id: str, state: NodeState, detail: Any) -> None:
            if state == NodeState.RUNNING:
                await self._repository.mark_step_started(execution_id, node_id)
            elif state == NodeState.SUCCEEDED:
                await self._repository.mark_step_completed(
                    execution_id, node_id, state, output=detail
                )
            elif state == NodeState.FAILED:
                await self._repository.mark_step_completed(
                    execution_id, node_id, state, output={"error": str(detail)}
                )
            elif state == NodeState.SKIPPED:
                await self._repository.mark_step_completed(
                    execution_id, node_id, state, output={"reason": str(detail)}
                )

        return listener
