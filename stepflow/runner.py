"""Workflow runner: load, validate, execute and record one workflow run."""

from __future__ import annotations

import asyncio
import copy
import logging
from typing import Any, Optional

from .config import StepflowConfig, load_config
from .constants import DEFAULT_NODE_TIMEOUT
from .context import ExecutionContext
from .contracts import ErrorKind, ExecutionResult, RunOutcome
from .errors import (
    GraphError,
    RunCancelled,
    RunnerError,
    WorkflowNotFoundError,
    WorkflowNotRunnableError,
)
from .execute import GraphExecutor
from .graph import GraphModel
from .persistence import WorkflowRepository, get_repository
from .recorder import ExecutionRecorder
from .registry import ConnectorRegistry, default_registry

logger = logging.getLogger(__name__)


class WorkflowRunner:
    """Facade composing graph loading, execution and recording.

    :meth:`run` never raises for workflow or system failures; every outcome
    is captured in the finished execution record and returned as a
    :class:`RunOutcome`.
    """

    def __init__(
        self,
        repository: WorkflowRepository,
        registry: ConnectorRegistry,
        node_timeout: Optional[float] = DEFAULT_NODE_TIMEOUT,
        max_concurrency: Optional[int] = None,
    ) -> None:
        self._repository = repository
        self._registry = registry
        self._recorder = ExecutionRecorder(repository)
        self._node_timeout = node_timeout
        self._max_concurrency = max_concurrency

    @classmethod
    def from_config(
        cls,
        config: Optional[StepflowConfig] = None,
        repository: Optional[WorkflowRepository] = None,
        registry: Optional[ConnectorRegistry] = None,
    ) -> "WorkflowRunner":
        config = config or load_config()
        return cls(
            repository or get_repository(config=config),
            registry or default_registry(config.retry),
            node_timeout=config.executor.node_timeout,
            max_concurrency=config.executor.max_concurrency,
        )

    @property
    def repository(self) -> WorkflowRepository:
        return self._repository

    async def run(
        self,
        workflow_id: str,
        trigger_data: Any = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> RunOutcome:
        # runs never share the caller's payload object
        trigger_data = copy.deepcopy(trigger_data) if trigger_data is not None else {}
        try:
            record = await self._recorder.begin(workflow_id, trigger_data)
        except Exception as exc:
            logger.exception(f"Could not create execution record for {workflow_id}")
            return RunOutcome(
                success=False,
                execution_id=None,
                error=f"Failed to record execution: {exc}",
                error_kind="system",
            )

        result: Optional[ExecutionResult] = None
        error: Optional[str] = None
        error_kind: Optional[ErrorKind] = None
        try:
            workflow = await self._repository.get_workflow(workflow_id)
            if workflow is None:
                raise WorkflowNotFoundError(workflow_id)
            if not workflow.status.is_runnable:
                raise WorkflowNotRunnableError(workflow_id, workflow.status.value)

            graph = GraphModel.build(workflow.nodes)
            context = ExecutionContext(workflow_id, record.id, trigger_data)
            executor = GraphExecutor(
                self._registry,
                node_timeout=self._node_timeout,
                max_concurrency=self._max_concurrency,
                listener=self._recorder.step_listener(record.id),
            )
            result = await executor.execute(graph, context, cancel_event)
            if not result.succeeded:
                error, error_kind = result.error, "workflow"
        except (RunnerError, GraphError) as exc:
            logger.warning(f"[Workflow Failure] ID: {workflow_id}: {exc}")
            error, error_kind = str(exc), "workflow"
        except asyncio.CancelledError:
            error, error_kind = str(RunCancelled()), "workflow"
            raise
        except Exception as exc:
            logger.exception(f"[System Error] Workflow {workflow_id} execution {record.id}")
            error, error_kind = str(exc) or exc.__class__.__name__, "system"
        finally:
            try:
                await self._recorder.finish(record.id, result, error, error_kind)
            except Exception as exc:
                logger.exception(f"Could not finalize execution record {record.id}")
                if error is None:
                    error, error_kind = f"Failed to record execution: {exc}", "system"

        return RunOutcome(
            success=error is None,
            execution_id=record.id,
            error=error,
            error_kind=error_kind,
        )


async def execute_workflow(
    workflow_id: str,
    trigger_data: Any = None,
    runner: Optional[WorkflowRunner] = None,
    cancel_event: Optional[asyncio.Event] = None,
) -> RunOutcome:
    """Single invocation surface for transports (HTTP routes, CLI, webhooks)."""
    runner = runner or WorkflowRunner.from_config()
    return await runner.run(workflow_id, trigger_data, cancel_event)
