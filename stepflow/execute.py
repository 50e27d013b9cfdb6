"""Graph execution engine for stepflow workflows."""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional, Set, Tuple, Union

from .constants import DEFAULT_NODE_TIMEOUT
from .context import ExecutionContext
from .contracts import ExecutionResult, NodeDefinition, NodeState, RunState
from .errors import GraphError, HandlerError, RunCancelled
from .graph import GraphModel
from .registry import ConnectorRegistry

logger = logging.getLogger(__name__)

NodeListener = Callable[[str, NodeState, Any], Awaitable[None]]


class GraphExecutor:
    """Traverses a workflow graph frontier by frontier.

    Nodes in the same frontier have all dependencies satisfied and are
    dispatched concurrently; the executor joins on the whole frontier before
    computing the next one. Node failures never escape :meth:`execute`; they
    become ``FAILED`` node states, skip every transitive dependent, and abort
    the run once the independent branches have finished.
    """

    def __init__(
        self,
        registry: ConnectorRegistry,
        node_timeout: Optional[float] = DEFAULT_NODE_TIMEOUT,
        max_concurrency: Optional[int] = None,
        listener: Optional[NodeListener] = None,
    ) -> None:
        self._registry = registry
        self._node_timeout = node_timeout
        self._max_concurrency = max_concurrency
        self._listener = listener

    async def execute(
        self,
        graph: Union[GraphModel, Iterable[NodeDefinition]],
        context: ExecutionContext,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> ExecutionResult:
        """Run every reachable node and return the aggregated result."""
        logger.debug(
            f"Execution {context.execution_id} {RunState.INITIALIZING.value}"
        )
        try:
            if not isinstance(graph, GraphModel):
                graph = GraphModel.build(graph)
            frontier = graph.entry_points()
        except GraphError as exc:
            logger.error(
                f"Execution {context.execution_id} aborted: invalid graph: {exc}"
            )
            return ExecutionResult(state=RunState.ABORTED, error=str(exc))

        states: Dict[str, NodeState] = {node.id: NodeState.PENDING for node in graph}
        completed: Set[str] = set()
        settled: Set[str] = set()
        error: Optional[str] = None
        failed_node: Optional[str] = None
        semaphore = (
            asyncio.Semaphore(self._max_concurrency) if self._max_concurrency else None
        )

        run_state = RunState.RUNNING
        logger.info(
            f"Execution {context.execution_id} of workflow {context.workflow_id} "
            f"{run_state.value} with {len(graph)} nodes"
        )

        while frontier:
            if cancel_event is not None and cancel_event.is_set():
                error = error or str(RunCancelled())
                logger.warning(f"Execution {context.execution_id} cancelled")
                break

            outcomes = await asyncio.gather(
                *(
                    self._run_node(node, graph, context, states, semaphore)
                    for node in frontier
                )
            )

            for node, (ok, value) in zip(frontier, outcomes):
                if ok:
                    context.record(node.id, value)
                    completed.add(node.id)
                    await self._transition(states, node.id, NodeState.SUCCEEDED, value)
                    continue

                message = f"Node {node.id} ({node.connector_type}) failed: {value}"
                logger.error(f"Execution {context.execution_id}: {message}")
                settled.add(node.id)
                await self._transition(states, node.id, NodeState.FAILED, message)
                if error is None:
                    error, failed_node = message, node.id
                for dependent in sorted(graph.descendants(node.id)):
                    if states[dependent] == NodeState.PENDING:
                        settled.add(dependent)
                        await self._transition(
                            states, dependent, NodeState.SKIPPED, f"upstream {node.id} failed"
                        )

            frontier = graph.ready_nodes(completed, settled)

        for node_id, state in list(states.items()):
            if state == NodeState.PENDING:
                await self._transition(states, node_id, NodeState.SKIPPED, "not reached")

        failed = any(state == NodeState.FAILED for state in states.values())
        run_state = RunState.ABORTED if (failed or error) else RunState.COMPLETED
        logger.info(f"Execution {context.execution_id} {run_state.value}")
        return ExecutionResult(
            state=run_state,
            node_states=states,
            step_results=context.snapshot(),
            error=error,
            failed_node=failed_node,
        )

    # ------------------------------------------------------------------
    async def _run_node(
        self,
        node: NodeDefinition,
        graph: GraphModel,
        context: ExecutionContext,
        states: Dict[str, NodeState],
        semaphore: Optional[asyncio.Semaphore],
    ) -> Tuple[bool, Any]:
        if semaphore is None:
            return await self._invoke(node, graph, context, states)
        async with semaphore:
            return await self._invoke(node, graph, context, states)

    async def _invoke(
        self,
        node: NodeDefinition,
        graph: GraphModel,
        context: ExecutionContext,
        states: Dict[str, NodeState],
    ) -> Tuple[bool, Any]:
        await self._transition(states, node.id, NodeState.RUNNING, None)
        logger.info(f"[Executing Node] {node.connector_type} ({node.id})")
        try:
            handler = self._registry.resolve(node.connector_type)
            view = context.scoped(graph.ancestors(node.id))
            output = await asyncio.wait_for(
                self._call(handler, node, view), timeout=self._node_timeout
            )
        except asyncio.TimeoutError:
            return False, HandlerError(f"timed out after {self._node_timeout}s")
        except Exception as exc:
            return False, exc
        return True, output

    @staticmethod
    async def _call(handler: Callable, node: NodeDefinition, view: ExecutionContext) -> Any:
        if inspect.iscoroutinefunction(handler) or inspect.iscoroutinefunction(
            getattr(handler, "__call__", None)
        ):
            return await handler(node, view)
        result = await asyncio.to_thread(handler, node, view)
        if inspect.isawaitable(result):
            result = await result
        return result

    async def _transition(
        self, states: Dict[str, NodeState], node_id: str, state: NodeState, detail: Any
    ) -> None:
        states[node_id] = state
        if self._listener is None:
            return
        try:
            await self._listener(node_id, state, detail)
        except Exception as exc:
            logger.warning(f"Node listener failed for {node_id} ({state.value}): {exc}")

