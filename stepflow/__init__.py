"""Stepflow: trigger/action workflow graphs with auditable executions."""

from .context import ExecutionContext
from .contracts import (
    ExecutionRecord,
    ExecutionResult,
    NodeDefinition,
    NodeRole,
    NodeState,
    RunOutcome,
    RunState,
    WorkflowGraph,
    WorkflowStatus,
)
from .execute import GraphExecutor
from .graph import GraphModel, link_sequential
from .persistence import get_repository
from .recorder import ExecutionRecorder
from .registry import ConnectorRegistry, default_registry
from .runner import WorkflowRunner, execute_workflow

__version__ = "0.1.0"
__all__ = [
    "ConnectorRegistry",
    "ExecutionContext",
    "ExecutionRecord",
    "ExecutionRecorder",
    "ExecutionResult",
    "GraphExecutor",
    "GraphModel",
    "NodeDefinition",
    "NodeRole",
    "NodeState",
    "RunOutcome",
    "RunState",
    "WorkflowGraph",
    "WorkflowRunner",
    "WorkflowStatus",
    "default_registry",
    "execute_workflow",
    "get_repository",
    "link_sequential",
]
