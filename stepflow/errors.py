"""Exception hierarchy for stepflow."""

from __future__ import annotations

from typing import Sequence


class StepflowError(Exception):
    """Base class for all stepflow errors."""


# ----------------------------------------------------------------------
# Graph structure
class GraphError(StepflowError):
    """Structural problem detected before any node runs."""


class CycleError(GraphError):
    def __init__(self, path: Sequence[str]):
        self.path = list(path)
        super().__init__(f"Cycle detected: {' -> '.join(self.path)}")


class DanglingReferenceError(GraphError):
    def __init__(self, node_id: str, missing: str):
        self.node_id = node_id
        self.missing = missing
        super().__init__(f"Node {node_id} depends on unknown node {missing}")


class NoEntryPointError(GraphError):
    def __init__(self) -> None:
        super().__init__(
            "No valid trigger node found. Workflow must start with a Trigger."
        )


# ----------------------------------------------------------------------
# Connector registry
class RegistryError(StepflowError):
    """Raised by the connector registry."""


class DuplicateConnectorError(RegistryError):
    def __init__(self, connector_type: str):
        self.connector_type = connector_type
        super().__init__(f"Connector already registered: {connector_type}")


class UnknownConnectorError(RegistryError):
    def __init__(self, connector_type: str):
        self.connector_type = connector_type
        super().__init__(f"Unknown connector type: {connector_type}")


# ----------------------------------------------------------------------
# Handler failures
class HandlerError(StepflowError):
    """Failure raised by connector logic.

    ``retryable`` marks transient failures that the retry helpers may repeat.
    """

    def __init__(self, message: str, retryable: bool = False):
        super().__init__(message)
        self.retryable = retryable


class ReferenceResolutionError(HandlerError):
    """A step reference in a node config could not be resolved."""


# ----------------------------------------------------------------------
# Runner / recorder
class RunnerError(StepflowError):
    """Workflow rejected before traversal."""


class WorkflowNotFoundError(RunnerError):
    def __init__(self, workflow_id: str):
        self.workflow_id = workflow_id
        super().__init__(f"Workflow {workflow_id} not found")


class WorkflowNotRunnableError(RunnerError):
    def __init__(self, workflow_id: str, status: str):
        self.workflow_id = workflow_id
        self.status = status
        super().__init__(f"Workflow {workflow_id} is {status} and cannot be executed")


class RunCancelled(StepflowError):
    def __init__(self, message: str = "Execution cancelled") -> None:
        super().__init__(message)


class RecorderError(StepflowError):
    """Execution record lifecycle violated."""
