"""Core data contracts for stepflow workflows and executions."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from .constants import DEFAULT_WORKFLOW_NAME


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NodeRole(str, Enum):
    TRIGGER = "TRIGGER"
    ACTION = "ACTION"


class WorkflowStatus(str, Enum):
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"

    @property
    def is_runnable(self) -> bool:
        return self in (WorkflowStatus.DRAFT, WorkflowStatus.ACTIVE)


class NodeState(str, Enum):
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"


class RunState(str, Enum):
    INITIALIZING = "INITIALIZING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    ABORTED = "ABORTED"


class ExecutionStatus(str, Enum):
    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


ErrorKind = Literal["workflow", "system"]


class NodeDefinition(BaseModel):
    """One step (trigger or action) in a workflow.

    Editor metadata such as canvas coordinates may be carried as extra
    fields; the engine never reads them.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str
    role: NodeRole = Field(validation_alias=AliasChoices("role", "type"))
    connector_type: str = Field(alias="connectorType")
    config: Dict[str, Any] = Field(default_factory=dict)
    depends_on: List[str] = Field(default_factory=list, alias="dependsOn")

    @property
    def is_entry_point(self) -> bool:
        return self.role == NodeRole.TRIGGER and not self.depends_on


class WorkflowGraph(BaseModel):
    """A stored workflow: its nodes plus lifecycle status."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str = DEFAULT_WORKFLOW_NAME
    status: WorkflowStatus = WorkflowStatus.DRAFT
    nodes: List[NodeDefinition] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class StepRecord(BaseModel):
    """Record of an individual node execution within a run."""

    id: Optional[int] = None
    execution_id: str
    node_id: str
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    status: Optional[NodeState] = None
    output: Any = None


class ExecutionRecord(BaseModel):
    """Durable audit row for one run of a workflow."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    workflow_id: str
    status: ExecutionStatus = ExecutionStatus.PENDING
    trigger_data: Any = None
    result_data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    node_states: Dict[str, NodeState] = Field(default_factory=dict)
    started_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None
    steps: List[StepRecord] = Field(default_factory=list)

    @property
    def is_finished(self) -> bool:
        return self.status != ExecutionStatus.PENDING


class ExecutionResult(BaseModel):
    """What the graph executor hands back after a traversal."""

    state: RunState
    node_states: Dict[str, NodeState] = Field(default_factory=dict)
    step_results: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None
    failed_node: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.state == RunState.COMPLETED


class RunOutcome(BaseModel):
    """Structured result returned to callers of ``execute_workflow``."""

    success: bool
    execution_id: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None

