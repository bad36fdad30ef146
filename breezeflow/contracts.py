"""Core contracts for the breezeflow workflow system.

A ``Workflow`` is a directed graph of typed nodes. A ``WorkflowExecution`` is
one run of that graph for one triggering event, persisted after every step.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from .utils.clock import ensure_utc, utcnow


def _alias(*names: str) -> AliasChoices:
    return AliasChoices(*names)


class WorkflowStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    PAUSED = "paused"
    ERROR = "error"


class NodeType(str, Enum):
    TRIGGER = "trigger"
    ACTION = "action"
    CONDITION = "condition"
    AI_PROCESSOR = "ai_processor"
    DELAY = "delay"


class TriggerType(str, Enum):
    CONTACT_CREATED = "contact_created"
    DEAL_STAGE_CHANGED = "deal_stage_changed"
    EMAIL_RECEIVED = "email_received"
    FORM_SUBMITTED = "form_submitted"
    MEETING_SCHEDULED = "meeting_scheduled"
    TASK_COMPLETED = "task_completed"


class ActionType(str, Enum):
    DRAFT_EMAIL = "draft_email"
    SEND_EMAIL = "send_email"
    UPDATE_FIELD = "update_field"
    CREATE_TASK = "create_task"
    CREATE_DEAL = "create_deal"
    SEND_NOTIFICATION = "send_notification"
    WEBHOOK = "webhook"


class ConditionOperator(str, Enum):
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    IS_EMPTY = "is_empty"
    IS_NOT_EMPTY = "is_not_empty"


class DelayUnit(str, Enum):
    MINUTES = "minutes"
    HOURS = "hours"
    DAYS = "days"


class ExecutionStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    PROCESSING_AI = "processing_ai"
    WAITING_APPROVAL = "waiting_approval"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = frozenset(
    {ExecutionStatus.COMPLETED, ExecutionStatus.FAILED, ExecutionStatus.CANCELLED}
)


# ---------------------------------------------------------------------------
# Node payloads
#
# Field names are snake_case; the camelCase names written by the visual editor
# are accepted on input so stored definitions load unchanged.


class NodeConfig(BaseModel):
    """Fields shared by every node payload."""

    model_config = ConfigDict(extra="ignore")

    label: str = ""
    description: Optional[str] = None


class TriggerConfig(NodeConfig):
    trigger_type: Optional[TriggerType] = Field(
        default=None, validation_alias=_alias("trigger_type", "triggerType")
    )
    trigger_conditions: Dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=_alias("trigger_conditions", "triggerConditions"),
    )


class ActionConfig(NodeConfig):
    action_type: ActionType = Field(validation_alias=_alias("action_type", "actionType"))
    action_config: Dict[str, Any] = Field(
        default_factory=dict, validation_alias=_alias("action_config", "actionConfig")
    )


class ConditionConfig(NodeConfig):
    field: str = Field(default="", validation_alias=_alias("field", "conditionField"))
    operator: ConditionOperator = Field(
        default=ConditionOperator.EQUALS,
        validation_alias=_alias("operator", "conditionOperator"),
    )
    value: str = Field(default="", validation_alias=_alias("value", "conditionValue"))

    @field_validator("value", mode="before")
    @classmethod
    def _coerce_value(cls, value: Any) -> Any:
        # Editors happily store numbers for numeric comparisons.
        if value is None:
            return ""
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value


class AIProcessorConfig(NodeConfig):
    instruction: str = ""
    context_source: str = Field(
        default="trigger_data",
        validation_alias=_alias("context_source", "contextSource"),
    )
    model: Optional[str] = None
    output_variable: Optional[str] = Field(
        default=None, validation_alias=_alias("output_variable", "outputVariable")
    )


class DelayConfig(NodeConfig):
    amount: int = Field(default=1, ge=0, validation_alias=_alias("amount", "delayAmount"))
    unit: DelayUnit = Field(
        default=DelayUnit.HOURS, validation_alias=_alias("unit", "delayUnit")
    )


class Position(BaseModel):
    x: float = 0
    y: float = 0


class _Node(BaseModel):
    id: str
    position: Optional[Position] = None


class TriggerNode(_Node):
    type: Literal["trigger"] = "trigger"
    data: TriggerConfig = Field(default_factory=TriggerConfig)


class ActionNode(_Node):
    type: Literal["action"] = "action"
    data: ActionConfig


class ConditionNode(_Node):
    type: Literal["condition"] = "condition"
    data: ConditionConfig = Field(default_factory=ConditionConfig)


class AIProcessorNode(_Node):
    type: Literal["ai_processor"] = "ai_processor"
    data: AIProcessorConfig = Field(default_factory=AIProcessorConfig)


class DelayNode(_Node):
    type: Literal["delay"] = "delay"
    data: DelayConfig = Field(default_factory=DelayConfig)


WorkflowNode = Annotated[
    Union[TriggerNode, ActionNode, ConditionNode, AIProcessorNode, DelayNode],
    Field(discriminator="type"),
]


class WorkflowEdge(BaseModel):
    """Directed connection between two nodes."""

    id: Optional[str] = None
    source: str
    target: str
    source_handle: Optional[str] = Field(
        default=None, validation_alias=_alias("source_handle", "sourceHandle")
    )
    target_handle: Optional[str] = Field(
        default=None, validation_alias=_alias("target_handle", "targetHandle")
    )
    label: Optional[str] = None


class Workflow(BaseModel):
    """A named automation definition. Read-only for the engine."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    workspace_id: Optional[str] = None
    user_id: Optional[str] = None
    name: str
    description: Optional[str] = None
    status: WorkflowStatus = WorkflowStatus.DRAFT
    trigger_type: Optional[TriggerType] = None
    nodes: List[WorkflowNode] = Field(default_factory=list)
    edges: List[WorkflowEdge] = Field(default_factory=list)
    is_template: bool = False

    def node(self, node_id: str) -> Optional[WorkflowNode]:
        """Return the node with ``node_id`` if present."""
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def output_variables(self) -> Dict[str, str]:
        """Map AI ``output_variable`` names to the id of the node declaring them."""
        return {
            node.data.output_variable: node.id
            for node in self.nodes
            if isinstance(node, AIProcessorNode) and node.data.output_variable
        }

    def to_document(self) -> Dict[str, Any]:
        """Serialize to a JSON-compatible dict for storage."""
        return self.model_dump(mode="json")

    @classmethod
    def from_document(cls, data: Dict[str, Any]) -> "Workflow":
        """Validate a stored definition."""
        return cls.model_validate(data)


class WorkflowExecution(BaseModel):
    """Durable state of one workflow run."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    workflow_id: str
    workspace_id: Optional[str] = None
    status: ExecutionStatus = ExecutionStatus.PENDING
    trigger_data: Dict[str, Any] = Field(default_factory=dict)
    current_node_id: Optional[str] = None
    execution_path: List[str] = Field(default_factory=list)
    node_outputs: Dict[str, Any] = Field(default_factory=dict)
    resume_at: Optional[datetime] = None
    error_message: Optional[str] = None
    ai_tokens_used: int = 0
    ai_model_used: Optional[str] = None
    started_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None

    @field_validator("resume_at", "started_at", "completed_at")
    @classmethod
    def _utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_suspended(self) -> bool:
        """Running but parked on a delay until ``resume_at``."""
        return self.status == ExecutionStatus.RUNNING and self.resume_at is not None

    @property
    def last_node_id(self) -> Optional[str]:
        return self.execution_path[-1] if self.execution_path else None

    def has_visited(self, node_id: str) -> bool:
        return node_id in self.execution_path

    def record_output(self, node_id: str, output: Any) -> None:
        """Append ``node_id`` to the audit path and store its output.

        Outputs are write-once: recording the same node twice is a bug in the
        caller, not something to paper over.
        """
        if node_id in self.node_outputs or node_id in self.execution_path:
            raise ValueError(f"Node {node_id} already recorded for execution {self.id}")
        self.execution_path.append(node_id)
        self.node_outputs[node_id] = output
