"""breezeflow: durable workflow automation for CRM events."""

from .catalog import WorkflowCatalog
from .conditions import evaluate_condition
from .contracts import (
    ExecutionStatus,
    NodeType,
    Workflow,
    WorkflowEdge,
    WorkflowExecution,
    WorkflowStatus,
)
from .engine import ExecutionEngine
from .graph import GraphWalker, next_node, validate_workflow
from .persistence import get_store
from .presets import get_preset, list_presets
from .scheduler import ExecutionScheduler
from .templates import TemplateResolver, resolve_template
from .triggers import TriggerRouter

__version__ = "0.1.0"
__all__ = [
    "ExecutionEngine",
    "ExecutionScheduler",
    "ExecutionStatus",
    "GraphWalker",
    "NodeType",
    "TemplateResolver",
    "TriggerRouter",
    "Workflow",
    "WorkflowCatalog",
    "WorkflowEdge",
    "WorkflowExecution",
    "WorkflowStatus",
    "evaluate_condition",
    "get_preset",
    "get_store",
    "list_presets",
    "next_node",
    "resolve_template",
    "validate_workflow",
]
