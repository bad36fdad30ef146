"""Node executors, one per node type."""

from __future__ import annotations

from typing import Dict

from ..contracts import NodeType
from .action import ActionExecutor
from .ai import AIProcessorExecutor, resolve_context
from .base import NodeContext, NodeExecutor, NodeResult, SideEffect
from .condition import ConditionExecutor
from .delay import DelayExecutor
from .trigger import TriggerExecutor

_EXECUTORS: Dict[NodeType, NodeExecutor] = {
    NodeType.TRIGGER: TriggerExecutor(),
    NodeType.ACTION: ActionExecutor(),
    NodeType.CONDITION: ConditionExecutor(),
    NodeType.AI_PROCESSOR: AIProcessorExecutor(),
    NodeType.DELAY: DelayExecutor(),
}


def get_executor(node_type: NodeType | str) -> NodeExecutor:
    """Return the executor registered for ``node_type``."""
    try:
        return _EXECUTORS[NodeType(node_type)]
    except (KeyError, ValueError) as exc:
        raise ValueError(f"Unsupported node type: {node_type}") from exc


__all__ = [
    "AIProcessorExecutor",
    "ActionExecutor",
    "ConditionExecutor",
    "DelayExecutor",
    "NodeContext",
    "NodeExecutor",
    "NodeResult",
    "SideEffect",
    "TriggerExecutor",
    "get_executor",
    "resolve_context",
]
