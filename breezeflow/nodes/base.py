"""Base executor interface for workflow nodes."""

from __future__ import annotations

import abc
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Generic, Optional, TypeVar

from ..config import BreezeflowConfig
from ..contracts import WorkflowExecution
from ..templates import TemplateResolver
from ..utils.clock import Clock, utcnow

if TYPE_CHECKING:
    from ..collaborators.base import ActionDispatcher, AICaller

NodeT = TypeVar("NodeT")


class SideEffect(str, Enum):
    PURE = "pure"
    SUSPENDING = "suspending"
    EXTERNAL_CALL = "external_call"


@dataclass
class NodeResult:
    """What a node produced and where the run goes next."""

    output: Any = None
    next_handle: Optional[str] = None
    resume_at: Optional[datetime] = None
    tokens_used: int = 0
    model: Optional[str] = None


@dataclass
class NodeContext:
    """Collaborators and helpers available to executors for one step."""

    resolver: TemplateResolver
    config: BreezeflowConfig
    ai: Optional["AICaller"] = None
    actions: Optional["ActionDispatcher"] = None
    clock: Clock = utcnow


class NodeExecutor(Generic[NodeT], metaclass=abc.ABCMeta):
    """Runs one kind of node."""

    side_effect: SideEffect = SideEffect.PURE

    @abc.abstractmethod
    async def execute(
        self, node: NodeT, execution: WorkflowExecution, context: NodeContext
    ) -> NodeResult:
        """Produce the node's output. Must not mutate ``execution``."""
        raise NotImplementedError
