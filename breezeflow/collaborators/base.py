"""Interfaces for the engine's external collaborators."""

from __future__ import annotations

import abc
import json
from typing import Any, Awaitable, Callable, Dict

from pydantic import BaseModel

from ..contracts import ActionType

ActionHandler = Callable[[Dict[str, Any]], Awaitable[Any]]


class AIRequest(BaseModel):
    instruction: str
    context: Any = None
    model: str


class AIResponse(BaseModel):
    text: str
    tokens_used: int = 0


def render_prompt(request: AIRequest) -> str:
    """Combine instruction and context into a single user prompt."""
    if request.context is None or request.context == "":
        return request.instruction
    if isinstance(request.context, str):
        context = request.context
    else:
        context = json.dumps(request.context, indent=2, default=str)
    return f"{request.instruction}\n\nContext:\n{context}"


class AICaller(metaclass=abc.ABCMeta):
    """Turns an instruction plus context into text."""

    @abc.abstractmethod
    async def invoke(self, request: AIRequest) -> AIResponse:
        """Run the model. Raise ``TransientError``/``PermanentError`` on failure."""
        raise NotImplementedError


class ActionDispatcher(metaclass=abc.ABCMeta):
    """Performs the side effect behind an action node."""

    @abc.abstractmethod
    async def dispatch(self, action_type: ActionType, config: Dict[str, Any]) -> Any:
        """Run ``action_type`` with fully resolved ``config`` and return a JSON result."""
        raise NotImplementedError
