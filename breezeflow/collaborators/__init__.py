"""External collaborators: the AI caller and the action dispatcher."""

from __future__ import annotations

from typing import Optional

from ..config import BreezeflowConfig, load_config
from ..contracts import ActionType
from .actions import HandlerActionDispatcher
from .ai import PydanticAICaller
from .base import ActionDispatcher, ActionHandler, AICaller, AIRequest, AIResponse, render_prompt
from .webhook import WebhookHandler


def get_ai_caller(config: Optional[BreezeflowConfig] = None) -> AICaller:
    """Factory for the configured AI caller."""
    config = config or load_config()
    return PydanticAICaller(config.ai)


def get_action_dispatcher(config: Optional[BreezeflowConfig] = None) -> HandlerActionDispatcher:
    """Dispatcher with the built-in handlers registered.

    Only ``webhook`` ships built in; CRM side effects (emails, tasks, deals)
    are registered by the host application via ``register``.
    """
    config = config or load_config()
    dispatcher = HandlerActionDispatcher()
    dispatcher.register(ActionType.WEBHOOK, WebhookHandler(timeout=config.actions.webhook_timeout))
    return dispatcher


__all__ = [
    "AICaller",
    "AIRequest",
    "AIResponse",
    "ActionDispatcher",
    "ActionHandler",
    "HandlerActionDispatcher",
    "PydanticAICaller",
    "WebhookHandler",
    "get_action_dispatcher",
    "get_ai_caller",
    "render_prompt",
]
