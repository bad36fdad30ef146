"""Action dispatch for ``action`` nodes."""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

from ..contracts import ActionType
from ..errors import PermanentError
from .base import ActionDispatcher, ActionHandler

logger = logging.getLogger(__name__)


class HandlerActionDispatcher(ActionDispatcher):
    """Route each action type to a registered async handler.

    Handlers receive the resolved config and return a JSON-compatible result
    (typically the id of the record they created).
    """

    def __init__(self, handlers: Optional[Mapping[ActionType | str, ActionHandler]] = None) -> None:
        self._handlers: Dict[ActionType, ActionHandler] = {}
        for action_type, handler in (handlers or {}).items():
            self.register(action_type, handler)

    def register(self, action_type: ActionType | str, handler: ActionHandler) -> None:
        self._handlers[ActionType(action_type)] = handler

    def supports(self, action_type: ActionType | str) -> bool:
        return ActionType(action_type) in self._handlers

    async def dispatch(self, action_type: ActionType, config: Dict[str, Any]) -> Any:
        action_type = ActionType(action_type)
        handler = self._handlers.get(action_type)
        if handler is None:
            raise PermanentError(f"No handler registered for action type {action_type.value}")
        logger.debug(f"Dispatching action {action_type.value}")
        return await handler(config)
