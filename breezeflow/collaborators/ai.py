"""AI collaborator used by ``ai_processor`` nodes."""

from __future__ import annotations

import logging
from typing import Dict, Optional

from pydantic_ai import Agent
from pydantic_ai.exceptions import ModelHTTPError, UnexpectedModelBehavior, UserError

from ..config import AIConfig
from ..errors import PermanentError, TransientError
from .base import AICaller, AIRequest, AIResponse, render_prompt

logger = logging.getLogger(__name__)

SYSTEM_INSTRUCTIONS = (
    "You are an assistant embedded in a CRM workflow automation. "
    "Follow the instruction using only the supplied context and reply with the result only."
)


class PydanticAICaller(AICaller):
    """AI caller backed by ``pydantic_ai`` agents, one per model."""

    def __init__(self, config: Optional[AIConfig] = None) -> None:
        self._config = config or AIConfig()
        self._agents: Dict[str, Agent] = {}

    def qualify_model(self, model: str) -> str:
        """``gpt-4o`` -> ``openai:gpt-4o``; already qualified names pass through."""
        if ":" in model:
            return model
        return f"{self._config.provider}:{model}"

    def _agent(self, model: str) -> Agent:
        name = self.qualify_model(model)
        agent = self._agents.get(name)
        if agent is None:
            agent = Agent(name, instructions=SYSTEM_INSTRUCTIONS)
            self._agents[name] = agent
        return agent

    async def invoke(self, request: AIRequest) -> AIResponse:
        try:
            agent = self._agent(request.model)
            result = await agent.run(render_prompt(request))
        except ModelHTTPError as exc:
            if exc.status_code == 429 or exc.status_code >= 500:
                raise TransientError(
                    f"Model {request.model} returned HTTP {exc.status_code}"
                ) from exc
            raise PermanentError(
                f"Model {request.model} rejected the request: HTTP {exc.status_code}"
            ) from exc
        except UnexpectedModelBehavior as exc:
            raise TransientError(f"Model {request.model} misbehaved: {exc}") from exc
        except UserError as exc:
            raise PermanentError(f"Model {request.model} is misconfigured: {exc}") from exc

        usage = result.usage()
        tokens = getattr(usage, "total_tokens", None) or 0
        logger.debug(f"Model {request.model} used {tokens} tokens")
        return AIResponse(text=str(result.output), tokens_used=tokens)
