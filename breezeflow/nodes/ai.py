from __future__ import annotations

from typing import Any

from ..collaborators.base import AIRequest
from ..constants import PREVIOUS_NODE_SOURCE, TRIGGER_SOURCES
from ..contracts import AIProcessorNode, WorkflowExecution
from ..errors import PermanentError
from .base import NodeContext, NodeExecutor, NodeResult, SideEffect


def resolve_context(source: str, execution: WorkflowExecution, context: NodeContext) -> Any:
    """Turn a ``context_source`` into the data slice handed to the model.

    ``trigger_data`` is the whole event, ``previous_node`` the output of the
    last node that ran, anything else a path such as ``deal.call_notes``. A
    comma-separated list yields a mapping keyed by source.
    """
    sources = [part.strip() for part in (source or "").split(",") if part.strip()]
    if not sources:
        return None

    def one(name: str) -> Any:
        if name in TRIGGER_SOURCES:
            return execution.trigger_data
        if name == PREVIOUS_NODE_SOURCE:
            last = execution.last_node_id
            return execution.node_outputs.get(last) if last else None
        return context.resolver.lookup(name)

    if len(sources) == 1:
        return one(sources[0])
    return {name: one(name) for name in sources}


class AIProcessorExecutor(NodeExecutor[AIProcessorNode]):
    """Ask the AI collaborator to process data from earlier steps."""

    side_effect = SideEffect.EXTERNAL_CALL

    async def execute(
        self, node: AIProcessorNode, execution: WorkflowExecution, context: NodeContext
    ) -> NodeResult:
        if context.ai is None:
            raise PermanentError(f"No AI caller configured for node {node.id}")

        config = node.data
        model = config.model or context.config.ai.default_model
        request = AIRequest(
            instruction=context.resolver.resolve(config.instruction),
            context=resolve_context(config.context_source, execution, context),
            model=model,
        )
        response = await context.ai.invoke(request)

        output = {"output": response.text}
        if config.output_variable:
            output[config.output_variable] = response.text
        return NodeResult(output=output, tokens_used=response.tokens_used, model=model)
