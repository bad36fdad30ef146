from __future__ import annotations

import logging

from ..contracts import ActionNode, WorkflowExecution
from ..errors import PermanentError
from .base import NodeContext, NodeExecutor, NodeResult, SideEffect

logger = logging.getLogger(__name__)


class ActionExecutor(NodeExecutor[ActionNode]):
    """Resolve the action config against earlier outputs and dispatch it."""

    side_effect = SideEffect.EXTERNAL_CALL

    async def execute(
        self, node: ActionNode, execution: WorkflowExecution, context: NodeContext
    ) -> NodeResult:
        if context.actions is None:
            raise PermanentError(f"No action dispatcher configured for node {node.id}")

        config = context.resolver.resolve_value(node.data.action_config)
        logger.info(
            f"Execution {execution.id} running action {node.data.action_type.value} at node {node.id}"
        )
        result = await context.actions.dispatch(node.data.action_type, config)
        return NodeResult(output=result)
