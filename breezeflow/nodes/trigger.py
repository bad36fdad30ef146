from __future__ import annotations

from ..contracts import TriggerNode, WorkflowExecution
from .base import NodeContext, NodeExecutor, NodeResult, SideEffect


class TriggerExecutor(NodeExecutor[TriggerNode]):
    """Entry point: the output is the event payload itself."""

    side_effect = SideEffect.PURE

    async def execute(
        self, node: TriggerNode, execution: WorkflowExecution, context: NodeContext
    ) -> NodeResult:
        return NodeResult(output=dict(execution.trigger_data))
