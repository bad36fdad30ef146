from __future__ import annotations

from ..conditions import evaluate_condition
from ..constants import CONDITION_NO, CONDITION_YES
from ..contracts import ConditionNode, WorkflowExecution
from ..templates import contains_templates
from .base import NodeContext, NodeExecutor, NodeResult, SideEffect


class ConditionExecutor(NodeExecutor[ConditionNode]):
    """Evaluate the node's comparison and pick the ``yes`` or ``no`` branch."""

    side_effect = SideEffect.PURE

    async def execute(
        self, node: ConditionNode, execution: WorkflowExecution, context: NodeContext
    ) -> NodeResult:
        config = node.data
        resolver = context.resolver
        # ``field`` is either a template ("Hi {{contact.name}}") or a bare path ("contact.name").
        if contains_templates(config.field):
            left = resolver.resolve(config.field)
        else:
            left = resolver.lookup(config.field) if config.field else None
        right = resolver.resolve(config.value)

        passed = evaluate_condition(left, config.operator, right)
        return NodeResult(
            output=passed,
            next_handle=CONDITION_YES if passed else CONDITION_NO,
        )
