from __future__ import annotations

from datetime import timedelta

from ..contracts import DelayNode, WorkflowExecution
from ..errors import PermanentError
from ..utils.clock import ensure_utc, to_iso
from .base import NodeContext, NodeExecutor, NodeResult, SideEffect


class DelayExecutor(NodeExecutor[DelayNode]):
    """Compute when the run may continue; the engine persists and stops."""

    side_effect = SideEffect.SUSPENDING

    async def execute(
        self, node: DelayNode, execution: WorkflowExecution, context: NodeContext
    ) -> NodeResult:
        amount = node.data.amount
        unit = node.data.unit
        try:
            resume_at = ensure_utc(context.clock()) + timedelta(**{unit.value: amount})
        except OverflowError as exc:
            raise PermanentError(f"Delay of {amount} {unit.value} is out of range") from exc
        return NodeResult(
            output={"resume_at": to_iso(resume_at), "amount": amount, "unit": unit.value},
            resume_at=resume_at,
        )
