"""Bookkeeping models shared by the execution store backends."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from pydantic import BaseModel

from ..contracts import ExecutionStatus, WorkflowExecution

# Statuses the scheduler may pick up. ``waiting_approval`` is parked until a
# human acts on it, terminal statuses never run again.
RESUMABLE_STATUSES = frozenset(
    {ExecutionStatus.PENDING, ExecutionStatus.RUNNING, ExecutionStatus.PROCESSING_AI}
)


class ExecutionRecord(BaseModel):
    """An execution together with its claim lease and cancellation flag."""

    execution: WorkflowExecution
    claimed_by: Optional[str] = None
    claimed_until: Optional[datetime] = None
    cancel_requested: bool = False

    def claim_free(self, now: datetime) -> bool:
        return (
            self.claimed_by is None
            or self.claimed_until is None
            or self.claimed_until <= now
        )

    def is_due(self, now: datetime) -> bool:
        execution = self.execution
        if execution.status not in RESUMABLE_STATUSES or not self.claim_free(now):
            return False
        if execution.status == ExecutionStatus.PENDING:
            return True
        return execution.resume_at is None or execution.resume_at <= now

    def claim(self, owner: str, now: datetime, lease_seconds: float) -> None:
        self.claimed_by = owner
        self.claimed_until = now + timedelta(seconds=lease_seconds)
