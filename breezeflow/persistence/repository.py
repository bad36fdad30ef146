"""Store abstraction for workflow definitions and execution state."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

from ..contracts import WorkflowExecution


class ExecutionStore(Protocol):
    """Protocol for execution persistence backends.

    Executions are written only by the holder of a claim. A claim is a lease
    (``claimed_by``/``claimed_until``) taken with a single compare-and-set, so
    two workers can never drive the same execution at once.
    """

    async def save_workflow(self, workflow_id: str, definition: Dict[str, Any]) -> None:
        """Insert or replace a workflow definition document."""

    async def get_workflow(self, workflow_id: str) -> Optional[Dict[str, Any]]:
        """Return the stored definition or ``None``."""

    async def list_workflows(self) -> List[Dict[str, Any]]:
        """Return all stored definitions."""

    async def delete_workflow(self, workflow_id: str) -> bool:
        """Remove a definition. Its executions are kept. Returns whether it existed."""

    async def create_execution(self, execution: WorkflowExecution) -> None:
        """Persist a new, unclaimed execution."""

    async def get_execution(self, execution_id: str) -> Optional[WorkflowExecution]:
        """Return the latest snapshot or ``None``."""

    async def list_executions(
        self, workflow_id: str, limit: Optional[int] = None
    ) -> List[WorkflowExecution]:
        """Executions of ``workflow_id``, newest first."""

    async def list_due_for_resume(self, now: datetime, limit: int) -> List[str]:
        """Ids of executions a worker may pick up at ``now``."""

    async def load_by_claim(
        self,
        execution_id: str,
        owner: str,
        now: datetime,
        lease_seconds: float,
        due_only: bool = False,
    ) -> Optional[WorkflowExecution]:
        """Atomically claim a non-terminal execution and return it, or ``None``."""

    async def save_execution(
        self,
        execution: WorkflowExecution,
        owner: str,
        lease_until: Optional[datetime] = None,
    ) -> None:
        """Persist ``execution``; raises ``ClaimLost`` if ``owner`` lost the claim."""

    async def extend_claim(self, execution_id: str, owner: str, until: datetime) -> None:
        """Push the lease to ``until``; raises ``ClaimLost`` if ``owner`` lost the claim."""

    async def release_claim(self, execution_id: str, owner: str) -> None:
        """Give up the claim if ``owner`` still holds it."""

    async def request_cancel(self, execution_id: str) -> bool:
        """Flag a non-terminal execution for cancellation."""

    async def is_cancel_requested(self, execution_id: str) -> bool:
        """Whether cancellation was requested for ``execution_id``."""
