"""In-memory implementation of the execution store."""

from __future__ import annotations

import asyncio
import copy
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..contracts import WorkflowExecution
from ..errors import ClaimLost, StoreError
from .models import ExecutionRecord
from .repository import ExecutionStore


class InMemoryExecutionStore(ExecutionStore):
    """Store workflows and executions in local memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts. Snapshots are copied in and out so
    callers never share state with the store.
    """

    def __init__(self) -> None:
        self._workflows: Dict[str, Dict[str, Any]] = {}
        self._executions: Dict[str, ExecutionRecord] = {}
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Workflow definitions
    async def save_workflow(self, workflow_id: str, definition: Dict[str, Any]) -> None:
        self._workflows[workflow_id] = copy.deepcopy(definition)

    async def get_workflow(self, workflow_id: str) -> Optional[Dict[str, Any]]:
        definition = self._workflows.get(workflow_id)
        return copy.deepcopy(definition) if definition is not None else None

    async def list_workflows(self) -> List[Dict[str, Any]]:
        return [copy.deepcopy(definition) for definition in self._workflows.values()]

    async def delete_workflow(self, workflow_id: str) -> bool:
        return self._workflows.pop(workflow_id, None) is not None

    # ------------------------------------------------------------------
    # Executions
    async def create_execution(self, execution: WorkflowExecution) -> None:
        async with self._lock:
            if execution.id in self._executions:
                raise StoreError(f"Execution {execution.id} already exists")
            self._executions[execution.id] = ExecutionRecord(
                execution=execution.model_copy(deep=True)
            )

    async def get_execution(self, execution_id: str) -> Optional[WorkflowExecution]:
        record = self._executions.get(execution_id)
        return record.execution.model_copy(deep=True) if record else None

    async def list_executions(
        self, workflow_id: str, limit: Optional[int] = None
    ) -> List[WorkflowExecution]:
        matching = [
            record.execution
            for record in reversed(list(self._executions.values()))
            if record.execution.workflow_id == workflow_id
        ]
        matching.sort(key=lambda execution: execution.started_at, reverse=True)
        if limit is not None:
            matching = matching[:limit]
        return [execution.model_copy(deep=True) for execution in matching]

    async def list_due_for_resume(self, now: datetime, limit: int) -> List[str]:
        due = [record for record in self._executions.values() if record.is_due(now)]
        due.sort(key=lambda record: record.execution.resume_at or record.execution.started_at)
        return [record.execution.id for record in due[:limit]]

    async def load_by_claim(
        self,
        execution_id: str,
        owner: str,
        now: datetime,
        lease_seconds: float,
        due_only: bool = False,
    ) -> Optional[WorkflowExecution]:
        async with self._lock:
            record = self._executions.get(execution_id)
            if record is None or record.execution.is_terminal:
                return None
            if due_only and not record.is_due(now):
                return None
            if not record.claim_free(now):
                return None
            record.claim(owner, now, lease_seconds)
            return record.execution.model_copy(deep=True)

    async def save_execution(
        self,
        execution: WorkflowExecution,
        owner: str,
        lease_until: Optional[datetime] = None,
    ) -> None:
        async with self._lock:
            record = self._executions.get(execution.id)
            if record is None or record.claimed_by != owner:
                raise ClaimLost(execution.id, owner)
            record.execution = execution.model_copy(deep=True)
            if lease_until is not None:
                record.claimed_until = lease_until

    async def extend_claim(self, execution_id: str, owner: str, until: datetime) -> None:
        async with self._lock:
            record = self._executions.get(execution_id)
            if record is None or record.claimed_by != owner:
                raise ClaimLost(execution_id, owner)
            record.claimed_until = until

    async def release_claim(self, execution_id: str, owner: str) -> None:
        async with self._lock:
            record = self._executions.get(execution_id)
            if record is not None and record.claimed_by == owner:
                record.claimed_by = None
                record.claimed_until = None

    async def request_cancel(self, execution_id: str) -> bool:
        async with self._lock:
            record = self._executions.get(execution_id)
            if record is None or record.execution.is_terminal:
                return False
            record.cancel_requested = True
            return True

    async def is_cancel_requested(self, execution_id: str) -> bool:
        record = self._executions.get(execution_id)
        return bool(record and record.cancel_requested)
