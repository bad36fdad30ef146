"""Execution engine: drives one workflow run at a time through its graph."""

from __future__ import annotations

import asyncio
import logging
import os
import socket
import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from .collaborators.base import ActionDispatcher, AICaller
from .config import BreezeflowConfig, load_config
from .constants import CONDITION_NO, CONDITION_YES, DEFAULT_EXECUTION_LIST_LIMIT
from .contracts import (
    TERMINAL_STATUSES,
    ExecutionStatus,
    NodeType,
    Workflow,
    WorkflowExecution,
    WorkflowNode,
    WorkflowStatus,
)
from .errors import (
    ExecutionNotFound,
    NodeFailed,
    PermanentError,
    StoreError,
    TransientError,
    WorkflowDefinitionError,
    WorkflowNotActive,
    WorkflowNotFound,
)
from .graph import GraphWalker, parse_workflow, validate_workflow
from .nodes import NodeContext, NodeExecutor, NodeResult, SideEffect, get_executor
from .persistence import ExecutionStore, get_store
from .templates import TemplateResolver
from .utils.clock import Clock, ensure_utc, utcnow
from .utils.retry import schedule_retry

logger = logging.getLogger(__name__)


def default_worker_id() -> str:
    return f"{socket.gethostname()}-{os.getpid()}-{uuid.uuid4().hex[:8]}"


class ExecutionEngine:
    """Run workflow executions and expose their status.

    Every step is persisted before the next one starts, so a run can stop at
    any point (delay, crash, cancellation) and be picked up again from the
    store. Writes happen only while this engine holds the execution's claim.
    """

    def __init__(
        self,
        store: ExecutionStore | None = None,
        ai: AICaller | None = None,
        actions: ActionDispatcher | None = None,
        config: BreezeflowConfig | None = None,
        clock: Clock | None = None,
        worker_id: str | None = None,
    ) -> None:
        self.config = config or load_config()
        self._store = store or get_store()
        self._ai = ai
        self._actions = actions
        self._clock = clock or utcnow
        self.worker_id = worker_id or default_worker_id()

    @property
    def store(self) -> ExecutionStore:
        return self._store

    def now(self) -> datetime:
        return ensure_utc(self._clock())

    # ------------------------------------------------------------------
    # Trigger source entry point
    async def start_execution(
        self,
        workflow_id: str,
        trigger_data: Dict[str, Any] | None = None,
        *,
        workspace_id: str | None = None,
        force: bool = False,
        run: bool = True,
    ) -> str:
        """Create an execution for ``workflow_id`` and, by default, run it.

        Raises:
            WorkflowNotFound: no definition is stored under ``workflow_id``.
            WorkflowNotActive: the workflow is not active and ``force`` is off.
        """
        document = await self._store.get_workflow(workflow_id)
        if document is None:
            raise WorkflowNotFound(f"Workflow {workflow_id} not found")
        status = document.get("status", WorkflowStatus.DRAFT.value)
        if status != WorkflowStatus.ACTIVE.value and not force:
            raise WorkflowNotActive(f"Workflow {workflow_id} is {status}, not active")

        now = self.now()
        execution = WorkflowExecution(
            workflow_id=workflow_id,
            workspace_id=workspace_id or document.get("workspace_id"),
            trigger_data=dict(trigger_data or {}),
            started_at=now,
        )

        try:
            _, walker = self._build(document)
            execution.current_node_id = walker.entry_node()
        except WorkflowDefinitionError as exc:
            execution.status = ExecutionStatus.FAILED
            execution.error_message = str(exc)
            execution.completed_at = now
            await self._store.create_execution(execution)
            logger.error(f"Execution {execution.id} of workflow {workflow_id} failed: {exc}")
            return execution.id

        await self._store.create_execution(execution)
        logger.info(f"Created execution {execution.id} for workflow {workflow_id}")
        if run:
            await self.run(execution.id)
        return execution.id

    # ------------------------------------------------------------------
    # Driving executions
    async def run(self, execution_id: str) -> Optional[WorkflowExecution]:
        """Drive ``execution_id`` until it suspends or finishes.

        Returns the latest snapshot, or ``None`` when another worker holds
        the execution.
        """
        return await self._claim_and_drive(execution_id, self.now(), due_only=False)

    async def resume(
        self, execution_id: str, now: datetime | None = None
    ) -> Optional[WorkflowExecution]:
        """Continue a due execution. Used by the scheduler."""
        now = ensure_utc(now) if now is not None else self.now()
        return await self._claim_and_drive(execution_id, now, due_only=True)

    async def _claim_and_drive(
        self, execution_id: str, now: datetime, due_only: bool
    ) -> Optional[WorkflowExecution]:
        execution = await self._store.load_by_claim(
            execution_id,
            self.worker_id,
            now,
            self.config.claim_ttl_seconds,
            due_only=due_only,
        )
        if execution is None:
            logger.debug(f"Execution {execution_id} not claimable by {self.worker_id}")
            return None
        try:
            return await self._drive(execution, now)
        finally:
            await self._store.release_claim(execution_id, self.worker_id)

    async def _drive(self, execution: WorkflowExecution, now: datetime) -> WorkflowExecution:
        document = await self._store.get_workflow(execution.workflow_id)
        if document is None:
            return await self._finish(
                execution,
                ExecutionStatus.FAILED,
                f"Workflow {execution.workflow_id} not found",
            )
        try:
            workflow, walker = self._build(document)
        except WorkflowDefinitionError as exc:
            return await self._finish(execution, ExecutionStatus.FAILED, str(exc))

        if execution.resume_at is not None:
            if execution.resume_at > now:
                logger.debug(
                    f"Execution {execution.id} suspended until {execution.resume_at.isoformat()}"
                )
                return execution
            execution.resume_at = None
            logger.info(f"Resuming execution {execution.id} at node {execution.current_node_id}")

        if execution.status == ExecutionStatus.PENDING:
            execution.status = ExecutionStatus.RUNNING
            await self._save(execution)
            logger.info(f"Execution {execution.id} started for workflow {workflow.id}")

        variables = workflow.output_variables()
        while execution.current_node_id is not None:
            if await self._store.is_cancel_requested(execution.id):
                return await self._finish(execution, ExecutionStatus.CANCELLED)

            node_id = execution.current_node_id
            node = workflow.node(node_id)
            if node is None:
                return await self._finish(
                    execution,
                    ExecutionStatus.FAILED,
                    f"Node {node_id} does not exist in workflow {workflow.id}",
                )

            if execution.has_visited(node_id):
                # Never run a node twice; follow the route it already chose.
                handle = _recorded_handle(node, execution.node_outputs.get(node_id))
                execution.current_node_id = walker.next(node_id, handle)
                await self._save(execution)
                continue

            if node.type == NodeType.AI_PROCESSOR:
                execution.status = ExecutionStatus.PROCESSING_AI
                await self._save(execution)

            context = NodeContext(
                resolver=TemplateResolver(execution.node_outputs, execution.trigger_data, variables),
                config=self.config,
                ai=self._ai,
                actions=self._actions,
                clock=self._clock,
            )
            try:
                result = await self._execute(get_executor(node.type), node, execution, context)
            except StoreError:
                raise
            except NodeFailed as exc:
                return await self._finish(
                    execution, ExecutionStatus.FAILED, f"Node {node_id} failed: {exc}"
                )
            except Exception as exc:
                logger.exception(f"Execution {execution.id} node {node_id} raised unexpectedly")
                return await self._finish(
                    execution,
                    ExecutionStatus.FAILED,
                    f"Node {node_id} failed: {type(exc).__name__}: {exc}",
                )

            cancelled = await self._store.is_cancel_requested(execution.id)
            execution.record_output(node_id, result.output)
            if result.tokens_used:
                execution.ai_tokens_used += result.tokens_used
            if result.model:
                execution.ai_model_used = result.model
            execution.status = ExecutionStatus.RUNNING
            if cancelled:
                return await self._finish(execution, ExecutionStatus.CANCELLED)

            next_id = walker.next(node_id, result.next_handle)
            execution.current_node_id = next_id
            logger.info(
                f"Execution {execution.id} completed node {node_id}"
                + (f", next {next_id}" if next_id else "")
            )
            suspend = result.resume_at is not None and result.resume_at > self.now()
            if suspend and next_id is not None:
                execution.resume_at = result.resume_at
                await self._save(execution)
                logger.info(
                    f"Execution {execution.id} suspended until {result.resume_at.isoformat()}"
                )
                return execution
            await self._save(execution)

        return await self._finish(execution, ExecutionStatus.COMPLETED)

    async def _execute(
        self,
        executor: NodeExecutor,
        node: WorkflowNode,
        execution: WorkflowExecution,
        context: NodeContext,
    ) -> NodeResult:
        if executor.side_effect != SideEffect.EXTERNAL_CALL:
            return await executor.execute(node, execution, context)

        retry = self.config.retry
        timeout = self.config.node_timeout_seconds
        attempt = 0
        while True:
            attempt += 1
            await self._store.extend_claim(execution.id, self.worker_id, self._lease_until())
            try:
                return await asyncio.wait_for(
                    executor.execute(node, execution, context), timeout=timeout
                )
            except (PermanentError, StoreError):
                raise
            except NodeFailed as exc:
                if not exc.retryable:
                    raise
                error: Exception = exc
            except asyncio.TimeoutError:
                error = TransientError(f"timed out after {timeout}s")
            except Exception as exc:
                # Collaborator errors outside the taxonomy count as transient.
                error = exc

            if attempt >= retry.max_attempts:
                raise NodeFailed(
                    f"{error} (gave up after {attempt} attempts)", retryable=False
                ) from error
            logger.warning(
                f"Execution {execution.id} node {node.id} attempt {attempt} failed: {error}; retrying"
            )
            await schedule_retry(
                attempt,
                base=retry.backoff_base,
                jitter=retry.jitter,
                max_delay=retry.max_delay,
            )

    def _lease_until(self) -> datetime:
        return self.now() + timedelta(seconds=self.config.claim_ttl_seconds)

    async def _save(self, execution: WorkflowExecution) -> None:
        await self._store.save_execution(execution, self.worker_id, lease_until=self._lease_until())

    async def _finish(
        self,
        execution: WorkflowExecution,
        status: ExecutionStatus,
        error: str | None = None,
    ) -> WorkflowExecution:
        execution.status = status
        execution.current_node_id = None
        execution.resume_at = None
        execution.completed_at = self.now()
        if error is not None:
            execution.error_message = error
        await self._save(execution)
        if status == ExecutionStatus.FAILED:
            logger.error(f"Execution {execution.id} failed: {error}")
        else:
            logger.info(f"Execution {execution.id} {status.value}")
        return execution

    @staticmethod
    def _build(document: Dict[str, Any]) -> Tuple[Workflow, GraphWalker]:
        workflow = parse_workflow(document)
        return workflow, validate_workflow(workflow)

    # ------------------------------------------------------------------
    # Status / consumer API
    async def get_execution(self, execution_id: str) -> WorkflowExecution:
        execution = await self._store.get_execution(execution_id)
        if execution is None:
            raise ExecutionNotFound(f"Execution {execution_id} not found")
        return execution

    async def list_executions(
        self, workflow_id: str, limit: int = DEFAULT_EXECUTION_LIST_LIMIT
    ) -> List[WorkflowExecution]:
        return await self._store.list_executions(workflow_id, limit)

    async def cancel(self, execution_id: str) -> WorkflowExecution:
        """Cancel an execution now, or at its next checkpoint if another worker runs it."""
        execution = await self.get_execution(execution_id)
        if execution.is_terminal:
            return execution

        claimed = await self._store.load_by_claim(
            execution_id, self.worker_id, self.now(), self.config.claim_ttl_seconds
        )
        if claimed is None:
            if await self._store.request_cancel(execution_id):
                logger.info(f"Cancellation requested for execution {execution_id}")
            return await self.get_execution(execution_id)
        try:
            return await self._finish(claimed, ExecutionStatus.CANCELLED)
        finally:
            await self._store.release_claim(execution_id, self.worker_id)

    async def workflow_stats(self, workflow_id: str) -> Dict[str, Any]:
        """Execution counters for one workflow."""
        executions = await self._store.list_executions(workflow_id)
        counts = {status: 0 for status in ExecutionStatus}
        for execution in executions:
            counts[execution.status] += 1
        last_run = max((execution.started_at for execution in executions), default=None)
        return {
            "total_executions": len(executions),
            "completed": counts[ExecutionStatus.COMPLETED],
            "failed": counts[ExecutionStatus.FAILED],
            "cancelled": counts[ExecutionStatus.CANCELLED],
            "in_progress": sum(
                count for status, count in counts.items() if status not in TERMINAL_STATUSES
            ),
            "ai_tokens_used": sum(execution.ai_tokens_used for execution in executions),
            "last_run_at": last_run.isoformat() if last_run else None,
        }


def _recorded_handle(node: WorkflowNode, output: Any) -> Optional[str]:
    if node.type == NodeType.CONDITION:
        return CONDITION_YES if output is True else CONDITION_NO
    return None
