"""PostgreSQL implementation of the execution store."""

from __future__ import annotations

import json
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import asyncpg

from ..contracts import TERMINAL_STATUSES, ExecutionStatus, WorkflowExecution
from ..errors import ClaimLost, StoreError
from .models import RESUMABLE_STATUSES
from .repository import ExecutionStore

_TERMINAL = [status.value for status in TERMINAL_STATUSES]
_RESUMABLE = [status.value for status in RESUMABLE_STATUSES]

_COLUMNS = (
    "id, workflow_id, workspace_id, status, trigger_data, current_node_id, "
    "execution_path, node_outputs, resume_at, error_message, ai_tokens_used, "
    "ai_model_used, started_at, completed_at"
)


def _json(value: Any) -> Any:
    # asyncpg hands JSONB back as text unless a codec is registered.
    if isinstance(value, str):
        return json.loads(value)
    return value


class PostgresExecutionStore(ExecutionStore):
    """Persist workflows and executions using PostgreSQL."""

    def __init__(self, dsn: str):
        self._dsn = dsn
        self._initialized = False

    async def _connect(self) -> asyncpg.Connection:
        try:
            conn = await asyncpg.connect(self._dsn)
        except (OSError, asyncpg.PostgresError) as exc:
            raise StoreError(f"Cannot connect to PostgreSQL: {exc}") from exc
        if not self._initialized:
            await self._ensure_schema(conn)
            self._initialized = True
        return conn

    async def _ensure_schema(self, conn: asyncpg.Connection) -> None:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS breezeflow_workflows (
                id TEXT PRIMARY KEY,
                definition JSONB NOT NULL,
                updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
            )
            """
        )
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS breezeflow_executions (
                seq BIGSERIAL,
                id TEXT PRIMARY KEY,
                workflow_id TEXT NOT NULL,
                workspace_id TEXT,
                status TEXT NOT NULL,
                trigger_data JSONB NOT NULL,
                current_node_id TEXT,
                execution_path JSONB NOT NULL,
                node_outputs JSONB NOT NULL,
                resume_at TIMESTAMPTZ,
                error_message TEXT,
                ai_tokens_used INTEGER NOT NULL DEFAULT 0,
                ai_model_used TEXT,
                started_at TIMESTAMPTZ NOT NULL,
                completed_at TIMESTAMPTZ,
                claimed_by TEXT,
                claimed_until TIMESTAMPTZ,
                cancel_requested BOOLEAN NOT NULL DEFAULT FALSE
            )
            """
        )
        await conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_breezeflow_executions_resume "
            "ON breezeflow_executions (status, resume_at)"
        )

    @staticmethod
    def _row_to_execution(row: asyncpg.Record) -> WorkflowExecution:
        return WorkflowExecution(
            id=row["id"],
            workflow_id=row["workflow_id"],
            workspace_id=row["workspace_id"],
            status=row["status"],
            trigger_data=_json(row["trigger_data"]),
            current_node_id=row["current_node_id"],
            execution_path=_json(row["execution_path"]),
            node_outputs=_json(row["node_outputs"]),
            resume_at=row["resume_at"],
            error_message=row["error_message"],
            ai_tokens_used=row["ai_tokens_used"],
            ai_model_used=row["ai_model_used"],
            started_at=row["started_at"],
            completed_at=row["completed_at"],
        )

    @staticmethod
    def _execution_values(execution: WorkflowExecution) -> tuple:
        return (
            execution.workflow_id,
            execution.workspace_id,
            execution.status.value,
            json.dumps(execution.trigger_data, default=str),
            execution.current_node_id,
            json.dumps(execution.execution_path),
            json.dumps(execution.node_outputs, default=str),
            execution.resume_at,
            execution.error_message,
            execution.ai_tokens_used,
            execution.ai_model_used,
            execution.started_at,
            execution.completed_at,
        )

    # ------------------------------------------------------------------
    # Workflow definitions
    async def save_workflow(self, workflow_id: str, definition: Dict[str, Any]) -> None:
        conn = await self._connect()
        try:
            await conn.execute(
                """
                INSERT INTO breezeflow_workflows (id, definition) VALUES ($1, $2)
                ON CONFLICT (id) DO UPDATE SET definition = EXCLUDED.definition, updated_at = now()
                """,
                workflow_id,
                json.dumps(definition),
            )
        finally:
            await conn.close()

    async def get_workflow(self, workflow_id: str) -> Optional[Dict[str, Any]]:
        conn = await self._connect()
        try:
            row = await conn.fetchrow(
                "SELECT definition FROM breezeflow_workflows WHERE id = $1", workflow_id
            )
        finally:
            await conn.close()
        return _json(row["definition"]) if row else None

    async def list_workflows(self) -> List[Dict[str, Any]]:
        conn = await self._connect()
        try:
            rows = await conn.fetch("SELECT definition FROM breezeflow_workflows ORDER BY id")
        finally:
            await conn.close()
        return [_json(row["definition"]) for row in rows]

    async def delete_workflow(self, workflow_id: str) -> bool:
        conn = await self._connect()
        try:
            row = await conn.fetchrow(
                "DELETE FROM breezeflow_workflows WHERE id = $1 RETURNING id", workflow_id
            )
        finally:
            await conn.close()
        return row is not None

    # ------------------------------------------------------------------
    # Executions
    async def create_execution(self, execution: WorkflowExecution) -> None:
        conn = await self._connect()
        try:
            await conn.execute(
                f"""
                INSERT INTO breezeflow_executions ({_COLUMNS})
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14)
                """,
                execution.id,
                *self._execution_values(execution),
            )
        except asyncpg.UniqueViolationError as exc:
            raise StoreError(f"Execution {execution.id} already exists") from exc
        finally:
            await conn.close()

    async def get_execution(self, execution_id: str) -> Optional[WorkflowExecution]:
        conn = await self._connect()
        try:
            row = await conn.fetchrow(
                f"SELECT {_COLUMNS} FROM breezeflow_executions WHERE id = $1", execution_id
            )
        finally:
            await conn.close()
        return self._row_to_execution(row) if row else None

    async def list_executions(
        self, workflow_id: str, limit: Optional[int] = None
    ) -> List[WorkflowExecution]:
        conn = await self._connect()
        try:
            rows = await conn.fetch(
                f"""
                SELECT {_COLUMNS} FROM breezeflow_executions
                WHERE workflow_id = $1
                ORDER BY started_at DESC, seq DESC
                LIMIT $2
                """,
                workflow_id,
                limit,
            )
        finally:
            await conn.close()
        return [self._row_to_execution(row) for row in rows]

    async def list_due_for_resume(self, now: datetime, limit: int) -> List[str]:
        conn = await self._connect()
        try:
            rows = await conn.fetch(
                """
                SELECT id FROM breezeflow_executions
                WHERE status = ANY($1::text[])
                  AND (claimed_by IS NULL OR claimed_until IS NULL OR claimed_until <= $2)
                  AND (status = $3 OR resume_at IS NULL OR resume_at <= $2)
                ORDER BY COALESCE(resume_at, started_at)
                LIMIT $4
                """,
                _RESUMABLE,
                now,
                ExecutionStatus.PENDING.value,
                limit,
            )
        finally:
            await conn.close()
        return [row["id"] for row in rows]

    async def load_by_claim(
        self,
        execution_id: str,
        owner: str,
        now: datetime,
        lease_seconds: float,
        due_only: bool = False,
    ) -> Optional[WorkflowExecution]:
        query = """
            UPDATE breezeflow_executions SET claimed_by = $1, claimed_until = $2
            WHERE id = $3
              AND NOT (status = ANY($4::text[]))
              AND (claimed_by IS NULL OR claimed_until IS NULL OR claimed_until <= $5)
        """
        params: list[Any] = [
            owner,
            now + timedelta(seconds=lease_seconds),
            execution_id,
            _TERMINAL,
            now,
        ]
        if due_only:
            query += (
                " AND status = ANY($6::text[])"
                " AND (status = $7 OR resume_at IS NULL OR resume_at <= $5)"
            )
            params.extend([_RESUMABLE, ExecutionStatus.PENDING.value])
        query += f" RETURNING {_COLUMNS}"

        conn = await self._connect()
        try:
            row = await conn.fetchrow(query, *params)
        finally:
            await conn.close()
        return self._row_to_execution(row) if row else None

    async def save_execution(
        self,
        execution: WorkflowExecution,
        owner: str,
        lease_until: Optional[datetime] = None,
    ) -> None:
        conn = await self._connect()
        try:
            row = await conn.fetchrow(
                """
                UPDATE breezeflow_executions SET
                    workflow_id = $1, workspace_id = $2, status = $3, trigger_data = $4,
                    current_node_id = $5, execution_path = $6, node_outputs = $7,
                    resume_at = $8, error_message = $9, ai_tokens_used = $10,
                    ai_model_used = $11, started_at = $12, completed_at = $13,
                    claimed_until = COALESCE($14, claimed_until)
                WHERE id = $15 AND claimed_by = $16
                RETURNING id
                """,
                *self._execution_values(execution),
                lease_until,
                execution.id,
                owner,
            )
        finally:
            await conn.close()
        if row is None:
            raise ClaimLost(execution.id, owner)

    async def extend_claim(self, execution_id: str, owner: str, until: datetime) -> None:
        conn = await self._connect()
        try:
            row = await conn.fetchrow(
                """
                UPDATE breezeflow_executions SET claimed_until = $1
                WHERE id = $2 AND claimed_by = $3
                RETURNING id
                """,
                until,
                execution_id,
                owner,
            )
        finally:
            await conn.close()
        if row is None:
            raise ClaimLost(execution_id, owner)

    async def release_claim(self, execution_id: str, owner: str) -> None:
        conn = await self._connect()
        try:
            await conn.execute(
                "UPDATE breezeflow_executions SET claimed_by = NULL, claimed_until = NULL "
                "WHERE id = $1 AND claimed_by = $2",
                execution_id,
                owner,
            )
        finally:
            await conn.close()

    async def request_cancel(self, execution_id: str) -> bool:
        conn = await self._connect()
        try:
            row = await conn.fetchrow(
                "UPDATE breezeflow_executions SET cancel_requested = TRUE "
                "WHERE id = $1 AND NOT (status = ANY($2::text[])) RETURNING id",
                execution_id,
                _TERMINAL,
            )
        finally:
            await conn.close()
        return row is not None

    async def is_cancel_requested(self, execution_id: str) -> bool:
        conn = await self._connect()
        try:
            value = await conn.fetchval(
                "SELECT cancel_requested FROM breezeflow_executions WHERE id = $1",
                execution_id,
            )
        finally:
            await conn.close()
        return bool(value)
