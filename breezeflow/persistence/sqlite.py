"""SQLite implementation of the execution store."""

from __future__ import annotations

import asyncio
import json
import sqlite3
import threading
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..contracts import TERMINAL_STATUSES, ExecutionStatus, WorkflowExecution
from ..errors import ClaimLost, StoreError
from ..utils.clock import from_iso, to_iso, utcnow
from .models import RESUMABLE_STATUSES
from .repository import ExecutionStore

_TERMINAL = tuple(status.value for status in TERMINAL_STATUSES)
_RESUMABLE = tuple(status.value for status in RESUMABLE_STATUSES)
_CLAIM_FREE = "(claimed_by IS NULL OR claimed_until IS NULL OR claimed_until <= ?)"
_DUE = f"(status = '{ExecutionStatus.PENDING.value}' OR resume_at IS NULL OR resume_at <= ?)"

_COLUMNS = (
    "id, workflow_id, workspace_id, status, trigger_data, current_node_id, "
    "execution_path, node_outputs, resume_at, error_message, ai_tokens_used, "
    "ai_model_used, started_at, completed_at"
)


def _placeholders(values: tuple) -> str:
    return ", ".join("?" for _ in values)


class SQLiteExecutionStore(ExecutionStore):
    """Persist workflows and executions using SQLite.

    Timestamps are stored as fixed-width UTC ISO strings so that ``<=`` in SQL
    compares them chronologically.
    """

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS workflows (
                    id TEXT PRIMARY KEY,
                    definition TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS executions (
                    id TEXT PRIMARY KEY,
                    workflow_id TEXT NOT NULL,
                    workspace_id TEXT,
                    status TEXT NOT NULL,
                    trigger_data TEXT NOT NULL,
                    current_node_id TEXT,
                    execution_path TEXT NOT NULL,
                    node_outputs TEXT NOT NULL,
                    resume_at TEXT,
                    error_message TEXT,
                    ai_tokens_used INTEGER NOT NULL DEFAULT 0,
                    ai_model_used TEXT,
                    started_at TEXT NOT NULL,
                    completed_at TEXT,
                    claimed_by TEXT,
                    claimed_until TEXT,
                    cancel_requested INTEGER NOT NULL DEFAULT 0
                )
                """
            )
            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_executions_workflow "
                "ON executions (workflow_id, started_at)"
            )
            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_executions_resume "
                "ON executions (status, resume_at)"
            )
            self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _execute(self, query: str, *params: Any) -> int:
        with self._lock:
            cur = self._conn.cursor()
            try:
                cur.execute(query, params)
            except sqlite3.Error as exc:
                self._conn.rollback()
                raise StoreError(f"SQLite error: {exc}") from exc
            self._conn.commit()
            return cur.rowcount

    def _fetchone(self, query: str, *params: Any) -> sqlite3.Row | None:
        with self._lock:
            try:
                return self._conn.execute(query, params).fetchone()
            except sqlite3.Error as exc:
                raise StoreError(f"SQLite error: {exc}") from exc

    def _fetchall(self, query: str, *params: Any) -> list[sqlite3.Row]:
        with self._lock:
            try:
                return self._conn.execute(query, params).fetchall()
            except sqlite3.Error as exc:
                raise StoreError(f"SQLite error: {exc}") from exc

    @staticmethod
    def _row_to_execution(row: sqlite3.Row) -> WorkflowExecution:
        return WorkflowExecution(
            id=row["id"],
            workflow_id=row["workflow_id"],
            workspace_id=row["workspace_id"],
            status=row["status"],
            trigger_data=json.loads(row["trigger_data"]),
            current_node_id=row["current_node_id"],
            execution_path=json.loads(row["execution_path"]),
            node_outputs=json.loads(row["node_outputs"]),
            resume_at=from_iso(row["resume_at"]),
            error_message=row["error_message"],
            ai_tokens_used=row["ai_tokens_used"],
            ai_model_used=row["ai_model_used"],
            started_at=from_iso(row["started_at"]),
            completed_at=from_iso(row["completed_at"]),
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
            to_iso(execution.resume_at),
            execution.error_message,
            execution.ai_tokens_used,
            execution.ai_model_used,
            to_iso(execution.started_at),
            to_iso(execution.completed_at),
        )

    # ------------------------------------------------------------------
    # Workflow definitions
    async def save_workflow(self, workflow_id: str, definition: Dict[str, Any]) -> None:
        await asyncio.to_thread(
            self._execute,
            """
            INSERT INTO workflows (id, definition, updated_at) VALUES (?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                definition = excluded.definition,
                updated_at = excluded.updated_at
            """,
            workflow_id,
            json.dumps(definition),
            to_iso(utcnow()),
        )

    async def get_workflow(self, workflow_id: str) -> Optional[Dict[str, Any]]:
        row = await asyncio.to_thread(
            self._fetchone, "SELECT definition FROM workflows WHERE id = ?", workflow_id
        )
        return json.loads(row["definition"]) if row else None

    async def list_workflows(self) -> List[Dict[str, Any]]:
        rows = await asyncio.to_thread(
            self._fetchall, "SELECT definition FROM workflows ORDER BY rowid"
        )
        return [json.loads(row["definition"]) for row in rows]

    async def delete_workflow(self, workflow_id: str) -> bool:
        deleted = await asyncio.to_thread(
            self._execute, "DELETE FROM workflows WHERE id = ?", workflow_id
        )
        return deleted == 1

    # ------------------------------------------------------------------
    # Executions
    async def create_execution(self, execution: WorkflowExecution) -> None:
        await asyncio.to_thread(
            self._execute,
            f"INSERT INTO executions ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            execution.id,
            *self._execution_values(execution),
        )

    async def get_execution(self, execution_id: str) -> Optional[WorkflowExecution]:
        row = await asyncio.to_thread(
            self._fetchone, f"SELECT {_COLUMNS} FROM executions WHERE id = ?", execution_id
        )
        return self._row_to_execution(row) if row else None

    async def list_executions(
        self, workflow_id: str, limit: Optional[int] = None
    ) -> List[WorkflowExecution]:
        rows = await asyncio.to_thread(
            self._fetchall,
            f"""
            SELECT {_COLUMNS} FROM executions
            WHERE workflow_id = ?
            ORDER BY started_at DESC, rowid DESC
            LIMIT ?
            """,
            workflow_id,
            -1 if limit is None else limit,
        )
        return [self._row_to_execution(row) for row in rows]

    async def list_due_for_resume(self, now: datetime, limit: int) -> List[str]:
        stamp = to_iso(now)
        rows = await asyncio.to_thread(
            self._fetchall,
            f"""
            SELECT id FROM executions
            WHERE status IN ({_placeholders(_RESUMABLE)})
              AND {_CLAIM_FREE}
              AND {_DUE}
            ORDER BY COALESCE(resume_at, started_at)
            LIMIT ?
            """,
            *_RESUMABLE,
            stamp,
            stamp,
            limit,
        )
        return [row["id"] for row in rows]

    async def load_by_claim(
        self,
        execution_id: str,
        owner: str,
        now: datetime,
        lease_seconds: float,
        due_only: bool = False,
    ) -> Optional[WorkflowExecution]:
        stamp = to_iso(now)
        query = f"""
            UPDATE executions SET claimed_by = ?, claimed_until = ?
            WHERE id = ?
              AND status NOT IN ({_placeholders(_TERMINAL)})
              AND {_CLAIM_FREE}
        """
        params: list[Any] = [
            owner,
            to_iso(now + timedelta(seconds=lease_seconds)),
            execution_id,
            *_TERMINAL,
            stamp,
        ]
        if due_only:
            query += f" AND status IN ({_placeholders(_RESUMABLE)}) AND {_DUE}"
            params.extend([*_RESUMABLE, stamp])

        claimed = await asyncio.to_thread(self._execute, query, *params)
        if claimed != 1:
            return None
        return await self.get_execution(execution_id)

    async def save_execution(
        self,
        execution: WorkflowExecution,
        owner: str,
        lease_until: Optional[datetime] = None,
    ) -> None:
        updated = await asyncio.to_thread(
            self._execute,
            """
            UPDATE executions SET
                workflow_id = ?, workspace_id = ?, status = ?, trigger_data = ?,
                current_node_id = ?, execution_path = ?, node_outputs = ?,
                resume_at = ?, error_message = ?, ai_tokens_used = ?,
                ai_model_used = ?, started_at = ?, completed_at = ?,
                claimed_until = COALESCE(?, claimed_until)
            WHERE id = ? AND claimed_by = ?
            """,
            *self._execution_values(execution),
            to_iso(lease_until),
            execution.id,
            owner,
        )
        if updated != 1:
            raise ClaimLost(execution.id, owner)

    async def extend_claim(self, execution_id: str, owner: str, until: datetime) -> None:
        updated = await asyncio.to_thread(
            self._execute,
            "UPDATE executions SET claimed_until = ? WHERE id = ? AND claimed_by = ?",
            to_iso(until),
            execution_id,
            owner,
        )
        if updated != 1:
            raise ClaimLost(execution_id, owner)

    async def release_claim(self, execution_id: str, owner: str) -> None:
        await asyncio.to_thread(
            self._execute,
            "UPDATE executions SET claimed_by = NULL, claimed_until = NULL "
            "WHERE id = ? AND claimed_by = ?",
            execution_id,
            owner,
        )

    async def request_cancel(self, execution_id: str) -> bool:
        updated = await asyncio.to_thread(
            self._execute,
            f"UPDATE executions SET cancel_requested = 1 "
            f"WHERE id = ? AND status NOT IN ({_placeholders(_TERMINAL)})",
            execution_id,
            *_TERMINAL,
        )
        return updated == 1

    async def is_cancel_requested(self, execution_id: str) -> bool:
        row = await asyncio.to_thread(
            self._fetchone,
            "SELECT cancel_requested FROM executions WHERE id = ?",
            execution_id,
        )
        return bool(row and row["cancel_requested"])
