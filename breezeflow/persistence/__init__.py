"""Persistence layer for breezeflow workflows and executions."""

from __future__ import annotations

from typing import Optional

from ..config import BreezeflowConfig, load_config
from .inmemory import InMemoryExecutionStore
from .models import RESUMABLE_STATUSES, ExecutionRecord
from .postgres import PostgresExecutionStore
from .repository import ExecutionStore
from .sqlite import SQLiteExecutionStore

_store_instance: ExecutionStore | None = None


def create_store(database_url: Optional[str] = None) -> ExecutionStore:
    """Build a new store for ``database_url``; in-memory when it is empty.

    Supported schemes are ``sqlite://<path>`` and ``postgres(ql)://...``.
    """
    if not database_url:
        return InMemoryExecutionStore()
    if database_url.startswith("sqlite://"):
        return SQLiteExecutionStore(database_url.replace("sqlite://", "", 1))
    if database_url.startswith(("postgres://", "postgresql://")):
        return PostgresExecutionStore(database_url)
    raise ValueError(f"Unsupported database backend: {database_url}")


def get_store(
    database_url: Optional[str] = None, config: Optional[BreezeflowConfig] = None
) -> ExecutionStore:
    """Shared store for callers that do not inject one.

    The backend comes from ``database_url`` or the configuration
    (``database_url`` in the YAML file, ``BREEZEFLOW_DATABASE_URL`` or
    ``DATABASE_URL``). Passing either argument replaces the shared instance.
    """

    global _store_instance
    if _store_instance is not None and database_url is None and config is None:
        return _store_instance

    config = config or load_config()
    _store_instance = create_store(database_url or config.database_url)
    return _store_instance


__all__ = [
    "RESUMABLE_STATUSES",
    "ExecutionRecord",
    "ExecutionStore",
    "InMemoryExecutionStore",
    "PostgresExecutionStore",
    "SQLiteExecutionStore",
    "create_store",
    "get_store",
]
