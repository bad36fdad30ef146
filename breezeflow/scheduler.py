"""In-process scheduler that resumes executions whose delay has elapsed."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import List, Optional

from .config import SchedulerConfig
from .engine import ExecutionEngine
from .utils.clock import ensure_utc

logger = logging.getLogger(__name__)


class ExecutionScheduler:
    """Polls the store for due executions and hands them to the engine.

    Overlapping scans are safe: the engine only drives an execution after
    claiming it, so an id seen by two scans is resumed once.
    """

    def __init__(self, engine: ExecutionEngine, config: SchedulerConfig | None = None):
        self.engine = engine
        self.config = config or engine.config.scheduler
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task | None = None

    @property
    def interval(self) -> float:
        return self.config.interval_seconds

    def start(self) -> None:
        """Start the polling loop as a background task."""
        if self._task and not self._task.done():
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self._run_loop())
        logger.info(f"Scheduler started (interval {self.interval}s)")

    async def stop(self) -> None:
        """Stop the polling loop and wait for the current scan to finish."""
        self._stop_event.set()
        if self._task:
            await self._task
            self._task = None
        logger.info("Scheduler stopped")

    async def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                await self.run_once()
            except Exception as exc:
                logger.exception(f"Scheduler scan failed: {exc}")
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass

    async def run_once(self, now: Optional[datetime] = None) -> List[str]:
        """Resume every execution due at ``now``; return the ids this scan advanced."""
        now = ensure_utc(now) if now is not None else self.engine.now()
        due = await self.engine.store.list_due_for_resume(now, self.config.batch_size)
        if not due:
            return []
        logger.debug(f"Scheduler found {len(due)} due execution(s)")

        semaphore = asyncio.Semaphore(self.config.max_concurrency)

        async def resume(execution_id: str) -> Optional[str]:
            async with semaphore:
                try:
                    result = await self.engine.resume(execution_id, now)
                except Exception as exc:
                    logger.exception(f"Resuming execution {execution_id} failed: {exc}")
                    return None
                return execution_id if result is not None else None

        results = await asyncio.gather(*(resume(execution_id) for execution_id in due))
        resumed = [execution_id for execution_id in results if execution_id is not None]
        if resumed:
            logger.info(f"Scheduler resumed {len(resumed)} execution(s)")
        return resumed
