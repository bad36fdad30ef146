"""Fan a CRM event out to the active workflows listening for it."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from .catalog import WorkflowCatalog
from .contracts import TriggerType, WorkflowStatus
from .engine import ExecutionEngine
from .errors import WorkflowNotActive, WorkflowNotFound

logger = logging.getLogger(__name__)


class TriggerRouter:
    """Start one execution per active workflow whose trigger matches an event."""

    def __init__(self, engine: ExecutionEngine, catalog: WorkflowCatalog | None = None):
        self.engine = engine
        self.catalog = catalog or WorkflowCatalog(engine.store)

    async def fire(
        self,
        trigger_type: TriggerType | str,
        payload: Optional[Dict[str, Any]] = None,
        workspace_id: Optional[str] = None,
    ) -> List[str]:
        trigger_type = TriggerType(trigger_type)
        workflows = await self.catalog.list(
            status=WorkflowStatus.ACTIVE,
            trigger_type=trigger_type,
            workspace_id=workspace_id,
        )
        execution_ids: List[str] = []
        for workflow in workflows:
            try:
                execution_id = await self.engine.start_execution(
                    workflow.id, payload or {}, workspace_id=workspace_id
                )
            except (WorkflowNotFound, WorkflowNotActive) as exc:
                # Deleted or paused between listing and starting.
                logger.warning(f"Skipping workflow {workflow.id} for {trigger_type.value}: {exc}")
                continue
            execution_ids.append(execution_id)
        logger.info(
            f"Event {trigger_type.value} started {len(execution_ids)} execution(s)"
        )
        return execution_ids
