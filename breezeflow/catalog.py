"""Workflow definitions stored alongside their executions."""

from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, List, Optional

from .contracts import TriggerType, Workflow, WorkflowStatus
from .errors import WorkflowDefinitionError, WorkflowNotFound
from .graph import parse_workflow, validate_workflow
from .persistence import ExecutionStore

logger = logging.getLogger(__name__)


class WorkflowCatalog:
    """Create, look up and (de)activate workflow definitions."""

    def __init__(self, store: ExecutionStore):
        self._store = store

    async def save(self, workflow: Workflow) -> Workflow:
        await self._store.save_workflow(workflow.id, workflow.to_document())
        return workflow

    async def import_document(
        self, document: Dict[str, Any], workflow_id: Optional[str] = None
    ) -> Workflow:
        """Validate a definition (including its graph) and store it."""
        if workflow_id:
            document = {**document, "id": workflow_id}
        workflow = parse_workflow(document)
        validate_workflow(workflow)
        await self.save(workflow)
        logger.info(f"Imported workflow {workflow.id} ({workflow.name})")
        return workflow

    async def get(self, workflow_id: str) -> Workflow:
        document = await self._store.get_workflow(workflow_id)
        if document is None:
            raise WorkflowNotFound(f"Workflow {workflow_id} not found")
        return parse_workflow(document)

    async def list(
        self,
        status: Optional[WorkflowStatus] = None,
        trigger_type: Optional[TriggerType] = None,
        workspace_id: Optional[str] = None,
    ) -> List[Workflow]:
        workflows = []
        for document in await self._store.list_workflows():
            try:
                workflow = parse_workflow(document)
            except WorkflowDefinitionError as exc:
                logger.warning(f"Skipping unreadable workflow {document.get('id')}: {exc}")
                continue
            if status is not None and workflow.status != status:
                continue
            if trigger_type is not None and workflow.trigger_type != trigger_type:
                continue
            if workspace_id is not None and workflow.workspace_id != workspace_id:
                continue
            workflows.append(workflow)
        return workflows

    async def set_status(self, workflow_id: str, status: WorkflowStatus) -> Workflow:
        """Move a workflow to ``status``. Activation requires a valid graph."""
        workflow = await self.get(workflow_id)
        if status == WorkflowStatus.ACTIVE:
            validate_workflow(workflow)
        workflow.status = status
        await self.save(workflow)
        logger.info(f"Workflow {workflow_id} is now {status.value}")
        return workflow

    async def toggle(self, workflow_id: str) -> Workflow:
        """Pause an active workflow; activate anything else."""
        workflow = await self.get(workflow_id)
        if workflow.status == WorkflowStatus.ACTIVE:
            return await self.set_status(workflow_id, WorkflowStatus.PAUSED)
        return await self.set_status(workflow_id, WorkflowStatus.ACTIVE)

    async def duplicate(self, workflow_id: str, new_id: Optional[str] = None) -> Workflow:
        """Copy a workflow's graph into a new draft named ``"<name> (Copy)"``."""
        original = await self.get(workflow_id)
        clone = original.model_copy(
            deep=True,
            update={
                "id": new_id or str(uuid.uuid4()),
                "name": f"{original.name} (Copy)",
                "status": WorkflowStatus.DRAFT,
                "is_template": False,
            },
        )
        await self.save(clone)
        logger.info(f"Duplicated workflow {workflow_id} as {clone.id}")
        return clone

    async def delete(self, workflow_id: str) -> None:
        """Remove a definition. Its executions stay in the store for audit."""
        if not await self._store.delete_workflow(workflow_id):
            raise WorkflowNotFound(f"Workflow {workflow_id} not found")
        logger.info(f"Deleted workflow {workflow_id}")

    async def stats(self, workspace_id: Optional[str] = None) -> Dict[str, int]:
        """Workflow counts by status."""
        workflows = await self.list(workspace_id=workspace_id)
        counts = {status: 0 for status in WorkflowStatus}
        for workflow in workflows:
            counts[workflow.status] += 1
        return {
            "total": len(workflows),
            "active": counts[WorkflowStatus.ACTIVE],
            "paused": counts[WorkflowStatus.PAUSED],
            "draft": counts[WorkflowStatus.DRAFT],
        }
