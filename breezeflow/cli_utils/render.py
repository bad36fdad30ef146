"""Plain-text rendering of workflows and executions for the CLI."""

from __future__ import annotations

import json
from typing import Any, Dict, List

from breezeflow.contracts import Workflow, WorkflowExecution


def _format_workflow(workflow: Workflow) -> List[str]:
    lines = [
        f"Workflow {workflow.id}: {workflow.name} [{workflow.status.value}]",
        f"Trigger: {workflow.trigger_type.value if workflow.trigger_type else '(none)'}",
    ]
    if workflow.description:
        lines.append(f"Description: {workflow.description}")
    for node in workflow.nodes:
        label = node.data.label or node.type
        lines.append(f"- {node.id} ({node.type}): {label}")
    for edge in workflow.edges:
        handle = f" [{edge.source_handle}]" if edge.source_handle else ""
        lines.append(f"  {edge.source} -> {edge.target}{handle}")
    return lines


def _format_stats(stats: Dict[str, Any]) -> List[str]:
    return [f"{key}: {value}" for key, value in stats.items()]


def _format_execution(execution: WorkflowExecution) -> List[str]:
    lines = [
        f"Execution {execution.id}: {execution.status.value}",
        f"Workflow: {execution.workflow_id}",
        f"Started: {execution.started_at.isoformat()}",
    ]
    if execution.completed_at:
        lines.append(f"Completed: {execution.completed_at.isoformat()}")
    if execution.current_node_id:
        lines.append(f"Current node: {execution.current_node_id}")
    if execution.resume_at:
        lines.append(f"Resumes at: {execution.resume_at.isoformat()}")
    if execution.error_message:
        lines.append(f"Error: {execution.error_message}")
    if execution.ai_tokens_used:
        lines.append(f"AI tokens: {execution.ai_tokens_used} ({execution.ai_model_used})")
    for node_id in execution.execution_path:
        output = json.dumps(execution.node_outputs.get(node_id), default=str)
        lines.append(f"- {node_id}: {output}")
    return lines
