"""Static graph checks and traversal for workflow definitions."""

from __future__ import annotations

from collections import defaultdict
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from .constants import CONDITION_NO, CONDITION_YES
from .contracts import NodeType, Workflow, WorkflowEdge
from .errors import WorkflowDefinitionError

BRANCH_HANDLES = (CONDITION_YES, CONDITION_NO)


def parse_workflow(document: Dict[str, Any]) -> Workflow:
    """Validate a stored definition, reporting problems as definition errors."""
    try:
        return Workflow.from_document(document)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        raise WorkflowDefinitionError(f"Invalid workflow definition: {problems}") from exc


class GraphWalker:
    """Answers "which node runs next" for a single workflow."""

    def __init__(self, workflow: Workflow) -> None:
        self.workflow = workflow
        self._outgoing: Dict[str, List[WorkflowEdge]] = defaultdict(list)
        self._incoming: Dict[str, List[WorkflowEdge]] = defaultdict(list)
        for edge in workflow.edges:
            self._outgoing[edge.source].append(edge)
            self._incoming[edge.target].append(edge)

    def outgoing(self, node_id: str) -> List[WorkflowEdge]:
        return list(self._outgoing.get(node_id, []))

    def entry_nodes(self) -> List[str]:
        return [node.id for node in self.workflow.nodes if not self._incoming.get(node.id)]

    def entry_node(self) -> str:
        """Return the single node without incoming edges."""
        entries = self.entry_nodes()
        if len(entries) != 1:
            raise WorkflowDefinitionError(
                f"Workflow {self.workflow.id} must have exactly one entry node, found {len(entries)}"
            )
        return entries[0]

    def next(self, current_node_id: str, handle: Optional[str] = None) -> Optional[str]:
        """Return the node to visit after ``current_node_id`` or ``None`` when terminal.

        Condition nodes only follow the edge carrying their computed handle; an
        un-wired branch ends the run. Other nodes follow their single edge,
        preferring one matching ``handle`` or without a handle when several exist.
        """
        edges = self._outgoing.get(current_node_id, [])
        if not edges:
            return None

        node = self.workflow.node(current_node_id)
        if node is not None and node.type == NodeType.CONDITION:
            for edge in edges:
                if edge.source_handle == handle:
                    return edge.target
            return None

        if len(edges) == 1:
            return edges[0].target
        for edge in edges:
            if edge.source_handle == handle:
                return edge.target
        for edge in edges:
            if edge.source_handle is None:
                return edge.target
        return None


def next_node(workflow: Workflow, current_node_id: str, handle: Optional[str] = None) -> Optional[str]:
    """Functional form of :meth:`GraphWalker.next`."""
    return GraphWalker(workflow).next(current_node_id, handle)


def validate_workflow(workflow: Workflow) -> GraphWalker:
    """Check structural invariants and return a walker for the workflow.

    Raises:
        WorkflowDefinitionError: describing the first problem found.
    """
    seen: set[str] = set()
    for node in workflow.nodes:
        if node.id in seen:
            raise WorkflowDefinitionError(f"Duplicate node id: {node.id}")
        seen.add(node.id)

    if not workflow.nodes:
        raise WorkflowDefinitionError(f"Workflow {workflow.id} has no nodes")

    for edge in workflow.edges:
        missing = [end for end in (edge.source, edge.target) if end not in seen]
        if missing:
            raise WorkflowDefinitionError(
                f"Dangling edge {edge.id or f'{edge.source}->{edge.target}'}: "
                f"unknown node(s) {', '.join(missing)}"
            )

    walker = GraphWalker(workflow)
    entry_id = walker.entry_node()
    entry = workflow.node(entry_id)
    if entry is None or entry.type != NodeType.TRIGGER:
        raise WorkflowDefinitionError(f"Entry node {entry_id} must be a trigger node")

    for node in workflow.nodes:
        edges = walker.outgoing(node.id)
        if node.type == NodeType.TRIGGER and node.id != entry_id:
            raise WorkflowDefinitionError(f"Trigger node {node.id} has incoming edges")
        if node.type == NodeType.CONDITION:
            handles = [edge.source_handle for edge in edges]
            invalid = [h for h in handles if h not in BRANCH_HANDLES]
            if invalid:
                raise WorkflowDefinitionError(
                    f"Condition node {node.id} has an edge without a yes/no handle"
                )
            if len(set(handles)) != len(handles):
                raise WorkflowDefinitionError(
                    f"Condition node {node.id} has several edges for the same branch"
                )
        elif len(edges) > 1:
            raise WorkflowDefinitionError(
                f"Node {node.id} has {len(edges)} outgoing edges; only condition nodes may branch"
            )

    _check_acyclic(workflow, walker)
    return walker


def _check_acyclic(workflow: Workflow, walker: GraphWalker) -> None:
    visiting: set[str] = set()
    done: set[str] = set()

    for start in (node.id for node in workflow.nodes):
        if start in done:
            continue
        stack = [(start, iter(walker.outgoing(start)))]
        visiting.add(start)
        while stack:
            node_id, edges = stack[-1]
            edge = next(edges, None)
            if edge is None:
                stack.pop()
                visiting.discard(node_id)
                done.add(node_id)
                continue
            if edge.target in visiting:
                raise WorkflowDefinitionError(
                    f"Cycle detected in workflow {workflow.id} at node {edge.target}"
                )
            if edge.target not in done:
                visiting.add(edge.target)
                stack.append((edge.target, iter(walker.outgoing(edge.target))))
