"""Tests for graph validation and traversal."""

import pytest

from breezeflow.contracts import Workflow
from breezeflow.errors import WorkflowDefinitionError
from breezeflow.graph import GraphWalker, next_node, parse_workflow, validate_workflow
from fakes import branching_workflow, linear_workflow


def _workflow(document):
    return parse_workflow(document)


def test_linear_walk():
    workflow = _workflow(
        linear_workflow(
            {"id": "a", "type": "delay", "data": {"amount": 1}},
            {"id": "b", "type": "action", "data": {"actionType": "create_task"}},
        )
    )
    walker = validate_workflow(workflow)
    assert walker.entry_node() == "trigger"
    assert walker.next("trigger") == "a"
    assert walker.next("a") == "b"
    assert walker.next("b") is None


def test_condition_follows_matching_handle_only():
    workflow = _workflow(branching_workflow())
    walker = validate_workflow(workflow)
    assert walker.next("condition", "yes") == "action"
    assert walker.next("condition", "no") is None
    assert walker.next("condition") is None
    assert next_node(workflow, "condition", "yes") == "action"


def test_non_condition_prefers_unhandled_edge_when_ambiguous():
    workflow = Workflow.model_validate(
        {
            "name": "loose",
            "nodes": [
                {"id": "t", "type": "trigger"},
                {"id": "x", "type": "delay"},
                {"id": "y", "type": "delay"},
            ],
            "edges": [
                {"source": "t", "target": "x", "sourceHandle": "left"},
                {"source": "t", "target": "y"},
            ],
        }
    )
    walker = GraphWalker(workflow)
    assert walker.next("t") == "y"
    assert walker.next("t", "left") == "x"


def _expect_invalid(document, message):
    with pytest.raises(WorkflowDefinitionError, match=message):
        validate_workflow(parse_workflow(document))


def test_rejects_dangling_edge():
    document = linear_workflow({"id": "a", "type": "delay"})
    document["edges"].append({"id": "bad", "source": "a", "target": "ghost"})
    _expect_invalid(document, "Dangling edge bad")


def test_rejects_duplicate_ids():
    document = linear_workflow({"id": "a", "type": "delay"})
    document["nodes"].append({"id": "a", "type": "delay"})
    _expect_invalid(document, "Duplicate node id: a")


def test_rejects_several_entry_nodes():
    document = linear_workflow({"id": "a", "type": "delay"})
    document["nodes"].append({"id": "orphan", "type": "delay"})
    _expect_invalid(document, "exactly one entry node")


def test_rejects_non_trigger_entry():
    document = {
        "name": "no trigger",
        "nodes": [{"id": "a", "type": "delay"}, {"id": "b", "type": "delay"}],
        "edges": [{"source": "a", "target": "b"}],
    }
    _expect_invalid(document, "must be a trigger")


def test_rejects_cycles():
    document = linear_workflow({"id": "a", "type": "delay"}, {"id": "b", "type": "delay"})
    document["edges"].append({"id": "back", "source": "b", "target": "a"})
    _expect_invalid(document, "Cycle detected")


def test_rejects_fan_out_from_plain_nodes():
    document = linear_workflow({"id": "a", "type": "delay"}, {"id": "b", "type": "delay"})
    document["nodes"].append({"id": "c", "type": "delay"})
    document["edges"].append({"id": "fan", "source": "a", "target": "c"})
    _expect_invalid(document, "only condition nodes may branch")


def test_rejects_condition_edges_without_handles():
    document = branching_workflow()
    document["edges"][1].pop("sourceHandle")
    _expect_invalid(document, "without a yes/no handle")


def test_rejects_duplicate_condition_branches():
    document = branching_workflow()
    document["nodes"].append({"id": "other", "type": "delay"})
    document["edges"].append(
        {"id": "e3", "source": "condition", "target": "other", "sourceHandle": "yes"}
    )
    _expect_invalid(document, "several edges for the same branch")


def test_unknown_node_type_is_definition_error():
    document = linear_workflow({"id": "a", "type": "teleport", "data": {}})
    with pytest.raises(WorkflowDefinitionError, match="Invalid workflow definition"):
        parse_workflow(document)


def test_action_without_type_is_definition_error():
    document = linear_workflow({"id": "a", "type": "action", "data": {"actionConfig": {}}})
    with pytest.raises(WorkflowDefinitionError):
        parse_workflow(document)
