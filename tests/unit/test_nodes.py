"""Tests for the individual node executors."""

from datetime import timedelta

import pytest

from breezeflow.contracts import (
    ActionNode,
    AIProcessorNode,
    ConditionNode,
    DelayNode,
    TriggerNode,
    WorkflowExecution,
)
from breezeflow.errors import PermanentError
from breezeflow.nodes import (
    NodeContext,
    SideEffect,
    get_executor,
    resolve_context,
)
from breezeflow.templates import TemplateResolver
from fakes import T0, FakeClock, RecordingDispatcher, ScriptedAI, fast_config


def _execution(**kwargs):
    defaults = {
        "workflow_id": "wf",
        "trigger_data": {"contact": {"name": "Ada", "score": "72"}, "email_body": "Too pricey"},
    }
    defaults.update(kwargs)
    return WorkflowExecution(**defaults)


def _context(execution, ai=None, actions=None, variables=None):
    return NodeContext(
        resolver=TemplateResolver(execution.node_outputs, execution.trigger_data, variables),
        config=fast_config(),
        ai=ai,
        actions=actions,
        clock=FakeClock(),
    )


def test_registry_side_effects():
    assert get_executor("trigger").side_effect == SideEffect.PURE
    assert get_executor("condition").side_effect == SideEffect.PURE
    assert get_executor("delay").side_effect == SideEffect.SUSPENDING
    assert get_executor("ai_processor").side_effect == SideEffect.EXTERNAL_CALL
    assert get_executor("action").side_effect == SideEffect.EXTERNAL_CALL
    with pytest.raises(ValueError):
        get_executor("teleport")


@pytest.mark.asyncio
async def test_trigger_outputs_trigger_data():
    execution = _execution()
    result = await get_executor("trigger").execute(
        TriggerNode(id="t"), execution, _context(execution)
    )
    assert result.output == execution.trigger_data
    assert result.next_handle is None


@pytest.mark.asyncio
async def test_condition_sets_branch_handle():
    execution = _execution()
    node = ConditionNode.model_validate(
        {"id": "c", "data": {"field": "contact.score", "operator": "greater_than", "value": "50"}}
    )
    result = await get_executor("condition").execute(node, execution, _context(execution))
    assert result.output is True
    assert result.next_handle == "yes"

    node = ConditionNode.model_validate(
        {"id": "c", "data": {"field": "{{contact.name}}", "operator": "equals", "value": "Bob"}}
    )
    result = await get_executor("condition").execute(node, execution, _context(execution))
    assert result.output is False
    assert result.next_handle == "no"


@pytest.mark.asyncio
async def test_delay_computes_resume_time_from_clock():
    execution = _execution()
    node = DelayNode.model_validate({"id": "d", "data": {"amount": 2, "unit": "hours"}})
    result = await get_executor("delay").execute(node, execution, _context(execution))
    assert result.resume_at == T0 + timedelta(seconds=7200)
    assert result.output == {"resume_at": result.resume_at.isoformat(timespec="microseconds"), "amount": 2, "unit": "hours"}


@pytest.mark.asyncio
async def test_ai_processor_resolves_instruction_and_context():
    ai = ScriptedAI("Hi Ada!", tokens=42)
    execution = _execution()
    node = AIProcessorNode.model_validate(
        {
            "id": "ai-1",
            "data": {
                "instruction": "Greet {{contact.name}}",
                "contextSource": "contact",
                "outputVariable": "greeting",
                "model": "gpt-4o",
            },
        }
    )
    result = await get_executor("ai_processor").execute(node, execution, _context(execution, ai=ai))
    assert result.output == {"output": "Hi Ada!", "greeting": "Hi Ada!"}
    assert result.tokens_used == 42
    assert result.model == "gpt-4o"
    request = ai.requests[0]
    assert request.instruction == "Greet Ada"
    assert request.context == {"name": "Ada", "score": "72"}


@pytest.mark.asyncio
async def test_ai_processor_defaults_model_from_config():
    ai = ScriptedAI("x")
    execution = _execution()
    node = AIProcessorNode.model_validate({"id": "ai-1", "data": {"instruction": "Go"}})
    result = await get_executor("ai_processor").execute(node, execution, _context(execution, ai=ai))
    assert result.model == "gpt-4o-mini"
    assert ai.requests[0].context == execution.trigger_data


@pytest.mark.asyncio
async def test_ai_processor_without_caller_is_permanent_failure():
    execution = _execution()
    node = AIProcessorNode.model_validate({"id": "ai-1", "data": {"instruction": "Go"}})
    with pytest.raises(PermanentError):
        await get_executor("ai_processor").execute(node, execution, _context(execution))


def test_context_sources():
    execution = _execution()
    execution.record_output("trigger", execution.trigger_data)
    execution.record_output("ai-1", {"output": "classified", "intent": "classified"})
    context = _context(execution, variables={"intent": "ai-1"})

    assert resolve_context("previous_node", execution, context) == {"output": "classified", "intent": "classified"}
    assert resolve_context("email_body", execution, context) == "Too pricey"
    assert resolve_context("email_body, intent", execution, context) == {
        "email_body": "Too pricey",
        "intent": "classified",
    }
    assert resolve_context("", execution, context) is None


@pytest.mark.asyncio
async def test_action_resolves_config_and_dispatches():
    actions = RecordingDispatcher()
    execution = _execution()
    node = ActionNode.model_validate(
        {
            "id": "a",
            "data": {
                "actionType": "create_task",
                "actionConfig": {"title": "Call {{contact.name}}", "contact": "{{contact}}"},
            },
        }
    )
    result = await get_executor("action").execute(node, execution, _context(execution, actions=actions))
    assert result.output == {"id": "create_task-1"}
    assert actions.calls == [
        ("create_task", {"title": "Call Ada", "contact": {"name": "Ada", "score": "72"}})
    ]


@pytest.mark.asyncio
async def test_action_without_dispatcher_is_permanent_failure():
    execution = _execution()
    node = ActionNode.model_validate({"id": "a", "data": {"actionType": "send_email"}})
    with pytest.raises(PermanentError):
        await get_executor("action").execute(node, execution, _context(execution))


@pytest.mark.asyncio
async def test_delay_beyond_the_calendar_is_permanent():
    execution = _execution()
    node = DelayNode.model_validate({"id": "d", "data": {"amount": 5_000_000, "unit": "days"}})
    with pytest.raises(PermanentError, match="out of range"):
        await get_executor("delay").execute(node, execution, _context(execution))
