"""Tests for the AI caller and action dispatcher adapters."""

import json

import httpx
import pytest
from pydantic_ai import Agent
from pydantic_ai.exceptions import ModelHTTPError
from pydantic_ai.models.test import TestModel as ScriptModel

from breezeflow.collaborators import (
    AIRequest,
    HandlerActionDispatcher,
    PydanticAICaller,
    WebhookHandler,
    get_action_dispatcher,
    render_prompt,
)
from breezeflow.config import AIConfig, BreezeflowConfig
from breezeflow.contracts import ActionType
from breezeflow.errors import PermanentError, TransientError


def test_render_prompt_appends_context():
    assert render_prompt(AIRequest(instruction="Summarize", model="m")) == "Summarize"
    prompt = render_prompt(AIRequest(instruction="Summarize", context={"a": 1}, model="m"))
    assert prompt.startswith("Summarize\n\nContext:\n")
    assert '"a": 1' in prompt


def test_model_names_are_qualified_with_provider():
    caller = PydanticAICaller(AIConfig(provider="anthropic"))
    assert caller.qualify_model("claude-3-5-haiku-latest") == "anthropic:claude-3-5-haiku-latest"
    assert caller.qualify_model("openai:gpt-4o") == "openai:gpt-4o"


@pytest.mark.asyncio
async def test_pydantic_ai_caller_returns_text_and_usage():
    caller = PydanticAICaller()
    caller._agents["openai:gpt-4o-mini"] = Agent(ScriptModel(custom_output_text="drafted"))

    response = await caller.invoke(AIRequest(instruction="Draft", context="notes", model="gpt-4o-mini"))
    assert response.text == "drafted"
    assert response.tokens_used > 0


class _FailingAgent:
    def __init__(self, status_code):
        self.status_code = status_code

    async def run(self, prompt):
        raise ModelHTTPError(status_code=self.status_code, model_name="gpt-4o")


@pytest.mark.asyncio
@pytest.mark.parametrize("status_code, error", [(429, TransientError), (503, TransientError), (400, PermanentError)])
async def test_pydantic_ai_caller_classifies_http_errors(status_code, error):
    caller = PydanticAICaller()
    caller._agents["openai:gpt-4o"] = _FailingAgent(status_code)
    with pytest.raises(error):
        await caller.invoke(AIRequest(instruction="x", model="gpt-4o"))


@pytest.mark.asyncio
async def test_dispatcher_routes_to_registered_handler():
    received = []

    async def create_task(config):
        received.append(config)
        return {"task_id": "t-1"}

    dispatcher = HandlerActionDispatcher({"create_task": create_task})
    assert dispatcher.supports(ActionType.CREATE_TASK)
    assert not dispatcher.supports("send_email")

    result = await dispatcher.dispatch(ActionType.CREATE_TASK, {"title": "Call"})
    assert result == {"task_id": "t-1"}
    assert received == [{"title": "Call"}]

    with pytest.raises(PermanentError):
        await dispatcher.dispatch(ActionType.SEND_EMAIL, {})


def test_default_dispatcher_registers_webhook():
    dispatcher = get_action_dispatcher(BreezeflowConfig())
    assert dispatcher.supports("webhook")
    assert not dispatcher.supports("draft_email")


def _handler(responder):
    return WebhookHandler(timeout=1.0, transport=httpx.MockTransport(responder))


@pytest.mark.asyncio
async def test_webhook_posts_payload():
    seen = {}

    def responder(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["url"] = str(request.url)
        seen["body"] = request.content
        seen["auth"] = request.headers.get("x-token")
        return httpx.Response(201, json={"ok": True})

    result = await _handler(responder)(
        {
            "url": "https://hooks.example.com/lead",
            "headers": {"x-token": "abc"},
            "payload": {"email": "ada@example.com"},
        }
    )
    assert result == {"status_code": 201, "body": {"ok": True}}
    assert seen["method"] == "POST"
    assert seen["url"] == "https://hooks.example.com/lead"
    assert json.loads(seen["body"]) == {"email": "ada@example.com"}
    assert seen["auth"] == "abc"


@pytest.mark.asyncio
async def test_webhook_without_payload_sends_remaining_keys():
    seen = {}

    def responder(request: httpx.Request) -> httpx.Response:
        seen["body"] = request.content
        return httpx.Response(200, text="done")

    result = await _handler(responder)({"url": "https://hooks.example.com", "deal": "d-1"})
    assert result == {"status_code": 200, "body": "done"}
    assert json.loads(seen["body"]) == {"deal": "d-1"}


@pytest.mark.asyncio
@pytest.mark.parametrize("status_code, error", [(500, TransientError), (429, TransientError), (404, PermanentError)])
async def test_webhook_classifies_http_errors(status_code, error):
    handler = _handler(lambda request: httpx.Response(status_code))
    with pytest.raises(error):
        await handler({"url": "https://hooks.example.com"})


@pytest.mark.asyncio
async def test_webhook_connection_errors_are_transient():
    def responder(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(TransientError):
        await _handler(responder)({"url": "https://hooks.example.com"})


@pytest.mark.asyncio
async def test_webhook_requires_url():
    with pytest.raises(PermanentError):
        await _handler(lambda request: httpx.Response(200))({"payload": {}})
