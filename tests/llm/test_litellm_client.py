"""Tests for novaagent.llm.litellm_client: model routing and error mapping"""

import json
from types import SimpleNamespace

import litellm
import pytest

from novaagent.actions import InMemoryActionStore
from novaagent.errors import CompletionError, CompletionOverloadError, ErrorCode
from novaagent.llm import LiteLLMClient, LLMConfig, StopReason, build_litellm_model_string, translate_litellm_error
from novaagent.orchestrator import Orchestrator
from novaagent.tools import ToolDefinition, ToolRegistry


def _response(content="", tool_calls=None, finish_reason="stop"):
    message = SimpleNamespace(content=content, tool_calls=tool_calls)
    return SimpleNamespace(
        choices=[SimpleNamespace(message=message, finish_reason=finish_reason)],
        usage=SimpleNamespace(prompt_tokens=10, completion_tokens=5, total_tokens=15),
        model="gpt-4o-mini",
    )


def _tool_call(name, arguments, call_id="call_1"):
    return SimpleNamespace(id=call_id, function=SimpleNamespace(name=name, arguments=arguments))


@pytest.fixture
def captured(monkeypatch):
    """Replace litellm.acompletion; the test sets ``captured['response']``."""
    state = {"params": None, "response": _response("hello")}

    async def fake_acompletion(**params):
        state["params"] = params
        if isinstance(state["response"], Exception):
            raise state["response"]
        return state["response"]

    monkeypatch.setattr(litellm, "acompletion", fake_acompletion)
    return state


# =========================================================================
# Model routing
# =========================================================================


class TestModelString:

    @pytest.mark.parametrize("provider,model,expected", [
        ("openai", "gpt-4o-mini", "gpt-4o-mini"),
        ("anthropic", "claude-3-5-sonnet", "anthropic/claude-3-5-sonnet"),
        ("Gemini", "gemini-2.0-flash", "gemini/gemini-2.0-flash"),
        ("azure", "azure/my-deployment", "azure/my-deployment"),
        ("custom", "model-x", "model-x"),
    ])
    def test_prefixing(self, provider, model, expected):
        assert build_litellm_model_string(provider, model) == expected

    def test_api_key_from_env(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "env-key")
        client = LiteLLMClient(LLMConfig(model="claude-3-5-sonnet"), provider_name="anthropic")
        assert client._base_kwargs["api_key"] == "env-key"

    def test_explicit_key_wins(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "env-key")
        client = LiteLLMClient(LLMConfig(model="gpt-4o", api_key="explicit", base_url="http://proxy"))
        assert client._base_kwargs["api_key"] == "explicit"
        assert client._base_kwargs["api_base"] == "http://proxy"


# =========================================================================
# Error translation
# =========================================================================


class TestTranslateError:

    @pytest.mark.parametrize("exc_type", [litellm.RateLimitError, litellm.ServiceUnavailableError])
    def test_overload(self, exc_type):
        exc = exc_type(message="slow down", llm_provider="openai", model="gpt-4o-mini")
        error = translate_litellm_error(exc)
        assert isinstance(error, CompletionOverloadError)
        assert error.recoverable

    def test_timeout_is_overload(self):
        exc = litellm.Timeout(message="timed out", model="gpt-4o-mini", llm_provider="openai")
        assert isinstance(translate_litellm_error(exc), CompletionOverloadError)

    def test_auth(self):
        exc = litellm.AuthenticationError(message="bad key", llm_provider="openai", model="gpt-4o-mini")
        error = translate_litellm_error(exc)
        assert not isinstance(error, CompletionOverloadError)
        assert error.details["category"] == "auth"

    def test_other(self):
        error = translate_litellm_error(ValueError("weird"))
        assert type(error) is CompletionError
        assert error.details["category"] == "unknown"


# =========================================================================
# _call_api
# =========================================================================


class TestCallApi:

    @pytest.mark.asyncio
    async def test_text_response(self, captured):
        client = LiteLLMClient(LLMConfig(model="gpt-4o-mini", api_key="k"))
        response = await client.chat_completion([{"role": "user", "content": "hi"}], config={"max_tokens": 99})

        assert response.content == "hello"
        assert response.stop_reason == StopReason.END_TURN
        assert response.usage.total_tokens == 15
        assert captured["params"]["max_tokens"] == 99
        assert "tools" not in captured["params"]

    @pytest.mark.asyncio
    async def test_tool_calls_decoded(self, captured):
        captured["response"] = _response(
            tool_calls=[_tool_call("check_calendar", json.dumps({"start_date": "a", "end_date": "b"}))],
            finish_reason="tool_calls",
        )
        tools = [{"type": "function", "function": {"name": "check_calendar", "parameters": {}}}]
        client = LiteLLMClient(LLMConfig(model="gpt-4o-mini", api_key="k"))
        response = await client.chat_completion([], tools=tools)

        assert response.stop_reason == StopReason.TOOL_USE
        assert response.tool_calls[0].arguments == {"start_date": "a", "end_date": "b"}
        assert captured["params"]["tool_choice"] == "auto"

    @pytest.mark.asyncio
    async def test_bad_json_arguments_left_raw(self, captured):
        captured["response"] = _response(tool_calls=[_tool_call("send_email", "{oops")])
        client = LiteLLMClient(LLMConfig(model="gpt-4o-mini", api_key="k"))
        response = await client.chat_completion([])

        assert response.tool_calls[0].name == "send_email"
        assert response.tool_calls[0].arguments == "{oops"

    @pytest.mark.asyncio
    async def test_bad_json_arguments_are_invalid_params_in_loop(self, captured):
        captured["response"] = _response(
            tool_calls=[_tool_call("check_calendar", "{not json")],
            finish_reason="tool_calls",
        )
        ran = []

        async def check(params, context):
            ran.append(params)
            return {}

        registry = ToolRegistry([ToolDefinition(
            name="check_calendar", description="Check availability", parameters={"type": "object"},
            auto_executable=True, handler=check,
        )])
        orchestrator = Orchestrator(
            llm_client=LiteLLMClient(LLMConfig(model="gpt-4o-mini", api_key="k")),
            registry=registry,
            action_store=InMemoryActionStore(),
        )
        result = await orchestrator.handle_message("u1", "c1", "Am I free?", [])

        assert result.degraded is False
        assert result.error["code"] == ErrorCode.INVALID_PARAMS
        assert ran == []

    @pytest.mark.asyncio
    async def test_provider_error_translated(self, captured):
        captured["response"] = litellm.RateLimitError(message="429", llm_provider="openai", model="gpt-4o-mini")
        client = LiteLLMClient(LLMConfig(model="gpt-4o-mini", api_key="k"))
        with pytest.raises(CompletionOverloadError):
            await client.chat_completion([])
