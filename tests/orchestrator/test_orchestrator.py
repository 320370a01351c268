"""
Tests for novaagent.orchestrator.Orchestrator.handle_message

Tests cover:
- Auto-executed read tools vs staged approval tools
- Completion overload retries and degraded fallback
- Iteration limit
- Fatal conditions (unknown tool, invalid params, malformed transcript)
- Feature gate and action store outages
"""

import json

import pytest

from novaagent.actions import ActionStatus, InMemoryActionStore
from novaagent.constants import (
    AGENT_DISABLED_MESSAGE,
    DEFAULT_APPROVAL_PROMPT,
    DEFAULT_GREETING,
    ITERATION_LIMIT_MARKER,
)
from novaagent.errors import CompletionError, CompletionOverloadError, ErrorCode
from novaagent.llm import LLMResponse, ToolCall
from novaagent.orchestrator import AgentLoopConfig, Orchestrator
from novaagent.preferences import StaticFeatureGate
from novaagent.tools import ToolDefinition, ToolRegistry


# =============================================================================
# Mock Classes
# =============================================================================

class ScriptedLLMClient:
    """Returns (or raises) the queued items in order and records every call."""

    def __init__(self, *script):
        self.script = list(script)
        self.calls = []

    async def chat_completion(self, messages, tools=None, config=None):
        self.calls.append({"messages": [dict(m) for m in messages], "tools": tools, "config": config})
        if not self.script:
            raise AssertionError("no scripted response left")
        item = self.script.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


class ToolSpy:
    """Records handler invocations."""

    def __init__(self):
        self.calls = []

    def handler(self, name, result=None, error=None):
        async def _handle(params, context):
            self.calls.append((name, params, context.user_id))
            if error is not None:
                raise error
            return result if result is not None else {"summary": f"{name} ok"}
        return _handle


def _call(name, arguments, call_id=None):
    return ToolCall(id=call_id or f"call_{name}", name=name, arguments=arguments)


def _tools(spy, calendar_error=None):
    return ToolRegistry([
        ToolDefinition(
            name="check_calendar",
            description="Check availability",
            parameters={
                "type": "object",
                "properties": {"start_date": {"type": "string"}, "end_date": {"type": "string"}},
                "required": ["start_date", "end_date"],
            },
            auto_executable=True,
            handler=spy.handler(
                "check_calendar",
                result={"events": [], "summary": "No events found. Calendar is clear."},
                error=calendar_error,
            ),
        ),
        ToolDefinition(
            name="send_email",
            description="Send an email",
            parameters={
                "type": "object",
                "properties": {
                    "to": {"type": "string"},
                    "subject": {"type": "string"},
                    "body": {"type": "string"},
                },
                "required": ["to", "subject", "body"],
            },
            auto_executable=False,
            handler=spy.handler("send_email"),
            describe=lambda p: f'Send email to {p["to"]} with subject "{p["subject"]}"',
        ),
    ])


CALENDAR_ARGS = {"start_date": "2025-12-07T00:00:00Z", "end_date": "2025-12-08T23:59:59Z"}
EMAIL_ARGS = {"to": "manager@example.com", "subject": "PTO Dec 7-8", "body": "Taking Dec 7-8 off."}


def _orchestrator(llm, spy=None, store=None, config=None, **kwargs):
    spy = spy or ToolSpy()
    return Orchestrator(
        llm_client=llm,
        registry=kwargs.pop("registry", None) or _tools(spy),
        action_store=store or InMemoryActionStore(),
        config=config or AgentLoopConfig(llm_retry_base_delay=0, llm_retry_max_delay=0),
        **kwargs,
    )


# =============================================================================
# Final answers
# =============================================================================

class TestFinalAnswer:

    @pytest.mark.asyncio
    async def test_plain_answer(self):
        llm = ScriptedLLMClient(LLMResponse(content="Welcome aboard!"))
        result = await _orchestrator(llm).handle_message("u1", "c1", "hi", [])

        assert result.content == "Welcome aboard!"
        assert result.success
        assert result.iterations == 1
        assert not result.requires_approval

    @pytest.mark.asyncio
    async def test_empty_content_falls_back_to_greeting(self):
        llm = ScriptedLLMClient(LLMResponse(content=""))
        result = await _orchestrator(llm).handle_message("u1", "c1", "hi", [])
        assert result.content == DEFAULT_GREETING

    @pytest.mark.asyncio
    async def test_messages_sent_to_model(self):
        llm = ScriptedLLMClient(LLMResponse(content="ok"))
        history = [
            {"role": "user", "content": "When is orientation?"},
            {"role": "assistant", "content": "Monday at 9."},
            {"role": "assistant", "content": "Calendar connected", "internal": True},
        ]
        await _orchestrator(llm).handle_message("u1", "c1", "Thanks!", history)

        sent = llm.calls[0]["messages"]
        assert sent[0]["role"] == "system"
        assert [m["role"] for m in sent[1:]] == ["user", "assistant", "user"]
        assert sent[-1]["content"] == "Thanks!"
        assert {t["function"]["name"] for t in llm.calls[0]["tools"]} == {"check_calendar", "send_email"}

    @pytest.mark.asyncio
    async def test_custom_system_prompt(self):
        llm = ScriptedLLMClient(LLMResponse(content="ok"))
        await _orchestrator(llm, system_prompt="You are a test bot.").handle_message("u1", None, "hi", [])
        assert llm.calls[0]["messages"][0]["content"] == "You are a test bot."


# =============================================================================
# Tool calls
# =============================================================================

class TestToolCalls:

    @pytest.mark.asyncio
    async def test_auto_tool_runs_and_loop_continues(self):
        spy = ToolSpy()
        llm = ScriptedLLMClient(
            LLMResponse(tool_calls=[_call("check_calendar", CALENDAR_ARGS)]),
            LLMResponse(content="You're free on Dec 7-8."),
        )
        result = await _orchestrator(llm, spy=spy).handle_message("u1", "c1", "Am I free?", [])

        assert result.content == "You're free on Dec 7-8."
        assert result.iterations == 2
        assert [c[0] for c in spy.calls] == ["check_calendar"]
        assert len(result.executed_actions) == 1
        assert result.executed_actions[0].succeeded

        second = llm.calls[1]["messages"]
        assert second[-2]["role"] == "assistant"
        assert second[-2]["tool_calls"][0]["function"]["name"] == "check_calendar"
        tool_msg = second[-1]
        assert tool_msg["role"] == "tool"
        assert tool_msg["tool_call_id"] == "call_check_calendar"
        assert json.loads(tool_msg["content"])["success"] is True

    @pytest.mark.asyncio
    async def test_string_arguments_are_decoded(self):
        spy = ToolSpy()
        llm = ScriptedLLMClient(
            LLMResponse(tool_calls=[_call("check_calendar", json.dumps(CALENDAR_ARGS))]),
            LLMResponse(content="done"),
        )
        await _orchestrator(llm, spy=spy).handle_message("u1", "c1", "check", [])
        assert spy.calls[0][1] == CALENDAR_ARGS

    @pytest.mark.asyncio
    async def test_approval_tool_is_staged_not_run(self):
        spy = ToolSpy()
        store = InMemoryActionStore()
        llm = ScriptedLLMClient(
            LLMResponse(
                content="I'll check your calendar and draft the email.",
                tool_calls=[_call("check_calendar", CALENDAR_ARGS), _call("send_email", EMAIL_ARGS)],
            ),
        )
        result = await _orchestrator(llm, spy=spy, store=store).handle_message("u1", "c1", "Book PTO", [])

        assert result.requires_approval
        assert result.content == "I'll check your calendar and draft the email."
        assert [c[0] for c in spy.calls] == ["check_calendar"]
        assert len(llm.calls) == 1

        pending = result.pending_actions
        assert len(pending) == 1
        assert pending[0].tool_name == "send_email"
        assert pending[0].params == EMAIL_ARGS
        assert pending[0].description == 'Send email to manager@example.com with subject "PTO Dec 7-8"'

        stored = await store.get(pending[0].action_id)
        assert stored.status == ActionStatus.PENDING
        assert stored.user_id == "u1"
        assert stored.conversation_id == "c1"

    @pytest.mark.asyncio
    async def test_calendar_then_email_across_turns(self):
        spy = ToolSpy()
        store = InMemoryActionStore()
        never_reached = LLMResponse(content="Your PTO request is on its way.")
        llm = ScriptedLLMClient(
            LLMResponse(tool_calls=[_call("check_calendar", CALENDAR_ARGS)]),
            LLMResponse(
                content="You're free. I'll email your manager.",
                tool_calls=[_call("send_email", EMAIL_ARGS)],
            ),
            never_reached,
        )
        result = await _orchestrator(llm, spy=spy, store=store).handle_message(
            "u1", "c1", "I want Dec 7-8 off, check my calendar and email my manager", [],
        )

        assert len(llm.calls) == 2
        assert llm.script == [never_reached]
        assert result.requires_approval
        assert result.iterations == 2

        assert len(result.executed_actions) == 1
        assert result.executed_actions[0].tool_name == "check_calendar"
        assert result.executed_actions[0].status == "executed"
        assert [c[0] for c in spy.calls] == ["check_calendar"]

        assert len(result.pending_actions) == 1
        assert result.pending_actions[0].tool_name == "send_email"
        stored = await store.get(result.pending_actions[0].action_id)
        assert stored.status == ActionStatus.PENDING

        second_turn = llm.calls[1]["messages"]
        assert second_turn[-1]["role"] == "tool"
        assert json.loads(second_turn[-1]["content"])["success"] is True

    @pytest.mark.asyncio
    async def test_approval_prompt_default(self):
        llm = ScriptedLLMClient(LLMResponse(tool_calls=[_call("send_email", EMAIL_ARGS)]))
        result = await _orchestrator(llm).handle_message("u1", "c1", "email hr", [])
        assert result.content == DEFAULT_APPROVAL_PROMPT

    @pytest.mark.asyncio
    async def test_tool_failure_is_reported_to_model(self):
        spy = ToolSpy()
        llm = ScriptedLLMClient(
            LLMResponse(tool_calls=[_call("check_calendar", CALENDAR_ARGS)]),
            LLMResponse(content="Sorry, I couldn't read your calendar."),
        )
        orchestrator = _orchestrator(
            llm, registry=_tools(spy, calendar_error=ConnectionError("Google Calendar not connected")),
        )
        result = await orchestrator.handle_message("u1", "c1", "Am I free?", [])

        assert result.success
        assert result.executed_actions[0].status == "failed"
        assert "not connected" in result.executed_actions[0].error
        tool_msg = llm.calls[1]["messages"][-1]
        assert tool_msg["content"].startswith("[ERROR] ")
        assert "Google Calendar" in tool_msg["content"]

    @pytest.mark.asyncio
    async def test_unknown_tool_is_fatal(self):
        spy = ToolSpy()
        llm = ScriptedLLMClient(
            LLMResponse(tool_calls=[_call("check_calendar", CALENDAR_ARGS), _call("delete_everything", {})]),
        )
        result = await _orchestrator(llm, spy=spy).handle_message("u1", "c1", "x", [])

        assert not result.success
        assert result.error["code"] == ErrorCode.UNKNOWN_TOOL
        assert spy.calls == []

    @pytest.mark.asyncio
    async def test_invalid_params_are_fatal_and_nothing_is_staged(self):
        store = InMemoryActionStore()
        llm = ScriptedLLMClient(LLMResponse(tool_calls=[_call("send_email", {"to": "hr@example.com"})]))
        result = await _orchestrator(llm, store=store).handle_message("u1", "c1", "x", [])

        assert result.error["code"] == ErrorCode.INVALID_PARAMS
        assert not result.requires_approval
        assert await store.list_pending("u1") == []

    @pytest.mark.asyncio
    async def test_unparseable_arguments_are_fatal(self):
        llm = ScriptedLLMClient(LLMResponse(tool_calls=[_call("check_calendar", "{not json")]))
        result = await _orchestrator(llm).handle_message("u1", "c1", "x", [])
        assert result.error["code"] == ErrorCode.INVALID_PARAMS


# =============================================================================
# Iteration limit
# =============================================================================

class TestIterationLimit:

    @pytest.mark.asyncio
    async def test_limit_returns_partial_result(self):
        spy = ToolSpy()
        responses = [
            LLMResponse(content=f"Checking week {i}", tool_calls=[_call("check_calendar", CALENDAR_ARGS, f"c{i}")])
            for i in range(5)
        ]
        llm = ScriptedLLMClient(*responses)
        config = AgentLoopConfig(max_iterations=5, llm_retry_base_delay=0)
        result = await _orchestrator(llm, spy=spy, config=config).handle_message("u1", "c1", "x", [])

        assert result.iteration_limit_reached
        assert not result.success
        assert result.iterations == 5
        assert len(llm.calls) == 5
        assert len(result.executed_actions) == 5
        assert result.content.endswith(ITERATION_LIMIT_MARKER)
        assert "Checking week 4" in result.content

    @pytest.mark.asyncio
    async def test_final_answer_on_last_iteration_is_not_a_limit(self):
        llm = ScriptedLLMClient(
            LLMResponse(tool_calls=[_call("check_calendar", CALENDAR_ARGS)]),
            LLMResponse(content="All clear."),
        )
        config = AgentLoopConfig(max_iterations=2)
        result = await _orchestrator(llm, config=config).handle_message("u1", "c1", "x", [])
        assert not result.iteration_limit_reached
        assert result.content == "All clear."


# =============================================================================
# Completion failures
# =============================================================================

class TestCompletionFailures:

    @pytest.mark.asyncio
    async def test_overload_retried_then_succeeds(self):
        llm = ScriptedLLMClient(
            CompletionOverloadError("rate limited"),
            CompletionOverloadError("rate limited"),
            LLMResponse(content="Back online."),
        )
        result = await _orchestrator(llm).handle_message("u1", "c1", "hi", [])

        assert result.content == "Back online."
        assert not result.degraded
        assert len(llm.calls) == 3
        assert result.iterations == 1

    @pytest.mark.asyncio
    async def test_overload_exhausted_degrades(self):
        llm = ScriptedLLMClient(*[CompletionOverloadError("503") for _ in range(3)])
        result = await _orchestrator(llm).handle_message("u1", "c1", "hi", [])

        assert result.degraded
        assert result.error is None
        assert "high demand" in result.content
        assert len(llm.calls) == 3

    @pytest.mark.asyncio
    async def test_non_retryable_error_degrades_immediately(self):
        llm = ScriptedLLMClient(CompletionError("bad key", details={"category": "auth"}))
        result = await _orchestrator(llm).handle_message("u1", "c1", "hi", [])

        assert result.degraded
        assert len(llm.calls) == 1
        assert "authentication" in result.content

    @pytest.mark.asyncio
    async def test_degraded_after_tools_keeps_executed_actions(self):
        llm = ScriptedLLMClient(
            LLMResponse(tool_calls=[_call("check_calendar", CALENDAR_ARGS)]),
            *[CompletionOverloadError("503") for _ in range(3)],
        )
        result = await _orchestrator(llm).handle_message("u1", "c1", "hi", [])
        assert result.degraded
        assert len(result.executed_actions) == 1


# =============================================================================
# Transcript / feature gate
# =============================================================================

class TestPreconditions:

    @pytest.mark.asyncio
    async def test_malformed_transcript_is_fatal(self):
        llm = ScriptedLLMClient()
        result = await _orchestrator(llm).handle_message("u1", "c1", "hi", [{"role": "system", "content": "x"}])

        assert result.error["code"] == ErrorCode.MALFORMED_TRANSCRIPT
        assert llm.calls == []

    @pytest.mark.asyncio
    async def test_disabled_agent_skips_loop(self):
        llm = ScriptedLLMClient()
        gate = StaticFeatureGate(enabled=True, overrides={"u1": False})
        result = await _orchestrator(llm, feature_gate=gate).handle_message("u1", "c1", "hi", [])

        assert result.content == AGENT_DISABLED_MESSAGE
        assert result.agent_enabled is False
        assert result.error["code"] == ErrorCode.AGENT_DISABLED
        assert llm.calls == []

    @pytest.mark.asyncio
    async def test_credentials_reach_tools(self):
        seen = {}

        class Credentials:
            async def get_credentials(self, user_id):
                return {"google_calendar": {"token": f"tok-{user_id}"}}

        async def check(params, context):
            seen.update(context.credentials)
            return {}

        registry = ToolRegistry([ToolDefinition(
            name="check_calendar", description="", parameters={"type": "object"},
            auto_executable=True, handler=check,
        )])
        llm = ScriptedLLMClient(
            LLMResponse(tool_calls=[_call("check_calendar", {})]),
            LLMResponse(content="done"),
        )
        await _orchestrator(llm, registry=registry, credentials_provider=Credentials()).handle_message(
            "u1", "c1", "x", [],
        )
        assert seen == {"google_calendar": {"token": "tok-u1"}}


# =============================================================================
# Infrastructure failures
# =============================================================================

class BrokenFeatureGate:
    async def is_agent_enabled(self, user_id):
        raise ConnectionError("preferences db down")


class CreateFailsStore(InMemoryActionStore):
    """Stores nothing; every create raises."""

    async def create(self, *args, **kwargs):
        raise ConnectionError("actions db down")


class TestInfrastructureFailures:

    @pytest.mark.asyncio
    async def test_feature_gate_failure_is_structured(self):
        llm = ScriptedLLMClient()
        result = await _orchestrator(llm, feature_gate=BrokenFeatureGate()).handle_message("u1", "c1", "hi", [])

        assert result.success is False
        assert result.error["code"] == ErrorCode.PREFERENCES_UNAVAILABLE
        assert "preferences db down" in result.error["message"]
        assert llm.calls == []

    @pytest.mark.asyncio
    async def test_store_failure_while_staging_keeps_executed_actions(self):
        spy = ToolSpy()
        llm = ScriptedLLMClient(
            LLMResponse(tool_calls=[_call("check_calendar", CALENDAR_ARGS), _call("send_email", EMAIL_ARGS)]),
        )
        result = await _orchestrator(llm, spy=spy, store=CreateFailsStore()).handle_message(
            "u1", "c1", "Book PTO", [],
        )

        assert result.error["code"] == ErrorCode.ACTION_STORE_UNAVAILABLE
        assert result.requires_approval is False
        assert result.pending_actions == []
        assert [a.tool_name for a in result.executed_actions] == ["check_calendar"]
        assert [c[0] for c in spy.calls] == ["check_calendar"]
