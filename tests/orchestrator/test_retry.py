"""Tests for novaagent.orchestrator.retry"""

import asyncio

import pytest

from novaagent.errors import CompletionError, CompletionOverloadError
from novaagent.llm import LLMResponse
from novaagent.orchestrator import AgentLoopConfig, backoff_delay, complete_with_retry


class FlakyClient:

    def __init__(self, failures, final=None):
        self.failures = list(failures)
        self.final = final or LLMResponse(content="ok")
        self.calls = 0

    async def chat_completion(self, messages, tools=None, config=None):
        self.calls += 1
        if self.failures:
            item = self.failures.pop(0)
            if item == "hang":
                await asyncio.Event().wait()
            raise item
        return self.final


@pytest.fixture
def sleeps(monkeypatch):
    recorded = []

    async def fake_sleep(delay):
        recorded.append(delay)

    monkeypatch.setattr("novaagent.orchestrator.retry.asyncio.sleep", fake_sleep)
    return recorded


class TestBackoff:

    def test_doubles_and_caps(self):
        config = AgentLoopConfig(llm_retry_base_delay=1.0, llm_retry_max_delay=5.0)
        assert [backoff_delay(config, a) for a in range(4)] == [1.0, 2.0, 4.0, 5.0]


class TestCompleteWithRetry:

    @pytest.mark.asyncio
    async def test_success_first_try(self, sleeps):
        client = FlakyClient([])
        response = await complete_with_retry(client, [], None, AgentLoopConfig())
        assert response.content == "ok"
        assert sleeps == []

    @pytest.mark.asyncio
    async def test_overload_retried_with_backoff(self, sleeps):
        client = FlakyClient([CompletionOverloadError("429"), CompletionOverloadError("429")])
        response = await complete_with_retry(client, [], None, AgentLoopConfig())
        assert response.content == "ok"
        assert client.calls == 3
        assert sleeps == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self, sleeps):
        client = FlakyClient([CompletionOverloadError("429") for _ in range(5)])
        with pytest.raises(CompletionOverloadError) as exc:
            await complete_with_retry(client, [], None, AgentLoopConfig(llm_max_retries=1))
        assert client.calls == 2
        assert exc.value.details["attempts"] == 2

    @pytest.mark.asyncio
    async def test_non_overload_not_retried(self, sleeps):
        client = FlakyClient([CompletionError("bad request")])
        with pytest.raises(CompletionError):
            await complete_with_retry(client, [], None, AgentLoopConfig())
        assert client.calls == 1
        assert sleeps == []

    @pytest.mark.asyncio
    async def test_unexpected_exception_wrapped(self, sleeps):
        client = FlakyClient([KeyError("choices")])
        with pytest.raises(CompletionError) as exc:
            await complete_with_retry(client, [], None, AgentLoopConfig())
        assert not isinstance(exc.value, CompletionOverloadError)
        assert exc.value.details["category"] == "unknown"

    @pytest.mark.asyncio
    async def test_timeout_counts_as_overload(self, sleeps):
        client = FlakyClient(["hang"])
        config = AgentLoopConfig(llm_call_timeout=0.01)
        response = await complete_with_retry(client, [], None, config)
        assert response.content == "ok"
        assert client.calls == 2

    @pytest.mark.asyncio
    async def test_tools_only_passed_when_present(self, sleeps):
        seen = {}

        class Client:
            async def chat_completion(self, **kwargs):
                seen.update(kwargs)
                return LLMResponse()

        await complete_with_retry(Client(), [{"role": "user", "content": "x"}], [], AgentLoopConfig())
        assert "tools" not in seen
