"""
Nova Agent Protocols - Interfaces supplied by the host application

The agent core never talks to a model, a settings table or a credential
vault directly; it is handed objects satisfying these protocols.
"""

from typing import Any, Dict, List, Optional, Protocol, runtime_checkable


@runtime_checkable
class CompletionClientProtocol(Protocol):
    """
    The completion capability.

    Must return an object shaped like ``novaagent.llm.LLMResponse``
    (``content``, ``tool_calls`` with ``id``/``name``/``arguments``).
    Transient overload is signalled by raising
    ``novaagent.errors.CompletionOverloadError``.

    Example:
        class MyClient:
            async def chat_completion(self, messages, tools=None, config=None):
                return LLMResponse(content="Hi!")
    """

    async def chat_completion(
        self,
        messages: List[Dict[str, Any]],
        tools: Optional[List[Dict[str, Any]]] = None,
        config: Optional[Dict[str, Any]] = None,
    ) -> Any:
        ...


@runtime_checkable
class FeatureGateProtocol(Protocol):
    """Per-user switch for agentic (tool-using) behaviour."""

    async def is_agent_enabled(self, user_id: str) -> bool:
        ...


@runtime_checkable
class CredentialsProviderProtocol(Protocol):
    """Resolves per-user provider credentials passed into tool handlers."""

    async def get_credentials(self, user_id: str) -> Dict[str, Any]:
        ...
