"""
Nova Agent LLM Client Base - Common types for completion clients

This module provides:
- BaseLLMClient: Abstract base class for completion clients
- LLMConfig: Configuration dataclass
- LLMResponse / ToolCall / Usage: Standardized response format
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union


class StopReason(str, Enum):
    """Reason why the model stopped generating"""
    END_TURN = "end_turn"
    MAX_TOKENS = "max_tokens"
    TOOL_USE = "tool_use"
    CONTENT_FILTER = "content_filter"
    ERROR = "error"


@dataclass
class LLMConfig:
    """
    Configuration for completion clients.

    Attributes:
        api_key: Provider API key (falls back to the provider's env var)
        model: Model name (e.g. "gpt-4o", "gemini-2.0-flash")
        base_url: Optional API base URL override
        temperature: Sampling temperature
        max_tokens: Maximum tokens in the response
        timeout: Request timeout in seconds
    """
    api_key: Optional[str] = None
    model: str = "gpt-4o-mini"
    base_url: Optional[str] = None
    temperature: float = 0.7
    max_tokens: int = 2048
    timeout: int = 60

    # Extra provider-specific kwargs (e.g. api_version for Azure)
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ToolCall:
    """A tool call requested by the model. ``arguments`` stays a str when it is not valid JSON."""
    id: str
    name: str
    arguments: Union[Dict[str, Any], str]

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "arguments": self.arguments}


@dataclass
class Usage:
    """Token usage information"""
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


@dataclass
class LLMResponse:
    """
    Standardized completion response.

    Either ``content`` is the final answer, or ``tool_calls`` lists the
    tools the model wants run (``content`` may then hold narration).
    """
    content: str = ""
    tool_calls: Optional[List[ToolCall]] = None
    stop_reason: StopReason = StopReason.END_TURN
    usage: Optional[Usage] = None
    model: Optional[str] = None

    # Raw response for debugging
    raw_response: Optional[Any] = None

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "content": self.content,
            "tool_calls": [tc.to_dict() for tc in self.tool_calls] if self.tool_calls else None,
            "stop_reason": self.stop_reason.value,
            "model": self.model,
        }


class BaseLLMClient(ABC):
    """
    Abstract base class for completion clients.

    Subclasses implement ``_call_api`` and translate provider errors into
    ``CompletionOverloadError`` / ``CompletionError``.
    """

    provider: str = "unknown"

    def __init__(self, config: Optional[LLMConfig] = None, **kwargs):
        if config is None:
            config = LLMConfig(**kwargs)
        else:
            for key, value in kwargs.items():
                if hasattr(config, key):
                    setattr(config, key, value)
        self.config = config

    @abstractmethod
    async def _call_api(
        self,
        messages: List[Dict[str, Any]],
        tools: Optional[List[Dict[str, Any]]] = None,
        **kwargs
    ) -> LLMResponse:
        """Provider-specific call returning an LLMResponse."""

    async def chat_completion(
        self,
        messages: List[Dict[str, Any]],
        tools: Optional[List[Dict[str, Any]]] = None,
        config: Optional[Dict[str, Any]] = None,
        **kwargs
    ) -> LLMResponse:
        """
        Send a chat completion request.

        Args:
            messages: OpenAI-format messages
            tools: OpenAI-format function schemas
            config: Per-call overrides (temperature, max_tokens, ...)
        """
        merged = {**kwargs}
        if config:
            merged.update(config)
        return await self._call_api(messages, tools or None, **merged)

    async def close(self) -> None:
        """Release client resources (no-op by default)"""
