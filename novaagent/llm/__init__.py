"""
Nova Agent LLM - Completion clients

Usage:
    from novaagent.llm import LiteLLMClient, LLMConfig

    client = LiteLLMClient(LLMConfig(model="gpt-4o-mini"), provider_name="openai")
    response = await client.chat_completion(messages=[...], tools=[...])
"""

from .base import BaseLLMClient, LLMConfig, LLMResponse, StopReason, ToolCall, Usage
from .litellm_client import LiteLLMClient, build_litellm_model_string, translate_litellm_error

__all__ = [
    "BaseLLMClient",
    "LLMConfig",
    "LLMResponse",
    "StopReason",
    "ToolCall",
    "Usage",
    "LiteLLMClient",
    "build_litellm_model_string",
    "translate_litellm_error",
]
