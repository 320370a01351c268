"""
Nova Agent LiteLLM Client - Completion client powered by litellm

One client for every provider litellm supports (OpenAI, Anthropic, Azure,
Gemini, Ollama). Provider failures are translated into the agent's error
taxonomy so the orchestrator can decide whether to retry.
"""

import json
import logging
import os
from typing import Any, Dict, List, Optional

from ..errors import CompletionError, CompletionOverloadError
from .base import BaseLLMClient, LLMConfig, LLMResponse, StopReason, ToolCall, Usage

logger = logging.getLogger(__name__)

# Provider -> default environment variable for API key
_PROVIDER_ENV_VARS: Dict[str, Optional[str]] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "azure": "AZURE_OPENAI_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "ollama": None,
}

_STOP_REASONS = {
    "stop": StopReason.END_TURN,
    "end_turn": StopReason.END_TURN,
    "length": StopReason.MAX_TOKENS,
    "max_tokens": StopReason.MAX_TOKENS,
    "tool_calls": StopReason.TOOL_USE,
    "tool_use": StopReason.TOOL_USE,
    "function_call": StopReason.TOOL_USE,
    "content_filter": StopReason.CONTENT_FILTER,
}


def build_litellm_model_string(provider: str, model: str) -> str:
    """Prefix ``model`` so litellm routes it to ``provider``.

    See https://docs.litellm.ai/docs/providers
    """
    provider = provider.lower()
    if provider == "openai" or "/" in model:
        return model
    if provider in ("anthropic", "azure", "gemini", "ollama"):
        return f"{provider}/{model}"
    return model


def translate_litellm_error(exc: Exception) -> CompletionError:
    """Map a litellm exception onto CompletionOverloadError / CompletionError."""
    import litellm

    if isinstance(exc, (litellm.RateLimitError, litellm.ServiceUnavailableError, litellm.Timeout)):
        return CompletionOverloadError(str(exc), details={"category": "overload"})
    if isinstance(exc, litellm.AuthenticationError):
        return CompletionError(str(exc), details={"category": "auth"})
    if isinstance(exc, litellm.APIConnectionError):
        return CompletionError(str(exc), details={"category": "network"})
    return CompletionError(str(exc), details={"category": "unknown"})


class LiteLLMClient(BaseLLMClient):
    """
    Example:
        config = LLMConfig(model="gpt-4o-mini", api_key="sk-xxx")
        client = LiteLLMClient(config=config, provider_name="openai")
        response = await client.chat_completion([
            {"role": "user", "content": "Hello!"}
        ])
    """

    def __init__(
        self,
        config: Optional[LLMConfig] = None,
        provider_name: str = "openai",
        **kwargs,
    ):
        super().__init__(config, **kwargs)

        self.provider = provider_name.lower()
        self._litellm_model = build_litellm_model_string(self.provider, self.config.model)

        # Explicit config wins over the provider env var
        api_key = self.config.api_key
        if not api_key:
            env_var = _PROVIDER_ENV_VARS.get(self.provider)
            if env_var:
                api_key = os.environ.get(env_var)

        self._base_kwargs: Dict[str, Any] = dict(self.config.extra)
        if self.config.base_url:
            self._base_kwargs["api_base"] = self.config.base_url
        if api_key:
            self._base_kwargs["api_key"] = api_key

        logger.info(
            f"LiteLLMClient initialized: provider={self.provider}, "
            f"litellm_model={self._litellm_model}"
        )

    async def _call_api(
        self,
        messages: List[Dict[str, Any]],
        tools: Optional[List[Dict[str, Any]]] = None,
        **kwargs,
    ) -> LLMResponse:
        import litellm

        params: Dict[str, Any] = {
            "model": kwargs.get("model") or self._litellm_model,
            "messages": messages,
            "temperature": kwargs.get("temperature", self.config.temperature),
            "max_tokens": kwargs.get("max_tokens", self.config.max_tokens),
            "timeout": kwargs.get("timeout", self.config.timeout),
            **self._base_kwargs,
        }
        if tools:
            params["tools"] = tools
            params["tool_choice"] = kwargs.get("tool_choice", "auto")

        logger.info(
            f"[LiteLLM] model={params['model']}, tools={len(tools) if tools else 0}, "
            f"messages={len(messages)}"
        )

        try:
            response = await litellm.acompletion(**params)
        except Exception as e:
            raise translate_litellm_error(e) from e

        choice = response.choices[0]
        message = choice.message

        tool_calls = None
        if message.tool_calls:
            tool_calls = []
            for tc in message.tool_calls:
                arguments = tc.function.arguments
                if isinstance(arguments, str):
                    try:
                        arguments = json.loads(arguments) if arguments else {}
                    except json.JSONDecodeError:
                        # Left as the raw string; the orchestrator rejects it as invalid params
                        logger.warning(f"[LiteLLM] non-JSON arguments for {tc.function.name}")
                tool_calls.append(ToolCall(id=tc.id, name=tc.function.name, arguments=arguments))

        usage = None
        if getattr(response, "usage", None):
            usage = Usage(
                prompt_tokens=response.usage.prompt_tokens,
                completion_tokens=response.usage.completion_tokens,
                total_tokens=response.usage.total_tokens,
            )

        return LLMResponse(
            content=message.content or "",
            tool_calls=tool_calls,
            stop_reason=_STOP_REASONS.get(choice.finish_reason, StopReason.END_TURN),
            usage=usage,
            model=getattr(response, "model", self.config.model),
            raw_response=response,
        )
