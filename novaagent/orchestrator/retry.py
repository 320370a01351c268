"""Completion calls with per-attempt timeout and exponential back-off."""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from ..errors import AgentError, CompletionError, CompletionOverloadError
from .config import AgentLoopConfig

logger = logging.getLogger(__name__)


def backoff_delay(config: AgentLoopConfig, attempt: int) -> float:
    """Sleep before retry number ``attempt + 1`` (attempt counts from 0)."""
    return min(config.llm_retry_base_delay * (2 ** attempt), config.llm_retry_max_delay)


async def complete_with_retry(
    client: Any,
    messages: List[Dict[str, Any]],
    tools: Optional[List[Dict[str, Any]]],
    config: AgentLoopConfig,
    llm_config: Optional[Dict[str, Any]] = None,
) -> Any:
    """Call ``client.chat_completion``, retrying overload and timeouts.

    Makes at most ``llm_max_retries + 1`` attempts. Anything other than
    ``CompletionOverloadError`` (or a per-attempt timeout, which is treated
    as overload) is raised immediately as ``CompletionError``. The raised
    error carries ``details["attempts"]``.
    """
    attempts = config.llm_max_retries + 1
    for attempt in range(attempts):
        try:
            kwargs: Dict[str, Any] = {"messages": messages}
            if tools:
                kwargs["tools"] = tools
            if llm_config:
                kwargs["config"] = llm_config
            response = await asyncio.wait_for(
                client.chat_completion(**kwargs),
                timeout=config.llm_call_timeout,
            )
            tool_calls = getattr(response, "tool_calls", None)
            logger.info(
                f"[LLM] Response: tool_calls={len(tool_calls) if tool_calls else 0}, "
                f"content_len={len(getattr(response, 'content', '') or '')}"
            )
            return response

        except asyncio.TimeoutError:
            error: AgentError = CompletionOverloadError(
                f"Completion timed out after {config.llm_call_timeout}s",
                details={"category": "overload"},
            )
        except CompletionOverloadError as e:
            error = e
        except CompletionError as e:
            e.details["attempts"] = attempt + 1
            raise
        except Exception as e:
            logger.error(f"[LLM] Completion failed: {e}", exc_info=True)
            raise CompletionError(
                str(e) or type(e).__name__,
                details={"category": "unknown", "attempts": attempt + 1},
            ) from e

        error.details["attempts"] = attempt + 1
        if attempt + 1 >= attempts:
            logger.warning(f"[LLM] Overloaded, giving up after {attempt + 1} attempt(s)")
            raise error

        delay = backoff_delay(config, attempt)
        logger.warning(f"[LLM] Overloaded ({error.message}), retrying in {delay}s (attempt {attempt + 1})")
        await asyncio.sleep(delay)

    raise AssertionError("unreachable")
