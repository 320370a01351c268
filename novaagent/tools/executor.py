"""
Nova Agent Tool Executor - Run a single registered tool

The executor is stateless: it looks a tool up, validates the parameters,
awaits the handler under a timeout and wraps the outcome. Whether a call is
allowed to run at all (auto vs approval) is the orchestrator's decision.
"""

import asyncio
import logging
import time
from typing import Any, Dict, Optional

from ..errors import ExternalServiceError
from .models import ToolExecutionContext, ToolResult
from .registry import ToolRegistry

logger = logging.getLogger(__name__)


class ToolExecutor:
    """
    Usage:
        executor = ToolExecutor(registry, timeout=30.0)
        result = await executor.execute(
            "check_calendar",
            {"start_date": "2025-03-10T09:00:00Z", "end_date": "2025-03-10T17:00:00Z"},
            ToolExecutionContext(user_id="u1"),
        )
    """

    def __init__(self, registry: ToolRegistry, timeout: Optional[float] = 30.0):
        self.registry = registry
        self.timeout = timeout

    async def execute(
        self,
        tool_name: str,
        params: Dict[str, Any],
        context: ToolExecutionContext,
    ) -> ToolResult:
        """
        Execute one tool call.

        Raises:
            UnknownToolError: tool not registered
            InvalidParamsError: params violate the tool schema
            ExternalServiceError: handler raised or timed out
        """
        tool = self.registry.get(tool_name)
        self.registry.validate(tool_name, params)

        start = time.monotonic()
        try:
            if self.timeout:
                output = await asyncio.wait_for(tool.handler(params, context), timeout=self.timeout)
            else:
                output = await tool.handler(params, context)
        except asyncio.TimeoutError:
            cause = TimeoutError(f"Tool '{tool_name}' timed out after {self.timeout}s")
            logger.warning(str(cause))
            raise ExternalServiceError(tool_name, cause)
        except Exception as e:
            logger.error(f"Tool '{tool_name}' execution failed: {e}", exc_info=True)
            raise ExternalServiceError(tool_name, e) from e

        duration_ms = int((time.monotonic() - start) * 1000)
        if isinstance(output, ToolResult):
            output.duration_ms = duration_ms
            return output

        summary = ""
        if isinstance(output, dict):
            summary = output.get("summary") or ""
        logger.info(f"Tool '{tool_name}' completed in {duration_ms}ms")
        return ToolResult(
            tool_name=tool_name,
            data=output,
            summary=summary or f"{tool_name} completed",
            duration_ms=duration_ms,
        )
