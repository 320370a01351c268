"""
Nova Agent Tools - Tool registration and execution

Provides:
- ToolDefinition: a tool's schema, handler and auto/approval classification
- ToolRegistry: name -> definition, validated at registration
- ToolExecutor: run one tool call with validation and a timeout
"""

from .models import ToolDefinition, ToolResult, ToolExecutionContext
from .registry import ToolRegistry
from .executor import ToolExecutor

__all__ = [
    "ToolDefinition",
    "ToolResult",
    "ToolExecutionContext",
    "ToolRegistry",
    "ToolExecutor",
]
