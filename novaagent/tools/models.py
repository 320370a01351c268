"""
Nova Agent Tool Models - Data structures for tool registration and execution
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional

ToolHandler = Callable[[Dict[str, Any], "ToolExecutionContext"], Awaitable[Any]]
ActionDescriber = Callable[[Dict[str, Any]], str]


@dataclass
class ToolExecutionContext:
    """
    Per-call context handed to every tool handler.

    Attributes:
        user_id: Owner of the request
        conversation_id: Conversation the call belongs to (may be None)
        credentials: Per-user provider credentials (OAuth tokens etc.)
        metadata: Free-form extra data from the host application
    """
    user_id: str
    conversation_id: Optional[str] = None
    credentials: Dict[str, Any] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ToolDefinition:
    """
    A callable tool exposed to the model.

    ``auto_executable`` is deliberately required: every tool states whether
    it may run without human sign-off.

    Attributes:
        name: Unique tool name (the model calls it by this)
        description: What the tool does, shown to the model
        parameters: JSON Schema (Draft 7) for the tool's input
        auto_executable: True = run immediately, False = stage for approval
        handler: ``async handler(params, context)`` doing the actual work
        describe: Optional one-line, user-facing summary of a proposed call
    """
    name: str
    description: str
    parameters: Dict[str, Any]
    auto_executable: bool
    handler: ToolHandler
    describe: Optional[ActionDescriber] = None

    def to_schema(self) -> Dict[str, Any]:
        """OpenAI function-calling format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


@dataclass
class ToolResult:
    """
    Successful tool execution.

    Attributes:
        tool_name: Tool that ran
        data: Structured payload returned by the handler
        summary: Short human-readable outcome
        duration_ms: Wall time of the handler call
    """
    tool_name: str
    data: Any = None
    summary: str = ""
    duration_ms: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tool_name": self.tool_name,
            "data": self.data,
            "summary": self.summary,
            "duration_ms": self.duration_ms,
        }
