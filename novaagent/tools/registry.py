"""
Nova Agent Tool Registry - Typed tool definitions keyed by name

Tools are validated when they are registered (name, handler, JSON Schema),
so a bad definition fails at startup rather than mid-conversation. The
``auto_executable`` flag stored here is the only thing the orchestrator
consults to decide between running a call and staging it for approval.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from jsonschema import Draft7Validator
from jsonschema.exceptions import SchemaError

from ..errors import InvalidParamsError, ToolRegistrationError, UnknownToolError
from .models import ToolDefinition

logger = logging.getLogger(__name__)

# Validation messages reported per failing call
MAX_VALIDATION_ERRORS = 5


class ToolRegistry:
    """
    Holds the tools available to one orchestrator.

    Usage:
        registry = ToolRegistry()
        registry.register(ToolDefinition(
            name="check_calendar",
            description="Check availability",
            parameters={...},
            auto_executable=True,
            handler=check_calendar,
        ))
        registry.get("check_calendar")
    """

    def __init__(self, tools: Optional[Iterable[ToolDefinition]] = None):
        self._tools: Dict[str, ToolDefinition] = {}
        self._validators: Dict[str, Draft7Validator] = {}
        for tool in tools or ():
            self.register(tool)

    def register(self, tool: ToolDefinition) -> None:
        """Add a tool. Raises ToolRegistrationError on a bad or duplicate definition."""
        if not tool.name or not isinstance(tool.name, str):
            raise ToolRegistrationError("Tool name must be a non-empty string")
        if tool.name in self._tools:
            raise ToolRegistrationError(
                f"Tool '{tool.name}' is already registered",
                details={"tool_name": tool.name},
            )
        if not isinstance(tool.auto_executable, bool):
            raise ToolRegistrationError(
                f"Tool '{tool.name}' must declare auto_executable as True or False",
                details={"tool_name": tool.name},
            )
        if not callable(tool.handler):
            raise ToolRegistrationError(
                f"Tool '{tool.name}' has no callable handler",
                details={"tool_name": tool.name},
            )
        if not isinstance(tool.parameters, dict):
            raise ToolRegistrationError(
                f"Tool '{tool.name}' parameters must be a JSON Schema object",
                details={"tool_name": tool.name},
            )
        try:
            Draft7Validator.check_schema(tool.parameters)
        except SchemaError as e:
            raise ToolRegistrationError(
                f"Tool '{tool.name}' has an invalid parameter schema: {e.message}",
                details={"tool_name": tool.name},
            ) from e

        self._tools[tool.name] = tool
        self._validators[tool.name] = Draft7Validator(tool.parameters)
        logger.debug(
            f"Registered tool: {tool.name} "
            f"({'auto' if tool.auto_executable else 'approval required'})"
        )

    def get(self, name: str) -> ToolDefinition:
        tool = self._tools.get(name)
        if tool is None:
            raise UnknownToolError(name)
        return tool

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def names(self) -> List[str]:
        return list(self._tools)

    def is_auto_executable(self, name: str) -> bool:
        return self.get(name).auto_executable

    def schemas(self, names: Optional[Iterable[str]] = None) -> List[Dict[str, Any]]:
        """Function schemas handed to the model, in registration order."""
        if names is None:
            return [t.to_schema() for t in self._tools.values()]
        return [self.get(n).to_schema() for n in names]

    def validate(self, name: str, params: Any) -> None:
        """Check ``params`` against the tool's schema.

        Raises:
            UnknownToolError: no such tool
            InvalidParamsError: up to five "path: message" violations
        """
        self.get(name)
        if not isinstance(params, dict):
            raise InvalidParamsError(name, [f"root: expected an object, got {type(params).__name__}"])

        errors = sorted(self._validators[name].iter_errors(params), key=lambda e: list(e.absolute_path))
        if errors:
            messages = []
            for error in errors[:MAX_VALIDATION_ERRORS]:
                path = ".".join(str(p) for p in error.absolute_path) if error.absolute_path else "root"
                messages.append(f"{path}: {error.message}")
            raise InvalidParamsError(name, messages)

    def describe(self, name: str, params: Dict[str, Any]) -> str:
        """One-line, user-facing summary of a proposed call."""
        tool = self.get(name)
        if tool.describe is not None:
            try:
                return tool.describe(params)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"describe() failed for {name}: {e}")
        return f"Execute {name}"
