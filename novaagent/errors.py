"""
Nova Agent Errors - Typed error taxonomy for the agent core

Every error carries a stable ``code`` (for API responses), a ``recoverable``
flag and a ``details`` dict. Which errors abort a call and which are
isolated per tool call / per action id is decided by the orchestrator:

- CompletionOverloadError: retried, then degraded fallback
- MalformedTranscriptError / InvalidParamsError / UnknownToolError: fatal to the call
- ExternalServiceError: recorded per tool call, loop continues
- IterationLimitExceeded: partial result with a marker
- ActionNotFoundError / ActionAlreadyProcessedError: per id, batch continues
- ActionStoreError: fatal in handle_message, per id in resume_after_approval
- FeatureGateError: fatal to the call
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional


class ErrorCode:
    """Stable error codes exposed in structured results."""
    COMPLETION_OVERLOADED = "AI_SERVICE_OVERLOADED"
    COMPLETION_FAILED = "AI_SERVICE_UNAVAILABLE"
    MALFORMED_TRANSCRIPT = "MALFORMED_TRANSCRIPT"
    INVALID_PARAMS = "INVALID_TOOL_PARAMS"
    UNKNOWN_TOOL = "UNKNOWN_TOOL"
    TOOL_REGISTRATION = "TOOL_REGISTRATION_FAILED"
    EXTERNAL_SERVICE = "AI_TOOL_EXECUTION_FAILED"
    ITERATION_LIMIT = "AI_MAX_ITERATIONS"
    ACTION_NOT_FOUND = "ACTION_NOT_FOUND"
    ACTION_ALREADY_PROCESSED = "ACTION_ALREADY_PROCESSED"
    ACTION_CONFLICT = "ACTION_CONFLICT"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    AGENT_DISABLED = "AGENT_DISABLED"
    ACTION_STORE_UNAVAILABLE = "ACTION_STORE_UNAVAILABLE"
    PREFERENCES_UNAVAILABLE = "PREFERENCES_UNAVAILABLE"


class AgentError(Exception):
    """Base class for all agent core errors."""

    code: str = "AGENT_ERROR"
    recoverable: bool = False

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        recoverable: Optional[bool] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if recoverable is not None:
            self.recoverable = recoverable
        self.details: Dict[str, Any] = details or {}
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "recoverable": self.recoverable,
            "details": self.details,
        }


# ── Completion capability ──

class CompletionError(AgentError):
    """The completion capability failed in a way that retrying will not fix."""
    code = ErrorCode.COMPLETION_FAILED


class CompletionOverloadError(CompletionError):
    """Transient overload (rate limit, 503, per-attempt timeout). Retryable."""
    code = ErrorCode.COMPLETION_OVERLOADED
    recoverable = True


# ── Conversation interpretation (fatal to the call) ──

class MalformedTranscriptError(AgentError):
    """A transcript turn is missing ``role``/``content`` or has an unknown role."""
    code = ErrorCode.MALFORMED_TRANSCRIPT

    def __init__(self, message: str, index: Optional[int] = None):
        super().__init__(message, details={"index": index} if index is not None else None)
        self.index = index


class UnknownToolError(AgentError):
    """A tool name is not in the registry."""
    code = ErrorCode.UNKNOWN_TOOL

    def __init__(self, tool_name: str):
        super().__init__(f"Unknown tool: {tool_name}", details={"tool_name": tool_name})
        self.tool_name = tool_name


class InvalidParamsError(AgentError):
    """Tool parameters do not match the tool's input schema."""
    code = ErrorCode.INVALID_PARAMS

    def __init__(self, tool_name: str, errors: list):
        super().__init__(
            f"Invalid parameters for {tool_name}: {'; '.join(errors)}",
            details={"tool_name": tool_name, "validation_errors": errors},
        )
        self.tool_name = tool_name
        self.errors = errors


class ToolRegistrationError(AgentError):
    """A tool definition was rejected at registration time."""
    code = ErrorCode.TOOL_REGISTRATION


# ── Tool execution (non-fatal) ──

class ExternalServiceError(AgentError):
    """A tool handler failed. Carries the underlying cause."""
    code = ErrorCode.EXTERNAL_SERVICE
    recoverable = True

    def __init__(self, tool_name: str, cause: BaseException):
        super().__init__(
            f"Tool '{tool_name}' execution failed: {cause}",
            details={"tool_name": tool_name, "cause": str(cause), "cause_type": type(cause).__name__},
        )
        self.tool_name = tool_name
        self.cause = cause


class IterationLimitExceeded(AgentError):
    """The loop hit max_iterations without a final answer. Reported, not raised."""
    code = ErrorCode.ITERATION_LIMIT
    recoverable = True

    def __init__(self, iterations: int, user_id: str = ""):
        super().__init__(
            f"Agent reached maximum iterations ({iterations})",
            details={"iterations": iterations, "user_id": user_id},
        )
        self.iterations = iterations


# ── Action store ──

class ActionNotFoundError(AgentError):
    """No action with this id (or not owned by the caller)."""
    code = ErrorCode.ACTION_NOT_FOUND

    def __init__(self, action_id: str):
        super().__init__(f"Action not found: {action_id}", details={"action_id": action_id})
        self.action_id = action_id


class ActionConflictError(AgentError):
    """Compare-and-swap on action status failed."""
    code = ErrorCode.ACTION_CONFLICT

    def __init__(self, action_id: str, current_status: str, expected: Any):
        super().__init__(
            f"Action {action_id} is '{current_status}', expected one of {sorted(expected)}",
            details={
                "action_id": action_id,
                "current_status": current_status,
                "expected": sorted(expected),
            },
        )
        self.action_id = action_id
        self.current_status = current_status


class InvalidTransitionError(AgentError):
    """Requested status change is not an edge of the action lifecycle."""
    code = ErrorCode.INVALID_TRANSITION

    def __init__(self, from_status: str, to_status: str):
        super().__init__(
            f"Illegal action transition {from_status} -> {to_status}",
            details={"from_status": from_status, "to_status": to_status},
        )


class ActionAlreadyProcessedError(AgentError):
    """Approval/rejection requested for an action that is no longer pending."""
    code = ErrorCode.ACTION_ALREADY_PROCESSED

    def __init__(self, action_id: str, status: str, tool_name: Optional[str] = None):
        super().__init__(
            f"Action already {status}",
            details={"action_id": action_id, "status": status},
        )
        self.action_id = action_id
        self.status = status
        self.tool_name = tool_name


class AgentDisabledError(AgentError):
    """Agent features are off for this user. Only used for its code."""
    code = ErrorCode.AGENT_DISABLED


class ActionStoreError(AgentError):
    """The action store could not be read or written."""
    code = ErrorCode.ACTION_STORE_UNAVAILABLE
    recoverable = True

    def __init__(
        self,
        message: str,
        cause: BaseException,
        action_id: Optional[str] = None,
        tool_name: Optional[str] = None,
        result: Any = None,
    ):
        super().__init__(
            message,
            details={"action_id": action_id, "cause": str(cause), "cause_type": type(cause).__name__},
        )
        self.cause = cause
        self.action_id = action_id
        self.tool_name = tool_name
        # Tool output when the handler already ran before the write failed
        self.result = result


class FeatureGateError(AgentError):
    """The per-user feature gate could not be read."""
    code = ErrorCode.PREFERENCES_UNAVAILABLE
    recoverable = True

    def __init__(self, user_id: str, cause: BaseException):
        super().__init__(
            f"Could not read agent preferences: {cause}",
            details={"user_id": user_id, "cause_type": type(cause).__name__},
        )
        self.cause = cause
