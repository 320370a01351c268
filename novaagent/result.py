"""
Nova Agent Result - What handle_message / resume_after_approval return

``AgentResult.to_dict()`` is the wire shape handed to the HTTP layer.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class ApprovalDecision(str, Enum):
    """A user's verdict on pending actions."""
    APPROVE = "approve"
    REJECT = "reject"


@dataclass
class PendingAction:
    """An approval-required tool call that was staged in the action store."""
    action_id: str
    tool_name: str
    params: Dict[str, Any]
    description: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action_id": self.action_id,
            "tool_name": self.tool_name,
            "params": self.params,
            "description": self.description,
        }


@dataclass
class ExecutedAction:
    """An auto-executed tool call, successful or not."""
    tool_name: str
    params: Dict[str, Any]
    status: str
    """Either "executed" or "failed"."""
    result: Any = None
    error: Optional[str] = None
    duration_ms: int = 0

    @property
    def succeeded(self) -> bool:
        return self.status == "executed"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tool_name": self.tool_name,
            "params": self.params,
            "status": self.status,
            "result": self.result,
            "error": self.error,
        }


@dataclass
class ActionOutcome:
    """
    What happened to one id passed to resume_after_approval.

    ``status`` is the action's new status (executed / failed / rejected),
    or "error" when the id could not be processed (``error_code`` says why).
    """
    action_id: str
    status: str
    tool_name: Optional[str] = None
    result: Any = None
    error: Optional[str] = None
    error_code: Optional[str] = None

    @property
    def summary(self) -> Optional[str]:
        if isinstance(self.result, dict):
            return self.result.get("summary")
        return None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "action_id": self.action_id,
            "tool_name": self.tool_name,
            "status": self.status,
        }
        if self.result is not None:
            data["result"] = self.result
        if self.error is not None:
            data["error"] = self.error
        if self.error_code is not None:
            data["error_code"] = self.error_code
        return data


@dataclass
class AgentResult:
    """
    Result of one orchestrator call.

    Example:
        result = AgentResult(
            content="I need your approval to proceed with the following actions:",
            requires_approval=True,
            pending_actions=[PendingAction("a1", "send_email", {...}, "Send email to ...")],
        )
    """
    content: str
    requires_approval: bool = False
    pending_actions: List[PendingAction] = field(default_factory=list)
    executed_actions: List[ExecutedAction] = field(default_factory=list)
    outcomes: List[ActionOutcome] = field(default_factory=list)
    iterations: int = 0
    iteration_limit_reached: bool = False
    degraded: bool = False
    agent_enabled: bool = True
    error: Optional[Dict[str, Any]] = None

    @property
    def success(self) -> bool:
        return self.error is None and not self.iteration_limit_reached

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "content": self.content,
            "requires_approval": self.requires_approval,
            "pending_actions": [a.to_dict() for a in self.pending_actions],
            "executed_actions": [a.to_dict() for a in self.executed_actions],
            "outcomes": [o.to_dict() for o in self.outcomes],
            "iterations": self.iterations,
            "iteration_limit_reached": self.iteration_limit_reached,
            "degraded": self.degraded,
            "agent_enabled": self.agent_enabled,
            "error": self.error,
        }
