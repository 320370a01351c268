"""
Nova Agent Action Models - Proposed tool invocations and their lifecycle

    pending ──► approved ──► executed
       │            └──────► failed
       └──────► rejected

No other edges exist. ``executed``, ``failed`` and ``rejected`` are terminal.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, Optional

from ..errors import InvalidTransitionError


class ActionStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXECUTED = "executed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return not ALLOWED_TRANSITIONS[self]


ALLOWED_TRANSITIONS: Dict[ActionStatus, FrozenSet[ActionStatus]] = {
    ActionStatus.PENDING: frozenset({ActionStatus.APPROVED, ActionStatus.REJECTED}),
    ActionStatus.APPROVED: frozenset({ActionStatus.EXECUTED, ActionStatus.FAILED}),
    ActionStatus.REJECTED: frozenset(),
    ActionStatus.EXECUTED: frozenset(),
    ActionStatus.FAILED: frozenset(),
}


def check_transition(
    from_statuses: Iterable[ActionStatus],
    to_status: ActionStatus,
) -> FrozenSet[ActionStatus]:
    """Normalize ``from_statuses`` and verify every edge is in the lifecycle graph."""
    to_status = ActionStatus(to_status)
    sources = frozenset(ActionStatus(s) for s in from_statuses)
    if not sources:
        raise InvalidTransitionError("<none>", to_status.value)
    for source in sources:
        if to_status not in ALLOWED_TRANSITIONS[source]:
            raise InvalidTransitionError(source.value, to_status.value)
    return sources


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Action:
    """
    A tool invocation that needs (or needed) human approval.

    ``result`` is only set once the action has run: the handler output on
    success, the error info on failure.
    """
    id: str
    user_id: str
    tool_name: str
    input_params: Dict[str, Any]
    conversation_id: Optional[str] = None
    status: ActionStatus = ActionStatus.PENDING
    result: Optional[Dict[str, Any]] = None
    error_message: Optional[str] = None
    approved_at: Optional[datetime] = None
    executed_at: Optional[datetime] = None
    execution_duration_ms: Optional[int] = None
    created_at: datetime = field(default_factory=_utcnow)

    def apply(
        self,
        to_status: ActionStatus,
        result: Optional[Dict[str, Any]] = None,
        duration_ms: Optional[int] = None,
        error_message: Optional[str] = None,
    ) -> None:
        """Set the new status and its bookkeeping fields. No graph check here."""
        now = _utcnow()
        self.status = to_status
        if to_status == ActionStatus.APPROVED:
            self.approved_at = now
        elif to_status in (ActionStatus.EXECUTED, ActionStatus.FAILED):
            self.executed_at = now
        if result is not None:
            self.result = result
        if duration_ms is not None:
            self.execution_duration_ms = duration_ms
        if error_message is not None:
            self.error_message = error_message

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "conversation_id": self.conversation_id,
            "tool_name": self.tool_name,
            "input_params": self.input_params,
            "status": self.status.value,
            "result": self.result,
            "error_message": self.error_message,
            "approved_at": self.approved_at.isoformat() if self.approved_at else None,
            "executed_at": self.executed_at.isoformat() if self.executed_at else None,
            "execution_duration_ms": self.execution_duration_ms,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Action":
        """Build from an ``agent_actions`` row."""
        params = row.get("input_params") or {}
        if isinstance(params, str):
            params = json.loads(params)
        output = row.get("output_result")
        if isinstance(output, str):
            output = json.loads(output)
        return cls(
            id=str(row["id"]),
            user_id=row["user_id"],
            conversation_id=row.get("conversation_id"),
            tool_name=row["action_type"],
            input_params=params,
            status=ActionStatus(row["status"]),
            result=output,
            error_message=row.get("error_message"),
            approved_at=row.get("approved_at"),
            executed_at=row.get("executed_at"),
            execution_duration_ms=row.get("execution_duration_ms"),
            created_at=row.get("created_at") or _utcnow(),
        )


@dataclass
class ActionStats:
    """Per-user action counts and average execution time."""
    total: int = 0
    pending: int = 0
    approved: int = 0
    rejected: int = 0
    executed: int = 0
    failed: int = 0
    avg_execution_ms: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "pending": self.pending,
            "approved": self.approved,
            "rejected": self.rejected,
            "executed": self.executed,
            "failed": self.failed,
            "avg_execution_ms": self.avg_execution_ms,
        }
