"""
Structured audit logging for agent decisions.

Emits one JSON line per event through the ``novaagent.audit`` logger.
Every entry carries a timestamp, ``event_type`` and ``user_id`` plus
event-specific fields.

Usage::

    audit = AuditLogger()
    audit.log_agent_turn(user_id="u1", iteration=0, tool_calls=["check_calendar"], final_answer=False)
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

_audit_logger = logging.getLogger("novaagent.audit")

# Longest string value kept in an args summary
_MAX_ARG_CHARS = 120


def summarize_args(params: Dict[str, Any]) -> Dict[str, Any]:
    """Truncated snapshot of tool params (email bodies can be long)."""
    summary: Dict[str, Any] = {}
    for key, value in (params or {}).items():
        if isinstance(value, str) and len(value) > _MAX_ARG_CHARS:
            summary[key] = value[:_MAX_ARG_CHARS] + "..."
        else:
            summary[key] = value
    return summary


class AuditLogger:
    """Structured audit logger for loop turns, tool runs and approvals."""

    def _emit(self, event_type: str, fields: Dict[str, Any]) -> None:
        entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event_type": event_type,
        }
        entry.update(fields)
        _audit_logger.info(json.dumps(entry, default=str))

    def log_agent_turn(
        self,
        user_id: str,
        iteration: int,
        tool_calls: List[str],
        final_answer: bool,
    ) -> None:
        self._emit("agent_turn", {
            "user_id": user_id,
            "iteration": iteration,
            "tool_calls": tool_calls,
            "tool_calls_count": len(tool_calls),
            "final_answer": final_answer,
        })

    def log_tool_execution(
        self,
        user_id: str,
        tool_name: str,
        params: Dict[str, Any],
        success: bool,
        duration_ms: int,
        error: Optional[str] = None,
        action_id: Optional[str] = None,
    ) -> None:
        fields: Dict[str, Any] = {
            "user_id": user_id,
            "tool_name": tool_name,
            "args_summary": summarize_args(params),
            "success": success,
            "duration_ms": duration_ms,
        }
        if action_id is not None:
            fields["action_id"] = action_id
        if error is not None:
            fields["error"] = error
        self._emit("tool_execution", fields)

    def log_action_staged(
        self,
        user_id: str,
        action_id: str,
        tool_name: str,
        params: Dict[str, Any],
    ) -> None:
        self._emit("action_staged", {
            "user_id": user_id,
            "action_id": action_id,
            "tool_name": tool_name,
            "args_summary": summarize_args(params),
        })

    def log_approval_decision(
        self,
        user_id: str,
        action_id: str,
        tool_name: Optional[str],
        decision: str,
        outcome: str,
    ) -> None:
        """``outcome`` is the resulting status or the error code."""
        self._emit("approval_decision", {
            "user_id": user_id,
            "action_id": action_id,
            "tool_name": tool_name,
            "decision": decision,
            "outcome": outcome,
        })

    def log_degraded(self, user_id: str, reason: str, attempts: int) -> None:
        self._emit("degraded_response", {
            "user_id": user_id,
            "reason": reason,
            "attempts": attempts,
        })
