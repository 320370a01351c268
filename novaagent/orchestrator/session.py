"""Per-call agent session and its state machine.

An AgentSession lives for exactly one handle_message call. It is passed
explicitly to every loop step and discarded with the result.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Dict, List, Optional

from ..result import ExecutedAction, PendingAction

logger = logging.getLogger(__name__)


class AgentState(str, Enum):
    IDLE = "idle"
    THINKING = "thinking"
    TOOLS_REQUESTED = "tools_requested"
    FINAL_ANSWER = "final_answer"
    AUTO_EXECUTING = "auto_executing"
    AWAITING_APPROVAL = "awaiting_approval"
    RESPONDING = "responding"
    DONE = "done"


_STATE_EDGES: Dict[AgentState, FrozenSet[AgentState]] = {
    AgentState.IDLE: frozenset({AgentState.THINKING, AgentState.RESPONDING}),
    AgentState.THINKING: frozenset({
        AgentState.TOOLS_REQUESTED, AgentState.FINAL_ANSWER, AgentState.RESPONDING,
    }),
    AgentState.TOOLS_REQUESTED: frozenset({
        AgentState.AUTO_EXECUTING, AgentState.AWAITING_APPROVAL, AgentState.RESPONDING,
    }),
    AgentState.AUTO_EXECUTING: frozenset({
        AgentState.AUTO_EXECUTING, AgentState.AWAITING_APPROVAL,
        AgentState.THINKING, AgentState.RESPONDING,
    }),
    AgentState.AWAITING_APPROVAL: frozenset({
        AgentState.AUTO_EXECUTING, AgentState.AWAITING_APPROVAL, AgentState.RESPONDING,
    }),
    AgentState.FINAL_ANSWER: frozenset({AgentState.RESPONDING}),
    AgentState.RESPONDING: frozenset({AgentState.DONE}),
    AgentState.DONE: frozenset(),
}


class IllegalStateTransition(RuntimeError):
    """A loop step tried to move the session along an edge that does not exist."""


@dataclass
class AgentSession:
    """Transient state of one in-flight handle_message call."""

    user_id: str
    conversation_id: Optional[str] = None
    iteration_count: int = 0
    executed_actions: List[ExecutedAction] = field(default_factory=list)
    pending_actions: List[PendingAction] = field(default_factory=list)
    state: AgentState = AgentState.IDLE
    last_narrative: str = ""

    def move_to(self, new_state: AgentState) -> None:
        if new_state not in _STATE_EDGES[self.state]:
            raise IllegalStateTransition(f"{self.state.value} -> {new_state.value}")
        logger.debug(f"[Agent] {self.user_id}: {self.state.value} -> {new_state.value}")
        self.state = new_state
