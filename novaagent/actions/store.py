"""
Nova Agent Action Store - Durable record of actions awaiting approval

``transition`` is the only way to change an action's status. It is a
compare-and-swap: the write happens only if the current status is one of
``from_statuses``, so two concurrent approvals of the same action cannot
both execute it.
"""

import asyncio
import copy
import logging
import uuid
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional

from ..errors import ActionConflictError, ActionNotFoundError
from .models import Action, ActionStats, ActionStatus, check_transition

logger = logging.getLogger(__name__)


class ActionStore(ABC):
    """Storage interface for actions. Backends: in-memory, Postgres."""

    @abstractmethod
    async def create(
        self,
        user_id: str,
        conversation_id: Optional[str],
        tool_name: str,
        input_params: Dict[str, Any],
    ) -> Action:
        """Persist a new ``pending`` action. The store assigns the id."""

    @abstractmethod
    async def get(self, action_id: str) -> Action:
        """Return the action or raise ActionNotFoundError."""

    @abstractmethod
    async def list_pending(self, user_id: str) -> List[Action]:
        """Pending actions of one user, oldest first."""

    @abstractmethod
    async def transition(
        self,
        action_id: str,
        from_statuses: Iterable[ActionStatus],
        to_status: ActionStatus,
        result: Optional[Dict[str, Any]] = None,
        duration_ms: Optional[int] = None,
        error_message: Optional[str] = None,
    ) -> Action:
        """
        Atomically move an action from one of ``from_statuses`` to ``to_status``.

        Raises:
            InvalidTransitionError: an edge outside the lifecycle graph
            ActionNotFoundError: unknown id
            ActionConflictError: current status not in ``from_statuses``
        """

    @abstractmethod
    async def list_actions(
        self,
        user_id: str,
        status: Optional[ActionStatus] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Action]:
        """Action history of one user, newest first."""

    @abstractmethod
    async def stats(self, user_id: str) -> ActionStats:
        """Counts per status and average execution time."""


class InMemoryActionStore(ActionStore):
    """
    Process-local store for tests and single-process deployments.

    Returned actions are copies; mutating them does not touch the store.
    """

    def __init__(self):
        self._actions: Dict[str, Action] = {}
        self._lock = asyncio.Lock()

    async def create(
        self,
        user_id: str,
        conversation_id: Optional[str],
        tool_name: str,
        input_params: Dict[str, Any],
    ) -> Action:
        action = Action(
            id=str(uuid.uuid4()),
            user_id=user_id,
            conversation_id=conversation_id,
            tool_name=tool_name,
            input_params=copy.deepcopy(input_params),
        )
        async with self._lock:
            self._actions[action.id] = action
        logger.debug(f"Created action {action.id} ({tool_name}) for {user_id}")
        return copy.deepcopy(action)

    async def get(self, action_id: str) -> Action:
        action = self._actions.get(action_id)
        if action is None:
            raise ActionNotFoundError(action_id)
        return copy.deepcopy(action)

    async def list_pending(self, user_id: str) -> List[Action]:
        # dict order is creation order
        pending = [
            a for a in self._actions.values()
            if a.user_id == user_id and a.status == ActionStatus.PENDING
        ]
        return [copy.deepcopy(a) for a in pending]

    async def transition(
        self,
        action_id: str,
        from_statuses: Iterable[ActionStatus],
        to_status: ActionStatus,
        result: Optional[Dict[str, Any]] = None,
        duration_ms: Optional[int] = None,
        error_message: Optional[str] = None,
    ) -> Action:
        sources = check_transition(from_statuses, to_status)
        to_status = ActionStatus(to_status)
        async with self._lock:
            action = self._actions.get(action_id)
            if action is None:
                raise ActionNotFoundError(action_id)
            if action.status not in sources:
                raise ActionConflictError(action_id, action.status.value, {s.value for s in sources})
            action.apply(to_status, result=result, duration_ms=duration_ms, error_message=error_message)
            logger.debug(f"Action {action_id}: -> {to_status.value}")
            return copy.deepcopy(action)

    async def list_actions(
        self,
        user_id: str,
        status: Optional[ActionStatus] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Action]:
        actions = [
            a for a in reversed(list(self._actions.values()))
            if a.user_id == user_id and (status is None or a.status == ActionStatus(status))
        ]
        return [copy.deepcopy(a) for a in actions[offset:offset + limit]]

    async def stats(self, user_id: str) -> ActionStats:
        stats = ActionStats()
        durations = []
        for action in self._actions.values():
            if action.user_id != user_id:
                continue
            stats.total += 1
            setattr(stats, action.status.value, getattr(stats, action.status.value) + 1)
            if action.status == ActionStatus.EXECUTED and action.execution_duration_ms is not None:
                durations.append(action.execution_duration_ms)
        if durations:
            stats.avg_execution_ms = sum(durations) / len(durations)
        return stats
