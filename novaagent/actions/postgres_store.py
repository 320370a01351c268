"""
Nova Agent Postgres Action Store - ``agent_actions`` backed by asyncpg

The table is created by ``db.initialize.MIGRATIONS``; JSONB columns are
encoded and decoded by the pool's codecs (``db.database``). The compare-and-swap
in ``transition`` is one UPDATE guarded by ``status = ANY(...)``, so it is
atomic across processes without explicit locking.
"""

import logging
import uuid
from typing import Any, Dict, Iterable, List, Optional

from ..db.repository import Repository
from ..errors import ActionConflictError, ActionNotFoundError
from .models import Action, ActionStats, ActionStatus, check_transition
from .store import ActionStore

logger = logging.getLogger(__name__)


def _parse_id(action_id: str) -> Optional[uuid.UUID]:
    try:
        return uuid.UUID(str(action_id))
    except ValueError:
        return None


class PostgresActionStore(Repository, ActionStore):
    TABLE_NAME = "agent_actions"

    async def create(
        self,
        user_id: str,
        conversation_id: Optional[str],
        tool_name: str,
        input_params: Dict[str, Any],
    ) -> Action:
        row = await self._insert({
            "user_id": user_id,
            "conversation_id": conversation_id,
            "action_type": tool_name,
            "status": ActionStatus.PENDING.value,
            "input_params": input_params,
            "requires_approval": True,
        })
        action = Action.from_row(row)
        logger.debug(f"Created action {action.id} ({tool_name}) for {user_id}")
        return action

    async def get(self, action_id: str) -> Action:
        key = _parse_id(action_id)
        if key is None:
            raise ActionNotFoundError(action_id)
        row = await self._fetch_one("id = $1", (key,))
        if row is None:
            raise ActionNotFoundError(action_id)
        return Action.from_row(row)

    async def list_pending(self, user_id: str) -> List[Action]:
        rows = await self._fetch_many(
            where="user_id = $1 AND status = $2",
            args=(user_id, ActionStatus.PENDING.value),
            order_by="created_at ASC",
        )
        return [Action.from_row(r) for r in rows]

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
        key = _parse_id(action_id)
        if key is None:
            raise ActionNotFoundError(action_id)

        row = await self.db.fetchrow(
            f"""
            UPDATE {self.TABLE_NAME}
            SET status = $1::text,
                output_result = COALESCE($2::jsonb, output_result),
                execution_duration_ms = COALESCE($3, execution_duration_ms),
                error_message = COALESCE($4, error_message),
                approved_at = CASE WHEN $1::text = 'approved' THEN NOW() ELSE approved_at END,
                executed_at = CASE WHEN $1::text IN ('executed', 'failed') THEN NOW() ELSE executed_at END
            WHERE id = $5 AND status = ANY($6::text[])
            RETURNING *
            """,
            to_status.value,
            result,
            duration_ms,
            error_message,
            key,
            [s.value for s in sources],
        )
        if row is not None:
            logger.debug(f"Action {action_id}: -> {to_status.value}")
            return Action.from_row(dict(row))

        # Lost the swap: tell "missing" apart from "wrong status"
        current = await self.db.fetchval(
            f"SELECT status FROM {self.TABLE_NAME} WHERE id = $1", key
        )
        if current is None:
            raise ActionNotFoundError(action_id)
        raise ActionConflictError(action_id, current, {s.value for s in sources})

    async def list_actions(
        self,
        user_id: str,
        status: Optional[ActionStatus] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Action]:
        if status is not None:
            rows = await self._fetch_many(
                where="user_id = $1 AND status = $2",
                args=(user_id, ActionStatus(status).value),
                order_by="created_at DESC",
                limit=limit,
                offset=offset,
            )
        else:
            rows = await self._fetch_many(
                where="user_id = $1",
                args=(user_id,),
                order_by="created_at DESC",
                limit=limit,
                offset=offset,
            )
        return [Action.from_row(r) for r in rows]

    async def stats(self, user_id: str) -> ActionStats:
        row = await self.db.fetchrow(
            f"""
            SELECT
                COUNT(*) AS total,
                COUNT(*) FILTER (WHERE status = 'pending') AS pending,
                COUNT(*) FILTER (WHERE status = 'approved') AS approved,
                COUNT(*) FILTER (WHERE status = 'rejected') AS rejected,
                COUNT(*) FILTER (WHERE status = 'executed') AS executed,
                COUNT(*) FILTER (WHERE status = 'failed') AS failed,
                AVG(execution_duration_ms) FILTER (WHERE status = 'executed') AS avg_execution_ms
            FROM {self.TABLE_NAME}
            WHERE user_id = $1
            """,
            user_id,
        )
        if row is None:
            return ActionStats()
        avg = row["avg_execution_ms"]
        return ActionStats(
            total=row["total"],
            pending=row["pending"],
            approved=row["approved"],
            rejected=row["rejected"],
            executed=row["executed"],
            failed=row["failed"],
            avg_execution_ms=float(avg) if avg is not None else None,
        )
