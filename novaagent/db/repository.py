"""
Nova Agent Repository - Base class for table-owning data access.

A subclass names its table and adds query methods; DDL lives in the
migration list (``initialize.MIGRATIONS``), not in the repository.

    class PreferencesRepository(Repository):
        TABLE_NAME = "user_agent_preferences"

        async def get(self, user_id: str):
            return await self._fetch_one("user_id = $1", (user_id,))
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

logger = logging.getLogger(__name__)


class Repository:
    """Shared helpers for building parameterized queries against one table."""

    TABLE_NAME: str = ""

    def __init__(self, db: "Database"):
        self._db = db

    @property
    def db(self) -> "Database":
        return self._db

    async def _insert(
        self,
        data: Dict[str, Any],
        returning: str = "*",
    ) -> Optional[Dict[str, Any]]:
        """Insert one row and return it as a dict."""
        columns = list(data.keys())
        placeholders = [f"${i + 1}" for i in range(len(columns))]
        query = (
            f"INSERT INTO {self.TABLE_NAME} ({', '.join(columns)}) "
            f"VALUES ({', '.join(placeholders)}) "
            f"RETURNING {returning}"
        )
        row = await self._db.fetchrow(query, *data.values())
        return dict(row) if row else None

    async def _upsert(
        self,
        key_column: str,
        data: Dict[str, Any],
        returning: str = "*",
    ) -> Optional[Dict[str, Any]]:
        """Insert or update on ``key_column`` conflict and return the row."""
        columns = list(data.keys())
        placeholders = [f"${i + 1}" for i in range(len(columns))]
        updates = [f"{c} = EXCLUDED.{c}" for c in columns if c != key_column]
        query = (
            f"INSERT INTO {self.TABLE_NAME} ({', '.join(columns)}) "
            f"VALUES ({', '.join(placeholders)}) "
            f"ON CONFLICT ({key_column}) DO UPDATE SET {', '.join(updates)} "
            f"RETURNING {returning}"
        )
        row = await self._db.fetchrow(query, *data.values())
        return dict(row) if row else None

    async def _fetch_one(
        self,
        where: str,
        args: Sequence[Any] = (),
    ) -> Optional[Dict[str, Any]]:
        row = await self._db.fetchrow(
            f"SELECT * FROM {self.TABLE_NAME} WHERE {where}", *args
        )
        return dict(row) if row else None

    async def _fetch_many(
        self,
        where: str = "",
        args: Sequence[Any] = (),
        order_by: str = "",
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """SELECT * with optional WHERE / ORDER BY / LIMIT / OFFSET."""
        query = f"SELECT * FROM {self.TABLE_NAME}"
        if where:
            query += f" WHERE {where}"
        if order_by:
            query += f" ORDER BY {order_by}"
        if limit:
            query += f" LIMIT {int(limit)}"
        if offset:
            query += f" OFFSET {int(offset)}"

        rows = await self._db.fetch(query, *args)
        return [dict(r) for r in rows]
