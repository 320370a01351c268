"""
Nova Agent Schema Management.

Versioned, append-only migrations:
- Applied versions are tracked in ``schema_version``
- Only migrations newer than the recorded version run
- Concurrent startups serialize on a Postgres advisory lock

Usage:
    db = Database(dsn="postgresql://...")
    await db.initialize()
    await ensure_schema(db)
"""

import logging
from typing import List, Tuple

from .database import Database

logger = logging.getLogger(__name__)

# ──────────────────────────────────────────────────────────────
# Migration registry
#
# Append-only. Never edit or remove an applied entry.
# Each entry: (version, description, sql)
# ──────────────────────────────────────────────────────────────
MIGRATIONS: List[Tuple[int, str, str]] = [
    (
        1,
        "Create agent_actions table",
        """
        CREATE TABLE IF NOT EXISTS agent_actions (
            id                    UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id               TEXT NOT NULL,
            conversation_id       TEXT,
            action_type           TEXT NOT NULL,
            status                TEXT NOT NULL DEFAULT 'pending'
                CHECK (status IN ('pending', 'approved', 'rejected', 'executed', 'failed')),
            input_params          JSONB NOT NULL DEFAULT '{}'::jsonb,
            output_result         JSONB,
            error_message         TEXT,
            requires_approval     BOOLEAN NOT NULL DEFAULT TRUE,
            approved_at           TIMESTAMPTZ,
            executed_at           TIMESTAMPTZ,
            execution_duration_ms INTEGER,
            created_at            TIMESTAMPTZ NOT NULL DEFAULT NOW()
        );
        """,
    ),
    (
        2,
        "Index agent_actions by user and status",
        """
        CREATE INDEX IF NOT EXISTS idx_agent_actions_user_status
            ON agent_actions (user_id, status, created_at);
        CREATE INDEX IF NOT EXISTS idx_agent_actions_conversation
            ON agent_actions (conversation_id);
        """,
    ),
    (
        3,
        "Create user_agent_preferences table",
        """
        CREATE TABLE IF NOT EXISTS user_agent_preferences (
            user_id                 TEXT PRIMARY KEY,
            enable_agent            BOOLEAN NOT NULL DEFAULT TRUE,
            auto_approve_low_risk   BOOLEAN NOT NULL DEFAULT FALSE,
            notification_on_action  BOOLEAN NOT NULL DEFAULT TRUE,
            created_at              TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at              TIMESTAMPTZ NOT NULL DEFAULT NOW()
        );
        """,
    ),
]


_BOOTSTRAP_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY,
    description TEXT NOT NULL,
    applied_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
"""

_LOCK_ID = 6_1830_4417


async def ensure_schema(db: Database) -> int:
    """Apply pending migrations and return the resulting schema version.

    Each migration runs in its own transaction together with its
    ``schema_version`` row, so a failure leaves earlier versions applied.
    """
    async with db.acquire() as conn:
        await conn.execute("SELECT pg_advisory_lock($1)", _LOCK_ID)
        try:
            await conn.execute(_BOOTSTRAP_SQL)
            current = await conn.fetchval(
                "SELECT COALESCE(MAX(version), 0) FROM schema_version"
            )

            pending = [(v, d, s) for v, d, s in MIGRATIONS if v > current]
            if not pending:
                logger.debug(f"Schema up to date (version {current})")
                return current

            for version, description, sql in pending:
                async with conn.transaction():
                    await conn.execute(sql)
                    await conn.execute(
                        "INSERT INTO schema_version (version, description) VALUES ($1, $2)",
                        version,
                        description,
                    )
                logger.info(f"Migration {version}: {description}")

            latest = pending[-1][0]
            logger.info(f"Schema migrated {current} -> {latest} ({len(pending)} migration(s))")
            return latest
        finally:
            await conn.execute("SELECT pg_advisory_unlock($1)", _LOCK_ID)
