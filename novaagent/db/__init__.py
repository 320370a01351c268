"""
Nova Agent Database - asyncpg-backed persistence.

- Database: shared connection pool (one per app)
- Repository: base class for table-owning data access
- ensure_schema: apply pending migrations at startup
"""

from .database import Database, init_connection
from .repository import Repository
from .initialize import ensure_schema, MIGRATIONS

__all__ = ["Database", "init_connection", "Repository", "ensure_schema", "MIGRATIONS"]
