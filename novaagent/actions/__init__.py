"""
Nova Agent Actions - Approval-gated tool invocations

- Action / ActionStatus: the record and its lifecycle
- ActionStore: storage interface with compare-and-swap ``transition``
- InMemoryActionStore / PostgresActionStore: backends
"""

from .models import Action, ActionStats, ActionStatus, ALLOWED_TRANSITIONS, check_transition
from .store import ActionStore, InMemoryActionStore
from .postgres_store import PostgresActionStore

__all__ = [
    "Action",
    "ActionStats",
    "ActionStatus",
    "ALLOWED_TRANSITIONS",
    "check_transition",
    "ActionStore",
    "InMemoryActionStore",
    "PostgresActionStore",
]
