"""
Per-user agent preferences and the feature gate built on them.

``user_agent_preferences`` holds one row per user; a user without a row
gets the defaults (agent enabled).
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from .db.repository import Repository

logger = logging.getLogger(__name__)


@dataclass
class AgentPreferences:
    """
    One user's agent settings.

    Only ``enable_agent`` is read by the agent core. ``auto_approve_low_risk``
    and ``notification_on_action`` are persisted and returned for the
    settings screen; approval is always decided per tool by
    ``ToolDefinition.auto_executable``.
    """
    user_id: str
    enable_agent: bool = True
    auto_approve_low_risk: bool = False
    notification_on_action: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "enable_agent": self.enable_agent,
            "auto_approve_low_risk": self.auto_approve_low_risk,
            "notification_on_action": self.notification_on_action,
        }


_PREFERENCE_FIELDS = ("enable_agent", "auto_approve_low_risk", "notification_on_action")


class PreferencesRepository(Repository):
    """Postgres-backed preferences; implements FeatureGateProtocol."""

    TABLE_NAME = "user_agent_preferences"

    async def get_preferences(self, user_id: str) -> AgentPreferences:
        row = await self._fetch_one("user_id = $1", (user_id,))
        if row is None:
            return AgentPreferences(user_id=user_id)
        return AgentPreferences(
            user_id=user_id,
            **{f: row[f] for f in _PREFERENCE_FIELDS if row.get(f) is not None},
        )

    async def update_preferences(self, user_id: str, **changes: Any) -> AgentPreferences:
        """Upsert the given fields; unknown field names raise ValueError."""
        unknown = set(changes) - set(_PREFERENCE_FIELDS)
        if unknown:
            raise ValueError(f"Unknown preference field(s): {', '.join(sorted(unknown))}")
        current = await self.get_preferences(user_id)
        data = {**current.to_dict(), **changes}
        row = await self._upsert("user_id", data)
        logger.info(f"Updated agent preferences for {user_id}: {sorted(changes)}")
        return AgentPreferences(**{k: row[k] for k in ("user_id", *_PREFERENCE_FIELDS)})

    async def is_agent_enabled(self, user_id: str) -> bool:
        prefs = await self.get_preferences(user_id)
        return prefs.enable_agent


class StaticFeatureGate:
    """Feature gate with a fixed default and optional per-user overrides."""

    def __init__(self, enabled: bool = True, overrides: Optional[Mapping[str, bool]] = None):
        self.enabled = enabled
        self.overrides = dict(overrides or {})

    async def is_agent_enabled(self, user_id: str) -> bool:
        return self.overrides.get(user_id, self.enabled)
