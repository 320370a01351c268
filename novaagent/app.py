"""
NovaAgent - Application entry point

Reads a YAML config and wires the LLM client, action store, feature gate,
onboarding tools and orchestrator. Async resources (database pool, schema
migrations) are created lazily on first use.

Config file::

    llm:
      provider: openai
      model: gpt-4o-mini
      api_key: ${OPENAI_API_KEY}

    database:                     # optional; omit for an in-memory store
      dsn: ${DATABASE_URL}

    agent:                        # optional; AgentLoopConfig fields
      max_iterations: 10
      llm_max_retries: 2

    features:
      agent_enabled: true         # default when no database is configured
"""

import logging
import os
import re
from typing import Any, Dict, List, Optional, Sequence, Union

from .actions.models import Action, ActionStats, ActionStatus
from .actions.postgres_store import PostgresActionStore
from .actions.store import ActionStore, InMemoryActionStore
from .builtin_tools.onboarding import build_onboarding_registry
from .builtin_tools.providers import BaseCalendarProvider, BaseEmailProvider, BaseKnowledgeProvider
from .db.database import Database
from .db.initialize import ensure_schema
from .orchestrator.config import AgentLoopConfig
from .orchestrator.history import TranscriptItem
from .orchestrator.orchestrator import Orchestrator
from .preferences import AgentPreferences, PreferencesRepository, StaticFeatureGate
from .protocols import CompletionClientProtocol, CredentialsProviderProtocol
from .result import AgentResult, ApprovalDecision
from .tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


def _load_config(path: str) -> dict:
    """Read YAML config file with ${VAR} environment variable substitution."""
    try:
        import yaml
    except ImportError:
        raise ImportError(
            "pyyaml is required for config file loading. "
            "Install with: pip install pyyaml"
        )

    with open(path, "r", encoding="utf-8") as f:
        raw = f.read()

    def _replace_env(match):
        var_name = match.group(1)
        value = os.environ.get(var_name)
        if value is None:
            raise ValueError(
                f"Environment variable '{var_name}' not set "
                f"(referenced in config file '{path}')"
            )
        return value

    resolved = re.sub(r"\$\{(\w+)\}", _replace_env, raw)
    return yaml.safe_load(resolved) or {}


class NovaAgent:
    """
    Nova agent application.

    Sync constructor reads and validates config; the database pool and
    schema are set up on the first async call.

    Args:
        config: Path to a YAML file, or an already-loaded config dict.
        calendar / email / knowledge: Providers for the onboarding tools.
        credentials_provider: Resolves per-user OAuth credentials for tools.
        llm_client: Completion client override (defaults to LiteLLMClient from config).
        registry: Tool registry override (defaults to the onboarding tools).

    Example:
        app = NovaAgent("nova.yaml", calendar=GoogleCalendar(), email=Gmail(), knowledge=Directory())
        result = await app.handle_message("u1", "c1", "Book Dec 7-8 off", history=[])
    """

    def __init__(
        self,
        config: Union[str, Dict[str, Any]],
        calendar: Optional[BaseCalendarProvider] = None,
        email: Optional[BaseEmailProvider] = None,
        knowledge: Optional[BaseKnowledgeProvider] = None,
        credentials_provider: Optional[CredentialsProviderProtocol] = None,
        llm_client: Optional[CompletionClientProtocol] = None,
        registry: Optional[ToolRegistry] = None,
    ):
        self._config = _load_config(config) if isinstance(config, str) else dict(config)
        self._initialized = False

        llm_cfg = self._config.get("llm") or {}
        if llm_client is None and (not llm_cfg.get("provider") or not llm_cfg.get("model")):
            raise ValueError("Missing required config fields: 'llm.provider' and 'llm.model'")
        db_cfg = self._config.get("database")
        if db_cfg is not None and not (db_cfg.get("dsn") if isinstance(db_cfg, dict) else db_cfg):
            raise ValueError("Config field 'database' must provide a 'dsn'")

        self._loop_config = AgentLoopConfig.from_dict(self._config.get("agent") or {})
        self._registry = registry or build_onboarding_registry(calendar, email, knowledge)
        self._credentials_provider = credentials_provider
        self._llm_client = llm_client

        # Set during lazy initialization
        self._database: Optional[Database] = None
        self._action_store: Optional[ActionStore] = None
        self._preferences: Optional[PreferencesRepository] = None
        self._orchestrator: Optional[Orchestrator] = None

    async def _ensure_initialized(self) -> None:
        """Lazy initialization, runs once on the first async call."""
        if self._initialized:
            return

        cfg = self._config

        # 1. LLM client
        if self._llm_client is None:
            from .llm.base import LLMConfig
            from .llm.litellm_client import LiteLLMClient

            llm_cfg = cfg["llm"]
            llm_config = LLMConfig(
                model=llm_cfg["model"],
                api_key=llm_cfg.get("api_key"),
                base_url=llm_cfg.get("base_url"),
                temperature=llm_cfg.get("temperature", 0.7),
                max_tokens=llm_cfg.get("max_tokens", 2048),
            )
            self._llm_client = LiteLLMClient(config=llm_config, provider_name=llm_cfg["provider"])

        # 2. Storage + feature gate
        db_cfg = cfg.get("database")
        if db_cfg:
            dsn = db_cfg["dsn"] if isinstance(db_cfg, dict) else db_cfg
            pool_cfg = db_cfg if isinstance(db_cfg, dict) else {}
            self._database = Database(
                dsn=dsn,
                min_size=pool_cfg.get("min_pool_size", 2),
                max_size=pool_cfg.get("max_pool_size", 10),
                command_timeout=pool_cfg.get("command_timeout", 60.0),
            )
            await self._database.initialize()
            await ensure_schema(self._database)
            self._action_store = PostgresActionStore(self._database)
            self._preferences = PreferencesRepository(self._database)
            feature_gate = self._preferences
            logger.info("Storage: postgres")
        else:
            self._action_store = InMemoryActionStore()
            features = cfg.get("features") or {}
            feature_gate = StaticFeatureGate(enabled=features.get("agent_enabled", True))
            logger.info("Storage: in-memory (no database configured)")

        # 3. Orchestrator
        self._orchestrator = Orchestrator(
            llm_client=self._llm_client,
            registry=self._registry,
            action_store=self._action_store,
            feature_gate=feature_gate,
            config=self._loop_config,
            credentials_provider=self._credentials_provider,
            system_prompt=cfg.get("system_prompt"),
        )

        self._initialized = True
        logger.info(f"NovaAgent initialized with {len(self._registry)} tool(s)")

    # ── Conversation ──

    async def handle_message(
        self,
        user_id: str,
        conversation_id: Optional[str],
        text: str,
        history: Optional[Sequence[TranscriptItem]] = None,
    ) -> AgentResult:
        await self._ensure_initialized()
        return await self._orchestrator.handle_message(user_id, conversation_id, text, history)

    async def resume_after_approval(
        self,
        user_id: str,
        action_ids: Sequence[str],
        decision: Union[ApprovalDecision, str],
        follow_up: bool = False,
    ) -> AgentResult:
        await self._ensure_initialized()
        return await self._orchestrator.resume_after_approval(user_id, action_ids, decision, follow_up)

    # ── Action history ──

    async def list_pending_actions(self, user_id: str) -> List[Action]:
        await self._ensure_initialized()
        return await self._action_store.list_pending(user_id)

    async def list_actions(
        self,
        user_id: str,
        status: Optional[Union[ActionStatus, str]] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Action]:
        await self._ensure_initialized()
        return await self._action_store.list_actions(
            user_id,
            status=ActionStatus(status) if status is not None else None,
            limit=limit,
            offset=offset,
        )

    async def action_stats(self, user_id: str) -> ActionStats:
        await self._ensure_initialized()
        return await self._action_store.stats(user_id)

    # ── Preferences ──

    async def get_preferences(self, user_id: str) -> AgentPreferences:
        await self._ensure_initialized()
        if self._preferences is None:
            enabled = await self._orchestrator.feature_gate.is_agent_enabled(user_id)
            return AgentPreferences(user_id=user_id, enable_agent=enabled)
        return await self._preferences.get_preferences(user_id)

    async def update_preferences(self, user_id: str, **changes: Any) -> AgentPreferences:
        await self._ensure_initialized()
        if self._preferences is None:
            raise RuntimeError("Preferences need a database; add 'database.dsn' to the config")
        return await self._preferences.update_preferences(user_id, **changes)

    async def close(self) -> None:
        if self._llm_client is not None and hasattr(self._llm_client, "close"):
            await self._llm_client.close()
        if self._database is not None:
            await self._database.close()
        self._initialized = False
