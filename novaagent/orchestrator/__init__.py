"""
Nova Orchestrator - Agent loop, approval flow and transcript handling

Usage:
    from novaagent.orchestrator import Orchestrator, AgentLoopConfig

    orchestrator = Orchestrator(llm_client, registry, action_store, config=AgentLoopConfig(max_iterations=5))
    result = await orchestrator.handle_message(user_id, conversation_id, text, history)
"""

from .config import AgentLoopConfig
from .history import ConversationTurn, to_model_turns
from .orchestrator import Orchestrator
from .prompts import NOVA_SYSTEM_INSTRUCTION, build_system_prompt
from .retry import backoff_delay, complete_with_retry
from .session import AgentSession, AgentState, IllegalStateTransition

__all__ = [
    "AgentLoopConfig",
    "ConversationTurn",
    "to_model_turns",
    "Orchestrator",
    "NOVA_SYSTEM_INSTRUCTION",
    "build_system_prompt",
    "backoff_delay",
    "complete_with_retry",
    "AgentSession",
    "AgentState",
    "IllegalStateTransition",
]
