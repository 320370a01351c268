"""
Nova Agent - Action orchestration and human approval for an onboarding assistant

Turns a user's message into tool calls (check calendar, book an event, send
an email, look up colleagues and policies). Read-only tools run right away;
anything that changes the outside world is stored as a pending action and
only runs after the user approves it, possibly minutes later in another
process.

Quick Start:
    from novaagent import NovaAgent

    app = NovaAgent("nova.yaml", calendar=my_calendar, email=my_mail, knowledge=my_directory)

    result = await app.handle_message("u1", "c1", "Book Dec 7-8 as vacation", history=[])
    if result.requires_approval:
        ids = [a.action_id for a in result.pending_actions]
        result = await app.resume_after_approval("u1", ids, "approve")

Lower level:
    from novaagent import Orchestrator, ToolRegistry, InMemoryActionStore

    orchestrator = Orchestrator(llm_client, registry, InMemoryActionStore())
"""

__version__ = "0.1.0"

from .errors import (
    AgentError,
    ErrorCode,
    CompletionError,
    CompletionOverloadError,
    MalformedTranscriptError,
    UnknownToolError,
    InvalidParamsError,
    ToolRegistrationError,
    ExternalServiceError,
    IterationLimitExceeded,
    ActionNotFoundError,
    ActionConflictError,
    InvalidTransitionError,
    ActionAlreadyProcessedError,
    AgentDisabledError,
    ActionStoreError,
    FeatureGateError,
)
from .result import AgentResult, ApprovalDecision, PendingAction, ExecutedAction, ActionOutcome
from .tools import ToolDefinition, ToolResult, ToolExecutionContext, ToolRegistry, ToolExecutor
from .actions import (
    Action,
    ActionStatus,
    ActionStore,
    InMemoryActionStore,
    PostgresActionStore,
)
from .orchestrator import Orchestrator, AgentLoopConfig, ConversationTurn, to_model_turns
from .preferences import PreferencesRepository, StaticFeatureGate
from .builtin_tools import build_onboarding_registry
from .app import NovaAgent

__all__ = [
    "__version__",
    # Errors
    "AgentError",
    "ErrorCode",
    "CompletionError",
    "CompletionOverloadError",
    "MalformedTranscriptError",
    "UnknownToolError",
    "InvalidParamsError",
    "ToolRegistrationError",
    "ExternalServiceError",
    "IterationLimitExceeded",
    "ActionNotFoundError",
    "ActionConflictError",
    "InvalidTransitionError",
    "ActionAlreadyProcessedError",
    "AgentDisabledError",
    "ActionStoreError",
    "FeatureGateError",
    # Results
    "AgentResult",
    "ApprovalDecision",
    "PendingAction",
    "ExecutedAction",
    "ActionOutcome",
    # Tools
    "ToolDefinition",
    "ToolResult",
    "ToolExecutionContext",
    "ToolRegistry",
    "ToolExecutor",
    "build_onboarding_registry",
    # Actions
    "Action",
    "ActionStatus",
    "ActionStore",
    "InMemoryActionStore",
    "PostgresActionStore",
    # Orchestration
    "Orchestrator",
    "AgentLoopConfig",
    "ConversationTurn",
    "to_model_turns",
    "PreferencesRepository",
    "StaticFeatureGate",
    "NovaAgent",
]
