"""
Shared constants for the Nova agent core.

Fixed user-facing strings and markers used by both the orchestrator and
the built-in tools.
"""

from typing import Tuple

# ── Credential service names ──
# Keys of ToolExecutionContext.credentials
SERVICE_GOOGLE_CALENDAR = "google_calendar"
SERVICE_GMAIL = "gmail"

# ── Tool families (for user-facing error messages) ──
CALENDAR_TOOLS: Tuple[str, ...] = ("check_calendar", "book_calendar_event")
EMAIL_TOOLS: Tuple[str, ...] = ("send_email",)
KNOWLEDGE_TOOLS: Tuple[str, ...] = (
    "search_knowledge_base",
    "get_team_members",
    "get_supervisor_info",
    "get_vacation_policy",
)

# ── Fixed responses ──
DEFAULT_GREETING = "I'm here to help! How can I assist you today?"

DEFAULT_APPROVAL_PROMPT = "I need your approval to proceed with the following actions:"

AGENT_DISABLED_MESSAGE = (
    "Agent features are currently disabled. "
    "Please enable them in settings to use automated actions."
)

# Appended to partial content when the loop runs out of iterations
ITERATION_LIMIT_MARKER = "[ITERATION_LIMIT_REACHED]"

ITERATION_LIMIT_MESSAGE = (
    "This request requires more steps than I can handle in one go. "
    "Try breaking it into smaller, specific tasks, or ask me to do one thing at a time."
)

# Content of the tool turn standing in for a call that awaits approval
PENDING_APPROVAL_PLACEHOLDER = "[PENDING_APPROVAL] This action is waiting for the user's approval."

# Prefix of tool turns describing a failed tool call
TOOL_ERROR_PREFIX = "[ERROR] "
