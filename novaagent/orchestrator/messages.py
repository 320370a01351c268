"""User-facing text built from loop outcomes.

Kept apart from the loop so the wording can change without touching
control flow.
"""

from typing import List, Optional, Tuple

from ..constants import (
    CALENDAR_TOOLS,
    EMAIL_TOOLS,
    ITERATION_LIMIT_MARKER,
    ITERATION_LIMIT_MESSAGE,
    KNOWLEDGE_TOOLS,
)
from ..errors import CompletionError, CompletionOverloadError
from ..result import ActionOutcome, ExecutedAction

_COMPLETION_MESSAGES = {
    "overload": "The AI service is experiencing high demand right now. Please wait a moment and try again.",
    "network": "I'm having trouble connecting to the AI service. Please check your connection and try again.",
    "auth": (
        "There was an authentication issue with one of your connected services. "
        "Please check your Google connection in Settings."
    ),
    "unknown": (
        "I couldn't use my tools for this request, so I can only give a basic answer right now. "
        "If this continues, please try again later or start a new conversation."
    ),
}


def classify_completion_error(error: Exception) -> Tuple[str, str]:
    """Return ``(category, user_message)`` for a failed completion call."""
    if isinstance(error, (CompletionOverloadError, TimeoutError)):
        category = "overload"
    elif isinstance(error, CompletionError):
        category = error.details.get("category", "unknown")
    else:
        category = "unknown"
    return category, _COMPLETION_MESSAGES.get(category, _COMPLETION_MESSAGES["unknown"])


def tool_error_message(tool_name: str, error: str) -> str:
    """Friendly explanation of a failed tool call, by tool family."""
    lowered = (error or "").lower()
    not_connected = "not connected" in lowered or "oauth" in lowered

    if tool_name in CALENDAR_TOOLS:
        if not_connected:
            return "I couldn't access your Google Calendar. Please make sure your Google account is connected in Settings."
        return f"I had trouble with your calendar: {error}. Please verify your Google Calendar connection."
    if tool_name in EMAIL_TOOLS:
        if not_connected:
            return "I couldn't send the email because your Gmail isn't connected. Please connect your Google account in Settings."
        if "invalid" in lowered and "email" in lowered:
            return "The email address appears to be invalid. Please check the recipient address."
        return f"I couldn't send the email: {error}. Please verify the email details and your Gmail connection."
    if tool_name in KNOWLEDGE_TOOLS:
        return f"I had trouble searching our knowledge base: {error}. Please try rephrasing your question."
    return f"I encountered an error while trying to {tool_name.replace('_', ' ')}: {error}"


def approval_summary(outcomes: List[ActionOutcome]) -> str:
    """Markdown summary of what happened to each approved/rejected action."""
    if not outcomes:
        return "No actions were processed."

    lines = ["**Actions Executed:**", ""]
    for outcome in outcomes:
        label = outcome.tool_name or outcome.action_id
        if outcome.status == "executed":
            detail = outcome.summary or "completed"
            lines.append(f"✅ {label}: {detail}")
        elif outcome.status == "rejected":
            lines.append(f"🚫 {label}: rejected")
        elif outcome.status == "failed" and outcome.tool_name:
            lines.append(f"❌ {label}: {tool_error_message(outcome.tool_name, outcome.error or '')}")
        else:
            lines.append(f"❌ {label}: {outcome.error or outcome.status}")

    executed = sum(1 for o in outcomes if o.status == "executed")
    attempted = sum(1 for o in outcomes if o.status in ("executed", "failed"))
    lines.append("")
    if attempted == 0:
        lines.append("No actions were executed.")
    elif executed == attempted == len(outcomes):
        lines.append("All actions completed successfully!")
    else:
        lines.append(f"{executed}/{len(outcomes)} actions completed.")
    return "\n".join(lines)


def iteration_limit_content(narrative: Optional[str], executed: List[ExecutedAction]) -> str:
    """Partial answer when the loop runs out of iterations."""
    parts = []
    if narrative:
        parts.append(narrative.strip())
    if executed:
        steps = [f"- {a.tool_name}: {a.status}" for a in executed]
        parts.append(f"I've already completed {len(executed)} step(s):\n" + "\n".join(steps))
    parts.append(ITERATION_LIMIT_MESSAGE)
    parts.append(ITERATION_LIMIT_MARKER)
    return "\n\n".join(parts)
