"""
Onboarding tools: calendar, email, team directory, policies, knowledge base.

Reading tools run automatically; booking an event and sending an email
always wait for the user's approval.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..constants import SERVICE_GMAIL, SERVICE_GOOGLE_CALENDAR
from ..tools.models import ToolDefinition, ToolExecutionContext
from ..tools.registry import ToolRegistry
from .providers import (
    BaseCalendarProvider,
    BaseEmailProvider,
    BaseKnowledgeProvider,
    ProviderNotConnectedError,
)

logger = logging.getLogger(__name__)

POLICY_TYPES = ["vacation_days", "sick_leave", "approval_process", "public_holidays"]
SEARCH_CATEGORIES = ["employees", "faqs", "tasks", "all"]

_STRING_LIST = {"type": "array", "items": {"type": "string"}}


# ──────────────────────────────────────────────────────────────
# Schemas
# ──────────────────────────────────────────────────────────────

CHECK_CALENDAR_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "start_date": {
            "type": "string",
            "description": 'Start of the range, ISO 8601 (e.g. "2025-12-20T00:00:00Z")',
        },
        "end_date": {
            "type": "string",
            "description": 'End of the range, ISO 8601 (e.g. "2025-12-27T23:59:59Z")',
        },
        "calendar_ids": {
            **_STRING_LIST,
            "description": "Optional: calendar IDs to check. Defaults to the primary calendar.",
        },
    },
    "required": ["start_date", "end_date"],
}

BOOK_CALENDAR_EVENT_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "title": {"type": "string", "description": 'Event title (e.g. "Vacation - Annual Leave")'},
        "start_date": {"type": "string", "description": "Start, ISO 8601"},
        "end_date": {"type": "string", "description": "End, ISO 8601 (the last day, not the day after)"},
        "description": {"type": "string", "description": "Optional: event details"},
        "attendees": {**_STRING_LIST, "description": "Optional: attendee email addresses"},
        "reminders": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "method": {"type": "string", "enum": ["email", "popup"]},
                    "minutes": {"type": "integer", "minimum": 0},
                },
            },
            "description": "Optional: custom reminders",
        },
    },
    "required": ["title", "start_date", "end_date"],
}

SEND_EMAIL_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "to": {"type": "string", "description": 'Recipient address (e.g. "supervisor@company.com")'},
        "subject": {"type": "string", "description": "Subject line"},
        "body": {"type": "string", "description": "Email body. May contain HTML."},
        "cc": {**_STRING_LIST, "description": "Optional: CC recipients"},
        "bcc": {**_STRING_LIST, "description": "Optional: BCC recipients"},
    },
    "required": ["to", "subject", "body"],
}

GET_TEAM_MEMBERS_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "department": {"type": "string", "description": 'Optional: department (e.g. "Engineering")'},
        "role": {"type": "string", "description": 'Optional: job role (e.g. "Manager")'},
        "search_name": {"type": "string", "description": "Optional: employee name"},
    },
}

GET_SUPERVISOR_INFO_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "employee_name": {"type": "string", "description": "Employee whose supervisor to look up"},
    },
    "required": ["employee_name"],
}

GET_VACATION_POLICY_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "policy_type": {"type": "string", "enum": POLICY_TYPES},
        "specific_question": {"type": "string", "description": "Optional: a specific question"},
    },
    "required": ["policy_type"],
}

SEARCH_KNOWLEDGE_BASE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "query": {"type": "string", "description": "Search text"},
        "category": {"type": "string", "enum": SEARCH_CATEGORIES},
        "limit": {"type": "integer", "minimum": 1, "maximum": 10, "description": "Default 5"},
    },
    "required": ["query"],
}


# ──────────────────────────────────────────────────────────────
# Action descriptions
# ──────────────────────────────────────────────────────────────

def _display_date(value: Any) -> str:
    """``2025-12-07T00:00:00Z`` -> ``2025-12-07``; anything unparsable is shown as-is."""
    if not isinstance(value, str):
        return str(value)
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).date().isoformat()
    except ValueError:
        return value


def describe_send_email(params: Dict[str, Any]) -> str:
    return f'Send email to {params["to"]} with subject "{params["subject"]}"'


def describe_book_calendar_event(params: Dict[str, Any]) -> str:
    return (
        f'Book calendar event "{params["title"]}" from '
        f'{_display_date(params["start_date"])} to {_display_date(params["end_date"])}'
    )


def describe_check_calendar(params: Dict[str, Any]) -> str:
    return f"Check calendar from {params['start_date']} to {params['end_date']}"


def describe_get_team_members(params: Dict[str, Any]) -> str:
    filters = []
    if params.get("department"):
        filters.append(f"department: {params['department']}")
    if params.get("role"):
        filters.append(f"role: {params['role']}")
    return "Get team members" + (f" ({', '.join(filters)})" if filters else "")


def describe_get_supervisor_info(params: Dict[str, Any]) -> str:
    return f"Get supervisor information for {params['employee_name']}"


def describe_get_vacation_policy(params: Dict[str, Any]) -> str:
    return f"Get {params['policy_type'].replace('_', ' ')} policy information"


def describe_search_knowledge_base(params: Dict[str, Any]) -> str:
    return f'Search knowledge base for: "{params["query"]}"'


# ──────────────────────────────────────────────────────────────
# Handlers
# ──────────────────────────────────────────────────────────────

def _credentials(context: ToolExecutionContext, service: str) -> Dict[str, Any]:
    creds = context.credentials.get(service)
    if not creds:
        raise ProviderNotConnectedError(service)
    return creds


class CalendarTools:
    def __init__(self, provider: BaseCalendarProvider):
        self.provider = provider

    async def check_calendar(self, params: Dict[str, Any], context: ToolExecutionContext) -> Dict[str, Any]:
        creds = _credentials(context, SERVICE_GOOGLE_CALENDAR)
        start, end = params["start_date"], params["end_date"]
        calendar_ids = params.get("calendar_ids") or ["primary"]

        calendars: List[Dict[str, Any]] = []
        for calendar_id in calendar_ids:
            try:
                events = await self.provider.list_events(creds, calendar_id, start, end)
            except ProviderNotConnectedError:
                raise
            except Exception as e:
                # per-calendar failures are reported inline
                logger.warning(f"Failed to check calendar {calendar_id}: {e}")
                calendars.append({"calendar_id": calendar_id, "error": str(e), "event_count": 0, "events": []})
                continue
            calendars.append({
                "calendar_id": calendar_id,
                "calendar_name": "Your Calendar" if calendar_id == "primary" else calendar_id,
                "event_count": len(events),
                "events": events,
            })

        total = sum(c["event_count"] for c in calendars)
        has_conflicts = total > 0
        conflict_dates = [e.get("start") for c in calendars for e in c["events"]][:5]
        if has_conflicts:
            summary = f"Found {total} event(s) during {start} to {end}. There may be conflicts."
        else:
            summary = f"No events found during {start} to {end}. Calendar is clear."
        return {
            "calendars": calendars,
            "total_events": total,
            "has_conflicts": has_conflicts,
            "conflict_dates": conflict_dates,
            "date_range": {"start": start, "end": end},
            "summary": summary,
        }

    async def book_calendar_event(self, params: Dict[str, Any], context: ToolExecutionContext) -> Dict[str, Any]:
        creds = _credentials(context, SERVICE_GOOGLE_CALENDAR)
        reminders = params.get("reminders") or [
            {"method": "email", "minutes": 24 * 60},
            {"method": "popup", "minutes": 30},
        ]
        event = await self.provider.create_event(
            creds,
            title=params["title"],
            start=params["start_date"],
            end=params["end_date"],
            description=params.get("description", ""),
            attendees=params.get("attendees") or [],
            reminders=reminders,
        )
        return {
            "event_id": event.get("id"),
            "title": params["title"],
            "start": params["start_date"],
            "end": params["end_date"],
            "link": event.get("link"),
            "summary": (
                f'Calendar event "{params["title"]}" booked successfully from '
                f'{_display_date(params["start_date"])} to {_display_date(params["end_date"])}.'
            ),
        }


class EmailTools:
    def __init__(self, provider: BaseEmailProvider):
        self.provider = provider

    async def send_email(self, params: Dict[str, Any], context: ToolExecutionContext) -> Dict[str, Any]:
        creds = _credentials(context, SERVICE_GMAIL)
        sent = await self.provider.send_email(
            creds,
            to=params["to"],
            subject=params["subject"],
            body=params["body"],
            cc=params.get("cc") or [],
            bcc=params.get("bcc") or [],
        )
        return {
            "message_id": sent.get("message_id"),
            "to": params["to"],
            "subject": params["subject"],
            "summary": f'Email sent successfully to {params["to"]} with subject "{params["subject"]}".',
        }


class KnowledgeTools:
    def __init__(self, provider: BaseKnowledgeProvider):
        self.provider = provider

    async def get_team_members(self, params: Dict[str, Any], context: ToolExecutionContext) -> Dict[str, Any]:
        department, role = params.get("department"), params.get("role")
        employees = await self.provider.find_employees(
            department=department, role=role, name=params.get("search_name"),
        )
        summary = f"Found {len(employees)} team member(s)"
        if department:
            summary += f" in {department}"
        if role:
            summary += f" with role {role}"
        return {"employees": employees, "count": len(employees), "summary": summary + "."}

    async def get_supervisor_info(self, params: Dict[str, Any], context: ToolExecutionContext) -> Dict[str, Any]:
        name = params["employee_name"]
        supervisor = await self.provider.find_supervisor(name)
        if not supervisor:
            return {"employee": name, "supervisor": None, "summary": f"No supervisor information found for {name}."}
        contact = f" ({supervisor['email']})" if supervisor.get("email") else ""
        return {
            "employee": name,
            "supervisor": supervisor,
            "summary": f"{name}'s supervisor is {supervisor.get('name', 'not specified')}{contact}.",
        }

    async def get_vacation_policy(self, params: Dict[str, Any], context: ToolExecutionContext) -> Dict[str, Any]:
        policy_type = params["policy_type"]
        documents = await self.provider.get_policy(policy_type, params.get("specific_question"))
        return {
            "policy_type": policy_type,
            "documents": documents,
            "summary": f"Retrieved {len(documents)} policy document(s) about {policy_type.replace('_', ' ')}.",
        }

    async def search_knowledge_base(self, params: Dict[str, Any], context: ToolExecutionContext) -> Dict[str, Any]:
        query = params["query"]
        category = params.get("category", "all")
        results = await self.provider.search(query, category=category, limit=params.get("limit", 5))
        summary = f'Found {len(results)} result(s) for "{query}"'
        if category != "all":
            summary += f" in {category}"
        return {"query": query, "category": category, "results": results, "summary": summary + "."}


# ──────────────────────────────────────────────────────────────
# Registry
# ──────────────────────────────────────────────────────────────

def onboarding_tools(
    calendar: Optional[BaseCalendarProvider] = None,
    email: Optional[BaseEmailProvider] = None,
    knowledge: Optional[BaseKnowledgeProvider] = None,
) -> List[ToolDefinition]:
    """Tool definitions for whichever providers are supplied."""
    tools: List[ToolDefinition] = []

    if calendar is not None:
        cal = CalendarTools(calendar)
        tools += [
            ToolDefinition(
                name="check_calendar",
                description=(
                    "Check Google Calendar for events in a date range. Use this to see whether "
                    "the user (or a colleague) already has vacation or meetings scheduled."
                ),
                parameters=CHECK_CALENDAR_SCHEMA,
                auto_executable=True,
                handler=cal.check_calendar,
                describe=describe_check_calendar,
            ),
            ToolDefinition(
                name="book_calendar_event",
                description="Create an event on the user's Google Calendar (vacation, meeting, reminder).",
                parameters=BOOK_CALENDAR_EVENT_SCHEMA,
                auto_executable=False,
                handler=cal.book_calendar_event,
                describe=describe_book_calendar_event,
            ),
        ]

    if email is not None:
        mail = EmailTools(email)
        tools.append(ToolDefinition(
            name="send_email",
            description=(
                "Send an email via Gmail to a supervisor, team member or HR. "
                "Be professional and include relevant context."
            ),
            parameters=SEND_EMAIL_SCHEMA,
            auto_executable=False,
            handler=mail.send_email,
            describe=describe_send_email,
        ))

    if knowledge is not None:
        kb = KnowledgeTools(knowledge)
        tools += [
            ToolDefinition(
                name="get_team_members",
                description="Look up team members. Filter by department, role or name.",
                parameters=GET_TEAM_MEMBERS_SCHEMA,
                auto_executable=True,
                handler=kb.get_team_members,
                describe=describe_get_team_members,
            ),
            ToolDefinition(
                name="get_supervisor_info",
                description="Get an employee's supervisor, including email and contact details.",
                parameters=GET_SUPERVISOR_INFO_SCHEMA,
                auto_executable=True,
                handler=kb.get_supervisor_info,
                describe=describe_get_supervisor_info,
            ),
            ToolDefinition(
                name="get_vacation_policy",
                description="Get the vacation, sick leave, approval process or public holiday policy.",
                parameters=GET_VACATION_POLICY_SCHEMA,
                auto_executable=True,
                handler=kb.get_vacation_policy,
                describe=describe_get_vacation_policy,
            ),
            ToolDefinition(
                name="search_knowledge_base",
                description="Search the company knowledge base for policies, procedures and FAQs.",
                parameters=SEARCH_KNOWLEDGE_BASE_SCHEMA,
                auto_executable=True,
                handler=kb.search_knowledge_base,
                describe=describe_search_knowledge_base,
            ),
        ]

    return tools


def build_onboarding_registry(
    calendar: Optional[BaseCalendarProvider] = None,
    email: Optional[BaseEmailProvider] = None,
    knowledge: Optional[BaseKnowledgeProvider] = None,
) -> ToolRegistry:
    registry = ToolRegistry(onboarding_tools(calendar, email, knowledge))
    logger.info(f"Onboarding tools registered: {', '.join(registry.names()) or 'none'}")
    return registry
