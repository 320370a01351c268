"""
Provider interfaces for the built-in onboarding tools.

The agent core ships no real calendar, mail or knowledge-base client. The
host application implements these interfaces (Google Calendar, Gmail, its
own employee directory) and hands instances to ``build_onboarding_registry``.
Providers receive the user's credentials dict on every call and never look
anything up themselves.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional


class ProviderNotConnectedError(Exception):
    """The user has not connected the account a tool needs."""

    def __init__(self, service: str):
        super().__init__(f"{service} is not connected (missing OAuth credentials)")
        self.service = service


class BaseCalendarProvider(ABC):
    """Calendar backend used by check_calendar / book_calendar_event."""

    @abstractmethod
    async def list_events(
        self,
        credentials: Dict[str, Any],
        calendar_id: str,
        start: str,
        end: str,
        max_results: int = 50,
    ) -> List[Dict[str, Any]]:
        """Events overlapping [start, end]. Each: id, title, start, end, description, attendees."""

    @abstractmethod
    async def create_event(
        self,
        credentials: Dict[str, Any],
        title: str,
        start: str,
        end: str,
        description: str = "",
        attendees: Optional[List[str]] = None,
        reminders: Optional[List[Dict[str, Any]]] = None,
    ) -> Dict[str, Any]:
        """Create an event and return it (at least ``id``; ``link`` if available)."""


class BaseEmailProvider(ABC):
    """Mail backend used by send_email."""

    @abstractmethod
    async def send_email(
        self,
        credentials: Dict[str, Any],
        to: str,
        subject: str,
        body: str,
        cc: Optional[List[str]] = None,
        bcc: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        """Send and return provider info (at least ``message_id``)."""


class BaseKnowledgeProvider(ABC):
    """Company directory and knowledge base."""

    @abstractmethod
    async def find_employees(
        self,
        department: Optional[str] = None,
        role: Optional[str] = None,
        name: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Employees matching all given filters."""

    @abstractmethod
    async def find_supervisor(self, employee_name: str) -> Optional[Dict[str, Any]]:
        """Supervisor record (name, email, ...) or None when unknown."""

    @abstractmethod
    async def get_policy(
        self,
        policy_type: str,
        question: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Policy documents of one type."""

    @abstractmethod
    async def search(
        self,
        query: str,
        category: str = "all",
        limit: int = 5,
    ) -> List[Dict[str, Any]]:
        """Free-text search over the knowledge base."""
