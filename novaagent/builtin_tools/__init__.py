"""
Built-in onboarding tools and the provider interfaces they delegate to.
"""

from .providers import (
    BaseCalendarProvider,
    BaseEmailProvider,
    BaseKnowledgeProvider,
    ProviderNotConnectedError,
)
from .onboarding import build_onboarding_registry, onboarding_tools

__all__ = [
    "BaseCalendarProvider",
    "BaseEmailProvider",
    "BaseKnowledgeProvider",
    "ProviderNotConnectedError",
    "build_onboarding_registry",
    "onboarding_tools",
]
