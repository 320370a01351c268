"""Agent loop configuration.

Every tunable of the orchestration loop lives here, with the defaults the
assistant ships with.
"""

from dataclasses import dataclass, fields
from typing import Any, Dict


@dataclass
class AgentLoopConfig:
    """All agent loop configuration centralized in one place."""

    # Loop control
    max_iterations: int = 10
    """Model turns allowed per handle_message call."""

    # Tool execution
    tool_execution_timeout: float = 30.0
    """Per tool call timeout in seconds."""

    # LLM calls
    llm_call_timeout: float = 60.0
    """Per completion attempt timeout in seconds."""
    llm_max_retries: int = 2
    """Retries after the first attempt on overload or timeout."""
    llm_retry_base_delay: float = 1.0
    """Retry base delay in seconds (doubled each attempt)."""
    llm_retry_max_delay: float = 8.0
    """Upper bound for a single back-off sleep."""

    # Approval follow-up
    follow_up_max_tokens: int = 512
    """Token budget for the narrative written after approvals run."""

    def __post_init__(self):
        if self.max_iterations < 1:
            raise ValueError("max_iterations must be >= 1")
        if self.llm_max_retries < 0:
            raise ValueError("llm_max_retries must be >= 0")
        if self.llm_retry_base_delay < 0 or self.llm_retry_max_delay < 0:
            raise ValueError("retry delays must be >= 0")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AgentLoopConfig":
        """Build from a config mapping, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in (data or {}).items() if k in known})
