"""
Transcript -> model turns.

Stored transcripts use ``user``/``assistant`` roles. Turns flagged
``internal`` (system notices written by the app, not part of the dialogue)
are dropped; everything else maps 1:1 in order.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from ..errors import MalformedTranscriptError

_ROLE_MAP = {
    "user": "user",
    "assistant": "assistant",
}


@dataclass(frozen=True)
class ConversationTurn:
    role: str
    content: str
    internal: bool = False


TranscriptItem = Union[ConversationTurn, Mapping[str, Any]]


def _field(turn: TranscriptItem, name: str) -> Any:
    if isinstance(turn, Mapping):
        return turn.get(name)
    return getattr(turn, name, None)


def to_model_turns(transcript: Optional[Iterable[TranscriptItem]]) -> List[Dict[str, str]]:
    """
    Convert stored conversation turns into model messages.

    Raises:
        MalformedTranscriptError: a turn lacks role/content or has an unknown role
    """
    turns: List[Dict[str, str]] = []
    for index, turn in enumerate(transcript or ()):
        if _field(turn, "internal"):
            continue
        role = _field(turn, "role")
        content = _field(turn, "content")
        if role is None:
            raise MalformedTranscriptError(f"Turn {index} has no role", index=index)
        if role not in _ROLE_MAP:
            raise MalformedTranscriptError(f"Turn {index} has unknown role '{role}'", index=index)
        if content is None:
            raise MalformedTranscriptError(f"Turn {index} has no content", index=index)
        if not isinstance(content, str):
            raise MalformedTranscriptError(
                f"Turn {index} content must be text, got {type(content).__name__}",
                index=index,
            )
        turns.append({"role": _ROLE_MAP[role], "content": content})
    return turns
