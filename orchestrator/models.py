"""
Conversation data model: speakers, the live turn state, and ledger messages.
"""
from dataclasses import asdict, dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class Speaker(str, Enum):
    """The two parties of a session."""
    A = "A"
    B = "B"

    def other(self) -> "Speaker":
        return Speaker.B if self is Speaker.A else Speaker.A


@dataclass(frozen=True)
class TurnState:
    """
    Current speaker plus the live language pair.

    Replaced as a whole on every change, so a reader always sees a
    consistent (speaker, source, target) triple.
    """

    speaker: Speaker
    source_language: str
    target_language: str

    def switched(self) -> "TurnState":
        """Next speaker with the language pair swapped."""
        return TurnState(
            speaker=self.speaker.other(),
            source_language=self.target_language,
            target_language=self.source_language,
        )

    def with_languages(self, source_language: str, target_language: str) -> "TurnState":
        return TurnState(
            speaker=self.speaker,
            source_language=source_language,
            target_language=target_language,
        )


@dataclass(frozen=True)
class Message:
    """A translated utterance. Immutable once created."""

    id: str
    sequence: int
    session_id: str
    speaker: Speaker
    original_text: str
    translated_text: str
    confidence_score: int
    source_language: str
    target_language: str
    timestamp: datetime

    def __post_init__(self):
        if not 0 <= self.confidence_score <= 100:
            raise ValueError("confidence_score must be within 0-100")
        if self.sequence < 0:
            raise ValueError("sequence must be non-negative")

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["speaker"] = self.speaker.value
        data["timestamp"] = self.timestamp.isoformat()
        return data


@dataclass(frozen=True)
class Identity:
    """Authenticated user bound to the orchestrator."""

    user_id: str
    display_name: Optional[str] = None
