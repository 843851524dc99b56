"""
Contracts for the external collaborators the orchestrator consumes.

The transcription engine, translation engine, speech synthesizer, persistent
store and identity provider are all reached through these narrow interfaces.
Concrete adapters live in the engines package.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, List, Optional, Protocol

from .models import Identity


@dataclass(frozen=True)
class TranscriptEvent:
    """One recognition result. Only final results drive the capture state machine."""

    transcript: str
    is_final: bool = True


@dataclass(frozen=True)
class TranslationRequest:
    source_language: str
    target_language: str
    text: str
    directive: str


@dataclass(frozen=True)
class TranslationResponse:
    translated_text: str
    confidence: Optional[int] = None


@dataclass(frozen=True)
class VoiceSettings:
    speed: float = 1.0
    gender: str = "female"


@dataclass(frozen=True)
class MessageFilter:
    session_id: Optional[str] = None
    speaker: Optional[str] = None
    limit: Optional[int] = None


class TranscriptionEngine(Protocol):
    """Speech-to-text. Capture is open-ended until a terminal event or end()."""

    @property
    def available(self) -> bool:
        """False when the host has no speech-to-text capability."""

    def begin(self, locale: str) -> AsyncIterator[TranscriptEvent]:
        """Start continuous recognition; raise from the iterator on engine errors."""

    async def end(self) -> None:
        """Stop recognition and release the microphone. Safe to call twice."""


class TranslationEngine(Protocol):
    """Text-to-text translation."""

    async def translate(self, request: TranslationRequest) -> TranslationResponse:
        ...


class SpeechSynthesizer(Protocol):
    """Text-to-speech."""

    async def speak(self, text: str, locale_hint: str, voice: VoiceSettings) -> None:
        """Return once playback of text has completed."""

    async def cancel(self) -> None:
        ...


class SessionStore(Protocol):
    """Durable, per-session consistent append/query store."""

    async def create_session(self, header: Dict[str, Any]) -> str:
        ...

    async def append_message(self, session_id: str, message: Dict[str, Any]) -> None:
        ...

    async def update_session(self, session_id: str, fields: Dict[str, Any]) -> None:
        ...

    async def list_sessions(self) -> List[Dict[str, Any]]:
        """Session headers, newest first."""

    async def list_messages(self, message_filter: MessageFilter) -> List[Dict[str, Any]]:
        """Messages in creation order."""


class IdentityProvider(Protocol):

    def current_user(self) -> Optional[Identity]:
        ...
