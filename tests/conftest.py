"""
Shared fakes for orchestrator tests.

Engines are replaced with in-process fakes; nothing touches the network.
"""
import asyncio
from typing import Dict, List, Optional

import pytest

from engines.identity import StaticIdentityProvider
from engines.store import InMemorySessionStore
from engines.transcription import PushTranscriptionEngine
from observability.event_store import event_store
from orchestrator.interfaces import TranslationRequest, TranslationResponse, VoiceSettings
from orchestrator.session import SessionManager


class FakeTranslationEngine:
    """Looks up canned translations; optionally blocks on a gate or fails."""

    def __init__(
        self,
        translations: Optional[Dict[str, str]] = None,
        confidences: Optional[List[int]] = None,
        error: Optional[Exception] = None,
    ):
        self.translations = translations or {}
        self.confidences = list(confidences or [])
        self.error = error
        self.gate: Optional[asyncio.Event] = None
        self.requests: List[TranslationRequest] = []

    async def translate(self, request: TranslationRequest) -> TranslationResponse:
        self.requests.append(request)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        confidence = self.confidences.pop(0) if self.confidences else None
        return TranslationResponse(
            translated_text=self.translations.get(request.text, f"[{request.target_language}] {request.text}"),
            confidence=confidence,
        )


class FakeSynthesizer:
    """Records what was spoken; blocks while `gate` is set and unopened."""

    def __init__(self):
        self.spoken: List[tuple] = []
        self.completed: List[str] = []
        self.cancels = 0
        self.gate: Optional[asyncio.Event] = None
        self.error: Optional[Exception] = None

    async def speak(self, text: str, locale_hint: str, voice: VoiceSettings) -> None:
        self.spoken.append((text, locale_hint, voice))
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        self.completed.append(text)

    async def cancel(self) -> None:
        self.cancels += 1


class FailingStore(InMemorySessionStore):
    """Session headers work; message appends fail."""

    async def append_message(self, session_id, message):
        raise OSError("disk full")


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def clear_events():
    """Clear stored events between tests."""
    event_store.clear()
    yield
    event_store.clear()


@pytest.fixture
def translation_engine():
    return FakeTranslationEngine({"hello": "hola", "good morning": "buenos días"})


@pytest.fixture
def synthesizer():
    return FakeSynthesizer()


@pytest.fixture
def transcription_engine():
    return PushTranscriptionEngine()


@pytest.fixture
def store():
    return InMemorySessionStore()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_manager(translation_engine, synthesizer, transcription_engine, store, clock):
    """Factory for a SessionManager wired to the fakes; keyword overrides win."""

    def _make(**overrides) -> SessionManager:
        kwargs = dict(
            identity=StaticIdentityProvider("user-1"),
            store=store,
            translation_engine=translation_engine,
            synthesizer=synthesizer,
            transcription_engine=transcription_engine,
            now=clock,
        )
        kwargs.update(overrides)
        return SessionManager(**kwargs)

    return _make


async def settle(rounds: int = 5) -> None:
    """Let background tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)
