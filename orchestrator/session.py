"""
Session Lifecycle Manager.

One Session is active at a time. The SessionManager creates and ends sessions,
drives the one-second session clock, and composes the Capture Controller,
Translation Pipeline, Turn Coordinator and Playback Controller. It is also the
place where every engine-boundary failure becomes a user-visible notification.
"""
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from logging_setup import Component as LogComponent, get_logger
from observability.events import Component as ObsComponent, EventEmitter, Severity

from .capture import CaptureController, CaptureState
from .confidence import ConfidenceSource, blend_accuracy
from .errors import (
    CapabilityUnavailable,
    CaptureFailed,
    EmptyInput,
    NoActiveSession,
    NotAuthenticated,
    OrchestratorError,
    PipelineBusy,
    StorageError,
    TranslationEngineError,
)
from .interfaces import (
    IdentityProvider,
    MessageFilter,
    SessionStore,
    SpeechSynthesizer,
    TranscriptionEngine,
    TranslationEngine,
    VoiceSettings,
)
from .languages import get_speech_locale
from .ledger import MessageLedger
from .models import Message, Speaker, TurnState
from .notifications import Notifier, Variant
from .pipeline import PipelineOutcome, TranslationPipeline
from .playback import PlaybackController
from .turns import TurnCoordinator

TIMER_TICK_SECONDS = 1.0


class SessionState(str, Enum):
    ACTIVE = "active"
    ENDED = "ended"


def format_elapsed(seconds: int) -> str:
    """Session clock as MM:SS."""
    minutes, secs = divmod(max(0, int(seconds)), 60)
    return f"{minutes:02d}:{secs:02d}"


@dataclass
class Session:
    """A conversation between two speakers. Owns its message ledger exclusively."""

    session_id: str
    user_id: str
    started_at: datetime
    turn: TurnState
    running_accuracy: int = 0
    title: str = ""
    state: SessionState = SessionState.ACTIVE
    elapsed_seconds: int = 0
    ended_at: Optional[datetime] = None
    ledger: MessageLedger = field(init=False)

    def __post_init__(self):
        if not self.session_id:
            raise ValueError("session_id is required")
        self.ledger = MessageLedger(self.session_id)

    @property
    def ended(self) -> bool:
        return self.state is SessionState.ENDED

    def record_confidence(self, confidence: int) -> int:
        """Blend a new confidence score into the running accuracy and return it."""
        self.running_accuracy = blend_accuracy(self.running_accuracy, confidence)
        return self.running_accuracy

    def end(self) -> None:
        self.state = SessionState.ENDED
        self.ended_at = datetime.now(timezone.utc)
        self.ledger.detach()


@dataclass(frozen=True)
class SessionSnapshot:
    """What the presentation layer shows for the active session."""

    session_id: str
    user_id: str
    started_at: datetime
    current_speaker: Speaker
    source_language: str
    target_language: str
    elapsed_seconds: int
    running_accuracy: int
    capture_state: CaptureState
    translating: bool
    speaking: bool
    message_count: int

    @property
    def elapsed(self) -> str:
        return format_elapsed(self.elapsed_seconds)


class SessionManager:
    """Top-level owner of the active session and its controllers."""

    def __init__(
        self,
        *,
        identity: IdentityProvider,
        store: SessionStore,
        translation_engine: TranslationEngine,
        synthesizer: SpeechSynthesizer,
        transcription_engine: Optional[TranscriptionEngine] = None,
        notifier: Optional[Notifier] = None,
        confidence: Optional[ConfidenceSource] = None,
        voice: Optional[VoiceSettings] = None,
        default_source_language: str = "en",
        default_target_language: str = "es",
        initial_accuracy: int = 0,
        translation_timeout_seconds: float = 10.0,
        synthesis_timeout_seconds: float = 15.0,
        auto_save: bool = True,
        now: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self._identity = identity
        self._store = store
        self.notifier = notifier or Notifier()
        self.default_source_language = default_source_language
        self.default_target_language = default_target_language
        self._initial_accuracy = initial_accuracy
        self._now = now
        self._sleep = sleep

        self.playback = PlaybackController(
            synthesizer,
            voice=voice,
            timeout_seconds=synthesis_timeout_seconds,
        )
        self.pipeline = TranslationPipeline(
            translation_engine,
            store,
            self.playback,
            confidence=confidence,
            timeout_seconds=translation_timeout_seconds,
            auto_save=auto_save,
        )
        self.capture = CaptureController(
            transcription_engine,
            on_transcript=self._handle_transcript,
            on_failure=self._handle_capture_failure,
        )

        self._session: Optional[Session] = None
        self._turns: Optional[TurnCoordinator] = None
        self._timer_task: Optional[asyncio.Task] = None
        self._started_monotonic: float = 0.0

        self.emitter = EventEmitter(ObsComponent.SESSION_MANAGER)
        self.logger = get_logger(LogComponent.SESSION_MANAGER)

    # --- Session lifecycle ---

    @property
    def session(self) -> Optional[Session]:
        return self._session

    def require_session(self) -> Session:
        if self._session is None or self._session.ended:
            raise NoActiveSession("no active session")
        return self._session

    async def start_session(
        self,
        source_language: Optional[str] = None,
        target_language: Optional[str] = None,
    ) -> Session:
        """
        Create a new session and make it the active one.

        Any previous session is ended first. Raises NotAuthenticated without an
        identity and StorageError when the header cannot be persisted; in both
        cases no session is created.
        """
        identity = self._identity.current_user()
        if identity is None:
            error = NotAuthenticated("no identity bound")
            self.notifier.notify_error(error)
            raise error

        source = source_language or self.default_source_language
        target = target_language or self.default_target_language

        if self._session is not None and not self._session.ended:
            await self.end_session(reason="superseded")

        started_at = datetime.now(timezone.utc)
        title = f"Session {started_at.date().isoformat()}"
        header = {
            "user_id": identity.user_id,
            "title": title,
            "source_language": source,
            "target_language": target,
            "created_at": started_at.isoformat(),
        }
        try:
            session_id = await self._store.create_session(header)
        except Exception as e:
            error = StorageError(f"failed to create session: {e}", detail=type(e).__name__)
            self.logger.error(
                "Session header not persisted",
                error=str(e),
                error_type=type(e).__name__,
            )
            self.notifier.notify("Session Error", "Failed to start new session.", variant=Variant.DESTRUCTIVE,
                                 kind=error.kind)
            raise error from e

        session = Session(
            session_id=session_id,
            user_id=identity.user_id,
            started_at=started_at,
            turn=TurnState(speaker=Speaker.A, source_language=source, target_language=target),
            running_accuracy=self._initial_accuracy,
            title=title,
        )
        self._session = session
        self._turns = TurnCoordinator(session)
        self.capture.bind_session(session_id)
        self.playback.bind_session(session_id)

        self._started_monotonic = self._now()
        self._timer_task = asyncio.create_task(self._run_timer(session))

        self.emitter.emit(
            "session.started",
            session_id=session_id,
            user_id=identity.user_id,
            source_language=source,
            target_language=target,
        )
        self.logger.info("Session started", session_id=session_id, source_language=source,
                         target_language=target)
        self.notifier.notify(
            "New Session Started",
            "Voice translation is ready.",
            session_id=session_id,
        )
        return session

    async def end_session(self, reason: str = "ended") -> Optional[Session]:
        """
        End the active session: stop capture, playback and the clock, detach
        the ledger. History stays queryable through the store.
        """
        session = self._session
        if session is None or session.ended:
            return None

        await self.capture.stop()
        await self.playback.cancel(cause="session_ended")
        await self._stop_timer()

        session.elapsed_seconds = self._elapsed()
        session.end()

        try:
            await self._store.update_session(session.session_id, {
                "ended_at": session.ended_at.isoformat(),
                "average_accuracy": session.running_accuracy,
                "message_count": len(session.ledger),
                "duration_seconds": session.elapsed_seconds,
            })
        except Exception as e:
            self.logger.warning(
                "Session summary not persisted",
                session_id=session.session_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            self.notifier.notify_error(
                StorageError(str(e), detail=type(e).__name__),
                session_id=session.session_id,
                variant=Variant.WARNING,
            )

        self.emitter.emit(
            "session.ended",
            session_id=session.session_id,
            reason=reason,
            message_count=len(session.ledger),
            running_accuracy=session.running_accuracy,
            duration_seconds=session.elapsed_seconds,
        )
        self.logger.info("Session ended", session_id=session.session_id, reason=reason)
        return session

    async def shutdown(self) -> None:
        """Tear down: end the active session and wait for background work."""
        await self.end_session(reason="shutdown")
        await self.capture.wait()
        await self.playback.wait()

    def snapshot(self) -> SessionSnapshot:
        session = self.require_session()
        turn = session.turn
        return SessionSnapshot(
            session_id=session.session_id,
            user_id=session.user_id,
            started_at=session.started_at,
            current_speaker=turn.speaker,
            source_language=turn.source_language,
            target_language=turn.target_language,
            elapsed_seconds=session.elapsed_seconds,
            running_accuracy=session.running_accuracy,
            capture_state=self.capture.state,
            translating=self.pipeline.busy(session.session_id),
            speaking=self.playback.speaking,
            message_count=len(session.ledger),
        )

    def messages(self) -> Tuple[Message, ...]:
        return self.require_session().ledger.messages()

    async def list_sessions(self) -> List[Dict[str, Any]]:
        return await self._store.list_sessions()

    async def list_messages(
        self,
        session_id: str,
        speaker: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        return await self._store.list_messages(
            MessageFilter(session_id=session_id, speaker=speaker, limit=limit)
        )

    # --- User actions ---

    async def start_capture(self) -> None:
        session = self.require_session()
        if self.pipeline.busy(session.session_id):
            raise PipelineBusy("translation in progress")
        try:
            await self.capture.start(get_speech_locale(session.turn.source_language))
        except (CapabilityUnavailable, CaptureFailed) as e:
            self.notifier.notify_error(e, session_id=session.session_id)
            raise
        self.notifier.notify(
            "Recording Started",
            "Speak now to translate your voice.",
            session_id=session.session_id,
        )

    async def stop_capture(self) -> None:
        await self.capture.stop()

    async def submit_text(self, text: str) -> Optional[PipelineOutcome]:
        """Feed typed text straight into the pipeline. Blank text is ignored."""
        return await self._translate(text)

    def switch_speaker(self) -> TurnState:
        self.require_session()
        return self._turns.switch_speaker()

    def set_languages(self, source_language: str, target_language: str) -> TurnState:
        self.require_session()
        return self._turns.set_languages(source_language, target_language)

    # --- Internals ---

    async def _translate(self, text: str) -> Optional[PipelineOutcome]:
        session = self.require_session()
        try:
            outcome = await self.pipeline.run(session, text)
        except EmptyInput:
            self.logger.debug("Blank input ignored", session_id=session.session_id)
            return None
        except (PipelineBusy, TranslationEngineError) as e:
            variant = Variant.WARNING if isinstance(e, PipelineBusy) else Variant.DESTRUCTIVE
            self.notifier.notify_error(e, session_id=session.session_id, variant=variant)
            raise

        if outcome.storage_error is not None:
            self.notifier.notify_error(
                outcome.storage_error,
                session_id=session.session_id,
                variant=Variant.WARNING,
            )
        self.notifier.notify(
            "Translation Complete",
            f'Translated: "{outcome.message.translated_text}"',
            session_id=session.session_id,
            kind="translation.completed",
        )
        return outcome

    async def _handle_transcript(self, transcript: str) -> None:
        try:
            await self._translate(transcript)
        except OrchestratorError as e:
            # Already surfaced as a notification.
            self.logger.debug("Captured utterance not translated", error_kind=e.kind)

    def _handle_capture_failure(self, failure: CaptureFailed) -> None:
        session_id = self._session.session_id if self._session else ""
        self.notifier.notify_error(failure, session_id=session_id)

    def _elapsed(self) -> int:
        return int(self._now() - self._started_monotonic)

    async def _run_timer(self, session: Session) -> None:
        try:
            while not session.ended:
                await self._sleep(TIMER_TICK_SECONDS)
                if session.ended:
                    break
                session.elapsed_seconds = self._elapsed()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.emitter.emit(
                "session.timer_failed",
                session_id=session.session_id,
                severity=Severity.WARN,
                error_class=type(e).__name__,
            )
            self.logger.warning(
                "Session timer stopped",
                session_id=session.session_id,
                error=str(e),
                error_type=type(e).__name__,
            )

    async def _stop_timer(self) -> None:
        task = self._timer_task
        self._timer_task = None
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
