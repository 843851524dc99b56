"""
Translation Pipeline.

Sequences one utterance through the translation engine and produces a scored
Message:
  1. reject blank input (no request issued)
  2. snapshot the session's turn state and send the directive to the engine
  3. on engine failure or timeout: no Message, raise TranslationEngineError
  4. score the translation
  5. append to the ledger, persist, update the running accuracy
  6. hand the translation to the Playback Controller

At most one run may be in flight per session; a second call is rejected with
PipelineBusy rather than queued.
"""
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Set

from logging_setup import Component as LogComponent, get_logger
from observability.events import Component as ObsComponent, EventEmitter, Severity, text_pii

from .confidence import ConfidenceSource, EngineReportedConfidence
from .directives import build_directive
from .errors import EmptyInput, NoActiveSession, PipelineBusy, StorageError, TranslationEngineError
from .interfaces import SessionStore, TranslationEngine, TranslationRequest, TranslationResponse
from .languages import get_speech_locale
from .models import Message
from .playback import PlaybackController

if TYPE_CHECKING:
    from .session import Session


@dataclass(frozen=True)
class PipelineOutcome:
    message: Message
    running_accuracy: int
    confidence_source: str
    persisted: bool
    storage_error: Optional[StorageError] = None


class TranslationPipeline:

    def __init__(
        self,
        engine: TranslationEngine,
        store: SessionStore,
        playback: PlaybackController,
        *,
        confidence: Optional[ConfidenceSource] = None,
        timeout_seconds: float = 10.0,
        auto_save: bool = True,
    ):
        self._engine = engine
        self._store = store
        self._playback = playback
        self._confidence = confidence or EngineReportedConfidence()
        self._timeout = timeout_seconds
        self._auto_save = auto_save
        self._in_flight: Set[str] = set()

        self.emitter = EventEmitter(ObsComponent.PIPELINE)
        self.logger = get_logger(LogComponent.PIPELINE)

    def busy(self, session_id: str) -> bool:
        return session_id in self._in_flight

    async def run(self, session: "Session", text: str) -> PipelineOutcome:
        session_id = session.session_id
        if not text or not text.strip():
            raise EmptyInput("blank utterance")
        if session_id in self._in_flight:
            raise PipelineBusy(f"translation already in flight for session {session_id}")

        self._in_flight.add(session_id)
        try:
            return await self._run(session, text.strip())
        finally:
            self._in_flight.discard(session_id)

    async def _run(self, session: "Session", text: str) -> PipelineOutcome:
        session_id = session.session_id
        turn = session.turn
        request = TranslationRequest(
            source_language=turn.source_language,
            target_language=turn.target_language,
            text=text,
            directive=build_directive(text, turn.source_language, turn.target_language),
        )

        self.emitter.emit(
            "translation.request",
            session_id=session_id,
            pii=text_pii("text"),
            speaker=turn.speaker.value,
            source_language=turn.source_language,
            target_language=turn.target_language,
            text=text,
        )

        started = time.perf_counter()
        response = await self._translate(session_id, request)
        latency_ms = int((time.perf_counter() - started) * 1000)

        self._ensure_active(session, "translating", latency_ms=latency_ms)

        translated_text = response.translated_text or ""
        score = self._confidence.score(response)

        message = session.ledger.record(
            speaker=turn.speaker,
            original_text=text,
            translated_text=translated_text,
            confidence_score=score.value,
            source_language=turn.source_language,
            target_language=turn.target_language,
        )
        self.emitter.emit(
            "translation.completed",
            session_id=session_id,
            correlation_id=message.id,
            pii=text_pii("translated_text"),
            translated_text=translated_text,
            confidence_score=score.value,
            confidence_source=score.source,
            latency_ms=latency_ms,
        )
        self.emitter.emit(
            "ledger.appended",
            session_id=session_id,
            correlation_id=message.id,
            sequence=message.sequence,
            speaker=message.speaker.value,
        )
        if not translated_text:
            self.logger.warning("Engine returned empty translation; recorded as-is", session_id=session_id)
        self.logger.with_session(session_id).debug_pii("Translation recorded", translated_text=translated_text)

        persisted, storage_error = await self._persist(message)

        # The ledger keeps the message; a torn-down session gets no accuracy
        # change and no audio.
        self._ensure_active(session, "persisting", message_id=message.id)

        previous = session.running_accuracy
        accuracy = session.record_confidence(score.value)
        self.emitter.emit(
            "accuracy.updated",
            session_id=session_id,
            correlation_id=message.id,
            previous=previous,
            confidence_score=score.value,
            running_accuracy=accuracy,
        )

        await self._playback.speak(
            translated_text,
            get_speech_locale(turn.target_language),
            correlation_id=message.id,
        )

        return PipelineOutcome(
            message=message,
            running_accuracy=accuracy,
            confidence_source=score.source,
            persisted=persisted,
            storage_error=storage_error,
        )

    def _ensure_active(self, session: "Session", stage: str, **fields) -> None:
        if not session.ended:
            return
        self.logger.warning(
            f"Session ended while {stage}; result discarded",
            session_id=session.session_id,
            **fields,
        )
        raise NoActiveSession(f"session {session.session_id} ended during translation")

    async def _translate(self, session_id: str, request: TranslationRequest) -> TranslationResponse:
        """Call the engine; every failure mode becomes TranslationEngineError."""
        try:
            return await asyncio.wait_for(self._engine.translate(request), timeout=self._timeout)
        except TranslationEngineError as e:
            self._report_failure(session_id, e, e)
            raise
        except asyncio.TimeoutError as e:
            error = TranslationEngineError(f"translation timed out after {self._timeout}s", detail="timeout")
            self._report_failure(session_id, error, e)
            raise error from e
        except Exception as e:
            error = TranslationEngineError(str(e) or type(e).__name__, detail=type(e).__name__)
            self._report_failure(session_id, error, e)
            raise error from e

    def _report_failure(self, session_id: str, error: TranslationEngineError, cause: BaseException) -> None:
        self.emitter.emit(
            "translation.failed",
            session_id=session_id,
            severity=Severity.ERROR,
            error_class=type(cause).__name__,
            detail=error.detail,
        )
        self.logger.error(
            "Translation failed",
            session_id=session_id,
            error=str(error),
            error_type=type(cause).__name__,
        )

    async def _persist(self, message: Message) -> tuple[bool, Optional[StorageError]]:
        if not self._auto_save:
            return False, None
        try:
            await self._store.append_message(message.session_id, message.to_dict())
        except Exception as e:
            error = StorageError(f"failed to persist {message.id}: {e}", detail=type(e).__name__)
            self.emitter.emit(
                "storage.failed",
                session_id=message.session_id,
                severity=Severity.WARN,
                correlation_id=message.id,
                error_class=type(e).__name__,
            )
            self.logger.warning(
                "Message not persisted; in-memory ledger only",
                session_id=message.session_id,
                message_id=message.id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False, error
        return True, None
