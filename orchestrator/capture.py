"""
Capture Controller: the Idle -> Listening -> Processing -> Idle state machine
for one speaker's turn.

Transcription events are consumed one at a time by a single task per capture,
so a transition can never fire twice. Processing only returns to Idle after
the transcript handler (the Translation Pipeline) has settled, which is what
keeps a second capture from racing the first translation.
"""
from __future__ import annotations

import asyncio
from enum import Enum
from typing import AsyncIterator, Awaitable, Callable, Optional

from logging_setup import Component as LogComponent, get_logger
from observability.events import Component as ObsComponent, EventEmitter, Severity

from .errors import (
    AlreadyActive,
    CapabilityUnavailable,
    CaptureErrorCategory,
    CaptureFailed,
    classify_capture_error,
)
from .interfaces import TranscriptEvent, TranscriptionEngine

TranscriptHandler = Callable[[str], Awaitable[None]]
FailureHandler = Callable[[CaptureFailed], None]


class CaptureState(str, Enum):
    IDLE = "idle"
    LISTENING = "listening"
    PROCESSING = "processing"


class CaptureController:
    """
    Owns microphone capture for the active session.

    on_transcript receives each non-empty final transcript while the
    controller is Processing. on_failure receives every CaptureFailed; failures
    are never retried here.
    """

    def __init__(
        self,
        engine: Optional[TranscriptionEngine],
        *,
        on_transcript: TranscriptHandler,
        on_failure: FailureHandler,
    ):
        self._engine = engine
        self._on_transcript = on_transcript
        self._on_failure = on_failure
        self._state = CaptureState.IDLE
        self._task: Optional[asyncio.Task] = None
        self._session_id = ""

        self.emitter = EventEmitter(ObsComponent.CAPTURE)
        self.logger = get_logger(LogComponent.CAPTURE)

    @property
    def state(self) -> CaptureState:
        return self._state

    @property
    def available(self) -> bool:
        return self._engine is not None and self._engine.available

    def bind_session(self, session_id: str) -> None:
        self._session_id = session_id
        self.logger = self.logger.with_session(session_id)

    async def start(self, locale: str) -> None:
        """Begin continuous capture in locale. Returns once Listening."""
        if not self.available:
            raise CapabilityUnavailable("no speech-to-text capability on this host")
        if self._state is not CaptureState.IDLE:
            raise AlreadyActive(f"capture is {self._state.value}")

        # Open the stream before Listening so that events pushed right after
        # start() returns are not lost.
        try:
            stream = self._engine.begin(locale)
        except Exception as e:
            raise CaptureFailed(
                str(e),
                category=classify_capture_error(e),
                detail=type(e).__name__,
            ) from e

        self._set_state(CaptureState.LISTENING, cause="start", locale=locale)
        self._task = asyncio.create_task(self._run(stream))

    async def stop(self) -> None:
        """
        Stop listening and discard any partial transcript.

        Idempotent from Idle. A capture that is already Processing is left to
        settle.
        """
        if self._state is CaptureState.IDLE:
            return
        if self._state is CaptureState.PROCESSING:
            self.logger.debug("Stop ignored while processing", session_id=self._session_id)
            return

        task = self._task
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

        # A task cancelled before its first step never reaches _run's cleanup.
        if self._state is CaptureState.LISTENING:
            await self._release_engine()
            self._set_state(CaptureState.IDLE, cause="stopped")

    async def wait(self) -> None:
        """Wait until the current capture has fully settled."""
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)

    async def _run(self, stream: AsyncIterator[TranscriptEvent]) -> None:
        try:
            transcript = await self._listen(stream)
        except asyncio.CancelledError:
            await self._release_engine()
            self._set_state(CaptureState.IDLE, cause="stopped")
            raise
        except CaptureFailed as failure:
            await self._release_engine()
            if failure.category == CaptureErrorCategory.NO_SPEECH:
                self._set_state(CaptureState.IDLE, cause="no_speech")
                return
            self._set_state(CaptureState.IDLE, cause="error")
            self.emitter.emit(
                "capture.failed",
                session_id=self._session_id,
                severity=Severity.WARN,
                category=failure.category,
                detail=failure.detail,
            )
            self.logger.warning(
                "Capture failed",
                session_id=self._session_id,
                category=failure.category,
                error=str(failure),
            )
            self._on_failure(failure)
            return

        await self._release_engine()

        if transcript is None or not transcript.strip():
            self._set_state(CaptureState.IDLE, cause="no_speech")
            return

        self.logger.info_pii("Utterance captured", transcript=transcript.strip())
        self._set_state(CaptureState.PROCESSING, cause="final_transcript", transcript_length=len(transcript))
        try:
            await self._on_transcript(transcript.strip())
        except Exception as e:
            # Known pipeline failures are converted by the handler; this is the last guard.
            self.logger.exception(
                "Transcript handler raised",
                session_id=self._session_id,
                error=str(e),
                error_type=type(e).__name__,
            )
        finally:
            self._set_state(CaptureState.IDLE, cause="settled")

    async def _listen(self, stream: AsyncIterator[TranscriptEvent]) -> Optional[str]:
        """First final transcript from the engine, or None if the stream ends without one."""
        try:
            async for event in stream:
                if not event.is_final:
                    continue
                return event.transcript
        except (asyncio.CancelledError, CaptureFailed):
            raise
        except Exception as e:
            raise CaptureFailed(
                str(e),
                category=classify_capture_error(e),
                detail=type(e).__name__,
            ) from e
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()
        return None

    async def _release_engine(self) -> None:
        try:
            await self._engine.end()
        except Exception as e:
            self.logger.warning(
                "Transcription engine end() failed",
                session_id=self._session_id,
                error=str(e),
                error_type=type(e).__name__,
            )

    def _set_state(self, new_state: CaptureState, *, cause: str, **fields) -> None:
        old_state = self._state
        self._state = new_state
        self.emitter.emit(
            "capture.state_changed",
            session_id=self._session_id,
            from_state=old_state.value,
            to_state=new_state.value,
            cause=cause,
            **fields,
        )
