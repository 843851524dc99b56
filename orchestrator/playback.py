"""
Playback Controller.

Speaks completed translations. A new request always supersedes the one in
progress: the old playback is cancelled before the new one starts. Playback
never blocks the conversation state machine, and its failures are logged and
otherwise ignored.
"""
from __future__ import annotations

import asyncio
import time
from typing import Optional

from logging_setup import Component as LogComponent, get_logger
from observability.events import Component as ObsComponent, EventEmitter, Severity, text_pii

from .interfaces import SpeechSynthesizer, VoiceSettings


class PlaybackController:

    def __init__(
        self,
        synthesizer: SpeechSynthesizer,
        *,
        voice: Optional[VoiceSettings] = None,
        timeout_seconds: float = 15.0,
    ):
        self._synthesizer = synthesizer
        self._voice = voice or VoiceSettings()
        self._timeout = timeout_seconds
        self._task: Optional[asyncio.Task] = None
        self._session_id = ""
        self._correlation_id: Optional[str] = None

        self.emitter = EventEmitter(ObsComponent.PLAYBACK)
        self.logger = get_logger(LogComponent.PLAYBACK)

    @property
    def speaking(self) -> bool:
        return self._task is not None and not self._task.done()

    def bind_session(self, session_id: str) -> None:
        self._session_id = session_id

    async def speak(self, text: str, locale: str, *, correlation_id: Optional[str] = None) -> None:
        """Cancel any playback in progress, then start speaking text in the background."""
        if not text:
            return

        # Another speak() may have started while this one awaited the cancel.
        while self.speaking:
            await self.cancel(cause="superseded")

        self._correlation_id = correlation_id
        self._task = asyncio.create_task(self._play(text, locale, correlation_id))

    async def cancel(self, *, cause: str = "cancelled") -> None:
        """Stop the current playback, if any. The ledger is unaffected."""
        task = self._task
        if task is None or task.done():
            return

        task.cancel()
        try:
            await self._synthesizer.cancel()
        except Exception as e:
            self.logger.warning(
                "Synthesizer cancel failed (non-fatal)",
                session_id=self._session_id,
                error=str(e),
                error_type=type(e).__name__,
            )
        await asyncio.gather(task, return_exceptions=True)

        self.emitter.emit(
            "playback.stopped",
            session_id=self._session_id,
            correlation_id=self._correlation_id,
            cause=cause,
        )

    async def wait(self) -> None:
        """Wait for the current playback to finish (used at teardown and in tests)."""
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)

    async def _play(self, text: str, locale: str, correlation_id: Optional[str]) -> None:
        started = time.perf_counter()
        self.emitter.emit(
            "playback.started",
            session_id=self._session_id,
            correlation_id=correlation_id,
            pii=text_pii("text"),
            text=text,
            text_length=len(text),
            locale=locale,
        )
        try:
            await asyncio.wait_for(
                self._synthesizer.speak(text, locale, self._voice),
                timeout=self._timeout,
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            cause = "timeout" if isinstance(e, asyncio.TimeoutError) else "error"
            self.logger.warning(
                "Playback failed (non-fatal)",
                session_id=self._session_id,
                correlation_id=correlation_id,
                cause=cause,
                error=str(e),
                error_type=type(e).__name__,
            )
            self.emitter.emit(
                "playback.failed",
                session_id=self._session_id,
                severity=Severity.WARN,
                correlation_id=correlation_id,
                cause=cause,
                error_class=type(e).__name__,
            )
            return

        self.emitter.emit(
            "playback.stopped",
            session_id=self._session_id,
            correlation_id=correlation_id,
            cause="completed",
            latency_ms=int((time.perf_counter() - started) * 1000),
        )
