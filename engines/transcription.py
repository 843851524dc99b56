"""
Push-fed transcription engine.

Speech recognition runs on the client; the client forwards its interim and
final results (or its error code) over HTTP and they are pushed into the
stream the Capture Controller is consuming.
"""
import asyncio
from typing import AsyncIterator, Optional, Union

from logging_setup import get_logger, Component
from orchestrator.interfaces import TranscriptEvent

logger = get_logger(Component.TRANSCRIPTION_ENGINE)


class TranscriptionError(RuntimeError):
    """Error reported by the client recognizer ("not-allowed", "network", ...)."""

    def __init__(self, code: str):
        super().__init__(code)
        self.code = code


_END = object()

_Item = Union[TranscriptEvent, TranscriptionError, object]


class PushTranscriptionEngine:
    """One open stream at a time; pushes with no open stream are dropped."""

    def __init__(self, *, available: bool = True):
        self._available = available
        self._queue: Optional[asyncio.Queue] = None
        self._locale: Optional[str] = None

    @property
    def available(self) -> bool:
        return self._available

    @property
    def listening(self) -> bool:
        return self._queue is not None

    @property
    def locale(self) -> Optional[str]:
        return self._locale

    def begin(self, locale: str) -> AsyncIterator[TranscriptEvent]:
        queue: asyncio.Queue = asyncio.Queue()
        self._queue = queue
        self._locale = locale
        logger.debug("Transcription stream opened", locale=locale)
        return self._stream(queue)

    async def _stream(self, queue: asyncio.Queue) -> AsyncIterator[TranscriptEvent]:
        while True:
            item = await queue.get()
            if item is _END:
                return
            if isinstance(item, TranscriptionError):
                raise item
            yield item

    def push(self, transcript: str, is_final: bool = True) -> bool:
        """Forward a recognition result. Returns False when nothing is listening."""
        return self._put(TranscriptEvent(transcript=transcript, is_final=is_final))

    def fail(self, code: str) -> bool:
        """Forward a recognizer error code."""
        return self._put(TranscriptionError(code))

    async def end(self) -> None:
        queue = self._queue
        self._queue = None
        self._locale = None
        if queue is not None:
            queue.put_nowait(_END)

    def _put(self, item: _Item) -> bool:
        if self._queue is None:
            logger.debug("Transcription event dropped; no open stream")
            return False
        self._queue.put_nowait(item)
        return True
