"""
Message Ledger: append-only, ordered record of a session's translations.

Order is creation order (ledger position), never wall-clock time. Once the
owning session ends the ledger is detached and refuses further appends; it
stays readable.
"""
import time
from datetime import datetime, timezone
from typing import Iterator, List, Optional, Tuple

from .models import Message, Speaker


class LedgerClosed(RuntimeError):
    """Append attempted on a detached ledger."""


def new_message_id(sequence: int, now_ms: Optional[int] = None) -> str:
    """Time-ordered id; the sequence suffix breaks ties within one millisecond."""
    ms = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"msg_{ms}_{sequence:05d}"


class MessageLedger:
    """In-memory mirror of a session's persisted messages."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        self._messages: List[Message] = []
        self._detached = False

    @property
    def detached(self) -> bool:
        return self._detached

    def record(
        self,
        *,
        speaker: Speaker,
        original_text: str,
        translated_text: str,
        confidence_score: int,
        source_language: str,
        target_language: str,
        timestamp: Optional[datetime] = None,
    ) -> Message:
        """Create the next Message and append it."""
        sequence = len(self._messages)
        message = Message(
            id=new_message_id(sequence),
            sequence=sequence,
            session_id=self.session_id,
            speaker=speaker,
            original_text=original_text,
            translated_text=translated_text,
            confidence_score=confidence_score,
            source_language=source_language,
            target_language=target_language,
            timestamp=timestamp or datetime.now(timezone.utc),
        )
        self.append(message)
        return message

    def append(self, message: Message) -> None:
        if self._detached:
            raise LedgerClosed(f"ledger for session {self.session_id} is detached")
        if message.session_id != self.session_id:
            raise ValueError("message belongs to a different session")
        if message.sequence != len(self._messages):
            raise ValueError(
                f"out-of-order append: expected sequence {len(self._messages)}, got {message.sequence}"
            )
        self._messages.append(message)

    def detach(self) -> None:
        self._detached = True

    def messages(self) -> Tuple[Message, ...]:
        """Snapshot in creation order."""
        return tuple(self._messages)

    def last(self) -> Optional[Message]:
        return self._messages[-1] if self._messages else None

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(tuple(self._messages))
