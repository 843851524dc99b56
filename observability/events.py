"""
Structured JSON event emission.

Every event is one JSON envelope on stdout (for log aggregation) and is also
kept in the in-memory event store so the HTTP surface can serve a session's
event history.
"""

from __future__ import annotations

import json
import sys
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from .event_store import event_store


class Component(str, Enum):
    """Event sources."""

    SESSION_MANAGER = "session_manager"
    CAPTURE = "capture"
    PIPELINE = "pipeline"
    PLAYBACK = "playback"
    TURNS = "turns"
    NOTIFIER = "notifier"
    API = "api"


class Severity(str, Enum):
    """Event severity levels."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


DEFAULT_PII = {"contains_pii": False, "fields": [], "handling": "none"}


def text_pii(*fields: str) -> Dict[str, Any]:
    """PII marker for events that carry utterance text."""
    return {"contains_pii": True, "fields": list(fields), "handling": "none"}


class EventEmitter:
    """Emits structured JSON events for one component."""

    def __init__(self, component: Component):
        self.component = component

    def emit(
        self,
        event_type: str,
        session_id: str,
        severity: Severity = Severity.INFO,
        correlation_id: Optional[str] = None,
        pii: Optional[Dict[str, Any]] = None,
        **kwargs: Any,
    ) -> None:
        """
        Emit a structured event.

        Args:
            event_type: Stable event type string (e.g. "translation.completed")
            session_id: Opaque session identifier
            severity: Event severity level
            correlation_id: Message or turn id; defaults to the session id
            pii: PII metadata (contains_pii, fields, handling)
            **kwargs: Event-specific fields
        """
        event = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "session_id": session_id,
            "component": self.component.value,
            "event_type": event_type,
            "severity": severity.value,
            "correlation_id": correlation_id or session_id,
            "pii": pii or DEFAULT_PII,
        }
        event.update(kwargs)

        json.dump(event, sys.stdout, ensure_ascii=False, default=str)
        sys.stdout.write("\n")
        sys.stdout.flush()

        event_store.store(event)
