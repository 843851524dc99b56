"""
User-visible notifications.

Every failure the orchestrator surfaces, and the handful of success toasts,
lands here. The presentation layer polls the list; each notification is also
emitted as a ux.notification event.
"""
import itertools
from collections import deque
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from observability.events import Component, EventEmitter, Severity

from .errors import OrchestratorError, get_user_message


class Variant(str, Enum):
    DEFAULT = "default"
    WARNING = "warning"
    DESTRUCTIVE = "destructive"


_SEVERITY = {
    Variant.DEFAULT: Severity.INFO,
    Variant.WARNING: Severity.WARN,
    Variant.DESTRUCTIVE: Severity.ERROR,
}


@dataclass(frozen=True)
class Notification:
    id: int
    title: str
    description: str
    variant: Variant
    kind: Optional[str] = None
    ts: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["variant"] = self.variant.value
        data["ts"] = self.ts.isoformat()
        return data


class Notifier:
    """Bounded, ordered notification feed."""

    def __init__(self, limit: int = 50):
        self._items: deque[Notification] = deque(maxlen=limit)
        self._ids = itertools.count(1)
        self.emitter = EventEmitter(Component.NOTIFIER)

    def notify(
        self,
        title: str,
        description: str,
        *,
        variant: Variant = Variant.DEFAULT,
        kind: Optional[str] = None,
        session_id: str = "",
    ) -> Notification:
        notification = Notification(
            id=next(self._ids),
            title=title,
            description=description,
            variant=variant,
            kind=kind,
        )
        self._items.append(notification)
        self.emitter.emit(
            "ux.notification",
            session_id=session_id,
            severity=_SEVERITY[variant],
            title=title,
            variant=variant.value,
            kind=kind,
        )
        return notification

    def notify_error(
        self,
        error: OrchestratorError,
        *,
        session_id: str = "",
        variant: Variant = Variant.DESTRUCTIVE,
    ) -> Notification:
        """Notification for an error kind, using its stable user message."""
        kind = getattr(error, "category", None) or error.kind
        title, description = get_user_message(kind)
        return self.notify(title, description, variant=variant, kind=kind, session_id=session_id)

    def items(self, since_id: int = 0) -> List[Notification]:
        return [n for n in self._items if n.id > since_id]

    def clear(self) -> None:
        self._items.clear()
