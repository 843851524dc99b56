"""
Session stores.

InMemorySessionStore keeps everything in process. JsonFileSessionStore holds
the same structure in one JSON document that is rewritten on every mutation.
Sessions are listed newest first; messages are returned in creation order.
"""
import asyncio
import json
import os
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional

from logging_setup import get_logger, Component
from orchestrator.interfaces import MessageFilter

logger = get_logger(Component.STORE)


class UnknownSession(KeyError):
    """Write against a session id the store has never created."""


def new_session_id() -> str:
    return f"sess_{uuid.uuid4().hex[:16]}"


class InMemorySessionStore:

    def __init__(self):
        self._sessions: Dict[str, Dict[str, Any]] = {}
        self._messages: Dict[str, List[Dict[str, Any]]] = {}
        self._lock = asyncio.Lock()

    async def create_session(self, header: Dict[str, Any]) -> str:
        async with self._lock:
            session_id = new_session_id()
            record = dict(header)
            record.setdefault("ended_at", None)
            record.setdefault("average_accuracy", None)
            record.setdefault("message_count", 0)
            record["id"] = session_id
            self._sessions[session_id] = record
            self._messages[session_id] = []
            await self._changed()
        logger.debug("Session header stored", session_id=session_id)
        return session_id

    async def append_message(self, session_id: str, message: Dict[str, Any]) -> None:
        async with self._lock:
            if session_id not in self._sessions:
                raise UnknownSession(session_id)
            self._messages[session_id].append(dict(message))
            await self._changed()

    async def update_session(self, session_id: str, fields: Dict[str, Any]) -> None:
        async with self._lock:
            if session_id not in self._sessions:
                raise UnknownSession(session_id)
            fields = {k: v for k, v in fields.items() if k != "id"}
            self._sessions[session_id].update(fields)
            await self._changed()

    async def list_sessions(self) -> List[Dict[str, Any]]:
        # Insertion order breaks created_at ties; newest first overall.
        ordered = list(self._sessions.values())[::-1]
        ordered.sort(key=lambda s: s.get("created_at") or "", reverse=True)
        return [dict(s) for s in ordered]

    async def list_messages(self, message_filter: MessageFilter) -> List[Dict[str, Any]]:
        if message_filter.session_id is not None:
            messages = list(self._messages.get(message_filter.session_id, []))
        else:
            messages = [m for msgs in self._messages.values() for m in msgs]
            messages.sort(key=lambda m: m.get("timestamp") or "")

        if message_filter.speaker is not None:
            messages = [m for m in messages if m.get("speaker") == message_filter.speaker]
        if message_filter.limit is not None:
            messages = messages[: message_filter.limit]
        return [dict(m) for m in messages]

    async def _changed(self) -> None:
        """Hook for subclasses that persist on every mutation."""


class JsonFileSessionStore(InMemorySessionStore):
    """One JSON document: {"sessions": {...}, "messages": {...}}."""

    def __init__(self, path: str):
        super().__init__()
        self._path = Path(path)
        self._load()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> None:
        if not self._path.exists():
            return
        with open(self._path, "r", encoding="utf-8") as f:
            data = json.load(f) or {}
        self._sessions = dict(data.get("sessions") or {})
        self._messages = {k: list(v) for k, v in (data.get("messages") or {}).items()}
        logger.info(
            "Session store loaded",
            path=str(self._path),
            session_count=len(self._sessions),
        )

    async def _changed(self) -> None:
        # Called under the store lock, so writes land in mutation order. The
        # snapshot is taken on the loop; only file IO runs in the worker thread.
        document = {
            "sessions": {k: dict(v) for k, v in self._sessions.items()},
            "messages": {k: list(v) for k, v in self._messages.items()},
        }
        await asyncio.to_thread(self._write, document)

    def _write(self, document: Dict[str, Any]) -> None:
        # Write-then-rename so a crash never leaves a truncated document.
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        if self._path.parent and not self._path.parent.exists():
            self._path.parent.mkdir(parents=True, exist_ok=True)
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(document, f, ensure_ascii=False, indent=2, default=str)
        os.replace(tmp_path, self._path)


def build_store(backend: str, path: Optional[str] = None) -> InMemorySessionStore:
    if backend == "memory":
        return InMemorySessionStore()
    if backend == "json":
        return JsonFileSessionStore(path or "conversations.json")
    raise ValueError(f"Unknown store backend: {backend}")
