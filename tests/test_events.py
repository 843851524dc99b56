"""
Event emission tests.
Tests structured JSON event format and the in-memory event store.
"""
import json
from datetime import datetime, timedelta, timezone

from observability.event_store import EventStore, event_store
from observability.events import Component, EventEmitter, Severity, text_pii


class TestEventFormat:
    """Test event envelope."""

    def test_required_fields(self, capsys):
        """Test that all required fields are present."""
        emitter = EventEmitter(Component.PIPELINE)
        emitter.emit(
            event_type="test.event",
            session_id="sess_123",
            severity=Severity.INFO,
        )

        event = json.loads(capsys.readouterr().out.strip())

        for key in ("ts", "session_id", "component", "event_type", "severity", "correlation_id", "pii"):
            assert key in event
        assert event["session_id"] == "sess_123"
        assert event["component"] == "pipeline"
        assert event["event_type"] == "test.event"
        assert event["severity"] == "info"

    def test_timestamp_format(self, capsys):
        """Test that timestamp is ISO8601."""
        EventEmitter(Component.CAPTURE).emit("test.event", session_id="sess_123")

        event = json.loads(capsys.readouterr().out.strip())
        assert datetime.fromisoformat(event["ts"].replace("Z", "+00:00")) is not None

    def test_correlation_id_defaults_to_session(self, capsys):
        EventEmitter(Component.TURNS).emit("test.event", session_id="sess_123")

        event = json.loads(capsys.readouterr().out.strip())
        assert event["correlation_id"] == "sess_123"

    def test_pii_default_and_text_marker(self, capsys):
        emitter = EventEmitter(Component.PIPELINE)
        emitter.emit("plain.event", session_id="s")
        emitter.emit("text.event", session_id="s", pii=text_pii("text"), text="hola")

        lines = [json.loads(line) for line in capsys.readouterr().out.strip().splitlines()]
        assert lines[0]["pii"] == {"contains_pii": False, "fields": [], "handling": "none"}
        assert lines[1]["pii"]["contains_pii"] is True
        assert lines[1]["pii"]["fields"] == ["text"]
        assert lines[1]["text"] == "hola"

    def test_extra_fields_and_severity(self, capsys):
        EventEmitter(Component.PLAYBACK).emit(
            "playback.failed",
            session_id="s",
            severity=Severity.WARN,
            correlation_id="msg_1",
            cause="timeout",
        )

        event = json.loads(capsys.readouterr().out.strip())
        assert event["severity"] == "warn"
        assert event["correlation_id"] == "msg_1"
        assert event["cause"] == "timeout"

    def test_emitted_events_are_stored(self, capsys):
        EventEmitter(Component.SESSION_MANAGER).emit("session.started", session_id="sess_9", user_id="u")

        stored = event_store.query(session_id="sess_9")
        assert len(stored) == 1
        assert stored[0]["event_type"] == "session.started"
        assert stored[0]["user_id"] == "u"


class TestEventStore:
    """Test queries against the bounded store."""

    def _event(self, session_id, event_type, ts, component="pipeline"):
        return {
            "ts": ts.isoformat(),
            "session_id": session_id,
            "component": component,
            "event_type": event_type,
            "severity": "info",
        }

    def test_filters(self):
        store = EventStore()
        now = datetime.now(timezone.utc)
        store.store(self._event("a", "x.one", now - timedelta(seconds=10)))
        store.store(self._event("a", "x.two", now, component="capture"))
        store.store(self._event("b", "x.one", now))

        assert len(store.query(session_id="a")) == 2
        assert len(store.query(event_type="x.one")) == 2
        assert len(store.query(component="capture")) == 1
        assert len(store.query(session_id="a", since=now - timedelta(seconds=1))) == 1
        assert len(store.query(until=now - timedelta(seconds=5))) == 1
        assert len(store.query(limit=1)) == 1

    def test_bounded(self):
        store = EventStore(max_events=2)
        now = datetime.now(timezone.utc)
        for i in range(3):
            store.store(self._event("a", f"x.{i}", now))

        assert [e["event_type"] for e in store.query()] == ["x.1", "x.2"]
        assert store.get_stats()["total_events"] == 2

    def test_clear(self):
        store = EventStore()
        store.store(self._event("a", "x", datetime.now(timezone.utc)))
        store.clear()
        assert store.query() == []
        assert store.get_stats()["oldest_event_ts"] is None
