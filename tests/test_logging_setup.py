"""
Tests for logging_setup module.

Verifies:
- JSON structured logging format
- Component and severity tagging
- Session ID correlation
- PII-aware logging helpers
- Log level configuration
"""
import json
import logging
from io import StringIO
from datetime import datetime

import pytest

from logging_setup import (
    setup_logging,
    get_logger,
    Component,
    JSONFormatter,
)


@pytest.fixture
def capture_logs():
    """Capture log output to a string buffer."""
    buffer = StringIO()
    handler = logging.StreamHandler(buffer)
    handler.setFormatter(JSONFormatter())

    logger = logging.getLogger()
    saved_handlers, saved_level = logger.handlers[:], logger.level
    logger.handlers = [handler]
    logger.setLevel(logging.DEBUG)

    yield buffer

    logger.handlers = saved_handlers
    logger.setLevel(saved_level)


@pytest.fixture
def restore_root():
    logger = logging.getLogger()
    saved_handlers, saved_level = logger.handlers[:], logger.level
    yield logger
    logger.handlers = saved_handlers
    logger.setLevel(saved_level)


def _entry(buffer):
    return json.loads(buffer.getvalue().strip())


def test_json_formatter_basic(capture_logs):
    """Test basic JSON log formatting."""
    logger = get_logger(Component.PIPELINE)
    logger.info("Test message", extra_field="value")

    log_entry = _entry(capture_logs)

    assert log_entry["severity"] == "info"
    assert log_entry["component"] == "pipeline"
    assert log_entry["message"] == "Test message"
    assert log_entry["extra_field"] == "value"
    assert datetime.fromisoformat(log_entry["timestamp"]) is not None


def test_session_id_correlation(capture_logs):
    """Test that session_id is included when bound."""
    logger = get_logger(Component.SESSION_MANAGER, session_id="sess_123")
    logger.info("Session test")

    assert _entry(capture_logs)["session_id"] == "sess_123"


def test_session_id_absent_when_not_provided(capture_logs):
    get_logger(Component.CAPTURE).info("No session")

    assert "session_id" not in _entry(capture_logs)


def test_explicit_session_id_wins(capture_logs):
    """Test a session_id keyword overrides the bound one."""
    logger = get_logger(Component.PIPELINE, session_id="sess_bound")
    logger.info("Override", session_id="sess_explicit")

    assert _entry(capture_logs)["session_id"] == "sess_explicit"


def test_with_session_creates_new_logger(capture_logs):
    base_logger = get_logger(Component.TURNS)
    session_logger = base_logger.with_session("sess_456")

    session_logger.info("With session")

    assert base_logger.session_id is None
    assert _entry(capture_logs)["session_id"] == "sess_456"


def test_pii_logging(capture_logs):
    """Test that utterance text is logged in a separate pii field."""
    logger = get_logger(Component.PIPELINE, session_id="sess_789")
    logger.info_pii("Utterance captured", text="where is the station")

    log_entry = _entry(capture_logs)

    assert log_entry["pii"]["text"] == "where is the station"
    assert "text" not in log_entry
    assert log_entry["message"] == "Utterance captured"


def test_debug_pii_method(capture_logs):
    get_logger(Component.CAPTURE).debug_pii("Interim transcript", transcript="hel")

    log_entry = _entry(capture_logs)
    assert log_entry["severity"] == "debug"
    assert log_entry["pii"]["transcript"] == "hel"


def test_severity_levels(capture_logs):
    logger = get_logger(Component.PLAYBACK)

    logger.debug("Debug message")
    logger.info("Info message")
    logger.warning("Warning message")
    logger.error("Error message")
    logger.critical("Critical message")

    lines = [line for line in capture_logs.getvalue().strip().split("\n") if line]
    severities = [json.loads(line)["severity"] for line in lines]
    assert severities == ["debug", "info", "warning", "error", "critical"]


def test_component_enum():
    assert Component.SESSION_MANAGER.value == "session_manager"
    assert Component.TRANSLATION_ENGINE.value == "translation_engine"
    assert Component.SPEECH_SYNTHESIZER.value == "speech_synthesizer"
    assert Component.STORE.value == "store"


def test_component_string_fallback(capture_logs):
    get_logger("custom_component").info("Test")

    assert _entry(capture_logs)["component"] == "custom_component"


def test_latency_stays_numeric_without_color(capture_logs, monkeypatch):
    monkeypatch.setenv("NO_COLOR", "1")
    get_logger(Component.PIPELINE).info("Translation completed", latency_ms=412)

    assert _entry(capture_logs)["latency_ms"] == 412


def test_exception_logging(capture_logs):
    logger = get_logger(Component.CAPTURE)

    try:
        raise ValueError("Test exception")
    except ValueError:
        logger.exception("Exception occurred")

    log_entry = _entry(capture_logs)
    assert log_entry["severity"] == "error"
    assert "ValueError: Test exception" in log_entry["exception"]


def test_setup_logging_json(restore_root):
    setup_logging(level="DEBUG", use_json=True)

    assert restore_root.level == logging.DEBUG
    assert len(restore_root.handlers) == 1
    assert isinstance(restore_root.handlers[0].formatter, JSONFormatter)


def test_setup_logging_text(restore_root):
    setup_logging(level="INFO", use_json=False)

    assert restore_root.level == logging.INFO
    assert len(restore_root.handlers) == 1
    assert not isinstance(restore_root.handlers[0].formatter, JSONFormatter)
