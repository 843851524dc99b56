"""
Shared logging infrastructure for the translation orchestrator.

Every component logs through a StructuredLogger so that each line is a single
JSON object carrying the component tag and, where known, the session_id.

Features:
- JSON-formatted structured logs
- Component tagging and session correlation
- PII-aware helpers (utterance text is PII and lives in a dedicated field)
- Latency fields rendered with a "ms" unit for console readability
"""

import json
import logging
import os
import re
import sys
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class Severity(str, Enum):
    """Log severity levels."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class Component(str, Enum):
    """System components for log tagging."""
    SESSION_MANAGER = "session_manager"
    CAPTURE = "capture"
    PIPELINE = "pipeline"
    PLAYBACK = "playback"
    TURNS = "turns"
    API = "api"
    TRANSLATION_ENGINE = "translation_engine"
    SPEECH_SYNTHESIZER = "speech_synthesizer"
    TRANSCRIPTION_ENGINE = "transcription_engine"
    STORE = "store"


_RESERVED_ATTRS = frozenset({
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "pathname", "process", "processName", "relativeCreated",
    "thread", "threadName", "exc_info", "exc_text", "stack_info",
    "taskName", "component", "session_id", "message",
})

_LATENCY_PATTERN = re.compile(r'("latency_ms"\s*:\s*)(\d+)')


def _color_enabled() -> bool:
    if os.environ.get("NO_COLOR", "").lower() in ("1", "true", "yes"):
        return False
    if os.environ.get("FORCE_COLOR", "").lower() in ("1", "true", "yes"):
        return True
    try:
        return sys.stdout.isatty()
    except (AttributeError, OSError):
        return False


class JSONFormatter(logging.Formatter):
    """
    Render a LogRecord as one JSON object.

    Output fields: timestamp (ISO8601, UTC), severity, component, message,
    session_id (when bound) and any keyword fields passed by the caller.
    """

    ORANGE = '\033[38;5;208m'
    RESET = '\033[0m'

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "severity": record.levelname.lower(),
            "component": getattr(record, "component", "unknown"),
            "message": record.getMessage(),
        }

        if hasattr(record, "session_id"):
            log_data["session_id"] = record.session_id

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        json_output = json.dumps(log_data, ensure_ascii=False, default=str)

        # Numeric value stays in the JSON when color is off, so lines remain parseable.
        if "latency_ms" in log_data and _color_enabled():
            json_output = _LATENCY_PATTERN.sub(
                rf'\1{self.ORANGE}\2 ms{self.RESET}', json_output
            )

        return json_output


class StructuredLogger:
    """
    Wrapper around Python's logging with structured keyword fields.

    Usage:
        logger = StructuredLogger(Component.PIPELINE, session_id="sess_123")
        logger.info("Translation completed", latency_ms=412)
        logger.info_pii("Utterance captured", text="hola")
    """

    def __init__(
        self,
        component: str | Component,
        session_id: Optional[str] = None,
        logger_name: Optional[str] = None
    ):
        self.component = component.value if isinstance(component, Component) else component
        self.session_id = session_id
        self.logger = logging.getLogger(logger_name or self.component)

    def _log(
        self,
        level: int,
        message: str,
        pii: Optional[Dict[str, Any]] = None,
        **kwargs
    ):
        exc_info = kwargs.pop("exc_info", None)
        stack_info = kwargs.pop("stack_info", None)
        stacklevel = kwargs.pop("stacklevel", 1)

        extra = {
            "component": self.component,
            **kwargs
        }

        # An explicit session_id keyword wins over the bound one.
        if self.session_id and "session_id" not in extra:
            extra["session_id"] = self.session_id

        if pii:
            extra["pii"] = pii

        self.logger.log(
            level,
            message,
            exc_info=exc_info,
            stack_info=stack_info,
            stacklevel=stacklevel,
            extra=extra
        )

    def debug(self, message: str, **kwargs):
        self._log(logging.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs):
        self._log(logging.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs):
        self._log(logging.WARNING, message, **kwargs)

    def error(self, message: str, **kwargs):
        self._log(logging.ERROR, message, **kwargs)

    def critical(self, message: str, **kwargs):
        self._log(logging.CRITICAL, message, **kwargs)

    def exception(self, message: str, **kwargs):
        """Log an error message with the active exception attached."""
        kwargs.setdefault("exc_info", True)
        self._log(logging.ERROR, message, **kwargs)

    def debug_pii(self, message: str, **pii_fields):
        """
        Log debug with PII fields explicitly marked.

        Example:
            logger.debug_pii("Transcript received", transcript="where is the station")
        """
        self._log(logging.DEBUG, message, pii=pii_fields)

    def info_pii(self, message: str, **pii_fields):
        """Log info with PII fields explicitly marked."""
        self._log(logging.INFO, message, pii=pii_fields)

    def with_session(self, session_id: str) -> "StructuredLogger":
        """Create a new logger instance bound to a session ID."""
        return StructuredLogger(
            self.component,
            session_id=session_id,
            logger_name=self.logger.name
        )


def setup_logging(
    level: str = "INFO",
    use_json: bool = True,
    include_timestamp: bool = True
) -> None:
    """
    Configure the root logger. Call once at application startup.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        use_json: Use JSONFormatter (True) or plain text (False)
        include_timestamp: Prefix plain-text lines with a timestamp
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)

    if use_json:
        formatter = JSONFormatter()
    else:
        format_str = "%(levelname)s - %(component)s - %(message)s"
        if include_timestamp:
            format_str = "%(asctime)s - " + format_str
        formatter = logging.Formatter(format_str, defaults={"component": "unknown"})

    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    log_level = getattr(logging, level.upper(), logging.INFO)
    root_logger.setLevel(log_level)


def get_logger(
    component: str | Component,
    session_id: Optional[str] = None
) -> StructuredLogger:
    """
    Get a structured logger for a component.

    Example:
        logger = get_logger(Component.SESSION_MANAGER, session_id="sess_123")
        logger.info("Session started")
    """
    return StructuredLogger(component, session_id=session_id)
