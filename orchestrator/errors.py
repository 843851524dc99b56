"""
Orchestrator error taxonomy.

Engine-boundary failures are caught by the component that issued the call and
re-raised as one of these kinds. Nothing here is retried automatically.
"""
from typing import Optional, Tuple


class OrchestratorError(Exception):
    """Base class for every failure surfaced to the presentation layer."""

    kind = "orchestrator.error"

    def __init__(self, message: str = "", *, detail: Optional[str] = None):
        super().__init__(message or self.kind)
        self.detail = detail


class CapabilityUnavailable(OrchestratorError):
    """Host lacks the required speech capability. Fatal to the action, not the session."""

    kind = "capability.unavailable"


class AlreadyActive(OrchestratorError):
    """Capture requested while the controller is not Idle."""

    kind = "capture.already_active"


class PipelineBusy(OrchestratorError):
    """A translation is already in flight for this session."""

    kind = "pipeline.busy"


class CaptureFailed(OrchestratorError):
    """Transcription engine failed during Listening. The user must re-initiate."""

    kind = "capture.failed"

    def __init__(self, message: str = "", *, category: str = "capture.unknown_error", detail: Optional[str] = None):
        super().__init__(message, detail=detail)
        self.category = category


class TranslationEngineError(OrchestratorError):
    """Translation engine failed or timed out. No Message is recorded."""

    kind = "translation.failed"


class EmptyInput(OrchestratorError):
    """Blank text handed to the pipeline. A no-op, never shown as a failure."""

    kind = "input.empty"


class NotAuthenticated(OrchestratorError):
    """No identity bound; session creation refused."""

    kind = "auth.not_authenticated"


class StorageError(OrchestratorError):
    """Persistence failed. The in-memory ledger still holds the message."""

    kind = "storage.failed"


class NoActiveSession(OrchestratorError):
    """A user action arrived while no session is active."""

    kind = "session.none_active"


class CaptureErrorCategory:
    """Stable categories for transcription engine failures."""

    PERMISSION_DENIED = "capture.permission_denied"
    NETWORK_ERROR = "capture.network_error"
    TIMEOUT = "capture.timeout"
    NO_SPEECH = "capture.no_speech"
    ABORTED = "capture.aborted"
    UNKNOWN_ERROR = "capture.unknown_error"


def classify_capture_error(error: BaseException) -> str:
    """
    Classify a raw transcription engine error into a stable category.

    Browser speech engines report string codes ("not-allowed", "network",
    "no-speech", "aborted"); server-side engines raise exceptions. Both are
    matched on their text.
    """
    if isinstance(error, CaptureFailed):
        return error.category
    if isinstance(error, PermissionError):
        return CaptureErrorCategory.PERMISSION_DENIED
    if isinstance(error, TimeoutError):
        return CaptureErrorCategory.TIMEOUT
    if isinstance(error, ConnectionError):
        return CaptureErrorCategory.NETWORK_ERROR

    error_str = str(error).lower()

    if "not-allowed" in error_str or "permission" in error_str or "denied" in error_str:
        return CaptureErrorCategory.PERMISSION_DENIED
    if "no-speech" in error_str or "no speech" in error_str:
        return CaptureErrorCategory.NO_SPEECH
    if "timeout" in error_str or "timed out" in error_str:
        return CaptureErrorCategory.TIMEOUT
    if "network" in error_str or "connection" in error_str:
        return CaptureErrorCategory.NETWORK_ERROR
    if "aborted" in error_str:
        return CaptureErrorCategory.ABORTED

    return CaptureErrorCategory.UNKNOWN_ERROR


_USER_MESSAGES = {
    CapabilityUnavailable.kind: (
        "Speech Recognition Not Supported",
        "Speech recognition is not available here. Use text input instead.",
    ),
    CaptureFailed.kind: (
        "Speech Recognition Error",
        "Please check your microphone permissions and try again.",
    ),
    CaptureErrorCategory.NETWORK_ERROR: (
        "Speech Recognition Error",
        "The connection dropped while listening. Please try again.",
    ),
    TranslationEngineError.kind: (
        "Translation Error",
        "Failed to translate speech.",
    ),
    StorageError.kind: (
        "Not Saved",
        "The translation is shown but could not be saved.",
    ),
    NotAuthenticated.kind: (
        "Session Error",
        "Please sign in to start a session.",
    ),
    PipelineBusy.kind: (
        "Still Translating",
        "Wait for the current translation to finish.",
    ),
    AlreadyActive.kind: (
        "Already Recording",
        "Stop the current recording first.",
    ),
}


def get_user_message(kind: str) -> Tuple[str, str]:
    """User-facing (title, description) for an error kind or capture category."""
    if kind in _USER_MESSAGES:
        return _USER_MESSAGES[kind]
    if kind.startswith("capture."):
        return _USER_MESSAGES[CaptureFailed.kind]
    return ("Error", "Something went wrong. Please try again.")
