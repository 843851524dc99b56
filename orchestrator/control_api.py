"""
Translation control API.

The presentation layer drives the orchestrator through these routes:
- Session: start, end, snapshot, ledger, language pair
- Capture: start, stop, and the client recognizer's transcript feed
- Text input and speaker switching
- History (via the session store), events, notifications, latest audio clip

Errors map to stable status codes with the error kind as detail; responses
never carry internal traces.
"""
from __future__ import annotations

import time
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Query, Request, Response
from pydantic import BaseModel, Field

from logging_setup import Component as LogComponent, get_logger
from observability.event_store import event_store
from observability.events import Component as ObsComponent, EventEmitter, Severity

from .errors import (
    AlreadyActive,
    CapabilityUnavailable,
    CaptureFailed,
    NoActiveSession,
    NotAuthenticated,
    OrchestratorError,
    PipelineBusy,
    StorageError,
    TranslationEngineError,
)
from .factory import Services
from .languages import is_supported, lookup
from .models import TurnState
from .session import SessionSnapshot, format_elapsed

router = APIRouter(prefix="/translation", tags=["translation"])
emitter = EventEmitter(ObsComponent.API)
logger = get_logger(LogComponent.API)


_STATUS_CODES = {
    NotAuthenticated: 401,
    NoActiveSession: 404,
    AlreadyActive: 409,
    PipelineBusy: 409,
    TranslationEngineError: 502,
    CaptureFailed: 502,
    CapabilityUnavailable: 503,
    StorageError: 503,
}


def _http_error(error: OrchestratorError) -> HTTPException:
    status = _STATUS_CODES.get(type(error), 500)
    logger.info("Request rejected", error_kind=error.kind, status_code=status)
    return HTTPException(status_code=status, detail=error.kind)


def _services(request: Request) -> Services:
    return request.app.state.services


def _new_correlation_id() -> str:
    return f"cmd_{int(time.time() * 1000)}"


def _check_language(code: str) -> None:
    if not is_supported(code):
        raise HTTPException(status_code=400, detail=f"Unsupported language: {code}")


# --- Models ---


class StartSessionRequest(BaseModel):
    source_language: Optional[str] = Field(None, min_length=1)
    target_language: Optional[str] = Field(None, min_length=1)


class LanguagesRequest(BaseModel):
    source_language: str = Field(..., min_length=1)
    target_language: str = Field(..., min_length=1)


class TextRequest(BaseModel):
    text: str


class CaptureEventRequest(BaseModel):
    """A recognizer result or error code forwarded by the client."""
    transcript: Optional[str] = None
    is_final: bool = True
    error: Optional[str] = None


class SnapshotResponse(BaseModel):
    session_id: str
    current_speaker: str
    source_language: str
    target_language: str
    source_language_name: str
    target_language_name: str
    elapsed_seconds: int
    elapsed: str
    running_accuracy: int
    capture_state: str
    translating: bool
    speaking: bool
    message_count: int
    started_at: str


class TurnResponse(BaseModel):
    current_speaker: str
    source_language: str
    target_language: str


class MessageResponse(BaseModel):
    id: str
    sequence: int
    session_id: str
    speaker: str
    original_text: str
    translated_text: str
    confidence_score: int
    source_language: str
    target_language: str
    timestamp: str


class TextResponse(BaseModel):
    status: str
    message: Optional[MessageResponse] = None
    running_accuracy: Optional[int] = None
    confidence_source: Optional[str] = None
    persisted: Optional[bool] = None


def _snapshot_response(snapshot: SessionSnapshot) -> SnapshotResponse:
    return SnapshotResponse(
        session_id=snapshot.session_id,
        current_speaker=snapshot.current_speaker.value,
        source_language=snapshot.source_language,
        target_language=snapshot.target_language,
        source_language_name=lookup(snapshot.source_language).name,
        target_language_name=lookup(snapshot.target_language).name,
        elapsed_seconds=snapshot.elapsed_seconds,
        elapsed=format_elapsed(snapshot.elapsed_seconds),
        running_accuracy=snapshot.running_accuracy,
        capture_state=snapshot.capture_state.value,
        translating=snapshot.translating,
        speaking=snapshot.speaking,
        message_count=snapshot.message_count,
        started_at=snapshot.started_at.isoformat(),
    )


def _turn_response(turn: TurnState) -> TurnResponse:
    return TurnResponse(
        current_speaker=turn.speaker.value,
        source_language=turn.source_language,
        target_language=turn.target_language,
    )


def _audit(command: str, session_id: str, correlation_id: str, error: Optional[OrchestratorError] = None) -> None:
    emitter.emit(
        "api.command_applied",
        session_id=session_id,
        severity=Severity.WARN if error else Severity.INFO,
        correlation_id=correlation_id,
        command=command,
        result=error.kind if error else "ok",
    )


def _current_session_id(services: Services) -> str:
    session = services.manager.session
    return session.session_id if session is not None else ""


# --- Session ---


@router.post("/sessions", response_model=SnapshotResponse)
async def start_session(request: Request, req: Optional[StartSessionRequest] = None) -> SnapshotResponse:
    """Start a new session (ending the current one)."""
    services = _services(request)
    req = req or StartSessionRequest()
    for code in (req.source_language, req.target_language):
        if code is not None:
            _check_language(code)

    correlation_id = _new_correlation_id()
    try:
        await services.manager.start_session(req.source_language, req.target_language)
    except OrchestratorError as e:
        _audit("session.start", "", correlation_id, e)
        raise _http_error(e)
    _audit("session.start", _current_session_id(services), correlation_id)
    return _snapshot_response(services.manager.snapshot())


@router.post("/sessions/current/end")
async def end_session(request: Request) -> dict:
    services = _services(request)
    session = await services.manager.end_session()
    if session is None:
        raise HTTPException(status_code=404, detail=NoActiveSession.kind)
    return {
        "status": "ended",
        "session_id": session.session_id,
        "message_count": len(session.ledger),
        "average_accuracy": session.running_accuracy,
        "elapsed": format_elapsed(session.elapsed_seconds),
    }


@router.get("/sessions/current", response_model=SnapshotResponse)
async def get_current_session(request: Request) -> SnapshotResponse:
    try:
        snapshot = _services(request).manager.snapshot()
    except NoActiveSession as e:
        raise _http_error(e)
    return _snapshot_response(snapshot)


@router.get("/sessions/current/messages")
async def get_current_messages(request: Request) -> dict:
    manager = _services(request).manager
    try:
        messages = manager.messages()
    except NoActiveSession as e:
        raise _http_error(e)
    return {
        "session_id": manager.session.session_id,
        "messages": [m.to_dict() for m in messages],
        "count": len(messages),
    }


@router.put("/sessions/current/languages", response_model=TurnResponse)
async def set_languages(request: Request, req: LanguagesRequest) -> TurnResponse:
    _check_language(req.source_language)
    _check_language(req.target_language)
    try:
        turn = _services(request).manager.set_languages(req.source_language, req.target_language)
    except NoActiveSession as e:
        raise _http_error(e)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _turn_response(turn)


# --- Capture ---


@router.post("/capture/start")
async def start_capture(request: Request) -> dict:
    services = _services(request)
    correlation_id = _new_correlation_id()
    try:
        await services.manager.start_capture()
    except OrchestratorError as e:
        _audit("capture.start", _current_session_id(services), correlation_id, e)
        raise _http_error(e)
    _audit("capture.start", _current_session_id(services), correlation_id)
    return {"status": "ok", "capture_state": services.manager.capture.state.value}


@router.post("/capture/stop")
async def stop_capture(request: Request) -> dict:
    services = _services(request)
    await services.manager.stop_capture()
    return {"status": "ok", "capture_state": services.manager.capture.state.value}


@router.post("/capture/events")
async def push_capture_event(request: Request, req: CaptureEventRequest) -> dict:
    """Forward a client recognizer result or error into the open capture."""
    engine = _services(request).transcription
    if engine is None:
        raise HTTPException(status_code=503, detail=CapabilityUnavailable.kind)
    if req.error:
        accepted = engine.fail(req.error)
    elif req.transcript is not None:
        accepted = engine.push(req.transcript, is_final=req.is_final)
    else:
        raise HTTPException(status_code=400, detail="transcript or error required")
    return {"accepted": accepted}


# --- Text & turns ---


@router.post("/text", response_model=TextResponse)
async def submit_text(request: Request, req: TextRequest) -> TextResponse:
    services = _services(request)
    correlation_id = _new_correlation_id()
    try:
        outcome = await services.manager.submit_text(req.text)
    except OrchestratorError as e:
        _audit("text.submit", _current_session_id(services), correlation_id, e)
        raise _http_error(e)
    if outcome is None:
        return TextResponse(status="ignored")

    _audit("text.submit", outcome.message.session_id, correlation_id)
    return TextResponse(
        status="ok",
        message=MessageResponse(**outcome.message.to_dict()),
        running_accuracy=outcome.running_accuracy,
        confidence_source=outcome.confidence_source,
        persisted=outcome.persisted,
    )


@router.post("/speaker/switch", response_model=TurnResponse)
async def switch_speaker(request: Request) -> TurnResponse:
    try:
        turn = _services(request).manager.switch_speaker()
    except NoActiveSession as e:
        raise _http_error(e)
    return _turn_response(turn)


# --- History & observability ---


@router.get("/sessions")
async def list_sessions(request: Request) -> List[Dict[str, Any]]:
    """Stored session headers, newest first."""
    return await _services(request).manager.list_sessions()


@router.get("/sessions/{session_id}/messages")
async def list_session_messages(
    request: Request,
    session_id: str,
    speaker: Optional[str] = Query(None, description="Filter by speaker (A or B)"),
    limit: Optional[int] = Query(None, ge=1, le=1000, description="Max messages to return"),
) -> dict:
    if speaker is not None and speaker not in ("A", "B"):
        raise HTTPException(status_code=400, detail=f"Invalid speaker: {speaker}")
    messages = await _services(request).manager.list_messages(session_id, speaker=speaker, limit=limit)
    return {"session_id": session_id, "messages": messages, "count": len(messages)}


def _parse_timestamp(name: str, value: Optional[str]) -> Optional[datetime]:
    """ISO timestamp, with or without timezone (UTC assumed)."""
    if not value:
        return None
    try:
        # URL-encoded + may arrive as a space
        clean = value.replace(" ", "+").replace("Z", "+00:00")
        if "+" not in clean and "-" not in clean[-6:]:
            clean += "+00:00"
        return datetime.fromisoformat(clean)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid {name} timestamp: {value}")


@router.get("/sessions/{session_id}/events")
async def get_session_events(
    session_id: str,
    event_type: Optional[str] = Query(None, description="Filter by event_type"),
    component: Optional[str] = Query(None, description="Filter by component"),
    since: Optional[str] = Query(None, description="ISO timestamp (inclusive)"),
    until: Optional[str] = Query(None, description="ISO timestamp (inclusive)"),
    limit: Optional[int] = Query(None, ge=1, le=1000, description="Max events to return"),
) -> dict:
    events = event_store.query(
        session_id=session_id,
        event_type=event_type,
        component=component,
        since=_parse_timestamp("since", since),
        until=_parse_timestamp("until", until),
        limit=limit,
    )
    return {"session_id": session_id, "events": events, "count": len(events)}


@router.get("/notifications")
async def list_notifications(
    request: Request,
    since_id: int = Query(0, ge=0, description="Only notifications newer than this id"),
) -> dict:
    items = _services(request).manager.notifier.items(since_id=since_id)
    return {"notifications": [n.to_dict() for n in items], "count": len(items)}


@router.get("/playback/latest")
async def latest_clip(request: Request) -> Response:
    """Most recent synthesized clip as WAV."""
    sink = getattr(_services(request).synthesizer, "sink", None)
    clip = getattr(sink, "latest", None)
    if clip is None:
        raise HTTPException(status_code=404, detail="no_clip")
    return Response(
        content=clip.wav,
        media_type="audio/wav",
        headers={"X-Clip-Locale": clip.locale},
    )
