"""
Tests for the Capture Controller state machine.

Verifies:
- Idle -> Listening -> Processing -> Idle on a final transcript
- Interim results are ignored
- CapabilityUnavailable / AlreadyActive preconditions
- Stop semantics in each state
- Engine errors become categorized CaptureFailed
"""
import asyncio
import logging

import pytest

from conftest import settle
from engines.transcription import PushTranscriptionEngine
from orchestrator.capture import CaptureController, CaptureState
from orchestrator.errors import AlreadyActive, CapabilityUnavailable, CaptureErrorCategory


class Recorder:
    """Transcript / failure handler pair that records what it receives."""

    def __init__(self):
        self.transcripts = []
        self.failures = []
        self.states_seen = []
        self.gate = None
        self.controller = None

    async def on_transcript(self, text):
        self.transcripts.append(text)
        if self.controller is not None:
            self.states_seen.append(self.controller.state)
        if self.gate is not None:
            await self.gate.wait()

    def on_failure(self, failure):
        self.failures.append(failure)


def _controller(engine=None):
    engine = engine if engine is not None else PushTranscriptionEngine()
    recorder = Recorder()
    controller = CaptureController(
        engine,
        on_transcript=recorder.on_transcript,
        on_failure=recorder.on_failure,
    )
    recorder.controller = controller
    controller.bind_session("sess_test")
    return controller, engine, recorder


@pytest.mark.asyncio
async def test_final_transcript_flows_through_processing(capsys):
    """Test a final transcript is handed over while Processing, then Idle."""
    controller, engine, recorder = _controller()

    await controller.start("en-US")
    assert controller.state == CaptureState.LISTENING
    assert engine.locale == "en-US"

    assert engine.push(" hello ") is True
    await controller.wait()

    assert recorder.transcripts == ["hello"]
    assert recorder.states_seen == [CaptureState.PROCESSING]
    assert controller.state == CaptureState.IDLE
    assert not engine.listening

    out = capsys.readouterr().out
    assert '"to_state": "listening"' in out
    assert '"to_state": "processing"' in out
    assert '"cause": "settled"' in out


@pytest.mark.asyncio
async def test_interim_results_do_not_end_listening():
    """Test non-final events keep the controller Listening."""
    controller, engine, recorder = _controller()

    await controller.start("en-US")
    engine.push("hel", is_final=False)
    await settle()

    assert controller.state == CaptureState.LISTENING
    assert recorder.transcripts == []

    engine.push("hello")
    await controller.wait()
    assert recorder.transcripts == ["hello"]


@pytest.mark.asyncio
async def test_start_without_capability_raises():
    """Test hosts without speech-to-text are rejected and stay Idle."""
    controller, _, _ = _controller(PushTranscriptionEngine(available=False))

    with pytest.raises(CapabilityUnavailable):
        await controller.start("en-US")
    assert controller.state == CaptureState.IDLE

    no_engine = CaptureController(None, on_transcript=Recorder().on_transcript, on_failure=lambda f: None)
    assert no_engine.available is False
    with pytest.raises(CapabilityUnavailable):
        await no_engine.start("en-US")


@pytest.mark.asyncio
async def test_start_while_listening_is_already_active():
    """Test a second start is rejected without side effects."""
    controller, engine, _ = _controller()

    await controller.start("en-US")
    with pytest.raises(AlreadyActive):
        await controller.start("en-US")

    assert controller.state == CaptureState.LISTENING
    await controller.stop()


@pytest.mark.asyncio
async def test_stop_while_listening_discards_partial():
    """Test stop returns to Idle, releases the engine and never calls the handler."""
    controller, engine, recorder = _controller()

    await controller.start("en-US")
    engine.push("partial", is_final=False)
    await settle()
    await controller.stop()

    assert controller.state == CaptureState.IDLE
    assert recorder.transcripts == []
    assert not engine.listening
    assert engine.push("late") is False


@pytest.mark.asyncio
async def test_stop_from_idle_is_noop(capsys):
    """Test stop in Idle emits nothing."""
    controller, _, _ = _controller()

    await controller.stop()

    assert controller.state == CaptureState.IDLE
    assert "capture.state_changed" not in capsys.readouterr().out


@pytest.mark.asyncio
async def test_stop_while_processing_lets_it_settle():
    """Test stop during Processing does not interrupt the translation."""
    controller, engine, recorder = _controller()
    recorder.gate = asyncio.Event()

    await controller.start("en-US")
    engine.push("hello")
    await settle()
    assert controller.state == CaptureState.PROCESSING

    await controller.stop()
    assert controller.state == CaptureState.PROCESSING

    recorder.gate.set()
    await controller.wait()
    assert controller.state == CaptureState.IDLE
    assert recorder.transcripts == ["hello"]


@pytest.mark.asyncio
async def test_engine_error_is_categorized(capsys):
    """Test a recognizer error reaches on_failure with a stable category."""
    controller, engine, recorder = _controller()

    await controller.start("en-US")
    engine.fail("not-allowed")
    await controller.wait()

    assert controller.state == CaptureState.IDLE
    assert len(recorder.failures) == 1
    assert recorder.failures[0].category == CaptureErrorCategory.PERMISSION_DENIED
    assert recorder.transcripts == []
    assert "capture.failed" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_no_speech_returns_to_idle_quietly():
    """Test a no-speech error is treated like an empty result."""
    controller, engine, recorder = _controller()

    await controller.start("en-US")
    engine.fail("no-speech")
    await controller.wait()

    assert controller.state == CaptureState.IDLE
    assert recorder.failures == []


@pytest.mark.asyncio
async def test_blank_final_transcript_is_ignored():
    """Test an empty final result goes straight back to Idle."""
    controller, engine, recorder = _controller()

    await controller.start("en-US")
    engine.push("   ")
    await controller.wait()

    assert controller.state == CaptureState.IDLE
    assert recorder.transcripts == []


@pytest.mark.asyncio
async def test_handler_exception_still_returns_to_idle():
    """Test an unexpected handler error is logged and Idle is restored."""
    async def boom(text):
        raise RuntimeError("unexpected")

    engine = PushTranscriptionEngine()
    controller = CaptureController(engine, on_transcript=boom, on_failure=lambda f: None)

    await controller.start("en-US")
    engine.push("hello")
    await controller.wait()

    assert controller.state == CaptureState.IDLE


@pytest.mark.asyncio
async def test_capture_can_restart_after_settling():
    """Test a second turn can start once the first has settled."""
    controller, engine, recorder = _controller()

    await controller.start("en-US")
    engine.push("one")
    await controller.wait()

    await controller.start("es-ES")
    engine.push("dos")
    await controller.wait()

    assert recorder.transcripts == ["one", "dos"]


@pytest.mark.asyncio
async def test_stop_before_listen_task_runs_returns_to_idle():
    """Test stop issued before the capture task gets its first step still releases the engine."""
    controller, engine, recorder = _controller()

    await controller.start("en-US")
    await controller.stop()

    assert controller.state == CaptureState.IDLE
    assert not engine.listening

    await controller.start("en-US")
    assert controller.state == CaptureState.LISTENING
    engine.push("hello again")
    await controller.wait()

    assert recorder.transcripts == ["hello again"]
    assert controller.state == CaptureState.IDLE


@pytest.mark.asyncio
async def test_captured_utterance_logged_as_pii(caplog):
    """Test the final transcript is logged with PII marking and the session id."""
    caplog.set_level(logging.INFO, logger="capture")
    controller, engine, _ = _controller()

    await controller.start("en-US")
    engine.push("where is the station")
    await controller.wait()

    records = [r for r in caplog.records if r.getMessage() == "Utterance captured"]
    assert len(records) == 1
    assert records[0].pii == {"transcript": "where is the station"}
    assert records[0].session_id == "sess_test"
