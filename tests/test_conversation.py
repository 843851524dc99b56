"""
Tests for the conversation building blocks.

Verifies:
- Language registry lookups and fail-open behaviour
- Message ledger ordering and detachment
- Turn switching and language changes
- Confidence sources, accuracy blending and directives
"""
import random
from datetime import datetime, timezone

import pytest

from orchestrator.confidence import (
    EngineReportedConfidence,
    SyntheticConfidence,
    blend_accuracy,
    build_confidence_source,
)
from orchestrator.directives import build_directive
from orchestrator.interfaces import TranslationResponse
from orchestrator.languages import (
    get_language_flag,
    get_language_name,
    get_speech_locale,
    is_supported,
    list_languages,
)
from orchestrator.ledger import LedgerClosed, MessageLedger, new_message_id
from orchestrator.models import Message, Speaker, TurnState
from orchestrator.session import Session
from orchestrator.turns import TurnCoordinator


# --- Language registry ---


def test_registry_has_ten_languages():
    codes = [info.code for info in list_languages()]
    assert codes == ["en", "es", "fr", "de", "it", "pt", "ru", "ja", "ko", "zh"]


@pytest.mark.parametrize("code,locale", [("en", "en-US"), ("es", "es-ES"), ("zh", "zh-CN"), ("pt", "pt-PT")])
def test_speech_locales(code, locale):
    assert get_speech_locale(code) == locale


def test_names_and_flags():
    assert get_language_name("ja") == "Japanese"
    assert get_language_flag("fr") == "🇫🇷"
    assert is_supported("ko")


def test_unknown_code_fails_open():
    assert not is_supported("xx")
    assert get_language_name("xx") == "xx"
    assert get_language_flag("xx") == "🌐"
    assert get_speech_locale("xx") == "xx"


# --- Ledger ---


def _record(ledger, speaker=Speaker.A, text="hello"):
    return ledger.record(
        speaker=speaker,
        original_text=text,
        translated_text=text.upper(),
        confidence_score=90,
        source_language="en",
        target_language="es",
    )


def test_ledger_orders_by_position():
    ledger = MessageLedger("sess_1")
    first = _record(ledger, text="one")
    second = _record(ledger, Speaker.B, text="two")

    assert [m.sequence for m in ledger] == [0, 1]
    assert ledger.messages() == (first, second)
    assert ledger.last() is second
    assert len(ledger) == 2


def test_ledger_rejects_out_of_order_and_foreign_messages():
    ledger = MessageLedger("sess_1")
    now = datetime.now(timezone.utc)

    with pytest.raises(ValueError):
        ledger.append(Message("m", 3, "sess_1", Speaker.A, "a", "b", 90, "en", "es", now))
    with pytest.raises(ValueError):
        ledger.append(Message("m", 0, "other", Speaker.A, "a", "b", 90, "en", "es", now))


def test_detached_ledger_is_read_only():
    ledger = MessageLedger("sess_1")
    _record(ledger)
    ledger.detach()

    with pytest.raises(LedgerClosed):
        _record(ledger)
    assert len(ledger.messages()) == 1


def test_message_validation():
    now = datetime.now(timezone.utc)
    with pytest.raises(ValueError):
        Message("m", 0, "s", Speaker.A, "a", "b", 101, "en", "es", now)
    with pytest.raises(ValueError):
        Message("m", -1, "s", Speaker.A, "a", "b", 50, "en", "es", now)


def test_message_ids_sort_by_time_then_sequence():
    assert new_message_id(7, now_ms=1700000000000) == "msg_1700000000000_00007"
    assert new_message_id(1, now_ms=5) < new_message_id(2, now_ms=5)


def test_message_to_dict():
    message = _record(MessageLedger("sess_1"))
    data = message.to_dict()
    assert data["speaker"] == "A"
    assert isinstance(data["timestamp"], str)


# --- Turns ---


def _session():
    return Session(
        session_id="sess_1",
        user_id="user-1",
        started_at=datetime.now(timezone.utc),
        turn=TurnState(Speaker.A, "en", "es"),
    )


def test_switch_speaker_swaps_languages(capsys):
    session = _session()
    turns = TurnCoordinator(session)

    turn = turns.switch_speaker()

    assert turn == TurnState(Speaker.B, "es", "en")
    assert session.turn is turn
    assert "turn.switched" in capsys.readouterr().out


def test_double_switch_is_identity():
    turns = TurnCoordinator(_session())
    original = turns.current

    turns.switch_speaker()
    turns.switch_speaker()

    assert turns.current == original


def test_set_languages():
    session = _session()
    turns = TurnCoordinator(session)

    turns.set_languages("de", "ko")

    assert session.turn == TurnState(Speaker.A, "de", "ko")
    with pytest.raises(ValueError):
        turns.set_languages("de", "")


# --- Confidence & directives ---


def test_blend_accuracy_sequence():
    accuracy = 0
    seen = []
    for confidence in (90, 80, 100):
        accuracy = blend_accuracy(accuracy, confidence)
        seen.append(accuracy)
    assert seen == [45, 62, 81]


def test_synthetic_confidence_range():
    source = SyntheticConfidence(random.Random(1))
    scores = [source.score(TranslationResponse("x")).value for _ in range(200)]
    assert min(scores) >= 85
    assert max(scores) <= 99


def test_engine_confidence_is_clamped():
    source = EngineReportedConfidence()
    assert source.score(TranslationResponse("x", confidence=140)).value == 100
    assert source.score(TranslationResponse("x", confidence=-3)).value == 0
    assert source.score(TranslationResponse("x", confidence=77)).source == "engine"


def test_build_confidence_source():
    assert isinstance(build_confidence_source("synthetic"), SyntheticConfidence)
    assert isinstance(build_confidence_source("ENGINE"), EngineReportedConfidence)
    with pytest.raises(ValueError):
        build_confidence_source("oracle")


def test_directive_text():
    assert build_directive("good morning", "en", "fr") == (
        'Translate "good morning" from en to fr. Provide only the translation, no additional text.'
    )
