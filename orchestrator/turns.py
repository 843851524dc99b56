"""
Turn Coordinator.

Owns every mutation of a session's speaker and language pair. Each change
replaces the session's TurnState in a single assignment, so a concurrent
capture or translation reads either the old triple or the new one.
"""
from __future__ import annotations

from typing import TYPE_CHECKING

from logging_setup import Component as LogComponent, get_logger
from observability.events import Component as ObsComponent, EventEmitter

from .models import TurnState

if TYPE_CHECKING:
    from .session import Session


class TurnCoordinator:

    def __init__(self, session: "Session"):
        self._session = session
        self.emitter = EventEmitter(ObsComponent.TURNS)
        self.logger = get_logger(LogComponent.TURNS, session_id=session.session_id)

    @property
    def current(self) -> TurnState:
        return self._session.turn

    def switch_speaker(self) -> TurnState:
        """Toggle A/B and swap source/target languages together."""
        previous = self._session.turn
        updated = previous.switched()
        self._session.turn = updated

        self.emitter.emit(
            "turn.switched",
            session_id=self._session.session_id,
            from_speaker=previous.speaker.value,
            to_speaker=updated.speaker.value,
            source_language=updated.source_language,
            target_language=updated.target_language,
        )
        self.logger.debug(
            "Speaker switched",
            speaker=updated.speaker.value,
            source_language=updated.source_language,
            target_language=updated.target_language,
        )
        return updated

    def set_languages(self, source_language: str, target_language: str) -> TurnState:
        """Replace the live language pair; the current speaker is kept."""
        if not source_language or not target_language:
            raise ValueError("source_language and target_language are required")

        previous = self._session.turn
        updated = previous.with_languages(source_language, target_language)
        self._session.turn = updated

        self.emitter.emit(
            "turn.languages_changed",
            session_id=self._session.session_id,
            speaker=updated.speaker.value,
            from_pair=[previous.source_language, previous.target_language],
            to_pair=[updated.source_language, updated.target_language],
        )
        return updated
