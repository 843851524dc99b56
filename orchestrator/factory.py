"""
Wires the SessionManager to concrete engines from configuration.
"""
import random
from dataclasses import dataclass
from typing import Any, Optional

from engines.identity import StaticIdentityProvider
from engines.store import build_store
from engines.transcription import PushTranscriptionEngine
from engines.translation import LLMTranslationEngine
from engines.tts import GoogleCloudSpeechSynthesizer, NullSpeechSynthesizer
from logging_setup import get_logger, Component

from .config import OrchestratorConfig
from .confidence import build_confidence_source
from .interfaces import VoiceSettings
from .notifications import Notifier
from .session import SessionManager

logger = get_logger(Component.SESSION_MANAGER)


@dataclass
class Services:
    """The manager plus the engine handles the HTTP surface talks to directly."""

    manager: SessionManager
    identity: StaticIdentityProvider
    transcription: Optional[PushTranscriptionEngine]
    translation: Any
    synthesizer: Any

    async def aclose(self) -> None:
        await self.manager.shutdown()
        for engine in (self.translation, self.synthesizer):
            aclose = getattr(engine, "aclose", None)
            if aclose is not None:
                await aclose()


def build_synthesizer(config: OrchestratorConfig):
    if config.tts_provider == "none":
        return NullSpeechSynthesizer()
    if config.tts_provider == "google":
        return GoogleCloudSpeechSynthesizer(api_key=config.google_tts_api_key)
    raise ValueError(f"Unknown TTS provider: {config.tts_provider}")


def build_services(config: OrchestratorConfig) -> Services:
    identity = StaticIdentityProvider(config.user_id)
    transcription = PushTranscriptionEngine() if config.transcription_enabled else None
    translation = LLMTranslationEngine(
        api_key=config.translation_api_key,
        url=config.translation_api_url,
        model=config.translation_model,
    )
    synthesizer = build_synthesizer(config)

    manager = SessionManager(
        identity=identity,
        store=build_store(config.store_backend, config.store_path),
        translation_engine=translation,
        synthesizer=synthesizer,
        transcription_engine=transcription,
        notifier=Notifier(limit=config.notification_limit),
        confidence=build_confidence_source(config.confidence_source, random.Random()),
        voice=VoiceSettings(speed=config.voice_speed, gender=config.voice_gender),
        default_source_language=config.default_source_language,
        default_target_language=config.default_target_language,
        initial_accuracy=config.initial_accuracy,
        translation_timeout_seconds=config.translation_timeout_seconds,
        synthesis_timeout_seconds=config.synthesis_timeout_seconds,
        auto_save=config.auto_save_conversations,
    )
    logger.info(
        "Session manager built",
        store_backend=config.store_backend,
        tts_provider=config.tts_provider,
        transcription_enabled=config.transcription_enabled,
        confidence_source=config.confidence_source,
    )
    return Services(
        manager=manager,
        identity=identity,
        transcription=transcription,
        translation=translation,
        synthesizer=synthesizer,
    )
