"""
Orchestrator configuration.

Loads engine, store and session defaults from environment variables. Local
development values may live in .env_local / .env.local at the repo root; they
never override variables already exported.
"""
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


def load_local_env() -> None:
    """Best-effort load of .env_local / .env.local (existing env wins)."""
    root = Path(__file__).parent.parent
    for name in (".env_local", ".env.local"):
        path = root / name
        if path.exists():
            load_dotenv(path, override=False)


def _clean_env(key: str) -> Optional[str]:
    """Env value with inline comments and whitespace stripped; None if empty."""
    value = os.environ.get(key)
    if not value:
        return None
    if "#" in value:
        value = value.split("#")[0]
    value = value.strip()
    return value or None


def _parse_int_env(key: str, default: int) -> int:
    """
    Parse integer environment variable, tolerating comments.

    "300  # comment" -> 300, unset or invalid -> default
    """
    value = _clean_env(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _parse_float_env(key: str, default: float) -> float:
    value = _clean_env(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _parse_bool_env(key: str, default: bool) -> bool:
    value = _clean_env(key)
    if value is None:
        return default
    return value.lower() in ("1", "true", "yes", "on")


@dataclass
class OrchestratorConfig:
    """Orchestrator configuration."""

    # Session defaults
    default_source_language: str = "en"
    default_target_language: str = "es"
    initial_accuracy: int = 0
    auto_start_session: bool = True
    user_id: Optional[str] = None

    # Translation engine (OpenAI-compatible chat completions)
    translation_api_url: str = "https://api.groq.com/openai/v1/chat/completions"
    translation_api_key: Optional[str] = None
    translation_model: str = "llama-3.1-8b-instant"
    translation_timeout_seconds: float = 10.0
    confidence_source: str = "engine"  # "engine" | "synthetic"

    # Speech synthesis
    tts_provider: str = "google"  # "google" | "none"
    google_tts_api_key: Optional[str] = None
    synthesis_timeout_seconds: float = 15.0
    voice_speed: float = 1.0
    voice_gender: str = "female"

    # Transcription
    transcription_enabled: bool = True

    # Persistence
    auto_save_conversations: bool = True
    store_backend: str = "memory"  # "memory" | "json"
    store_path: str = "conversations.json"

    # Presentation surface
    notification_limit: int = 50
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8000

    @classmethod
    def from_env(cls) -> "OrchestratorConfig":
        """Load configuration from environment variables."""
        load_local_env()
        return cls(
            default_source_language=os.environ.get("DEFAULT_SOURCE_LANGUAGE", "en"),
            default_target_language=os.environ.get("DEFAULT_TARGET_LANGUAGE", "es"),
            initial_accuracy=_parse_int_env("INITIAL_ACCURACY", default=0),
            auto_start_session=_parse_bool_env("AUTO_START_SESSION", default=True),
            user_id=_clean_env("USER_ID"),
            translation_api_url=os.environ.get(
                "TRANSLATION_API_URL", "https://api.groq.com/openai/v1/chat/completions"
            ),
            translation_api_key=os.environ.get("TRANSLATION_API_KEY") or os.environ.get("GROQ_API_KEY"),
            translation_model=os.environ.get("TRANSLATION_MODEL", "llama-3.1-8b-instant"),
            translation_timeout_seconds=_parse_float_env("TRANSLATION_TIMEOUT_SECONDS", default=10.0),
            confidence_source=os.environ.get("CONFIDENCE_SOURCE", "engine").lower(),
            tts_provider=os.environ.get("TTS_PROVIDER", "google").lower(),
            google_tts_api_key=os.environ.get("GOOGLE_TTS_API_KEY") or os.environ.get("GOOGLE_API_KEY"),
            synthesis_timeout_seconds=_parse_float_env("SYNTHESIS_TIMEOUT_SECONDS", default=15.0),
            voice_speed=_parse_float_env("VOICE_SPEED", default=1.0),
            voice_gender=os.environ.get("VOICE_GENDER", "female").lower(),
            transcription_enabled=_parse_bool_env("TRANSCRIPTION_ENABLED", default=True),
            auto_save_conversations=_parse_bool_env("AUTO_SAVE_CONVERSATIONS", default=True),
            store_backend=os.environ.get("STORE_BACKEND", "memory").lower(),
            store_path=os.environ.get("STORE_PATH", "conversations.json"),
            notification_limit=_parse_int_env("NOTIFICATION_LIMIT", default=50),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),
            host=os.environ.get("HOST", "0.0.0.0"),
            port=_parse_int_env("PORT", default=8000),
        )


def get_config() -> OrchestratorConfig:
    """Get or create global config instance."""
    global _config
    if _config is None:
        _config = OrchestratorConfig.from_env()
    return _config


def reset_config() -> None:
    global _config
    _config = None


# Global config instance (lazy loaded)
_config: Optional[OrchestratorConfig] = None
