"""
Language Pair Registry.

Static mapping of language code -> display name, flag and speech locale,
loaded once from languages.yaml. Unknown codes fail open: the raw code is
used for display and as the locale.
"""
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Dict, List

import yaml

UNKNOWN_FLAG = "🌐"


@dataclass(frozen=True)
class LanguageInfo:
    code: str
    name: str
    flag: str
    locale: str


def _registry_path() -> Path:
    return Path(__file__).parent / "languages.yaml"


@lru_cache(maxsize=1)
def _load_registry() -> Dict[str, LanguageInfo]:
    with open(_registry_path(), encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if not isinstance(data, dict) or not isinstance(data.get("languages"), dict):
        raise ValueError(f"Language registry {_registry_path()} must contain a 'languages' mapping")

    registry = {}
    for code, entry in data["languages"].items():
        registry[code] = LanguageInfo(
            code=code,
            name=entry["name"],
            flag=entry.get("flag", UNKNOWN_FLAG),
            locale=entry.get("locale", code),
        )
    return registry


def lookup(code: str) -> LanguageInfo:
    """Registry entry for a code; unknown codes get a fail-open entry."""
    info = _load_registry().get(code)
    if info is not None:
        return info
    return LanguageInfo(code=code, name=code, flag=UNKNOWN_FLAG, locale=code)


def get_language_name(code: str) -> str:
    return lookup(code).name


def get_language_flag(code: str) -> str:
    return lookup(code).flag


def get_speech_locale(code: str) -> str:
    """Locale tag handed to the transcription engine and speech synthesizer."""
    return lookup(code).locale


def is_supported(code: str) -> bool:
    return code in _load_registry()


def list_languages() -> List[LanguageInfo]:
    """All registered languages in registry order."""
    return list(_load_registry().values())
