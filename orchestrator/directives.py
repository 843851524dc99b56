"""
Translation directive templates.

The pipeline sends the engine an explicit instruction naming both languages
and asking for the translation only. Templates are YAML files next to this
module (parsed with PyYAML's safe_load, which also accepts plain JSON).
The engine's reply is used verbatim; surplus prose is not stripped.
"""

from functools import lru_cache
from pathlib import Path
from typing import Any, Dict

import yaml

from .languages import get_language_name

DEFAULT_DIRECTIVE = (
    'Translate "{text}" from {source_language} to {target_language}. '
    "Provide only the translation, no additional text."
)


def _directives_path() -> Path:
    return Path(__file__).parent / "directives.yaml"


@lru_cache(maxsize=1)
def load_directives() -> Dict[str, Any]:
    """Load the directive file, falling back to the built-in template if it is missing."""
    path = _directives_path()
    if not path.exists():
        return {"name": "default", "translate": DEFAULT_DIRECTIVE}
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Directive file {path} must contain a mapping at top-level")
    return data


def build_directive(text: str, source_language: str, target_language: str) -> str:
    """
    Render the translation directive for one utterance.

    Example:
        build_directive("hello", "en", "es")
        -> 'Translate "hello" from en to es. Provide only the translation, no additional text.'
    """
    template = load_directives().get("translate") or DEFAULT_DIRECTIVE
    return template.strip().format(
        text=text,
        source_language=source_language,
        target_language=target_language,
        source_name=get_language_name(source_language),
        target_name=get_language_name(target_language),
    )
