"""
Confidence scoring and the session's running accuracy.

Two sources are available:
- "engine": the score the translation engine reports, clamped to 0-100.
  When the engine reports nothing, the synthetic placeholder is used and the
  result is tagged as synthetic.
- "synthetic": a pseudo-random placeholder in [85, 100). It is NOT a quality
  metric and exists for behavioural parity only.
"""
import random
from dataclasses import dataclass
from typing import Optional, Protocol

from .interfaces import TranslationResponse

SYNTHETIC_MIN = 85
SYNTHETIC_SPAN = 15


@dataclass(frozen=True)
class ConfidenceScore:
    value: int
    source: str


class ConfidenceSource(Protocol):

    def score(self, response: TranslationResponse) -> ConfidenceScore:
        ...


class SyntheticConfidence:
    """Placeholder score: floor(85 + U[0,1) * 15)."""

    name = "synthetic"

    def __init__(self, rng: Optional[random.Random] = None):
        self._rng = rng or random.Random()

    def score(self, response: TranslationResponse) -> ConfidenceScore:
        return ConfidenceScore(
            value=int(SYNTHETIC_MIN + self._rng.random() * SYNTHETIC_SPAN),
            source=self.name,
        )


class EngineReportedConfidence:
    """Engine-reported score, with the synthetic placeholder as fallback."""

    name = "engine"

    def __init__(self, fallback: Optional[ConfidenceSource] = None):
        self._fallback = fallback or SyntheticConfidence()

    def score(self, response: TranslationResponse) -> ConfidenceScore:
        if response.confidence is None:
            return self._fallback.score(response)
        return ConfidenceScore(value=max(0, min(100, int(response.confidence))), source=self.name)


def build_confidence_source(name: str, rng: Optional[random.Random] = None) -> ConfidenceSource:
    name = (name or "engine").lower()
    if name == "synthetic":
        return SyntheticConfidence(rng)
    if name == "engine":
        return EngineReportedConfidence(SyntheticConfidence(rng))
    raise ValueError(f"Unknown confidence source: {name}")


def blend_accuracy(previous: int, confidence: int) -> int:
    """
    Two-term running accuracy: floor((previous + confidence) / 2).

    Recency-weighted, not a mean over all messages:
    0 -> 90 gives 45, then 80 gives 62, then 100 gives 81.
    """
    return (previous + confidence) // 2
