"""Match/no-match decision from a candidate and the confidence threshold."""

from __future__ import annotations

import math
from dataclasses import dataclass

from facewatch.recognition.matcher import MatchCandidate
from facewatch.types import UNKNOWN_LABEL

DEFAULT_THRESHOLD = 0.6


@dataclass(frozen=True)
class MatchResult:
    identity_name: str
    distance: float
    is_match: bool

    @property
    def confidence(self) -> float:
        """Similarity ``1 - distance``; may be negative for far-away faces."""
        return 1.0 - self.distance

    @property
    def confidence_pct(self) -> int:
        if not math.isfinite(self.distance):
            return 0
        return int(round(self.confidence * 100))

    @property
    def label(self) -> str:
        return f"{self.identity_name} ({self.confidence_pct}%)"


def validate_threshold(threshold: float) -> float:
    value = float(threshold)
    if not 0.0 < value < 1.0:
        raise ValueError(f"Threshold must lie strictly between 0 and 1, got {threshold}")
    return value


def decide(candidate: MatchCandidate, threshold: float = DEFAULT_THRESHOLD) -> MatchResult:
    """Accept the candidate only if its similarity exceeds ``threshold``."""
    threshold = validate_threshold(threshold)
    is_match = candidate.name != UNKNOWN_LABEL and candidate.distance < (1.0 - threshold)
    return MatchResult(identity_name=candidate.name, distance=candidate.distance, is_match=is_match)
