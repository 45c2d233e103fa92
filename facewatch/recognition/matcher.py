"""Exhaustive nearest-neighbour matcher over enrolled embeddings."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from facewatch.recognition.registry import IdentityRegistry
from facewatch.types import UNKNOWN_LABEL, Embedding, Identity, euclidean_distance

LOGGER = logging.getLogger("facewatch.recognition.matcher")


@dataclass(frozen=True)
class MatchCandidate:
    """Closest enrolled identity for one observed embedding."""

    name: str
    distance: float

    @property
    def is_unknown(self) -> bool:
        return self.name == UNKNOWN_LABEL


UNKNOWN_CANDIDATE = MatchCandidate(name=UNKNOWN_LABEL, distance=math.inf)


def best_match(observed: Embedding, identities: Iterable[Identity]) -> MatchCandidate:
    """Scan every sample of every identity and keep the smallest distance.

    Strict comparison keeps the first candidate on exact ties, i.e. the oldest
    identity and then its oldest sample.
    """
    best = UNKNOWN_CANDIDATE
    for identity in identities:
        for enrolled in identity.embeddings:
            distance = euclidean_distance(enrolled, observed)
            if distance < best.distance:
                best = MatchCandidate(name=identity.name, distance=distance)
    return best


def rank_identities(observed: Embedding, identities: Iterable[Identity], k: int = 3) -> List[Tuple[str, float]]:
    """Return the k nearest identities (per-identity minimum distance), nearest first."""
    ranked = [
        (identity.name, min(euclidean_distance(e, observed) for e in identity.embeddings))
        for identity in identities
    ]
    ranked.sort(key=lambda item: item[1])
    return ranked[:k]


class Matcher:
    """Matches observed embeddings against a live registry.

    Each call reads a fresh snapshot unless one is passed in, so a caller
    matching several faces can pin them all to the same registry state.
    """

    def __init__(self, registry: IdentityRegistry) -> None:
        self.registry = registry

    def snapshot(self) -> Tuple[Identity, ...]:
        return self.registry.list()

    def match(self, observed: Embedding, identities: Optional[Sequence[Identity]] = None) -> MatchCandidate:
        if not isinstance(observed, Embedding):
            observed = Embedding(observed)
        if identities is None:
            identities = self.snapshot()
        candidate = best_match(observed, identities)
        LOGGER.debug("Best match %s distance=%.4f", candidate.name, candidate.distance)
        return candidate

    def topk(self, observed: Embedding, k: int = 3) -> List[Tuple[str, float]]:
        if not isinstance(observed, Embedding):
            observed = Embedding(observed)
        return rank_identities(observed, self.snapshot(), k=k)
