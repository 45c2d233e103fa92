"""In-memory registry of enrolled identities."""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

import numpy as np
import pandas as pd

from facewatch.errors import InvalidEmbeddingLengthError, NotFoundError
from facewatch.types import Embedding, Identity, Reference

LOGGER = logging.getLogger("facewatch.recognition.registry")

RegistryListener = Callable[["IdentityRegistry"], None]


class IdentityRegistry:
    """Insertion-ordered collection of identities keyed by name.

    Identities are immutable values; enrolling a new sample swaps in an extended
    copy under the lock, so readers always see embeddings and references of the
    same length.
    """

    def __init__(self, dimension: Optional[int] = None) -> None:
        if dimension is not None and dimension < 1:
            raise ValueError(f"Embedding dimension must be positive, got {dimension}")
        self._lock = threading.RLock()
        self._identities: "OrderedDict[str, Identity]" = OrderedDict()
        self._dimension = dimension
        self._listeners: List[RegistryListener] = []

    @classmethod
    def from_identities(cls, identities: Iterable[Identity], dimension: Optional[int] = None) -> "IdentityRegistry":
        """Build a registry from already-validated identities without notifying anyone."""
        registry = cls(dimension=dimension)
        for identity in identities:
            if identity.name in registry._identities:
                raise ValueError(f"Duplicate identity {identity.name!r}")
            for embedding in identity.embeddings:
                if registry._dimension is None:
                    registry._dimension = len(embedding)
                elif len(embedding) != registry._dimension:
                    raise InvalidEmbeddingLengthError(registry._dimension, len(embedding))
            registry._identities[identity.name] = identity
        return registry

    @property
    def dimension(self) -> Optional[int]:
        """Embedding length every enrolled sample must have (None until the first enrollment)."""
        return self._dimension

    def enroll(self, name: str, embedding: Embedding, reference: Reference) -> Identity:
        """Append a sample to ``name``, creating the identity when new."""
        name = _clean_name(name)
        if not isinstance(embedding, Embedding):
            embedding = Embedding(embedding)
        with self._lock:
            if self._dimension is not None and len(embedding) != self._dimension:
                raise InvalidEmbeddingLengthError(self._dimension, len(embedding))
            current = self._identities.get(name)
            if current is None:
                updated = Identity.single(name, embedding, reference)
            else:
                updated = current.extended(embedding, reference)
            self._identities[name] = updated
            if self._dimension is None:
                self._dimension = len(embedding)
        LOGGER.info("Enrolled sample %d for %s", updated.sample_count, name)
        self._notify()
        return updated

    def remove(self, name: str) -> Identity:
        """Delete ``name``; raises NotFoundError and changes nothing when absent."""
        name = _lookup_key(name)
        with self._lock:
            try:
                removed = self._identities.pop(name)
            except KeyError:
                raise NotFoundError(name) from None
        LOGGER.info("Removed identity %s (%d samples)", name, removed.sample_count)
        self._notify()
        return removed

    def list(self) -> Tuple[Identity, ...]:
        """Snapshot of identities in enrollment order."""
        with self._lock:
            return tuple(self._identities.values())

    def get(self, name: str) -> Identity:
        name = _lookup_key(name)
        with self._lock:
            try:
                return self._identities[name]
            except KeyError:
                raise NotFoundError(name) from None

    def names(self) -> List[str]:
        with self._lock:
            return list(self._identities.keys())

    def is_empty(self) -> bool:
        with self._lock:
            return not self._identities

    def embedding_count(self) -> int:
        with self._lock:
            return sum(identity.sample_count for identity in self._identities.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._identities)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return _lookup_key(name) in self._identities

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, IdentityRegistry):
            return NotImplemented
        return self.list() == other.list()

    def __repr__(self) -> str:
        return f"IdentityRegistry(identities={len(self)}, dimension={self._dimension})"

    # -- Listeners ------------------------------------------------------------

    def add_listener(self, listener: RegistryListener) -> None:
        """Call ``listener(registry)`` after every successful mutation."""
        with self._lock:
            self._listeners.append(listener)

    def remove_listener(self, listener: RegistryListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def _notify(self) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            listener(self)

    # -- Reporting ------------------------------------------------------------

    def summary_frame(self) -> pd.DataFrame:
        """Per-identity sample counts and mean embedding norms."""
        rows: List[Dict] = []
        for identity in self.list():
            norms = [float(np.linalg.norm(e.values)) for e in identity.embeddings]
            rows.append(
                {
                    "name": identity.name,
                    "samples": identity.sample_count,
                    "dimension": len(identity.embeddings[0]),
                    "mean_norm": float(np.mean(norms)),
                }
            )
        return pd.DataFrame(rows, columns=["name", "samples", "dimension", "mean_norm"])


def _clean_name(name: str) -> str:
    if not isinstance(name, str):
        raise TypeError(f"Identity name must be a string, got {type(name).__name__}")
    cleaned = name.strip()
    if not cleaned:
        raise ValueError("Identity name must be non-empty")
    return cleaned


def _lookup_key(name: Any) -> Any:
    # enroll stores names stripped; look them up the same way
    return name.strip() if isinstance(name, str) else name
