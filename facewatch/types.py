"""Common dataclasses and type aliases used across the facewatch package."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Iterator, List, Optional, Protocol, Sequence, Tuple, Union

import numpy as np

from facewatch.errors import DimensionMismatchError

# Bounding box order: x1, y1, x2, y2 (pixel coordinates)
BBox = Tuple[float, float, float, float]
# Opaque image payload kept beside each enrolled embedding (a data URL in practice)
Reference = Any

UNKNOWN_LABEL = "unknown"


class Embedding:
    """Immutable fixed-length face embedding."""

    __slots__ = ("_values",)

    def __init__(self, values: Union["Embedding", Sequence[float], np.ndarray]) -> None:
        if isinstance(values, Embedding):
            arr = values._values
        else:
            arr = np.array(values, dtype=np.float64)
            if arr.ndim != 1 or arr.size == 0:
                raise ValueError("Embedding must be a non-empty 1D sequence of numbers")
            if not np.all(np.isfinite(arr)):
                raise ValueError("Embedding contains non-finite values")
            arr.setflags(write=False)
        self._values = arr

    @property
    def values(self) -> np.ndarray:
        """Read-only float64 view of the vector."""
        return self._values

    def __len__(self) -> int:
        return int(self._values.shape[0])

    def __iter__(self) -> Iterator[float]:
        return (float(v) for v in self._values)

    def __getitem__(self, idx: int) -> float:
        return float(self._values[idx])

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Embedding):
            return NotImplemented
        return self._values.shape == other._values.shape and bool(np.array_equal(self._values, other._values))

    def __hash__(self) -> int:
        return hash(self._values.tobytes())

    def __repr__(self) -> str:
        head = ", ".join(f"{v:.4f}" for v in self._values[:3])
        suffix = ", ..." if len(self) > 3 else ""
        return f"Embedding(dim={len(self)}, [{head}{suffix}])"

    def tolist(self) -> List[float]:
        return [float(v) for v in self._values]

    def distance(self, other: "Embedding") -> float:
        return euclidean_distance(self, other)


def euclidean_distance(a: Union[Embedding, np.ndarray], b: Union[Embedding, np.ndarray]) -> float:
    """L2 distance between two embeddings of equal length."""
    va = a.values if isinstance(a, Embedding) else np.asarray(a, dtype=np.float64)
    vb = b.values if isinstance(b, Embedding) else np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape:
        raise DimensionMismatchError(int(va.size), int(vb.size))
    diff = va - vb
    return float(np.sqrt(np.sum(diff * diff)))


@dataclass(frozen=True)
class Identity:
    """An enrolled person: samples and the reference images that produced them."""

    name: str
    embeddings: Tuple[Embedding, ...]
    references: Tuple[Reference, ...]

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Identity name must be non-empty")
        if not self.embeddings:
            raise ValueError(f"Identity {self.name!r} has no embeddings")
        if len(self.embeddings) != len(self.references):
            raise ValueError(
                f"Identity {self.name!r} has {len(self.embeddings)} embeddings "
                f"but {len(self.references)} references"
            )

    @classmethod
    def single(cls, name: str, embedding: Embedding, reference: Reference) -> "Identity":
        return cls(name=name, embeddings=(embedding,), references=(reference,))

    def extended(self, embedding: Embedding, reference: Reference) -> "Identity":
        """Return a copy with one more sample appended."""
        return Identity(
            name=self.name,
            embeddings=self.embeddings + (embedding,),
            references=self.references + (reference,),
        )

    @property
    def sample_count(self) -> int:
        return len(self.embeddings)


@dataclass(frozen=True)
class FaceObservation:
    """One face returned by the embedding source for a frame."""

    bbox: BBox
    embedding: Embedding
    score: float = 1.0

    @property
    def area(self) -> float:
        return bbox_area(self.bbox)


def bbox_area(box: BBox) -> float:
    """Compute area of a bounding box."""
    x1, y1, x2, y2 = box
    return max(0.0, (x2 - x1)) * max(0.0, (y2 - y1))


def largest_first(observations: Iterable[FaceObservation]) -> List[FaceObservation]:
    """Order faces by bounding box area, largest first (stable on ties)."""
    return sorted(observations, key=lambda obs: obs.area, reverse=True)


class EmbeddingSource(Protocol):
    """Face detector + embedding model collaborator."""

    def extract(self, image: np.ndarray) -> List[FaceObservation]:
        ...


class FrameSource(Protocol):
    """Capture collaborator supplying the current frame."""

    def is_active(self) -> bool:
        ...

    def read(self) -> Optional[np.ndarray]:
        ...
