"""Exception types raised by the matching and enrollment engine."""

from __future__ import annotations


class FaceWatchError(Exception):
    """Base class for facewatch errors."""


class DimensionMismatchError(FaceWatchError, ValueError):
    """Two embeddings of different length were compared."""

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(f"Embedding length mismatch: expected {expected}, got {actual}")
        self.expected = expected
        self.actual = actual


class InvalidEmbeddingLengthError(FaceWatchError, ValueError):
    """Enrollment rejected because the embedding disagrees with the registry dimensionality."""

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(f"Registry holds {expected}-d embeddings; refusing {actual}-d embedding")
        self.expected = expected
        self.actual = actual


class NotFoundError(FaceWatchError, KeyError):
    """No identity is enrolled under the requested name."""

    def __init__(self, name: str) -> None:
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"No identity named {self.name!r}"


class PreconditionFailedError(FaceWatchError, RuntimeError):
    """A detection session cannot start in the current state."""


class CorruptStateError(FaceWatchError, RuntimeError):
    """Persisted registry state could not be decoded."""


class ExtractionFailureError(FaceWatchError, RuntimeError):
    """The capture or embedding collaborator failed during a cycle."""


class EnrollmentError(FaceWatchError, RuntimeError):
    """An image could not be turned into an enrollment sample."""
