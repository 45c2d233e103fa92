from __future__ import annotations

from typing import List, Optional, Sequence

import numpy as np

from facewatch.types import Embedding, FaceObservation

DIM = 128


def unit(index: int, scale: float = 1.0, dim: int = DIM) -> Embedding:
    values = np.zeros((dim,), dtype=np.float64)
    values[index] = scale
    return Embedding(values)


def face(embedding: Embedding, bbox=(0.0, 0.0, 10.0, 10.0)) -> FaceObservation:
    return FaceObservation(bbox=bbox, embedding=embedding)


class StubCapture:
    def __init__(self, active: bool = True) -> None:
        self.active = active
        self.reads = 0

    def is_active(self) -> bool:
        return self.active

    def read(self):
        self.reads += 1
        return np.zeros((4, 4, 3), dtype=np.uint8)


class ScriptedSource:
    """Returns one scripted list of faces per call; Exception entries are raised."""

    def __init__(self, script: Sequence) -> None:
        self.script = list(script)
        self.calls = 0

    def extract(self, image) -> List[FaceObservation]:
        self.calls += 1
        if not self.script:
            return []
        item = self.script.pop(0)
        if isinstance(item, Exception):
            raise item
        return list(item)


def zeros(dim: int = DIM, first: Optional[float] = None) -> Embedding:
    values = np.zeros((dim,), dtype=np.float64)
    if first is not None:
        values[0] = first
    return Embedding(values)
