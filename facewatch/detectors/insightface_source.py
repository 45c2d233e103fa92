"""InsightFace detection + recognition as the embedding source."""

from __future__ import annotations

import logging
import os
import platform
from typing import List, Optional, Sequence, Tuple

import numpy as np

from facewatch.types import Embedding, FaceObservation, largest_first

LOGGER = logging.getLogger("facewatch.detectors.insightface")

# ArcFace embeddings from the buffalo packs are unit length, so L2 distance is
# sqrt(2 - 2 * cosine). Same-person pairs typically sit at cosine 0.6-0.85
# (distance 0.55-0.9) and different people near cosine 0.1 (distance ~1.3).
# 0.1 accepts distances below 0.9, i.e. cosine above ~0.6.
CALIBRATED_THRESHOLD = 0.1

# Settings the shipped CLIs fall back to when the config leaves them unset.
MODEL_DEFAULTS = {"threshold": CALIBRATED_THRESHOLD}


def _default_providers() -> Tuple[str, ...]:
    """Choose default ONNX providers based on platform."""
    system = platform.system()
    machine = platform.machine().lower()
    if system == "Darwin" and machine in {"arm64", "aarch64"}:
        return ("CoreMLExecutionProvider", "CPUExecutionProvider")
    return ("CPUExecutionProvider",)


class InsightFaceEmbeddingSource:
    """Detects faces and computes normalized embeddings with InsightFace ``FaceAnalysis``."""

    def __init__(
        self,
        providers: Optional[Sequence[str]] = None,
        det_size: Tuple[int, int] = (640, 640),
        min_confidence: float = 0.5,
        model_pack: str = "buffalo_l",
    ) -> None:
        os.environ.setdefault("OMP_NUM_THREADS", "2")
        os.environ.setdefault("MKL_NUM_THREADS", "2")
        try:
            from insightface.app import FaceAnalysis
        except ImportError as exc:  # pragma: no cover - import guard
            raise RuntimeError(
                "insightface is required for InsightFaceEmbeddingSource. "
                "Install it via `pip install insightface`."
            ) from exc

        provider_list = _default_providers() if providers is None else tuple(providers)
        self.providers = provider_list
        self.det_size = tuple(det_size)
        self.min_confidence = float(min_confidence)
        self.app = FaceAnalysis(
            name=model_pack,
            allowed_modules=["detection", "recognition"],
            providers=list(provider_list),
        )
        self.app.prepare(ctx_id=0, det_size=self.det_size)
        LOGGER.info(
            "Loaded InsightFace pack=%s det_size=%s min_confidence=%.2f providers=%s",
            model_pack,
            self.det_size,
            self.min_confidence,
            provider_list,
        )

    def extract(self, image: np.ndarray) -> List[FaceObservation]:
        """Return detected faces with embeddings, largest face first."""
        observations: List[FaceObservation] = []
        for face in self.app.get(image):
            score = float(face.det_score)
            if score < self.min_confidence:
                continue
            raw = getattr(face, "normed_embedding", None)
            if raw is None:
                LOGGER.debug("Face without embedding at %s; skipping", face.bbox)
                continue
            bbox = tuple(float(v) for v in face.bbox)
            observations.append(
                FaceObservation(
                    bbox=bbox,  # type: ignore[arg-type]
                    embedding=Embedding(np.asarray(raw, dtype=np.float64).reshape(-1)),
                    score=score,
                )
            )
        return largest_first(observations)
