"""Turn an image into an enrollment sample."""

from __future__ import annotations

import logging
from typing import List, Literal, Optional

import numpy as np

from facewatch.errors import EnrollmentError
from facewatch.recognition.matcher import Matcher
from facewatch.recognition.registry import IdentityRegistry
from facewatch.types import EmbeddingSource, FaceObservation, Identity, Reference, largest_first

LOGGER = logging.getLogger("facewatch.recognition.enrollment")

EnrollMode = Literal["upload", "capture"]


def select_enrollment_face(faces: List[FaceObservation], mode: EnrollMode = "upload") -> FaceObservation:
    """Pick the face to enroll.

    Uploaded photos fall back to the largest face when several are present; live
    captures must show exactly one face.
    """
    if not faces:
        raise EnrollmentError("No face detected")
    if len(faces) > 1:
        if mode == "capture":
            raise EnrollmentError(f"Multiple faces detected ({len(faces)}); only one face may be visible")
        LOGGER.warning("Multiple faces detected (%d); using the largest face", len(faces))
        return largest_first(faces)[0]
    return faces[0]


def enroll_from_image(
    registry: IdentityRegistry,
    source: EmbeddingSource,
    name: str,
    image: np.ndarray,
    reference: Reference,
    mode: EnrollMode = "upload",
    conflict_distance: Optional[float] = None,
) -> Identity:
    """Extract a face from ``image`` and enroll it under ``name``.

    When ``conflict_distance`` is given, a warning is logged if the new sample
    lies closer than that to a *different* enrolled identity.
    """
    if not name or not name.strip():
        raise EnrollmentError("A name is required to enroll a face")
    faces = source.extract(image)
    face = select_enrollment_face(list(faces), mode=mode)

    if conflict_distance is not None and registry.dimension == len(face.embedding):
        for other, distance in Matcher(registry).topk(face.embedding, k=1):
            if other != name.strip() and distance < conflict_distance:
                LOGGER.warning(
                    "New sample for %s is %.3f from existing identity %s", name.strip(), distance, other
                )
    return registry.enroll(name, face.embedding, reference)
