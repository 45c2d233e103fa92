"""Draw per-face verdicts on a frame."""

from __future__ import annotations

from typing import Iterable

import cv2
import numpy as np

from facewatch.session.controller import FaceVerdict

MATCH_COLOR = (0, 200, 0)
NO_MATCH_COLOR = (0, 0, 255)


def draw_verdicts(frame: np.ndarray, verdicts: Iterable[FaceVerdict]) -> np.ndarray:
    """Green box for accepted faces, red otherwise, labelled ``name (NN%)``."""
    for verdict in verdicts:
        x1, y1, x2, y2 = map(int, verdict.bbox)
        color = MATCH_COLOR if verdict.is_match else NO_MATCH_COLOR
        cv2.rectangle(frame, (x1, y1), (x2, y2), color, 2)
        text_y = max(15, y1 - 10)
        cv2.putText(frame, verdict.label, (x1, text_y), cv2.FONT_HERSHEY_SIMPLEX, 0.5, color, 2)
    return frame
