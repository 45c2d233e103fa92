"""OpenCV capture device used as the frame source."""

from __future__ import annotations

import logging
import threading
from typing import Optional, Tuple, Union

import cv2
import numpy as np

LOGGER = logging.getLogger("facewatch.capture")


class OpenCVCamera:
    """Webcam (device index) or video file read through ``cv2.VideoCapture``."""

    def __init__(self, source: Union[int, str] = 0, frame_size: Tuple[int, int] = (640, 480)) -> None:
        self.source = int(source) if isinstance(source, str) and source.isdigit() else source
        self.frame_size = frame_size
        self._cap: Optional[cv2.VideoCapture] = None
        self._latest: Optional[np.ndarray] = None
        self._lock = threading.Lock()

    def open(self) -> "OpenCVCamera":
        with self._lock:
            if self._cap is not None:
                return self
            cap = cv2.VideoCapture(self.source)
            if not cap.isOpened():
                cap.release()
                raise RuntimeError(f"Unable to open capture source {self.source!r}")
            if isinstance(self.source, int):
                width, height = self.frame_size
                cap.set(cv2.CAP_PROP_FRAME_WIDTH, width)
                cap.set(cv2.CAP_PROP_FRAME_HEIGHT, height)
            self._cap = cap
        LOGGER.info("Capture started: %s", self.source)
        return self

    def is_active(self) -> bool:
        with self._lock:
            return self._cap is not None and self._cap.isOpened()

    def read(self) -> Optional[np.ndarray]:
        """Grab the current frame (BGR), or None when the device has nothing to give."""
        with self._lock:
            if self._cap is None:
                return None
            ok, frame = self._cap.read()
        if not ok:
            return None
        self._latest = frame
        return frame

    @property
    def latest_frame(self) -> Optional[np.ndarray]:
        """Most recent frame handed out by read(), for display."""
        return self._latest

    def release(self) -> None:
        with self._lock:
            cap, self._cap = self._cap, None
        if cap is not None:
            cap.release()
            LOGGER.info("Capture stopped: %s", self.source)

    def __enter__(self) -> "OpenCVCamera":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()
