"""Reference photo payloads stored beside each enrolled embedding."""

from __future__ import annotations

import base64
import io
from pathlib import Path
from typing import Tuple

import cv2
import numpy as np
from PIL import Image

JPEG_QUALITY = 80


def _data_url(jpeg_bytes: bytes) -> str:
    return "data:image/jpeg;base64," + base64.b64encode(jpeg_bytes).decode("ascii")


def encode_reference(image_path: Path, size: Tuple[int, int] = (320, 320)) -> str:
    """Thumbnail an image file into a JPEG data URL."""
    with Image.open(image_path) as image:
        image = image.convert("RGB")
        image.thumbnail(size, Image.LANCZOS)
        buffer = io.BytesIO()
        image.save(buffer, format="JPEG", optimize=True, quality=JPEG_QUALITY)
    return _data_url(buffer.getvalue())


def encode_frame_reference(frame: np.ndarray) -> str:
    """Encode a captured BGR frame into a JPEG data URL."""
    ok, encoded = cv2.imencode(".jpg", frame, [int(cv2.IMWRITE_JPEG_QUALITY), JPEG_QUALITY])
    if not ok:
        raise ValueError("Unable to JPEG-encode captured frame")
    return _data_url(encoded.tobytes())


def load_image_bgr(image_path: Path) -> np.ndarray:
    image = cv2.imread(str(image_path))
    if image is None:
        raise FileNotFoundError(f"Unable to read image: {image_path}")
    return image
