import base64
import io

import numpy as np
import pytest

cv2 = pytest.importorskip("cv2")

from PIL import Image

from facewatch.references import encode_frame_reference, encode_reference, load_image_bgr


def test_encode_reference_thumbnails_to_jpeg_data_url(tmp_path):
    path = tmp_path / "ann.png"
    Image.new("RGB", (800, 400), color=(10, 200, 30)).save(path)

    payload = encode_reference(path)

    assert payload.startswith("data:image/jpeg;base64,")
    raw = base64.b64decode(payload.split(",", 1)[1])
    with Image.open(io.BytesIO(raw)) as thumb:
        assert thumb.format == "JPEG"
        assert max(thumb.size) == 320


def test_encode_frame_reference_round_trips_through_opencv():
    frame = np.full((48, 64, 3), 127, dtype=np.uint8)
    payload = encode_frame_reference(frame)
    raw = base64.b64decode(payload.split(",", 1)[1])
    decoded = cv2.imdecode(np.frombuffer(raw, dtype=np.uint8), cv2.IMREAD_COLOR)
    assert decoded.shape == (48, 64, 3)


def test_load_image_bgr_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_image_bgr(tmp_path / "missing.jpg")
