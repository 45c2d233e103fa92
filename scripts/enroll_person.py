#!/usr/bin/env python3
"""CLI for enrolling a person from photos or a live camera capture."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from facewatch.capture.camera import OpenCVCamera
from facewatch.config import DEFAULT_CONFIG_PATH, WatchSettings, load_settings
from facewatch.detectors.insightface_source import MODEL_DEFAULTS, InsightFaceEmbeddingSource
from facewatch.errors import ExtractionFailureError, FaceWatchError
from facewatch.io_utils import IMAGE_SUFFIXES, list_images, setup_logging
from facewatch.persistence import RegistryStore, RegistryWriter, restore_registry
from facewatch.recognition.enrollment import enroll_from_image
from facewatch.recognition.registry import IdentityRegistry
from facewatch.references import encode_frame_reference, encode_reference, load_image_bgr
from facewatch.types import EmbeddingSource, FrameSource, Identity

LOGGER = logging.getLogger("scripts.enroll")

# webcams often hand out dark frames while exposure settles
WARMUP_FRAMES = 5


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Enroll a person from reference photos or a camera capture")
    parser.add_argument("--name", required=True, help="Person name (case-sensitive, merged with an existing entry)")
    parser.add_argument(
        "images",
        type=Path,
        nargs="*",
        help="Photos or directories of photos showing the person",
    )
    parser.add_argument(
        "--capture",
        action="store_true",
        help="Take the sample from one camera frame instead of image files (exactly one face must be visible)",
    )
    parser.add_argument("--camera", type=str, default=None, help="Device index or video path for --capture")
    parser.add_argument(
        "--mode",
        choices=("upload", "capture"),
        default="upload",
        help="upload: use the largest face when several are found; capture: reject multi-face photos",
    )
    parser.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="Watch configuration YAML")
    parser.add_argument("--state-path", type=Path, default=None, help="Registry state file override")
    parser.add_argument(
        "--conflict-distance",
        type=float,
        default=None,
        help="Warn when a new sample lies closer than this to another identity "
        "(default: the match distance implied by the threshold)",
    )
    args = parser.parse_args(argv)
    if args.capture and args.images:
        parser.error("pass image paths or --capture, not both")
    if not args.capture and not args.images:
        parser.error("pass at least one image path, or --capture")
    return args


def expand_images(paths: Sequence[Path]) -> List[Path]:
    images: List[Path] = []
    for path in paths:
        if path.is_dir():
            images.extend(list_images(path))
        elif path.suffix.lower() in IMAGE_SUFFIXES:
            images.append(path)
        else:
            LOGGER.warning("Skipping %s: not an image", path)
    return images


def enroll_images(
    registry: IdentityRegistry,
    source: EmbeddingSource,
    name: str,
    images: Sequence[Path],
    mode: str = "upload",
    conflict_distance: Optional[float] = None,
) -> int:
    """Enroll each image; returns how many were accepted."""
    accepted = 0
    for image_path in images:
        try:
            image = load_image_bgr(image_path)
            identity = enroll_from_image(
                registry,
                source,
                name,
                image,
                encode_reference(image_path),
                mode=mode,  # type: ignore[arg-type]
                conflict_distance=conflict_distance,
            )
        except (FaceWatchError, FileNotFoundError) as exc:
            LOGGER.error("%s: %s", image_path, exc)
            continue
        accepted += 1
        LOGGER.info("%s: added reference photo %d for %s", image_path, identity.sample_count, identity.name)
    return accepted


def enroll_capture(
    registry: IdentityRegistry,
    source: EmbeddingSource,
    camera: FrameSource,
    name: str,
    conflict_distance: Optional[float] = None,
    warmup_frames: int = WARMUP_FRAMES,
) -> Identity:
    """Enroll the single face visible in the camera's current frame."""
    frame = None
    for _ in range(max(1, warmup_frames + 1)):
        frame = camera.read()
    if frame is None:
        raise ExtractionFailureError("Capture returned no frame")
    return enroll_from_image(
        registry,
        source,
        name,
        frame,
        encode_frame_reference(frame),
        mode="capture",
        conflict_distance=conflict_distance,
    )


def build_source(settings: WatchSettings) -> InsightFaceEmbeddingSource:
    return InsightFaceEmbeddingSource(
        providers=settings.providers,
        det_size=settings.det_size,
        min_confidence=settings.min_face_confidence,
    )


def build_camera(settings: WatchSettings) -> OpenCVCamera:
    return OpenCVCamera(settings.camera)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging()

    settings = load_settings(
        args.config,
        {"state_path": args.state_path, "camera": args.camera},
        defaults=MODEL_DEFAULTS,
    )
    conflict_distance = args.conflict_distance
    if conflict_distance is None:
        # a sample this close to someone else would be accepted as them
        conflict_distance = 1.0 - settings.threshold

    images: List[Path] = []
    if not args.capture:
        images = expand_images(args.images)
        if not images:
            LOGGER.error("No images to enroll")
            return 2

    store = RegistryStore(settings.state_path)
    registry, error = restore_registry(store, dimension=settings.embedding_dim)
    if error is not None:
        LOGGER.error("Saved identities were unreadable and will be replaced: %s", error)

    source = build_source(settings)
    with RegistryWriter(registry, store):
        if args.capture:
            try:
                with build_camera(settings) as camera:
                    identity = enroll_capture(registry, source, camera, args.name, conflict_distance)
            except (FaceWatchError, RuntimeError) as exc:
                LOGGER.error("Capture failed: %s", exc)
                return 1
            LOGGER.info("Added captured reference %d for %s (state=%s)", identity.sample_count, identity.name, store.path)
            return 0

        accepted = enroll_images(
            registry,
            source,
            args.name,
            images,
            mode=args.mode,
            conflict_distance=conflict_distance,
        )

    LOGGER.info("Enrolled %d/%d photos for %s (state=%s)", accepted, len(images), args.name, store.path)
    return 0 if accepted else 1


if __name__ == "__main__":
    sys.exit(main())
