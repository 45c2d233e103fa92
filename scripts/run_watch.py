#!/usr/bin/env python3
"""CLI for running live detection against the enrolled identities."""

from __future__ import annotations

import argparse
import logging
import sys
import threading
import time
from pathlib import Path
from typing import Optional, Sequence

import cv2

from facewatch.capture.camera import OpenCVCamera
from facewatch.config import DEFAULT_CONFIG_PATH, WatchSettings, describe, load_settings
from facewatch.detectors.insightface_source import MODEL_DEFAULTS, InsightFaceEmbeddingSource
from facewatch.errors import FaceWatchError
from facewatch.io_utils import setup_logging
from facewatch.notify import EventDispatcher, LoggingNotifier
from facewatch.persistence import RegistryStore, RegistryWriter, restore_registry
from facewatch.session.controller import CycleReport, DetectionSession
from facewatch.viz.overlay import draw_verdicts

LOGGER = logging.getLogger("scripts.watch")

THRESHOLD_STEP = 0.05
WINDOW_NAME = "facewatch"


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Watch a camera and announce enrolled people as they appear")
    parser.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="Watch configuration YAML")
    parser.add_argument("--state-path", type=Path, default=None, help="Registry state file override")
    parser.add_argument("--camera", type=str, default=None, help="Device index or video path")
    parser.add_argument("--threshold", type=float, default=None, help="Override confidence threshold (0-1)")
    parser.add_argument("--cycle-period", type=float, default=None, help="Override seconds between cycles")
    notify_group = parser.add_mutually_exclusive_group()
    notify_group.add_argument("--notify", dest="notifications_enabled", action="store_true")
    notify_group.add_argument("--no-notify", dest="notifications_enabled", action="store_false")
    notify_group.set_defaults(notifications_enabled=None)
    parser.add_argument("--display", action="store_true", help="Show an annotated preview window")
    parser.add_argument("--duration", type=float, default=None, help="Stop after this many seconds")
    return parser.parse_args(argv)


def resolve_settings(args: argparse.Namespace) -> WatchSettings:
    return load_settings(
        args.config,
        {
            "state_path": args.state_path,
            "camera": args.camera,
            "threshold": args.threshold,
            "cycle_period_s": args.cycle_period,
            "notifications_enabled": args.notifications_enabled,
        },
        defaults=MODEL_DEFAULTS,
    )


class LatestReport:
    """Keeps the newest cycle report for the preview window."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.report: Optional[CycleReport] = None

    def __call__(self, report: CycleReport) -> None:
        with self._lock:
            self.report = report

    def get(self) -> Optional[CycleReport]:
        with self._lock:
            return self.report


def _run_display(session: DetectionSession, camera: OpenCVCamera, latest: LatestReport, deadline: Optional[float]) -> None:
    LOGGER.info("Preview: q quits, +/- adjusts the threshold by %.2f", THRESHOLD_STEP)
    try:
        while deadline is None or time.monotonic() < deadline:
            frame = camera.latest_frame
            if frame is not None:
                frame = frame.copy()
                report = latest.get()
                if report is not None:
                    draw_verdicts(frame, report.verdicts)
                cv2.imshow(WINDOW_NAME, frame)
            key = cv2.waitKey(30) & 0xFF
            if key == ord("q"):
                break
            if key in (ord("+"), ord("=")):
                _nudge_threshold(session, THRESHOLD_STEP)
            elif key in (ord("-"), ord("_")):
                _nudge_threshold(session, -THRESHOLD_STEP)
    finally:
        cv2.destroyWindow(WINDOW_NAME)


def _nudge_threshold(session: DetectionSession, delta: float) -> None:
    value = round(session.settings.threshold + delta, 2)
    try:
        session.set_threshold(value)
    except ValueError as exc:
        LOGGER.warning("%s", exc)


def _wait(deadline: Optional[float]) -> None:
    while deadline is None or time.monotonic() < deadline:
        time.sleep(0.2)


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

    settings = resolve_settings(args)
    LOGGER.info("Watch config: %s", " ".join(describe(settings)))

    store = RegistryStore(settings.state_path)
    registry, error = restore_registry(store, dimension=settings.embedding_dim)
    if error is not None:
        LOGGER.error("Saved identities were unreadable; starting with none: %s", error)

    dispatcher = EventDispatcher(enabled=settings.notifications_enabled)
    dispatcher.subscribe(LoggingNotifier())
    source = build_source(settings)
    latest = LatestReport()
    deadline = time.monotonic() + args.duration if args.duration else None

    camera = build_camera(settings)
    try:
        camera.open()
    except RuntimeError as exc:
        LOGGER.error("Cannot open camera: %s", exc)
        return 1

    with RegistryWriter(registry, store), camera:
        session = DetectionSession(registry, camera, source, settings=settings, dispatcher=dispatcher)
        session.add_cycle_listener(latest)
        try:
            session.start()
        except FaceWatchError as exc:
            LOGGER.error("Cannot start detection: %s", exc)
            return 1
        try:
            if args.display:
                # prime the preview before the first cycle fires
                camera.read()
                _run_display(session, camera, latest, deadline)
            else:
                _wait(deadline)
        except KeyboardInterrupt:
            LOGGER.info("Interrupted")
        finally:
            session.stop()

    LOGGER.info(
        "Session finished: cycles=%d failed=%d skipped=%d notifications=%d",
        session.completed_cycles,
        session.failed_cycles,
        session.skipped_cycles,
        dispatcher.delivered,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
