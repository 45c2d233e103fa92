"""Periodic detection session: capture -> embeddings -> match -> debounce -> events."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence

from facewatch.config import WatchSettings
from facewatch.errors import DimensionMismatchError, ExtractionFailureError, PreconditionFailedError
from facewatch.notify import EventDispatcher, IdentityAppeared
from facewatch.recognition.matcher import UNKNOWN_CANDIDATE, Matcher
from facewatch.recognition.policy import MatchResult, decide
from facewatch.recognition.registry import IdentityRegistry
from facewatch.session.debounce import PresenceDebouncer
from facewatch.types import BBox, EmbeddingSource, FaceObservation, FrameSource, Identity

LOGGER = logging.getLogger("facewatch.session")

POLL_INTERVAL_S = 0.1


class SessionState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"


@dataclass(frozen=True)
class FaceVerdict:
    """Decision for one detected face, with the geometry needed to draw it."""

    bbox: BBox
    result: MatchResult

    @property
    def is_match(self) -> bool:
        return self.result.is_match

    @property
    def label(self) -> str:
        return self.result.label


@dataclass
class CycleReport:
    cycle_index: int
    verdicts: List[FaceVerdict] = field(default_factory=list)
    announced: List[str] = field(default_factory=list)
    duration_s: float = 0.0

    @property
    def face_count(self) -> int:
        return len(self.verdicts)


CycleListener = Callable[[CycleReport], None]


class DetectionSession:
    """Drives the detection cycle for one capture device.

    Cycles run one at a time on a single daemon thread. A generation counter,
    bumped by ``stop()`` under the state lock, discards the results of any cycle
    still in flight, so nothing is emitted once ``stop()`` has returned.
    """

    def __init__(
        self,
        registry: IdentityRegistry,
        capture: FrameSource,
        source: EmbeddingSource,
        settings: Optional[WatchSettings] = None,
        dispatcher: Optional[EventDispatcher] = None,
    ) -> None:
        self.registry = registry
        self.matcher = Matcher(registry)
        self.capture = capture
        self.source = source
        self.settings = settings or WatchSettings()
        self.dispatcher = dispatcher or EventDispatcher(enabled=self.settings.notifications_enabled)

        self._state_lock = threading.RLock()
        self._cycle_lock = threading.Lock()
        self._state = SessionState.IDLE
        self._generation = 0
        self._cycle_index = 0
        self._debouncer = PresenceDebouncer()
        self._stop_event: Optional[threading.Event] = None
        self._thread: Optional[threading.Thread] = None
        self._cycle_listeners: List[CycleListener] = []

        self.completed_cycles = 0
        self.failed_cycles = 0
        self.skipped_cycles = 0

    # -- State ----------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is SessionState.RUNNING

    @property
    def last_announced(self) -> Optional[str]:
        return self._debouncer.last_announced

    @property
    def present(self) -> List[str]:
        with self._state_lock:
            return self._debouncer.present

    def add_cycle_listener(self, listener: CycleListener) -> None:
        with self._state_lock:
            self._cycle_listeners.append(listener)

    def set_threshold(self, value: float) -> None:
        self.settings.set_threshold(value)

    def set_cycle_period(self, seconds: float) -> None:
        self.settings.set_cycle_period(seconds)

    # -- Lifecycle ------------------------------------------------------------

    def start(self, background: bool = True) -> None:
        """Begin periodic detection.

        With ``background=False`` no thread is started and the caller drives the
        session through ``run_cycle()``.
        """
        with self._state_lock:
            if self._state is SessionState.RUNNING:
                raise PreconditionFailedError("Detection session is already running")
            if self.registry.is_empty():
                raise PreconditionFailedError("Enroll at least one person before starting detection")
            if not self.capture.is_active():
                raise PreconditionFailedError("Capture device is not active")
            self._generation += 1
            generation = self._generation
            self._state = SessionState.RUNNING
            self._cycle_index = 0
            self._debouncer.reset()
            stop_event = threading.Event()
            self._stop_event = stop_event
            if background:
                self._thread = threading.Thread(
                    target=self._loop,
                    args=(generation, stop_event),
                    name="facewatch-detection",
                    daemon=True,
                )
                self._thread.start()
        LOGGER.info(
            "Detection started: identities=%d threshold=%.2f period=%.2fs",
            len(self.registry),
            self.settings.threshold,
            self.settings.cycle_period_s,
        )

    def stop(self) -> None:
        """Cancel the cycle and forget who is in view; a no-op when idle."""
        with self._state_lock:
            if self._state is SessionState.IDLE:
                return
            self._generation += 1
            self._state = SessionState.IDLE
            self._debouncer.reset()
            stop_event, self._stop_event = self._stop_event, None
            self._thread = None
        if stop_event is not None:
            stop_event.set()
        LOGGER.info(
            "Detection stopped after %d cycles (%d failed, %d skipped)",
            self.completed_cycles,
            self.failed_cycles,
            self.skipped_cycles,
        )

    def __enter__(self) -> "DetectionSession":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    # -- Cycle ----------------------------------------------------------------

    def _loop(self, generation: int, stop_event: threading.Event) -> None:
        last_tick = time.monotonic()
        while True:
            remaining = last_tick + self.settings.cycle_period_s - time.monotonic()
            if remaining > 0:
                # short waits so a runtime period change applies before the old tick
                if stop_event.wait(min(remaining, POLL_INTERVAL_S)):
                    break
                continue
            if stop_event.is_set():
                break
            started = time.monotonic()
            self._run_cycle(generation)
            period = self.settings.cycle_period_s
            missed = int((time.monotonic() - started) // period)
            if missed:
                self.skipped_cycles += missed
                LOGGER.warning("Detection cycle overran its %.2fs period; skipping %d tick(s)", period, missed)
            last_tick = started + missed * period
        LOGGER.debug("Detection loop for generation %d exited", generation)

    def run_cycle(self) -> Optional[CycleReport]:
        """Run one cycle now; returns None when idle, skipped, or failed."""
        with self._state_lock:
            if self._state is not SessionState.RUNNING:
                return None
            generation = self._generation
        return self._run_cycle(generation)

    def _run_cycle(self, generation: int) -> Optional[CycleReport]:
        if not self._cycle_lock.acquire(blocking=False):
            self.skipped_cycles += 1
            LOGGER.debug("Previous cycle still in flight; skipping")
            return None
        try:
            with self._state_lock:
                if generation != self._generation:
                    return None
                self._cycle_index += 1
                cycle_index = self._cycle_index
            threshold = self.settings.threshold
            started = time.monotonic()

            try:
                faces = self._extract()
            except ExtractionFailureError as exc:
                self.failed_cycles += 1
                LOGGER.warning("Cycle %d skipped: %s", cycle_index, exc)
                return None

            identities = self.matcher.snapshot()
            verdicts = [self._judge(face, identities, threshold) for face in faces]
            return self._publish(generation, cycle_index, verdicts, time.monotonic() - started)
        finally:
            self._cycle_lock.release()

    def _extract(self) -> Sequence[FaceObservation]:
        try:
            frame = self.capture.read()
            if frame is None:
                raise ExtractionFailureError("Capture returned no frame")
            return list(self.source.extract(frame))
        except ExtractionFailureError:
            raise
        except Exception as exc:  # noqa: BLE001 - one bad frame must not end the session
            raise ExtractionFailureError(f"Embedding extraction failed: {exc}") from exc

    def _judge(self, face: FaceObservation, identities: Sequence[Identity], threshold: float) -> FaceVerdict:
        try:
            candidate = self.matcher.match(face.embedding, identities)
        except DimensionMismatchError as exc:
            LOGGER.warning("Ignoring face at %s: %s", face.bbox, exc)
            candidate = UNKNOWN_CANDIDATE
        return FaceVerdict(bbox=face.bbox, result=decide(candidate, threshold))

    def _publish(
        self,
        generation: int,
        cycle_index: int,
        verdicts: List[FaceVerdict],
        duration_s: float,
    ) -> Optional[CycleReport]:
        closest: Dict[str, float] = {}
        for verdict in verdicts:
            if verdict.is_match:
                name = verdict.result.identity_name
                closest[name] = min(closest.get(name, float("inf")), verdict.result.distance)

        with self._state_lock:
            if generation != self._generation:
                LOGGER.debug("Dropping results of cycle %d from a stopped session", cycle_index)
                return None
            appeared = self._debouncer.update(list(closest.keys()), cycle_index)
            for name in appeared:
                # a listener may have stopped the session from this thread
                if generation != self._generation:
                    return None
                event = IdentityAppeared(name=name, distance=closest[name], cycle_index=cycle_index)
                LOGGER.info("Cycle %d: %s appeared (distance=%.3f)", cycle_index, name, event.distance)
                self.dispatcher.dispatch(event)
            report = CycleReport(
                cycle_index=cycle_index,
                verdicts=verdicts,
                announced=appeared,
                duration_s=duration_s,
            )
            for listener in list(self._cycle_listeners):
                if generation != self._generation:
                    return None
                try:
                    listener(report)
                except Exception:  # noqa: BLE001 - display hooks must not stop detection
                    LOGGER.exception("Cycle listener %r failed", listener)
            self.completed_cycles += 1
        LOGGER.debug(
            "Cycle %d: faces=%d matched=%s duration=%.3fs",
            cycle_index,
            len(verdicts),
            sorted(closest),
            duration_s,
        )
        return report
