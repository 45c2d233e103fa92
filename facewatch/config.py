"""Watch configuration: dataclass defaults, YAML overrides, CLI overrides."""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from facewatch.io_utils import load_yaml
from facewatch.recognition.policy import DEFAULT_THRESHOLD, validate_threshold

LOGGER = logging.getLogger("facewatch.config")

DEFAULT_CONFIG_PATH = Path("configs/watch.yaml")
DEFAULT_STATE_PATH = Path("data/known_persons.json")


@dataclass
class WatchSettings:
    """Operator-tunable settings.

    ``threshold`` and ``cycle_period_s`` are read by a running session on every
    cycle, so changing them through the setters takes effect without a restart.
    """

    threshold: float = DEFAULT_THRESHOLD
    cycle_period_s: float = 1.5
    min_face_confidence: float = 0.5
    embedding_dim: Optional[int] = None
    notifications_enabled: bool = True
    state_path: Path = DEFAULT_STATE_PATH
    camera: Union[int, str] = 0
    providers: Optional[Tuple[str, ...]] = None
    det_size: Tuple[int, int] = (640, 640)

    def __post_init__(self) -> None:
        self.threshold = validate_threshold(self.threshold)
        self.cycle_period_s = _validate_period(self.cycle_period_s)
        if not 0.0 <= float(self.min_face_confidence) <= 1.0:
            raise ValueError(f"min_face_confidence must lie in [0, 1], got {self.min_face_confidence}")
        self.min_face_confidence = float(self.min_face_confidence)
        if self.embedding_dim is not None:
            self.embedding_dim = int(self.embedding_dim)
            if self.embedding_dim < 1:
                raise ValueError(f"embedding_dim must be positive, got {self.embedding_dim}")
        self.state_path = Path(self.state_path)
        if self.providers is not None:
            self.providers = tuple(self.providers)
        self.det_size = tuple(int(v) for v in self.det_size)  # type: ignore[assignment]
        if len(self.det_size) != 2:
            raise ValueError(f"det_size must have two values, got {self.det_size}")

    def set_threshold(self, value: float) -> None:
        self.threshold = validate_threshold(value)
        LOGGER.info("Confidence threshold set to %.2f", self.threshold)

    def set_cycle_period(self, seconds: float) -> None:
        self.cycle_period_s = _validate_period(seconds)
        LOGGER.info("Detection cycle period set to %.2fs", self.cycle_period_s)


def _validate_period(seconds: float) -> float:
    value = float(seconds)
    if value <= 0:
        raise ValueError(f"Cycle period must be positive, got {seconds}")
    return value


def settings_from_mapping(data: Mapping[str, Any]) -> WatchSettings:
    known = {f.name for f in fields(WatchSettings)}
    unknown = sorted(set(data) - known)
    if unknown:
        LOGGER.warning("Ignoring unknown config keys: %s", unknown)
    return WatchSettings(**{k: v for k, v in data.items() if k in known and v is not None})


def load_settings(
    config_path: Optional[Path] = None,
    overrides: Optional[Mapping[str, Any]] = None,
    defaults: Optional[Mapping[str, Any]] = None,
) -> WatchSettings:
    """Merge YAML config (if present) with CLI overrides; None overrides are ignored.

    ``defaults`` replace the dataclass defaults for keys neither the config nor
    the overrides set, e.g. a threshold calibrated for the embedding model.
    """
    data: Dict[str, Any] = dict(defaults or {})
    if config_path is not None:
        if config_path.exists():
            data.update(load_yaml(config_path))
        elif config_path != DEFAULT_CONFIG_PATH:
            raise FileNotFoundError(f"Config file not found: {config_path}")
    for key, value in (overrides or {}).items():
        if value is not None:
            data[key] = value
    settings = settings_from_mapping(data)
    LOGGER.debug("Resolved settings: %s", settings)
    return settings


def describe(settings: WatchSettings) -> List[str]:
    return [f"{f.name}={getattr(settings, f.name)}" for f in fields(settings)]
