from pathlib import Path

import numpy as np
import pytest

from facewatch.config import DEFAULT_CONFIG_PATH, WatchSettings, load_settings
from facewatch.detectors.insightface_source import CALIBRATED_THRESHOLD, MODEL_DEFAULTS
from facewatch.io_utils import dump_yaml
from facewatch.recognition.matcher import best_match
from facewatch.recognition.policy import decide
from facewatch.recognition.registry import IdentityRegistry
from facewatch.types import Embedding


def test_defaults():
    settings = WatchSettings()
    assert settings.threshold == 0.6
    assert settings.cycle_period_s == 1.5
    assert settings.embedding_dim is None


def test_yaml_then_overrides(tmp_path: Path):
    config_path = tmp_path / "watch.yaml"
    dump_yaml(config_path, {"threshold": 0.7, "cycle_period_s": 2.0, "det_size": [320, 320], "bogus": 1})

    settings = load_settings(config_path, {"threshold": 0.8, "cycle_period_s": None})

    assert settings.threshold == 0.8
    assert settings.cycle_period_s == 2.0
    assert settings.det_size == (320, 320)


def test_missing_default_config_is_fine(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.chdir(tmp_path)
    assert load_settings(DEFAULT_CONFIG_PATH).threshold == 0.6


def test_missing_explicit_config_raises(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        load_settings(tmp_path / "nope.yaml")


@pytest.mark.parametrize("overrides", [{"threshold": 1.0}, {"cycle_period_s": 0}, {"min_face_confidence": 2}])
def test_invalid_values_rejected(overrides):
    with pytest.raises(ValueError):
        WatchSettings(**overrides)


def test_runtime_setters_validate():
    settings = WatchSettings()
    settings.set_threshold(0.75)
    settings.set_cycle_period(0.5)
    assert (settings.threshold, settings.cycle_period_s) == (0.75, 0.5)
    with pytest.raises(ValueError):
        settings.set_threshold(0)
    assert settings.threshold == 0.75


SHIPPED_CONFIG = Path(__file__).resolve().parents[1] / "configs" / "watch.yaml"


def test_shipped_config_loads():
    settings = load_settings(SHIPPED_CONFIG)
    assert settings.threshold == CALIBRATED_THRESHOLD
    assert settings.camera == 0


def test_model_defaults_fill_unset_keys(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.chdir(tmp_path)
    assert load_settings(DEFAULT_CONFIG_PATH, defaults=MODEL_DEFAULTS).threshold == CALIBRATED_THRESHOLD

    config_path = tmp_path / "watch.yaml"
    dump_yaml(config_path, {"threshold": 0.3})
    assert load_settings(config_path, defaults=MODEL_DEFAULTS).threshold == 0.3
    assert load_settings(config_path, {"threshold": 0.4}, defaults=MODEL_DEFAULTS).threshold == 0.4


def _unit_at_cosine(cosine: float, dim: int = 512) -> Embedding:
    values = np.zeros((dim,), dtype=np.float64)
    values[0] = cosine
    values[1] = np.sqrt(1.0 - cosine * cosine)
    return Embedding(values)


@pytest.mark.parametrize(
    "cosine, expected",
    [(0.85, True), (0.7, True), (0.62, True), (0.5, False), (0.2, False), (0.0, False)],
)
def test_shipped_threshold_fits_unit_length_arcface_embeddings(cosine, expected):
    registry = IdentityRegistry()
    registry.enroll("Ann", _unit_at_cosine(1.0), "ann.jpg")
    threshold = load_settings(SHIPPED_CONFIG).threshold

    result = decide(best_match(_unit_at_cosine(cosine), registry.list()), threshold)

    assert result.is_match is expected
