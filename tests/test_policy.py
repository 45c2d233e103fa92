import math

import pytest

from facewatch.recognition.matcher import UNKNOWN_CANDIDATE, MatchCandidate, Matcher
from facewatch.recognition.policy import decide, validate_threshold
from facewatch.recognition.registry import IdentityRegistry
from helpers import zeros


def test_threshold_flips_verdict_for_same_observation():
    registry = IdentityRegistry()
    registry.enroll("Ann", zeros(), "ann.jpg")
    candidate = Matcher(registry).match(zeros(first=0.3))
    assert candidate.distance == pytest.approx(0.3)

    assert decide(candidate, 0.6).is_match
    assert not decide(candidate, 0.8).is_match


def test_empty_registry_is_never_a_match():
    result = decide(Matcher(IdentityRegistry()).match(zeros()), 0.6)
    assert result.identity_name == "unknown"
    assert not result.is_match


def test_unknown_is_unmatched_regardless_of_distance():
    assert not decide(MatchCandidate(name="unknown", distance=0.0), 0.5).is_match


def test_boundary_distance_is_not_a_match():
    assert not decide(MatchCandidate(name="Ann", distance=0.5), 0.5).is_match


def test_negative_confidence_is_tolerated():
    result = decide(MatchCandidate(name="Ann", distance=1.7), 0.6)
    assert not result.is_match
    assert result.confidence == pytest.approx(-0.7)
    assert result.confidence_pct == -70


def test_label_shows_confidence_percent():
    result = decide(MatchCandidate(name="Ann", distance=0.25), 0.6)
    assert result.label == "Ann (75%)"
    assert decide(UNKNOWN_CANDIDATE, 0.6).label == "unknown (0%)"
    assert math.isinf(decide(UNKNOWN_CANDIDATE, 0.6).distance)


@pytest.mark.parametrize("value", [0.0, 1.0, -0.1, 1.5])
def test_threshold_must_be_open_unit_interval(value):
    with pytest.raises(ValueError):
        validate_threshold(value)
