import pytest

from facewatch.recognition.registry import IdentityRegistry
from helpers import unit


@pytest.fixture
def registry() -> IdentityRegistry:
    reg = IdentityRegistry()
    reg.enroll("Ann", unit(0), "ann.jpg")
    reg.enroll("Bob", unit(1), "bob.jpg")
    return reg
