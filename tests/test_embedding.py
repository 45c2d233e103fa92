import numpy as np
import pytest

from facewatch.errors import DimensionMismatchError
from facewatch.types import Embedding, Identity, euclidean_distance


def test_distance_properties_hold_for_random_vectors():
    rng = np.random.default_rng(7)
    for _ in range(20):
        a = Embedding(rng.normal(size=128))
        b = Embedding(rng.normal(size=128))
        assert euclidean_distance(a, a) == 0.0
        assert euclidean_distance(a, b) == euclidean_distance(b, a)
        assert euclidean_distance(a, b) > 0.0


def test_distance_is_euclidean():
    a = Embedding([0.0, 0.0, 0.0])
    b = Embedding([3.0, 4.0, 0.0])
    assert a.distance(b) == pytest.approx(5.0)


def test_distance_rejects_different_lengths():
    with pytest.raises(DimensionMismatchError):
        euclidean_distance(Embedding([1.0, 2.0]), Embedding([1.0, 2.0, 3.0]))


def test_embedding_is_immutable_copy():
    source = np.array([1.0, 2.0, 3.0])
    embedding = Embedding(source)
    source[0] = 99.0
    assert embedding[0] == 1.0
    with pytest.raises(ValueError):
        embedding.values[0] = 5.0


@pytest.mark.parametrize("bad", [[], [[1.0, 2.0]], [1.0, float("nan")]])
def test_embedding_rejects_invalid_values(bad):
    with pytest.raises(ValueError):
        Embedding(bad)


def test_embedding_equality_and_tolist():
    assert Embedding([0.5, 0.25]) == Embedding(np.array([0.5, 0.25], dtype=np.float32))
    assert Embedding([0.5, 0.25]).tolist() == [0.5, 0.25]


def test_identity_requires_aligned_references():
    with pytest.raises(ValueError):
        Identity(name="Ann", embeddings=(Embedding([1.0]),), references=())
    with pytest.raises(ValueError):
        Identity(name="", embeddings=(Embedding([1.0]),), references=("a",))
