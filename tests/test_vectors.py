"""Tests for cosine scoring, CLS pooling and the vector byte format."""

import numpy as np
import pytest

from archivist.exceptions import VectorFormatError
from archivist.vectors import cls_pool, cosine_similarity, vector_from_bytes, vector_to_bytes


def test_cosine_of_identical_vectors_is_one():
    assert cosine_similarity([1.0, 2.0, 3.0], [1.0, 2.0, 3.0]) == pytest.approx(1.0)


def test_cosine_is_symmetric_and_bounded():
    rng = np.random.default_rng(7)
    a, b = rng.normal(size=32), rng.normal(size=32)
    score = cosine_similarity(a, b)
    assert score == pytest.approx(cosine_similarity(b, a))
    assert -1.0 <= score <= 1.0


def test_cosine_of_opposite_vectors():
    assert cosine_similarity([1.0, 0.0], [-1.0, 0.0]) == pytest.approx(-1.0)


def test_cosine_degenerate_inputs_score_zero():
    assert cosine_similarity([1.0, 2.0], [1.0, 2.0, 3.0]) == 0.0
    assert cosine_similarity([0.0, 0.0], [1.0, 2.0]) == 0.0


def test_cls_pool_reads_first_position_only():
    hidden = np.zeros((1, 4, 6), dtype=np.float32)
    hidden[0, 0] = np.arange(6)
    hidden[0, 1:] = 100.0
    pooled = cls_pool(hidden, 4)
    assert pooled.dtype == np.float32
    assert pooled.tolist() == [0.0, 1.0, 2.0, 3.0]


def test_cls_pool_accepts_unbatched_state():
    hidden = np.ones((3, 5))
    assert cls_pool(hidden, 5).shape == (5,)


def test_cls_pool_rejects_narrow_state():
    with pytest.raises(ValueError):
        cls_pool(np.ones((1, 3, 4)), 8)


def test_vector_bytes_are_little_endian_float32():
    blob = vector_to_bytes([1.0, -2.5])
    assert blob == np.array([1.0, -2.5], dtype="<f4").tobytes()
    assert len(blob) == 8
    assert vector_from_bytes(blob).tolist() == [1.0, -2.5]


def test_vector_from_bytes_rejects_partial_floats():
    with pytest.raises(VectorFormatError):
        vector_from_bytes(b"\x00" * 7)
