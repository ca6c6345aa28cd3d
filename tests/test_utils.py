import numpy as np
import pytest

from nichecooc.utils import (
    _rng_from_state,
    as_matrix,
    permutation,
    resample_indices,
    upper_triangle_pairs,
)


def test_rng_from_state(seeded_rng):
    rng = seeded_rng(1)
    assert _rng_from_state(rng) is rng
    gen = np.random.default_rng(0)
    assert 0.0 <= _rng_from_state(gen)() < 1.0
    assert _rng_from_state(5)() == _rng_from_state(5)()


def test_resample_indices_bounds():
    idx = resample_indices(4, lambda: 0.999999999)
    assert idx.tolist() == [3, 3, 3, 3]
    assert resample_indices(3, lambda: 0.0).tolist() == [0, 0, 0]


def test_permutation(seeded_rng):
    perm = permutation(10, seeded_rng(3))
    assert sorted(perm.tolist()) == list(range(10))


def test_as_matrix():
    assert as_matrix([]).shape == (0, 0)
    assert as_matrix([[1, 2], [3, 4]]).dtype == float
    with pytest.raises(ValueError):
        as_matrix([[1, 2], [3]])
    with pytest.raises(ValueError):
        as_matrix(np.zeros(3))


def test_upper_triangle_pairs():
    M = np.array([[1.0, 0.5, -0.2], [0.5, 1.0, 0.9], [-0.2, 0.9, 1.0]])
    assert list(upper_triangle_pairs(M, 0.3)) == [(0, 1, 0.5), (1, 2, 0.9)]
    with pytest.raises(ValueError):
        list(upper_triangle_pairs(np.zeros((2, 3))))
