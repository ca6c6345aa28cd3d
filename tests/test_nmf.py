import numpy as np
import pytest

from nichecooc.nmf import NMFResult, nmf, find_optimal_k


@pytest.fixture
def low_rank():
    gen = np.random.default_rng(5)
    return gen.random((12, 2)) @ gen.random((2, 20))


def test_shapes_and_non_negativity(low_rank, seeded_rng):
    res = nmf(low_rank, 3, rng=seeded_rng(1))
    assert res.W.shape == (12, 3)
    assert res.H.shape == (3, 20)
    assert res.k == 3
    assert np.all(res.W >= 0) and np.all(res.H >= 0)
    assert np.isfinite(res.error)
    assert 1 <= res.n_iter <= 200


def test_recovers_low_rank_matrix(low_rank, seeded_rng):
    res = nmf(low_rank, 2, max_iter=2000, tol=1e-9, rng=seeded_rng(2))
    assert res.error / np.linalg.norm(low_rank) < 0.05
    assert res.error == pytest.approx(np.linalg.norm(low_rank - res.W @ res.H))


def test_deterministic_for_same_rng(low_rank, seeded_rng):
    a = nmf(low_rank, 2, rng=seeded_rng(9))
    b = nmf(low_rank, 2, rng=seeded_rng(9))
    assert np.array_equal(a.W, b.W)
    assert np.array_equal(a.H, b.H)
    assert a.error == b.error


def test_iteration_cap_is_not_an_error(low_rank, seeded_rng):
    res = nmf(low_rank, 2, max_iter=1, tol=0.0, rng=seeded_rng(3))
    assert res.n_iter == 1
    assert not res.converged


@pytest.mark.parametrize("V,k", [([[1.0, 2.0]], 0), ([[1.0, 2.0]], -1), ([], 2)])
def test_empty_result(V, k):
    res = nmf(V, k)
    assert res.k == 0
    assert res.W.size == 0 and res.H.size == 0
    assert res.error == 0.0


def test_empty_classmethod():
    res = NMFResult.empty()
    assert (res.k, res.n_iter, res.converged) == (0, 0, False)


@pytest.mark.parametrize("V", [[[1.0, -1.0]], [[1.0, np.nan]], [[1.0, 2.0], [3.0]]])
def test_invalid_input(V):
    with pytest.raises(ValueError):
        nmf(V, 2)


def test_input_not_mutated(low_rank, seeded_rng):
    before = low_rank.copy()
    nmf(low_rank, 2, rng=seeded_rng(4))
    assert np.array_equal(before, low_rank)


def test_find_optimal_k_at_least_two(low_rank, seeded_rng):
    k = find_optimal_k(low_rank, max_k=6, rng=seeded_rng(11))
    assert 2 <= k <= 6


def test_find_optimal_k_small_sweep(low_rank, seeded_rng):
    assert find_optimal_k(low_rank, max_k=1, rng=seeded_rng(1)) == 2
    assert find_optimal_k(low_rank, max_k=2, rng=seeded_rng(1)) == 2
