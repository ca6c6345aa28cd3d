import numpy as np
import pytest

from nichecooc.correlation import (
    CorrelationMatrix,
    log_ratio_variances,
    basis_variances,
    estimate_basis_correlations,
    bootstrap_pvalues,
    bh_qvalues,
    pairwise_qvalues,
)


@pytest.fixture
def log_profiles():
    """Five independent log-abundance profiles; taxon 1 is taxon 0 shifted."""
    L = np.random.default_rng(0).normal(size=(5, 200))
    L[1] = L[0] + 0.7
    return L


def test_log_ratio_variances(log_profiles):
    T = log_ratio_variances(log_profiles)
    assert T.shape == (5, 5)
    assert np.allclose(T, T.T)
    assert np.all(np.diag(T) == 0.0)
    assert T[0, 1] == pytest.approx(0.0, abs=1e-12)
    assert T[0, 2] == pytest.approx(np.var(log_profiles[0] - log_profiles[2]))


def test_basis_variances_exact_for_uncorrelated_basis():
    w = np.array([1.0, 2.0, 3.0, 4.0])
    T = w[:, None] + w[None, :]
    np.fill_diagonal(T, 0.0)
    assert basis_variances(T) == pytest.approx(w)


def test_basis_variances_clipped_at_zero():
    T = np.array([[0.0, 0.1, 5.0], [0.1, 0.0, 5.0], [5.0, 5.0, 0.0]])
    w = basis_variances(T)
    assert np.all(w >= 0.0)


def test_basis_variances_rejects_non_square():
    with pytest.raises(ValueError):
        basis_variances([[0.0, 1.0, 2.0], [1.0, 0.0, 1.0]])


def test_correlations_well_formed(log_profiles):
    corr = estimate_basis_correlations(log_profiles)
    assert corr.shape == (5, 5)
    assert np.allclose(corr, corr.T)
    assert np.all(np.diag(corr) == 1.0)
    assert np.all(corr >= -1.0) and np.all(corr <= 1.0)


def test_proportional_taxa_fully_correlated(log_profiles):
    corr = estimate_basis_correlations(log_profiles)
    assert corr[0, 1] == pytest.approx(1.0)
    assert abs(corr[0, 2]) < 0.4
    assert abs(corr[2, 3]) < 0.4


def test_more_exclusion_passes_keep_output_valid(log_profiles):
    for iterations in (0, 1, 10, 50):
        corr = estimate_basis_correlations(log_profiles, iterations=iterations)
        assert np.all(np.isfinite(corr))
        assert np.all(np.abs(corr) <= 1.0)


def test_constant_taxon_has_zero_correlation(log_profiles):
    log_profiles[4] = 0.0
    corr = estimate_basis_correlations(log_profiles)
    assert np.all(corr[4, :4] == 0.0)
    assert np.all(corr[:4, 4] == 0.0)
    assert corr[4, 4] == 1.0


@pytest.mark.parametrize("clr", [[], [[0.1, -0.1]], np.zeros((3, 0))])
def test_degenerate_inputs_give_empty_matrix(clr):
    assert estimate_basis_correlations(clr).shape == (0, 0)


@pytest.fixture
def correlated_counts():
    L = np.random.default_rng(1).normal(size=(6, 30))
    counts = np.round(np.exp(L) * 50)
    counts[1] = counts[0] * 2
    return counts


def test_permutation_pvalues(correlated_counts, seeded_rng):
    from nichecooc.compositional import normalize_abundance, clr_transform

    corr = estimate_basis_correlations(clr_transform(normalize_abundance(correlated_counts)))
    p = bootstrap_pvalues(correlated_counts, corr, n_bootstrap=20, rng=seeded_rng(7))
    assert p.shape == (6, 6)
    assert np.allclose(p, p.T)
    assert np.all(np.diag(p) == 0.0)
    assert np.all((p >= 0.0) & (p <= 1.0))
    assert p[0, 1] <= 0.05

    again = bootstrap_pvalues(correlated_counts, corr, n_bootstrap=20, rng=seeded_rng(7))
    assert np.array_equal(p, again)


def test_pvalues_without_replicates_or_samples(correlated_counts):
    corr = np.eye(6)
    p = bootstrap_pvalues(correlated_counts, corr, n_bootstrap=0)
    assert np.all(p[~np.eye(6, dtype=bool)] == 1.0)

    p = bootstrap_pvalues(correlated_counts[:, :2], corr, n_bootstrap=10)
    assert np.all(p[~np.eye(6, dtype=bool)] == 1.0)


def test_pvalues_shape_mismatch(correlated_counts):
    with pytest.raises(ValueError):
        bootstrap_pvalues(correlated_counts, np.eye(4), n_bootstrap=5)


def test_bh_qvalues():
    p = [0.01, 0.04, 0.03, 0.5]
    q = bh_qvalues(p)
    assert q == pytest.approx([0.04, 0.04 * 4 / 3, 0.04 * 4 / 3, 0.5])
    assert np.all(q >= np.asarray(p))
    assert np.all(q <= 1.0)


def test_bh_qvalues_monotone_in_p():
    p = np.random.default_rng(3).random(50)
    q = bh_qvalues(p)
    order = np.argsort(p)
    assert np.all(np.diff(q[order]) >= -1e-12)


def test_bh_qvalues_nan_and_empty():
    q = bh_qvalues([0.01, np.nan])
    assert np.isnan(q[1])
    assert q[0] == pytest.approx(0.02)
    assert bh_qvalues([]).size == 0


def test_pairwise_qvalues_symmetric():
    P = np.array([[0.0, 0.01, 0.2], [0.01, 0.0, 0.04], [0.2, 0.04, 0.0]])
    Q = pairwise_qvalues(P)
    assert np.allclose(Q, Q.T)
    assert np.all(np.diag(Q) == 0.0)
    assert Q[0, 1] == pytest.approx(0.03)


def test_correlation_matrix_frame():
    cm = CorrelationMatrix(taxa=["a", "b"], correlations=np.array([[1.0, 0.5], [0.5, 1.0]]))
    df = cm.to_frame()
    assert list(df.index) == ["a", "b"]
    assert df.loc["a", "b"] == 0.5
