#!/usr/bin/env python3
"""
correlation.py

SparCC-style basis correlations for compositional data (Friedman & Alm 2012).

Naive Pearson correlation on CLR profiles is biased by the sum-to-one
constraint. Instead, for taxa i and j the log-ratio variance

    T_ij = var(ln(x_i / x_j)) = var(clr_i - clr_j)

is modelled as  T_ij = w_i + w_j - 2 rho_ij sqrt(w_i w_j)  with w the
unobserved basis variances. Assuming most pairs are uncorrelated,
w is solved by least squares from  sum_j T_ij ~ (#partners) w_i + sum_j w_j
and correlations follow as

    rho_ij = (w_i + w_j - T_ij) / (2 sqrt(w_i w_j))

Strongly correlated pairs are iteratively excluded from the variance
system (SparCC's exclusion loop) to refine w.

Significance is a permutation null: each taxon's counts are shuffled
independently across samples and the pseudo p-value is the fraction of
shuffles reaching the observed |rho|. Benjamini-Hochberg q-values are
provided on top.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

import numpy as np
import pandas as pd
from tqdm import tqdm

from nichecooc._defaults import DEFAULTS
from nichecooc.compositional import normalize_abundance, clr_transform
from nichecooc.utils import RNG, _rng_from_state, as_matrix, permutation

_ZERO_VAR = 1e-12


@dataclass(frozen=True)
class CorrelationMatrix:
    """
    Labelled correlation matrix.

    correlations : symmetric, unit diagonal, entries in [-1, 1]
    pvalues      : optional permutation p-values (symmetric, zero diagonal)
    qvalues      : optional BH q-values over the upper triangle (same layout)
    """
    taxa: List[str]
    correlations: np.ndarray
    pvalues: Optional[np.ndarray] = None
    qvalues: Optional[np.ndarray] = None

    def to_frame(self) -> pd.DataFrame:
        if self.correlations.size == 0:
            return pd.DataFrame(index=pd.Index(self.taxa, name="taxon"))
        return pd.DataFrame(
            self.correlations,
            index=pd.Index(self.taxa, name="taxon"),
            columns=self.taxa,
        )


def log_ratio_variances(clr_data) -> np.ndarray:
    """
    Pairwise log-ratio variance matrix T_ij = var(clr_i - clr_j) across samples
    (population variance), with a zero diagonal.
    """
    X = as_matrix(clr_data, name="clr_data")
    n, m = X.shape
    if n == 0 or m == 0:
        return np.zeros((n, n))

    centred = X - X.mean(axis=1, keepdims=True)
    cov = centred @ centred.T / m
    var = np.diag(cov)
    T = var[:, None] + var[None, :] - 2.0 * cov
    T = np.maximum(T, 0.0)
    np.fill_diagonal(T, 0.0)
    return T


def basis_variances(log_ratio_vars, included: Optional[np.ndarray] = None) -> np.ndarray:
    """
    Least-squares basis variances from pairwise log-ratio variances.

    With t_i the sum of T_ij over the pairs still included for taxon i,
    solves  M w = t  where M_ii is the number of included partners of i and
    M_ij = 1 for included pairs. ``included`` is a boolean matrix (default:
    every off-diagonal pair). The system is solved with lstsq, so the
    rank-deficient two-taxon case resolves to the minimum-norm solution.
    Negative solutions are clipped to 0.
    """
    T = as_matrix(log_ratio_vars, name="log_ratio_vars")
    n = T.shape[0]
    if T.shape != (n, n):
        raise ValueError(f"log_ratio_vars must be square, got shape {T.shape}")
    if n == 0:
        return np.zeros(0)

    if included is None:
        included = ~np.eye(n, dtype=bool)
    else:
        included = np.asarray(included, dtype=bool).copy()
        if included.shape != (n, n):
            raise ValueError("included must have the same shape as log_ratio_vars")
        np.fill_diagonal(included, False)

    t = np.where(included, T, 0.0).sum(axis=1)
    M = included.astype(float) + np.diag(included.sum(axis=1).astype(float))
    w, *_ = np.linalg.lstsq(M, t, rcond=None)
    return np.maximum(w, 0.0)


def _basis_to_correlation(T: np.ndarray, w: np.ndarray) -> np.ndarray:
    denom = 2.0 * np.sqrt(np.outer(w, w))
    num = w[:, None] + w[None, :] - T
    corr = np.divide(num, denom, out=np.zeros_like(T), where=denom > _ZERO_VAR)
    corr = np.clip((corr + corr.T) / 2.0, -1.0, 1.0)
    np.fill_diagonal(corr, 1.0)
    return corr


def estimate_basis_correlations(
    clr_data,
    iterations: int = DEFAULTS["correlation_iterations"],
    exclusion_threshold: float = DEFAULTS["exclusion_threshold"],
) -> np.ndarray:
    """
    Estimate basis correlations from CLR profiles (rows = taxa).

    Parameters
    ----------
    clr_data : array-like
        CLR-transformed abundances, taxa × samples.
    iterations : int
        Maximum number of exclusion passes. Each pass removes the strongest
        remaining pair with |rho| > exclusion_threshold from the variance
        system and re-solves the basis variances.
    exclusion_threshold : float
        Minimum |rho| for a pair to be excluded.

    Returns
    -------
    np.ndarray
        Symmetric correlation matrix with unit diagonal, entries in [-1, 1].
        Empty (0, 0) for fewer than two taxa or no samples. Taxa with zero
        CLR variance correlate 0 with every other taxon.
    """
    X = as_matrix(clr_data, name="clr_data")
    n, m = X.shape
    if n < 2 or m == 0:
        return np.empty((0, 0))

    T = log_ratio_variances(X)
    included = ~np.eye(n, dtype=bool)
    w = basis_variances(T, included)
    corr = _basis_to_correlation(T, w)

    for _ in range(max(int(iterations), 0)):
        partners = included.sum(axis=1)
        candidates = np.triu(included, k=1) & (partners[:, None] > 1) & (partners[None, :] > 1)
        if not candidates.any():
            break
        strength = np.where(candidates, np.abs(corr), -np.inf)
        i, j = np.unravel_index(np.argmax(strength), strength.shape)
        if strength[i, j] <= exclusion_threshold:
            break
        included[i, j] = included[j, i] = False
        w = basis_variances(T, included)
        corr = _basis_to_correlation(T, w)

    zero_var = X.var(axis=1) <= _ZERO_VAR
    if zero_var.any():
        corr[zero_var, :] = 0.0
        corr[:, zero_var] = 0.0
        np.fill_diagonal(corr, 1.0)

    return corr


def bootstrap_pvalues(
    counts,
    correlations,
    n_bootstrap: int = DEFAULTS["bootstrap_iterations"],
    rng: Optional[RNG] = None,
    pseudocount: float = DEFAULTS["pseudocount"],
    iterations: int = DEFAULTS["correlation_iterations"],
    progress: bool = False,
) -> np.ndarray:
    """
    Permutation pseudo p-values for basis correlations.

    Each replicate shuffles every taxon's counts independently across
    samples (one permutation per taxon, drawn from ``rng`` in row order),
    re-estimates correlations and counts how often |null| >= |observed|.

    Returns a symmetric matrix with zero diagonal. With fewer than two taxa,
    fewer than three samples or no replicates every off-diagonal p is 1.
    """
    X = as_matrix(counts, name="counts")
    n, m = X.shape
    pvalues = np.ones((n, n))
    np.fill_diagonal(pvalues, 0.0)

    if n < 2 or m < 3 or n_bootstrap <= 0:
        return pvalues

    obs = np.abs(as_matrix(correlations, name="correlations"))
    if obs.shape != (n, n):
        raise ValueError(
            f"correlations shape {obs.shape} does not match {n} taxa"
        )

    rng = _rng_from_state(rng)
    exceed = np.zeros((n, n))
    shuffled = np.empty_like(X)

    for _ in tqdm(range(int(n_bootstrap)), desc="Permutation null", disable=not progress):
        for i in range(n):
            shuffled[i] = X[i, permutation(m, rng)]
        null = estimate_basis_correlations(
            clr_transform(normalize_abundance(shuffled, pseudocount)),
            iterations=iterations,
        )
        exceed += np.abs(null) >= obs

    pvalues = exceed / float(n_bootstrap)
    np.fill_diagonal(pvalues, 0.0)
    return pvalues


def bh_qvalues(pvalues, m_total: Optional[int] = None) -> np.ndarray:
    """
    Benjamini-Hochberg FDR q-values (monotone, capped at 1).

    Parameters
    ----------
    pvalues : array-like
        p-values of the tested hypotheses.
    m_total : int, optional
        Total number of hypotheses corrected for. If larger than
        len(pvalues), the unseen hypotheses behave as if they had p = 1.

    Returns
    -------
    np.ndarray
        q-values in input order; NaN where the p-value was not finite.
    """
    p = np.asarray(pvalues, dtype=float).ravel()
    m = p.size
    if m == 0:
        return np.array([], float)

    n = int(m_total) if m_total is not None else m

    finite_mask = np.isfinite(p)
    q_final = np.full(m, np.nan, dtype=float)
    if not finite_mask.any():
        return q_final

    order = np.argsort(p[finite_mask], kind="stable")
    ranks = np.arange(1, finite_mask.sum() + 1, dtype=float)
    q_sorted = p[finite_mask][order] * n / ranks
    q_sorted = np.minimum.accumulate(q_sorted[::-1])[::-1]

    idx = np.where(finite_mask)[0]
    q_final[idx[order]] = np.minimum(q_sorted, 1.0)
    return q_final


def pairwise_qvalues(pvalues: np.ndarray) -> np.ndarray:
    """BH q-values over the upper triangle of a symmetric p-value matrix."""
    P = np.asarray(pvalues, dtype=float)
    n = P.shape[0]
    Q = np.zeros((n, n))
    if n < 2:
        return Q
    iu, ju = np.triu_indices(n, k=1)
    Q[iu, ju] = bh_qvalues(P[iu, ju])
    Q[ju, iu] = Q[iu, ju]
    return Q
