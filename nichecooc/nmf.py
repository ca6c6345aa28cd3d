#!/usr/bin/env python3
"""
nmf.py

Non-negative matrix factorisation V ~ W H by multiplicative updates
(Lee & Seung 2001), used to extract latent niches:

    W : taxa × k      niche membership of each taxon
    H : k × samples   niche activity in each sample

plus an elbow heuristic on reconstruction error to choose k.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np

from nichecooc._defaults import DEFAULTS
from nichecooc.utils import RNG, _rng_from_state, as_matrix, draw

_EPS = 1e-10


@dataclass(frozen=True)
class NMFResult:
    W: np.ndarray
    H: np.ndarray
    error: float
    k: int
    n_iter: int = 0
    converged: bool = False

    @classmethod
    def empty(cls) -> 'NMFResult':
        return cls(W=np.empty((0, 0)), H=np.empty((0, 0)), error=0.0, k=0)


def _reconstruction_error(V: np.ndarray, W: np.ndarray, H: np.ndarray) -> float:
    return float(np.linalg.norm(V - W @ H, ord="fro"))


def nmf(
    V,
    k: int,
    max_iter: int = DEFAULTS["nmf_max_iter"],
    tol: float = DEFAULTS["nmf_tol"],
    rng: Optional[RNG] = None,
) -> NMFResult:
    """
    Multiplicative-update NMF.

    W (taxa × k) and then H (k × samples) are filled row by row with
    ``rng() * 0.1 + 0.01``. Each iteration applies

        H <- H * (W^T V) / (W^T W H + eps)
        W <- W * (V H^T) / (W H H^T + eps)

    and stops once the relative change in ||V - WH||_F drops below ``tol``.
    Running out of iterations is not an error: the last factors are returned
    with ``converged=False``.

    Returns an empty result (k = 0) when k <= 0 or V is empty.
    """
    V = as_matrix(V, name="V")
    n, m = V.shape
    if n == 0 or m == 0 or k <= 0:
        return NMFResult.empty()
    if not np.all(np.isfinite(V)):
        raise ValueError("V must be finite")
    if np.any(V < 0):
        raise ValueError("V must be non-negative")

    k = int(k)
    rng = _rng_from_state(rng)
    W = draw(rng, n * k).reshape(n, k) * 0.1 + 0.01
    H = draw(rng, k * m).reshape(k, m) * 0.1 + 0.01

    prev_error = np.inf
    error = _reconstruction_error(V, W, H)
    converged = False
    n_iter = 0

    for n_iter in range(1, int(max_iter) + 1):
        H *= (W.T @ V) / (W.T @ W @ H + _EPS)
        W *= (V @ H.T) / (W @ (H @ H.T) + _EPS)

        error = _reconstruction_error(V, W, H)
        if np.isfinite(prev_error):
            change = abs(prev_error - error) / max(prev_error, _EPS)
            if change < tol:
                converged = True
                break
        prev_error = error

    return NMFResult(W=W, H=H, error=error, k=k, n_iter=n_iter, converged=converged)


def find_optimal_k(
    V,
    max_k: int = DEFAULTS["max_k"],
    rng: Optional[RNG] = None,
    max_iter: int = 100,
    tol: float = 1e-3,
) -> int:
    """
    Pick the number of niches with an elbow on reconstruction error.

    Runs NMF for k = 1..max_k (one RNG stream, in order of k) and returns the
    k with the largest positive second difference of the error curve.
    The result is always at least 2.
    """
    rng = _rng_from_state(rng)
    errors = []
    for k in range(1, int(max_k) + 1):
        errors.append(nmf(V, k, max_iter=max_iter, tol=tol, rng=rng).error)

    if len(errors) < 3:
        return 2

    errors = np.asarray(errors)
    curvature = errors[:-2] - 2.0 * errors[1:-1] + errors[2:]
    best = int(np.argmax(curvature))
    optimal_k = best + 2 if curvature[best] > 0 else 2

    return max(2, min(optimal_k, int(max_k)))
