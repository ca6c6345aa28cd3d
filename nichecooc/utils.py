#!/usr/bin/env python3

from __future__ import annotations

from typing import Callable, Iterable, Optional, Tuple

import numpy as np

RNG = Callable[[], float]


def _rng_from_state(rng: Optional[RNG | int | np.random.Generator]) -> RNG:
    """
    Resolve the random source handed to a pipeline stage into a zero-argument
    callable returning floats in [0, 1).

      - callable  -> used as is (caller owns seeding)
      - Generator -> its bound ``random`` method
      - int/None  -> a fresh ``np.random.default_rng(rng)`` for this call only
    """
    if callable(rng):
        return rng
    if isinstance(rng, np.random.Generator):
        return rng.random
    return np.random.default_rng(rng).random


def draw(rng: RNG, size: int) -> np.ndarray:
    """Draw ``size`` floats from rng, in call order."""
    return np.fromiter((rng() for _ in range(size)), dtype=float, count=size)


def resample_indices(n: int, rng: RNG) -> np.ndarray:
    """Indices 0..n-1 sampled with replacement."""
    idx = np.floor(draw(rng, n) * n).astype(np.int64)
    # rng() may return values arbitrarily close to 1
    return np.minimum(idx, n - 1)


def permutation(n: int, rng: RNG) -> np.ndarray:
    """Random permutation of 0..n-1 by argsort of n uniform keys."""
    return np.argsort(draw(rng, n), kind="stable")


def as_matrix(values, name: str = "matrix") -> np.ndarray:
    """
    Convert nested lists / arrays to a 2-D float array.

    Ragged rows are rejected rather than padded or truncated. An empty
    input becomes a (0, 0) array.
    """
    if isinstance(values, np.ndarray):
        if values.size == 0 and values.ndim < 2:
            return np.empty((0, 0), dtype=float)
        if values.ndim != 2:
            raise ValueError(f"{name} must be two-dimensional, got shape {values.shape}")
        return values.astype(float, copy=True)

    rows = list(values)
    if not rows:
        return np.empty((0, 0), dtype=float)
    widths = {len(row) for row in rows}
    if len(widths) != 1:
        raise ValueError(f"{name} has ragged rows (row lengths: {sorted(widths)})")
    return np.array(rows, dtype=float).reshape(len(rows), widths.pop())


def upper_triangle_pairs(
    M: np.ndarray,
    threshold: float = 0.0,
) -> Iterable[Tuple[int, int, float]]:
    """
    Stream strict upper-triangle entries (i < j) of square M with |val| >= threshold.

    Yields tuples: (i, j, val)
    """
    if M.ndim != 2 or M.shape[0] != M.shape[1]:
        raise ValueError("upper_triangle_pairs expects a square matrix")

    iu, ju = np.triu_indices(M.shape[0], k=1)
    vals = M[iu, ju]
    keep = np.abs(vals) >= threshold
    for i, j, v in zip(iu[keep], ju[keep], vals[keep]):
        yield int(i), int(j), float(v)
