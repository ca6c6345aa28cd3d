#!/usr/bin/env python3
"""
compositional.py

Compositional data handling for abundance tables (rows = taxa, columns = samples):

    normalize_abundance(counts, pseudocount)
        add a pseudocount and scale every row to relative abundances

    clr_transform(abundances)
        centred log-ratio, CLR(x_j) = ln(x_j) - mean(ln(x)), removing the
        sum-to-one constraint (Aitchison 1986)
"""

import warnings

import numpy as np

from nichecooc._defaults import DEFAULTS
from nichecooc.utils import as_matrix

_CLR_FLOOR = 1e-12


def normalize_abundance(counts, pseudocount: float = DEFAULTS["pseudocount"]) -> np.ndarray:
    """
    Add ``pseudocount`` to every entry and divide each row by its sum.

    Rows that still sum to zero (all-zero row, pseudocount 0) are returned
    unchanged instead of becoming NaN. Empty input gives a (0, 0) array.
    """
    if pseudocount < 0 or not np.isfinite(pseudocount):
        raise ValueError(f"pseudocount must be a finite non-negative number, got {pseudocount}")

    X = as_matrix(counts, name="counts")
    if X.size == 0:
        return X
    if not np.all(np.isfinite(X)):
        raise ValueError("counts must be finite")
    if np.any(X < 0):
        raise ValueError("counts must be non-negative")

    X += pseudocount
    totals = X.sum(axis=1, keepdims=True)
    return np.divide(X, totals, out=X.copy(), where=totals > 0)


def clr_transform(abundances) -> np.ndarray:
    """
    Centred log-ratio transform of each row.

    Entries must be strictly positive (normalise with a positive pseudocount
    first). Zeros are clamped to a small floor with a RuntimeWarning so that
    no -inf reaches later stages.
    """
    X = as_matrix(abundances, name="abundances")
    if X.size == 0:
        return X

    if np.any(X <= 0):
        warnings.warn(
            f"clr_transform received {int(np.sum(X <= 0))} non-positive value(s); "
            f"clamping to {_CLR_FLOOR}. Normalise with a positive pseudocount first.",
            RuntimeWarning,
        )
        X = np.maximum(X, _CLR_FLOOR)

    log_x = np.log(X)
    return log_x - log_x.mean(axis=1, keepdims=True)
