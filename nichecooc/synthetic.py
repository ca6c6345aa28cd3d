#!/usr/bin/env python3

from __future__ import annotations

import math
from typing import Optional

from nichecooc.pantry import AbundanceTable
from nichecooc.utils import RNG, _rng_from_state


def generate_demo_abundance_table(
    num_taxa: int = 20,
    num_samples: int = 50,
    num_niches: int = 3,
    rng: Optional[RNG] = None,
) -> AbundanceTable:
    """
    Synthetic counts with a planted niche structure.

    Every taxon is assigned to one niche; sample s favours niche
    ``s % num_niches``. Each cell is round(base + boost + noise) with
    base ~ U(0, 10), noise ~ U(0, 5) and, for in-niche cells only,
    boost ~ U(0, 100). Draw order: niche assignments first, then cells
    row by row as base, [boost], noise.
    """
    if num_taxa < 0 or num_samples < 0:
        raise ValueError("num_taxa and num_samples must be non-negative")
    if num_niches < 1:
        raise ValueError(f"num_niches must be >= 1, got {num_niches}")

    rng = _rng_from_state(rng)
    taxa = [f"Taxon_{i + 1}" for i in range(num_taxa)]
    samples = [f"Sample_{i + 1}" for i in range(num_samples)]

    taxon_niche = [min(int(rng() * num_niches), num_niches - 1) for _ in taxa]

    counts = []
    for niche in taxon_niche:
        row = []
        for s in range(num_samples):
            base = rng() * 10
            boost = rng() * 100 if niche == s % num_niches else 0.0
            noise = rng() * 5
            # half-up rounding
            row.append(max(0, math.floor(base + boost + noise + 0.5)))
        counts.append(row)

    return AbundanceTable(taxa, samples, counts)
