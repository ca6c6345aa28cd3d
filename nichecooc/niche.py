#!/usr/bin/env python3
"""
niche.py

Full niche analysis of an abundance table:

  1. pseudocount normalisation and CLR transform
  2. basis correlations, permutation p-values and BH q-values
  3. NMF of the normalised table (k given, or chosen by the elbow heuristic)
  4. co-occurrence network
  5. bootstrap stability of each taxon's primary niche
  6. per-taxon niche profiles, optionally annotated with sample habitats

Every random draw comes from the single ``rng`` passed in, in the order
above, so a seeded rng reproduces the whole analysis.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy.optimize import linear_sum_assignment
from tqdm import tqdm

from nichecooc._defaults import DEFAULTS
from nichecooc.compositional import normalize_abundance, clr_transform
from nichecooc.correlation import (
    CorrelationMatrix,
    estimate_basis_correlations,
    bootstrap_pvalues,
    pairwise_qvalues,
)
from nichecooc.network import (
    CoOccurrenceNetwork,
    build_cooccurrence_network,
    niche_weights_from_loadings,
)
from nichecooc.nmf import NMFResult, nmf, find_optimal_k
from nichecooc.pantry import AbundanceTable, SampleMetadata, load_abundance_table, load_sample_metadata
from nichecooc.utils import RNG, _rng_from_state, resample_indices


@dataclass(frozen=True)
class NicheProfile:
    taxon: str
    niche_weights: Tuple[float, ...]
    primary_niche: int
    niche_confidence: float
    associated_habitats: List[str] = field(default_factory=list)
    stability: float = 1.0
    co_occurring_taxa: List[Tuple[str, float]] = field(default_factory=list)


@dataclass(frozen=True)
class NicheAnalysisResult:
    correlation_matrix: CorrelationMatrix
    nmf_result: NMFResult
    network: CoOccurrenceNetwork
    niche_profiles: List[NicheProfile]

    def profiles_frame(self) -> pd.DataFrame:
        """One row per taxon: primary niche, confidence, stability, habitats, niche weights."""
        df = pd.DataFrame({
            "taxon": [p.taxon for p in self.niche_profiles],
            "primary_niche": [p.primary_niche for p in self.niche_profiles],
            "niche_confidence": [p.niche_confidence for p in self.niche_profiles],
            "stability": [p.stability for p in self.niche_profiles],
            "associated_habitats": [";".join(p.associated_habitats) for p in self.niche_profiles],
            "co_occurring_taxa": [
                ";".join(f"{t}:{c:.3f}" for t, c in p.co_occurring_taxa)
                for p in self.niche_profiles
            ],
        })
        for k, label in enumerate(self.network.niche_labels):
            df[label] = [p.niche_weights[k] for p in self.niche_profiles]
        return df


def align_niches(W_ref: np.ndarray, W_other: np.ndarray) -> np.ndarray:
    """
    Match the niches of a second factorisation to a reference one.

    Columns are compared by cosine similarity and paired with the Hungarian
    algorithm. Returns ``mapping`` with mapping[j] = reference niche matched
    to niche j of W_other.
    """
    k = W_ref.shape[1]

    def _unit_columns(W):
        norms = np.linalg.norm(W, axis=0)
        return np.divide(W, norms, out=np.zeros_like(W), where=norms > 0)

    similarity = _unit_columns(W_ref).T @ _unit_columns(W_other)
    ref_idx, other_idx = linear_sum_assignment(-similarity)
    mapping = np.arange(k)
    mapping[other_idx] = ref_idx
    return mapping


def _primary_niches(W: np.ndarray, k: int) -> np.ndarray:
    return np.array([int(np.argmax(niche_weights_from_loadings(row, k))) for row in W], dtype=int)


def bootstrap_niche_stability(
    table: AbundanceTable,
    reference: NMFResult,
    n_bootstrap: int = DEFAULTS["bootstrap_iterations"],
    rng: Optional[RNG] = None,
    pseudocount: float = DEFAULTS["pseudocount"],
    max_iter: int = DEFAULTS["nmf_max_iter"],
    tol: float = DEFAULTS["nmf_tol"],
    progress: bool = False,
) -> np.ndarray:
    """
    Fraction of bootstrap resamples in which each taxon keeps its primary niche.

    Each replicate resamples samples with replacement, renormalises, reruns
    NMF with the reference k and aligns the new niches to the reference ones
    before comparing primary niches. Without replicates (or without niches)
    every taxon has stability 1.
    """
    n = table.n_taxa
    m = table.n_samples
    k = reference.k
    if n == 0 or m == 0 or k == 0 or n_bootstrap <= 0:
        return np.ones(n)

    rng = _rng_from_state(rng)
    ref_primary = _primary_niches(reference.W, k)
    agree = np.zeros(n)

    for _ in tqdm(range(int(n_bootstrap)), desc="Niche bootstrap", disable=not progress):
        idx = resample_indices(m, rng)
        result = nmf(normalize_abundance(table.counts[:, idx], pseudocount), k, max_iter=max_iter, tol=tol, rng=rng)
        mapping = align_niches(reference.W, result.W)
        agree += mapping[_primary_niches(result.W, k)] == ref_primary

    return agree / float(n_bootstrap)


def _dominance(weights: np.ndarray) -> float:
    """Primary weight minus the runner-up, in [0, 1]."""
    if weights.size == 0:
        return 0.0
    ordered = np.sort(weights)[::-1]
    runner_up = ordered[1] if ordered.size > 1 else 0.0
    return float(np.clip(ordered[0] - runner_up, 0.0, 1.0))


def _associated_habitats(
    i: int,
    niche: int,
    nmf_result: NMFResult,
    samples: Sequence[str],
    metadata: Sequence[SampleMetadata],
    max_habitats: int = DEFAULTS["max_habitats"],
) -> List[str]:
    """
    Habitats where taxon i contributes most through its primary niche.

    Each sample is scored by W[i, niche] * H[niche, s]; scores are averaged
    per habitat and the best habitats with a positive score are returned.
    """
    if not metadata or nmf_result.k == 0:
        return []

    habitat_of = {m.sample_id: m.habitat for m in metadata if m.habitat}
    contribution = nmf_result.W[i, niche] * nmf_result.H[niche, :]

    scores: Dict[str, List[float]] = {}
    for s, sample in enumerate(samples):
        habitat = habitat_of.get(sample)
        if habitat is not None:
            scores.setdefault(habitat, []).append(float(contribution[s]))

    ranked = sorted(
        ((float(np.mean(v)), h) for h, v in scores.items()),
        key=lambda item: (-item[0], item[1]),
    )
    return [h for score, h in ranked if score > 0][:max_habitats]


def _co_occurring_taxa(
    i: int,
    taxa: Sequence[str],
    correlations: np.ndarray,
    correlation_threshold: float,
    limit: int = DEFAULTS["max_cooccurring_taxa"],
) -> List[Tuple[str, float]]:
    if correlations.size == 0:
        return []
    partners = [
        (taxa[j], float(correlations[i, j]))
        for j in range(len(taxa))
        if j != i and abs(correlations[i, j]) >= correlation_threshold
    ]
    partners.sort(key=lambda item: -abs(item[1]))
    return partners[:limit]


def build_niche_profiles(
    table: AbundanceTable,
    nmf_result: NMFResult,
    correlation_matrix: CorrelationMatrix,
    stability: Optional[np.ndarray] = None,
    metadata: Optional[Sequence[SampleMetadata]] = None,
    correlation_threshold: float = DEFAULTS["correlation_threshold"],
) -> List[NicheProfile]:
    """
    One NicheProfile per taxon.

    niche_weights    : W row normalised to 1 (uniform for an all-zero row)
    primary_niche    : argmax of niche_weights
    niche_confidence : (primary - runner-up weight) * bootstrap stability
    """
    taxa = table.taxa
    samples = table.samples
    k = nmf_result.k
    if stability is None:
        stability = np.ones(len(taxa))
    metadata = metadata or []

    profiles = []
    for i, taxon in enumerate(taxa):
        weights = niche_weights_from_loadings(nmf_result.W[i] if k > 0 else None, k)
        primary = int(np.argmax(weights)) if weights.size else 0
        stab = float(np.clip(stability[i], 0.0, 1.0))
        profiles.append(NicheProfile(
            taxon=taxon,
            niche_weights=tuple(float(w) for w in weights),
            primary_niche=primary,
            niche_confidence=float(np.clip(_dominance(weights) * stab, 0.0, 1.0)),
            associated_habitats=_associated_habitats(i, primary, nmf_result, samples, metadata),
            stability=stab,
            co_occurring_taxa=_co_occurring_taxa(
                i, taxa, correlation_matrix.correlations, correlation_threshold
            ),
        ))
    return profiles


def analyze_niches(
    table,
    metadata=None,
    num_niches: int = DEFAULTS["num_niches"],
    correlation_threshold: float = DEFAULTS["correlation_threshold"],
    pvalue_threshold: float = DEFAULTS["pvalue_threshold"],
    bootstrap_iterations: int = DEFAULTS["bootstrap_iterations"],
    include_negative: bool = DEFAULTS["include_negative"],
    pseudocount: float = DEFAULTS["pseudocount"],
    max_iter: int = DEFAULTS["nmf_max_iter"],
    tol: float = DEFAULTS["nmf_tol"],
    max_k: int = DEFAULTS["max_k"],
    correlation_iterations: int = DEFAULTS["correlation_iterations"],
    rng: Optional[RNG] = None,
    progress: bool = False,
) -> NicheAnalysisResult:
    """
    Run the complete niche analysis.

    Parameters
    ----------
    table : AbundanceTable or path
        Taxa × samples counts (anything load_abundance_table accepts).
    metadata : list of SampleMetadata / dicts, or path, optional
        Per-sample habitats used to annotate profiles.
    num_niches : int
        Number of niches; 0 chooses k >= 2 with find_optimal_k.
    bootstrap_iterations : int
        Replicates for both the permutation p-values and the niche
        stability bootstrap.
    correlation_iterations : int
        SparCC exclusion passes, used for the observed correlations and for
        every permutation replicate alike.
    rng : callable, optional
        Zero-argument function returning floats in [0, 1). Never reseeded here.

    Returns
    -------
    NicheAnalysisResult
    """
    if num_niches < 0:
        raise ValueError(f"num_niches must be >= 0, got {num_niches}")

    table = load_abundance_table(table)
    metadata = load_sample_metadata(metadata, samples=table.samples)
    rng = _rng_from_state(rng)
    taxa = table.taxa

    # Step 1: Normalise and transform
    normalized = normalize_abundance(table.counts, pseudocount)
    clr_data = clr_transform(normalized)

    # Step 2: Correlations and their significance
    correlations = estimate_basis_correlations(clr_data, iterations=correlation_iterations)
    if correlations.shape != (table.n_taxa, table.n_taxa):
        # fewer than two taxa or no samples: each taxon only correlates with itself
        correlations = np.eye(table.n_taxa)
    pvalues = bootstrap_pvalues(
        table.counts, correlations, bootstrap_iterations, rng,
        pseudocount=pseudocount, iterations=correlation_iterations, progress=progress,
    )
    correlation_matrix = CorrelationMatrix(
        taxa=taxa,
        correlations=correlations,
        pvalues=pvalues,
        qvalues=pairwise_qvalues(pvalues),
    )

    # Step 3: Niche decomposition
    if table.n_taxa == 0 or table.n_samples == 0:
        k = 0
    elif num_niches > 0:
        k = num_niches
    else:
        k = find_optimal_k(normalized, max_k=max_k, rng=rng)
    nmf_result = nmf(normalized, k, max_iter=max_iter, tol=tol, rng=rng)

    # Step 4: Network
    network = build_cooccurrence_network(
        correlation_matrix,
        nmf_result,
        correlation_threshold=correlation_threshold,
        pvalue_threshold=pvalue_threshold,
        include_negative=include_negative,
    )

    # Step 5: Stability and profiles
    stability = bootstrap_niche_stability(
        table, nmf_result, bootstrap_iterations, rng,
        pseudocount=pseudocount, max_iter=max_iter, tol=tol, progress=progress,
    )
    niche_profiles = build_niche_profiles(
        table,
        nmf_result,
        correlation_matrix,
        stability=stability,
        metadata=metadata,
        correlation_threshold=correlation_threshold,
    )

    return NicheAnalysisResult(
        correlation_matrix=correlation_matrix,
        nmf_result=nmf_result,
        network=network,
        niche_profiles=niche_profiles,
    )
