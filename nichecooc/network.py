#!/usr/bin/env python3
"""
network.py

Threshold a basis-correlation matrix into a taxon co-occurrence network and
annotate its nodes with NMF niche memberships.

An edge joins taxa i < j when
    |rho_ij| >= correlation_threshold   and   p_ij <= pvalue_threshold
(missing p-values count as 1, so pass pvalue_threshold=1 to disable the
significance filter). Edges are 'positive' for rho > 0 and 'negative'
otherwise; negative edges are dropped when include_negative is False.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np
import pandas as pd
import scipy.sparse as sp
from scipy.sparse.csgraph import connected_components

from nichecooc._defaults import DEFAULTS
from nichecooc.correlation import CorrelationMatrix
from nichecooc.nmf import NMFResult
from nichecooc.utils import upper_triangle_pairs


@dataclass(frozen=True)
class CoOccurrenceEdge:
    source: str
    target: str
    weight: float
    correlation: float
    pvalue: Optional[float]
    type: str


@dataclass(frozen=True)
class CoOccurrenceNode:
    taxon: str
    niche_weights: Tuple[float, ...]
    primary_niche: int
    degree: int
    strength: float
    module: int


@dataclass(frozen=True)
class NetworkStats:
    node_count: int
    edge_count: int
    density: float
    positive_ratio: float
    module_count: int


@dataclass(frozen=True)
class CoOccurrenceNetwork:
    nodes: List[CoOccurrenceNode]
    edges: List[CoOccurrenceEdge]
    niche_labels: List[str]
    stats: NetworkStats

    def to_frames(self) -> Tuple[pd.DataFrame, pd.DataFrame]:
        """Node and edge tables, one row per node / edge."""
        nodes_df = pd.DataFrame({
            "taxon": [n.taxon for n in self.nodes],
            "primary_niche": [n.primary_niche for n in self.nodes],
            "degree": [n.degree for n in self.nodes],
            "strength": [n.strength for n in self.nodes],
            "module": [n.module for n in self.nodes],
        })
        for k, label in enumerate(self.niche_labels):
            nodes_df[label] = [n.niche_weights[k] for n in self.nodes]

        edges_df = pd.DataFrame(
            [(e.source, e.target, e.weight, e.correlation, e.pvalue, e.type) for e in self.edges],
            columns=["source", "target", "weight", "correlation", "pvalue", "type"],
        )
        return nodes_df, edges_df


def niche_weights_from_loadings(loadings, k: int) -> np.ndarray:
    """
    Normalise a row of W to sum to 1.

    An all-zero (or missing) row gets uniform weights; k = 0 gives an empty vector.
    """
    if k <= 0:
        return np.zeros(0)
    row = np.zeros(k) if loadings is None else np.asarray(loadings, dtype=float)
    total = row.sum()
    if not np.isfinite(total) or total <= 0:
        return np.full(k, 1.0 / k)
    return row / total


def _network_stats(n_nodes: int, edges: List[CoOccurrenceEdge], module_count: int) -> NetworkStats:
    max_possible = n_nodes * (n_nodes - 1) / 2.0
    n_edges = len(edges)
    n_positive = sum(1 for e in edges if e.type == "positive")
    return NetworkStats(
        node_count=n_nodes,
        edge_count=n_edges,
        density=n_edges / max_possible if max_possible > 0 else 0.0,
        positive_ratio=n_positive / n_edges if n_edges > 0 else 0.0,
        module_count=module_count,
    )


def build_cooccurrence_network(
    correlation_matrix: CorrelationMatrix,
    nmf_result: NMFResult,
    correlation_threshold: float = DEFAULTS["correlation_threshold"],
    pvalue_threshold: float = DEFAULTS["pvalue_threshold"],
    include_negative: bool = DEFAULTS["include_negative"],
) -> CoOccurrenceNetwork:
    """
    Build the co-occurrence network.

    One node per taxon (isolated taxa included), at most one edge per
    unordered pair. Node ``module`` is the connected component of the taxon
    in the filtered graph.
    """
    taxa = list(correlation_matrix.taxa)
    n = len(taxa)
    corr = np.asarray(correlation_matrix.correlations, dtype=float)
    pvals = correlation_matrix.pvalues
    if pvals is not None:
        pvals = np.asarray(pvals, dtype=float)

    if n > 1 and corr.shape != (n, n):
        raise ValueError(
            f"correlation matrix shape {corr.shape} does not match {n} taxa"
        )
    if pvals is not None and n > 1 and np.shape(pvals) != (n, n):
        raise ValueError(
            f"p-value matrix shape {np.shape(pvals)} does not match {n} taxa"
        )

    k = nmf_result.k
    W = nmf_result.W

    edges: List[CoOccurrenceEdge] = []
    degree = np.zeros(n, dtype=int)
    strength = np.zeros(n, dtype=float)
    rows, cols = [], []

    if n > 1:
        for i, j, rho in upper_triangle_pairs(corr, threshold=correlation_threshold):
            pval = float(pvals[i, j]) if pvals is not None else 1.0
            if pval > pvalue_threshold:
                continue
            edge_type = "positive" if rho > 0 else "negative"
            if edge_type == "negative" and not include_negative:
                continue

            edges.append(CoOccurrenceEdge(
                source=taxa[i],
                target=taxa[j],
                weight=abs(rho),
                correlation=rho,
                pvalue=pval if pvals is not None else None,
                type=edge_type,
            ))
            degree[i] += 1
            degree[j] += 1
            strength[i] += abs(rho)
            strength[j] += abs(rho)
            rows.append(i)
            cols.append(j)

    adj = sp.csr_matrix(
        (np.ones(len(rows)), (np.asarray(rows, dtype=np.int64), np.asarray(cols, dtype=np.int64))),
        shape=(n, n),
    )
    n_modules, labels = connected_components(csgraph=adj, directed=False) if n else (0, np.zeros(0, dtype=int))

    nodes: List[CoOccurrenceNode] = []
    for i, taxon in enumerate(taxa):
        loadings = W[i] if k > 0 and i < W.shape[0] else None
        weights = niche_weights_from_loadings(loadings, k)
        nodes.append(CoOccurrenceNode(
            taxon=taxon,
            niche_weights=tuple(float(w) for w in weights),
            primary_niche=int(np.argmax(weights)) if weights.size else 0,
            degree=int(degree[i]),
            strength=float(strength[i]),
            module=int(labels[i]),
        ))

    niche_labels = [f"Niche {i + 1}" for i in range(k)]

    return CoOccurrenceNetwork(
        nodes=nodes,
        edges=edges,
        niche_labels=niche_labels,
        stats=_network_stats(n, edges, int(n_modules)),
    )
