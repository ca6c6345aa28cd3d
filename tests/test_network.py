import numpy as np
import pytest

from nichecooc.correlation import CorrelationMatrix
from nichecooc.network import build_cooccurrence_network, niche_weights_from_loadings
from nichecooc.nmf import NMFResult


def _nmf(W):
    W = np.asarray(W, dtype=float)
    return NMFResult(W=W, H=np.ones((W.shape[1], 2)), error=0.0, k=W.shape[1])


def _matrix(corr, pvalues=None):
    corr = np.asarray(corr, dtype=float)
    taxa = [f"t{i}" for i in range(corr.shape[0])]
    return CorrelationMatrix(taxa=taxa, correlations=corr, pvalues=pvalues)


@pytest.fixture
def mixed():
    corr = np.array([
        [1.0, 0.8, -0.6, 0.1],
        [0.8, 1.0, 0.35, 0.0],
        [-0.6, 0.35, 1.0, -0.2],
        [0.1, 0.0, -0.2, 1.0],
    ])
    return _matrix(corr)


@pytest.fixture
def loadings():
    return _nmf([[2.0, 0.0], [1.0, 1.0], [0.0, 3.0], [0.0, 0.0]])


def test_fully_connected_triangle(loadings):
    corr = [[1, 0.8, 0.7], [0.8, 1, 0.6], [0.7, 0.6, 1]]
    net = build_cooccurrence_network(
        _matrix(corr), _nmf([[1, 0], [0, 1], [1, 1]]),
        correlation_threshold=0.5, pvalue_threshold=1.0,
    )
    assert len(net.nodes) == 3
    assert len(net.edges) == 3
    assert net.stats.density == pytest.approx(1.0)
    assert net.stats.positive_ratio == pytest.approx(1.0)
    assert net.stats.module_count == 1


def test_edges_and_types(mixed, loadings):
    net = build_cooccurrence_network(mixed, loadings, correlation_threshold=0.3, pvalue_threshold=1.0)
    pairs = {(e.source, e.target): e for e in net.edges}
    assert set(pairs) == {("t0", "t1"), ("t0", "t2"), ("t1", "t2")}
    assert pairs[("t0", "t2")].type == "negative"
    assert pairs[("t0", "t2")].weight == pytest.approx(0.6)
    assert pairs[("t0", "t2")].correlation == pytest.approx(-0.6)
    assert pairs[("t0", "t1")].pvalue is None
    assert net.stats.positive_ratio == pytest.approx(2 / 3)
    assert net.stats.density == pytest.approx(3 / 6)


def test_threshold_monotone(mixed, loadings):
    counts = [
        len(build_cooccurrence_network(mixed, loadings, correlation_threshold=t, pvalue_threshold=1.0).edges)
        for t in (0.0, 0.1, 0.3, 0.5, 0.7, 0.9)
    ]
    assert counts == sorted(counts, reverse=True)


def test_positive_only(mixed, loadings):
    net = build_cooccurrence_network(
        mixed, loadings, correlation_threshold=0.3, pvalue_threshold=1.0, include_negative=False
    )
    assert all(e.type == "positive" for e in net.edges)
    assert len(net.edges) == 2
    assert net.stats.positive_ratio == 1.0


def test_pvalue_filter(mixed, loadings):
    p = np.full((4, 4), 0.5)
    p[0, 1] = p[1, 0] = 0.01
    np.fill_diagonal(p, 0.0)
    cm = CorrelationMatrix(taxa=mixed.taxa, correlations=mixed.correlations, pvalues=p)
    net = build_cooccurrence_network(cm, loadings, correlation_threshold=0.3, pvalue_threshold=0.05)
    assert [(e.source, e.target) for e in net.edges] == [("t0", "t1")]
    assert net.edges[0].pvalue == pytest.approx(0.01)


def test_nodes(mixed, loadings):
    net = build_cooccurrence_network(mixed, loadings, correlation_threshold=0.3, pvalue_threshold=1.0)
    nodes = {n.taxon: n for n in net.nodes}
    assert nodes["t0"].degree == 2
    assert nodes["t0"].strength == pytest.approx(1.4)
    assert nodes["t0"].niche_weights == pytest.approx((1.0, 0.0))
    assert nodes["t1"].niche_weights == pytest.approx((0.5, 0.5))
    assert nodes["t2"].primary_niche == 1
    # isolated taxon with all-zero loadings
    assert nodes["t3"].degree == 0
    assert nodes["t3"].niche_weights == pytest.approx((0.5, 0.5))
    assert nodes["t3"].module != nodes["t0"].module
    assert nodes["t0"].module == nodes["t1"].module == nodes["t2"].module
    assert net.stats.module_count == 2
    assert net.niche_labels == ["Niche 1", "Niche 2"]


def test_no_edges(loadings):
    net = build_cooccurrence_network(_matrix(np.eye(4)), loadings, correlation_threshold=0.3)
    assert net.edges == []
    assert net.stats.density == 0.0
    assert net.stats.positive_ratio == 0.0
    assert net.stats.module_count == 4


def test_single_node():
    net = build_cooccurrence_network(_matrix([[1.0]]), _nmf([[1.0, 2.0]]))
    assert len(net.nodes) == 1
    assert net.stats.density == 0.0


def test_shape_mismatch(loadings):
    cm = CorrelationMatrix(taxa=["a", "b", "c"], correlations=np.eye(2))
    with pytest.raises(ValueError):
        build_cooccurrence_network(cm, loadings)


def test_frames(mixed, loadings):
    net = build_cooccurrence_network(mixed, loadings, correlation_threshold=0.3, pvalue_threshold=1.0)
    nodes_df, edges_df = net.to_frames()
    assert list(nodes_df["taxon"]) == ["t0", "t1", "t2", "t3"]
    assert {"Niche 1", "Niche 2", "degree", "module"} <= set(nodes_df.columns)
    assert len(edges_df) == 3
    assert set(edges_df["type"]) == {"positive", "negative"}


def test_niche_weights_from_loadings():
    assert niche_weights_from_loadings([1.0, 3.0], 2) == pytest.approx([0.25, 0.75])
    assert niche_weights_from_loadings([0.0, 0.0, 0.0], 3) == pytest.approx([1 / 3] * 3)
    assert niche_weights_from_loadings(None, 0).size == 0
