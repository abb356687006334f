"""Tests for delta-screening and frontier affected-vertex detection."""
import numpy as np
import pytest

from copra_graph import (
    CopraGraph,
    CopraOptions,
    LabelsetTable,
    affected_vertices_delta_screening,
    affected_vertices_frontier,
    copra_static,
    make_undirected_batch,
)


def _flags(n, marked):
    out = np.zeros(n, dtype=bool)
    out[list(marked)] = True
    return out


# --- deletions ---


@pytest.fixture
def deletion_case():
    """Communities {0, 1, 2} and {3, 4}; edge (0, 1) already removed."""
    graph = CopraGraph.from_edges([0, 1, 2, 3, 0], [2, 2, 3, 4, 4])
    labelsets = LabelsetTable.from_labelsets([
        [(0, 1.0)], [(0, 1.0)], [(0, 1.0)], [(3, 1.0)], [(3, 1.0)],
    ])
    return graph, labelsets


def test_delta_screening_deletion_within_community(deletion_case):
    graph, labelsets = deletion_case

    affected = affected_vertices_delta_screening(graph, [(0, 1)], [], labelsets)

    # 0 itself, its neighbors 2 and 4, and every member of community 0
    np.testing.assert_array_equal(affected, _flags(5, [0, 1, 2, 4]))


def test_deletion_across_communities_is_ignored(deletion_case):
    graph, labelsets = deletion_case

    assert not affected_vertices_delta_screening(graph, [(2, 3)], [], labelsets).any()
    assert not affected_vertices_frontier(graph, [(2, 3)], [], labelsets).any()


def test_frontier_deletion_marks_source_only(deletion_case):
    graph, labelsets = deletion_case

    affected = affected_vertices_frontier(graph, [(0, 1)], [], labelsets)

    np.testing.assert_array_equal(affected, _flags(5, [0]))


# --- insertions ---


@pytest.fixture
def insertion_case():
    """Edge (0, 2, 5) inserted; 0 is alone in community 0, {2, 3} form community 2."""
    graph = CopraGraph.from_edges([0, 1, 2, 3], [2, 2, 3, 4], [5.0, 1.0, 1.0, 1.0])
    labelsets = LabelsetTable.from_labelsets([
        [(0, 1.0)], [(1, 1.0)], [(2, 1.0)], [(2, 1.0)], [(4, 1.0)],
    ])
    return graph, labelsets


def test_delta_screening_insertion_switching_community(insertion_case):
    graph, labelsets = insertion_case
    assert graph.vertex_weights()[0] == pytest.approx(5.0)

    affected = affected_vertices_delta_screening(graph, [], [(0, 2, 5.0)], labelsets, B=0.1)

    # 0, its neighbor 2, and the members of community 2
    np.testing.assert_array_equal(affected, _flags(5, [0, 2, 3]))


def test_frontier_insertion_marks_source_only(insertion_case):
    graph, labelsets = insertion_case

    affected = affected_vertices_frontier(graph, [], [(0, 2, 5.0)], labelsets)

    np.testing.assert_array_equal(affected, _flags(5, [0]))


def test_insertion_within_community_is_ignored(insertion_case):
    graph, labelsets = insertion_case

    assert not affected_vertices_delta_screening(graph, [], [(2, 3, 1.0)], labelsets).any()
    assert not affected_vertices_frontier(graph, [], [(2, 3, 1.0)], labelsets).any()


def test_insertion_keeping_community_marks_source_without_expansion():
    # Both new neighbors lean towards community 0 through their second label
    graph = CopraGraph.from_edges([0, 0, 3], [1, 2, 4])
    labelsets = LabelsetTable.from_labelsets([
        [(0, 1.0)],
        [(2, 0.6), (0, 0.4)],
        [(3, 0.6), (0, 0.4)],
        [(3, 1.0)],
        [(4, 1.0)],
    ])

    affected = affected_vertices_delta_screening(
        graph, [], [(0, 1, 1.0), (0, 2, 1.0)], labelsets, B=0.1)

    np.testing.assert_array_equal(affected, _flags(5, [0]))


def test_insertions_are_grouped_by_source(insertion_case):
    graph, labelsets = insertion_case
    batch = [(0, 4, 1.0), (3, 0, 1.0), (0, 1, 2.0)]

    unsorted = affected_vertices_delta_screening(graph, [], batch, labelsets)
    presorted = affected_vertices_delta_screening(graph, [], sorted(batch), labelsets)

    np.testing.assert_array_equal(unsorted, presorted)


def test_explicit_vertex_weights_override_graph(insertion_case):
    graph, labelsets = insertion_case
    heavy = graph.vertex_weights() * 100.0

    # Threshold 0.1 * 500 is above the scanned weight: the fallback still picks 2
    affected = affected_vertices_delta_screening(graph, [], [(0, 2, 5.0)], labelsets,
                                                 vertex_weights=heavy, B=0.1)

    np.testing.assert_array_equal(affected, _flags(5, [0, 2, 3]))


# --- properties and validation ---


def test_delta_screening_marks_superset_of_frontier(random_graph):
    prior = copra_static(random_graph, CopraOptions(max_iterations=5)).labelsets
    rng = np.random.RandomState(3)
    edges = random_graph.get_edge_list()
    picked = rng.choice(len(edges), size=15, replace=False)
    deletions = [edges[i][:2] for i in picked]
    insertions = [(int(a), int(b), float(w))
                  for a, b, w in zip(rng.randint(0, 60, 20), rng.randint(0, 60, 20),
                                     rng.uniform(0.5, 3.0, 20)) if a != b]
    deletions, insertions = make_undirected_batch(deletions, insertions)
    updated = random_graph.apply_batch(deletions, insertions)

    delta = affected_vertices_delta_screening(updated, deletions, insertions, prior)
    frontier = affected_vertices_frontier(updated, deletions, insertions, prior)

    assert frontier.any()
    assert np.all(delta[frontier])
    assert delta.sum() >= frontier.sum()


def test_rejects_mismatched_labelsets(path_graph):
    with pytest.raises(ValueError, match="covers"):
        affected_vertices_frontier(path_graph, [], [], LabelsetTable.initialize(5))


def test_rejects_out_of_range_vertices(path_graph):
    labelsets = LabelsetTable.initialize(3)
    with pytest.raises(ValueError, match="out of range"):
        affected_vertices_delta_screening(path_graph, [(0, 3)], [], labelsets)
    with pytest.raises(ValueError, match="out of range"):
        affected_vertices_frontier(path_graph, [], [(5, 0, 1.0)], labelsets)


def test_rejects_malformed_batches(path_graph):
    labelsets = LabelsetTable.initialize(3)
    with pytest.raises(ValueError, match="shape"):
        affected_vertices_frontier(path_graph, [(0, 1, 2)], [], labelsets)
    with pytest.raises(ValueError, match="non-negative"):
        affected_vertices_frontier(path_graph, [], [(0, 1, -2.0)], labelsets)


def test_rejects_membership_above_capacity(path_graph):
    labelsets = LabelsetTable.initialize(3, capacity=2)
    with pytest.raises(ValueError, match="max_membership"):
        affected_vertices_delta_screening(path_graph, [], [], labelsets, max_membership=4)
