"""Tests for the CSR graph wrapper."""
import numpy as np
import pytest
import scipy.sparse as sp

from copra_graph import CopraGraph


def test_from_edges_is_symmetric(path_graph):
    assert path_graph.span == 3
    neighbors, weights = path_graph.get_neighbors(1)
    np.testing.assert_array_equal(neighbors, [0, 2])
    np.testing.assert_array_equal(weights, [1.0, 1.0])
    np.testing.assert_array_equal(path_graph.get_neighbors(0)[0], [1])


def test_duplicate_edges_are_summed():
    graph = CopraGraph.from_edges([0, 1], [1, 0], [1.0, 2.0])
    _, weights = graph.get_neighbors(0)
    np.testing.assert_array_equal(weights, [3.0])


def test_vertex_weights():
    graph = CopraGraph.from_edges([0, 0, 1, 2], [1, 2, 2, 2], [1.0, 2.0, 4.0, 0.5], n_nodes=4)

    vtot = graph.vertex_weights()

    # Self-loop on 2 is stored once; vertex 3 is isolated
    np.testing.assert_allclose(vtot, [3.0, 5.0, 6.5, 0.0])


def test_get_neighbors_out_of_range(path_graph):
    with pytest.raises(ValueError, match="out of range"):
        path_graph.get_neighbors(3)


def test_rejects_negative_weights():
    with pytest.raises(ValueError, match="non-negative"):
        CopraGraph.from_edges([0], [1], [-1.0])


def test_rejects_non_square_matrix():
    with pytest.raises(ValueError, match="square"):
        CopraGraph(sp.csr_matrix((2, 3)))


def test_empty_graph():
    graph = CopraGraph()
    assert graph.span == 0
    assert graph.vertex_weights().size == 0


def test_edge_list_lists_each_edge_once(path_graph):
    assert path_graph.get_edge_list() == [(0, 1, 1.0), (1, 2, 1.0)]


def test_apply_batch_deletes_and_inserts_both_directions(path_graph):
    updated = path_graph.apply_batch(deletions=[(0, 1)], insertions=[(0, 2, 5.0)])

    assert updated.get_edge_list() == [(0, 2, 5.0), (1, 2, 1.0)]
    np.testing.assert_array_equal(updated.get_neighbors(2)[0], [0, 1])
    # Original graph untouched
    assert path_graph.get_edge_list() == [(0, 1, 1.0), (1, 2, 1.0)]


def test_apply_batch_insertion_replaces_weight(path_graph):
    updated = path_graph.apply_batch(insertions=[(1, 2, 4.0), (2, 1, 4.0)])

    assert updated.get_edge_list() == [(0, 1, 1.0), (1, 2, 4.0)]
    np.testing.assert_allclose(updated.vertex_weights(), [1.0, 5.0, 4.0])


def test_apply_batch_rejects_unknown_vertex(path_graph):
    with pytest.raises(ValueError, match="out of range"):
        path_graph.apply_batch(deletions=[(0, 7)])


def test_str(path_graph):
    assert str(path_graph) == "CopraGraph with 3 nodes, 2 edges"


def test_save_and_load(tmp_path, path_graph):
    path_graph.save(str(tmp_path / "graph"))
    loaded = CopraGraph.load(str(tmp_path / "graph"))

    assert loaded.span == 3
    assert loaded.get_edge_list() == path_graph.get_edge_list()


def test_star_degrees_and_weights(star_graph):
    assert star_graph.get_degree(0) == 10
    assert star_graph.get_degree(7) == 1
    vtot = star_graph.vertex_weights()
    assert vtot[0] == 10.0
    np.testing.assert_array_equal(vtot[1:], np.ones(10))


def test_vertex_keys_cover_span(star_graph):
    keys = star_graph.vertex_keys()

    assert list(keys) == list(range(11))
    assert len(keys) == star_graph.span
