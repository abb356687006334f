"""
Affected-vertex detection for batch updates of a graph with known labelsets.

Both detectors take edge batches that are undirected (each edge present in
both directions, see `make_undirected_batch`) and return one boolean flag per
vertex marking whether its labelset should be recomputed.

Delta-screening:
- For edge deletions within the same community (i, j), i is affected, i's
  neighbors are affected and j's community is affected.
- For edge insertions across communities from source i, the inserted edges
  are scanned and a community chosen; i is affected, and if the chosen
  community c* differs from i's, i's neighbors and c*'s community are affected.

Frontier:
- For edge deletions within the same community (i, j), i is affected.
- For edge insertions across communities (i, j), i is affected.
"""
import numba as nb
import numpy as np

from .copra_kernels import (
    copra_choose_community,
    copra_clear_scan,
    copra_scan_community,
    copra_sort_scan,
)
from .core_utilities import as_deletion_arrays, as_insertion_arrays
from .labelset import LABELS


@nb.njit(cache=True)
def _affected_delta_screening(indptr, indices, del_u, del_v, ins_u, ins_v, ins_w,
                              labels, coefs, counts, vtot, B, max_membership, strict):
    S = indptr.size - 1
    L = labels.shape[1]
    vcs = np.empty(S, dtype=np.int64)
    vcout = np.zeros(S, dtype=np.float64)
    seen = np.zeros(S, dtype=np.bool_)
    row_labels = np.empty(L, dtype=np.int64)
    row_coefs = np.empty(L, dtype=np.float64)
    vertices = np.zeros(S, dtype=np.bool_)
    neighbors = np.zeros(S, dtype=np.bool_)
    communities = np.zeros(S, dtype=np.bool_)

    for i in range(del_u.size):
        u = del_u[i]
        v = del_v[i]
        cv = labels[v, 0]
        if labels[u, 0] != cv:
            continue
        vertices[u] = True
        neighbors[u] = True
        communities[cv] = True

    # Insertions are sorted by source: process each source's run together
    n = 0
    i = 0
    m = ins_u.size
    while i < m:
        u = ins_u[i]
        cu = labels[u, 0]
        n = copra_clear_scan(vcs, n, vcout, seen)
        crossing = False
        while i < m and ins_u[i] == u:
            v = ins_v[i]
            w = ins_w[i]
            i += 1
            if labels[v, 0] == cu:
                continue
            crossing = True
            n = copra_scan_community(vcs, n, vcout, seen, u, v, w, labels, coefs, counts, False)
        if not crossing:
            continue
        vertices[u] = True
        copra_sort_scan(vcs, n, vcout, strict)
        copra_choose_community(row_labels, row_coefs, u, vcs, n, vcout, B * vtot[u], max_membership)
        cl = row_labels[0]
        if cl == cu:
            continue
        neighbors[u] = True
        communities[cl] = True

    for u in range(S):
        if neighbors[u]:
            for j in range(indptr[u], indptr[u + 1]):
                vertices[indices[j]] = True
        if communities[labels[u, 0]]:
            vertices[u] = True
    return vertices


@nb.njit(cache=True)
def _affected_frontier(S, del_u, del_v, ins_u, ins_v, labels):
    vertices = np.zeros(S, dtype=np.bool_)
    for i in range(del_u.size):
        u = del_u[i]
        if labels[u, 0] == labels[del_v[i], 0]:
            vertices[u] = True
    for i in range(ins_u.size):
        u = ins_u[i]
        if labels[u, 0] != labels[ins_v[i], 0]:
            vertices[u] = True
    return vertices


def _check_table(graph, labelsets):
    if labelsets.span != graph.span:
        raise ValueError(f"Labelset table covers {labelsets.span} vertices, graph has {graph.span}")


def affected_vertices_delta_screening(graph, deletions, insertions, labelsets,
                                      vertex_weights=None, B=None,
                                      max_membership=LABELS, strict=False):
    """
    Find the vertices to reprocess after a batch update, by delta-screening.

    Parameters:
    -----------
    graph : CopraGraph
        Graph with the batch already applied (neighbors are read from it)
    deletions : iterable of (u, v) or (m, 2) array
        Edge deletions for this batch (undirected)
    insertions : iterable of (u, v, w) or (m, 3) array
        Edge insertions for this batch (undirected)
    labelsets : LabelsetTable
        Labelsets computed before the batch
    vertex_weights : numpy.ndarray, optional
        Total edge weight of each vertex; defaults to graph.vertex_weights()
    B : float, optional
        Belonging coefficient threshold; defaults to 1 / max_membership
    max_membership : int, default=LABELS
        Membership cap used when choosing a community for an insertion source
    strict : bool, default=False
        Disable parity tie perturbation

    Returns:
    --------
    numpy.ndarray
        Boolean affected flag per vertex
    """
    _check_table(graph, labelsets)
    if max_membership < 1 or max_membership > labelsets.capacity:
        raise ValueError(f"max_membership must lie in [1, {labelsets.capacity}], got {max_membership}")
    if B is None:
        B = 1.0 / max_membership
    vtot = graph.vertex_weights() if vertex_weights is None else np.ascontiguousarray(vertex_weights, dtype=np.float64)
    if vtot.shape != (graph.span,):
        raise ValueError(f"vertex_weights must have shape ({graph.span},), got {vtot.shape}")

    del_u, del_v = as_deletion_arrays(deletions, graph.span)
    ins_u, ins_v, ins_w = as_insertion_arrays(insertions, graph.span)
    return _affected_delta_screening(graph.indptr, graph.indices, del_u, del_v, ins_u, ins_v, ins_w,
                                     labelsets.labels, labelsets.coefs, labelsets.counts,
                                     vtot, float(B), int(max_membership), bool(strict))


def affected_vertices_frontier(graph, deletions, insertions, labelsets):
    """
    Find the vertices to reprocess after a batch update, by frontier marking.
    Cheaper than delta-screening; marks only the source vertex of each edit
    that crosses (insertion) or stays within (deletion) a community.
    """
    _check_table(graph, labelsets)
    del_u, del_v = as_deletion_arrays(deletions, graph.span)
    ins_u, ins_v, _ = as_insertion_arrays(insertions, graph.span)
    return _affected_frontier(graph.span, del_u, del_v, ins_u, ins_v, labelsets.labels)
