"""
Numba kernels for COPRA label propagation.

All kernels work on raw CSR arrays (indptr, indices, data) and on the three
arrays of a LabelsetTable (labels, coefs, counts). A scan accumulator is the
triple (vcs, vcout, seen): touched community ids, weight by community id and
a touched marker, each sized to the graph span.
"""
import numba as nb
import numpy as np
from numba import prange

EMPTY_LABEL = -1


# ============================================================================
# VERTEX WEIGHTS / INITIALIZATION
# ============================================================================

@nb.njit(parallel=True, cache=True)
def copra_vertex_weights(indptr, data):
    """Total outgoing edge weight of each vertex."""
    n = indptr.size - 1
    vtot = np.zeros(n, dtype=np.float64)
    for u in prange(n):
        s = 0.0
        for j in range(indptr[u], indptr[u + 1]):
            s += data[j]
        vtot[u] = s
    return vtot


@nb.njit(cache=True)
def copra_initialize(labels, coefs, counts):
    """Each vertex joins its own community with coefficient 1."""
    for u in range(labels.shape[0]):
        labels[u, :] = EMPTY_LABEL
        coefs[u, :] = 0.0
        labels[u, 0] = u
        coefs[u, 0] = 1.0
        counts[u] = 1


# ============================================================================
# SCAN / SORT / CLEAR
# ============================================================================

@nb.njit(cache=True)
def copra_scan_community(vcs, n_touched, vcout, seen, u, v, w,
                         labels, coefs, counts, include_self):
    """
    Add edge (u, v, w) to the scan: every community c that v belongs to with
    coefficient b gains w*b. Returns the new touched count.
    """
    if not include_self and u == v:
        return n_touched
    for i in range(counts[v]):
        c = labels[v, i]
        b = coefs[v, i]
        if not seen[c]:
            seen[c] = True
            vcs[n_touched] = c
            n_touched += 1
        vcout[c] += w * b
    return n_touched


@nb.njit(cache=True)
def copra_scan_communities(vcs, n_touched, vcout, seen, indptr, indices, data, u,
                           labels, coefs, counts, include_self):
    """Scan every outgoing edge of u."""
    for j in range(indptr[u], indptr[u + 1]):
        n_touched = copra_scan_community(vcs, n_touched, vcout, seen, u, indices[j], data[j],
                                         labels, coefs, counts, include_self)
    return n_touched


@nb.njit(cache=True)
def copra_sort_scan(vcs, n_touched, vcout, strict):
    """
    Order touched communities by weight, heaviest first.

    Equal weights keep their touch order (stable sort). Unless strict, each
    run of equal weights is then perturbed by walking it left to right and
    swapping adjacent pairs (c, d) whose ids differ in bit 1; a swapped pair
    is not revisited.
    """
    if n_touched < 2:
        return
    neg = np.empty(n_touched, dtype=np.float64)
    for i in range(n_touched):
        neg[i] = -vcout[vcs[i]]
    order = np.argsort(neg, kind='mergesort')
    ranked = vcs[:n_touched][order]
    vcs[:n_touched] = ranked
    if strict:
        return
    i = 0
    while i < n_touched - 1:
        c = vcs[i]
        d = vcs[i + 1]
        if vcout[c] == vcout[d] and ((c ^ d) & 2) != 0:
            vcs[i] = d
            vcs[i + 1] = c
            i += 2
        else:
            i += 1


@nb.njit(cache=True)
def copra_clear_scan(vcs, n_touched, vcout, seen):
    """Reset only the touched entries. Returns the new (zero) touched count."""
    for i in range(n_touched):
        c = vcs[i]
        vcout[c] = 0.0
        seen[c] = False
    return 0


@nb.njit(cache=True)
def copra_scanned_weight(vcs, n_touched, vcout):
    total = 0.0
    for i in range(n_touched):
        total += vcout[vcs[i]]
    return total


# ============================================================================
# CHOOSE COMMUNITY
# ============================================================================

@nb.njit(cache=True)
def copra_choose_community(out_labels, out_coefs, u, vcs, n_touched, vcout,
                           threshold, max_membership):
    """
    Write the new labelset of u into out_labels/out_coefs (one table row).

    vcs must already be sorted. Communities with weight >= threshold are kept,
    at most max_membership of them; if none clears the threshold the heaviest
    one is kept. Coefficients are normalized to sum to 1. With no candidate
    (or zero total weight) u joins its own community. Returns the entry count.
    """
    n = 0
    total = 0.0
    for i in range(n_touched):
        if n == max_membership:
            break
        c = vcs[i]
        if vcout[c] < threshold:
            continue
        out_labels[n] = c
        out_coefs[n] = vcout[c]
        total += vcout[c]
        n += 1
    if n == 0 and n_touched > 0:
        c = vcs[0]
        out_labels[0] = c
        out_coefs[0] = vcout[c]
        total = vcout[c]
        n = 1
    if n > 0 and total > 0.0:
        for i in range(n):
            out_coefs[i] /= total
    else:
        out_labels[0] = u
        out_coefs[0] = 1.0
        n = 1
    for i in range(n, out_labels.size):
        out_labels[i] = EMPTY_LABEL
        out_coefs[i] = 0.0
    return n


@nb.njit(cache=True)
def _update_vertex(vcs, vcout, seen, indptr, indices, data, u,
                   labels, coefs, counts, out_labels, out_coefs,
                   max_membership, include_self, strict):
    """Scan, sort, choose and clear for one vertex. Returns the entry count."""
    n = copra_scan_communities(vcs, 0, vcout, seen, indptr, indices, data, u,
                               labels, coefs, counts, include_self)
    copra_sort_scan(vcs, n, vcout, strict)
    threshold = copra_scanned_weight(vcs, n, vcout) / max_membership
    k = copra_choose_community(out_labels, out_coefs, u, vcs, n, vcout,
                               threshold, max_membership)
    copra_clear_scan(vcs, n, vcout, seen)
    return k


# ============================================================================
# SWEEPS
# ============================================================================

@nb.njit(parallel=True, cache=True)
def copra_sweep_synchronous(indptr, indices, data, labels, coefs, counts,
                            new_labels, new_coefs, new_counts, affected,
                            max_membership, include_self, strict, n_workers):
    """
    One snapshot sweep: reads only (labels, coefs, counts), writes only the
    new_* buffers. Each worker owns a contiguous vertex range and its own
    scan accumulator. Vertices not flagged in `affected` are copied through.
    Returns the number of vertices whose primary community changed.
    """
    S = indptr.size - 1
    chunk = (S + n_workers - 1) // n_workers
    changed = np.zeros(n_workers, dtype=np.int64)
    for t in prange(n_workers):
        vcs = np.empty(S, dtype=np.int64)
        vcout = np.zeros(S, dtype=np.float64)
        seen = np.zeros(S, dtype=np.bool_)
        start = t * chunk
        end = min(S, start + chunk)
        for u in range(start, end):
            if not affected[u]:
                new_labels[u, :] = labels[u, :]
                new_coefs[u, :] = coefs[u, :]
                new_counts[u] = counts[u]
                continue
            new_counts[u] = _update_vertex(vcs, vcout, seen, indptr, indices, data, u,
                                           labels, coefs, counts, new_labels[u], new_coefs[u],
                                           max_membership, include_self, strict)
            if new_labels[u, 0] != labels[u, 0]:
                changed[t] += 1
    return changed.sum()


@nb.njit(cache=True)
def copra_sweep_asynchronous(indptr, indices, data, labels, coefs, counts, affected,
                             max_membership, include_self, strict):
    """
    One in-place sweep in vertex order: later vertices see the labelsets
    already written earlier in the same sweep. Sequential, order dependent.
    Returns the number of vertices whose primary community changed.
    """
    S = indptr.size - 1
    L = labels.shape[1]
    vcs = np.empty(S, dtype=np.int64)
    vcout = np.zeros(S, dtype=np.float64)
    seen = np.zeros(S, dtype=np.bool_)
    row_labels = np.empty(L, dtype=np.int64)
    row_coefs = np.empty(L, dtype=np.float64)
    changed = 0
    for u in range(S):
        if not affected[u]:
            continue
        k = _update_vertex(vcs, vcout, seen, indptr, indices, data, u,
                           labels, coefs, counts, row_labels, row_coefs,
                           max_membership, include_self, strict)
        if row_labels[0] != labels[u, 0]:
            changed += 1
        labels[u, :] = row_labels
        coefs[u, :] = row_coefs
        counts[u] = k
    return changed


@nb.njit(cache=True)
def copra_expand_frontier(indptr, indices, old_best, new_best, affected):
    """Flag the neighbors of every vertex whose primary community changed."""
    for u in range(indptr.size - 1):
        if old_best[u] == new_best[u]:
            continue
        for j in range(indptr[u], indptr[u + 1]):
            affected[indices[j]] = True
