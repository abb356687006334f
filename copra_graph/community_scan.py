"""
CommunityScanner - private scan accumulator for one worker.
"""
import numpy as np

from .copra_kernels import (
    EMPTY_LABEL,
    copra_choose_community,
    copra_clear_scan,
    copra_scan_communities,
    copra_scan_community,
    copra_scanned_weight,
    copra_sort_scan,
)


class CommunityScanner:
    """
    Sparse weight-by-community accumulator reused across vertices.

    Holds the touched community list and a dense weight table indexed by
    community id. Not safe to share between concurrent workers; give each
    worker its own instance and clear it between vertices.
    """

    def __init__(self, span):
        self.span = int(span)
        self.vcs = np.empty(self.span, dtype=np.int64)
        self.vcout = np.zeros(self.span, dtype=np.float64)
        self.seen = np.zeros(self.span, dtype=np.bool_)
        self.n_touched = 0

    def scan_edge(self, u, v, w, table, include_self=False):
        """Add one edge u->v of weight w using v's labelset."""
        self._check_table(table)
        if v < 0 or v >= self.span:
            raise ValueError(f"Node index {v} out of range [0, {self.span - 1}]")
        self.n_touched = copra_scan_community(self.vcs, self.n_touched, self.vcout, self.seen,
                                              int(u), int(v), float(w),
                                              table.labels, table.coefs, table.counts,
                                              include_self)

    def scan(self, graph, u, table, include_self=False):
        """Add every outgoing edge of u."""
        if graph.span != self.span:
            raise ValueError(f"Graph has {graph.span} vertices, scanner covers {self.span}")
        self._check_table(table)
        if u < 0 or u >= graph.span:
            raise ValueError(f"Node index {u} out of range [0, {graph.span - 1}]")
        self.n_touched = copra_scan_communities(self.vcs, self.n_touched, self.vcout, self.seen,
                                                graph.indptr, graph.indices, graph.data, int(u),
                                                table.labels, table.coefs, table.counts,
                                                include_self)

    def _check_table(self, table):
        if table.span != self.span:
            raise ValueError(f"Labelset table covers {table.span} vertices, scanner covers {self.span}")

    @property
    def touched(self):
        """Touched community ids in their current order."""
        return self.vcs[:self.n_touched].copy()

    def weights(self):
        """Accumulated weight of each touched community."""
        return {int(c): float(self.vcout[c]) for c in self.vcs[:self.n_touched]}

    def total_weight(self):
        return copra_scanned_weight(self.vcs, self.n_touched, self.vcout)

    def sort(self, strict=False):
        copra_sort_scan(self.vcs, self.n_touched, self.vcout, strict)

    def choose(self, u, threshold, max_membership, capacity=None):
        """
        Select the new labelset of u from the sorted scan.

        Returns:
        --------
        list of (community, coefficient)
            At most max_membership entries, coefficients summing to 1
        """
        capacity = max_membership if capacity is None else capacity
        if max_membership < 1 or max_membership > capacity:
            raise ValueError(f"max_membership must lie in [1, {capacity}], got {max_membership}")
        out_labels = np.full(capacity, EMPTY_LABEL, dtype=np.int64)
        out_coefs = np.zeros(capacity, dtype=np.float64)
        n = copra_choose_community(out_labels, out_coefs, int(u), self.vcs, self.n_touched,
                                   self.vcout, float(threshold), int(max_membership))
        return [(int(c), float(b)) for c, b in zip(out_labels[:n], out_coefs[:n])]

    def clear(self):
        self.n_touched = copra_clear_scan(self.vcs, self.n_touched, self.vcout, self.seen)
