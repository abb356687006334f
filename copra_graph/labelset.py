"""
LabelsetTable - per-vertex bounded lists of (community, belonging coefficient).
"""
import os

import numpy as np

from .copra_kernels import EMPTY_LABEL, copra_initialize

# Labels (max. community memberships) per vertex.
LABELS = 8


class LabelsetTable:
    """
    Fixed-capacity labelsets for every vertex, stored as three parallel arrays.

    Row u of `labels`/`coefs` holds the labelset of vertex u ordered by
    descending coefficient; only the first `counts[u]` entries are populated.
    Unused slots carry EMPTY_LABEL and a zero coefficient. A community is
    identified by the id of its representative vertex.
    """

    def __init__(self, labels, coefs, counts, validate=True):
        """
        Parameters:
        -----------
        labels : numpy.ndarray
            (S, L) int64 community ids
        coefs : numpy.ndarray
            (S, L) float64 belonging coefficients
        counts : numpy.ndarray
            (S,) int64 number of populated entries per vertex
        validate : bool, default=True
            Check that populated entries hold community ids in [0, S) with
            non-negative, non-increasing coefficients
        """
        labels = np.ascontiguousarray(labels, dtype=np.int64)
        coefs = np.ascontiguousarray(coefs, dtype=np.float64)
        counts = np.ascontiguousarray(counts, dtype=np.int64)
        if labels.ndim != 2 or labels.shape != coefs.shape:
            raise ValueError(f"labels {labels.shape} and coefs {coefs.shape} must be equal 2-D shapes")
        if counts.shape != (labels.shape[0],):
            raise ValueError(f"counts must have shape ({labels.shape[0]},), got {counts.shape}")
        if labels.shape[1] < 1:
            raise ValueError("Labelset capacity must be at least 1")
        if counts.size and (counts.min() < 1 or counts.max() > labels.shape[1]):
            raise ValueError(f"Entry counts must lie in [1, {labels.shape[1]}]")
        if validate:
            _check_entries(labels, coefs, counts)
        self.labels = labels
        self.coefs = coefs
        self.counts = counts

    @classmethod
    def empty(cls, span, capacity=LABELS):
        """Allocate a table without initializing it (all counts set to 1)."""
        labels = np.full((span, capacity), EMPTY_LABEL, dtype=np.int64)
        coefs = np.zeros((span, capacity), dtype=np.float64)
        counts = np.ones(span, dtype=np.int64)
        return cls(labels, coefs, counts, validate=False)

    @classmethod
    def initialize(cls, span, capacity=LABELS):
        """Singleton labelsets: every vertex is its own community."""
        table = cls.empty(span, capacity)
        copra_initialize(table.labels, table.coefs, table.counts)
        return table

    @classmethod
    def from_labelsets(cls, labelsets, capacity=LABELS):
        """
        Build a table from a sequence of labelsets, each an iterable of
        (community, coefficient) pairs already ordered by coefficient.
        """
        labelsets = [list(ls) for ls in labelsets]
        labels = np.full((len(labelsets), capacity), EMPTY_LABEL, dtype=np.int64)
        coefs = np.zeros((len(labelsets), capacity), dtype=np.float64)
        counts = np.ones(len(labelsets), dtype=np.int64)
        for u, ls in enumerate(labelsets):
            if not ls:
                raise ValueError(f"Labelset of vertex {u} is empty")
            if len(ls) > capacity:
                raise ValueError(f"Labelset of vertex {u} has {len(ls)} entries, capacity is {capacity}")
            for i, (c, b) in enumerate(ls):
                labels[u, i] = c
                coefs[u, i] = b
            counts[u] = len(ls)
        return cls(labels, coefs, counts)

    @property
    def span(self):
        return self.labels.shape[0]

    @property
    def capacity(self):
        return self.labels.shape[1]

    def copy(self):
        return LabelsetTable(self.labels.copy(), self.coefs.copy(), self.counts.copy(), validate=False)

    def labelset(self, u):
        """Labelset of vertex u as a list of (community, coefficient) pairs."""
        if u < 0 or u >= self.span:
            raise ValueError(f"Vertex index {u} out of range [0, {self.span - 1}]")
        n = self.counts[u]
        return [(int(c), float(b)) for c, b in zip(self.labels[u, :n], self.coefs[u, :n])]

    def best_communities(self):
        """Primary (first) community of every vertex."""
        return self.labels[:, 0].copy()

    def memberships(self):
        """
        Derive overlapping community membership by scanning all labelsets.

        Returns:
        --------
        dict
            community id -> sorted numpy array of member vertex ids
        """
        mask = np.arange(self.capacity)[np.newaxis, :] < self.counts[:, np.newaxis]
        rows = np.nonzero(mask)[0]
        comms = self.labels[mask]
        order = np.lexsort((rows, comms))
        rows, comms = rows[order], comms[order]
        bounds = np.flatnonzero(np.diff(comms)) + 1
        return {int(group_c[0]): group_r
                for group_c, group_r in zip(np.split(comms, bounds), np.split(rows, bounds))
                if group_c.size}

    def save(self, path):
        """Save the table to a compressed .npz file."""
        os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
        np.savez_compressed(path, labels=self.labels, coefs=self.coefs, counts=self.counts)

    @classmethod
    def load(cls, path):
        with np.load(path) as data:
            return cls(data["labels"], data["coefs"], data["counts"])

    def __len__(self):
        return self.span

    def __str__(self):
        return (f"LabelsetTable with {self.span} vertices, capacity {self.capacity}, "
                f"{int(self.counts.sum())} entries")

    def __repr__(self):
        return self.__str__()


def _check_entries(labels, coefs, counts):
    """Populated entries: ids in [0, S), coefficients >= 0 and non-increasing."""
    span = labels.shape[0]
    mask = np.arange(labels.shape[1])[np.newaxis, :] < counts[:, np.newaxis]
    ids = labels[mask]
    if ids.size and (ids.min() < 0 or ids.max() >= span):
        bad = ids[(ids < 0) | (ids >= span)][0]
        raise ValueError(f"Community id {bad} out of range [0, {span - 1}]")
    populated = coefs[mask]
    if not np.all(np.isfinite(populated)) or np.any(populated < 0):
        raise ValueError("Belonging coefficients must be finite and non-negative")
    # Populated entries form a prefix of each row
    rising = mask[:, 1:] & (coefs[:, 1:] > coefs[:, :-1])
    if rising.any():
        u = np.flatnonzero(rising.any(axis=1))[0]
        raise ValueError(f"Labelset of vertex {u} is not ordered by descending coefficient")
