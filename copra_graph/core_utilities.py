"""
Core utilities for the COPRA framework.
Contains shared timing helpers and batch/worker utilities used across modules.
"""
import time
from collections import defaultdict
from contextlib import contextmanager

import numpy as np
import numba as nb


class TimingStats:
    """Utility class to track timing statistics for different operations"""
    def __init__(self):
        self.stats = defaultdict(list)
        self.current_timers = {}

    def start(self, operation):
        """Start timing an operation"""
        self.current_timers[operation] = time.perf_counter()

    def end(self, operation):
        """End timing an operation and record the elapsed time (seconds)"""
        if operation in self.current_timers:
            elapsed = time.perf_counter() - self.current_timers.pop(operation)
            self.stats[operation].append(elapsed)
            return elapsed
        return None

    @contextmanager
    def timed(self, operation):
        """Context manager form of start/end."""
        self.start(operation)
        try:
            yield
        finally:
            self.end(operation)

    def reset(self):
        self.stats.clear()
        self.current_timers.clear()

    def get_operation_total(self, operation):
        """Get total time for a specific operation"""
        return sum(self.stats.get(operation, ()))

    def get_operation_mean(self, operation):
        times = self.stats.get(operation)
        if not times:
            return 0.0
        return sum(times) / len(times)

    def get_stats(self, as_dict=False):
        """Get statistics for all operations"""
        result = {}
        for op, times in self.stats.items():
            result[op] = {
                'count': len(times),
                'total': sum(times),
                'mean': sum(times) / len(times) if times else 0,
                'min': min(times) if times else 0,
                'max': max(times) if times else 0
            }

        if as_dict:
            return result

        lines = ["Detailed Timing Statistics:"]
        # Sort by total time in descending order
        for op, stats in sorted(result.items(), key=lambda x: x[1]['total'], reverse=True):
            lines.append(f"  • {op}: {stats['total'] * 1000:.2f}ms total, "
                         f"{stats['count']} calls, "
                         f"{stats['mean'] * 1000:.2f}ms avg/call")
        return "\n".join(lines)


def worker_count(n_items):
    """
    Number of private scratch workers to use for n_items vertices.

    One worker per numba thread, but never more workers than items.
    """
    return max(1, min(nb.get_num_threads(), int(n_items)))


def make_undirected_batch(deletions=(), insertions=()):
    """
    Mirror every edge of a batch so both endpoints see it.

    Parameters:
    -----------
    deletions : iterable of (u, v)
    insertions : iterable of (u, v, w)

    Returns:
    --------
    tuple of lists
        (deletions, insertions) with each edge present in both directions,
        sorted by source vertex id. Self-loops are not duplicated.
    """
    dels = set()
    for u, v in deletions:
        dels.add((int(u), int(v)))
        dels.add((int(v), int(u)))

    ins = {}
    for u, v, w in insertions:
        ins[(int(u), int(v))] = float(w)
        ins[(int(v), int(u))] = float(w)

    out_dels = sorted(dels)
    out_ins = sorted((u, v, w) for (u, v), w in ins.items())
    return out_dels, out_ins


def as_deletion_arrays(deletions, span):
    """
    Validate a deletion batch and return (sources, targets) int64 arrays,
    stably sorted by source vertex id.
    """
    cols = _batch_columns(deletions, 2, "Deletions")
    if cols is None:
        empty = np.empty(0, dtype=np.int64)
        return empty, empty.copy()

    src = _as_vertex_ids(cols[0], "deletion")
    dst = _as_vertex_ids(cols[1], "deletion")
    _check_vertex_range(src, dst, span, "deletion")

    order = np.argsort(src, kind='stable')
    return src[order], dst[order]


def as_insertion_arrays(insertions, span):
    """
    Validate an insertion batch and return (sources, targets, weights) arrays,
    stably sorted by source vertex id so that all insertions from one source
    are contiguous.
    """
    cols = _batch_columns(insertions, 3, "Insertions")
    if cols is None:
        empty = np.empty(0, dtype=np.int64)
        return empty, empty.copy(), np.empty(0, dtype=np.float64)

    src = _as_vertex_ids(cols[0], "insertion")
    dst = _as_vertex_ids(cols[1], "insertion")
    wts = np.ascontiguousarray(cols[2], dtype=np.float64)
    _check_vertex_range(src, dst, span, "insertion")
    if not np.all(np.isfinite(wts)) or np.any(wts < 0):
        raise ValueError("Insertion weights must be finite and non-negative")

    order = np.argsort(src, kind='stable')
    return src[order], dst[order], wts[order]


def _batch_columns(batch, width, kind):
    """
    Split a batch into its columns without passing ids through a shared
    float dtype. Returns None for an empty batch.
    """
    if isinstance(batch, np.ndarray):
        if batch.size == 0:
            return None
        if batch.ndim != 2 or batch.shape[1] != width:
            raise ValueError(f"{kind} must have shape (m, {width}), got {batch.shape}")
        return [batch[:, k] for k in range(width)]

    rows = [tuple(row) for row in batch]
    if not rows:
        return None
    for row in rows:
        if len(row) != width:
            raise ValueError(f"{kind} must have shape (m, {width}), got a row of length {len(row)}")
    return [np.asarray([row[k] for row in rows]) for k in range(width)]


def _as_vertex_ids(col, kind):
    col = np.asarray(col)
    if col.dtype.kind in 'iu':
        return np.ascontiguousarray(col, dtype=np.int64)
    if col.dtype.kind == 'f':
        if not np.all(np.isfinite(col)) or np.any(col != np.floor(col)):
            bad = col[~np.isfinite(col) | (col != np.floor(col))][0]
            raise ValueError(f"Vertex id {bad} in {kind} batch is not an integer")
        return np.ascontiguousarray(col, dtype=np.int64)
    raise ValueError(f"Vertex ids in {kind} batch must be integers, got dtype {col.dtype}")


def _check_vertex_range(src, dst, span, kind):
    for ids in (src, dst):
        if ids.size and (ids.min() < 0 or ids.max() >= span):
            bad = ids[(ids < 0) | (ids >= span)][0]
            raise ValueError(f"Vertex {bad} in {kind} batch out of range [0, {span - 1}]")
