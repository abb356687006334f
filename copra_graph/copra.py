"""
COPRA - Overlapping community detection by multi-label propagation.

CopraRunner repeatedly sweeps every (affected) vertex: scan the labelsets of
its neighbors, choose the communities above a weight threshold, normalize,
and store the result. A sweep is synchronous by default (every vertex reads
the labelsets of the previous sweep, results are written to a second buffer
and swapped in afterwards), which is reproducible and safe to run in parallel.
The asynchronous mode updates labelsets in place in vertex order; it often
converges in fewer sweeps but its result depends on the vertex order.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Optional

import numpy as np

from .affected_vertices import affected_vertices_delta_screening, affected_vertices_frontier
from .copra_kernels import copra_expand_frontier, copra_sweep_asynchronous, copra_sweep_synchronous
from .core_utilities import TimingStats, worker_count
from .labelset import LABELS, LabelsetTable


@dataclass(frozen=True)
class CopraOptions:
    repeat: int = 1                    # independent runs, time is averaged
    tolerance: float = 0.05            # converged when changed fraction < tolerance
    max_membership: int = LABELS       # communities kept per vertex
    max_iterations: int = 20
    include_self: bool = False         # let self-loops contribute to the scan
    strict: bool = False               # no parity perturbation of ties
    mode: Literal["synchronous", "asynchronous"] = "synchronous"

    def __post_init__(self):
        if self.repeat < 1:
            raise ValueError(f"repeat must be at least 1, got {self.repeat}")
        if not 0.0 <= self.tolerance <= 1.0:
            raise ValueError(f"tolerance must lie in [0, 1], got {self.tolerance}")
        if self.max_membership < 1 or self.max_membership > LABELS:
            raise ValueError(f"max_membership must lie in [1, {LABELS}], got {self.max_membership}")
        if self.max_iterations < 0:
            raise ValueError(f"max_iterations must be non-negative, got {self.max_iterations}")
        if self.mode not in ("synchronous", "asynchronous"):
            raise ValueError(f"Unknown mode: {self.mode}. Use 'synchronous' or 'asynchronous'")


@dataclass
class CopraResult:
    membership: np.ndarray             # primary community per vertex
    iterations: int = 0
    time: float = 0.0                  # mean propagation time per repeat (ms)
    labelsets: Optional[LabelsetTable] = None
    affected: Optional[np.ndarray] = None


class CopraRunner:
    """
    Drives COPRA propagation for static graphs and batch updates.
    """

    def __init__(self, options=None, verbose=True):
        """
        Parameters:
        -----------
        options : CopraOptions, optional
            Run configuration (defaults to CopraOptions())
        verbose : bool, default=True
            Whether to print progress messages
        """
        self.options = options if options is not None else CopraOptions()
        self.verbose = verbose
        self.timing = TimingStats()

    def run(self, graph, labelsets=None, affected=None, expand_frontier=False):
        """
        Propagate labels until convergence or max_iterations.

        Parameters:
        -----------
        graph : CopraGraph
            Graph to process
        labelsets : LabelsetTable, optional
            Starting labelsets (not modified); singleton communities if None
        affected : numpy.ndarray of bool, optional
            Only flagged vertices are processed; all vertices if None
        expand_frontier : bool, default=False
            After each sweep, flag the neighbors of vertices whose primary
            community changed

        Returns:
        --------
        CopraResult
        """
        opts = self.options
        S = graph.span
        if labelsets is not None:
            if labelsets.span != S:
                raise ValueError(f"Labelset table covers {labelsets.span} vertices, graph has {S}")
            if labelsets.capacity < opts.max_membership:
                raise ValueError(f"Labelset capacity {labelsets.capacity} is below "
                                 f"max_membership {opts.max_membership}")
        if affected is not None:
            affected = np.asarray(affected, dtype=np.bool_)
            if affected.shape != (S,):
                raise ValueError(f"affected must have shape ({S},), got {affected.shape}")

        table = None
        iterations = 0
        times = []
        for _ in range(opts.repeat):
            table = labelsets.copy() if labelsets is not None else LabelsetTable.initialize(S)
            flags = np.ones(S, dtype=np.bool_) if affected is None else affected.copy()
            self.timing.start("copra")
            table, iterations = self._propagate(graph, table, flags, expand_frontier)
            times.append(self.timing.end("copra"))

        elapsed = 1000.0 * sum(times) / len(times)
        if self.verbose:
            print(f"COPRA finished: {iterations} iterations, {elapsed:.2f}ms per run")

        return CopraResult(
            membership=table.best_communities(),
            iterations=iterations,
            time=elapsed,
            labelsets=table,
            affected=None if affected is None else affected.copy(),
        )

    def _propagate(self, graph, table, flags, expand_frontier):
        opts = self.options
        S = graph.span
        if S == 0:
            return table, 0

        n_workers = worker_count(S)
        spare = LabelsetTable.empty(S, table.capacity) if opts.mode == "synchronous" else None

        iterations = 0
        for _ in range(opts.max_iterations):
            previous = table.best_communities() if expand_frontier else None

            self.timing.start("copra.sweep")
            if opts.mode == "synchronous":
                changed = int(copra_sweep_synchronous(
                    graph.indptr, graph.indices, graph.data,
                    table.labels, table.coefs, table.counts,
                    spare.labels, spare.coefs, spare.counts, flags,
                    opts.max_membership, opts.include_self, opts.strict, n_workers))
                table, spare = spare, table
            else:
                changed = int(copra_sweep_asynchronous(
                    graph.indptr, graph.indices, graph.data,
                    table.labels, table.coefs, table.counts, flags,
                    opts.max_membership, opts.include_self, opts.strict))
            self.timing.end("copra.sweep")
            iterations += 1

            if self.verbose:
                print(f"  Sweep {iterations}: {changed:,} of {S:,} vertices changed community")

            if expand_frontier:
                copra_expand_frontier(graph.indptr, graph.indices, previous,
                                      table.best_communities(), flags)

            if changed == 0 or changed / S < opts.tolerance:
                break
        return table, iterations

    def run_dynamic(self, graph, deletions, insertions, labelsets,
                    approach="delta-screening", belonging_threshold=None):
        """
        Update communities after a batch of edge edits.

        Parameters:
        -----------
        graph : CopraGraph
            Graph with the batch already applied
        deletions, insertions :
            The batch (undirected, see `make_undirected_batch`)
        labelsets : LabelsetTable
            Labelsets computed for the graph before the batch
        approach : {'naive', 'delta-screening', 'frontier'}
            How to choose the vertices to reprocess
        belonging_threshold : float, optional
            Delta-screening threshold B; defaults to 1 / max_membership

        Returns:
        --------
        CopraResult
            With `affected` holding the initial affected flags
        """
        opts = self.options
        if approach not in ("naive", "delta-screening", "frontier"):
            raise ValueError(f"Unknown approach: {approach}. "
                             f"Use 'naive', 'delta-screening' or 'frontier'")

        if approach == "delta-screening":
            with self.timing.timed("copra.vertex_weights"):
                vtot = graph.vertex_weights()

        self.timing.start("copra.affected")
        if approach == "naive":
            affected = np.ones(graph.span, dtype=np.bool_)
        elif approach == "delta-screening":
            affected = affected_vertices_delta_screening(
                graph, deletions, insertions, labelsets, vertex_weights=vtot,
                B=belonging_threshold, max_membership=opts.max_membership, strict=opts.strict)
        else:
            affected = affected_vertices_frontier(graph, deletions, insertions, labelsets)
        self.timing.end("copra.affected")

        if self.verbose:
            print(f"{approach}: {int(affected.sum()):,} of {graph.span:,} vertices affected")

        return self.run(graph, labelsets=labelsets, affected=affected,
                        expand_frontier=(approach == "frontier"))


def copra_static(graph, options=None):
    """Run COPRA from singleton communities, quietly."""
    return CopraRunner(options, verbose=False).run(graph)


def copra_dynamic(graph, deletions, insertions, labelsets, options=None,
                  approach="delta-screening", belonging_threshold=None):
    """Run COPRA after a batch update, quietly."""
    return CopraRunner(options, verbose=False).run_dynamic(
        graph, deletions, insertions, labelsets, approach, belonging_threshold)
