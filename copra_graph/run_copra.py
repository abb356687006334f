#!/usr/bin/env python3
"""
Run COPRA on an edge list, optionally followed by a batch update.

Edge files hold one edge per line: `source target [weight]`, separated by
commas or whitespace; lines starting with '#' are ignored.
"""
import os

import click
import numpy as np
import pandas as pd

from .copra import CopraOptions, CopraRunner
from .copra_analyzer import CopraAnalyzer
from .copra_graph import CopraGraph
from .core_utilities import make_undirected_batch
from .labelset import LABELS


def read_edge_file(path, weighted=True):
    """
    Read an edge file into (sources, targets, weights) arrays.

    Missing weights default to 1.0. With weighted=False only the first two
    columns are read.
    """
    df = pd.read_csv(path, sep=r'[\s,]+', engine='python', header=None, comment='#')
    if df.shape[1] < 2:
        raise ValueError(f"{path}: expected at least 2 columns, got {df.shape[1]}")
    src = df[0].to_numpy(dtype=np.int64)
    dst = df[1].to_numpy(dtype=np.int64)
    if weighted and df.shape[1] > 2:
        wts = df[2].fillna(1.0).to_numpy(dtype=np.float64)
    else:
        wts = np.ones(src.size, dtype=np.float64)
    return src, dst, wts


@click.command()
@click.argument('edges', type=click.Path(exists=True, dir_okay=False))
@click.option('--nodes', type=int, default=None,
              help="Vertex count (default: largest id + 1 over graph and batch).")
@click.option('--max-membership', type=click.IntRange(1, LABELS), default=LABELS, show_default=True,
              help="Maximum communities per vertex.")
@click.option('--tolerance', type=float, default=0.05, show_default=True,
              help="Stop when the fraction of changed vertices drops below this.")
@click.option('--max-iterations', type=int, default=20, show_default=True,
              help="Maximum number of sweeps.")
@click.option('--repeat', type=int, default=1, show_default=True,
              help="Repeat each run and report the mean time.")
@click.option('--strict/--no-strict', default=False,
              help="Disable parity tie-breaking.")
@click.option('--include-self/--exclude-self', default=False,
              help="Let self-loops contribute to the scan.")
@click.option('--mode', type=click.Choice(['synchronous', 'asynchronous']), default='synchronous',
              show_default=True, help="Sweep semantics.")
@click.option('--deletions', type=click.Path(exists=True, dir_okay=False), default=None,
              help="Edge deletions to apply after the first run.")
@click.option('--insertions', type=click.Path(exists=True, dir_okay=False), default=None,
              help="Edge insertions to apply after the first run.")
@click.option('--approach', type=click.Choice(['naive', 'delta-screening', 'frontier']),
              default='delta-screening', show_default=True,
              help="Affected-vertex detection for the batch update.")
@click.option('--belonging-threshold', type=float, default=None,
              help="Delta-screening threshold B (default: 1 / max-membership).")
@click.option('--compare/--no-compare', default=False,
              help="Also recompute from scratch after the batch and report NMI.")
@click.option('--output', type=click.Path(dir_okay=False), default=None,
              help="Write the final memberships as CSV.")
@click.option('--timing/--no-timing', default=True,
              help="Print timing statistics.")
@click.option('--verbose/--quiet', default=True,
              help="Print per-sweep progress.")
def main(edges, nodes, max_membership, tolerance, max_iterations, repeat, strict,
         include_self, mode, deletions, insertions, approach, belonging_threshold,
         compare, output, timing, verbose):
    """Overlapping community detection with COPRA."""
    options = CopraOptions(repeat=repeat, tolerance=tolerance, max_membership=max_membership,
                           max_iterations=max_iterations, include_self=include_self,
                           strict=strict, mode=mode)
    runner = CopraRunner(options, verbose=verbose)
    analyzer = CopraAnalyzer(verbose=verbose)

    del_edges, ins_edges = [], []
    if deletions:
        d_src, d_dst, _ = read_edge_file(deletions, weighted=False)
        del_edges = list(zip(d_src.tolist(), d_dst.tolist()))
    if insertions:
        i_src, i_dst, i_wts = read_edge_file(insertions)
        ins_edges = list(zip(i_src.tolist(), i_dst.tolist(), i_wts.tolist()))
    click.echo(f"Loading graph from {edges}...")
    src, dst, wts = read_edge_file(edges)
    if nodes is None:
        ids = [e[k] for e in del_edges + ins_edges for k in (0, 1)]
        nodes = int(max([src.max(initial=-1), dst.max(initial=-1)] + ids)) + 1
    graph = CopraGraph.from_edges(src, dst, wts, n_nodes=nodes)
    click.echo(f"  {graph}")

    result = runner.run(graph)
    click.echo(f"Static run: {result.iterations} iterations, {result.time:.2f}ms")
    analyzer.overlap_statistics(result.labelsets)

    if del_edges or ins_edges:
        del_edges, ins_edges = make_undirected_batch(del_edges, ins_edges)
        updated = graph.apply_batch(del_edges, ins_edges)
        click.echo(f"Applied batch: {len(del_edges):,} deletions, {len(ins_edges):,} insertions "
                   f"(both directions) -> {updated}")
        dynamic = runner.run_dynamic(updated, del_edges, ins_edges, result.labelsets,
                                     approach=approach, belonging_threshold=belonging_threshold)
        click.echo(f"Dynamic run ({approach}): {dynamic.iterations} iterations, {dynamic.time:.2f}ms")
        analyzer.overlap_statistics(dynamic.labelsets)
        if compare:
            fresh = runner.run(updated)
            analyzer.compare_memberships(fresh.membership, dynamic.membership)
        result = dynamic

    if output:
        os.makedirs(os.path.dirname(os.path.abspath(output)), exist_ok=True)
        analyzer.membership_frame(result.labelsets).to_csv(output, index=False)
        click.echo(f"Memberships written to {output}")

    if timing:
        click.echo(runner.timing.get_stats())


if __name__ == '__main__':
    main()
