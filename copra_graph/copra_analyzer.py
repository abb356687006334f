"""
CopraAnalyzer - Analysis tools for COPRA labelsets and memberships.
"""
import numpy as np
import pandas as pd
from sklearn.metrics import normalized_mutual_info_score

from .core_utilities import TimingStats


class CopraAnalyzer:
    """
    Class for analyzing overlapping community assignments.
    """

    def __init__(self, verbose=True):
        """
        Initialize the analyzer.

        Parameters:
        -----------
        verbose : bool, default=True
            Whether to print progress messages
        """
        self.verbose = verbose
        self.timing = TimingStats()

    def membership_frame(self, labelsets):
        """
        Long-form membership table.

        Returns:
        --------
        pandas.DataFrame
            Columns: vertex, community, coefficient, rank (0 = primary)
        """
        mask = np.arange(labelsets.capacity)[np.newaxis, :] < labelsets.counts[:, np.newaxis]
        vertex, rank = np.nonzero(mask)
        return pd.DataFrame({
            'vertex': vertex.astype(np.int64),
            'community': labelsets.labels[mask],
            'coefficient': labelsets.coefs[mask],
            'rank': rank.astype(np.int64),
        })

    def community_sizes(self, labelsets, primary_only=False):
        """
        Number of vertices in each community.

        Parameters:
        -----------
        labelsets : LabelsetTable
        primary_only : bool, default=False
            Count only primary memberships (a partition) instead of all

        Returns:
        --------
        pandas.Series
            Size per community id, largest first
        """
        frame = self.membership_frame(labelsets)
        if primary_only:
            frame = frame[frame['rank'] == 0]
        sizes = frame.groupby('community')['vertex'].nunique()
        return sizes.sort_values(ascending=False, kind='stable').rename('size')

    def overlap_statistics(self, labelsets):
        """Summary of how many communities each vertex belongs to."""
        self.timing.start("overlap_statistics")
        counts = labelsets.counts
        sizes = self.community_sizes(labelsets)
        stats = {
            'n_vertices': int(labelsets.span),
            'n_communities': int(sizes.size),
            'n_overlapping_vertices': int(np.count_nonzero(counts > 1)),
            'mean_memberships': float(counts.mean()) if counts.size else 0.0,
            'max_memberships': int(counts.max()) if counts.size else 0,
            'largest_community': int(sizes.iloc[0]) if sizes.size else 0,
        }
        self.timing.end("overlap_statistics")

        if self.verbose:
            print(f"{stats['n_communities']:,} communities over {stats['n_vertices']:,} vertices; "
                  f"{stats['n_overlapping_vertices']:,} vertices in more than one community "
                  f"(mean {stats['mean_memberships']:.2f} memberships)")
        return stats

    def compare_memberships(self, membership_a, membership_b):
        """
        Normalized mutual information between two primary memberships,
        e.g. a full recomputation against an incremental update.
        """
        a = np.asarray(membership_a)
        b = np.asarray(membership_b)
        if a.shape != b.shape:
            raise ValueError(f"Membership shapes differ: {a.shape} vs {b.shape}")
        if a.size == 0:
            return 1.0
        nmi = float(normalized_mutual_info_score(a, b))
        if self.verbose:
            changed = int(np.count_nonzero(a != b))
            print(f"NMI {nmi:.4f}; {changed:,} of {a.size:,} vertices have a different primary community")
        return nmi
