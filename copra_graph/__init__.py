"""
COPRA Graph Package - Overlapping community detection by label propagation,
with incremental updates for batches of edge insertions and deletions.
"""

# Import main classes for easy access
from .copra_graph import CopraGraph
from .labelset import LabelsetTable, LABELS
from .community_scan import CommunityScanner
from .copra import CopraOptions, CopraResult, CopraRunner, copra_static, copra_dynamic
from .copra_analyzer import CopraAnalyzer

# Import affected-vertex detectors and utilities that might be directly useful
from .affected_vertices import (
    affected_vertices_delta_screening,
    affected_vertices_frontier,
)
from .core_utilities import (
    TimingStats,
    make_undirected_batch,
)

# Define what gets imported with `from copra_graph import *`
__all__ = [
    # Main classes
    'CopraGraph',
    'LabelsetTable',
    'CommunityScanner',
    'CopraOptions',
    'CopraResult',
    'CopraRunner',
    'CopraAnalyzer',

    # Constants
    'LABELS',

    # Core functions
    'copra_static',
    'copra_dynamic',
    'affected_vertices_delta_screening',
    'affected_vertices_frontier',
    'make_undirected_batch',

    # Utility classes
    'TimingStats',
]

# Package metadata
__version__ = '1.0.0'
