import sys
from pathlib import Path

# Ensure package import for tests
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import numpy as np
import pytest

from copra_graph import CopraGraph


@pytest.fixture
def path_graph():
    """0 - 1 - 2, unit weights."""
    return CopraGraph.from_edges([0, 1], [1, 2])


@pytest.fixture
def two_cliques():
    """Two disjoint K4 cliques on {0..3} and {4..7}."""
    src, dst = [], []
    for base in (0, 4):
        for i in range(4):
            for j in range(i + 1, 4):
                src.append(base + i)
                dst.append(base + j)
    return CopraGraph.from_edges(src, dst)


@pytest.fixture
def star_graph():
    """Vertex 0 joined to leaves 1..10."""
    return CopraGraph.from_edges([0] * 10, list(range(1, 11)))


@pytest.fixture
def random_graph():
    rng = np.random.RandomState(7)
    n, m = 60, 240
    src = rng.randint(0, n, size=m)
    dst = rng.randint(0, n, size=m)
    keep = src != dst
    wts = rng.uniform(0.5, 2.0, size=m)
    return CopraGraph.from_edges(src[keep], dst[keep], wts[keep], n_nodes=n)
