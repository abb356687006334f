"""
CopraGraph - Weighted undirected graph over dense vertex keys, backed by CSR.
"""
import json
import os

import numpy as np
import scipy.sparse as sp

from .copra_kernels import copra_vertex_weights
from .core_utilities import as_deletion_arrays, as_insertion_arrays


class CopraGraph:
    """
    Core graph structure consumed by the propagation engine.

    Vertices are the dense keys [0, span). Every undirected edge is stored in
    both directions so it is visited from both endpoints.
    """

    def __init__(self, graph_matrix=None):
        """
        Initialize a CopraGraph.

        Parameters:
        -----------
        graph_matrix : scipy.sparse matrix, optional
            Square weighted adjacency matrix. If None, an empty graph is created.
        """
        if graph_matrix is None:
            graph_matrix = sp.csr_matrix((0, 0), dtype=np.float64)
        if graph_matrix.shape[0] != graph_matrix.shape[1]:
            raise ValueError(f"Adjacency matrix must be square, got {graph_matrix.shape}")

        graph = sp.csr_matrix(graph_matrix, dtype=np.float64, copy=True)
        graph.sum_duplicates()
        graph.sort_indices()
        if graph.nnz and graph.data.min() < 0:
            raise ValueError("Edge weights must be non-negative")

        self.graph = graph
        self.n_nodes = graph.shape[0]

        # Contiguous typed arrays for the numba kernels
        self.indptr = np.ascontiguousarray(graph.indptr, dtype=np.int64)
        self.indices = np.ascontiguousarray(graph.indices, dtype=np.int64)
        self.data = np.ascontiguousarray(graph.data, dtype=np.float64)

        self._vertex_weights = None

    @classmethod
    def from_edges(cls, sources, targets, weights=None, n_nodes=None, symmetric=True):
        """
        Build a graph from edge arrays.

        Parameters:
        -----------
        sources, targets : array-like
            Edge endpoints
        weights : array-like, optional
            Edge weights (default 1.0)
        n_nodes : int, optional
            Vertex count; defaults to max id + 1
        symmetric : bool, default=True
            If True, each edge is also added in the reverse direction
            (self-loops once). Duplicate edges have their weights summed.
        """
        src = np.asarray(sources, dtype=np.int64)
        dst = np.asarray(targets, dtype=np.int64)
        if src.shape != dst.shape:
            raise ValueError("sources and targets must have the same length")
        wts = np.ones(src.size, dtype=np.float64) if weights is None else np.asarray(weights, dtype=np.float64)
        if wts.shape != src.shape:
            raise ValueError("weights must have the same length as sources")

        if n_nodes is None:
            n_nodes = int(max(src.max(initial=-1), dst.max(initial=-1))) + 1
        if src.size and (min(src.min(), dst.min()) < 0 or max(src.max(), dst.max()) >= n_nodes):
            raise ValueError(f"Edge endpoints must lie in [0, {n_nodes - 1}]")

        if symmetric:
            loop = src == dst
            src, dst, wts = (np.concatenate([src, dst[~loop]]),
                             np.concatenate([dst, src[~loop]]),
                             np.concatenate([wts, wts[~loop]]))

        adj = sp.coo_matrix((wts, (src, dst)), shape=(n_nodes, n_nodes))
        return cls(adj.tocsr())

    @property
    def span(self):
        """Number of vertex keys."""
        return self.n_nodes

    def vertex_keys(self):
        """Vertex ids 0 .. span - 1, in CSR row order."""
        return range(self.n_nodes)

    def get_neighbors(self, node_idx):
        """
        Get neighbors of a node.

        Parameters:
        -----------
        node_idx : int
            Index of the node

        Returns:
        --------
        neighbors : numpy.ndarray
            Neighbor indices
        weights : numpy.ndarray
            Corresponding edge weights
        """
        if node_idx < 0 or node_idx >= self.n_nodes:
            raise ValueError(f"Node index {node_idx} out of range [0, {self.n_nodes-1}]")

        start, end = self.indptr[node_idx], self.indptr[node_idx+1]
        return self.indices[start:end], self.data[start:end]

    def get_degree(self, node_idx):
        """Get the degree of a node"""
        return int(self.indptr[node_idx+1] - self.indptr[node_idx])

    def vertex_weights(self):
        """Total incident edge weight of every vertex (computed once)."""
        if self._vertex_weights is None:
            self._vertex_weights = copra_vertex_weights(self.indptr, self.data)
        return self._vertex_weights

    def get_edge_list(self):
        """
        Get a list of all edges in the graph.

        Returns:
        --------
        edges : list of tuples
            List of (i, j, weight) tuples with i <= j
        """
        coo = self.graph.tocoo()
        return [(int(i), int(j), float(w)) for i, j, w in zip(coo.row, coo.col, coo.data) if i <= j]

    def apply_batch(self, deletions=(), insertions=()):
        """
        Return a new graph with a batch of edge edits applied.

        Every edit is applied in both directions. Deleting an absent edge is
        a no-op; inserting an existing edge replaces its weight.
        """
        del_u, del_v = as_deletion_arrays(deletions, self.n_nodes)
        ins_u, ins_v, ins_w = as_insertion_arrays(insertions, self.n_nodes)

        coo = self.graph.tocoo()
        row = coo.row.astype(np.int64)
        col = coo.col.astype(np.int64)
        n = np.int64(self.n_nodes)

        keys = row * n + col
        drop = np.concatenate([del_u * n + del_v, del_v * n + del_u,
                               ins_u * n + ins_v, ins_v * n + ins_u])
        keep = ~np.isin(keys, drop)

        # Deduplicate mirrored insertions, the last weight given wins
        ins_keys = np.concatenate([ins_u * n + ins_v, ins_v * n + ins_u])
        ins_wts = np.concatenate([ins_w, ins_w])
        ins_keys, first = np.unique(ins_keys[::-1], return_index=True)
        ins_wts = ins_wts[::-1][first]

        new_row = np.concatenate([row[keep], ins_keys // n])
        new_col = np.concatenate([col[keep], ins_keys % n])
        new_data = np.concatenate([coo.data[keep], ins_wts])
        adj = sp.coo_matrix((new_data, (new_row, new_col)), shape=(self.n_nodes, self.n_nodes))
        return CopraGraph(adj.tocsr())

    def __str__(self):
        n_loops = int(np.count_nonzero(self.graph.diagonal()))
        return (f"CopraGraph with {self.n_nodes} nodes, "
                f"{(self.graph.nnz - n_loops) // 2 + n_loops} edges")

    def __repr__(self):
        return self.__str__()

    def save(self, output_dir="saved_copra_graph", compress=True, verbose=False):
        """
        Save this graph to disk.

        Parameters:
            output_dir: Directory to save files
            compress: Whether to use compression for the adjacency
        """
        os.makedirs(output_dir, exist_ok=True)

        if verbose:
            print("Saving graph structure...")
        sp.save_npz(f"{output_dir}/graph_adjacency.npz", self.graph, compressed=compress)

        metadata = {
            "n_nodes": self.n_nodes,
            "nnz": int(self.graph.nnz),
        }
        with open(f"{output_dir}/metadata.json", 'w') as f:
            json.dump(metadata, f, indent=2)

        if verbose:
            print(f"Graph successfully saved to {output_dir}/")

    @classmethod
    def load(cls, input_dir="saved_copra_graph", verbose=False):
        """Load a graph saved with `save`."""
        with open(f"{input_dir}/metadata.json", 'r') as f:
            metadata = json.load(f)

        if verbose:
            print(f"Loading graph structure from {input_dir}/...")
        adjacency = sp.load_npz(f"{input_dir}/graph_adjacency.npz")
        if adjacency.shape[0] != metadata["n_nodes"]:
            raise ValueError(f"Adjacency has {adjacency.shape[0]} nodes, metadata says {metadata['n_nodes']}")
        return cls(adjacency)
