# rtree_module.py

import numpy as np
import rtree.index as index

from .spatial_index import NearestNeighborIndex, _sorted_ids


class RTreeIndex(NearestNeighborIndex):
    """
    Drop-in replacement for the linear index on large trees.

    States are stored as points in an R-tree over their weighted linear
    coordinates. Angular coordinates are left out: the remaining weighted
    coordinates give a lower bound of the metric, so bounding box candidates
    are always a superset of the exact answer, which is then filtered with
    ``model.distance``.
    """

    def __init__(self, model):
        super().__init__(model)
        self._dims = list(model.linear_dims)
        self._weights = model.weights[self._dims]
        # Rtree needs at least two dimensions
        self._pad = max(0, 2 - len(self._dims))

        p = index.Property()
        p.dimension = len(self._dims) + self._pad
        self.idx = index.Index(properties=p)

        # Keep mapping from Rtree IDs -> states
        self.states = {}

    def __len__(self):
        return len(self.states)

    def __contains__(self, node_id):
        return node_id in self.states

    def _scale_coords(self, state):
        coords = np.asarray(state, dtype=float)[self._dims] * self._weights
        return tuple(coords.tolist()) + (0.0,) * self._pad

    def _bbox(self, state, radius=0.0):
        c = self._scale_coords(state)
        return tuple(x - radius for x in c) + tuple(x + radius for x in c)

    def insert(self, state, node_id):
        if node_id in self.states:
            raise KeyError(f"id {node_id} already indexed")
        state = np.asarray(state, dtype=float)
        self.idx.insert(node_id, self._bbox(state))
        self.states[node_id] = state

    def remove(self, node_id):
        state = self.states.pop(node_id)
        self.idx.delete(node_id, self._bbox(state))

    def _exact(self, state, candidates, radius=None):
        if not candidates:
            return []
        ids = np.array(candidates, dtype=np.int64)
        dists = self.model.distance(np.array([self.states[i] for i in candidates]), state)
        if radius is not None:
            mask = dists <= radius
            ids, dists = ids[mask], dists[mask]
        return _sorted_ids(ids, dists)

    def query_radius(self, state, radius):
        # this gives bounding box candidates; we check distance manually
        candidates = list(self.idx.intersection(self._bbox(state, radius)))
        return self._exact(state, candidates, radius)

    def query_k_nearest(self, state, k):
        if not self.states:
            return []
        candidates = list(self.idx.nearest(self._bbox(state), k))
        dists = self.model.distance(np.array([self.states[i] for i in candidates]), state)
        # the k lower-bound-nearest give an upper bound on the k-th true distance
        kth = np.sort(dists)[min(k, len(dists)) - 1]
        return self.query_radius(state, kth)[:k]
