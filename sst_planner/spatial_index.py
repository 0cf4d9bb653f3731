# spatial_index.py

import math
from collections import defaultdict

import numpy as np

from .config import IndexKind, NeighborCountPolicy
from .errors import ConfigurationError

GRID_SIZE = 1.0


def neighbor_count(policy, n, constant=10):
    """
    Number of nearest candidates considered for selection in a tree of n nodes.
    """
    policy = NeighborCountPolicy(policy)
    if policy is NeighborCountPolicy.CONSTANT:
        k = constant
    elif policy is NeighborCountPolicy.LOG:
        k = math.ceil(math.log(n)) if n > 1 else 1
    else:
        k = math.ceil(math.sqrt(n))
    return max(1, int(k))


def _sorted_ids(ids, dists):
    # increasing distance, ties by id
    order = np.lexsort((ids, dists))
    return ids[order].tolist()


class NearestNeighborIndex:
    """
    Interface of the state indices used for tree nodes and witness anchors.

    Distances are measured with ``model.distance``.
    """

    def __init__(self, model):
        self.model = model

    def insert(self, state, node_id):
        raise NotImplementedError

    def remove(self, node_id):
        raise NotImplementedError

    def query_radius(self, state, radius):
        """Ids within radius of state, nearest first."""
        raise NotImplementedError

    def query_k_nearest(self, state, k):
        """The k nearest ids, nearest first (ties broken by id)."""
        raise NotImplementedError

    def __len__(self):
        raise NotImplementedError

    def __contains__(self, node_id):
        raise NotImplementedError


class LinearIndex(NearestNeighborIndex):
    """Brute force index: one vectorised distance evaluation per query."""

    def __init__(self, model, capacity=64):
        super().__init__(model)
        self._states = np.empty((capacity, model.state_dim))
        self._ids = np.empty(capacity, dtype=np.int64)
        self._pos = {}

    def __len__(self):
        return len(self._pos)

    def __contains__(self, node_id):
        return node_id in self._pos

    def insert(self, state, node_id):
        if node_id in self._pos:
            raise KeyError(f"id {node_id} already indexed")
        n = len(self._pos)
        if n == len(self._ids):
            self._states = np.concatenate([self._states, np.empty_like(self._states)])
            self._ids = np.concatenate([self._ids, np.empty_like(self._ids)])
        self._states[n] = state
        self._ids[n] = node_id
        self._pos[node_id] = n

    def remove(self, node_id):
        i = self._pos.pop(node_id)
        last = len(self._pos)
        if i != last:
            moved = int(self._ids[last])
            self._states[i] = self._states[last]
            self._ids[i] = moved
            self._pos[moved] = i

    def _distances(self, state):
        n = len(self._pos)
        return self._ids[:n], self.model.distance(self._states[:n], state)

    def query_radius(self, state, radius):
        ids, dists = self._distances(state)
        mask = dists <= radius
        return _sorted_ids(ids[mask], dists[mask])

    def query_k_nearest(self, state, k):
        if not self._pos:
            return []
        ids, dists = self._distances(state)
        return _sorted_ids(ids, dists)[:k]


class GridIndex(NearestNeighborIndex):
    """
    Hash grid over the projected (obstacle plane) coordinates.

    Cells only prune candidates; every answer is filtered with the exact
    metric, which is never smaller than the weighted planar distance.
    """

    def __init__(self, model, grid_size=GRID_SIZE):
        super().__init__(model)
        self.grid_size = float(grid_size)
        self.grid = defaultdict(set)
        self.states = {}
        self._scale = model.weights[list(model.config_dims)]

    def __len__(self):
        return len(self.states)

    def __contains__(self, node_id):
        return node_id in self.states

    def _key(self, p):
        return (int(p[0] // self.grid_size), int(p[1] // self.grid_size))

    def insert(self, state, node_id):
        if node_id in self.states:
            raise KeyError(f"id {node_id} already indexed")
        state = np.asarray(state, dtype=float)
        self.states[node_id] = state
        self.grid[self._key(self.model.project(state))].add(node_id)

    def remove(self, node_id):
        state = self.states.pop(node_id)
        key = self._key(self.model.project(state))
        self.grid[key].discard(node_id)
        if not self.grid[key]:
            del self.grid[key]

    def _box_candidates(self, p, half_extent):
        lo = self._key(p - half_extent)
        hi = self._key(p + half_extent)
        n_cells = (hi[0] - lo[0] + 1) * (hi[1] - lo[1] + 1)
        out = []
        if n_cells > len(self.grid):
            for key, ids in self.grid.items():
                if lo[0] <= key[0] <= hi[0] and lo[1] <= key[1] <= hi[1]:
                    out.extend(ids)
        else:
            for gx in range(lo[0], hi[0] + 1):
                for gy in range(lo[1], hi[1] + 1):
                    out.extend(self.grid.get((gx, gy), ()))
        return out

    def _filter(self, state, candidates, radius=None):
        if not candidates:
            return np.empty(0, dtype=np.int64), np.empty(0)
        ids = np.array(candidates, dtype=np.int64)
        dists = self.model.distance(np.array([self.states[i] for i in candidates]), state)
        if radius is not None:
            mask = dists <= radius
            ids, dists = ids[mask], dists[mask]
        return ids, dists

    def query_radius(self, state, radius):
        p = self.model.project(state)
        candidates = self._box_candidates(p, radius / self._scale)
        return _sorted_ids(*self._filter(state, candidates, radius))

    def query_k_nearest(self, state, k):
        if not self.states:
            return []
        if k >= len(self.states):
            return _sorted_ids(*self._filter(state, list(self.states)))
        p = self.model.project(state)
        extent = self.grid_size
        while True:
            candidates = self._box_candidates(p, np.full(2, extent))
            if len(candidates) >= k:
                break
            extent *= 2.0
        _, dists = self._filter(state, candidates)
        kth = np.partition(dists, k - 1)[k - 1]
        return self.query_radius(state, kth)[:k]


def make_index(kind, model):
    """Build a NearestNeighborIndex of the given IndexKind."""
    try:
        kind = IndexKind(kind)
    except ValueError:
        raise ConfigurationError(f"unknown index kind {kind!r}")
    if kind is IndexKind.LINEAR:
        return LinearIndex(model)
    if kind is IndexKind.GRID:
        return GridIndex(model)
    from .rtree_module import RTreeIndex
    return RTreeIndex(model)
