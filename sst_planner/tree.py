# tree.py

import logging
import math
from collections import deque

import numpy as np

from .errors import InvariantViolation
from .node_module import Node

logger = logging.getLogger(__name__)


class PlanningTree:
    """
    Arena of tree nodes addressed by integer id.

    Ids come from a monotonic counter and are never recycled: pruned ids are
    tombstoned, and looking one up raises InvariantViolation so a stale
    reference is caught instead of silently reading another node.
    """

    def __init__(self, root_state, cost_tolerance=1e-9):
        self.cost_tolerance = cost_tolerance
        self.nodes = {}
        self._next_id = 0
        self._tombstones = set()
        self._pinned = set()

        # active ids as an indexed list so uniform draws are O(1)
        self._active_ids = []
        self._active_pos = {}

        self.admitted_count = 0
        self.pruned_count = 0

        root = Node(self._issue_id(), np.array(root_state, dtype=float))
        self.root_id = root.id
        self.nodes[root.id] = root
        self._activate(root.id)

    def _issue_id(self):
        nid = self._next_id
        self._next_id += 1
        return nid

    def __len__(self):
        return len(self.nodes)

    def __contains__(self, node_id):
        return node_id in self.nodes

    def __iter__(self):
        return iter(self.nodes.values())

    @property
    def root(self):
        return self.nodes[self.root_id]

    def peek_next_id(self):
        """Id the next call to append will return."""
        return self._next_id

    def node(self, node_id):
        try:
            return self.nodes[node_id]
        except KeyError:
            if node_id in self._tombstones:
                raise InvariantViolation(f"stale reference to pruned node {node_id}")
            raise InvariantViolation(f"unknown node id {node_id}")

    def cost(self, node_id):
        return self.node(node_id).cost

    def is_pruned(self, node_id):
        return node_id in self._tombstones

    # ------------------------------------------------------------------
    # --- Active set ---
    # ------------------------------------------------------------------
    def _activate(self, node_id):
        self._active_pos[node_id] = len(self._active_ids)
        self._active_ids.append(node_id)

    @property
    def active_ids(self):
        return list(self._active_ids)

    @property
    def active_count(self):
        return len(self._active_ids)

    def random_active(self, rng):
        """Uniform draw among active nodes."""
        return self._active_ids[int(rng.integers(len(self._active_ids)))]

    def deactivate(self, node_id):
        node = self.node(node_id)
        if not node.active:
            return
        if node.is_root:
            raise InvariantViolation("the root can not be dominated")
        node.active = False
        i = self._active_pos.pop(node_id)
        last = self._active_ids.pop()
        if last != node_id:
            self._active_ids[i] = last
            self._active_pos[last] = i

    def pin(self, node_id):
        """Protect a node from physical removal."""
        self.node(node_id)
        self._pinned.add(node_id)

    def unpin(self, node_id):
        self._pinned.discard(node_id)

    # ------------------------------------------------------------------
    # --- Growth and pruning ---
    # ------------------------------------------------------------------
    def append(self, parent_id, edge, state, cost):
        """Add an active child of parent_id reached through edge, return its id."""
        parent = self.node(parent_id)
        expected = parent.cost + edge.cost
        if cost < 0 or not math.isclose(cost, expected, rel_tol=1e-9, abs_tol=self.cost_tolerance):
            raise InvariantViolation(
                f"cost {cost} of new child of {parent_id} does not match {expected}")

        node = Node(self._issue_id(), np.array(state, dtype=float),
                    parent_id=parent_id, edge=edge, cost=float(cost))
        self.nodes[node.id] = node
        parent.child_ids.add(node.id)
        self._activate(node.id)
        self.admitted_count += 1
        return node.id

    def prune_if_dead(self, node_id):
        """
        Remove node_id if it is inactive and childless, then repeat on its
        parent, stopping at the root, at an active node, at a node that still
        has children or at a pinned node.

        Returns
        -------
        list of int
            Ids removed, leaf first.
        """
        removed = []
        current = node_id
        while current is not None:
            node = self.nodes.get(current)
            if node is None or node.is_root or node.active or node.child_ids \
                    or current in self._pinned:
                break
            parent = self.node(node.parent_id)
            parent.child_ids.discard(current)
            del self.nodes[current]
            self._tombstones.add(current)
            removed.append(current)
            current = parent.id

        if removed:
            self.pruned_count += len(removed)
            logger.debug("pruned %d nodes starting at %d", len(removed), node_id)
        return removed

    # ------------------------------------------------------------------
    # --- Paths ---
    # ------------------------------------------------------------------
    def path_node_ids(self, node_id):
        """Node ids from the root down to node_id."""
        path = []
        current = node_id
        while current is not None:
            if len(path) > len(self.nodes):
                raise InvariantViolation(f"cycle detected walking up from {node_id}")
            path.append(current)
            current = self.node(current).parent_id
        path.reverse()
        return path

    def path_to_root(self, node_id):
        """Edges from the root down to node_id, root first."""
        return [self.nodes[i].edge for i in self.path_node_ids(node_id)[1:]]

    def path_states(self, node_id):
        """Every sampled state along the path from the root to node_id."""
        edges = self.path_to_root(node_id)
        if not edges:
            return self.root.state[np.newaxis, :].copy()
        parts = [edges[0].states] + [e.states[1:] for e in edges[1:]]
        return np.vstack(parts)

    # ------------------------------------------------------------------
    # --- Consistency ---
    # ------------------------------------------------------------------
    def validate(self, tolerance=1e-6):
        """Raise InvariantViolation if the arena is not a consistent arborescence."""
        root = self.nodes.get(self.root_id)
        if root is None or root.parent_id is not None or root.cost != 0.0:
            raise InvariantViolation("root missing or malformed")

        for node in self.nodes.values():
            for child_id in node.child_ids:
                child = self.nodes.get(child_id)
                if child is None:
                    raise InvariantViolation(f"node {node.id} lists dead child {child_id}")
                if child.parent_id != node.id:
                    raise InvariantViolation(f"child {child_id} does not point back to {node.id}")
            if node.is_root:
                continue
            parent = self.nodes.get(node.parent_id)
            if parent is None:
                raise InvariantViolation(f"orphaned node {node.id}")
            if node.id not in parent.child_ids:
                raise InvariantViolation(f"parent {parent.id} does not list child {node.id}")
            if abs(node.cost - (parent.cost + node.edge.cost)) > tolerance:
                raise InvariantViolation(f"cost-to-come of node {node.id} is inconsistent")

        # every node reachable from the root exactly once
        seen = set()
        queue = deque([self.root_id])
        while queue:
            nid = queue.popleft()
            if nid in seen:
                raise InvariantViolation(f"node {nid} reached twice")
            seen.add(nid)
            queue.extend(self.nodes[nid].child_ids)
        if len(seen) != len(self.nodes):
            raise InvariantViolation(
                f"{len(self.nodes) - len(seen)} nodes unreachable from the root")

        active = {n.id for n in self.nodes.values() if n.active}
        if active != set(self._active_ids):
            raise InvariantViolation("active index out of sync")
        if self._pinned - set(self.nodes):
            raise InvariantViolation("pinned node was pruned")
        return True
