# sst.py
"""
Stable Sparse RRT.

The tree grows by forward propagation only. A witness set partitions the
state space into balls of radius delta_s; inside each ball only the
cheapest node ever reached stays active, dominated nodes stop being
expanded and are removed once no descendant needs them.
"""

import logging
import math
import time
from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

import numpy as np

from .config import PlannerConfig, SelectionPolicy
from .errors import ConfigurationError, InvariantViolation, PropagationFailure
from .node_module import EdgeKind
from .planner import PlannerStatus, PlanResult, extract_path
from .sampler import GoalRegion, TargetSampler
from .spatial_index import make_index, neighbor_count
from .steer import make_propagator
from .tree import PlanningTree
from .witness import DiscoveryRateMonitor, WitnessSet

logger = logging.getLogger(__name__)


class IterationOutcome(Enum):
    ADMITTED = "admitted"
    REJECTED = "rejected"
    PROPAGATION_FAILED = "propagation_failed"


@dataclass
class PlannerStats:
    iterations: int = 0
    admitted: int = 0
    rejected: int = 0
    propagation_failures: int = 0
    pruned: int = 0
    witnesses: int = 0
    primitive_invocations: int = 0
    goal_completions: int = 0
    timings: dict = field(default_factory=lambda: defaultdict(float))

    def summary(self):
        lines = [
            f"iterations:            {self.iterations}",
            f"admitted:              {self.admitted}",
            f"rejected:              {self.rejected}",
            f"propagation failures:  {self.propagation_failures}",
            f"pruned:                {self.pruned}",
            f"witnesses:             {self.witnesses}",
            f"primitive invocations: {self.primitive_invocations}",
            f"goal completions:      {self.goal_completions}",
        ]
        for phase, seconds in self.timings.items():
            lines.append(f"time in {phase + ':':<14} {seconds:.3f}s")
        return "\n".join(lines)


@dataclass
class TreeSnapshot:
    """Read-only copy of the search state in the obstacle plane."""
    node_ids: list
    nodes: np.ndarray
    active: np.ndarray
    edges: list
    witnesses: list
    best_path: Optional[np.ndarray]
    start: np.ndarray
    goal_center: np.ndarray
    goal_radius: float
    sample_bounds: np.ndarray


class SSTPlanner:
    """
    SST search from a start state to a goal region.

    Parameters
    ----------
    model : KinodynamicModel
        State space and dynamics.
    checker : CollisionChecker
        Static obstacle queries.
    start : np.array
        Start state, must be valid.
    goal : GoalRegion or (center, radius)
        Goal disc in the obstacle plane.
    config : PlannerConfig, optional
        Defaults to ``PlannerConfig()``.
    sample_bounds : array-like, optional
        Initial uniform sampling box, full state bounds or the 2x2 bounds of
        the obstacle plane. Defaults to the model bounds.
    library : MotionPrimitiveLibrary, optional
        Library used by the motion primitive strategies.
    """

    def __init__(self, model, checker, start, goal, config=None, sample_bounds=None,
                 library=None):
        self.config = (config if config is not None else PlannerConfig()).validate()
        self.model = model
        self.checker = checker
        self.start = np.array(start, dtype=float)
        if self.start.shape != (model.state_dim,):
            raise ConfigurationError(
                f"start state has shape {self.start.shape}, model {model.name} expects ({model.state_dim},)")
        if not model.is_within_bounds(self.start) or \
                not checker.is_free(model.project(self.start), model.heading(self.start)):
            raise ConfigurationError("start state is out of bounds or in collision")

        self.goal = goal if isinstance(goal, GoalRegion) else GoalRegion(*goal)
        self.propagator = make_propagator(model, checker, self.config, library)
        self.sampler = TargetSampler(model, self.goal, self.config, sample_bounds)
        self.reset()

    # ------------------------------------------------------------------
    # --- Lifecycle ---
    # ------------------------------------------------------------------
    def reset(self):
        """Restart the search from the start state."""
        cfg = self.config
        self.rng = np.random.default_rng(cfg.seed)
        self.tree = PlanningTree(self.start)
        self.node_index = make_index(cfg.index, self.model)
        self.node_index.insert(self.start, self.tree.root_id)

        self.witnesses = WitnessSet(self.model, cfg.index)
        wid, _ = self.witnesses.find_or_create(self.start, cfg.delta_s)
        self.witnesses.try_update_representative(wid, self.tree.root_id, 0.0)

        self.monitor = DiscoveryRateMonitor(cfg.discovery_window, cfg.discovery_threshold)
        self.sampler.reset()

        self.stats = PlannerStats(witnesses=len(self.witnesses))
        self.status = PlannerStatus.RUNNING
        self.best_goal_id = None
        self.best_cost = float("inf")
        if self.goal.contains(self.model.project(self.start)):
            self._record_goal(self.tree.root_id, 0.0)

    def close(self):
        """Shut down the propagation worker pool."""
        self.propagator.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    # ------------------------------------------------------------------
    # --- Selection ---
    # ------------------------------------------------------------------
    def _select(self, target):
        policy = self.config.selection
        if policy == SelectionPolicy.UNIFORM:
            return self.tree.random_active(self.rng)
        if policy == SelectionPolicy.FRONTIER:
            return self._select_frontier()
        return self._select_best_near(target)

    def _select_frontier(self):
        cfg = self.config
        candidates = [self.tree.random_active(self.rng) for _ in range(cfg.frontier_samples)]
        scored = []
        for nid in candidates:
            node = self.tree.node(nid)
            scored.append((node.cost + cfg.frontier_child_weight * len(node.child_ids), nid))
        scored.sort()
        best = scored[:max(1, len(scored) // 2)]
        return best[int(self.rng.integers(len(best)))][1]

    def _select_best_near(self, target):
        """Cheapest active node within delta_bn of the target, else the nearest one."""
        cfg = self.config
        k = neighbor_count(cfg.neighbor_policy, len(self.node_index), cfg.neighbor_constant)
        ids = self.node_index.query_k_nearest(target, k)
        states = np.array([self.tree.node(i).state for i in ids])
        dists = self.model.distance(states, target)

        best = None
        for nid, d in zip(ids, dists):
            if d <= cfg.delta_bn:
                cost = self.tree.cost(nid)
                if best is None or cost < best[0]:
                    best = (cost, nid)
        if best is not None:
            return best[1]
        return ids[0]

    # ------------------------------------------------------------------
    # --- Iteration ---
    # ------------------------------------------------------------------
    def step(self):
        """Run one iteration, return its IterationOutcome."""
        cfg = self.config
        stats = self.stats
        timings = stats.timings
        stats.iterations += 1

        t0 = time.perf_counter()
        target = self.sampler.sample(self.rng)
        t1 = time.perf_counter()
        parent_id = self._select(target)
        parent = self.tree.node(parent_id)
        t2 = time.perf_counter()
        timings["sampling"] += t1 - t0
        timings["selection"] += t2 - t1

        try:
            segment = self.propagator.propagate(parent.state, target, self.rng)
        except PropagationFailure as e:
            timings["propagation"] += time.perf_counter() - t2
            stats.propagation_failures += 1
            self._record_discovery(False)
            logger.debug("iteration %d: propagation from %d failed: %s",
                         stats.iterations, parent_id, e)
            return IterationOutcome.PROPAGATION_FAILED
        t3 = time.perf_counter()
        timings["propagation"] += t3 - t2
        if segment.kind == EdgeKind.PRIMITIVE:
            stats.primitive_invocations += 1

        outcome = self._admit(parent_id, segment)
        timings["admission"] += time.perf_counter() - t3

        if cfg.check_invariants:
            self.check_invariants()
        return outcome

    def _admit(self, parent_id, segment):
        cfg = self.config
        x_new = segment.final_state
        cost = self.tree.cost(parent_id) + segment.cost

        wid, is_new = self.witnesses.find_or_create(x_new, cfg.delta_s)
        self._record_discovery(is_new)
        self.stats.witnesses = len(self.witnesses)

        new_id = self.tree.peek_next_id()
        accepted, previous = self.witnesses.try_update_representative(wid, new_id, cost)
        if not accepted:
            self.stats.rejected += 1
            return IterationOutcome.REJECTED

        self.tree.append(parent_id, segment.to_edge(), x_new, cost)
        self.node_index.insert(x_new, new_id)
        self.stats.admitted += 1

        if previous is not None:
            self._dominate(previous)

        if self.goal.contains(self.model.project(x_new)):
            self.stats.goal_completions += 1
            if cost < self.best_cost:
                self._record_goal(new_id, cost)
        return IterationOutcome.ADMITTED

    def _record_discovery(self, is_new):
        """Feed the discovery window, a failed propagation counts as no new witness."""
        self.monitor.record(is_new)
        self.sampler.update_disturbance(self.monitor)

    def _dominate(self, node_id):
        """Deactivate a replaced representative and prune what it leaves dead."""
        self.tree.deactivate(node_id)
        self.node_index.remove(node_id)
        if not self.config.pruning:
            return
        removed = self.tree.prune_if_dead(node_id)
        self.stats.pruned += len(removed)

    def _record_goal(self, node_id, cost):
        if self.best_goal_id is not None:
            previous = self.best_goal_id
            self.tree.unpin(previous)
            if self.config.pruning and not self.tree.is_pruned(previous):
                self.stats.pruned += len(self.tree.prune_if_dead(previous))
        self.tree.pin(node_id)
        self.best_goal_id = node_id
        self.best_cost = cost
        self.sampler.set_best_path(self.tree.path_states(node_id))
        logger.info("path to goal found at iteration %d, cost %.3f",
                    self.stats.iterations, cost)
        if self.config.stop_on_goal:
            self.status = PlannerStatus.GOAL_REACHED

    def plan(self, max_iterations=None, time_budget=None, callback=None):
        """
        Iterate until the iteration cap, the time budget or, with
        ``stop_on_goal``, the first goal completion.

        The time budget is checked between iterations only.

        Parameters
        ----------
        max_iterations : int, optional
            Defaults to ``config.max_iterations``.
        time_budget : float, optional
            Wall clock seconds, defaults to ``config.time_budget``.
        callback : callable, optional
            Called as ``callback(planner, outcome)`` after every iteration.
        """
        cfg = self.config
        if max_iterations is None:
            max_iterations = cfg.max_iterations
        if time_budget is None:
            time_budget = cfg.time_budget
        deadline = None if time_budget is None else time.perf_counter() + time_budget

        if self.status != PlannerStatus.GOAL_REACHED:
            self.status = PlannerStatus.RUNNING
        for i in range(max_iterations):
            if self.status == PlannerStatus.GOAL_REACHED:
                break
            if deadline is not None and time.perf_counter() >= deadline:
                logger.warning("time budget of %.2fs spent after %d iterations", time_budget, i)
                break
            outcome = self.step()
            if callback is not None:
                callback(self, outcome)

        if self.status == PlannerStatus.RUNNING:
            self.status = PlannerStatus.EXHAUSTED
        logger.info("search finished (%s), best cost %.3f\n%s",
                    self.status.value, self.best_cost, self.stats.summary())
        return self.result()

    # ------------------------------------------------------------------
    # --- Queries ---
    # ------------------------------------------------------------------
    def result(self):
        if self.best_goal_id is None:
            return PlanResult(self.status, False, stats=self.stats)
        edges, states = extract_path(self.tree, self.best_goal_id)
        return PlanResult(self.status, True, self.best_cost, self.best_goal_id,
                          edges, states, self.stats)

    def check_invariants(self):
        """Raise InvariantViolation if the tree or the witness set is inconsistent."""
        self.tree.validate()
        for witness in self.witnesses:
            rep = witness.representative_id
            if rep is None:
                continue
            node = self.tree.node(rep)
            if not node.active:
                raise InvariantViolation(f"representative {rep} of witness {witness.id} is inactive")
            if not math.isclose(node.cost, witness.representative_cost, abs_tol=1e-9):
                raise InvariantViolation(f"witness {witness.id} caches a stale cost")
        if len(self.node_index) != self.tree.active_count:
            raise InvariantViolation("node index does not match the active set")

    def snapshot(self):
        model = self.model
        node_ids = list(self.tree.nodes)
        nodes = [self.tree.nodes[i] for i in node_ids]
        edges = [(model.project(n.edge.states), n.edge.kind) for n in nodes if n.edge is not None]
        witnesses = [(model.project(anchor), model.project(self.tree.node(rep).state))
                     for anchor, rep in self.witnesses.pairs()]
        best_path = None
        if self.best_goal_id is not None:
            best_path = model.project(self.tree.path_states(self.best_goal_id))
        return TreeSnapshot(
            node_ids=node_ids,
            nodes=model.project(np.array([n.state for n in nodes])),
            active=np.array([n.active for n in nodes]),
            edges=edges,
            witnesses=witnesses,
            best_path=best_path,
            start=model.project(self.start),
            goal_center=self.goal.center.copy(),
            goal_radius=self.goal.radius,
            sample_bounds=self.sampler.current_bounds()[list(model.config_dims)],
        )
