# steer.py
"""
Forward propagation from a tree node toward a sampled target.

Every propagator returns a :class:`Segment` that has already been checked
against the bounds and the obstacles, or raises PropagationFailure. Random
draws are made on the caller's thread before any candidate is evaluated, so
a seeded run is reproducible whether candidates run serially or on the
worker pool.
"""

import logging
import math
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass

import numpy as np

from .config import PropagationStrategy
from .dynamics import integrate
from .errors import PropagationFailure
from .motion_primitives import MotionPrimitiveLibrary
from .node_module import Edge, EdgeKind

logger = logging.getLogger(__name__)


@dataclass
class Segment:
    control: np.ndarray
    duration: float
    steps: int
    states: np.ndarray
    cost: float
    kind: EdgeKind = EdgeKind.CONTROL
    truncated: bool = False

    @property
    def final_state(self):
        return self.states[-1]

    def to_edge(self):
        return Edge(self.control, self.duration, self.steps, self.states, self.cost, self.kind)


def first_invalid_step(model, checker, states):
    """
    Index of the first sub-step whose state or incoming motion is invalid,
    ``len(states)`` when the whole trajectory is valid. Row 0 is the source
    state and is not re-checked.
    """
    for i in range(1, len(states)):
        prev, cur = states[i - 1], states[i]
        if not model.is_within_bounds(cur):
            return i
        free, _ = checker.segment_is_free(model.project(prev), model.project(cur),
                                          model.heading(prev), model.heading(cur))
        if not free:
            return i
    return len(states)


class Propagator:
    """
    Base class owning the worker pool candidates are evaluated on.

    Batches no larger than ``batch_threshold`` run serially on the calling
    thread.
    """

    def __init__(self, model, checker, config):
        self.model = model
        self.checker = checker
        self.config = config
        self._executor = None

    def _evaluate(self, fn, items):
        """Apply fn to every item, results in item order."""
        if len(items) <= self.config.batch_threshold:
            return [fn(item) for item in items]

        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=self.config.n_workers)
        results = [None] * len(items)
        futures = {self._executor.submit(fn, item): i for i, item in enumerate(items)}
        for future in as_completed(futures):
            results[futures[future]] = future.result()
        return results

    def propagate(self, source_state, target_state, rng):
        raise NotImplementedError

    def close(self):
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None


class RandomControlPropagator(Propagator):
    """
    Monte-Carlo propagation: a random control held for a random duration.

    With batching on, ``batch_size`` candidates are rolled out and the valid
    one ending nearest to the target wins (lowest candidate index on ties).
    """

    def _draw(self, rng):
        u = self.model.sample_control(rng)
        duration = max(self.config.min_duration_fraction, rng.uniform()) * self.config.max_duration
        return u, duration

    def rollout(self, source_state, control, duration):
        """Integrate and validate one candidate, None if it is unusable."""
        cfg = self.config
        steps = max(1, math.ceil(duration / cfg.integration_step - 1e-9))
        states = integrate(self.model, source_state, control, duration, steps, cfg.integrator)
        k = first_invalid_step(self.model, self.checker, states)

        truncated = False
        if k < len(states):
            if not cfg.allow_truncation or k < 2:
                return None
            # keep the valid prefix, whole sub-steps only
            steps = k - 1
            duration = duration * steps / (len(states) - 1)
            states = states[:k]
            truncated = True

        cost = self.model.edge_cost(states, control, duration)
        return Segment(np.asarray(control, dtype=float), duration, steps, states, cost,
                       EdgeKind.CONTROL, truncated)

    def propagate(self, source_state, target_state, rng):
        draws = [self._draw(rng) for _ in range(self.config.effective_batch_size)]
        segments = self._evaluate(lambda d: self.rollout(source_state, *d), draws)

        valid = [(i, seg) for i, seg in enumerate(segments) if seg is not None]
        if not valid:
            raise PropagationFailure("no collision-free random control")

        _, best = min(valid, key=lambda iv: (float(self.model.distance(iv[1].final_state, target_state)), iv[0]))
        return best


class MotionPrimitivePropagator(Propagator):
    """
    Propagation by lookup: the stored trajectory of the best matching
    primitive is moved into the source's frame, no integration involved.
    """

    def __init__(self, model, checker, config, library):
        super().__init__(model, checker, config)
        self.library = library

    def _place(self, source_state, primitive):
        states = self.model.from_local(source_state, primitive.states_local)
        states[0] = source_state
        if first_invalid_step(self.model, self.checker, states) < len(states):
            return None
        return Segment(primitive.control.copy(), primitive.duration, primitive.steps,
                       states, primitive.cost, EdgeKind.PRIMITIVE)

    def propagate(self, source_state, target_state, rng):
        cfg = self.config
        matches = self.library.query(source_state, target_state, cfg.primitive_low,
                                     cfg.primitive_high, limit=cfg.effective_batch_size)
        if not matches:
            raise PropagationFailure("no motion primitive within tolerance")

        segments = self._evaluate(lambda m: self._place(source_state, m[0]), matches)
        # matches are ranked best first
        for seg in segments:
            if seg is not None:
                return seg
        raise PropagationFailure("every matching motion primitive collides")


class PrimitiveFirstPropagator(Propagator):
    """
    Try the primitive library, fall back to random control, and record the
    random outcome into the library while it has room.
    """

    def __init__(self, model, checker, config, library, record=True):
        super().__init__(model, checker, config)
        self.library = library
        self.record = record
        self.primitive = MotionPrimitivePropagator(model, checker, config, library)
        self.fallback = RandomControlPropagator(model, checker, config)
        self.primitive_hits = 0
        self.fallbacks = 0

    def propagate(self, source_state, target_state, rng):
        try:
            seg = self.primitive.propagate(source_state, target_state, rng)
            self.primitive_hits += 1
            return seg
        except PropagationFailure as e:
            logger.debug("primitive lookup failed, falling back to random control: %s", e)

        self.fallbacks += 1
        seg = self.fallback.propagate(source_state, target_state, rng)
        if self.record and not seg.truncated and not self.library.is_full:
            self.library.add(source_state, seg)
        return seg

    def close(self):
        self.primitive.close()
        self.fallback.close()


def default_library(model, config):
    """Primitives from the model's canonical rest state."""
    durations = (0.5 * config.max_duration, config.max_duration)
    entry_class = model.entry_class(np.zeros(model.state_dim))
    return MotionPrimitiveLibrary.build(model, durations, config.integration_step,
                                        config.integrator, entry_classes=(entry_class,),
                                        capacity=config.primitive_capacity)


def make_propagator(model, checker, config, library=None):
    """Build the propagator selected by ``config.propagation``."""
    if config.propagation == PropagationStrategy.RANDOM_CONTROL:
        return RandomControlPropagator(model, checker, config)

    if library is None:
        library = default_library(model, config)
    if config.primitive_fallback:
        return PrimitiveFirstPropagator(model, checker, config, library)
    return MotionPrimitivePropagator(model, checker, config, library)
