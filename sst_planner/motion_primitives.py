# motion_primitives.py
"""
Library of precomputed motion primitives.

A primitive is a constant control held for a fixed duration, stored as the
trajectory it produces expressed in the local frame of the state it starts
from. Primitives are bucketed by the model's entry class (e.g. rounded body
velocities for the boat) so a primitive is only replayed from states whose
dynamics match the state it was recorded from.
"""

import logging
import math
from collections import defaultdict
from dataclasses import dataclass

import numpy as np

from .config import Integrator, PRIMITIVE_CAPACITY
from .dynamics import integrate

logger = logging.getLogger(__name__)


@dataclass
class MotionPrimitive:
    entry_class: tuple
    control: np.ndarray
    duration: float
    steps: int
    states_local: np.ndarray
    cost: float

    @property
    def displacement(self):
        """End state relative to the start frame."""
        return self.states_local[-1]


class MotionPrimitiveLibrary:

    def __init__(self, model, capacity=PRIMITIVE_CAPACITY):
        self.model = model
        self.capacity = capacity
        self.lookup = defaultdict(list)
        self._keys = set()
        self._size = 0

    def __len__(self):
        return self._size

    @property
    def is_full(self):
        return self._size >= self.capacity

    def add_motion(self, entry_class, origin, states, control, duration, steps, cost):
        if self.is_full:
            return False
        control = np.asarray(control, dtype=float)
        key = (entry_class, tuple(np.round(control, 6)), round(float(duration), 6))
        if key in self._keys:
            return False
        self._keys.add(key)
        local = self.model.to_local(origin, np.asarray(states, dtype=float))
        self.lookup[entry_class].append(
            MotionPrimitive(entry_class, control, float(duration), int(steps), local, float(cost)))
        self._size += 1
        return True

    def add(self, source_state, segment):
        """Record a propagated segment starting at source_state."""
        return self.add_motion(self.model.entry_class(source_state), source_state,
                               segment.states, segment.control, segment.duration,
                               segment.steps, segment.cost)

    @classmethod
    def build(cls, model, durations, step, integrator=Integrator.EULER,
              controls=None, entry_classes=((),), capacity=PRIMITIVE_CAPACITY):
        """
        Precompute primitives for every (entry class, control, duration).

        Parameters
        ----------
        model : KinodynamicModel
            Dynamics to integrate.
        durations : iterable of float
            Durations each control is held for.
        step : float
            Integration step.
        controls : list of np.array, optional
            Defaults to ``model.primitive_controls()``.
        entry_classes : iterable of tuple
            Entry classes to build from their canonical state.
        """
        library = cls(model, capacity=capacity)
        if controls is None:
            controls = model.primitive_controls()
        for entry_class in entry_classes:
            origin = model.canonical_state(entry_class)
            for control in controls:
                for duration in durations:
                    steps = max(1, math.ceil(duration / step - 1e-9))
                    states = integrate(model, origin, control, duration, steps, integrator)
                    cost = model.edge_cost(states, control, duration)
                    library.add_motion(entry_class, origin, states, control, duration, steps, cost)
        logger.debug("built %d motion primitives", len(library))
        return library

    def query(self, source_state, target_state, low, high, limit=1):
        """
        Primitives from source_state's entry class that move it toward
        target_state.

        The match error of a primitive is the distance between its end state
        and the target, both in the source frame, relative to the distance
        from the source itself to the target. Errors at or below ``low`` are
        exact matches and are ranked by cost; the remaining ones up to
        ``high`` are ranked by error. Primitives that do not bring the state
        closer to the target are never returned.

        Returns
        -------
        list of (MotionPrimitive, float)
            At most ``limit`` primitives with their match error, best first.
        """
        candidates = self.lookup.get(self.model.entry_class(source_state))
        if not candidates:
            return []

        desired = self.model.to_local(source_state, target_state)
        here = self.model.to_local(source_state, source_state)
        reference = float(self.model.distance(here, desired))
        if reference < 1e-9:
            return []

        ends = np.array([p.displacement for p in candidates])
        errors = self.model.distance(ends, desired) / reference

        exact = []
        near = []
        for i, (p, err) in enumerate(zip(candidates, errors)):
            if err >= 1.0 or err > high:
                continue
            if err <= low:
                exact.append((p.cost, err, i))
            else:
                near.append((err, p.cost, i))
        exact.sort()
        near.sort()

        ranked = [(candidates[i], float(err)) for _, err, i in exact]
        ranked += [(candidates[i], float(err)) for err, _, i in near]
        return ranked[:limit]
