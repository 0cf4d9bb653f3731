# planner.py

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

import numpy as np

from .config import Integrator
from .dynamics import integrate
from .errors import PlanningExhausted
from .node_module import EdgeKind


class PlannerStatus(Enum):
    RUNNING = "running"
    GOAL_REACHED = "goal_reached"
    EXHAUSTED = "exhausted"


@dataclass
class PlanResult:
    """
    Outcome of a call to ``SSTPlanner.plan``.

    ``success`` is True whenever a goal completion exists, even if the
    search ran until its budget was spent.
    """
    status: PlannerStatus
    success: bool
    cost: float = float("inf")
    goal_node_id: Optional[int] = None
    edges: list = field(default_factory=list)
    states: Optional[np.ndarray] = None
    stats: Optional[object] = None

    def raise_for_status(self):
        """Raise PlanningExhausted when no path to the goal was found."""
        if not self.success:
            raise PlanningExhausted("search budget exhausted without reaching the goal")
        return self


def extract_path(tree, node_id):
    """
    Backtrack from node_id to the root.

    Returns
    -------
    (list of Edge, np.array)
        Edges root first, and every sampled state along them.
    """
    return tree.path_to_root(node_id), tree.path_states(node_id)


def path_length(states, model=None):
    """Length of a state polyline, in the obstacle plane when a model is given."""
    states = np.asarray(states, dtype=float)
    if model is not None:
        states = model.project(states)
    if len(states) < 2:
        return 0.0
    return float(np.sum(np.linalg.norm(np.diff(states, axis=0), axis=1)))


def replay_path(model, root_state, edges, integrator=Integrator.EULER):
    """
    Re-integrate the stored controls of a path from root_state.

    Returns the concatenated states, comparable to ``extract_path``'s.
    Primitive edges hold no integrable history and are copied as stored.
    """
    x = np.asarray(root_state, dtype=float)
    parts = [x[np.newaxis, :]]
    for edge in edges:
        if edge.kind == EdgeKind.PRIMITIVE:
            states = model.from_local(x, model.to_local(edge.start, edge.states))
        else:
            states = integrate(model, x, edge.control, edge.duration, edge.steps, integrator)
        parts.append(states[1:])
        x = states[-1]
    return np.vstack(parts)
