# node_module.py

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

import numpy as np


class EdgeKind(Enum):
    CONTROL = 0     # random control propagation
    PRIMITIVE = 1   # motion primitive lookup


@dataclass
class Edge:
    """
    Trajectory segment leading into a node.

    ``states`` holds the sampled sub-segment states: the first row is the
    parent state and the last row the child state. Re-integrating
    ``control`` for ``duration`` in ``steps`` equal sub-steps from the
    parent reproduces them.
    """
    control: np.ndarray
    duration: float
    steps: int
    states: np.ndarray
    cost: float
    kind: EdgeKind = EdgeKind.CONTROL

    @property
    def start(self):
        return self.states[0]

    @property
    def end(self):
        return self.states[-1]


@dataclass
class Node:
    """
    Tree node.

    Parameters
    ----------
    id : int
        Arena id, never reused.
    state : np.array
        State vector, e.g. [x, y] for a point, [x, y, theta] for a car,
        [x, y, theta, u, v, r] for the boat.
    """
    id: int
    state: np.ndarray
    parent_id: Optional[int] = None
    edge: Optional[Edge] = None
    cost: float = 0.0          # cost-to-come
    active: bool = True
    child_ids: set = field(default_factory=set)

    @property
    def is_root(self):
        return self.parent_id is None
