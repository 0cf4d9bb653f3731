"""Stable Sparse RRT kinodynamic motion planning."""

from .boat_dynamics import BoatModel
from .collision import Circle, CollisionChecker, ObstacleSet, Polygon
from .config import (IndexKind, Integrator, NeighborCountPolicy, PlannerConfig,
                     PropagationStrategy, SelectionPolicy)
from .dynamics import DubinsCar, KinodynamicModel, PointMass, make_model
from .errors import (ConfigurationError, InvariantViolation, ObstacleFileError,
                     PlannerError, PlanningExhausted, PropagationFailure)
from .motion_primitives import MotionPrimitive, MotionPrimitiveLibrary
from .planner import PlannerStatus, PlanResult, extract_path, path_length, replay_path
from .sampler import GoalRegion
from .sst import IterationOutcome, PlannerStats, SSTPlanner, TreeSnapshot

__version__ = "0.1.0"
