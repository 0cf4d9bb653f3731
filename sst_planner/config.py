# config.py

from dataclasses import dataclass, fields, replace
from enum import Enum
from typing import Optional

from .errors import ConfigurationError

# Sparsity
DELTA_S = 0.25     # witness radius
DELTA_BN = 0.5     # best-near selection radius

# Sampling parameters
GOAL_BIAS = 0.05   # probability of sampling inside the goal region
FRONTIER_SAMPLES = 10
FRONTIER_CHILD_WEIGHT = 0.1
NEIGHBOR_CONSTANT = 10

# Propagation
MAX_DURATION = 1.0           # longest random propagation (seconds)
MIN_DURATION_FRACTION = 0.1  # durations are drawn from [0.1, 1] * MAX_DURATION
INTEGRATION_STEP = 0.05
BATCH_SIZE = 10
BATCH_THRESHOLD = 4          # below this many candidates evaluate serially

# Motion primitives
PRIMITIVE_CAPACITY = 750
PRIMITIVE_THRESH_LOW = 0.05
PRIMITIVE_THRESH_HIGH = 0.3

# Witness discovery monitor
DISCOVERY_WINDOW = 50
DISCOVERY_THRESHOLD = 0.1
DISTURBANCE_GROWTH = 2.0
DISTURBANCE_MAX_LEVEL = 8

# Path refinement
IMPORTANCE_RATIO = 0.5
IMPORTANCE_SIGMA = 0.5

# Budget
MAX_ITERATIONS = 5000


class SelectionPolicy(str, Enum):
    UNIFORM = "uniform"
    FRONTIER = "frontier"
    BEST_NEAR = "best_near"


class NeighborCountPolicy(str, Enum):
    CONSTANT = "constant"
    LOG = "log"
    SQRT = "sqrt"


class Integrator(str, Enum):
    EULER = "euler"
    RK4 = "rk4"


class PropagationStrategy(str, Enum):
    RANDOM_CONTROL = "random_control"
    MOTION_PRIMITIVE = "motion_primitive"


class IndexKind(str, Enum):
    LINEAR = "linear"
    GRID = "grid"
    RTREE = "rtree"


_ENUM_FIELDS = {
    "selection": SelectionPolicy,
    "neighbor_policy": NeighborCountPolicy,
    "integrator": Integrator,
    "propagation": PropagationStrategy,
    "index": IndexKind,
}


@dataclass
class PlannerConfig:
    """
    Runtime configuration of the SST planner.

    Every algorithmic variant (selection scheme, nearest neighbour count,
    integrator, batch propagation, pruning, witness disturbance) is chosen
    here, so a single installation can run all of them side by side.
    """
    seed: Optional[int] = None
    max_iterations: int = MAX_ITERATIONS
    time_budget: Optional[float] = None
    stop_on_goal: bool = False

    delta_s: float = DELTA_S
    delta_bn: float = DELTA_BN
    goal_bias: float = GOAL_BIAS

    selection: SelectionPolicy = SelectionPolicy.UNIFORM
    frontier_samples: int = FRONTIER_SAMPLES
    frontier_child_weight: float = FRONTIER_CHILD_WEIGHT
    neighbor_policy: NeighborCountPolicy = NeighborCountPolicy.SQRT
    neighbor_constant: int = NEIGHBOR_CONSTANT
    index: IndexKind = IndexKind.LINEAR

    propagation: PropagationStrategy = PropagationStrategy.RANDOM_CONTROL
    integrator: Integrator = Integrator.EULER
    max_duration: float = MAX_DURATION
    min_duration_fraction: float = MIN_DURATION_FRACTION
    integration_step: float = INTEGRATION_STEP
    batch_propagation: bool = False
    batch_size: int = BATCH_SIZE
    batch_threshold: int = BATCH_THRESHOLD
    n_workers: Optional[int] = None
    allow_truncation: bool = False

    primitive_capacity: int = PRIMITIVE_CAPACITY
    primitive_low: float = PRIMITIVE_THRESH_LOW
    primitive_high: float = PRIMITIVE_THRESH_HIGH
    primitive_fallback: bool = True

    pruning: bool = True

    witness_disturbance: bool = True
    discovery_window: int = DISCOVERY_WINDOW
    discovery_threshold: float = DISCOVERY_THRESHOLD
    disturbance_growth: float = DISTURBANCE_GROWTH
    disturbance_max_level: int = DISTURBANCE_MAX_LEVEL

    importance_sampling: bool = False
    importance_ratio: float = IMPORTANCE_RATIO
    importance_sigma: float = IMPORTANCE_SIGMA

    check_invariants: bool = False

    def __post_init__(self):
        for name, enum_cls in _ENUM_FIELDS.items():
            value = getattr(self, name)
            if isinstance(value, enum_cls):
                continue
            try:
                setattr(self, name, enum_cls(value))
            except ValueError:
                choices = ", ".join(e.value for e in enum_cls)
                raise ConfigurationError(
                    f"invalid {name} {value!r}, expected one of: {choices}")

    @property
    def effective_batch_size(self):
        return self.batch_size if self.batch_propagation else 1

    def replace(self, **changes):
        """Return a copy with the given fields changed."""
        known = {f.name for f in fields(self)}
        unknown = set(changes) - known
        if unknown:
            raise ConfigurationError(f"unknown config fields: {sorted(unknown)}")
        return replace(self, **changes)

    def validate(self):
        """Raise ConfigurationError if any value is out of range."""
        positive = ("delta_s", "delta_bn", "max_duration", "integration_step",
                    "importance_sigma", "disturbance_growth")
        for name in positive:
            if not getattr(self, name) > 0:
                raise ConfigurationError(f"{name} must be positive, got {getattr(self, name)}")

        at_least_one = ("max_iterations", "frontier_samples", "neighbor_constant",
                        "batch_size", "discovery_window", "primitive_capacity")
        for name in at_least_one:
            if getattr(self, name) < 1:
                raise ConfigurationError(f"{name} must be >= 1, got {getattr(self, name)}")

        probabilities = ("goal_bias", "discovery_threshold", "importance_ratio")
        for name in probabilities:
            if not 0.0 <= getattr(self, name) <= 1.0:
                raise ConfigurationError(f"{name} must lie in [0, 1], got {getattr(self, name)}")

        if not 0.0 < self.min_duration_fraction <= 1.0:
            raise ConfigurationError("min_duration_fraction must lie in (0, 1]")
        if not 0.0 <= self.primitive_low <= self.primitive_high:
            raise ConfigurationError("primitive thresholds must satisfy 0 <= low <= high")
        if self.time_budget is not None and self.time_budget <= 0:
            raise ConfigurationError("time_budget must be positive when given")
        if self.n_workers is not None and self.n_workers < 1:
            raise ConfigurationError("n_workers must be >= 1 when given")
        if self.disturbance_max_level < 0:
            raise ConfigurationError("disturbance_max_level must be >= 0")
        return self
