# errors.py


class PlannerError(Exception):
    """Base class for every error raised by the planner."""


class ConfigurationError(PlannerError, ValueError):
    """Missing or invalid configuration, detected before planning starts."""


class ObstacleFileError(PlannerError, IOError):
    """Obstacle file could not be read or does not follow the map format."""


class PropagationFailure(PlannerError):
    """A single propagation produced no valid, collision-free segment.

    Raised by the propagators and swallowed by the planner iteration that
    requested the segment.
    """


class PlanningExhausted(PlannerError):
    """The iteration or time budget ran out without reaching the goal."""


class InvariantViolation(PlannerError, RuntimeError):
    """The tree or witness bookkeeping is corrupt. Never recovered."""
