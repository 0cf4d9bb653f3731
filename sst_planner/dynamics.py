# dynamics.py
"""
State spaces and dynamics models.

A model is the pluggable collaborator the planner integrates through: it
owns the state bounds, the metric used for nearest neighbour and witness
queries, the projection into the 2D configuration space the obstacles live
in, and the continuous dynamics ``x_dot = f(x, u)``.
"""

import itertools

import numpy as np

from .config import Integrator
from .errors import ConfigurationError


def wrap_angle(theta):
    """Wrap angles to [-pi, pi)."""
    return (np.asarray(theta) + np.pi) % (2.0 * np.pi) - np.pi


def euler_step(f, x, u, dt):
    return x + f(x, u) * dt


def rk4_step(f, x, u, dt):
    k1 = f(x, u)
    k2 = f(x + 0.5 * dt * k1, u)
    k3 = f(x + 0.5 * dt * k2, u)
    k4 = f(x + dt * k3, u)
    return x + (dt / 6.0) * (k1 + 2.0 * k2 + 2.0 * k3 + k4)


_STEPPERS = {
    Integrator.EULER: euler_step,
    Integrator.RK4: rk4_step,
}


def integrate(model, state, control, duration, steps, integrator=Integrator.EULER):
    """
    Integrate a constant control forward in time.

    Parameters
    ----------
    model : KinodynamicModel
        Dynamics to integrate.
    state : np.array
        Initial state.
    control : np.array
        Control held constant over the whole duration.
    duration : float
        Total integration time.
    steps : int
        Number of equal sub-steps.
    integrator : Integrator
        Explicit Euler or 4th order Runge-Kutta.

    Returns
    -------
    np.array
        Array of shape (steps + 1, state_dim), first row is ``state``.
    """
    stepper = _STEPPERS[Integrator(integrator)]
    dt = duration / steps
    u = np.asarray(control, dtype=float)
    out = np.empty((steps + 1, model.state_dim))
    x = np.asarray(state, dtype=float)
    out[0] = x
    for i in range(1, steps + 1):
        x = model.normalize(stepper(model.derivative, x, u, dt))
        out[i] = x
    return out


class KinodynamicModel:
    """
    Base class of the dynamics/state space collaborator.

    Subclasses set ``bounds`` (state_dim x 2), ``control_bounds``
    (control_dim x 2), ``angular_dims``, ``weights`` and implement
    :meth:`derivative`.
    """
    name = "model"
    config_dims = (0, 1)
    angular_dims = ()
    footprint = None

    def __init__(self, bounds, control_bounds, weights=None):
        self.bounds = np.asarray(bounds, dtype=float)
        self.control_bounds = np.asarray(control_bounds, dtype=float)
        if weights is None:
            weights = np.ones(len(self.bounds))
        self.weights = np.asarray(weights, dtype=float)
        if self.weights.shape != (self.state_dim,):
            raise ConfigurationError(
                f"{self.name}: expected {self.state_dim} metric weights, got {self.weights.shape}")
        if np.any(self.weights <= 0):
            raise ConfigurationError(f"{self.name}: metric weights must be positive")

    @property
    def state_dim(self):
        return len(self.bounds)

    @property
    def control_dim(self):
        return len(self.control_bounds)

    @property
    def linear_dims(self):
        """Dimensions that are not wrapped angles."""
        return tuple(i for i in range(self.state_dim) if i not in self.angular_dims)

    def derivative(self, state, control):
        raise NotImplementedError

    def propagate(self, state, control, dt, integrator=Integrator.EULER):
        """Advance one step of length dt."""
        stepper = _STEPPERS[Integrator(integrator)]
        x = np.asarray(state, dtype=float)
        return self.normalize(stepper(self.derivative, x, np.asarray(control, dtype=float), dt))

    def normalize(self, state):
        if not self.angular_dims:
            return state
        state = np.array(state, dtype=float)
        dims = list(self.angular_dims)
        state[..., dims] = wrap_angle(state[..., dims])
        return state

    def is_within_bounds(self, state):
        state = np.asarray(state)
        dims = list(self.linear_dims)
        lo = self.bounds[dims, 0]
        hi = self.bounds[dims, 1]
        return bool(np.all(state[dims] >= lo) and np.all(state[dims] <= hi))

    def distance(self, a, b):
        """
        Weighted Euclidean distance with angular wrap.

        Broadcasts: either argument may be a stack of states of shape
        (N, state_dim), in which case an array of N distances is returned.
        """
        diff = np.asarray(a, dtype=float) - np.asarray(b, dtype=float)
        if self.angular_dims:
            dims = list(self.angular_dims)
            diff[..., dims] = wrap_angle(diff[..., dims])
        return np.sqrt(np.sum((diff * self.weights) ** 2, axis=-1))

    def project(self, state):
        """Project a state (or stack of states) onto the obstacle plane."""
        return np.asarray(state, dtype=float)[..., list(self.config_dims)]

    def heading(self, state):
        """Heading used to orient a footprint, 0 for models without one."""
        return 0.0

    def sample_state(self, rng, bounds=None):
        bounds = self.bounds if bounds is None else np.asarray(bounds, dtype=float)
        return rng.uniform(bounds[:, 0], bounds[:, 1])

    def sample_control(self, rng):
        return rng.uniform(self.control_bounds[:, 0], self.control_bounds[:, 1])

    def edge_cost(self, states, control, duration):
        """Cost of a trajectory segment, path length in the obstacle plane."""
        pts = self.project(states)
        if len(pts) < 2:
            return 0.0
        return float(np.sum(np.linalg.norm(np.diff(pts, axis=0), axis=1)))

    # ------------------------------------------------------------------
    # --- Local frames for motion primitives ---
    # ------------------------------------------------------------------
    def entry_class(self, state):
        """Key of the primitive library bucket a state can start from."""
        return ()

    def canonical_state(self, entry_class):
        """Representative origin state of an entry class."""
        return np.zeros(self.state_dim)

    def to_local(self, origin, state):
        diff = np.asarray(state, dtype=float) - np.asarray(origin, dtype=float)
        return self.normalize(diff)

    def from_local(self, origin, local):
        return self.normalize(np.asarray(origin, dtype=float) + np.asarray(local, dtype=float))

    def primitive_controls(self):
        """Controls used to precompute a primitive library: a 3-level grid."""
        levels = [np.linspace(lo, hi, 3) for lo, hi in self.control_bounds]
        return [np.array(u) for u in itertools.product(*levels)]


class PointMass(KinodynamicModel):
    """
    Planar single integrator: the control is the velocity.

    State = [x, y], control = [x_dot, y_dot] with speed <= max_speed.
    """
    name = "point"

    def __init__(self, bounds=((0.0, 10.0), (0.0, 10.0)), max_speed=1.0):
        self.max_speed = float(max_speed)
        super().__init__(bounds, [[-max_speed, max_speed], [-max_speed, max_speed]])

    def derivative(self, state, control):
        return np.asarray(control, dtype=float)

    def sample_control(self, rng):
        # uniform heading, uniform speed
        phi = rng.uniform(-np.pi, np.pi)
        speed = rng.uniform(0.0, self.max_speed)
        return np.array([speed * np.cos(phi), speed * np.sin(phi)])

    def primitive_controls(self):
        angles = np.linspace(-np.pi, np.pi, 16, endpoint=False)
        return [self.max_speed * np.array([np.cos(a), np.sin(a)]) for a in angles]


class DubinsCar(KinodynamicModel):
    """
    Kinematic car moving forward at constant speed.

    State = [x, y, theta], control = [turn_rate].
    """
    name = "dubins"
    angular_dims = (2,)

    def __init__(self, bounds=((0.0, 10.0), (0.0, 10.0), (-np.pi, np.pi)),
                 speed=1.0, max_turn_rate=1.0, heading_weight=0.5):
        self.speed = float(speed)
        super().__init__(bounds, [[-max_turn_rate, max_turn_rate]],
                         weights=[1.0, 1.0, heading_weight])

    def derivative(self, state, control):
        theta = state[2]
        return np.array([self.speed * np.cos(theta),
                         self.speed * np.sin(theta),
                         control[0]])

    def heading(self, state):
        return float(state[2])

    def to_local(self, origin, state):
        origin = np.asarray(origin, dtype=float)
        state = np.asarray(state, dtype=float)
        c, s = np.cos(origin[2]), np.sin(origin[2])
        dx, dy = state[..., 0] - origin[0], state[..., 1] - origin[1]
        out = np.empty(np.broadcast(state, origin).shape)
        out[..., 0] = c * dx + s * dy
        out[..., 1] = -s * dx + c * dy
        out[..., 2] = wrap_angle(state[..., 2] - origin[2])
        return out

    def from_local(self, origin, local):
        origin = np.asarray(origin, dtype=float)
        local = np.asarray(local, dtype=float)
        c, s = np.cos(origin[2]), np.sin(origin[2])
        out = np.empty(np.broadcast(local, origin).shape)
        out[..., 0] = origin[0] + c * local[..., 0] - s * local[..., 1]
        out[..., 1] = origin[1] + s * local[..., 0] + c * local[..., 1]
        out[..., 2] = wrap_angle(origin[2] + local[..., 2])
        return out

    def primitive_controls(self):
        lo, hi = self.control_bounds[0]
        return [np.array([u]) for u in np.linspace(lo, hi, 7)]


def make_model(name, **kwargs):
    """Build a model by name ("point", "dubins" or "boat")."""
    from .boat_dynamics import BoatModel

    models = {
        PointMass.name: PointMass,
        DubinsCar.name: DubinsCar,
        BoatModel.name: BoatModel,
    }
    try:
        cls = models[name]
    except KeyError:
        raise ConfigurationError(
            f"unknown model {name!r}, expected one of: {', '.join(sorted(models))}")
    return cls(**kwargs)
