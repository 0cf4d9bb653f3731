# sampler.py

import logging

import numpy as np

from .errors import ConfigurationError

logger = logging.getLogger(__name__)


class GoalRegion:
    """Disc of radius ``radius`` around ``center`` in the obstacle plane."""

    def __init__(self, center, radius):
        self.center = np.asarray(center, dtype=float)
        self.radius = float(radius)
        if self.radius <= 0:
            raise ConfigurationError(f"goal radius must be positive, got {radius}")

    def contains(self, point):
        return bool(np.linalg.norm(np.asarray(point, dtype=float) - self.center) <= self.radius)

    def sample(self, model, rng):
        """A full state whose projection lies uniformly inside the disc."""
        state = model.sample_state(rng)
        r = self.radius * np.sqrt(rng.uniform())
        phi = rng.uniform(0, 2 * np.pi)
        state[list(model.config_dims)] = self.center + r * np.array([np.cos(phi), np.sin(phi)])
        return state


class ImportanceSampler:
    """
    Gaussian perturbations of the waypoints of the current best path.

    ``sigma`` is expressed in metric units: noise on each dimension is
    divided by that dimension's metric weight.
    """

    def __init__(self, model, waypoints, sigma):
        self.model = model
        self.waypoints = np.asarray(waypoints, dtype=float)
        self.sigma = float(sigma)

    def sample(self, rng):
        wp = self.waypoints[int(rng.integers(len(self.waypoints)))]
        noise = rng.normal(0.0, self.sigma, size=self.model.state_dim) / self.model.weights
        x = self.model.normalize(wp + noise)
        dims = list(self.model.linear_dims)
        x[dims] = np.clip(x[dims], self.model.bounds[dims, 0], self.model.bounds[dims, 1])
        return x


class TargetSampler:
    """
    Draws the target state of every iteration.

    With probability ``goal_bias`` the target lies in the goal region.
    Otherwise, once a path exists and importance sampling is on, it is drawn
    around the best path with probability ``importance_ratio``; all other
    targets are uniform in the sampling box. The sampling box starts as
    ``sample_bounds`` and widens while the witness discovery rate is starved.
    """

    def __init__(self, model, goal, config, sample_bounds=None):
        self.model = model
        self.goal = goal
        self.config = config
        self.base_bounds = self._full_bounds(sample_bounds)
        self.level = 0
        self.importance = None

    def _full_bounds(self, sample_bounds):
        bounds = self.model.bounds.copy()
        if sample_bounds is None:
            return bounds
        sample_bounds = np.asarray(sample_bounds, dtype=float)
        if sample_bounds.shape == bounds.shape:
            return sample_bounds.copy()
        if sample_bounds.shape == (2, 2):
            bounds[list(self.model.config_dims)] = sample_bounds
            return bounds
        raise ConfigurationError(f"sample bounds of shape {sample_bounds.shape} do not fit the state space")

    def current_bounds(self):
        if self.level == 0:
            return self.base_bounds
        dims = list(self.model.linear_dims)
        bounds = self.base_bounds.copy()
        center = bounds[dims].mean(axis=1)
        half = (bounds[dims, 1] - bounds[dims, 0]) / 2.0 * self.config.disturbance_growth ** self.level
        bounds[dims, 0] = np.maximum(center - half, self.model.bounds[dims, 0])
        bounds[dims, 1] = np.minimum(center + half, self.model.bounds[dims, 1])
        return bounds

    def update_disturbance(self, monitor):
        """Widen or relax the sampling box from the witness discovery rate."""
        if not self.config.witness_disturbance:
            return
        if monitor.is_starved and self.level < self.config.disturbance_max_level:
            self.level += 1
            monitor.reset()
            logger.debug("witness discovery starved, disturbance level %d", self.level)
        elif monitor.is_recovered and self.level > 0:
            self.level -= 1
            monitor.reset()
            logger.debug("witness discovery recovered, disturbance level %d", self.level)

    def set_best_path(self, states):
        if self.config.importance_sampling:
            self.importance = ImportanceSampler(self.model, states, self.config.importance_sigma)

    def sample(self, rng):
        if rng.uniform() < self.config.goal_bias:
            return self.goal.sample(self.model, rng)
        if self.importance is not None and rng.uniform() < self.config.importance_ratio:
            return self.importance.sample(rng)
        return self.model.sample_state(rng, self.current_bounds())

    def reset(self):
        self.level = 0
        self.importance = None
