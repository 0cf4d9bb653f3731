"""tests/test_sampler.py - goal region, disturbance and importance sampling"""
import numpy as np
import pytest

from sst_planner.config import PlannerConfig
from sst_planner.errors import ConfigurationError
from sst_planner.sampler import GoalRegion, ImportanceSampler, TargetSampler
from sst_planner.witness import DiscoveryRateMonitor


class TestGoalRegion:

    def test_contains(self):
        goal = GoalRegion([9.0, 9.0], 1.0)
        assert goal.contains([9.5, 9.0])
        assert not goal.contains([7.0, 9.0])
        assert goal.contains([9.0, 10.0])

    def test_samples_fall_inside(self, dubins_model):
        goal = GoalRegion([5.0, 5.0], 0.5)
        rng = np.random.default_rng(0)
        for _ in range(50):
            x = goal.sample(dubins_model, rng)
            assert x.shape == (3,)
            assert goal.contains(dubins_model.project(x))

    def test_rejects_radius(self):
        with pytest.raises(ConfigurationError):
            GoalRegion([0.0, 0.0], -1.0)


class TestImportanceSampler:

    def test_samples_near_waypoints(self, point_model):
        waypoints = np.array([[5.0, 5.0]])
        sampler = ImportanceSampler(point_model, waypoints, sigma=0.1)
        rng = np.random.default_rng(0)
        pts = np.array([sampler.sample(rng) for _ in range(200)])
        assert np.all(np.linalg.norm(pts - waypoints[0], axis=1) < 1.0)

    def test_samples_clipped_to_bounds(self, point_model):
        sampler = ImportanceSampler(point_model, np.array([[0.0, 0.0]]), sigma=2.0)
        rng = np.random.default_rng(0)
        for _ in range(50):
            assert point_model.is_within_bounds(sampler.sample(rng))


class TestTargetSampler:

    def test_uniform_within_sample_bounds(self, point_model):
        goal = GoalRegion([9.0, 9.0], 0.5)
        sampler = TargetSampler(point_model, goal, PlannerConfig(goal_bias=0.0),
                                sample_bounds=[[0.0, 2.0], [0.0, 2.0]])
        rng = np.random.default_rng(0)
        for _ in range(50):
            x = sampler.sample(rng)
            assert np.all(x >= 0.0) and np.all(x <= 2.0)

    def test_goal_bias_one_always_samples_goal(self, point_model):
        goal = GoalRegion([9.0, 9.0], 0.5)
        sampler = TargetSampler(point_model, goal, PlannerConfig(goal_bias=1.0))
        rng = np.random.default_rng(0)
        assert all(goal.contains(sampler.sample(rng)) for _ in range(20))

    def test_bad_sample_bounds(self, point_model):
        with pytest.raises(ConfigurationError):
            TargetSampler(point_model, GoalRegion([9.0, 9.0], 0.5), PlannerConfig(),
                          sample_bounds=np.zeros((3, 2)))

    def test_disturbance_grows_and_decays(self, point_model):
        cfg = PlannerConfig(discovery_window=4, disturbance_growth=2.0)
        sampler = TargetSampler(point_model, GoalRegion([9.0, 9.0], 0.5), cfg,
                                sample_bounds=[[4.0, 6.0], [4.0, 6.0]])
        monitor = DiscoveryRateMonitor(window=4, threshold=0.1)
        for _ in range(4):
            monitor.record(False)
        sampler.update_disturbance(monitor)
        assert sampler.level == 1
        assert not monitor.is_full
        np.testing.assert_allclose(sampler.current_bounds(), [[3.0, 7.0], [3.0, 7.0]])

        for _ in range(4):
            monitor.record(True)
        sampler.update_disturbance(monitor)
        assert sampler.level == 0
        np.testing.assert_allclose(sampler.current_bounds(), [[4.0, 6.0], [4.0, 6.0]])

    def test_disturbance_clipped_to_model_bounds(self, point_model):
        cfg = PlannerConfig(disturbance_growth=10.0)
        sampler = TargetSampler(point_model, GoalRegion([9.0, 9.0], 0.5), cfg,
                                sample_bounds=[[0.0, 2.0], [0.0, 2.0]])
        sampler.level = 3
        np.testing.assert_allclose(sampler.current_bounds(), [[0.0, 10.0], [0.0, 10.0]])

    def test_disturbance_disabled(self, point_model):
        cfg = PlannerConfig(witness_disturbance=False)
        sampler = TargetSampler(point_model, GoalRegion([9.0, 9.0], 0.5), cfg)
        monitor = DiscoveryRateMonitor(window=2)
        monitor.record(False)
        monitor.record(False)
        sampler.update_disturbance(monitor)
        assert sampler.level == 0

    def test_importance_used_once_a_path_exists(self, point_model):
        cfg = PlannerConfig(goal_bias=0.0, importance_sampling=True, importance_ratio=1.0,
                            importance_sigma=0.05)
        sampler = TargetSampler(point_model, GoalRegion([9.0, 9.0], 0.5), cfg)
        sampler.set_best_path(np.array([[3.0, 3.0], [3.0, 3.0]]))
        rng = np.random.default_rng(0)
        for _ in range(20):
            assert np.linalg.norm(sampler.sample(rng) - [3.0, 3.0]) < 0.5
        sampler.reset()
        assert sampler.importance is None
