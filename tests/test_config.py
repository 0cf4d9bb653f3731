"""tests/test_config.py - PlannerConfig validation"""
import pytest

from sst_planner.config import (DELTA_S, Integrator, PlannerConfig, SelectionPolicy)
from sst_planner.errors import ConfigurationError


class TestPlannerConfig:

    def test_defaults(self):
        cfg = PlannerConfig()
        assert cfg.delta_s == DELTA_S
        assert cfg.selection is SelectionPolicy.UNIFORM
        assert cfg.pruning is True
        assert cfg.validate() is cfg

    def test_strings_coerced_to_enums(self):
        cfg = PlannerConfig(selection="best_near", integrator="rk4")
        assert cfg.selection is SelectionPolicy.BEST_NEAR
        assert cfg.integrator is Integrator.RK4

    def test_unknown_enum_value(self):
        with pytest.raises(ConfigurationError, match="selection"):
            PlannerConfig(selection="greedy")

    def test_configuration_error_is_value_error(self):
        with pytest.raises(ValueError):
            PlannerConfig(index="kdtree")

    @pytest.mark.parametrize("changes", [
        {"delta_s": 0.0},
        {"delta_bn": -1.0},
        {"goal_bias": 1.5},
        {"batch_size": 0},
        {"max_iterations": 0},
        {"min_duration_fraction": 0.0},
        {"primitive_low": 0.5, "primitive_high": 0.1},
        {"time_budget": -2.0},
        {"n_workers": 0},
    ])
    def test_validate_rejects(self, changes):
        with pytest.raises(ConfigurationError):
            PlannerConfig(**changes).validate()

    def test_effective_batch_size(self):
        assert PlannerConfig(batch_size=8).effective_batch_size == 1
        assert PlannerConfig(batch_size=8, batch_propagation=True).effective_batch_size == 8

    def test_replace(self):
        cfg = PlannerConfig(seed=3)
        other = cfg.replace(delta_s=0.5)
        assert other.delta_s == 0.5
        assert other.seed == 3
        assert cfg.delta_s == DELTA_S

    def test_replace_unknown_field(self):
        with pytest.raises(ConfigurationError):
            PlannerConfig().replace(radius=1.0)
