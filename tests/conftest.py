"""
conftest.py - pytest fixtures shared across the test suite.

Models, obstacle scenes and a planner factory, so individual test modules
stay short and focused.
"""

import matplotlib
matplotlib.use("Agg")

import numpy as np
import pytest

from sst_planner.collision import CollisionChecker, ObstacleSet
from sst_planner.config import PlannerConfig
from sst_planner.dynamics import DubinsCar, PointMass
from sst_planner.boat_dynamics import BoatModel
from sst_planner.sst import SSTPlanner


# =========================================================================
# Models
# =========================================================================

@pytest.fixture
def point_model():
    """Planar single integrator on [0, 10]^2."""
    return PointMass()


@pytest.fixture
def dubins_model():
    return DubinsCar()


@pytest.fixture
def boat_model():
    return BoatModel()


# =========================================================================
# Scenes
# =========================================================================

@pytest.fixture
def empty_checker(point_model):
    return CollisionChecker(ObstacleSet(), bounds=point_model.bounds)


@pytest.fixture
def wall_obstacles():
    """Rectangle (4.5, 0)-(5.5, 7): a wall with a gap above it."""
    obstacles = ObstacleSet()
    obstacles.add_rectangle([4.5, 0.0], [5.5, 7.0])
    return obstacles


@pytest.fixture
def wall_checker(point_model, wall_obstacles):
    return CollisionChecker(wall_obstacles, bounds=point_model.bounds)


@pytest.fixture
def map_file(tmp_path):
    path = tmp_path / "map.json"
    path.write_text(
        '{"circles": [{"center": [5.0, 5.0], "radius": 1.0}],'
        ' "rectangles": [{"corner1": [2.0, 6.0], "corner2": [3.0, 8.0]}],'
        ' "polygons": [[[7.0, 1.0], [8.0, 1.0], [7.5, 2.0]]]}'
    )
    return path


# =========================================================================
# Planner factory
# =========================================================================

@pytest.fixture
def make_planner(point_model, empty_checker):
    """Build a point-mass planner from start (1, 1) to the goal disc at (9, 9)."""
    planners = []

    def _make(checker=None, goal=((9.0, 9.0), 1.0), start=(1.0, 1.0), model=None,
              sample_bounds=None, **config):
        config.setdefault("seed", 0)
        planner = SSTPlanner(model or point_model, checker or empty_checker,
                             np.array(start, dtype=float), goal,
                             PlannerConfig(**config), sample_bounds=sample_bounds)
        planners.append(planner)
        return planner

    yield _make
    for planner in planners:
        planner.close()
