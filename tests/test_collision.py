"""tests/test_collision.py - obstacles and collision queries"""
import numpy as np
import pytest

from sst_planner.collision import (Circle, CollisionChecker, ObstacleSet, Polygon,
                                   create_swept_hull, get_boat_corners,
                                   sat_polygon_circle, sat_polygon_polygon)

BOAT_WIDTH = 2.8
BOAT_LENGTH = 5.0


class TestShapes:

    def test_circle_contains(self):
        c = Circle([0.0, 0.0], 1.0)
        assert c.contains([0.5, 0.5])
        assert not c.contains([1.0, 1.0])

    def test_circle_rejects_radius(self):
        with pytest.raises(ValueError):
            Circle([0.0, 0.0], 0.0)

    def test_circle_segment_hit(self):
        c = Circle([5.0, 0.0], 1.0)
        t = c.segment_hit(np.array([0.0, 0.0]), np.array([10.0, 0.0]))
        assert t == pytest.approx(0.4)
        assert c.segment_hit(np.array([0.0, 3.0]), np.array([10.0, 3.0])) is None

    def test_polygon_is_ordered_whatever_the_input_order(self):
        p = Polygon([[1.0, 1.0], [0.0, 0.0], [1.0, 0.0], [0.0, 1.0]])
        assert p.contains([0.5, 0.5])
        assert not p.contains([1.5, 0.5])
        assert len(p.vertices) == 4

    def test_degenerate_polygon(self):
        with pytest.raises(ValueError):
            Polygon([[0.0, 0.0], [1.0, 1.0], [2.0, 2.0]])

    def test_polygon_segment_hit(self):
        p = Polygon.rectangle([4.0, -1.0], [6.0, 1.0])
        t = p.segment_hit(np.array([0.0, 0.0]), np.array([10.0, 0.0]))
        assert t == pytest.approx(0.4)
        assert p.segment_hit(np.array([0.0, 2.0]), np.array([10.0, 2.0])) is None

    def test_obstacle_set(self):
        obstacles = ObstacleSet()
        obstacles.add_circle([1.0, 1.0], 0.5)
        obstacles.add_rectangle([2.0, 2.0], [3.0, 3.0])
        obstacles.add_polygon([[5.0, 5.0], [6.0, 5.0], [5.5, 6.0]])
        assert len(obstacles) == 3
        assert isinstance(list(obstacles)[1], Polygon)


class TestSAT:
    """Rectangular footprint against circles, as in the boat collision check."""

    def test_clear_path(self):
        hull = create_swept_hull(np.array([0.0, 0.0]), 0.0, np.array([10.0, 0.0]), 0.0,
                                 BOAT_WIDTH, BOAT_LENGTH)
        assert not sat_polygon_circle(hull, np.array([5.0, 10.0]), 2.0)

    def test_direct_collision(self):
        hull = create_swept_hull(np.array([0.0, 0.0]), 0.0, np.array([10.0, 0.0]), 0.0,
                                 BOAT_WIDTH, BOAT_LENGTH)
        assert sat_polygon_circle(hull, np.array([5.0, 0.0]), 2.0)

    def test_diagonal_sweep(self):
        hull = create_swept_hull(np.array([0.0, 0.0]), 0.0, np.array([10.0, 10.0]), np.pi / 4,
                                 BOAT_WIDTH, BOAT_LENGTH)
        assert sat_polygon_circle(hull, np.array([5.0, 5.0]), 1.5)

    def test_rotation_in_place(self):
        corners = get_boat_corners(np.array([5.0, 5.0]), 0.0, BOAT_WIDTH, BOAT_LENGTH)
        assert sat_polygon_circle(corners, np.array([8.0, 5.0]), 1.0)

    def test_polygon_polygon(self):
        a = np.array([[0.0, 0.0], [2.0, 0.0], [2.0, 2.0], [0.0, 2.0]])
        assert sat_polygon_polygon(a, a + 1.0)
        assert not sat_polygon_polygon(a, a + 3.0)


class TestCollisionChecker:

    def test_point_free(self, wall_checker):
        assert wall_checker.is_free([1.0, 1.0])
        assert not wall_checker.is_free([5.0, 3.0])

    def test_outside_bounds(self, wall_checker):
        assert not wall_checker.is_free([-1.0, 1.0])

    def test_segment_reports_first_collision(self, wall_checker):
        free, hit = wall_checker.segment_is_free([1.0, 1.0], [9.0, 1.0])
        assert not free
        np.testing.assert_allclose(hit, [4.5, 1.0])

    def test_segment_over_the_wall(self, wall_checker):
        assert wall_checker.segment_is_free([1.0, 8.0], [9.0, 8.0]) == (True, None)

    def test_trajectory(self, wall_checker):
        free, idx = wall_checker.trajectory_is_free(
            np.array([[1.0, 1.0], [3.0, 1.0], [6.0, 1.0], [8.0, 1.0]]))
        assert not free and idx == 2
        assert wall_checker.trajectory_is_free(np.array([[1.0, 8.0], [9.0, 8.0]])) == (True, None)

    def test_footprint_checker(self):
        obstacles = ObstacleSet([Circle([15.0, 10.0], 1.0)])
        checker = CollisionChecker(obstacles, bounds=[[0.0, 30.0], [0.0, 30.0]],
                                   footprint=(BOAT_WIDTH, BOAT_LENGTH))
        # the hull reaches 2.5 ahead of the centre
        assert checker.is_free([10.0, 10.0], 0.0)
        assert not checker.is_free([12.0, 10.0], 0.0)
        free, _ = checker.segment_is_free([5.0, 10.0], [20.0, 10.0], 0.0, 0.0)
        assert not free
        assert not checker.is_free([1.0, 10.0], 0.0)
