"""tests/test_planner.py - result type and path helpers"""
import numpy as np
import pytest

from sst_planner.dynamics import integrate
from sst_planner.errors import PlannerError, PlanningExhausted
from sst_planner.node_module import Edge
from sst_planner.planner import (PlannerStatus, PlanResult, extract_path, path_length,
                                 replay_path)
from sst_planner.tree import PlanningTree


def _edge(model, start, control, duration=1.0, steps=10):
    states = integrate(model, np.asarray(start, dtype=float), np.asarray(control, dtype=float),
                       duration, steps)
    return Edge(np.asarray(control, dtype=float), duration, steps, states,
                float(np.sum(np.linalg.norm(np.diff(states, axis=0), axis=1))))


class TestPlanResult:

    def test_success_passes_through(self):
        result = PlanResult(PlannerStatus.EXHAUSTED, True, cost=3.0, goal_node_id=4)
        assert result.raise_for_status() is result

    def test_failure_raises(self):
        result = PlanResult(PlannerStatus.EXHAUSTED, False)
        with pytest.raises(PlanningExhausted):
            result.raise_for_status()
        assert issubclass(PlanningExhausted, PlannerError)

    def test_defaults(self):
        result = PlanResult(PlannerStatus.RUNNING, False)
        assert result.cost == float("inf")
        assert result.edges == []


class TestPaths:

    def test_path_length(self):
        states = np.array([[0.0, 0.0], [3.0, 4.0], [3.0, 5.0]])
        assert path_length(states) == pytest.approx(6.0)
        assert path_length(states[:1]) == 0.0

    def test_path_length_projects(self, dubins_model):
        states = np.array([[0.0, 0.0, 1.0], [3.0, 4.0, -2.0]])
        assert path_length(states, dubins_model) == pytest.approx(5.0)

    def test_extract_and_replay(self, point_model):
        tree = PlanningTree(np.array([1.0, 1.0]))
        first = _edge(point_model, [1.0, 1.0], [1.0, 0.0])
        a = tree.append(tree.root_id, first, first.end, first.cost)
        second = _edge(point_model, first.end, [0.0, 1.0])
        b = tree.append(a, second, second.end, tree.cost(a) + second.cost)

        edges, states = extract_path(tree, b)
        assert edges[0] is first and edges[1] is second
        assert states.shape == (21, 2)
        np.testing.assert_allclose(states[-1], [2.0, 2.0])
        np.testing.assert_allclose(replay_path(point_model, [1.0, 1.0], edges), states)

    def test_root_only_path(self):
        tree = PlanningTree(np.array([1.0, 1.0]))
        edges, states = extract_path(tree, tree.root_id)
        assert edges == []
        np.testing.assert_allclose(states, [[1.0, 1.0]])
