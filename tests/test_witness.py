"""tests/test_witness.py - witness set and discovery-rate monitor"""
import numpy as np
import pytest

from sst_planner.config import IndexKind
from sst_planner.witness import DiscoveryRateMonitor, WitnessSet


class TestWitnessSet:

    def test_first_state_creates_witness(self, point_model):
        ws = WitnessSet(point_model)
        wid, is_new = ws.find_or_create(np.array([1.0, 1.0]), 0.5)
        assert (wid, is_new) == (0, True)
        assert len(ws) == 1
        assert ws.representative(wid) is None

    def test_nearby_state_reuses_witness(self, point_model):
        ws = WitnessSet(point_model)
        ws.find_or_create(np.array([1.0, 1.0]), 0.5)
        assert ws.find_or_create(np.array([1.3, 1.0]), 0.5) == (0, False)
        assert ws.find_or_create(np.array([1.6, 1.0]), 0.5) == (1, True)

    def test_anchor_is_a_copy(self, point_model):
        ws = WitnessSet(point_model)
        state = np.array([1.0, 1.0])
        ws.find_or_create(state, 0.5)
        state[0] = 9.0
        np.testing.assert_allclose(ws[0].anchor, [1.0, 1.0])

    def test_representative_replaced_only_when_strictly_cheaper(self, point_model):
        ws = WitnessSet(point_model)
        wid, _ = ws.find_or_create(np.array([1.0, 1.0]), 0.5)
        assert ws.try_update_representative(wid, 7, 2.0) == (True, None)
        assert ws.try_update_representative(wid, 8, 2.0) == (False, None)
        assert ws.try_update_representative(wid, 9, 3.0) == (False, None)
        assert ws.try_update_representative(wid, 10, 1.5) == (True, 7)
        assert ws.representative(wid) == 10
        assert ws[wid].representative_cost == 1.5

    def test_pairs(self, point_model):
        ws = WitnessSet(point_model)
        a, _ = ws.find_or_create(np.array([1.0, 1.0]), 0.5)
        ws.find_or_create(np.array([5.0, 5.0]), 0.5)
        ws.try_update_representative(a, 3, 1.0)
        pairs = ws.pairs()
        assert len(pairs) == 1
        assert pairs[0][1] == 3

    def test_rtree_backed(self, point_model):
        ws = WitnessSet(point_model, IndexKind.RTREE)
        ws.find_or_create(np.array([1.0, 1.0]), 0.5)
        assert ws.find_or_create(np.array([1.2, 1.2]), 0.5) == (0, False)


class TestDiscoveryRateMonitor:

    def test_rate_over_window(self):
        m = DiscoveryRateMonitor(window=4, threshold=0.5)
        for flag in (True, False, False, False):
            m.record(flag)
        assert m.is_full
        assert m.rate == pytest.approx(0.25)
        assert m.is_starved
        assert not m.is_recovered

    def test_window_slides(self):
        m = DiscoveryRateMonitor(window=2, threshold=0.5)
        for flag in (False, False, True, True):
            m.record(flag)
        assert m.rate == 1.0
        assert m.is_recovered

    def test_not_starved_until_full(self):
        m = DiscoveryRateMonitor(window=10, threshold=0.1)
        for _ in range(9):
            m.record(False)
        assert not m.is_starved

    def test_reset_keeps_totals(self):
        m = DiscoveryRateMonitor(window=3)
        for flag in (True, False, False):
            m.record(flag)
        m.reset()
        assert not m.is_full
        assert m.total == 3
        assert m.overall_rate == pytest.approx(1 / 3)
