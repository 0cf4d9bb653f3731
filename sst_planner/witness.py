# witness.py

from collections import deque
from dataclasses import dataclass
from typing import Optional

import numpy as np

from .config import DISCOVERY_THRESHOLD, DISCOVERY_WINDOW, IndexKind
from .spatial_index import make_index


@dataclass
class Witness:
    id: int
    anchor: np.ndarray
    representative_id: Optional[int] = None
    representative_cost: float = float("inf")


class WitnessSet:
    """
    Witness points and the node currently representing each of them.

    Every witness covers the ball of radius delta_s around its anchor; its
    representative is the cheapest node ever admitted there. Witnesses are
    never deleted.
    """

    def __init__(self, model, index_kind=IndexKind.LINEAR):
        self.model = model
        self.witnesses = []
        self.index = make_index(index_kind, model)

    def __len__(self):
        return len(self.witnesses)

    def __iter__(self):
        return iter(self.witnesses)

    def __getitem__(self, witness_id):
        return self.witnesses[witness_id]

    def find_or_create(self, state, delta_s):
        """
        Witness whose anchor is within delta_s of state, or a new one
        anchored at state.

        Returns
        -------
        (int, bool)
            Witness id and whether it was just created.
        """
        nearest = self.index.query_k_nearest(state, 1)
        if nearest:
            wid = nearest[0]
            if self.model.distance(self.witnesses[wid].anchor, state) <= delta_s:
                return wid, False

        wid = len(self.witnesses)
        anchor = np.array(state, dtype=float)
        self.witnesses.append(Witness(wid, anchor))
        self.index.insert(anchor, wid)
        return wid, True

    def try_update_representative(self, witness_id, candidate_id, candidate_cost):
        """
        Install candidate_id as representative if the witness has none or the
        candidate is strictly cheaper.

        Returns
        -------
        (bool, int or None)
            Whether the candidate was accepted, and the representative it
            replaced (which the caller deactivates).
        """
        witness = self.witnesses[witness_id]
        if witness.representative_id is not None and \
                not candidate_cost < witness.representative_cost:
            return False, None

        previous = witness.representative_id
        witness.representative_id = candidate_id
        witness.representative_cost = float(candidate_cost)
        return True, previous

    def representative(self, witness_id):
        return self.witnesses[witness_id].representative_id

    def pairs(self):
        """(anchor, representative id) for every represented witness."""
        return [(w.anchor, w.representative_id) for w in self.witnesses
                if w.representative_id is not None]


class DiscoveryRateMonitor:
    """
    Sliding window over recent iterations recording whether each one
    discovered a new witness.
    """

    def __init__(self, window=DISCOVERY_WINDOW, threshold=DISCOVERY_THRESHOLD):
        self.window = window
        self.threshold = threshold
        self._recent = deque(maxlen=window)
        self.total = 0
        self.discovered = 0

    def record(self, is_new):
        self._recent.append(bool(is_new))
        self.total += 1
        self.discovered += int(bool(is_new))

    @property
    def rate(self):
        if not self._recent:
            return 1.0
        return sum(self._recent) / len(self._recent)

    @property
    def overall_rate(self):
        return self.discovered / self.total if self.total else 0.0

    @property
    def is_full(self):
        return len(self._recent) == self.window

    @property
    def is_starved(self):
        return self.is_full and self.rate < self.threshold

    @property
    def is_recovered(self):
        return self.is_full and self.rate >= self.threshold

    def reset(self):
        """Start a fresh window, keeping the running totals."""
        self._recent.clear()
