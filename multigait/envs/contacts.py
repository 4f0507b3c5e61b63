"""Per-foot ground-reaction impulse and its distribution entropy.

The entropy of the normalised per-foot vertical impulse measures how evenly
the body weight is spread over the four feet, independent of the absolute
force magnitude. It is maximal (log 4) for an even split.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Iterable, Sequence, Tuple

import numpy as np

from multigait.contract.frames import contact_impulse_world
from multigait.sim_adapter.engine import ContactRecord

NUM_FEET = 4
ENTROPY_EPS = 1e-6
UNIFORM_ENTROPY = math.log(NUM_FEET)


@dataclass(frozen=True)
class FootImpulses:
    impulses: np.ndarray
    distribution: np.ndarray
    entropy: float


def grf_entropy(impulses: np.ndarray) -> Tuple[np.ndarray, float]:
    """Return (distribution, entropy) for a 4-vector of foot impulses.

    The distribution is the impulse vector divided by its L2 norm. An
    all-zero vector has no direction; it is treated as the uniform split.
    """
    impulses = np.asarray(impulses, dtype=np.float64).reshape(NUM_FEET)
    norm = float(np.linalg.norm(impulses))
    if not np.isfinite(norm) or norm <= 0.0:
        distribution = np.full((NUM_FEET,), 1.0 / math.sqrt(NUM_FEET), dtype=np.float64)
        return distribution, UNIFORM_ENTROPY

    distribution = impulses / norm
    p = distribution + ENTROPY_EPS
    entropy = float(-np.sum(p * np.log(p)))
    return distribution, entropy


class ContactImpulseAggregator:
    """Accumulates vertical contact impulse per foot, then computes entropy once."""

    def __init__(self, foot_body_indices: Sequence[int]) -> None:
        indices = tuple(int(i) for i in foot_body_indices)
        if len(indices) != NUM_FEET:
            raise ValueError(f"Expected {NUM_FEET} foot body indices, got {len(indices)}")
        if len(set(indices)) != NUM_FEET:
            raise ValueError(f"Foot body indices must be distinct, got {indices}")
        self._foot_body_indices = indices
        self._slot_of_body: Dict[int, int] = {body: slot for slot, body in enumerate(indices)}

    @property
    def foot_body_indices(self) -> Tuple[int, ...]:
        return self._foot_body_indices

    def accumulate(self, contacts: Iterable[ContactRecord]) -> np.ndarray:
        impulses = np.zeros((NUM_FEET,), dtype=np.float64)
        for contact in contacts:
            # Internal contacts are reported twice; one side is flagged skipped.
            if contact.skipped:
                continue
            slot = self._slot_of_body.get(int(contact.local_body_index))
            if slot is None:
                continue
            impulse_world = contact_impulse_world(contact.contact_frame, contact.impulse)
            impulses[slot] += max(float(impulse_world[2]), 0.0)
        return impulses

    def aggregate(self, contacts: Iterable[ContactRecord]) -> FootImpulses:
        impulses = self.accumulate(contacts)
        distribution, entropy = grf_entropy(impulses)
        return FootImpulses(impulses=impulses, distribution=distribution, entropy=entropy)
