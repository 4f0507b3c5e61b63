from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict

import numpy as np

from multigait.configs.env_config import (
    FORWARD_VEL_KEY,
    GRF_ENTROPY_KEY,
    TORQUE_KEY,
    RewardCoefficients,
)


@dataclass(frozen=True)
class RewardBreakdown:
    """Weighted reward terms of one control step."""

    torque: float
    forward_velocity: float
    grf_entropy: float

    @property
    def total(self) -> float:
        return self.torque + self.forward_velocity + self.grf_entropy

    def as_dict(self) -> Dict[str, float]:
        return {
            TORQUE_KEY: self.torque,
            FORWARD_VEL_KEY: self.forward_velocity,
            GRF_ENTROPY_KEY: self.grf_entropy,
        }


def torque_cost(generalized_force: np.ndarray) -> float:
    force = np.asarray(generalized_force, dtype=np.float64)
    return -float(np.dot(force, force))


def velocity_tracking(forward_velocity: float, desired_velocity: float) -> float:
    """exp(-|v - v_desired|), in (0, 1]."""
    return math.exp(-abs(float(forward_velocity) - float(desired_velocity)))


class RewardComposer:
    def __init__(self, coefficients: RewardCoefficients, desired_velocity: float) -> None:
        self.coefficients = coefficients
        self.desired_velocity = float(desired_velocity)

    def compose(
        self,
        *,
        generalized_force: np.ndarray,
        forward_velocity: float,
        entropy: float,
    ) -> RewardBreakdown:
        coeffs = self.coefficients
        return RewardBreakdown(
            torque=coeffs.torque * torque_cost(generalized_force),
            forward_velocity=coeffs.forward_velocity
            * velocity_tracking(forward_velocity, self.desired_velocity),
            grf_entropy=coeffs.grf_entropy * float(entropy),
        )
