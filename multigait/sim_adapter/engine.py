"""Contract between the environment and the rigid-body physics engine.

The environment only talks to the simulator through `PhysicsEngine`. Base
linear and angular velocities in the generalized velocity are expressed in
the world frame; contact frames are 3x3 matrices whose rows are the contact
axes in world coordinates, with the impulse given in that contact frame.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Protocol, Sequence, Tuple

import numpy as np


class ControlMode(enum.Enum):
    PD_PLUS_FEEDFORWARD_TORQUE = "pd_plus_feedforward_torque"


@dataclass(frozen=True)
class ContactRecord:
    local_body_index: int
    contact_frame: np.ndarray
    impulse: np.ndarray
    skipped: bool = False


class PhysicsEngine(Protocol):
    @property
    def generalized_coordinate_dim(self) -> int:
        ...

    @property
    def dof(self) -> int:
        ...

    def set_control_mode(self, mode: ControlMode) -> None:
        ...

    def set_pd_gains(self, p_gains: np.ndarray, d_gains: np.ndarray) -> None:
        ...

    def set_pd_target(self, position_target: np.ndarray, velocity_target: np.ndarray) -> None:
        ...

    def set_generalized_force(self, force: np.ndarray) -> None:
        ...

    def set_state(self, coords: np.ndarray, velocities: np.ndarray) -> None:
        ...

    def get_state(self) -> Tuple[np.ndarray, np.ndarray]:
        ...

    def get_generalized_force(self) -> np.ndarray:
        ...

    def get_contacts(self) -> Sequence[ContactRecord]:
        ...

    def get_body_index(self, name: str) -> int:
        ...

    def set_time_step(self, dt: float) -> None:
        ...

    def integrate(self) -> None:
        ...
