"""Pure numpy pieces of the control loop: frames, action scaling, observations."""

from __future__ import annotations

from .action import ActionScaler, PdTarget
from .obs import BodyState, ObservationBuilder, get_slices, obs_dim

__all__ = [
    "ActionScaler",
    "BodyState",
    "ObservationBuilder",
    "PdTarget",
    "get_slices",
    "obs_dim",
]
