from __future__ import annotations

from dataclasses import dataclass

import numpy as np

BASE_COORD_DIM = 7
BASE_DOF = 6


@dataclass(frozen=True)
class PdTarget:
    position: np.ndarray
    velocity: np.ndarray


class ActionScaler:
    """Maps normalized policy actions to joint position targets.

    target = action_mean + action * action_std, with no clipping. The base
    slice of the position target and the whole velocity target are zero.
    """

    def __init__(
        self,
        action_mean: np.ndarray,
        action_std: np.ndarray,
        *,
        gc_dim: int,
        gv_dim: int,
    ) -> None:
        mean = np.asarray(action_mean, dtype=np.float64)
        std = np.asarray(action_std, dtype=np.float64)
        if mean.ndim != 1 or std.ndim != 1:
            raise ValueError(
                f"action_mean/action_std must be 1-D, got shapes {mean.shape} and {std.shape}"
            )
        if mean.shape != std.shape:
            raise ValueError(
                f"action_mean and action_std differ in length: {mean.size} vs {std.size}"
            )
        n_joints = int(gv_dim) - BASE_DOF
        if int(gc_dim) - BASE_COORD_DIM != n_joints:
            raise ValueError(
                f"Generalized coordinate dim {gc_dim} and dof {gv_dim} disagree on joint count"
            )
        if mean.size != n_joints:
            raise ValueError(
                f"Action dim {mean.size} does not match joint count {n_joints}"
            )

        self._mean = mean.copy()
        self._std = std.copy()
        self._gc_dim = int(gc_dim)
        self._gv_dim = int(gv_dim)

    @property
    def action_dim(self) -> int:
        return int(self._mean.size)

    @property
    def action_mean(self) -> np.ndarray:
        return self._mean.copy()

    @property
    def action_std(self) -> np.ndarray:
        return self._std.copy()

    def scale(self, action: np.ndarray) -> np.ndarray:
        action = np.asarray(action, dtype=np.float64).reshape(-1)
        if action.size != self.action_dim:
            raise ValueError(f"Expected action of length {self.action_dim}, got {action.size}")
        return self._mean + action * self._std

    def pd_target(self, action: np.ndarray) -> PdTarget:
        position = np.zeros((self._gc_dim,), dtype=np.float64)
        position[BASE_COORD_DIM:] = self.scale(action)
        velocity = np.zeros((self._gv_dim,), dtype=np.float64)
        return PdTarget(position=position, velocity=velocity)
