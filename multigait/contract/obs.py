from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Tuple

import numpy as np

from multigait.contract.action import BASE_COORD_DIM, BASE_DOF
from multigait.contract.frames import quat_to_rot_mat, up_vector_body, world_to_body


@dataclass(frozen=True)
class ObsField:
    name: str
    size: int
    frame: str | None = None


def obs_layout(n_joints: int) -> List[ObsField]:
    return [
        ObsField("base_height", 1, frame="world"),
        ObsField("up_vector_body", 3, frame="body"),
        ObsField("joint_pos", n_joints),
        ObsField("base_linvel_body", 3, frame="body"),
        ObsField("base_angvel_body", 3, frame="body"),
        ObsField("joint_vel", n_joints),
    ]


def obs_dim(n_joints: int) -> int:
    return sum(f.size for f in obs_layout(n_joints))


def get_slices(n_joints: int) -> Dict[str, slice]:
    """Compute name->slice mapping for the observation layout."""
    idx = 0
    out: Dict[str, slice] = {}
    for field in obs_layout(n_joints):
        out[field.name] = slice(idx, idx + field.size)
        idx += field.size
    return out


@dataclass(frozen=True)
class BodyState:
    observation: np.ndarray
    rotation: np.ndarray
    linvel_body: np.ndarray
    angvel_body: np.ndarray


class ObservationBuilder:
    """Builds the observation vector from generalized coordinates/velocities.

    Velocities in ``gv`` are expected in world frame for the base; they are
    rotated into the body frame with R^T.
    """

    def __init__(self, n_joints: int) -> None:
        if n_joints < 1:
            raise ValueError(f"n_joints must be >= 1, got {n_joints}")
        self.n_joints = int(n_joints)
        self.obs_dim = obs_dim(self.n_joints)

    def _check(self, gc: np.ndarray, gv: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        gc = np.asarray(gc, dtype=np.float64).reshape(-1)
        gv = np.asarray(gv, dtype=np.float64).reshape(-1)
        if gc.size != BASE_COORD_DIM + self.n_joints:
            raise ValueError(
                f"Expected generalized coordinate of size {BASE_COORD_DIM + self.n_joints}, got {gc.size}"
            )
        if gv.size != BASE_DOF + self.n_joints:
            raise ValueError(
                f"Expected generalized velocity of size {BASE_DOF + self.n_joints}, got {gv.size}"
            )
        return gc, gv

    def build(self, gc: np.ndarray, gv: np.ndarray) -> BodyState:
        gc, gv = self._check(gc, gv)

        rot = quat_to_rot_mat(gc[3:7])
        linvel_body = world_to_body(rot, gv[0:3])
        angvel_body = world_to_body(rot, gv[3:6])

        obs = np.concatenate(
            [
                gc[2:3],
                up_vector_body(rot),
                gc[BASE_COORD_DIM:],
                linvel_body,
                angvel_body,
                gv[BASE_DOF:],
            ]
        )
        return BodyState(
            observation=obs,
            rotation=rot,
            linvel_body=linvel_body,
            angvel_body=angvel_body,
        )
