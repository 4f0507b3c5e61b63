from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Tuple

import mujoco
import numpy as np

from multigait.contract.frames import quat_to_rot_mat
from multigait.sim_adapter.engine import ContactRecord, ControlMode

WORLD_BODY_ID = 0


class _ViewerMutex:
    """Reusable context manager around ``Handle.lock()`` of the passive viewer."""

    def __init__(self, handle) -> None:
        self._handle = handle
        self._held = None

    def __enter__(self) -> "_ViewerMutex":
        ctx = self._handle.lock()
        ctx.__enter__()
        self._held = ctx
        return self

    def __exit__(self, exc_type, exc, tb):
        ctx, self._held = self._held, None
        return ctx.__exit__(exc_type, exc, tb)


class ViewerSession:
    def __init__(self, handle) -> None:
        self._handle = handle
        self.mutex = _ViewerMutex(handle)

    def sync(self) -> None:
        if self._handle.is_running():
            self._handle.sync()

    def close(self) -> None:
        self._handle.close()


class MujocoEngine:
    """`PhysicsEngine` backed by native MuJoCo (MjModel/MjData).

    The model must have a free-floating root at qpos[0:7] and one joint
    actuator per actuated joint, declared as ``general`` actuators with
    fixed gain and affine bias so PD gains can be rewritten at runtime.
    MuJoCo stores the free-joint angular velocity in the local frame; it is
    converted to world frame at the contract boundary.
    """

    def __init__(self, mj_model: mujoco.MjModel, mj_data: Optional[mujoco.MjData] = None) -> None:
        self._model = mj_model
        self._data = mj_data if mj_data is not None else mujoco.MjData(mj_model)

        if mj_model.njnt < 1 or mj_model.jnt_type[0] != mujoco.mjtJoint.mjJNT_FREE:
            raise ValueError("MujocoEngine requires a free joint as the first joint of the model")
        if int(mj_model.jnt_qposadr[0]) != 0 or int(mj_model.jnt_dofadr[0]) != 0:
            raise ValueError("Free joint must occupy qpos[0:7] and qvel[0:6]")

        self._act_qpos_idx, self._act_dof_idx = _resolve_actuator_joint_indices(mj_model)

        self._kp = np.zeros((mj_model.nu,), dtype=np.float64)
        self._kd = np.zeros((mj_model.nu,), dtype=np.float64)
        self._feedforward = np.zeros((mj_model.nv,), dtype=np.float64)
        self._velocity_target = np.zeros((mj_model.nv,), dtype=np.float64)
        self._control_mode: Optional[ControlMode] = None
        self._contact_force = np.zeros(6, dtype=np.float64)

        mujoco.mj_forward(self._model, self._data)

    @classmethod
    def from_xml_path(cls, path: str | Path) -> "MujocoEngine":
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"MJCF model not found: {path}")
        return cls(mujoco.MjModel.from_xml_path(str(path)))

    # ------------------------------------------------------------------
    # Dimensions / raw access
    # ------------------------------------------------------------------

    @property
    def model(self) -> mujoco.MjModel:
        return self._model

    @property
    def data(self) -> mujoco.MjData:
        return self._data

    @property
    def generalized_coordinate_dim(self) -> int:
        return int(self._model.nq)

    @property
    def dof(self) -> int:
        return int(self._model.nv)

    @property
    def control_mode(self) -> Optional[ControlMode]:
        return self._control_mode

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    def set_control_mode(self, mode: ControlMode) -> None:
        if mode is not ControlMode.PD_PLUS_FEEDFORWARD_TORQUE:
            raise ValueError(f"Unsupported control mode: {mode}")
        self._control_mode = mode

    def set_pd_gains(self, p_gains: np.ndarray, d_gains: np.ndarray) -> None:
        p_gains = _check_size(p_gains, self.dof, "p_gains")
        d_gains = _check_size(d_gains, self.dof, "d_gains")
        self._kp = p_gains[self._act_dof_idx]
        self._kd = d_gains[self._act_dof_idx]

        self._model.actuator_gainprm[:, 0] = self._kp
        self._model.actuator_biasprm[:, 0] = 0.0
        self._model.actuator_biasprm[:, 1] = -self._kp
        self._model.actuator_biasprm[:, 2] = -self._kd
        self._apply_generalized_force()

    def set_pd_target(self, position_target: np.ndarray, velocity_target: np.ndarray) -> None:
        position_target = _check_size(position_target, self.generalized_coordinate_dim, "position_target")
        self._velocity_target = _check_size(velocity_target, self.dof, "velocity_target")
        self._data.ctrl[:] = position_target[self._act_qpos_idx]
        self._apply_generalized_force()

    def set_generalized_force(self, force: np.ndarray) -> None:
        self._feedforward = _check_size(force, self.dof, "force")
        self._apply_generalized_force()

    def _apply_generalized_force(self) -> None:
        # Velocity targets enter as kd * v_target on the actuated dofs.
        qfrc = self._feedforward.copy()
        qfrc[self._act_dof_idx] += self._kd * self._velocity_target[self._act_dof_idx]
        self._data.qfrc_applied[:] = qfrc

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def set_state(self, coords: np.ndarray, velocities: np.ndarray) -> None:
        coords = _check_size(coords, self.generalized_coordinate_dim, "coords")
        qvel = _check_size(velocities, self.dof, "velocities")
        rot = quat_to_rot_mat(coords[3:7])
        qvel[3:6] = rot.T @ qvel[3:6]

        self._data.qpos[:] = coords
        self._data.qvel[:] = qvel
        self._data.qacc_warmstart[:] = 0.0
        mujoco.mj_forward(self._model, self._data)

    def get_state(self) -> Tuple[np.ndarray, np.ndarray]:
        gc = np.array(self._data.qpos, dtype=np.float64)
        gv = np.array(self._data.qvel, dtype=np.float64)
        rot = quat_to_rot_mat(gc[3:7])
        gv[3:6] = rot @ gv[3:6]
        return gc, gv

    def get_generalized_force(self) -> np.ndarray:
        return np.array(self._data.qfrc_actuator, dtype=np.float64) + np.array(
            self._data.qfrc_applied, dtype=np.float64
        )

    def get_contacts(self) -> List[ContactRecord]:
        """One record per non-world body touching something in this step.

        mj_contactForce reports the force geom1 exerts on geom2 in the contact
        frame; the geom1-side record carries the negated impulse. When two
        robot bodies touch, the second record is flagged as skipped.
        """
        dt = float(self._model.opt.timestep)
        records: List[ContactRecord] = []
        for i in range(int(self._data.ncon)):
            con = self._data.contact[i]
            body1 = int(self._model.geom_bodyid[con.geom1])
            body2 = int(self._model.geom_bodyid[con.geom2])
            frame = np.array(con.frame, dtype=np.float64).reshape(3, 3)

            no_constraint = int(con.efc_address) < 0
            if no_constraint:
                impulse = np.zeros(3, dtype=np.float64)
            else:
                mujoco.mj_contactForce(self._model, self._data, i, self._contact_force)
                impulse = self._contact_force[:3] * dt

            if body2 != WORLD_BODY_ID:
                records.append(
                    ContactRecord(
                        local_body_index=body2,
                        contact_frame=frame,
                        impulse=impulse.copy(),
                        skipped=no_constraint,
                    )
                )
            if body1 != WORLD_BODY_ID:
                records.append(
                    ContactRecord(
                        local_body_index=body1,
                        contact_frame=frame,
                        impulse=-impulse,
                        skipped=no_constraint or body2 != WORLD_BODY_ID,
                    )
                )
        return records

    def get_body_index(self, name: str) -> int:
        body_id = mujoco.mj_name2id(self._model, mujoco.mjtObj.mjOBJ_BODY, name)
        if body_id < 0:
            raise ValueError(f"Body '{name}' not found in MJCF")
        return int(body_id)

    # ------------------------------------------------------------------
    # Integration
    # ------------------------------------------------------------------

    def set_time_step(self, dt: float) -> None:
        if dt <= 0.0:
            raise ValueError(f"Simulation time step must be positive, got {dt}")
        self._model.opt.timestep = float(dt)

    def integrate(self) -> None:
        mujoco.mj_step(self._model, self._data)

    def launch_viewer(self) -> ViewerSession:
        import mujoco.viewer

        handle = mujoco.viewer.launch_passive(self._model, self._data)
        return ViewerSession(handle)


def _check_size(values: np.ndarray, size: int, name: str) -> np.ndarray:
    arr = np.array(values, dtype=np.float64).reshape(-1)
    if arr.size != size:
        raise ValueError(f"{name} must have length {size}, got {arr.size}")
    return arr


def _resolve_actuator_joint_indices(mj_model: mujoco.MjModel) -> tuple[np.ndarray, np.ndarray]:
    qpos_idx = []
    dof_idx = []
    for act_id in range(int(mj_model.nu)):
        trn_type = mj_model.actuator_trntype[act_id]
        if trn_type != mujoco.mjtTrn.mjTRN_JOINT:
            raise ValueError(
                f"Actuator {act_id} does not target a joint (trntype={int(trn_type)})"
            )
        if mj_model.actuator_gaintype[act_id] != mujoco.mjtGain.mjGAIN_FIXED:
            raise ValueError(f"Actuator {act_id} must use a fixed gain")
        if mj_model.actuator_biastype[act_id] != mujoco.mjtBias.mjBIAS_AFFINE:
            raise ValueError(f"Actuator {act_id} must use an affine bias")

        joint_id = int(mj_model.actuator_trnid[act_id][0])
        qpos_idx.append(int(mj_model.jnt_qposadr[joint_id]))
        dof_idx.append(int(mj_model.jnt_dofadr[joint_id]))

    return np.asarray(qpos_idx, dtype=np.int32), np.asarray(dof_idx, dtype=np.int32)
