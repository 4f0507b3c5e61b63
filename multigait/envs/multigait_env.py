"""Quadruped velocity-tracking environment.

One control step:
    action -> ActionScaler -> SimulationStepper (fine physics sub-steps)
           -> ObservationBuilder + ContactImpulseAggregator -> RewardComposer

`is_terminal_state()` is called separately by the training loop after a
step. The environment owns its physics engine for its whole lifetime; no
physical state is cached across steps other than the last observation and
reward breakdown, both recomputed every step.

Usage:
    from multigait.configs import load_env_config
    from multigait.envs import MultigaitEnv

    env = MultigaitEnv(load_env_config())
    env.reset()
    reward = env.step(np.zeros(env.action_dim))
    obs = env.observe()
    done, terminal_reward = env.is_terminal_state()
"""

from __future__ import annotations

from typing import Dict, Optional, Tuple

import numpy as np
from absl import logging

from multigait.configs.env_config import EnvConfig
from multigait.contract.action import BASE_COORD_DIM, BASE_DOF, ActionScaler
from multigait.contract.obs import BodyState, ObservationBuilder
from multigait.envs.contacts import ContactImpulseAggregator, FootImpulses
from multigait.envs.rewards import RewardBreakdown, RewardComposer
from multigait.envs.stepper import SimulationStepper
from multigait.envs.termination import EpisodeStatus, TerminationChecker
from multigait.sim_adapter.engine import ControlMode, PhysicsEngine


class MultigaitEnv:
    def __init__(
        self,
        config: EnvConfig,
        engine: Optional[PhysicsEngine] = None,
        *,
        visualizable: bool = False,
    ) -> None:
        """Build the environment and configure the engine.

        Args:
            config: Environment configuration.
            engine: Physics engine to own; a MujocoEngine is created from
                ``config.model_path`` when None.
            visualizable: Launch a passive viewer and guard every physics
                sub-step with its mutex. Requires a MujocoEngine.

        Raises:
            ValueError: If the config disagrees with the mechanism
                (coordinate sizes, joint count, unknown foot bodies).
        """
        if engine is None:
            from multigait.sim_adapter.mujoco_engine import MujocoEngine

            engine = MujocoEngine.from_xml_path(config.model_path)

        self.config = config
        self._engine = engine

        self.gc_dim = int(engine.generalized_coordinate_dim)
        self.gv_dim = int(engine.dof)
        self.n_joints = self.gv_dim - BASE_DOF
        if self.n_joints < 1 or self.gc_dim - BASE_COORD_DIM != self.n_joints:
            raise ValueError(
                f"Mechanism must be a floating base with joints: gc_dim={self.gc_dim}, dof={self.gv_dim}"
            )

        self._gc_init = np.asarray(config.nominal_qpos, dtype=np.float64)
        if self._gc_init.size != self.gc_dim:
            raise ValueError(
                f"nominal_qpos has {self._gc_init.size} entries, mechanism has {self.gc_dim} coordinates"
            )
        self._gv_init = np.zeros((self.gv_dim,), dtype=np.float64)

        # PD on joints only; base dofs stay passive.
        engine.set_control_mode(ControlMode.PD_PLUS_FEEDFORWARD_TORQUE)
        p_gains = np.zeros((self.gv_dim,), dtype=np.float64)
        d_gains = np.zeros((self.gv_dim,), dtype=np.float64)
        p_gains[BASE_DOF:] = config.p_gain
        d_gains[BASE_DOF:] = config.d_gain
        engine.set_pd_gains(p_gains, d_gains)
        engine.set_generalized_force(np.zeros((self.gv_dim,), dtype=np.float64))

        foot_indices = tuple(engine.get_body_index(name) for name in config.foot_body_names)

        self._action_scaler = ActionScaler(
            action_mean=self._gc_init[BASE_COORD_DIM:],
            action_std=np.full((self.n_joints,), config.action_std, dtype=np.float64),
            gc_dim=self.gc_dim,
            gv_dim=self.gv_dim,
        )
        self._stepper = SimulationStepper(
            engine,
            control_dt=config.control_dt,
            simulation_dt=config.simulation_dt,
        )
        self._obs_builder = ObservationBuilder(self.n_joints)
        self._aggregator = ContactImpulseAggregator(foot_indices)
        self._reward_composer = RewardComposer(config.reward, desired_velocity=config.velocity)
        self._termination = TerminationChecker(foot_indices, terminal_reward=config.terminal_reward)

        self._viewer = None
        if visualizable:
            if not hasattr(engine, "launch_viewer"):
                raise ValueError(f"{type(engine).__name__} does not support visualization")
            self._viewer = engine.launch_viewer()
            self._stepper.attach_lock(self._viewer.mutex)

        self._body_state: Optional[BodyState] = None
        self._foot_impulses: Optional[FootImpulses] = None
        self._last_reward: Optional[RewardBreakdown] = None

        logging.info(
            "MultigaitEnv: obs_dim=%d action_dim=%d substeps=%d foot_bodies=%s",
            self.ob_dim,
            self.action_dim,
            self._stepper.n_substeps,
            dict(zip(config.foot_body_names, foot_indices)),
        )

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def engine(self) -> PhysicsEngine:
        return self._engine

    @property
    def ob_dim(self) -> int:
        return self._obs_builder.obs_dim

    @property
    def action_dim(self) -> int:
        return self._action_scaler.action_dim

    @property
    def foot_body_indices(self) -> Tuple[int, ...]:
        return self._aggregator.foot_body_indices

    @property
    def status(self) -> EpisodeStatus:
        return self._termination.status

    @property
    def n_substeps(self) -> int:
        return self._stepper.n_substeps

    @property
    def foot_impulses(self) -> Optional[FootImpulses]:
        return self._foot_impulses

    @property
    def body_linear_velocity(self) -> np.ndarray:
        return self._require_body_state().linvel_body.copy()

    @property
    def body_angular_velocity(self) -> np.ndarray:
        return self._require_body_state().angvel_body.copy()

    # ------------------------------------------------------------------
    # Episode API
    # ------------------------------------------------------------------

    def reset(self) -> None:
        self._engine.set_state(self._gc_init, self._gv_init)
        self._termination.reset()
        self._last_reward = None
        self.update_observation()

    def step(self, action: np.ndarray) -> float:
        target = self._action_scaler.pd_target(action)
        self._stepper.advance(target)
        if self._viewer is not None:
            self._viewer.sync()

        self.update_observation()

        body_state = self._require_body_state()
        self._last_reward = self._reward_composer.compose(
            generalized_force=self._engine.get_generalized_force(),
            forward_velocity=float(body_state.linvel_body[0]),
            entropy=self._foot_impulses.entropy,
        )
        return self._last_reward.total

    def update_observation(self) -> None:
        gc, gv = self._engine.get_state()
        self._body_state = self._obs_builder.build(gc, gv)
        self._foot_impulses = self._aggregator.aggregate(self._engine.get_contacts())

    def observe(self) -> np.ndarray:
        return self._require_body_state().observation.astype(np.float32)

    def is_terminal_state(self) -> Tuple[bool, float]:
        signal = self._termination.check(self._engine.get_contacts())
        if signal.terminated:
            logging.debug("Episode terminated: non-foot ground contact")
        return signal.terminated, signal.terminal_reward

    def reward_breakdown(self) -> Dict[str, float]:
        """Weighted reward terms of the last step (zeros before the first step)."""
        if self._last_reward is None:
            return RewardBreakdown(torque=0.0, forward_velocity=0.0, grf_entropy=0.0).as_dict()
        return self._last_reward.as_dict()

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def set_simulation_time_step(self, dt: float) -> None:
        self._stepper.set_time_steps(simulation_dt=dt)

    def set_control_time_step(self, dt: float) -> None:
        self._stepper.set_time_steps(control_dt=dt)

    def close(self) -> None:
        if self._viewer is not None:
            self._stepper.detach_lock()
            self._viewer.close()
            self._viewer = None

    def _require_body_state(self) -> BodyState:
        if self._body_state is None:
            raise RuntimeError("Environment has no observation yet; call reset() first")
        return self._body_state
