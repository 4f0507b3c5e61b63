from __future__ import annotations

import dataclasses
import math

import numpy as np
import pytest

from multigait.contract.obs import get_slices
from multigait.envs import EpisodeStatus, MultigaitEnv
from multigait.sim_adapter.engine import ControlMode

from fakes import N_JOINTS, TRUNK, FakeEngine, foot_contacts, vertical_contact

LOG4 = math.log(4.0)


@pytest.fixture
def env(env_config, fake_engine) -> MultigaitEnv:
    env = MultigaitEnv(env_config, fake_engine)
    env.reset()
    return env


class TestConstruction:
    def test_dimensions(self, env) -> None:
        assert env.action_dim == N_JOINTS
        assert env.ob_dim == 1 + 3 + N_JOINTS + 3 + 3 + N_JOINTS
        assert env.n_substeps == 4

    def test_engine_is_configured_for_joint_pd(self, env, fake_engine) -> None:
        assert fake_engine.control_mode is ControlMode.PD_PLUS_FEEDFORWARD_TORQUE
        assert np.all(fake_engine.p_gains[:6] == 0.0)
        assert np.all(fake_engine.d_gains[:6] == 0.0)
        assert np.allclose(fake_engine.p_gains[6:], 40.0)
        assert np.allclose(fake_engine.d_gains[6:], 1.0)
        assert np.all(fake_engine.feedforward == 0.0)
        assert fake_engine.time_step == pytest.approx(0.0025)

    def test_foot_indices_come_from_engine(self, env) -> None:
        assert env.foot_body_indices == (2, 4, 6, 8)

    def test_nominal_size_mismatch(self, env_config) -> None:
        with pytest.raises(ValueError, match="nominal_qpos"):
            MultigaitEnv(env_config, FakeEngine(n_joints=12))

    def test_unknown_foot_body(self, env_config, fake_engine) -> None:
        config = dataclasses.replace(
            env_config, foot_body_names=("FR_calf", "FL_calf", "RR_calf", "RL_foot")
        )
        with pytest.raises(ValueError, match="RL_foot"):
            MultigaitEnv(config, fake_engine)

    def test_visualization_needs_viewer_support(self, env_config, fake_engine) -> None:
        with pytest.raises(ValueError, match="visualization"):
            MultigaitEnv(env_config, fake_engine, visualizable=True)

    def test_observe_before_reset(self, env_config, fake_engine) -> None:
        env = MultigaitEnv(env_config, fake_engine)
        with pytest.raises(RuntimeError, match="reset"):
            env.observe()


class TestReset:
    def test_reset_restores_nominal_state(self, env, env_config, fake_engine) -> None:
        fake_engine.gc[2] = 0.1
        fake_engine.gv[:] = 3.0
        env.reset()
        assert np.allclose(fake_engine.gc, env_config.nominal_qpos)
        assert np.all(fake_engine.gv == 0.0)

    def test_reset_observation_is_deterministic(self, env) -> None:
        first = env.observe()
        env.step(np.ones(env.action_dim))
        env.reset()
        second = env.observe()
        assert first.dtype == np.float32
        assert np.array_equal(first, second)

        slices = get_slices(N_JOINTS)
        assert first[slices["base_height"]][0] == pytest.approx(0.46)
        assert np.allclose(first[slices["up_vector_body"]], [0.0, 0.0, 1.0])
        assert np.allclose(first[slices["joint_pos"]], [0.5, -1.0] * 4)

    def test_reset_clears_termination(self, env, fake_engine) -> None:
        fake_engine.contacts = [vertical_contact(TRUNK, 0.1)]
        assert env.is_terminal_state()[0]
        fake_engine.contacts = []
        env.reset()
        assert env.status is EpisodeStatus.RUNNING
        assert env.is_terminal_state() == (False, 0.0)


class TestStep:
    def test_step_sends_scaled_pd_target(self, env, env_config, fake_engine) -> None:
        action = np.linspace(-1.0, 1.0, N_JOINTS)
        env.step(action)

        position, velocity = fake_engine.pd_targets[-1]
        nominal = np.asarray(env_config.nominal_qpos)
        assert np.allclose(position[7:], nominal[7:] + action * env_config.action_std)
        assert np.all(position[:7] == 0.0)
        assert np.all(velocity == 0.0)
        assert fake_engine.integrate_calls == 4

    def test_reward_on_target_velocity(self, env, fake_engine) -> None:
        fake_engine.gv[0] = 1.0
        reward = env.step(np.zeros(N_JOINTS))
        # No contacts: uniform foot distribution.
        assert reward == pytest.approx(0.3 + 0.1 * LOG4)

    def test_reward_matches_breakdown(self, env, fake_engine) -> None:
        rng = np.random.default_rng(5)
        fake_engine.generalized_force = rng.normal(size=fake_engine.dof) * 20.0
        fake_engine.gv[0] = 0.4
        fake_engine.contacts = foot_contacts([0.05, 0.02, 0.0, 0.07])

        reward = env.step(rng.normal(size=N_JOINTS))
        breakdown = env.reward_breakdown()
        assert reward == pytest.approx(sum(breakdown.values()))
        assert breakdown["torque"] < 0.0
        assert breakdown["forwardVel_difference"] == pytest.approx(0.3 * math.exp(-0.6))
        assert 0.0 < breakdown["GRF_entropy"] < 0.1 * LOG4

    def test_zero_force_has_no_torque_cost(self, env) -> None:
        env.step(np.zeros(N_JOINTS))
        assert env.reward_breakdown()["torque"] == 0.0

    def test_breakdown_before_first_step_is_zero(self, env) -> None:
        assert env.reward_breakdown() == {
            "torque": 0.0,
            "forwardVel_difference": 0.0,
            "GRF_entropy": 0.0,
        }

    def test_forward_velocity_is_body_frame(self, env, fake_engine) -> None:
        # Yaw by 90 degrees: world +y is body +x.
        half = math.pi / 4.0
        fake_engine.gc[3:7] = [math.cos(half), 0.0, 0.0, math.sin(half)]
        fake_engine.gv[:3] = [0.0, 1.0, 0.0]
        env.step(np.zeros(N_JOINTS))
        assert np.allclose(env.body_linear_velocity, [1.0, 0.0, 0.0], atol=1e-12)
        assert env.reward_breakdown()["forwardVel_difference"] == pytest.approx(0.3)

    def test_wrong_action_size(self, env) -> None:
        with pytest.raises(ValueError):
            env.step(np.zeros(N_JOINTS + 1))

    def test_time_step_setters(self, env, fake_engine) -> None:
        env.set_simulation_time_step(0.002)
        assert fake_engine.time_step == pytest.approx(0.002)
        assert env.n_substeps == 5
        env.set_control_time_step(0.02)
        assert env.n_substeps == 10


class TestTermination:
    def test_feet_only_contact_is_not_terminal(self, env, fake_engine) -> None:
        fake_engine.contacts = foot_contacts([0.1, 0.1, 0.1, 0.1])
        env.step(np.zeros(N_JOINTS))
        assert env.is_terminal_state() == (False, 0.0)

    def test_trunk_contact_is_terminal(self, env, fake_engine) -> None:
        fake_engine.contacts = foot_contacts([0.1, 0.1, 0.1, 0.1]) + [vertical_contact(TRUNK, 0.2)]
        env.step(np.zeros(N_JOINTS))
        terminated, terminal_reward = env.is_terminal_state()
        assert terminated
        assert terminal_reward == -10.0
        assert env.status is EpisodeStatus.TERMINATED
