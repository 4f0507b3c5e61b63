"""Batch of MultigaitEnv instances with observation normalisation.

Each step adds the terminal reward and resets an environment as soon as it
reports a terminal state, so the caller always sees a live batch.
Observations are normalised with running statistics:

    obs_n = clip((obs - mean) / sqrt(var + 1e-8), -clip_obs, clip_obs)
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

import numpy as np
from absl import logging

from multigait.configs.env_config import EnvConfig
from multigait.envs.multigait_env import MultigaitEnv
from multigait.sim_adapter.engine import PhysicsEngine

EngineFactory = Callable[[int], PhysicsEngine]


class RunningMeanStd:
    """Running mean/variance with the parallel (batched) Welford update."""

    def __init__(self, shape: Tuple[int, ...], epsilon: float = 1e-4) -> None:
        self.mean = np.zeros(shape, dtype=np.float64)
        self.var = np.ones(shape, dtype=np.float64)
        self.count = float(epsilon)

    def update(self, batch: np.ndarray) -> None:
        batch = np.asarray(batch, dtype=np.float64)
        batch_mean = batch.mean(axis=0)
        batch_var = batch.var(axis=0)
        batch_count = batch.shape[0]

        delta = batch_mean - self.mean
        total = self.count + batch_count
        new_mean = self.mean + delta * batch_count / total
        m2 = self.var * self.count + batch_var * batch_count + np.square(delta) * self.count * batch_count / total

        self.mean = new_mean
        self.var = m2 / total
        self.count = total


class VecEnv:
    def __init__(
        self,
        config: EnvConfig,
        *,
        num_envs: Optional[int] = None,
        engine_factory: Optional[EngineFactory] = None,
        normalize_ob: bool = True,
        clip_obs: float = 10.0,
    ) -> None:
        self.config = config
        self.num_envs = int(num_envs if num_envs is not None else config.num_envs)
        if self.num_envs < 1:
            raise ValueError(f"num_envs must be >= 1, got {self.num_envs}")

        self.envs: List[MultigaitEnv] = []
        for i in range(self.num_envs):
            engine = engine_factory(i) if engine_factory is not None else None
            self.envs.append(
                MultigaitEnv(config, engine, visualizable=bool(config.render and i == 0))
            )

        self.ob_dim = self.envs[0].ob_dim
        self.action_dim = self.envs[0].action_dim
        self.normalize_ob = bool(normalize_ob)
        self.clip_obs = float(clip_obs)
        self.obs_rms = RunningMeanStd(shape=(self.ob_dim,))

        logging.info(
            "VecEnv: num_envs=%d obs_dim=%d action_dim=%d",
            self.num_envs,
            self.ob_dim,
            self.action_dim,
        )

    def reset(self) -> None:
        for env in self.envs:
            env.reset()

    def step(self, actions: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        actions = np.asarray(actions, dtype=np.float64)
        if actions.shape != (self.num_envs, self.action_dim):
            raise ValueError(
                f"Expected actions of shape {(self.num_envs, self.action_dim)}, got {actions.shape}"
            )

        rewards = np.zeros((self.num_envs,), dtype=np.float32)
        dones = np.zeros((self.num_envs,), dtype=bool)
        for i, env in enumerate(self.envs):
            reward = env.step(actions[i])
            terminated, terminal_reward = env.is_terminal_state()
            if terminated:
                env.reset()
                reward += terminal_reward
            rewards[i] = reward
            dones[i] = terminated
        return rewards, dones

    def observe(self, update_statistics: bool = True) -> np.ndarray:
        obs = np.stack([env.observe() for env in self.envs]).astype(np.float32)
        if not self.normalize_ob:
            return obs
        if update_statistics:
            self.obs_rms.update(obs)
        normalized = (obs - self.obs_rms.mean) / np.sqrt(self.obs_rms.var + 1e-8)
        return np.clip(normalized, -self.clip_obs, self.clip_obs).astype(np.float32)

    def reward_info(self) -> List[Dict[str, float]]:
        return [env.reward_breakdown() for env in self.envs]

    def save_scaling(self, dir_name: str | Path, iteration: int) -> None:
        out_dir = Path(dir_name)
        out_dir.mkdir(parents=True, exist_ok=True)
        np.savetxt(out_dir / f"mean{iteration}.csv", self.obs_rms.mean)
        np.savetxt(out_dir / f"var{iteration}.csv", self.obs_rms.var)
        logging.info("Saved observation scaling for iteration %d to %s", iteration, out_dir)

    def load_scaling(self, dir_name: str | Path, iteration: int, count: float = 1e5) -> None:
        in_dir = Path(dir_name)
        mean_path = in_dir / f"mean{iteration}.csv"
        var_path = in_dir / f"var{iteration}.csv"
        for path in (mean_path, var_path):
            if not path.exists():
                raise FileNotFoundError(f"Observation scaling file not found: {path}")

        mean = np.atleast_1d(np.loadtxt(mean_path, dtype=np.float64))
        var = np.atleast_1d(np.loadtxt(var_path, dtype=np.float64))
        if mean.shape != (self.ob_dim,) or var.shape != (self.ob_dim,):
            raise ValueError(
                f"Scaling files have shapes {mean.shape}/{var.shape}, expected ({self.ob_dim},)"
            )
        self.obs_rms.mean = mean
        self.obs_rms.var = var
        self.obs_rms.count = float(count)
        logging.info("Loaded observation scaling for iteration %d from %s", iteration, in_dir)

    def close(self) -> None:
        for env in self.envs:
            env.close()
