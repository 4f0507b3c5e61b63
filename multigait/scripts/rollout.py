#!/usr/bin/env python3
"""Random-action rollout of the multigait environment.

Runs a VecEnv with Gaussian actions around the nominal pose and prints the
mean of each reward term, the termination count and the mean observation.

Usage:
    multigait-rollout
    multigait-rollout --config my_task.yaml --steps 800 --num-envs 8
    multigait-rollout --render --num-envs 1
"""

from __future__ import annotations

import argparse
import time
from typing import Dict, List

import numpy as np
from absl import logging
from rich.console import Console
from rich.table import Table

from multigait.configs import load_env_config
from multigait.contract.obs import get_slices
from multigait.envs import VecEnv

console = Console()


def parse_args(argv: List[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Roll out random actions in the multigait environment")
    parser.add_argument("--config", type=str, default=None, help="Path to env YAML (default: packaged default.yaml)")
    parser.add_argument("--steps", type=int, default=None, help="Control steps (default: max_time / control_dt)")
    parser.add_argument("--num-envs", type=int, default=None, help="Number of environments (overrides config)")
    parser.add_argument("--seed", type=int, default=None, help="Random seed (overrides config)")
    parser.add_argument("--action-noise", type=float, default=0.5, help="Std of the normalized random actions")
    parser.add_argument("--render", action="store_true", help="Open a viewer for the first environment")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    return parser.parse_args(argv)


def main(argv: List[str] | None = None) -> None:
    args = parse_args(argv)
    logging.set_verbosity(logging.DEBUG if args.verbose else logging.INFO)

    overrides = {
        "environment.num_envs": args.num_envs,
        "seed": args.seed,
        "environment.render": True if args.render else None,
    }
    cfg = load_env_config(args.config, overrides=overrides)
    steps = args.steps if args.steps is not None else cfg.max_episode_steps
    rng = np.random.default_rng(cfg.seed)

    vec_env = VecEnv(cfg)
    vec_env.reset()

    term_sums: Dict[str, float] = {}
    total_reward = 0.0
    terminations = 0
    raw_obs = []

    start = time.time()
    try:
        for _ in range(steps):
            actions = rng.normal(scale=args.action_noise, size=(vec_env.num_envs, vec_env.action_dim))
            rewards, dones = vec_env.step(actions)
            raw_obs.append(np.stack([env.observe() for env in vec_env.envs]))

            total_reward += float(rewards.sum())
            terminations += int(dones.sum())
            for info in vec_env.reward_info():
                for name, value in info.items():
                    term_sums[name] = term_sums.get(name, 0.0) + value
    finally:
        vec_env.close()
    elapsed = time.time() - start

    n_samples = max(steps * vec_env.num_envs, 1)
    table = Table(title=f"Rollout: {steps} steps x {vec_env.num_envs} envs ({elapsed:.1f}s)")
    table.add_column("Quantity", style="cyan")
    table.add_column("Mean per step", justify="right")
    for name, value in term_sums.items():
        table.add_row(f"reward/{name}", f"{value / n_samples:+.5f}")
    table.add_row("reward/total (incl. terminal)", f"{total_reward / n_samples:+.5f}")
    table.add_row("terminations", str(terminations))
    console.print(table)

    if raw_obs:
        obs = np.concatenate(raw_obs, axis=0)
        obs_table = Table(title="Observation (raw) mean")
        obs_table.add_column("Field", style="cyan")
        obs_table.add_column("Mean")
        n_joints = vec_env.envs[0].n_joints
        for name, sl in get_slices(n_joints).items():
            obs_table.add_row(name, np.array2string(obs[:, sl].mean(axis=0), precision=3))
        console.print(obs_table)


if __name__ == "__main__":
    main()
