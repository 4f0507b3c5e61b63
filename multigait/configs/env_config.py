"""Environment configuration for the multigait locomotion task.

Configuration is loaded from a YAML document shaped like:

    seed: 1
    environment:
      simulation_dt: 0.0025
      control_dt: 0.01
      velocity: 1.0
      reward:
        torque: {coeff: 4.0e-5}
        forwardVel_difference: {coeff: 0.3}
        GRF_entropy: {coeff: 0.1}

`velocity` and the three reward coefficients are required; everything else
has a default. All validation happens at load time so a malformed config
never reaches the step loop.

Usage:
    from multigait.configs import load_env_config

    config = load_env_config()  # packaged default.yaml
    config = load_env_config("my_task.yaml", overrides={"environment.velocity": 0.5})
"""

from __future__ import annotations

import copy
import math
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml

# =============================================================================
# Defaults
# =============================================================================

PACKAGE_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_CONFIG_PATH = PACKAGE_ROOT / "configs" / "default.yaml"
DEFAULT_MODEL_PATH = PACKAGE_ROOT / "assets" / "laikago.xml"

DEFAULT_NOMINAL_QPOS: Tuple[float, ...] = (
    0.0, 0.0, 0.46, 1.0, 0.0, 0.0, 0.0,
    0.5, -1.0, 0.5, -1.0, 0.5, -1.0, 0.5, -1.0,
)
DEFAULT_FOOT_BODY_NAMES: Tuple[str, ...] = ("FR_calf", "FL_calf", "RR_calf", "RL_calf")

TORQUE_KEY = "torque"
FORWARD_VEL_KEY = "forwardVel_difference"
GRF_ENTROPY_KEY = "GRF_entropy"
REWARD_KEYS = (TORQUE_KEY, FORWARD_VEL_KEY, GRF_ENTROPY_KEY)


# =============================================================================
# Config dataclasses
# =============================================================================


@dataclass(frozen=True)
class RewardCoefficients:
    """Weights of the three reward terms.

    Attributes:
        torque: weight on -||generalized force||^2
        forward_velocity: weight on exp(-|v_x - v_desired|)
        grf_entropy: weight on the foot-impulse entropy
    """

    torque: float
    forward_velocity: float
    grf_entropy: float

    @classmethod
    def from_dict(cls, reward: Mapping[str, Any]) -> "RewardCoefficients":
        if not isinstance(reward, Mapping):
            raise ValueError(f"'environment.reward' must be a mapping, got {type(reward).__name__}")
        values = {}
        for key in REWARD_KEYS:
            term = reward.get(key)
            if not isinstance(term, Mapping) or "coeff" not in term:
                raise ValueError(f"Missing required config key 'environment.reward.{key}.coeff'")
            values[key] = _as_float(term["coeff"], f"environment.reward.{key}.coeff")
        return cls(
            torque=values[TORQUE_KEY],
            forward_velocity=values[FORWARD_VEL_KEY],
            grf_entropy=values[GRF_ENTROPY_KEY],
        )

    def to_dict(self) -> Dict[str, Dict[str, float]]:
        return {
            TORQUE_KEY: {"coeff": self.torque},
            FORWARD_VEL_KEY: {"coeff": self.forward_velocity},
            GRF_ENTROPY_KEY: {"coeff": self.grf_entropy},
        }


@dataclass(frozen=True)
class EnvConfig:
    """Complete environment configuration.

    Attributes:
        velocity: Desired forward body velocity [m/s]
        reward: Reward term weights
        seed: Base random seed (env i uses seed + i)
        num_envs: Number of environments in a VecEnv
        render: Open a viewer for the first environment
        simulation_dt: Physics integration step [s]
        control_dt: Control interval [s]; must be >= simulation_dt
        max_time: Episode horizon used by rollout tooling [s]
        terminal_reward: Reward added when a non-foot body touches the ground
        action_std: Per-joint action scale [rad]
        p_gain: Joint PD proportional gain
        d_gain: Joint PD derivative gain
        nominal_qpos: Reset pose; also the action mean for the joint tail
        foot_body_names: The four bodies allowed to touch the ground
        model_path: MJCF model file
    """

    velocity: float
    reward: RewardCoefficients
    seed: int = 0
    num_envs: int = 1
    render: bool = False
    simulation_dt: float = 0.0025
    control_dt: float = 0.01
    max_time: float = 4.0
    terminal_reward: float = -10.0
    action_std: float = 0.3
    p_gain: float = 40.0
    d_gain: float = 1.0
    nominal_qpos: Tuple[float, ...] = DEFAULT_NOMINAL_QPOS
    foot_body_names: Tuple[str, ...] = DEFAULT_FOOT_BODY_NAMES
    model_path: str = field(default=str(DEFAULT_MODEL_PATH))

    def __post_init__(self) -> None:
        if self.simulation_dt <= 0.0 or self.control_dt <= 0.0:
            raise ValueError(
                f"Time steps must be positive: simulation_dt={self.simulation_dt}, "
                f"control_dt={self.control_dt}"
            )
        if self.control_dt + 1e-10 < self.simulation_dt:
            raise ValueError(
                f"control_dt ({self.control_dt}) must be >= simulation_dt ({self.simulation_dt})"
            )
        if self.num_envs < 1:
            raise ValueError(f"num_envs must be >= 1, got {self.num_envs}")
        if self.max_time <= 0.0:
            raise ValueError(f"max_time must be positive, got {self.max_time}")
        if self.p_gain < 0.0 or self.d_gain < 0.0:
            raise ValueError(f"PD gains must be non-negative: p={self.p_gain}, d={self.d_gain}")
        if len(self.foot_body_names) != 4 or len(set(self.foot_body_names)) != 4:
            raise ValueError(
                f"foot_body_names must list 4 distinct bodies, got {list(self.foot_body_names)}"
            )
        if len(self.nominal_qpos) < 8:
            raise ValueError(
                f"nominal_qpos needs 7 base coordinates and at least one joint, got {len(self.nominal_qpos)}"
            )
        if math.sqrt(sum(v * v for v in self.nominal_qpos[3:7])) <= 1e-8:
            raise ValueError("nominal_qpos base quaternion must be non-zero")

    @property
    def max_episode_steps(self) -> int:
        return int(self.max_time / self.control_dt + 1e-10)

    @classmethod
    def from_dict(
        cls, data: Mapping[str, Any], *, config_dir: Optional[Path] = None
    ) -> "EnvConfig":
        """Build from a parsed YAML document (``seed`` + ``environment``)."""
        if not isinstance(data, Mapping):
            raise ValueError("Config document must be a mapping")
        env = data.get("environment")
        if not isinstance(env, Mapping):
            raise ValueError("Missing required config section 'environment'")
        if "velocity" not in env:
            raise ValueError("Missing required config key 'environment.velocity'")
        if "reward" not in env:
            raise ValueError("Missing required config section 'environment.reward'")

        kwargs: Dict[str, Any] = {
            "velocity": _as_float(env["velocity"], "environment.velocity"),
            "reward": RewardCoefficients.from_dict(env["reward"]),
            "seed": int(data.get("seed", 0)),
        }
        if "num_envs" in env:
            kwargs["num_envs"] = int(env["num_envs"])
        if "render" in env:
            kwargs["render"] = bool(env["render"])
        for key in (
            "simulation_dt",
            "control_dt",
            "max_time",
            "terminal_reward",
            "action_std",
            "p_gain",
            "d_gain",
        ):
            if key in env:
                kwargs[key] = _as_float(env[key], f"environment.{key}")
        if "nominal_qpos" in env:
            kwargs["nominal_qpos"] = tuple(
                _as_float(v, "environment.nominal_qpos") for v in env["nominal_qpos"]
            )
        if "foot_body_names" in env:
            kwargs["foot_body_names"] = tuple(str(v) for v in env["foot_body_names"])
        if "model_path" in env:
            kwargs["model_path"] = str(_resolve_path(env["model_path"], config_dir))

        return cls(**kwargs)

    @classmethod
    def from_yaml(cls, config_path: str | Path) -> "EnvConfig":
        return load_env_config(config_path)

    def to_dict(self) -> Dict[str, Any]:
        env = asdict(self)
        seed = env.pop("seed")
        env["reward"] = self.reward.to_dict()
        env["nominal_qpos"] = list(self.nominal_qpos)
        env["foot_body_names"] = list(self.foot_body_names)
        return {"seed": seed, "environment": env}


# =============================================================================
# Loading
# =============================================================================


def load_env_config(
    config_path: Optional[str | Path] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> EnvConfig:
    """Load an EnvConfig from YAML.

    Args:
        config_path: YAML file; the packaged default.yaml when None.
        overrides: Dotted-key overrides, e.g. {"environment.velocity": 0.5}.

    Raises:
        FileNotFoundError: If the config file does not exist
        ValueError: If required keys are missing or malformed
    """
    path = DEFAULT_CONFIG_PATH if config_path is None else Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, "r") as f:
        data = yaml.safe_load(f)
    if data is None:
        raise ValueError(f"Config file is empty: {path}")

    if overrides:
        data = override_config(data, overrides)

    return EnvConfig.from_dict(data, config_dir=path.parent.resolve())


def override_config(config: Mapping[str, Any], overrides: Mapping[str, Any]) -> Dict[str, Any]:
    """Return a copy of ``config`` with dotted-key overrides applied.

    Example:
        override_config({"environment": {"velocity": 1.0}}, {"environment.velocity": 0.5})
    """
    config_copy = copy.deepcopy(dict(config))

    for key, value in overrides.items():
        if value is None:
            continue
        keys = key.split(".")
        current = config_copy
        for k in keys[:-1]:
            if k not in current or not isinstance(current[k], dict):
                current[k] = {}
            current = current[k]
        current[keys[-1]] = value

    return config_copy


def _as_float(value: Any, key: str) -> float:
    try:
        out = float(value)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Config key '{key}' must be a number, got {value!r}") from e
    if not math.isfinite(out):
        raise ValueError(f"Config key '{key}' must be finite, got {value!r}")
    return out


def _resolve_path(path: Any, config_dir: Optional[Path]) -> Path:
    p = Path(str(path))
    if p.is_absolute() or config_dir is None:
        return p
    return (config_dir / p).resolve()
