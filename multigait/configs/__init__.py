from __future__ import annotations

from .env_config import (
    DEFAULT_CONFIG_PATH,
    EnvConfig,
    RewardCoefficients,
    load_env_config,
    override_config,
)

__all__ = [
    "DEFAULT_CONFIG_PATH",
    "EnvConfig",
    "RewardCoefficients",
    "load_env_config",
    "override_config",
]
