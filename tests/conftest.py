"""
Shared test fixtures for multigait tests.

- `FakeEngine` (tests/fakes.py) stands in for the physics engine in unit tests
- `sim` tests load the packaged MuJoCo model
"""

from __future__ import annotations

import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

TESTS_ROOT = Path(__file__).resolve().parent
if str(TESTS_ROOT) not in sys.path:
    sys.path.insert(0, str(TESTS_ROOT))

import pytest

from multigait.configs.env_config import DEFAULT_MODEL_PATH, EnvConfig, RewardCoefficients

from fakes import FakeEngine


# =============================================================================
# Config Fixtures
# =============================================================================


@pytest.fixture
def reward_coefficients() -> RewardCoefficients:
    return RewardCoefficients(torque=4e-5, forward_velocity=0.3, grf_entropy=0.1)


@pytest.fixture
def env_config(reward_coefficients) -> EnvConfig:
    return EnvConfig(velocity=1.0, reward=reward_coefficients)


# =============================================================================
# Engine Fixtures
# =============================================================================


@pytest.fixture
def fake_engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture(scope="session")
def model_path() -> Path:
    return DEFAULT_MODEL_PATH


@pytest.fixture
def mujoco_engine(model_path):
    pytest.importorskip("mujoco")
    from multigait.sim_adapter.mujoco_engine import MujocoEngine

    return MujocoEngine.from_xml_path(model_path)
