"""Environment components and the assembled locomotion environment."""

from __future__ import annotations

from .contacts import ContactImpulseAggregator, FootImpulses, grf_entropy
from .multigait_env import MultigaitEnv
from .rewards import RewardBreakdown, RewardComposer
from .stepper import SimulationStepper, fine_step_count
from .termination import EpisodeStatus, TerminalSignal, TerminationChecker
from .vec_env import RunningMeanStd, VecEnv

__all__ = [
    "ContactImpulseAggregator",
    "EpisodeStatus",
    "FootImpulses",
    "MultigaitEnv",
    "RewardBreakdown",
    "RewardComposer",
    "RunningMeanStd",
    "SimulationStepper",
    "TerminalSignal",
    "TerminationChecker",
    "VecEnv",
    "fine_step_count",
    "grf_entropy",
]
