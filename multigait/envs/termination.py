from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import FrozenSet, Iterable, Sequence

from multigait.sim_adapter.engine import ContactRecord


class EpisodeStatus(enum.Enum):
    RUNNING = "running"
    TERMINATED = "terminated"


@dataclass(frozen=True)
class TerminalSignal:
    terminated: bool
    terminal_reward: float


class TerminationChecker:
    """Two-state episode machine: any ground contact off the feet ends the episode.

    TERMINATED is absorbing until `reset()`.
    """

    def __init__(self, foot_body_indices: Sequence[int], terminal_reward: float = -10.0) -> None:
        self._allowed: FrozenSet[int] = frozenset(int(i) for i in foot_body_indices)
        if len(self._allowed) != 4:
            raise ValueError(f"Expected 4 distinct foot body indices, got {list(foot_body_indices)}")
        self.terminal_reward = float(terminal_reward)
        self._status = EpisodeStatus.RUNNING

    @property
    def status(self) -> EpisodeStatus:
        return self._status

    @property
    def allowed_body_indices(self) -> FrozenSet[int]:
        return self._allowed

    def reset(self) -> None:
        self._status = EpisodeStatus.RUNNING

    def check(self, contacts: Iterable[ContactRecord]) -> TerminalSignal:
        if self._status is EpisodeStatus.RUNNING:
            for contact in contacts:
                if int(contact.local_body_index) not in self._allowed:
                    self._status = EpisodeStatus.TERMINATED
                    break

        if self._status is EpisodeStatus.TERMINATED:
            return TerminalSignal(terminated=True, terminal_reward=self.terminal_reward)
        return TerminalSignal(terminated=False, terminal_reward=0.0)
