from __future__ import annotations

import pytest

from multigait.envs.termination import EpisodeStatus, TerminationChecker

from fakes import BODY_INDICES, FOOT_BODIES, TRUNK, foot_contacts, vertical_contact

FOOT_INDICES = tuple(BODY_INDICES[name] for name in FOOT_BODIES)


@pytest.fixture
def checker() -> TerminationChecker:
    return TerminationChecker(FOOT_INDICES, terminal_reward=-10.0)


def test_foot_only_contacts_keep_running(checker) -> None:
    signal = checker.check(foot_contacts([1.0, 1.0, 1.0, 1.0]))
    assert not signal.terminated
    assert signal.terminal_reward == 0.0
    assert checker.status is EpisodeStatus.RUNNING


def test_no_contacts_keep_running(checker) -> None:
    signal = checker.check([])
    assert not signal.terminated
    assert signal.terminal_reward == 0.0


def test_trunk_contact_terminates_with_penalty(checker) -> None:
    contacts = foot_contacts([1.0, 1.0, 1.0, 1.0]) + [vertical_contact(TRUNK, 0.1)]
    signal = checker.check(contacts)
    assert signal.terminated
    assert signal.terminal_reward == -10.0
    assert checker.status is EpisodeStatus.TERMINATED


def test_thigh_contact_terminates(checker) -> None:
    signal = checker.check([vertical_contact(BODY_INDICES["RL_thigh"], 0.0, skipped=True)])
    assert signal.terminated


def test_terminated_is_absorbing_until_reset(checker) -> None:
    checker.check([vertical_contact(TRUNK, 0.1)])
    again = checker.check(foot_contacts([1.0, 1.0, 1.0, 1.0]))
    assert again.terminated
    assert again.terminal_reward == -10.0

    checker.reset()
    assert checker.status is EpisodeStatus.RUNNING
    after_reset = checker.check(foot_contacts([1.0, 1.0, 1.0, 1.0]))
    assert not after_reset.terminated


def test_configured_penalty_is_used() -> None:
    checker = TerminationChecker(FOOT_INDICES, terminal_reward=-3.5)
    assert checker.check([vertical_contact(TRUNK, 0.1)]).terminal_reward == -3.5


def test_whitelist_needs_four_feet() -> None:
    with pytest.raises(ValueError):
        TerminationChecker((2, 4, 6))
