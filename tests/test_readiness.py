from __future__ import annotations

from typing import List

from pgbootstrap.config import BackoffPolicy
from pgbootstrap.readiness import poll_until_ready, wait_for_server


class _Probe:
    def __init__(self, ready_on: int | None) -> None:
        self.ready_on = ready_on
        self.calls = 0

    def __call__(self) -> bool:
        self.calls += 1
        return self.ready_on is not None and self.calls >= self.ready_on


POLICY = BackoffPolicy(initial_delay=0.5, factor=2.0, max_delay=2.0, max_attempts=5)


def test_ready_after_a_few_attempts():
    sleeps: List[float] = []
    probe = _Probe(ready_on=3)

    outcome = poll_until_ready(probe, POLICY, sleep=sleeps.append)

    assert outcome.ready
    assert outcome.attempts == 3
    assert sleeps == [0.5, 1.0]


def test_gives_up_after_max_attempts_with_capped_delay():
    sleeps: List[float] = []
    probe = _Probe(ready_on=None)

    outcome = poll_until_ready(probe, POLICY, sleep=sleeps.append)

    assert not outcome.ready
    assert probe.calls == 5
    assert sleeps == [0.5, 1.0, 2.0, 2.0]


def test_stops_early_when_process_exits():
    sleeps: List[float] = []

    outcome = poll_until_ready(
        _Probe(ready_on=None), POLICY, is_alive=lambda: False, sleep=sleeps.append
    )

    assert not outcome.ready
    assert outcome.process_alive is False
    assert outcome.attempts == 1
    assert sleeps == []


def test_grace_window_rescues_slow_start():
    sleeps: List[float] = []
    probe = _Probe(ready_on=6)

    outcome = wait_for_server(
        probe, lambda: True, POLICY, grace_seconds=10.0, sleep=sleeps.append
    )

    assert outcome.ready
    assert outcome.used_grace
    assert sleeps[-1] == 10.0


def test_alive_but_unresponsive_fails_after_grace():
    sleeps: List[float] = []

    outcome = wait_for_server(
        _Probe(ready_on=None), lambda: True, POLICY, grace_seconds=10.0, sleep=sleeps.append
    )

    assert not outcome.ready
    assert outcome.used_grace
    assert outcome.process_alive is True
    assert sleeps.count(10.0) == 1


def test_dead_process_skips_grace():
    sleeps: List[float] = []

    outcome = wait_for_server(
        _Probe(ready_on=None), lambda: False, POLICY, grace_seconds=10.0, sleep=sleeps.append
    )

    assert not outcome.ready
    assert not outcome.used_grace
    assert outcome.process_alive is False
    assert 10.0 not in sleeps
