"""Polling a server until it accepts connections."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from .config import BackoffPolicy

Probe = Callable[[], bool]


@dataclass
class ReadinessOutcome:
    ready: bool
    attempts: int
    process_alive: Optional[bool] = None
    used_grace: bool = False


def poll_until_ready(
    probe: Probe,
    policy: BackoffPolicy,
    *,
    is_alive: Optional[Callable[[], bool]] = None,
    sleep: Callable[[float], None] = time.sleep,
    logger: Optional[logging.Logger] = None,
) -> ReadinessOutcome:
    """Probe until ready, sleeping with exponential backoff between attempts.

    Polling stops early when ``is_alive`` reports that the process went away.
    """

    log = logger or logging.getLogger(__name__)
    attempts = 0
    for attempts, delay in enumerate(policy.delays(), start=1):
        if probe():
            return ReadinessOutcome(ready=True, attempts=attempts)
        if is_alive is not None and not is_alive():
            log.info("Server process exited while waiting for readiness.")
            return ReadinessOutcome(ready=False, attempts=attempts, process_alive=False)
        if attempts < policy.max_attempts:
            log.info("Waiting... (%d/%d)", attempts, policy.max_attempts)
            sleep(delay)
    return ReadinessOutcome(ready=False, attempts=attempts)


def wait_for_server(
    probe: Probe,
    is_alive: Callable[[], bool],
    policy: BackoffPolicy,
    *,
    grace_seconds: float,
    sleep: Callable[[float], None] = time.sleep,
    logger: Optional[logging.Logger] = None,
) -> ReadinessOutcome:
    """Poll a freshly spawned server, allowing one grace re-check if it is still running."""

    log = logger or logging.getLogger(__name__)
    outcome = poll_until_ready(probe, policy, is_alive=is_alive, sleep=sleep, logger=log)
    if outcome.ready:
        return outcome

    if outcome.process_alive is False or not is_alive():
        return ReadinessOutcome(ready=False, attempts=outcome.attempts, process_alive=False)

    log.warning(
        "Server still running but not ready after %d attempts; waiting %.1fs grace period.",
        outcome.attempts,
        grace_seconds,
    )
    sleep(grace_seconds)
    ready = probe()
    return ReadinessOutcome(
        ready=ready,
        attempts=outcome.attempts + 1,
        process_alive=True if ready else is_alive(),
        used_grace=True,
    )


__all__ = ["ReadinessOutcome", "poll_until_ready", "wait_for_server"]
