"""State machine that takes a PostgreSQL instance from unknown to provisioned.

Each state is handled by one method that returns the next state. Fatal
conditions raise :class:`BootstrapError`; :meth:`BootstrapOrchestrator.run`
turns them into a ``FAILED`` result so callers never deal with raw exit codes.

Running two orchestrators against the same data directory at once is not
supported. The server's own lock file is the only mutual exclusion.
"""

from __future__ import annotations

import dataclasses
import enum
import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Protocol

from . import artifacts, lockfile
from .binaries import PgBinaries
from .config import BootstrapConfig
from .errors import BootstrapError, ServerStartError
from .readiness import poll_until_ready, wait_for_server


class State(enum.Enum):
    UNKNOWN = "unknown"
    LOCK_PRESENT = "lock_present"
    POSSIBLY_STARTING = "possibly_starting"
    NEEDS_INIT = "needs_init"
    NEEDS_START = "needs_start"
    STARTING = "starting"
    READY = "ready"
    PROVISIONED = "provisioned"
    ALREADY_RUNNING = "already_running"
    FAILED = "failed"


SUCCESS_STATES = frozenset({State.PROVISIONED, State.ALREADY_RUNNING})
TERMINAL_STATES = SUCCESS_STATES | {State.FAILED}


class ServerControl(Protocol):
    def is_ready(self) -> bool: ...

    def is_initialized(self) -> bool: ...

    def initialize(self) -> None: ...

    def start(self): ...


class SupportsProvision(Protocol):
    def provision(self) -> None: ...


@dataclass
class BootstrapResult:
    state: State
    exit_code: int
    initialized: bool = False
    started: bool = False
    provisioned: bool = False
    removed_stale_lock: bool = False
    error: Optional[BootstrapError] = None

    @property
    def ok(self) -> bool:
        return self.state in SUCCESS_STATES


class BootstrapOrchestrator:
    def __init__(
        self,
        config: BootstrapConfig,
        server: ServerControl,
        provisioner: SupportsProvision,
        *,
        inspect_lock: Callable[..., lockfile.LockStatus] = lockfile.inspect_lock,
        remove_lock: Callable[..., None] = lockfile.remove_stale_lock,
        sleep: Callable[[float], None] = time.sleep,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.config = config
        self.server = server
        self.provisioner = provisioner
        self._inspect_lock = inspect_lock
        self._remove_lock = remove_lock
        self._sleep = sleep
        self._logger = logger or logging.getLogger(__name__)
        self._lock_status: Optional[lockfile.LockStatus] = None
        self._process = None
        self._result = BootstrapResult(state=State.UNKNOWN, exit_code=1)
        self._handlers: Dict[State, Callable[[], State]] = {
            State.UNKNOWN: self._detect_running,
            State.LOCK_PRESENT: self._reconcile_lock,
            State.POSSIBLY_STARTING: self._await_lock_owner,
            State.NEEDS_INIT: self._initialize_storage,
            State.NEEDS_START: self._start_server,
            State.STARTING: self._wait_until_ready,
            State.READY: self._provision,
        }

    @property
    def process(self):
        return self._process

    def run(self) -> BootstrapResult:
        state = State.UNKNOWN
        try:
            while state not in TERMINAL_STATES:
                self._logger.debug("State: %s", state.value)
                state = self._handlers[state]()
            self._persist(state)
        except BootstrapError as exc:
            self._result.error = exc
            state = State.FAILED

        self._result.state = state
        self._result.exit_code = 0 if state in SUCCESS_STATES else 1
        return dataclasses.replace(self._result)

    # ------------------------------------------------------------------
    # State handlers
    # ------------------------------------------------------------------
    def _detect_running(self) -> State:
        if self.server.is_ready():
            self._logger.info(
                "PostgreSQL is already running on port %s!", self.config.port
            )
            return State.ALREADY_RUNNING

        self._lock_status = self._inspect_lock(self.config.lock_file)
        if self._lock_status.state is lockfile.LockState.ABSENT:
            return State.NEEDS_INIT
        return State.LOCK_PRESENT

    def _reconcile_lock(self) -> State:
        status = self._lock_status
        assert status is not None

        if status.state is lockfile.LockState.LIVE:
            self._logger.info(
                "Lock file %s is held by live server process %s; keeping it.",
                self.config.lock_file,
                status.pid,
            )
            return State.POSSIBLY_STARTING

        self._remove_lock(self.config.lock_file, status)
        self._result.removed_stale_lock = True
        return State.NEEDS_INIT

    def _await_lock_owner(self) -> State:
        backoff = self.config.backoff
        policy = dataclasses.replace(backoff, max_attempts=self.config.live_lock_attempts)
        outcome = poll_until_ready(
            self.server.is_ready, policy, sleep=self._sleep, logger=self._logger
        )
        if outcome.ready:
            self._logger.info("Existing server became ready after %d attempts.", outcome.attempts)
            return State.ALREADY_RUNNING

        self._logger.warning(
            "Server process %s holds the lock but is not accepting connections; attempting start.",
            self._lock_status.pid if self._lock_status else None,
        )
        # Never run initdb against a directory a live process still holds.
        return State.NEEDS_START

    def _initialize_storage(self) -> State:
        if self.server.is_initialized():
            self._logger.info("Data directory %s already initialized.", self.config.data_dir)
            return State.NEEDS_START

        self.server.initialize()
        if not self.server.is_initialized():
            raise BootstrapError(
                f"initdb finished but {self.config.version_marker} was not created"
            )
        self._result.initialized = True
        return State.NEEDS_START

    def _start_server(self) -> State:
        self._process = self.server.start()
        self._result.started = True
        self._logger.info("Waiting for PostgreSQL to start...")
        return State.STARTING

    def _wait_until_ready(self) -> State:
        process = self._process

        def is_alive() -> bool:
            return process.poll() is None

        outcome = wait_for_server(
            self.server.is_ready,
            is_alive,
            self.config.backoff,
            grace_seconds=self.config.grace_seconds,
            sleep=self._sleep,
            logger=self._logger,
        )
        if outcome.ready:
            self._logger.info("PostgreSQL is ready!")
            return State.READY

        if outcome.process_alive:
            raise ServerStartError(
                f"PostgreSQL did not become ready on port {self.config.port} "
                "within the grace period"
            )
        raise ServerStartError(
            f"PostgreSQL did not become ready on port {self.config.port}",
            returncode=process.poll(),
        )

    def _provision(self) -> State:
        self._logger.info("Setting up database and user...")
        self.provisioner.provision()
        self._result.provisioned = True
        return State.PROVISIONED

    def _persist(self, state: State) -> None:
        try:
            artifacts.write_artifacts(self.config)
        except OSError as exc:
            raise BootstrapError(f"Failed to write connection files: {exc}") from exc
        if state is State.PROVISIONED:
            self._logger.info("PostgreSQL setup complete!")
        for line in artifacts.connection_summary(self.config):
            self._logger.info("%s", line)


def log_plan(
    config: BootstrapConfig,
    binaries: PgBinaries,
    *,
    logger: Optional[logging.Logger] = None,
) -> None:
    log = logger or logging.getLogger(__name__)
    log.info("DRY RUN: no changes will be applied.")
    log.info("Would use PostgreSQL %s binaries from %s.", binaries.version or "PATH", binaries.postgres.parent)
    log.info("Would probe %s:%s for a running server.", config.host, config.port)
    log.info("Would remove %s only if its process is not alive.", config.lock_file)
    log.info("Would initialize %s if %s is missing.", config.data_dir, config.version_marker.name)
    log.info(
        "Would start the server on %s:%s as '%s'.",
        config.listen_address,
        config.port,
        config.service_user or "the current user",
    )
    log.info(
        "Would ensure database '%s' and role '%s' exist and grant privileges on schema '%s'.",
        config.db_name,
        config.db_user,
        config.schema,
    )
    log.info("Would write %s and %s.", config.connection_file, config.env_file)


__all__ = [
    "BootstrapOrchestrator",
    "BootstrapResult",
    "State",
    "SUCCESS_STATES",
    "log_plan",
]
