"""Thin wrappers around ``initdb``, ``postgres`` and ``pg_isready``."""

from __future__ import annotations

import getpass
import logging
import subprocess
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from .binaries import PgBinaries
from .config import BootstrapConfig
from .errors import BootstrapError, MissingBinariesError

READY_PROBE_TIMEOUT = 10.0


def _current_user() -> Optional[str]:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return None


def path_exists(path: Path) -> bool:
    """``Path.exists`` that reports an unreadable parent as an error instead of ``False``."""

    try:
        path.stat()
    except FileNotFoundError:
        return False
    except NotADirectoryError:
        return False
    except PermissionError as exc:
        raise BootstrapError(f"Permission denied while checking {path}: {exc}") from exc
    return True


class PostgresServer:
    """Runs the server tools, as the service account when one is configured."""

    def __init__(
        self,
        config: BootstrapConfig,
        binaries: PgBinaries,
        *,
        run: Callable[..., subprocess.CompletedProcess] = subprocess.run,
        popen: Callable[..., subprocess.Popen] = subprocess.Popen,
        current_user: Optional[str] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.config = config
        self.binaries = binaries
        self._run = run
        self._popen = popen
        self._current_user = current_user if current_user is not None else _current_user()
        self._logger = logger or logging.getLogger(__name__)

    def command_prefix(self) -> List[str]:
        user = self.config.service_user
        if not user or user == self._current_user:
            return []
        return ["sudo", "-u", user]

    def _command(self, executable: Path, *args: str) -> List[str]:
        return [*self.command_prefix(), str(executable), *args]

    def _invoke(self, argv: Sequence[str], **kwargs) -> subprocess.CompletedProcess:
        try:
            return self._run(list(argv), **kwargs)
        except FileNotFoundError as exc:
            raise MissingBinariesError([argv[0]], ["PATH"]) from exc
        except OSError as exc:
            raise BootstrapError(f"Failed to run {argv[0]}: {exc}") from exc

    def is_ready(self) -> bool:
        argv = self._command(
            self.binaries.pg_isready,
            "-h",
            self.config.host,
            "-p",
            str(self.config.port),
        )
        try:
            result = self._invoke(
                argv,
                capture_output=True,
                text=True,
                timeout=READY_PROBE_TIMEOUT,
            )
        except subprocess.TimeoutExpired:
            self._logger.debug("pg_isready timed out after %ss", READY_PROBE_TIMEOUT)
            return False
        return result.returncode == 0

    def is_initialized(self) -> bool:
        return path_exists(self.config.version_marker)

    def initialize(self) -> None:
        self._logger.info("Initializing PostgreSQL data directory %s...", self.config.data_dir)
        argv = self._command(self.binaries.initdb, "-D", str(self.config.data_dir))
        result = self._invoke(argv, capture_output=True, text=True)
        if result.returncode != 0:
            detail = (result.stderr or result.stdout or "").strip()
            raise BootstrapError(
                f"initdb failed with status {result.returncode}: {detail}"
            )

    def start(self) -> subprocess.Popen:
        """Spawn the server in the background and return its process handle."""

        argv = self._command(
            self.binaries.postgres,
            "-D",
            str(self.config.data_dir),
            "-p",
            str(self.config.port),
            "-h",
            self.config.listen_address,
        )
        self._logger.info(
            "Starting PostgreSQL server on %s:%s...",
            self.config.listen_address,
            self.config.port,
        )

        log_handle = None
        if self.config.server_log is not None:
            try:
                self.config.server_log.parent.mkdir(parents=True, exist_ok=True)
                log_handle = self.config.server_log.open("ab")
            except OSError as exc:
                raise BootstrapError(
                    f"Cannot open server log {self.config.server_log}: {exc}"
                ) from exc
        try:
            return self._popen(
                argv,
                stdout=log_handle,
                stderr=subprocess.STDOUT if log_handle is not None else None,
                start_new_session=True,
            )
        except FileNotFoundError as exc:
            raise MissingBinariesError([argv[0]], ["PATH"]) from exc
        except OSError as exc:
            raise BootstrapError(f"Failed to start {argv[0]}: {exc}") from exc
        finally:
            # The child keeps its own copy of the descriptor.
            if log_handle is not None:
                log_handle.close()


__all__ = ["PostgresServer", "READY_PROBE_TIMEOUT", "path_exists"]
