"""Inspection of the server's ``postmaster.pid`` lock file.

The lock file is written by the server and is treated here as untrusted
input: it is only deleted after the recorded PID fails a liveness check.
"""

from __future__ import annotations

import enum
import errno
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from .errors import BootstrapError

logger = logging.getLogger(__name__)


class LockState(enum.Enum):
    ABSENT = "absent"
    LIVE = "live"
    STALE = "stale"


@dataclass(frozen=True)
class LockStatus:
    state: LockState
    pid: Optional[int] = None
    reason: str = ""


def read_pid(path: Path) -> Optional[int]:
    """Return the PID on the first line of ``path`` or ``None`` when it is unparseable.

    ``FileNotFoundError`` propagates; a ``PermissionError`` is reported as a
    :class:`BootstrapError` since it cannot be resolved by retrying.
    """

    try:
        with path.open("r", encoding="utf-8", errors="replace") as fh:
            first_line = fh.readline().strip()
    except PermissionError as exc:
        raise BootstrapError(f"Cannot read lock file {path}: {exc}") from exc
    try:
        pid = int(first_line)
    except ValueError:
        return None
    return pid if pid > 0 else None


def _process_name(pid: int) -> Optional[str]:
    comm = Path("/proc") / str(pid) / "comm"
    try:
        return comm.read_text(encoding="utf-8", errors="replace").strip()
    except OSError:
        return None


def is_server_process(pid: int) -> bool:
    """Return True when ``pid`` is alive and, where ``/proc`` is available, named postgres."""

    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Owned by another account (e.g. the postgres service user) but alive.
        pass
    except OSError as exc:
        if exc.errno == errno.ESRCH:
            return False
        raise

    name = _process_name(pid)
    if name is None:
        return True
    return "postgres" in name or "postmaster" in name


def inspect_lock(
    path: Path,
    *,
    is_alive: Callable[[int], bool] = is_server_process,
) -> LockStatus:
    try:
        pid = read_pid(path)
    except FileNotFoundError:
        return LockStatus(LockState.ABSENT)

    if pid is None:
        return LockStatus(LockState.STALE, None, "process identifier unreadable")
    if is_alive(pid):
        return LockStatus(LockState.LIVE, pid, "server process is alive")
    return LockStatus(LockState.STALE, pid, "no live server process")


def remove_stale_lock(path: Path, status: LockStatus) -> None:
    if status.state is not LockState.STALE:
        raise ValueError(f"Refusing to remove a lock file in state {status.state.value}")
    logger.warning(
        "Removing stale lock file %s (pid=%s, %s)", path, status.pid, status.reason
    )
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except PermissionError as exc:
        raise BootstrapError(f"Cannot remove stale lock file {path}: {exc}") from exc


__all__ = [
    "LockState",
    "LockStatus",
    "inspect_lock",
    "is_server_process",
    "read_pid",
    "remove_stale_lock",
]
