"""Runtime settings read from the environment and command line."""

from __future__ import annotations

import argparse
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .errors import BootstrapError


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise BootstrapError(f"{name} must be an integer, got {raw!r}") from exc


@dataclass
class BackoffPolicy:
    """Exponential backoff used while waiting for the server to accept connections."""

    initial_delay: float = 0.5
    factor: float = 2.0
    max_delay: float = 4.0
    max_attempts: int = 15

    def delays(self):
        delay = self.initial_delay
        for _ in range(self.max_attempts):
            yield delay
            delay = min(delay * self.factor, self.max_delay)


@dataclass
class BootstrapConfig:
    db_name: str
    db_user: str
    db_password: str
    port: int
    data_dir: Path
    host: str
    listen_address: str
    bin_root: Path
    service_user: Optional[str]
    schema: str
    superuser: str
    superuser_db: str
    superuser_password: Optional[str]
    connection_file: Path
    env_file: Path
    server_log: Optional[Path]
    dry_run: bool
    backoff: BackoffPolicy
    grace_seconds: float = 10.0
    live_lock_attempts: int = 5

    @property
    def lock_file(self) -> Path:
        return self.data_dir / "postmaster.pid"

    @property
    def version_marker(self) -> Path:
        return self.data_dir / "PG_VERSION"

    @classmethod
    def from_env(cls, args: Optional[argparse.Namespace] = None) -> "BootstrapConfig":
        dry_run = bool(getattr(args, "dry_run", False)) or _env_bool("PGBOOTSTRAP_DRY_RUN", False)

        port = getattr(args, "port", None)
        if port is None:
            port = _env_int("DB_PORT", 5001)
        if not 0 < port < 65536:
            raise BootstrapError(f"Port out of range: {port}")

        data_dir = getattr(args, "data_dir", None) or os.environ.get(
            "PGDATA", "/var/lib/postgresql/data"
        )

        # An explicitly empty service user disables the sudo prefix.
        service_user = os.environ.get("PGBOOTSTRAP_SERVICE_USER", "postgres").strip() or None

        server_log_env = os.environ.get("PGBOOTSTRAP_SERVER_LOG", "").strip()

        return cls(
            db_name=os.environ.get("DB_NAME", "myapp"),
            db_user=os.environ.get("DB_USER", "appuser"),
            db_password=os.environ.get("DB_PASSWORD", "dbuser123"),
            port=port,
            data_dir=Path(data_dir).expanduser(),
            host=os.environ.get("PGBOOTSTRAP_HOST", "localhost"),
            listen_address=os.environ.get("PGBOOTSTRAP_LISTEN_ADDRESS", "0.0.0.0"),
            bin_root=Path(os.environ.get("PGBOOTSTRAP_BIN_ROOT", "/usr/lib/postgresql")),
            service_user=service_user,
            schema=os.environ.get("PGBOOTSTRAP_SCHEMA", "public"),
            superuser=os.environ.get("POSTGRES_SUPERUSER", "postgres"),
            superuser_db=os.environ.get("POSTGRES_SUPERUSER_DB", "postgres"),
            superuser_password=(
                os.environ.get("POSTGRES_SUPERUSER_PASSWORD")
                or os.environ.get("PGPASSWORD")
                or None
            ),
            connection_file=Path(
                os.environ.get("PGBOOTSTRAP_CONNECTION_FILE", "db_connection.txt")
            ),
            env_file=Path(
                os.environ.get("PGBOOTSTRAP_ENV_FILE", "db_visualizer/postgres.env")
            ),
            server_log=Path(server_log_env).expanduser() if server_log_env else None,
            dry_run=dry_run,
            backoff=BackoffPolicy(),
        )


__all__ = ["BackoffPolicy", "BootstrapConfig"]
