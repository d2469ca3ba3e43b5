"""Bootstrap a local PostgreSQL instance and provision the application database."""
from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import Optional

from .binaries import locate_binaries
from .config import BootstrapConfig
from .errors import BootstrapError
from .orchestrator import BootstrapOrchestrator, log_plan
from .provision import Provisioner
from .server import PostgresServer

LOG_PREFIX = "[pg-bootstrap]"

logger = logging.getLogger("pgbootstrap")


def configure_logging(level: Optional[str] = None) -> None:
    lvl_str = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    lvl = getattr(logging, lvl_str, logging.INFO)
    logging.basicConfig(
        level=lvl,
        format=f"{LOG_PREFIX} %(message)s",
        stream=sys.stdout,
        force=True,
    )


def _log_error(message: str) -> None:
    print(f"{LOG_PREFIX} ERROR: {message}", file=sys.stderr)


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the operations without executing them (can also be enabled via PGBOOTSTRAP_DRY_RUN).",
    )
    parser.add_argument(
        "--port",
        type=int,
        help="Server port (overrides DB_PORT).",
    )
    parser.add_argument(
        "--data-dir",
        type=str,
        help="PostgreSQL data directory (overrides PGDATA).",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        help="Logging level (overrides LOG_LEVEL).",
    )
    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_level)

    try:
        config = BootstrapConfig.from_env(args)
        logger.info("Starting PostgreSQL setup on port %s...", config.port)
        binaries = locate_binaries(config.bin_root)

        if config.dry_run:
            log_plan(config, binaries)
            return 0

        orchestrator = BootstrapOrchestrator(
            config,
            PostgresServer(config, binaries),
            Provisioner(config),
        )
        result = orchestrator.run()
    except BootstrapError as exc:
        _log_error(str(exc))
        return 1

    if result.error is not None:
        _log_error(str(result.error))
    return result.exit_code


if __name__ == "__main__":  # pragma: no cover - exercised via subprocess
    sys.exit(main())
