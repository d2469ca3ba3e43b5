"""Connection info files read by humans and by the db visualizer."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import List

from .config import BootstrapConfig

logger = logging.getLogger(__name__)


def connection_record(config: BootstrapConfig) -> str:
    return (
        f"psql postgresql://{config.db_user}:{config.db_password}"
        f"@localhost:{config.port}/{config.db_name}"
    )


def env_exports(config: BootstrapConfig) -> str:
    pairs = [
        ("POSTGRES_URL", f"postgresql://localhost:{config.port}/{config.db_name}"),
        ("POSTGRES_USER", config.db_user),
        ("POSTGRES_PASSWORD", config.db_password),
        ("POSTGRES_DB", config.db_name),
        ("POSTGRES_PORT", str(config.port)),
    ]
    return "".join(f'export {key}="{value}"\n' for key, value in pairs)


def _stage(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    staged = path.with_name(f".{path.name}.tmp")
    staged.write_text(text, encoding="utf-8")
    return staged


def write_artifacts(config: BootstrapConfig) -> None:
    """Regenerate both files from scratch.

    Both files are staged next to their targets first and only swapped in
    once every staged write succeeded, so a failure leaves the previous
    files untouched.
    """

    targets = [
        (config.connection_file, connection_record(config) + "\n"),
        (config.env_file, env_exports(config)),
    ]
    staged: List[Path] = []
    try:
        for path, text in targets:
            staged.append(_stage(path, text))
    except OSError:
        for leftover in staged:
            leftover.unlink(missing_ok=True)
        raise

    for (path, _text), tmp in zip(targets, staged):
        os.replace(tmp, path)
    logger.info("Connection string saved to %s", config.connection_file)
    logger.info("Environment variables saved to %s", config.env_file)


def connection_summary(config: BootstrapConfig) -> List[str]:
    return [
        f"Database: {config.db_name}",
        f"User: {config.db_user}",
        f"Port: {config.port}",
        "To connect to the database, use one of the following commands:",
        f"psql -h localhost -U {config.db_user} -d {config.db_name} -p {config.port}",
        connection_record(config),
    ]


__all__ = ["connection_record", "connection_summary", "env_exports", "write_artifacts"]
