"""Locate the PostgreSQL server executables installed on the host."""

from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

from .errors import MissingBinariesError

REQUIRED_TOOLS = ("initdb", "postgres", "pg_isready")

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PgBinaries:
    version: Optional[str]
    initdb: Path
    postgres: Path
    pg_isready: Path


def _version_key(name: str) -> Tuple[int, ...]:
    parts: List[int] = []
    for piece in name.split("."):
        if not piece.isdigit():
            break
        parts.append(int(piece))
    return tuple(parts)


def installed_versions(bin_root: Path) -> List[str]:
    """Return the versions under ``bin_root`` that ship a ``bin`` directory, newest first."""

    if not bin_root.is_dir():
        return []
    versions = [
        entry.name
        for entry in bin_root.iterdir()
        if (entry / "bin").is_dir() and _version_key(entry.name)
    ]
    return sorted(versions, key=_version_key, reverse=True)


def _from_directory(bin_dir: Path) -> dict:
    found = {}
    for tool in REQUIRED_TOOLS:
        candidate = bin_dir / tool
        if candidate.is_file() and os.access(candidate, os.X_OK):
            found[tool] = candidate
    return found


def _from_path() -> dict:
    found = {}
    for tool in REQUIRED_TOOLS:
        located = shutil.which(tool)
        if located:
            found[tool] = Path(located)
    return found


def locate_binaries(bin_root: Path) -> PgBinaries:
    """Find ``initdb``, ``postgres`` and ``pg_isready``.

    The highest numeric version below ``bin_root`` wins. When ``bin_root``
    holds no versions at all the tools are looked up on ``PATH`` instead.
    """

    versions = installed_versions(bin_root)
    searched: List[str] = []

    if versions:
        version = versions[0]
        bin_dir = bin_root / version / "bin"
        searched.append(str(bin_dir))
        found = _from_directory(bin_dir)
    else:
        version = None
        searched.append(str(bin_root))
        searched.append("PATH")
        found = _from_path()

    missing = [tool for tool in REQUIRED_TOOLS if tool not in found]
    if missing:
        raise MissingBinariesError(missing, searched)

    logger.info("Found PostgreSQL version: %s", version or "unknown (from PATH)")
    return PgBinaries(
        version=version,
        initdb=found["initdb"],
        postgres=found["postgres"],
        pg_isready=found["pg_isready"],
    )


__all__ = ["PgBinaries", "REQUIRED_TOOLS", "installed_versions", "locate_binaries"]
