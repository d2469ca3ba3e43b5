from __future__ import annotations

from pathlib import Path

import pytest

from pgbootstrap.binaries import REQUIRED_TOOLS, installed_versions, locate_binaries
from pgbootstrap.errors import MissingBinariesError


def _install(bin_dir: Path, tools=REQUIRED_TOOLS) -> None:
    bin_dir.mkdir(parents=True, exist_ok=True)
    for tool in tools:
        stub = bin_dir / tool
        stub.write_text("#!/bin/sh\nexit 0\n")
        stub.chmod(0o755)


def test_highest_version_wins(tmp_path):
    root = tmp_path / "postgresql"
    _install(root / "9.6" / "bin")
    _install(root / "16" / "bin")
    _install(root / "14" / "bin")
    (root / "common").mkdir()

    assert installed_versions(root) == ["16", "14", "9.6"]

    binaries = locate_binaries(root)
    assert binaries.version == "16"
    assert binaries.postgres == root / "16" / "bin" / "postgres"
    assert binaries.pg_isready == root / "16" / "bin" / "pg_isready"


def test_missing_tool_in_version_directory(tmp_path):
    root = tmp_path / "postgresql"
    _install(root / "15" / "bin", tools=("initdb", "postgres"))

    with pytest.raises(MissingBinariesError) as excinfo:
        locate_binaries(root)

    assert excinfo.value.missing == ["pg_isready"]


def test_falls_back_to_path(tmp_path, monkeypatch):
    path_dir = tmp_path / "bin"
    _install(path_dir)
    monkeypatch.setenv("PATH", str(path_dir))

    binaries = locate_binaries(tmp_path / "absent")

    assert binaries.version is None
    assert binaries.initdb == path_dir / "initdb"


def test_nothing_installed(tmp_path, monkeypatch):
    monkeypatch.setenv("PATH", str(tmp_path / "empty"))

    with pytest.raises(MissingBinariesError) as excinfo:
        locate_binaries(tmp_path / "absent")

    assert set(excinfo.value.missing) == set(REQUIRED_TOOLS)
    assert "binaries not found" in str(excinfo.value)
