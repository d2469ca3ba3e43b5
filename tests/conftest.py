from __future__ import annotations

import dataclasses
import logging

import pytest

from pgbootstrap.config import BackoffPolicy, BootstrapConfig

ENV_VARS = (
    "DB_NAME",
    "DB_USER",
    "DB_PASSWORD",
    "DB_PORT",
    "PGDATA",
    "PGPASSWORD",
    "POSTGRES_SUPERUSER",
    "POSTGRES_SUPERUSER_DB",
    "POSTGRES_SUPERUSER_PASSWORD",
    "PGBOOTSTRAP_HOST",
    "PGBOOTSTRAP_LISTEN_ADDRESS",
    "PGBOOTSTRAP_BIN_ROOT",
    "PGBOOTSTRAP_SERVICE_USER",
    "PGBOOTSTRAP_SCHEMA",
    "PGBOOTSTRAP_CONNECTION_FILE",
    "PGBOOTSTRAP_ENV_FILE",
    "PGBOOTSTRAP_DRY_RUN",
    "PGBOOTSTRAP_SERVER_LOG",
    "LOG_LEVEL",
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture
def make_config(tmp_path, clean_env):
    def _make(**overrides) -> BootstrapConfig:
        config = BootstrapConfig.from_env()
        values = {
            "data_dir": tmp_path / "data",
            "connection_file": tmp_path / "db_connection.txt",
            "env_file": tmp_path / "db_visualizer" / "postgres.env",
            "service_user": None,
            "backoff": BackoffPolicy(initial_delay=0.5, factor=2.0, max_delay=4.0, max_attempts=5),
        }
        values.update(overrides)
        return dataclasses.replace(config, **values)

    return _make


@pytest.fixture(autouse=True)
def _restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
