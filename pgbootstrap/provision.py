"""Idempotent creation of the application database, role and grants."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

from .config import BootstrapConfig
from .errors import ProvisioningError

SCHEMA_GRANTS = (
    "GRANT USAGE ON SCHEMA {schema} TO {role}",
    "GRANT CREATE ON SCHEMA {schema} TO {role}",
    "ALTER DEFAULT PRIVILEGES IN SCHEMA {schema} GRANT ALL ON TABLES TO {role}",
    "ALTER DEFAULT PRIVILEGES IN SCHEMA {schema} GRANT ALL ON SEQUENCES TO {role}",
    "ALTER DEFAULT PRIVILEGES IN SCHEMA {schema} GRANT ALL ON FUNCTIONS TO {role}",
    "ALTER DEFAULT PRIVILEGES IN SCHEMA {schema} GRANT ALL ON TYPES TO {role}",
    "GRANT ALL ON SCHEMA {schema} TO {role}",
    "GRANT ALL PRIVILEGES ON ALL TABLES IN SCHEMA {schema} TO {role}",
    "GRANT ALL PRIVILEGES ON ALL SEQUENCES IN SCHEMA {schema} TO {role}",
    "GRANT ALL PRIVILEGES ON ALL FUNCTIONS IN SCHEMA {schema} TO {role}",
)


def _ensure_psycopg() -> Tuple[Any, Any]:
    try:
        import psycopg  # type: ignore
        from psycopg import sql  # type: ignore
    except ImportError as exc:
        raise ProvisioningError(
            "The psycopg package is required for provisioning. Install it with `pip install psycopg[binary]`."
        ) from exc

    return psycopg, sql


def _ensure_database(cur, sql, errors, config: BootstrapConfig, log: logging.Logger) -> None:
    cur.execute("SELECT 1 FROM pg_database WHERE datname = %s", (config.db_name,))
    if cur.fetchone() is not None:
        log.info("Database '%s' already exists; skipping creation.", config.db_name)
        return

    log.info("Creating database '%s'...", config.db_name)
    try:
        cur.execute(sql.SQL("CREATE DATABASE {}").format(sql.Identifier(config.db_name)))
    except errors.DuplicateDatabase:
        log.info("Database '%s' was created concurrently; continuing.", config.db_name)


def _ensure_role(cur, sql, errors, config: BootstrapConfig, log: logging.Logger) -> None:
    cur.execute("SELECT 1 FROM pg_roles WHERE rolname = %s", (config.db_user,))
    exists = cur.fetchone() is not None

    alter = sql.SQL("ALTER ROLE {} WITH LOGIN PASSWORD {}").format(
        sql.Identifier(config.db_user),
        sql.Literal(config.db_password),
    )

    if not exists:
        log.info("Creating role '%s'...", config.db_user)
        try:
            cur.execute(
                sql.SQL("CREATE ROLE {} LOGIN PASSWORD {}").format(
                    sql.Identifier(config.db_user),
                    sql.Literal(config.db_password),
                )
            )
            return
        except errors.DuplicateObject:
            log.info("Role '%s' already exists; resetting its password.", config.db_user)
    else:
        log.info("Updating password for role '%s'...", config.db_user)
    # The configured password always wins over out-of-band changes.
    cur.execute(alter)


def _grant_database_privileges(cur, sql, config: BootstrapConfig, log: logging.Logger) -> None:
    log.info("Granting privileges on database '%s' to '%s'...", config.db_name, config.db_user)
    cur.execute(
        sql.SQL("GRANT ALL PRIVILEGES ON DATABASE {} TO {}").format(
            sql.Identifier(config.db_name), sql.Identifier(config.db_user)
        )
    )


def _grant_schema_privileges(cur, sql, config: BootstrapConfig, log: logging.Logger) -> None:
    schema = sql.Identifier(config.schema)
    role = sql.Identifier(config.db_user)

    if config.schema != "public":
        log.info("Ensuring schema '%s' exists...", config.schema)
        cur.execute(sql.SQL("CREATE SCHEMA IF NOT EXISTS {}").format(schema))

    log.info("Granting privileges on schema '%s' to '%s'...", config.schema, config.db_user)
    for statement in SCHEMA_GRANTS:
        cur.execute(sql.SQL(statement).format(schema=schema, role=role))


class Provisioner:
    """Apply the database, role and grants for ``config`` through psycopg."""

    def __init__(
        self,
        config: BootstrapConfig,
        *,
        driver: Optional[Tuple[Any, Any]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.config = config
        self._driver = driver
        self._logger = logger or logging.getLogger(__name__)

    def _conninfo(self, dbname: str) -> Dict[str, Any]:
        return {
            "user": self.config.superuser,
            "password": self.config.superuser_password,
            "host": self.config.host,
            "port": self.config.port,
            "dbname": dbname,
        }

    def provision(self) -> None:
        psycopg, sql = self._driver or _ensure_psycopg()
        config = self.config
        log = self._logger

        log.info(
            "Connecting as superuser '%s' to database '%s' on %s:%s...",
            config.superuser,
            config.superuser_db,
            config.host,
            config.port,
        )
        try:
            with psycopg.connect(**self._conninfo(config.superuser_db)) as conn:
                conn.autocommit = True
                with conn.cursor() as cur:
                    _ensure_database(cur, sql, psycopg.errors, config, log)
                    _ensure_role(cur, sql, psycopg.errors, config, log)
                    _grant_database_privileges(cur, sql, config, log)

            with psycopg.connect(**self._conninfo(config.db_name)) as conn:
                conn.autocommit = True
                with conn.cursor() as cur:
                    _grant_schema_privileges(cur, sql, config, log)
        except Exception as exc:
            message = str(exc)
            if config.superuser_password is None and "password" in message.lower():
                message += (
                    "\nHint: provide the superuser password via POSTGRES_SUPERUSER_PASSWORD "
                    "or PGPASSWORD."
                )
            raise ProvisioningError(message) from exc


__all__ = ["Provisioner", "SCHEMA_GRANTS"]
