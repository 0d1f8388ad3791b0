"""MySQL/MariaDB operations run inside the database container.

All statements go through the ``mysql`` client of the database service via
``docker compose exec -T``. Two sets of credentials are used: the
administrative account resets the schema and grants privileges, the
application account imports the dump and runs verification queries.

Key Concepts:
    MySQLClient: ``reset_schema()``, ``import_dump()``, ``count_rows()``,
        ``count_tables()``.
    reset_schema_sql(): The DROP/CREATE/GRANT/FLUSH batch. Running it twice
        leaves the same empty schema; nothing from a previous run survives.

Related Modules:
    - :mod:`oeinstall.deploy.compose` — executes the commands
    - :mod:`oeinstall.deploy.workflow` — calls these in order

Tags:
    database, mysql, mariadb, import, verification
"""

from __future__ import annotations

from pathlib import Path

from oeinstall.core.errors import ComposeCommandError, QueryError
from oeinstall.core.logging import get_logger
from oeinstall.deploy.compose import ComposeClient
from oeinstall.deploy.config import InstallConfig

logger = get_logger(__name__)


def reset_schema_sql(db_name: str, db_user: str, db_password: str) -> str:
    """SQL that drops, recreates and grants the application schema."""
    password = db_password.replace("\\", "\\\\").replace("'", "\\'")
    return (
        f"DROP DATABASE IF EXISTS `{db_name}`; "
        f"CREATE DATABASE `{db_name}`; "
        f"GRANT ALL PRIVILEGES ON `{db_name}`.* TO '{db_user}'@'%' IDENTIFIED BY '{password}'; "
        "FLUSH PRIVILEGES;"
    )


class MySQLClient:
    """Runs ``mysql`` inside the database service.

    Parameters
    ----------
    compose
        Compose client bound to the install's descriptor.
    config
        Install configuration (service name, credentials, schema).
    """

    def __init__(self, compose: ComposeClient, config: InstallConfig) -> None:
        self.compose = compose
        self.config = config

    # ------------------------------------------------------------------
    # Schema preparation and import
    # ------------------------------------------------------------------

    def reset_schema(self) -> None:
        """Drop and recreate the schema and (re)grant the application user.

        Raises ``ComposeCommandError`` if the client exits non-zero.
        """
        cfg = self.config
        sql = reset_schema_sql(cfg.db_name, cfg.db_user, cfg.db_password)
        self.compose.exec(cfg.db_service, self._root_args("-e", sql))
        logger.info("database.reset", schema=cfg.db_name, user=cfg.db_user)

    def import_dump(self, dump_path: Path) -> None:
        """Stream *dump_path* into the schema using the application account."""
        cfg = self.config
        self.compose.exec(
            cfg.db_service,
            self._app_args(cfg.db_name),
            input_path=dump_path,
        )
        logger.info(
            "database.imported",
            schema=cfg.db_name,
            path=str(dump_path),
            bytes=dump_path.stat().st_size,
        )

    # ------------------------------------------------------------------
    # Verification queries
    # ------------------------------------------------------------------

    def count_rows(self, table: str) -> int:
        """``SELECT COUNT(*)`` from *table* in the application schema."""
        return self._scalar(f"SELECT COUNT(*) FROM `{self.config.db_name}`.`{table}`;")

    def count_tables(self) -> int:
        """Number of tables in the application schema per ``information_schema``."""
        return self._scalar(
            "SELECT COUNT(*) FROM information_schema.tables "
            f"WHERE table_schema = '{self.config.db_name}';"
        )

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _root_args(self, *extra: str) -> list[str]:
        cfg = self.config
        return ["mysql", f"-u{cfg.root_user}", f"-p{cfg.root_password}", *extra]

    def _app_args(self, *extra: str) -> list[str]:
        cfg = self.config
        return ["mysql", f"-u{cfg.db_user}", f"-p{cfg.db_password}", *extra]

    def _scalar(self, sql: str) -> int:
        """Run *sql* with ``-sN`` and parse the single integer it prints."""
        try:
            result = self.compose.exec(
                self.config.db_service,
                self._app_args("-sN", "-e", sql),
            )
        except ComposeCommandError as exc:
            raise QueryError(
                f"Query failed: {exc.stderr.strip() or exc.message}", cause=exc
            ).with_context(service=self.config.db_service) from exc

        lines = [line.strip() for line in result.stdout.splitlines() if line.strip()]
        if not lines:
            raise QueryError(f"Query returned no output: {sql}")
        try:
            return int(lines[-1])
        except ValueError as exc:
            raise QueryError(f"Unexpected query output: {lines[-1]!r}", cause=exc) from exc
