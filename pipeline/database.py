"""
pipeline/database.py
--------------------
Read access to the legacy forum database.

Design Decisions:
    * ``SourceDatabase`` is a context manager so exporters are guaranteed
      the connection is closed when a run ends, successfully or not.
    * Two drivers: MySQL/MariaDB through mysql-connector (nearly every
      legacy forum) and PostgreSQL through psycopg2 (Discourse and
      friends). Both use the ``%s`` parameter style, so exporter SQL only
      differs in identifier quoting, which ``table()`` / ``quote()`` handle.
    * Connection attempts are retried with linear back-off.
    * Data values are always passed as parameters; only quoted structural
      identifiers are interpolated into SQL.
"""
from __future__ import annotations

import time
from typing import Any

import mysql.connector
import psycopg2
from psycopg2.extras import RealDictCursor

from config import CONFIG
from logger import get_logger

log = get_logger(__name__)


class DatabaseError(Exception):
    """Raised for database-level failures reported by this module."""


class ConnectionLostError(DatabaseError):
    """Raised when the source connection is not open."""


class SourceDatabase:
    """
    Base class for source connections; subclasses provide the driver.

    Example::

        with SourceDatabase.from_config(user="forum", password="secret") as db:
            total = db.max_id(db.table("users"), "userid")
            rows = db.fetch_dicts(
                f"SELECT * FROM {db.table('users')} WHERE userid BETWEEN %s AND %s",
                (1, 1000),
            )
    """

    driver_name = "generic"
    _quote_char = '"'

    def __init__(
        self,
        host: str,
        port: int,
        user: str,
        password: str,
        database: str,
        table_prefix: str = "",
        charset: str = "utf8mb4",
        connect_timeout: int = 10,
        max_retries: int = 3,
        retry_delay: float = 1.0,
    ) -> None:
        self._host = host
        self._port = port
        self._user = user
        self._password = password
        self._database = database
        self._charset = charset
        self._connect_timeout = connect_timeout
        self._max_retries = max_retries
        self._retry_delay = retry_delay
        self.table_prefix = table_prefix
        self._conn: Any = None

    # ------------------------------------------------------------------
    # Factory helpers
    # ------------------------------------------------------------------

    @classmethod
    def from_config(cls, user: str, password: str) -> "SourceDatabase":
        """Build the connection for the driver selected in the config."""
        source = CONFIG.source
        drivers = {"mysql": MySQLSourceDatabase, "postgresql": PostgreSQLSourceDatabase}
        try:
            driver_cls = drivers[source.driver]
        except KeyError:
            raise DatabaseError(
                f"Unsupported source driver '{source.driver}' "
                f"(expected one of: {', '.join(sorted(drivers))})."
            ) from None
        return driver_cls(
            host=source.host,
            port=source.default_port,
            user=user,
            password=password,
            database=source.database,
            table_prefix=source.table_prefix,
            charset=source.charset,
            connect_timeout=source.connect_timeout,
        )

    # ------------------------------------------------------------------
    # Context manager
    # ------------------------------------------------------------------

    def __enter__(self) -> "SourceDatabase":
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.close()
        return False

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    def _open(self) -> Any:
        raise NotImplementedError

    def _driver_errors(self) -> tuple[type[BaseException], ...]:
        raise NotImplementedError

    def connect(self) -> None:
        """
        Open the connection, retrying with back-off.

        Raises:
            DatabaseError: If every attempt failed.
        """
        for attempt in range(1, self._max_retries + 1):
            try:
                log.info(
                    "Connecting to %s at %s:%s/%s (attempt %d/%d)",
                    self.driver_name, self._host, self._port, self._database,
                    attempt, self._max_retries,
                )
                self._conn = self._open()
                log.info("Connected to source database.")
                return
            except self._driver_errors() as exc:
                log.warning("Connection attempt %d failed: %s", attempt, exc)
                if attempt < self._max_retries:
                    time.sleep(self._retry_delay * attempt)
        raise DatabaseError(
            f"Could not connect to {self.driver_name} at {self._host}:{self._port} "
            f"after {self._max_retries} attempts."
        )

    def close(self) -> None:
        if self._conn is None:
            return
        try:
            self._conn.close()
            log.info("Source database connection closed.")
        except self._driver_errors() as exc:
            log.warning("Closing the source connection failed: %s", exc)
        self._conn = None

    @property
    def is_connected(self) -> bool:
        return self._conn is not None

    def _ensure_connected(self) -> None:
        if not self.is_connected:
            raise ConnectionLostError(
                "Source connection is not open. Call connect() first."
            )

    # ------------------------------------------------------------------
    # Identifiers
    # ------------------------------------------------------------------

    def quote(self, identifier: str) -> str:
        q = self._quote_char
        return f"{q}{identifier.replace(q, q * 2)}{q}"

    def table(self, name: str) -> str:
        """Quoted, prefixed table name (``wbb1_1_`` + ``posts``)."""
        return self.quote(f"{self.table_prefix}{name}")

    # ------------------------------------------------------------------
    # Query helpers
    # ------------------------------------------------------------------

    def _dict_cursor(self) -> Any:
        raise NotImplementedError

    def fetch_dicts(self, sql: str, params: tuple | list | None = None) -> list[dict[str, Any]]:
        """
        Run a query and return all rows as dicts.

        Raises:
            ConnectionLostError: If not connected.
            DatabaseError:       On driver errors.
        """
        self._ensure_connected()
        cursor = self._dict_cursor()
        try:
            cursor.execute(sql, params)
            return [dict(row) for row in cursor.fetchall()]
        except self._driver_errors() as exc:
            log.error("SQL execution error: %s | SQL: %.500s", exc, sql)
            raise DatabaseError(str(exc)) from exc
        finally:
            cursor.close()

    def fetch_value(self, sql: str, params: tuple | list | None = None) -> Any:
        """Return the first column of the first row, or None."""
        rows = self.fetch_dicts(sql, params)
        if not rows:
            return None
        return next(iter(rows[0].values()))

    def paginate(
        self, sql: str, limit: int, offset: int, params: tuple | list | None = None
    ) -> list[dict[str, Any]]:
        """Run *sql* (which must carry an ORDER BY) for one LIMIT/OFFSET page."""
        page_params = [*(params or ()), limit, offset]
        return self.fetch_dicts(f"{sql} LIMIT %s OFFSET %s", page_params)

    def count_rows(self, table: str, where: str = "", params: tuple | list | None = None) -> int:
        """Row count of an already-quoted table name."""
        sql = f"SELECT COUNT(*) AS count FROM {table}"
        if where:
            sql += f" WHERE {where}"
        return int(self.fetch_value(sql, params) or 0)

    def max_id(self, table: str, column: str) -> int:
        """Highest value of *column*; the count used for ID-range pagination."""
        value = self.fetch_value(f"SELECT MAX({self.quote(column)}) AS max_id FROM {table}")
        return int(value or 0)


class MySQLSourceDatabase(SourceDatabase):
    """MySQL / MariaDB source through mysql-connector."""

    driver_name = "mysql"
    _quote_char = "`"

    def _open(self) -> Any:
        return mysql.connector.connect(
            host=self._host,
            port=self._port,
            user=self._user,
            password=self._password,
            database=self._database,
            charset=self._charset,
            connect_timeout=self._connect_timeout,
        )

    def _driver_errors(self) -> tuple[type[BaseException], ...]:
        return (mysql.connector.Error,)

    def _dict_cursor(self) -> Any:
        return self._conn.cursor(dictionary=True)

    @property
    def is_connected(self) -> bool:
        return bool(self._conn and self._conn.is_connected())


class PostgreSQLSourceDatabase(SourceDatabase):
    """PostgreSQL source through psycopg2."""

    driver_name = "postgresql"
    _quote_char = '"'

    def _open(self) -> Any:
        conn = psycopg2.connect(
            host=self._host,
            port=self._port,
            user=self._user,
            password=self._password,
            dbname=self._database,
            connect_timeout=self._connect_timeout,
        )
        # Source access is read-only; autocommit avoids idle transactions.
        conn.autocommit = True
        return conn

    def _driver_errors(self) -> tuple[type[BaseException], ...]:
        return (psycopg2.Error,)

    def _dict_cursor(self) -> Any:
        return self._conn.cursor(cursor_factory=RealDictCursor)

    @property
    def is_connected(self) -> bool:
        return bool(self._conn is not None and not self._conn.closed)
