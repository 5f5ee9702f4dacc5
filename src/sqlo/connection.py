"""Synchronous connections: one is opened per statement and closed right after."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from types import TracebackType
from typing import Any

import pymysql

from sqlo.config import DatabaseConfig
from sqlo.exceptions import ConnectionFailedError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WriteResult:
    """Outcome of an INSERT/UPDATE/DELETE/DDL statement."""

    rowcount: int
    lastrowid: int | None = None


class Connection(ABC):
    """Abstract base for database connections."""

    @abstractmethod
    def execute(self, sql: str, parameters: list[Any]) -> WriteResult:
        """Execute a statement and commit it."""
        raise NotImplementedError

    @abstractmethod
    def fetch_one(self, sql: str, parameters: list[Any]) -> dict[str, Any] | None:
        """Fetch a single row."""
        raise NotImplementedError

    @abstractmethod
    def fetch_all(self, sql: str, parameters: list[Any]) -> list[dict[str, Any]]:
        """Fetch all rows."""
        raise NotImplementedError

    @abstractmethod
    def close(self) -> None:
        """Close the connection."""
        raise NotImplementedError

    def __enter__(self) -> Connection:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()


class MySQLConnection(Connection):
    """MySQL connection using PyMySQL."""

    def __init__(self, connection: Any) -> None:
        """Initialize with a PyMySQL connection object."""
        assert connection is not None, "pymysql connection cannot be None"
        self._conn = connection

    def execute(self, sql: str, parameters: list[Any]) -> WriteResult:
        """Execute statement, commit, and report affected rows."""
        with self._conn.cursor() as cursor:
            cursor.execute(sql, parameters or None)
            self._conn.commit()
            return WriteResult(cursor.rowcount, cursor.lastrowid or None)

    def fetch_one(self, sql: str, parameters: list[Any]) -> dict[str, Any] | None:
        """Fetch single row as dict."""
        with self._conn.cursor() as cursor:
            cursor.execute(sql, parameters or None)
            row = cursor.fetchone()
            if row is None:
                return None
            columns = [desc[0] for desc in cursor.description]
            return dict(zip(columns, row))

    def fetch_all(self, sql: str, parameters: list[Any]) -> list[dict[str, Any]]:
        """Fetch all rows as dicts."""
        with self._conn.cursor() as cursor:
            cursor.execute(sql, parameters or None)
            rows = cursor.fetchall()
            if not rows:
                return []
            columns = [desc[0] for desc in cursor.description]
            return [dict(zip(columns, row)) for row in rows]

    def close(self) -> None:
        """Close connection."""
        self._conn.close()


def connect(config: DatabaseConfig) -> MySQLConnection:
    """Open a new PyMySQL connection described by ``config``."""
    logger.debug("Connecting to %s", config.url)
    try:
        conn = pymysql.connect(
            host=config.host,
            port=config.port,
            user=config.user,
            password=config.password,
            database=config.database,
            charset=config.charset,
            connect_timeout=config.connect_timeout,
            autocommit=False,
        )
    except pymysql.MySQLError as exc:
        logger.error("Error connecting to %s: %s", config.url, exc)
        raise ConnectionFailedError(f"Error connecting to the database at {config.url}") from exc
    return MySQLConnection(conn)
