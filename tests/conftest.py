"""Shared fixtures: a recording stand-in for the MySQL connection."""

from typing import Any

import pytest

from sqlo.config import DatabaseConfig
from sqlo.connection import Connection, WriteResult
from sqlo.database import Database


class FakeBackend:
    """Records every statement and serves canned results."""

    def __init__(self) -> None:
        self.statements: list[tuple[str, str, list[Any]]] = []
        self.rows: list[dict[str, Any]] = []
        self.result = WriteResult(rowcount=1)
        self.error: Exception | None = None
        self.opened = 0
        self.closed = 0

    def connect(self, config: DatabaseConfig) -> "FakeConnection":
        self.opened += 1
        return FakeConnection(self)

    @property
    def last(self) -> tuple[str, list[Any]]:
        """(sql, parameters) of the most recent statement."""
        _, sql, parameters = self.statements[-1]
        return sql, parameters


class FakeConnection(Connection):
    def __init__(self, backend: FakeBackend) -> None:
        self.backend = backend

    def _record(self, operation: str, sql: str, parameters: list[Any]) -> None:
        self.backend.statements.append((operation, sql, list(parameters)))
        if self.backend.error is not None:
            raise self.backend.error

    def execute(self, sql: str, parameters: list[Any]) -> WriteResult:
        self._record("execute", sql, parameters)
        return self.backend.result

    def fetch_one(self, sql: str, parameters: list[Any]) -> dict[str, Any] | None:
        self._record("fetch_one", sql, parameters)
        return dict(self.backend.rows[0]) if self.backend.rows else None

    def fetch_all(self, sql: str, parameters: list[Any]) -> list[dict[str, Any]]:
        self._record("fetch_all", sql, parameters)
        return [dict(row) for row in self.backend.rows]

    def close(self) -> None:
        self.backend.closed += 1


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def db(backend: FakeBackend) -> Database:
    config = DatabaseConfig(host="db.local", database="game", user="app", prefix="mc_")
    return Database(config, connector=backend.connect)
