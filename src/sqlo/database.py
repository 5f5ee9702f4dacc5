"""The Database facade: map @table objects to rows and back."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from typing import Any, TypeVar

import pymysql
from pydantic import ValidationError

from sqlo.coercion import ValueCoercer
from sqlo.config import DatabaseConfig
from sqlo.connection import Connection, WriteResult, connect
from sqlo.exceptions import DatabaseError
from sqlo.sql import SQLStatement, StatementBuilder
from sqlo.table import ColumnField, TableMetadata, instance_builder, table_metadata
from sqlo.types import Converter, MySQLAdapter

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Database:
    """Generates and runs the SQL for annotated objects.

    Every call opens its own connection, runs one statement and closes it.

    Usage:
        db = Database(DatabaseConfig(host="localhost", database="game", prefix="mc_"))
        db.create_table(Player)
        db.insert(Player(name="Steve"))
        steve = db.select_with_condition(Player, {"name": "Steve"})
    """

    def __init__(
        self,
        config: DatabaseConfig | None = None,
        *,
        connector: Callable[[DatabaseConfig], Connection] | None = None,
        **settings: Any,
    ) -> None:
        """Initialize from a DatabaseConfig or the same fields as keywords.

        Args:
            config: Connection settings
            connector: Opens a Connection for ``config`` (defaults to PyMySQL)
            settings: ``host``, ``port``, ``database``, ``user``, ``password``,
                ``prefix`` ... when no config is given
        """
        if config is None:
            config = DatabaseConfig(**settings)
        elif settings:
            raise TypeError("Pass either a DatabaseConfig or keyword settings, not both")

        self.config = config
        self.prefix = config.prefix
        self._connector = connector or connect
        self._adapter = MySQLAdapter()
        self._coercer = ValueCoercer()

    @property
    def sql_type_mapping(self) -> dict[type, str]:
        """Python type -> SQL column type used by create_table (mutable)."""
        return self._adapter.type_map

    @property
    def converters(self) -> dict[type, Converter]:
        """Custom per-type coercions (mutable)."""
        return self._coercer.converters

    def register_converter(
        self,
        python_type: type,
        to_db: Callable[[Any], Any],
        from_db: Callable[[Any], Any],
    ) -> None:
        """Coerce attributes of ``python_type`` with custom functions."""
        self._coercer.register(python_type, Converter(to_db, from_db))

    def get_connection(self) -> Connection:
        """Open a new connection."""
        return self._connector(self.config)

    def create_table(self, cls: type) -> None:
        """Create the table for ``cls`` unless it already exists."""
        stmt = self._builder(cls).create_table(self._adapter)
        self._execute(stmt)

    def insert(self, obj: Any) -> int | None:
        """Insert ``obj`` and return the generated id, if any.

        When the class declares exactly one auto-increment column, the id is
        also stored on ``obj`` unless ``obj`` is immutable.
        """
        builder = self._builder(type(obj))
        result = self._execute(builder.insert().bind(obj, self._coercer))

        generated = builder.metadata.auto_increment
        if result.lastrowid is not None and len(generated) == 1:
            try:
                setattr(obj, generated[0].attribute, result.lastrowid)
            except (AttributeError, ValidationError):
                # Frozen dataclasses and pydantic models keep their value.
                logger.debug(
                    "Cannot store generated id %s on immutable %s",
                    result.lastrowid,
                    type(obj).__qualname__,
                )
        return result.lastrowid

    def update(self, obj: Any) -> int:
        """Update the row with ``obj``'s primary key; returns affected rows."""
        builder = self._builder(type(obj))
        stmt = builder.update()
        if stmt is None:
            logger.warning(
                "Skipping update of %s: table '%s' has no primary key",
                type(obj).__qualname__,
                builder.table_name,
            )
            return 0
        return self._execute(stmt.bind(obj, self._coercer)).rowcount

    def delete(self, obj: Any) -> int:
        """Delete the row with ``obj``'s primary key; returns affected rows."""
        stmt = self._builder(type(obj)).delete()
        return self._execute(stmt.bind(obj, self._coercer)).rowcount

    def execute_update(
        self,
        sql: str,
        obj: Any = None,
        params: Sequence[ColumnField | str] = (),
    ) -> int:
        """Run a hand-written write statement.

        Placeholder values are read from ``obj``'s column attributes, in the
        order given by ``params`` (ColumnFields or attribute names), and
        coerced like any mapped value. Without ``obj`` the statement runs
        without parameters.
        """
        parameters: list[Any] = []
        if obj is not None:
            metadata = table_metadata(type(obj))
            for param in params:
                col = param if isinstance(param, ColumnField) else _by_attribute(metadata, param)
                parameters.append(self._coercer.to_db(col, col.get(obj)))
        return self._execute(SQLStatement(sql, parameters)).rowcount

    def select_all(self, cls: type[T]) -> list[T]:
        return self.select_all_with_condition(cls, {})

    def select_all_with_condition(
        self, cls: type[T], conditions: Mapping[str, Any] | None
    ) -> list[T]:
        """Every row matching all ``column = value`` conditions, mapped to ``cls``."""
        builder = self._builder(cls)
        rows = self._fetch_all(builder.select(conditions))
        build = instance_builder(cls)
        return [build(self._row_values(builder.metadata, row)) for row in rows]

    def select(self, cls: type[T]) -> T | None:
        return self.select_with_condition(cls, {})

    def select_with_condition(
        self, cls: type[T], conditions: Mapping[str, Any] | None
    ) -> T | None:
        """First row matching the conditions, or None."""
        rows = self.select_all_with_condition(cls, conditions)
        return rows[0] if rows else None

    def select_value(
        self,
        cls: type,
        column: str,
        conditions: Mapping[str, Any] | None = None,
    ) -> Any:
        """Raw value of ``column`` in the first matching row, or None."""
        stmt = self._builder(cls).select_value(column, conditions)
        row = self._fetch_one(stmt)
        if row is None:
            return None
        return row.get(column)

    def exists_with_condition(
        self, cls: type, conditions: Mapping[str, Any] | None
    ) -> bool:
        stmt = self._builder(cls).exists(conditions)
        return self._fetch_one(stmt) is not None

    def exists(self, obj: Any) -> bool:
        """Whether a row with ``obj``'s primary key exists."""
        builder = self._builder(type(obj))
        stmt = builder.exists_by_key()
        return self._fetch_one(stmt.bind(obj, self._coercer)) is not None

    def _builder(self, cls: type) -> StatementBuilder:
        return StatementBuilder(table_metadata(cls), self.prefix)

    def _row_values(self, metadata: TableMetadata, row: Mapping[str, Any]) -> dict[str, Any]:
        values: dict[str, Any] = {}
        for col in metadata.columns:
            if col.name in row:
                values[col.attribute] = self._coercer.from_db(col, row[col.name])
        return values

    def _execute(self, stmt: SQLStatement) -> WriteResult:
        return self._run("execute", stmt)

    def _fetch_all(self, stmt: SQLStatement) -> list[dict[str, Any]]:
        return self._run("fetch_all", stmt)

    def _fetch_one(self, stmt: SQLStatement) -> dict[str, Any] | None:
        return self._run("fetch_one", stmt)

    def _run(self, operation: str, stmt: SQLStatement) -> Any:
        logger.debug("%s: %s (%d parameters)", operation, stmt.text, len(stmt.parameters))
        with self.get_connection() as conn:
            try:
                return getattr(conn, operation)(stmt.text, stmt.parameters)
            except pymysql.MySQLError as exc:
                logger.exception("Statement failed: %s", stmt.text)
                raise DatabaseError(f"Error executing {stmt.text!r}: {exc}") from exc


def _by_attribute(metadata: TableMetadata, attribute: str) -> ColumnField:
    for col in metadata.columns:
        if col.attribute == attribute:
            return col
    raise KeyError(f"'{attribute}' is not a column attribute of table '{metadata.name}'")
