"""SQL generation for mapped tables (MySQL syntax, ``%s`` placeholders)."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from sqlo.coercion import coerce_param
from sqlo.table import ColumnField, TableMetadata
from sqlo.types import AUTO_INCREMENT_TYPES, TypeAdapter, is_identifier

if TYPE_CHECKING:
    from sqlo.coercion import ValueCoercer

PLACEHOLDER = "%s"


@dataclass
class SQLStatement:
    """Represents a complete SQL statement with parameters."""

    text: str
    parameters: list[Any] = field(default_factory=list)


@dataclass
class ObjectStatement:
    """A statement whose parameters are read from an object's column attributes."""

    text: str
    columns: list[ColumnField] = field(default_factory=list)

    def bind(self, obj: Any, coercer: ValueCoercer) -> SQLStatement:
        """Read and coerce the parameter values from ``obj``, in placeholder order."""
        parameters = [coercer.to_db(col, col.get(obj)) for col in self.columns]
        return SQLStatement(self.text, parameters)


class ConditionCompiler:
    """Compiles ``{column: value}`` equality conditions to a WHERE clause."""

    def __init__(self) -> None:
        self.parameters: list[Any] = []

    def compile(self, conditions: Mapping[str, Any] | None) -> str:
        """Return `` WHERE a = %s AND ...`` (or an empty string)."""
        if not conditions:
            return ""

        parts: list[str] = []
        for column, value in conditions.items():
            _check_identifier(column)
            if value is None:
                parts.append(f"{column} IS NULL")
            else:
                parts.append(f"{column} = {PLACEHOLDER}")
                self.parameters.append(coerce_param(value))
        return " WHERE " + " AND ".join(parts)


class StatementBuilder:
    """Builds the statements for one mapped table."""

    def __init__(self, metadata: TableMetadata, prefix: str = "") -> None:
        self.metadata = metadata
        self.table_name = prefix + metadata.name
        _check_identifier(self.table_name)

    def create_table(self, adapter: TypeAdapter) -> SQLStatement:
        """Build ``CREATE TABLE IF NOT EXISTS`` from the column declarations."""
        definitions: list[str] = []
        for col in self.metadata.columns:
            sql_type = col.sql_type or adapter.python_to_db(col.python_type)
            definition = f"{col.name} {sql_type}"
            if col.auto_increment:
                if sql_type.upper() not in AUTO_INCREMENT_TYPES:
                    raise ValueError(
                        "AUTO_INCREMENT can only be used on numeric columns "
                        f"(INT/BIGINT): {col.attribute}"
                    )
                definition += " AUTO_INCREMENT"
            definitions.append(definition)

        primary_keys = [col.name for col in self.metadata.primary_keys]
        if primary_keys:
            definitions.append(f"PRIMARY KEY ({', '.join(primary_keys)})")

        return SQLStatement(
            f"CREATE TABLE IF NOT EXISTS {self.table_name} ({', '.join(definitions)});"
        )

    def insert(self) -> ObjectStatement:
        """Build INSERT over every column the database does not generate."""
        columns = self.metadata.insertable
        names = ", ".join(col.name for col in columns)
        placeholders = ", ".join(PLACEHOLDER for _ in columns)
        return ObjectStatement(
            f"INSERT INTO {self.table_name} ({names}) VALUES ({placeholders})",
            columns,
        )

    def update(self) -> ObjectStatement | None:
        """Build UPDATE keyed by the primary key, or None without one.

        Parameters are the SET columns followed by the primary key columns.
        """
        primary_keys = self.metadata.primary_keys
        if not primary_keys:
            return None

        updatable = self.metadata.updatable
        if not updatable:
            raise ValueError(f"Table '{self.metadata.name}' has no columns to update")

        assignments = ", ".join(f"{col.name} = {PLACEHOLDER}" for col in updatable)
        return ObjectStatement(
            f"UPDATE {self.table_name} SET {assignments} WHERE {_key_condition(primary_keys)}",
            updatable + primary_keys,
        )

    def delete(self) -> ObjectStatement:
        """Build DELETE keyed by the primary key."""
        primary_keys = self._require_primary_keys("DELETE")
        return ObjectStatement(
            f"DELETE FROM {self.table_name} WHERE {_key_condition(primary_keys)}",
            primary_keys,
        )

    def exists_by_key(self) -> ObjectStatement:
        primary_keys = self._require_primary_keys("exists check")
        return ObjectStatement(
            f"SELECT 1 FROM {self.table_name} WHERE {_key_condition(primary_keys)} LIMIT 1",
            primary_keys,
        )

    def select(self, conditions: Mapping[str, Any] | None = None) -> SQLStatement:
        compiler = ConditionCompiler()
        where = compiler.compile(conditions)
        return SQLStatement(f"SELECT * FROM {self.table_name}{where}", compiler.parameters)

    def select_value(
        self, column: str, conditions: Mapping[str, Any] | None = None
    ) -> SQLStatement:
        _check_identifier(column)
        compiler = ConditionCompiler()
        where = compiler.compile(conditions)
        return SQLStatement(
            f"SELECT {column} FROM {self.table_name}{where}", compiler.parameters
        )

    def exists(self, conditions: Mapping[str, Any] | None = None) -> SQLStatement:
        compiler = ConditionCompiler()
        where = compiler.compile(conditions)
        return SQLStatement(
            f"SELECT 1 FROM {self.table_name}{where} LIMIT 1", compiler.parameters
        )

    def _require_primary_keys(self, action: str) -> list[ColumnField]:
        primary_keys = self.metadata.primary_keys
        if not primary_keys:
            raise ValueError(
                f"Table '{self.metadata.name}' needs at least one primary key "
                f"column for {action}"
            )
        return primary_keys


def _key_condition(primary_keys: list[ColumnField]) -> str:
    return " AND ".join(f"{col.name} = {PLACEHOLDER}" for col in primary_keys)


def _check_identifier(name: str) -> None:
    if not is_identifier(name):
        raise ValueError(f"Invalid SQL identifier: {name!r}")
