"""Column markers, custom converters and the MySQL type mapping."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_$]*$")

AUTO_INCREMENT_TYPES = frozenset({"INT", "BIGINT"})
FALLBACK_SQL_TYPE = "VARCHAR(255)"


def is_identifier(name: str) -> bool:
    """Check that ``name`` is safe to concatenate into SQL as a column/table name."""
    return bool(_IDENTIFIER.match(name))


class TypeAdapter(ABC):
    """Maps Python types to database column types."""

    @abstractmethod
    def python_to_db(self, python_type: type) -> str:
        """Convert Python type to database type string."""
        raise NotImplementedError


class MySQLAdapter(TypeAdapter):
    """MySQL type adapter.

    Unlike a strict adapter, unknown types are not an error: they are stored
    as ``VARCHAR(255)`` and coerced to text on the way in.
    """

    _TYPE_MAP: dict[type, str] = {
        bool: "BOOLEAN",
        int: "INT",
        float: "DOUBLE",
        datetime: "DATETIME",
        date: "DATE",
        bytes: "BLOB",
    }

    def __init__(self, type_map: dict[type, str] | None = None) -> None:
        self.type_map: dict[type, str] = (
            dict(self._TYPE_MAP) if type_map is None else type_map
        )

    def python_to_db(self, python_type: type) -> str:
        return self.type_map.get(python_type, FALLBACK_SQL_TYPE)


@dataclass(frozen=True)
class Column:
    """Marks an annotated attribute as a table column.

    Attributes:
        name: SQL column name (defaults to the attribute name)
        primary: Whether the column is part of the primary key
        auto_increment: Whether the database generates the value
        sql_type: Explicit SQL type, overriding the type mapping

    Usage:
        id: Annotated[int, Column("id", primary=True, auto_increment=True)] = 0
        name: Annotated[str, Column("player_name")] = ""
    """

    name: str | None = None
    primary: bool = False
    auto_increment: bool = False
    sql_type: str | None = None

    def __post_init__(self) -> None:
        """Validate column configuration."""
        if self.name is not None and not is_identifier(self.name):
            raise ValueError(f"Invalid column name: {self.name!r}")
        if self.sql_type is not None and not self.sql_type.strip():
            raise ValueError("sql_type cannot be empty")


@dataclass(frozen=True)
class Converter:
    """A pair of functions coercing one Python type to and from its column value."""

    to_db: Callable[[Any], Any]
    from_db: Callable[[Any], Any]
