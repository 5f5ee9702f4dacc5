"""sqlo - map annotated Python classes to MySQL rows."""

__version__ = "0.1.0"

from sqlo.table import table, table_metadata, is_table, ColumnField, TableMetadata
from sqlo.types import Column, Converter, MySQLAdapter
from sqlo.config import DatabaseConfig, load_config
from sqlo.database import Database
from sqlo.coercion import encode_map, decode_map
from sqlo.exceptions import (
    SqloError,
    NotMappedError,
    MappingError,
    DatabaseError,
    ConnectionFailedError,
)

__all__ = [
    "table",
    "table_metadata",
    "is_table",
    "Column",
    "ColumnField",
    "TableMetadata",
    "Converter",
    "MySQLAdapter",
    "Database",
    "DatabaseConfig",
    "load_config",
    "encode_map",
    "decode_map",
    "SqloError",
    "NotMappedError",
    "MappingError",
    "DatabaseError",
    "ConnectionFailedError",
]
