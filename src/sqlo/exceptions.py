"""Exception hierarchy for sqlo."""


class SqloError(Exception):
    """Base class for all sqlo errors."""


class NotMappedError(SqloError, TypeError):
    """Raised when a class (or an object's class) is not decorated with @table."""

    def __init__(self, cls: type) -> None:
        self.cls = cls
        super().__init__(
            f"{cls.__module__}.{cls.__qualname__} is not a database object; "
            f"decorate it with @sqlo.table"
        )


class MappingError(SqloError):
    """Invalid column declarations, or a value that cannot be coerced."""


class DatabaseError(SqloError):
    """A driver error raised while executing a statement."""


class ConnectionFailedError(DatabaseError):
    """The database connection could not be opened."""
