"""The @table decorator and column metadata introspection."""

from __future__ import annotations

import inspect
import types
from dataclasses import dataclass
from typing import (
    Annotated,
    Any,
    Callable,
    ClassVar,
    TypeVar,
    Union,
    get_args,
    get_origin,
    get_type_hints,
)

from sqlo.exceptions import MappingError, NotMappedError
from sqlo.types import Column, is_identifier

T = TypeVar("T")


@dataclass(frozen=True)
class ColumnField:
    """Resolved metadata for one mapped attribute."""

    attribute: str
    name: str
    python_type: Any
    primary: bool = False
    auto_increment: bool = False
    sql_type: str | None = None
    nullable: bool = False

    def get(self, obj: Any) -> Any:
        """Read this column's attribute from ``obj``."""
        return getattr(obj, self.attribute)


@dataclass
class TableMetadata:
    """Metadata for a table schema."""

    name: str
    columns: list[ColumnField]

    def __post_init__(self) -> None:
        """Validate table metadata."""
        if not self.columns:
            raise MappingError(f"Table '{self.name}' must define at least one column")

        seen: dict[str, str] = {}
        for col in self.columns:
            if col.name in seen:
                raise MappingError(
                    f"Attributes '{seen[col.name]}' and '{col.attribute}' "
                    f"both map to column '{col.name}' in table '{self.name}'"
                )
            seen[col.name] = col.attribute

    @property
    def primary_keys(self) -> list[ColumnField]:
        return [col for col in self.columns if col.primary]

    @property
    def insertable(self) -> list[ColumnField]:
        """Columns supplied by INSERT (everything the database does not generate)."""
        return [col for col in self.columns if not col.auto_increment]

    @property
    def updatable(self) -> list[ColumnField]:
        """Columns written by UPDATE ... SET."""
        return [col for col in self.columns if not col.primary and not col.auto_increment]

    @property
    def auto_increment(self) -> list[ColumnField]:
        return [col for col in self.columns if col.auto_increment]

    def get_column(self, name: str) -> ColumnField:
        """Get column by SQL name."""
        for col in self.columns:
            if col.name == name:
                return col
        raise KeyError(f"Column '{name}' not found in table '{self.name}'")

    def find_column(self, name: str) -> ColumnField | None:
        for col in self.columns:
            if col.name == name:
                return col
        return None


def table(name: str | type | None = None) -> Any:
    """Mark a class as a database object stored in table ``name``.

    Usage:
        @table("players")
        @dataclass
        class Player:
            id: Annotated[int, Column("id", primary=True, auto_increment=True)] = 0
            name: Annotated[str, Column("name")] = ""

    The table name defaults to the snake_case class name, so ``@table`` can
    also be applied bare.
    """

    def decorator(cls: type[T]) -> type[T]:
        table_name = name if isinstance(name, str) else _class_name_to_table_name(cls.__name__)
        if not is_identifier(table_name):
            raise ValueError(f"Invalid table name: {table_name!r}")
        cls.__table_name__ = table_name  # type: ignore[attr-defined]
        return cls

    if isinstance(name, type):
        return decorator(name)
    return decorator


def is_table(cls_or_obj: Any) -> bool:
    """Check whether a class (or an instance's class) is decorated with @table."""
    cls = cls_or_obj if isinstance(cls_or_obj, type) else type(cls_or_obj)
    return "__table_name__" in vars(cls)


def table_metadata(cls: type) -> TableMetadata:
    """Return the (cached) column metadata of a @table class."""
    if not is_table(cls):
        raise NotMappedError(cls)

    metadata = vars(cls).get("__table_metadata__")
    if metadata is None:
        metadata = TableMetadata(name=cls.__table_name__, columns=_collect_columns(cls))  # type: ignore[attr-defined]
        cls.__table_metadata__ = metadata  # type: ignore[attr-defined]
    return metadata


def _collect_columns(cls: type) -> list[ColumnField]:
    """Build ColumnFields from ``Annotated[..., Column(...)]`` attributes."""
    try:
        hints = get_type_hints(cls, include_extras=True)
    except (NameError, TypeError) as exc:
        raise MappingError(f"Cannot resolve annotations of {cls.__qualname__}: {exc}") from exc

    columns: list[ColumnField] = []
    for attribute, hint in hints.items():
        if get_origin(hint) is ClassVar or get_origin(hint) is not Annotated:
            continue

        base, *extras = get_args(hint)
        marker = next((arg for arg in extras if isinstance(arg, Column)), None)
        if marker is None:
            continue

        python_type, nullable = _unwrap_optional(base)
        columns.append(
            ColumnField(
                attribute=attribute,
                name=marker.name or attribute,
                python_type=python_type,
                primary=marker.primary,
                auto_increment=marker.auto_increment,
                sql_type=marker.sql_type,
                nullable=nullable,
            )
        )
    return columns


def _unwrap_optional(hint: Any) -> tuple[Any, bool]:
    """Strip ``None`` from ``X | None`` / ``Optional[X]``."""
    if get_origin(hint) in (Union, types.UnionType):
        args = [arg for arg in get_args(hint) if arg is not type(None)]
        nullable = len(args) != len(get_args(hint))
        if len(args) == 1:
            return args[0], nullable
        return hint, nullable
    return hint, False


def _class_name_to_table_name(class_name: str) -> str:
    """Convert class name to snake_case table name.

    Examples:
        User -> user
        UserProfile -> user_profile
        HTTPServer -> http_server
    """
    result = []
    for i, char in enumerate(class_name):
        if char.isupper() and i > 0:
            # Add underscore before uppercase if previous char is lowercase
            # or current is followed by lowercase (handles acronyms)
            if (
                class_name[i - 1].islower()
                or (i + 1 < len(class_name) and class_name[i + 1].islower())
            ):
                result.append("_")
        result.append(char.lower())

    return "".join(result)


def instance_builder(cls: type[T]) -> Callable[[dict[str, Any]], T]:
    """Return the (cached) function that builds an instance of ``cls`` from attribute values.

    Values the constructor accepts as keywords are passed to it (dataclasses,
    pydantic models, explicit ``__init__``); the rest, such as
    ``field(init=False)`` attributes, are set afterwards. When the keywords
    cannot satisfy the constructor, the class is created with no arguments
    and populated attribute by attribute.
    """
    build = vars(cls).get("__instance_builder__")
    if build is None:
        build = _make_builder(cls)
        cls.__instance_builder__ = build  # type: ignore[attr-defined]
    return build


def _make_builder(cls: type[T]) -> Callable[[dict[str, Any]], T]:
    try:
        signature: inspect.Signature | None = inspect.signature(cls)
    except (TypeError, ValueError):
        signature = None

    keywords: set[str] = set()
    any_keyword = False
    if signature is not None:
        for param in signature.parameters.values():
            if param.kind is inspect.Parameter.VAR_KEYWORD:
                any_keyword = True
            elif param.kind in (inspect.Parameter.POSITIONAL_OR_KEYWORD, inspect.Parameter.KEYWORD_ONLY):
                keywords.add(param.name)

    def accepts(init_values: dict[str, Any]) -> bool:
        if signature is None:
            return False
        try:
            signature.bind(**init_values)
        except TypeError:
            return False
        return True

    def build(values: dict[str, Any]) -> T:
        init_values = {k: v for k, v in values.items() if any_keyword or k in keywords}
        if accepts(init_values):
            instance = cls(**init_values)
            remaining = {k: v for k, v in values.items() if k not in init_values}
        else:
            instance = cls()
            remaining = values
        for attribute, value in remaining.items():
            setattr(instance, attribute, value)
        return instance

    return build
