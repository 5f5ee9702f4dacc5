"""Coercion between Python attribute values and MySQL column values."""

from __future__ import annotations

import base64
import binascii
import logging
import pickle
from collections.abc import Mapping
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, get_origin
from uuid import UUID

from pydantic import TypeAdapter, ValidationError

from sqlo.exceptions import MappingError
from sqlo.table import ColumnField
from sqlo.types import Converter

logger = logging.getLogger(__name__)

# Values of these types are handed to the driver unchanged.
PASSTHROUGH_TYPES: tuple[type, ...] = (int, float, Decimal, datetime, date, bytes)


def encode_map(mapping: Mapping[Any, Any]) -> str:
    """Serialize a mapping into Base64 text (an opaque blob for a text column)."""
    return base64.b64encode(pickle.dumps(dict(mapping))).decode("ascii")


def decode_map(text: str | bytes) -> dict[Any, Any]:
    """Inverse of :func:`encode_map`.

    The payload is unpickled, so only read maps from tables this process
    (or another trusted writer) populated.
    """
    try:
        value = pickle.loads(base64.b64decode(text, validate=True))
    except (binascii.Error, pickle.UnpicklingError, EOFError, ValueError) as exc:
        raise MappingError(f"Column value is not an encoded map: {exc}") from exc
    if not isinstance(value, dict):
        raise MappingError(f"Encoded column value is a {type(value).__name__}, not a map")
    return value


def coerce_param(value: Any) -> Any:
    """Coerce a bare statement parameter (no declared field type) by its runtime type."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, Enum):
        return value.name
    if isinstance(value, UUID):
        return str(value)
    return value


def _is_mapping_type(python_type: Any) -> bool:
    origin = get_origin(python_type) or python_type
    return isinstance(origin, type) and issubclass(origin, Mapping)


def _is_plain_type(python_type: Any) -> bool:
    """A real class, not a parameterized generic such as ``list[int]``."""
    return isinstance(python_type, type) and get_origin(python_type) is None


def _is_subclass(python_type: Any, base: type) -> bool:
    return _is_plain_type(python_type) and issubclass(python_type, base)


class ValueCoercer:
    """Applies converters and the built-in coercion rules for one Database."""

    def __init__(self, converters: dict[type, Converter] | None = None) -> None:
        self.converters: dict[type, Converter] = {} if converters is None else converters
        self._adapters: dict[Any, TypeAdapter[Any]] = {}

    def register(self, python_type: type, converter: Converter) -> None:
        self.converters[python_type] = converter

    def to_db(self, field: ColumnField, value: Any) -> Any:
        """Convert an attribute value into the value bound to its placeholder."""
        if value is None:
            return None

        python_type = field.python_type
        converter = self.converters.get(python_type)
        if converter is not None:
            return converter.to_db(value)

        if python_type is bool or isinstance(value, bool):
            return 1 if value else 0
        if _is_mapping_type(python_type):
            return encode_map(value)
        if isinstance(value, Enum):
            return value.name
        if python_type is str:
            return str(value)
        if isinstance(value, UUID):
            return str(value)
        if isinstance(value, PASSTHROUGH_TYPES):
            return value

        try:
            return self._adapter(python_type).dump_json(value).decode("utf-8")
        except Exception as exc:  # schema generation or serialization failure
            raise MappingError(
                f"Cannot serialize {field.attribute}={value!r} to JSON: {exc}"
            ) from exc

    def from_db(self, field: ColumnField, value: Any) -> Any:
        """Convert a column value from a result row into the attribute's type."""
        if value is None:
            return None

        python_type = field.python_type
        if python_type is bool:
            # MySQL BOOLEAN is TINYINT(1); drivers hand back 0/1.
            if isinstance(value, bool):
                return value
            try:
                return bool(int(value))
            except (TypeError, ValueError) as exc:
                raise MappingError(f"Column '{field.name}' is not a boolean: {value!r}") from exc

        if _is_plain_type(python_type) and not _is_mapping_type(python_type):
            if isinstance(value, python_type):
                return value

        converter = self.converters.get(python_type)
        if converter is not None:
            return converter.from_db(value)

        if _is_subclass(python_type, Enum):
            try:
                return python_type[_as_text(value)]
            except KeyError:
                raise MappingError(
                    f"{_as_text(value)!r} is not a member of {python_type.__name__} "
                    f"(column '{field.name}')"
                ) from None
        if python_type is UUID:
            try:
                return UUID(_as_text(value))
            except ValueError as exc:
                raise MappingError(f"Column '{field.name}' is not a UUID: {exc}") from exc
        if _is_mapping_type(python_type):
            if isinstance(value, Mapping):
                return dict(value)
            return decode_map(value)
        if python_type is str:
            return _as_text(value)

        adapter = self._adapter(python_type)
        try:
            if isinstance(value, (str, bytes, bytearray)):
                try:
                    return adapter.validate_json(value)
                except ValidationError:
                    # Plain text in a text column, e.g. a datetime under sql_type="VARCHAR(32)".
                    return adapter.validate_python(value)
            return adapter.validate_python(value)
        except ValidationError as exc:
            raise MappingError(
                f"Cannot convert column '{field.name}' to {python_type!r}: {exc}"
            ) from exc

    def _adapter(self, python_type: Any) -> TypeAdapter[Any]:
        adapter = self._adapters.get(python_type)
        if adapter is None:
            logger.debug("Building JSON adapter for %r", python_type)
            adapter = TypeAdapter(python_type)
            self._adapters[python_type] = adapter
        return adapter


def _as_text(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8")
    return str(value)
