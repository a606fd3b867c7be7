"""Escaping, identifier validation, and value flattening helpers."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence, Set
from typing import Any

from pysqlingo._errors import InvalidFieldNameError

# Characters that get a backslash prefix inside a quoted string literal
ESCAPED_CHARACTERS = "\x00\n\r\\'\"\x1a"

_ESCAPE_TABLE = str.maketrans({ch: "\\" + ch for ch in ESCAPED_CHARACTERS})

_TEXT_TYPES = (str, bytes, bytearray, memoryview)


def quote_string(value: str) -> str:
    """Quote a string as a SQL literal, backslash-escaping special characters."""
    if not value:
        return "''"
    return "'" + value.translate(_ESCAPE_TABLE) + "'"


def quote_bytes(value: bytes | bytearray) -> str:
    """Render a byte string as a hexadecimal literal."""
    return f"X'{bytes(value).hex().upper()}'"


def validate_identifier(name: str, context: str = "field name") -> None:
    """Validate a table/field/alias identifier before it is quoted."""
    if not name:
        raise InvalidFieldNameError(
            f"{context} cannot be empty",
            f"empty {context} provided",
        )
    if "\x00" in name:
        raise InvalidFieldNameError(
            f"{context} cannot contain null bytes",
            f"null byte found in {context}: {name!r}",
        )


def is_expandable(value: Any) -> bool:
    """Whether a value is a container whose elements stand for separate values."""
    if isinstance(value, _TEXT_TYPES) or isinstance(value, Mapping):
        return False
    return isinstance(value, (Sequence, Set, Iterator))


def flatten_values(values: Iterable[Any]) -> list[Any]:
    """Recursively expand nested containers into a flat list of values.

    ``None`` is a leaf: descent stops there and it is kept as a NULL value.
    """
    result: list[Any] = []
    for value in values:
        if is_expandable(value):
            result.extend(flatten_values(value))
        else:
            result.append(value)
    return result


def freeze_value(value: Any) -> Any:
    """Copy an expandable container, recursively, into nested tuples.

    Iterators are drained once here, so the captured operand can be rendered
    any number of times.
    """
    if is_expandable(value):
        return tuple(freeze_value(item) for item in value)
    return value
