"""Rendering of Python values into the text literals written to staged files."""

import datetime
from decimal import Decimal
from typing import Any, Callable, Optional
from uuid import UUID

from sqlstage.exceptions import UnsupportedParameterTypeError
from sqlstage.utils.serializers import SerializationError, to_json

__all__ = ("format_literal",)


def _format_offset(value: "datetime.datetime | datetime.time") -> str:
    offset = value.utcoffset()
    if offset is None:
        return ""
    total_minutes = int(offset.total_seconds()) // 60
    sign = "-" if total_minutes < 0 else "+"
    hours, minutes = divmod(abs(total_minutes), 60)
    return f"{sign}{hours:02d}:{minutes:02d}"


def _format_time(value: datetime.time) -> str:
    return f"{value:%H:%M:%S}.{value.microsecond // 1000:03d}{_format_offset(value)}"


def _format_datetime(value: datetime.datetime) -> str:
    return f"{value:%Y-%m-%d %H:%M:%S}.{value.microsecond // 1000:03d}{_format_offset(value)}"


def _format_decimal(value: Decimal) -> str:
    if not value.is_finite():
        return str(value)
    return format(value, "f")


def _format_bytes(value: "bytes | bytearray | memoryview") -> str:
    return bytes(value).decode("utf-8", errors="replace")


def _format_json(value: Any) -> str:
    try:
        return to_json(value)
    except SerializationError as exc:
        msg = f"Cannot convert instance of {type(value).__name__} to a JSON literal"
        raise UnsupportedParameterTypeError(msg) from exc


# Order matters: bool before int, datetime before date.
_FORMATTERS: "tuple[tuple[type | tuple[type, ...], Callable[[Any], str]], ...]" = (
    (str, str),
    (bool, lambda value: "true" if value else "false"),
    (int, str),
    (float, repr),
    (Decimal, _format_decimal),
    (datetime.datetime, _format_datetime),
    (datetime.date, lambda value: value.isoformat()),
    (datetime.time, _format_time),
    ((bytes, bytearray, memoryview), _format_bytes),
    (UUID, str),
    ((dict, list, tuple), _format_json),
)


def format_literal(value: Any) -> Optional[str]:
    """Render ``value`` as the text a staged CSV file carries for it.

    Dates render as ``YYYY-MM-DD``, times as ``HH:MM:SS.mmm`` and datetimes as
    ``YYYY-MM-DD HH:MM:SS.mmm``; timezone-aware values get a ``+HH:MM`` suffix.
    Mappings and sequences become JSON text for semi-structured columns.

    Raises:
        UnsupportedParameterTypeError: If the value has no literal form.

    Returns:
        The literal, or ``None`` for SQL NULL.
    """
    if value is None:
        return None
    for value_type, formatter in _FORMATTERS:
        if isinstance(value, value_type):
            return formatter(value)
    msg = f"Unsupported object type: {type(value).__name__}"
    raise UnsupportedParameterTypeError(msg)
