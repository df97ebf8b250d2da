"""JSON serialization utilities for sqlstage.

Thin wrappers around :mod:`msgspec.json` used for structured log records,
presigned-request headers and semi-structured column literals.
"""

from typing import Any, Literal, overload

import msgspec

from sqlstage.exceptions import SQLStageError

__all__ = ("SerializationError", "from_json", "to_json")

_encoder = msgspec.json.Encoder()
_decoder = msgspec.json.Decoder()


class SerializationError(SQLStageError):
    """Encoding or decoding of an object failed."""


@overload
def to_json(data: Any, *, as_bytes: Literal[False] = ...) -> str: ...


@overload
def to_json(data: Any, *, as_bytes: Literal[True]) -> bytes: ...


def to_json(data: Any, *, as_bytes: bool = False) -> "str | bytes":
    """Encode data to JSON string or bytes.

    Args:
        data: Data to encode.
        as_bytes: Whether to return bytes instead of string.

    Raises:
        SerializationError: If the data contains values msgspec cannot encode.

    Returns:
        JSON string or bytes representation based on as_bytes parameter.
    """
    try:
        encoded = _encoder.encode(data)
    except (TypeError, msgspec.EncodeError) as exc:
        msg = f"Unable to encode {type(data).__name__} as JSON"
        raise SerializationError(msg) from exc
    if as_bytes:
        return encoded
    return encoded.decode("utf-8")


def from_json(data: "str | bytes") -> Any:
    """Decode a JSON document.

    Raises:
        SerializationError: If the payload is not valid JSON.
    """
    try:
        return _decoder.decode(data)
    except msgspec.DecodeError as exc:
        msg = "Unable to decode JSON payload"
        raise SerializationError(msg) from exc
