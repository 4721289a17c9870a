"""
Value Codec Module

Converts values to the opaque byte payloads stored by the cache, and
converts payloads back into typed values.

Write side:
    str          -> UTF-8 bytes
    bytes-like   -> unchanged
    anything else -> compact JSON, UTF-8 encoded

Read side:
    With a TypeHint the payload is coerced to that type; without one the
    payload is parsed as JSON when possible and returned as text otherwise.
"""

import json
import math
from typing import Any, Callable, Dict, Optional, Union

from ..exceptions import InvalidValueType, TypeMismatch
from .hints import TypeHint

BYTES_TYPES = (bytes, bytearray, memoryview)

_NOT_JSON = object()


def _reject_constant(name: str) -> Any:
    # NaN, Infinity and -Infinity are not JSON
    raise ValueError(f"Non-standard JSON constant {name}")


def serialize(value: Any, raw: bool = False) -> bytes:
    """
    Serialize a value into the payload sent to the cache.

    Args:
        value: The value to store
        raw: True if the value is already a raw byte payload

    Returns:
        The payload bytes

    Raises:
        InvalidValueType: If raw is set for a non-bytes value, or the value
                          cannot be represented as JSON
    """
    if isinstance(value, BYTES_TYPES):
        return bytes(value)
    if raw:
        raise InvalidValueType(
            "Raw values must be bytes-like",
            context={"type": type(value).__name__},
        )
    if isinstance(value, str):
        return value.encode("utf-8")
    try:
        return json.dumps(value, separators=(",", ":"), allow_nan=False).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise InvalidValueType(
            f"Value of type {type(value).__name__} cannot be serialized",
            context={"error": str(e)},
        ) from e


def decode(raw: Union[bytes, str], hint: Optional[TypeHint] = None) -> Any:
    """
    Decode a payload read from the cache.

    Args:
        raw: Payload bytes (text is accepted and encoded as UTF-8)
        hint: Expected type, or None for a best guess

    Returns:
        The decoded value

    Raises:
        TypeMismatch: If the payload cannot be coerced to the hinted type

    Examples:
        >>> decode(b'{"a": 1}')
        {'a': 1}
        >>> decode(b"plain text")
        'plain text'
        >>> decode(b"false", TypeHint.BOOLEAN)
        False
    """
    if isinstance(raw, str):
        raw = raw.encode("utf-8")
    else:
        raw = bytes(raw)
    if hint is None:
        return _best_guess(raw)
    return _DECODERS[hint](raw)


def _text(raw: bytes) -> str:
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise TypeMismatch("Payload is not valid UTF-8 text") from e


def _text_or_bytes(raw: bytes) -> Union[str, bytes]:
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return raw


def _parse_json(raw: bytes) -> Any:
    try:
        return json.loads(raw.decode("utf-8"), parse_constant=_reject_constant)
    except ValueError:
        # Includes UnicodeDecodeError
        return _NOT_JSON


def _best_guess(raw: bytes) -> Any:
    parsed = _parse_json(raw)
    if parsed is _NOT_JSON:
        return _text_or_bytes(raw)
    return parsed


def _decode_string(raw: bytes) -> str:
    return _text(raw)


def _decode_blob(raw: bytes) -> bytes:
    return raw


def _decode_number(raw: bytes) -> Union[int, float]:
    text = _text(raw).strip()
    if not text:
        return 0
    if "_" in text:
        # int() and float() accept digit separators such as "1_000"
        raise TypeMismatch(
            "'number' was requested as a type, but the result is NaN",
            context={"payload": text[:64]},
        )
    try:
        return int(text)
    except ValueError:
        pass
    try:
        number = float(text)
    except ValueError:
        number = math.nan
    if math.isnan(number):
        raise TypeMismatch(
            "'number' was requested as a type, but the result is NaN",
            context={"payload": text[:64]},
        )
    return number


def _decode_array(raw: bytes) -> list:
    parsed = _parse_json(raw)
    if parsed is _NOT_JSON:
        # Most likely a single plain string
        return [_text_or_bytes(raw)]
    if isinstance(parsed, list):
        return parsed
    return [parsed]


def _decode_boolean(raw: bytes) -> bool:
    # Only the literal "false" is falsy; "0" and "null" are True
    if raw == b"false":
        return False
    return bool(raw)


def _decode_object(raw: bytes) -> Any:
    parsed = _parse_json(raw)
    if parsed is _NOT_JSON:
        return _text_or_bytes(raw)
    return parsed


_DECODERS: Dict[TypeHint, Callable[[bytes], Any]] = {
    TypeHint.STRING: _decode_string,
    TypeHint.BLOB: _decode_blob,
    TypeHint.NUMBER: _decode_number,
    TypeHint.ARRAY: _decode_array,
    TypeHint.BOOLEAN: _decode_boolean,
    TypeHint.OBJECT: _decode_object,
}
