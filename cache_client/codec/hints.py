"""
Type Hint Definitions

A type hint tells the value codec how to interpret a payload read back from
the cache. Callers may pass a TypeHint member, its name as a string, or the
matching Python type.
"""

from enum import Enum
from typing import Any, Optional

from ..exceptions import InvalidValueType


class TypeHint(Enum):
    """Enumeration of supported decode hints."""
    STRING = "string"
    BLOB = "blob"
    NUMBER = "number"
    ARRAY = "array"
    OBJECT = "object"
    BOOLEAN = "boolean"

    @classmethod
    def parse(cls, hint: Any) -> Optional["TypeHint"]:
        """
        Normalize a caller supplied hint.

        Args:
            hint: None, a TypeHint, a hint name ("string", "buffer", ...)
                  or a Python type (str, bytes, int, float, list, dict, bool)

        Returns:
            The matching TypeHint, or None for a best-guess decode

        Raises:
            InvalidValueType: If the hint is not recognised

        Examples:
            >>> TypeHint.parse("Number")
            <TypeHint.NUMBER: 'number'>
            >>> TypeHint.parse(dict)
            <TypeHint.OBJECT: 'object'>
        """
        if hint is None or isinstance(hint, cls):
            return hint
        if isinstance(hint, str):
            found = _NAMES.get(hint.lower())
        elif isinstance(hint, type):
            found = _TYPES.get(hint)
        else:
            found = None
        if found is None:
            raise InvalidValueType(
                "Type hints must name a supported type, e.g. 'string'",
                context={"hint": hint},
            )
        return found


_NAMES = {member.value: member for member in TypeHint}
_NAMES["buffer"] = TypeHint.BLOB

_TYPES = {
    str: TypeHint.STRING,
    bytes: TypeHint.BLOB,
    bytearray: TypeHint.BLOB,
    int: TypeHint.NUMBER,
    float: TypeHint.NUMBER,
    list: TypeHint.ARRAY,
    tuple: TypeHint.ARRAY,
    dict: TypeHint.OBJECT,
    bool: TypeHint.BOOLEAN,
}
