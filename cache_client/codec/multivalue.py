r"""
Multivalue Wire Format

The caching service accepts several values in one request body using the
application/x-multivalue-octet-stream content type. Replace sends the old
and the new value this way.

Layout (all integers unsigned 32-bit big-endian):

    /--4 bytes--\ /---4 bytes---\ /--n bytes--\
    [num_elements][element_length][element....]{rest of elements in the same form}

Components carry no type information, so decode returns either all text or
all bytes depending on the caller.
"""

import struct
from typing import List, Sequence, Union

from ..exceptions import InvalidComponentType, MalformedMultivalue

Component = Union[str, bytes, bytearray, memoryview]

HEADER = struct.Struct(">I")
MAX_LENGTH = 0xFFFFFFFF


def encode(components: Union[Component, Sequence[Component]], encoding: str = "utf-8") -> bytes:
    """
    Encode components into a single multivalue buffer.

    Args:
        components: One component, or an ordered sequence of components.
                    Each must be text or bytes; serialize objects first.
        encoding: Text encoding for str components

    Returns:
        The framed buffer, 4 + sum(4 + len(component)) bytes long

    Raises:
        InvalidComponentType: If any component is not text or bytes

    Examples:
        >>> encode(["ab", b"c"])
        b'\\x00\\x00\\x00\\x02\\x00\\x00\\x00\\x02ab\\x00\\x00\\x00\\x01c'
    """
    if isinstance(components, (str, bytes, bytearray, memoryview)):
        components = [components]
    elif not isinstance(components, (list, tuple)):
        raise InvalidComponentType(
            "Multivalue expects a list of str or bytes components",
            context={"type": type(components).__name__},
        )

    payloads: List[bytes] = []
    for index, component in enumerate(components):
        if isinstance(component, str):
            payloads.append(component.encode(encoding))
        elif isinstance(component, (bytes, bytearray, memoryview)):
            payloads.append(bytes(component))
        else:
            raise InvalidComponentType(
                "Multivalue expects a list of str or bytes components. "
                "Ensure data is serialized before being added to the multivalue",
                context={"index": index, "type": type(component).__name__},
            )

    parts = [HEADER.pack(len(payloads))]
    for payload in payloads:
        if len(payload) > MAX_LENGTH:
            raise InvalidComponentType("Multivalue component is too large")
        parts.append(HEADER.pack(len(payload)))
        parts.append(payload)
    return b"".join(parts)


def decode(
        data: Union[str, bytes, bytearray, memoryview],
        as_raw: bool = False,
        encoding: str = "utf-8",
) -> List[Union[str, bytes]]:
    """
    Decode a multivalue buffer into its components.

    Args:
        data: The framed buffer (text is first encoded with `encoding`)
        as_raw: True to return bytes components, False for decoded text
        encoding: Encoding used for text input and text output

    Returns:
        The components in order

    Raises:
        MalformedMultivalue: If the buffer is truncated, has trailing bytes,
                             or a component is not valid text
    """
    if isinstance(data, str):
        data = data.encode(encoding)
    buf = bytes(data)

    if len(buf) < HEADER.size:
        raise MalformedMultivalue(
            "Multivalue buffer is too short for a component count",
            context={"length": len(buf)},
        )
    (count,) = HEADER.unpack_from(buf, 0)
    offset = HEADER.size

    components: List[Union[str, bytes]] = []
    for index in range(count):
        if offset + HEADER.size > len(buf):
            raise MalformedMultivalue(
                "Multivalue buffer ends before a component length",
                context={"index": index, "declared_count": count},
            )
        (length,) = HEADER.unpack_from(buf, offset)
        offset += HEADER.size
        if offset + length > len(buf):
            raise MalformedMultivalue(
                "Multivalue component length exceeds the remaining buffer",
                context={"index": index, "length": length, "remaining": len(buf) - offset},
            )
        payload = buf[offset:offset + length]
        offset += length
        if as_raw:
            components.append(payload)
            continue
        try:
            components.append(payload.decode(encoding))
        except UnicodeDecodeError as e:
            raise MalformedMultivalue(
                "Multivalue component is not valid text",
                context={"index": index, "encoding": encoding},
            ) from e

    if offset != len(buf):
        raise MalformedMultivalue(
            "Multivalue buffer has bytes beyond its declared components",
            context={"declared_count": count, "trailing": len(buf) - offset},
        )
    return components
