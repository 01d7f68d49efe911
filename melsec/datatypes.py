"""
MC protocol data types and conversion utilities.

Handles little-endian address and count encoding, element width checks and
reinterpretation of payload bytes as typed values.
"""

import struct
from typing import List, Optional, Sequence, Union

from .error import OddSizeArrayError, OutOfRangeError, UnsupportedElementWidthError, ODD_SIZE_ARRAY, WRONG_TYPE_SIZE
from .type import ElementWidth

Number = Union[int, float]


def encode_point(point: int) -> bytes:
    """Encode a device point number as the 3 byte little-endian field."""
    if not 0 <= point <= 0xFFFFFF:
        raise OutOfRangeError(f"Device point {point} does not fit in 3 bytes")
    return struct.pack("<I", point)[:3]


def encode_address(address: int) -> bytes:
    """Encode an absolute buffer memory address as 4 little-endian bytes."""
    if not 0 <= address <= 0xFFFFFFFF:
        raise OutOfRangeError(f"Buffer address {address} does not fit in 4 bytes")
    return struct.pack("<I", address)


def encode_count(count: int) -> bytes:
    """Encode a point or byte count as 2 little-endian bytes."""
    if not 0 <= count <= 0xFFFF:
        raise OutOfRangeError(f"Count {count} does not fit in 2 bytes")
    return struct.pack("<H", count)


def encode_random_count(count: int, width: ElementWidth) -> bytes:
    """Encode the word/doubleword sub-counts of a random access request.

    The first byte counts word access points and the second byte doubleword
    access points. A request only ever carries one width, so the sub-count of
    the other width is zero.
    """
    if width.size == 4:
        if not 0 <= count <= 0xFF:
            raise OutOfRangeError(f"Too many doubleword points: {count}")
        return struct.pack("<BB", 0, count)
    return encode_count(count)


def check_width(width: ElementWidth, minimum: int = 2, maximum: int = 4) -> int:
    """Return the byte size of ``width`` if it is accepted by the operation.

    Raises:
        UnsupportedElementWidthError: the width is outside ``minimum..maximum``.
    """
    size = width.size
    if size < minimum or size > maximum:
        raise UnsupportedElementWidthError(f"{WRONG_TYPE_SIZE}: {width.name} ({size} bytes)")
    return size


def pack_values(values: Sequence[Number], width: ElementWidth) -> bytes:
    """Pack values as a little-endian array of ``width`` elements."""
    try:
        return struct.pack(f"<{len(values)}{width.format}", *values)
    except struct.error as e:
        raise OutOfRangeError(f"Values cannot be packed as {width.name}: {e}") from e


def unpack_values(payload: bytes, width: ElementWidth) -> List[Number]:
    """Reinterpret a payload as an array of ``width`` elements.

    Trailing bytes that do not make up a whole element are ignored.
    """
    count = len(payload) // width.size
    return list(struct.unpack_from(f"<{count}{width.format}", payload))


def pack_bits(states: Sequence[bool]) -> bytes:
    """Pack bit states two per byte, first state in the high nibble.

    Examples:
        >>> pack_bits([True, True, False, False])
        b'\\x11\\x00'
    """
    if len(states) & 1:
        raise OddSizeArrayError(ODD_SIZE_ARRAY)
    packed = bytearray()
    for high, low in zip(states[0::2], states[1::2]):
        value = 0
        if high:
            value |= 0x10
        if low:
            value |= 0x01
        packed.append(value)
    return bytes(packed)


def unpack_bits(payload: bytes, count: Optional[int] = None) -> List[bool]:
    """Unpack bit states stored two per byte.

    Args:
        payload: response payload in bit units.
        count: number of states requested; an odd count leaves a pad nibble
            in the last byte which is dropped.
    """
    states = []
    for value in payload:
        states.append((value >> 4) != 0)
        states.append((value & 0x01) == 0x01)
    if count is not None:
        states = states[:count]
    return states
