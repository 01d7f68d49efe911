"""
Frame parameters of the binary MC protocol variants.

A single :class:`~melsec.protocol.MCProtocol` implementation is shared by all
variants; the differences between them are captured in a
:class:`FrameParameters` instance handed to the client at construction.
"""

import struct
from dataclasses import dataclass


@dataclass(frozen=True)
class FrameParameters:
    """Constants of one frame variant.

    Attributes:
        header_prefix: bytes prepended to every request (the subheader).
        response_header: expected first byte of every response.
        min_response_length: responses must be strictly longer than this.
        error_code_position: offset of the 2 byte end code.
        data_length_position: offset of the 2 byte declared length.
        return_value_position: offset of the first payload byte.
    """

    header_prefix: bytes
    response_header: int
    min_response_length: int
    error_code_position: int
    data_length_position: int
    return_value_position: int


FRAME_3E = FrameParameters(
    header_prefix=b"\x50\x00",
    response_header=0xD0,
    min_response_length=10,
    error_code_position=9,
    data_length_position=7,
    return_value_position=11,
)


def frame_4e(serial_no: int = 0) -> FrameParameters:
    """Build 4E frame parameters carrying ``serial_no`` in the subheader."""
    return FrameParameters(
        header_prefix=b"\x54\x00" + struct.pack("<H", serial_no) + b"\x00\x00",
        response_header=0xD4,
        min_response_length=14,
        error_code_position=13,
        data_length_position=11,
        return_value_position=15,
    )


FRAME_4E = frame_4e()
