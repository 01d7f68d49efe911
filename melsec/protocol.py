"""
MC protocol implementation.

Handles request frame encoding and response frame validation for the binary
3E/4E command set.
"""

import struct
import logging
from enum import IntEnum
from typing import List, Optional, Sequence

from .datatypes import (
    Number,
    check_width,
    encode_address,
    encode_count,
    encode_point,
    encode_random_count,
    pack_bits,
    pack_values,
)
from .error import (
    EmptyInputError,
    OutOfRangeError,
    ResponseHeaderCorruptError,
    ResponseLengthCorruptError,
    ResponseTooShortError,
    SizeMismatchError,
    check_error,
    NO_DATA_READ,
    NO_DATA_WRITE,
    SIZE_MISMATCH,
)
from .frame import FrameParameters, FRAME_3E
from .type import ClearMode, DestinationCpu, DeviceType, ElementWidth

logger = logging.getLogger(__name__)


class MCCommand(IntEnum):
    """MC protocol command codes."""

    BATCH_READ = 0x0401
    BATCH_WRITE = 0x1401
    RANDOM_READ = 0x0403
    RANDOM_WRITE = 0x1402
    MODULE_BUFFER_READ = 0x0601
    MODULE_BUFFER_WRITE = 0x1601
    BUFFER_READ = 0x0613
    BUFFER_WRITE = 0x1613
    CPU_MODEL_READ = 0x0101
    REMOTE_RUN = 0x1001
    REMOTE_STOP = 0x1002
    REMOTE_PAUSE = 0x1003
    REMOTE_LATCH_CLEAR = 0x1005
    REMOTE_RESET = 0x1006
    ERROR_LED_OFF = 0x1617


class MCSubcommand(IntEnum):
    """MC protocol subcommands for device access."""

    WORD = 0x0000
    BIT = 0x0001


# request destination module I/O number (high byte), station number, monitoring timer
IO_NUMBER_HIGH = 0x03
STATION_NO = 0x00
MONITORING_TIMER = 0x0010

FORCED = 0x03
NOT_FORCED = 0x01


class MCProtocol:
    """
    MC protocol implementation.

    Builds request frames and validates response frames for one frame variant.
    Station addressing bytes are read every time a frame is built, so changing
    them affects the next request only.
    """

    def __init__(self, frame: FrameParameters = FRAME_3E) -> None:
        self.frame = frame
        self.network_no = 0
        self.pc_no = 0xFF
        self.destination_cpu: int = DestinationCpu.LOCAL_STATION

    def request_length(self, overhead: int, payload_size: int = 0) -> int:
        """
        Compute the declared length field of a request.

        Args:
            overhead: fixed size of the command fields, counted including the
                subheader and excluding the payload
            payload_size: size of the variable payload in bytes

        Returns:
            Value of the request data length field
        """
        return overhead + len(self.frame.header_prefix) - self.frame.error_code_position + payload_size

    def _build_frame(self, command: MCCommand, subcommand: int, length: int, fields: bytes = b"") -> bytes:
        if length > 0xFFFF:
            raise OutOfRangeError(f"Request data length {length} does not fit in 2 bytes")
        header = struct.pack(
            "<BBBBBHH",
            self.network_no,
            self.pc_no,
            self.destination_cpu,
            IO_NUMBER_HIGH,
            STATION_NO,
            length,
            MONITORING_TIMER,
        )
        return self.frame.header_prefix + header + struct.pack("<HH", command, subcommand) + fields

    # ========================================================================
    # Device memory (word units)
    # ========================================================================

    def build_batch_read_words(
        self, point: int, device: DeviceType, count: int, width: ElementWidth = ElementWidth.WORD
    ) -> bytes:
        """
        Build batch read request in word units.

        Args:
            point: First device point
            device: Device type code
            count: Number of ``width`` elements to read
            width: Element width, 2 or 4 bytes

        Returns:
            Complete request frame
        """
        size = check_width(width)
        if count <= 0:
            raise EmptyInputError(NO_DATA_READ)
        points = count * size // 2
        fields = encode_point(point) + bytes([device]) + encode_count(points)
        return self._build_frame(MCCommand.BATCH_READ, MCSubcommand.WORD, 0x0C, fields)

    def build_batch_write_words(
        self, point: int, values: Sequence[Number], device: DeviceType, width: ElementWidth = ElementWidth.WORD
    ) -> bytes:
        """
        Build batch write request in word units.

        Args:
            point: First device point
            values: Values to write
            device: Device type code
            width: Element width, 2 or 4 bytes

        Returns:
            Complete request frame
        """
        check_width(width)
        if len(values) == 0:
            raise EmptyInputError(NO_DATA_WRITE)
        data = pack_values(values, width)
        points = len(data) // 2
        fields = encode_point(point) + bytes([device]) + encode_count(points)
        length = self.request_length(19, len(data))
        return self._build_frame(MCCommand.BATCH_WRITE, MCSubcommand.WORD, length, fields + data)

    def build_random_read_words(
        self, points: Sequence[int], device: DeviceType, width: ElementWidth = ElementWidth.WORD
    ) -> bytes:
        """
        Build random read request in word units.

        Doubleword reads are issued as doubleword access points, so the word
        access count is zero and the doubleword access count carries the
        number of points.
        """
        check_width(width)
        if len(points) == 0:
            raise EmptyInputError(NO_DATA_READ)
        count = len(points)
        fields = bytearray(encode_random_count(count, width))
        for point in points:
            fields += encode_point(point) + bytes([device])
        length = self.request_length(15, count * 4)
        return self._build_frame(MCCommand.RANDOM_READ, MCSubcommand.WORD, length, bytes(fields))

    def build_random_write_words(
        self,
        points: Sequence[int],
        values: Sequence[Number],
        device: DeviceType,
        width: ElementWidth = ElementWidth.WORD,
    ) -> bytes:
        """Build random write request in word units."""
        size = check_width(width)
        if len(points) != len(values):
            raise SizeMismatchError(SIZE_MISMATCH)
        if len(values) == 0:
            raise EmptyInputError(NO_DATA_WRITE)
        count = len(points)
        fields = bytearray(encode_random_count(count, width))
        for point, value in zip(points, values):
            fields += encode_point(point) + bytes([device]) + pack_values([value], width)
        length = self.request_length(15, count * (4 + size))
        return self._build_frame(MCCommand.RANDOM_WRITE, MCSubcommand.WORD, length, bytes(fields))

    # ========================================================================
    # Buffer memory
    # ========================================================================

    def build_read_buffer(self, address: int, count: int, width: ElementWidth = ElementWidth.WORD) -> bytes:
        """Build read request for the buffer memory at an absolute address."""
        size = check_width(width)
        if count <= 0:
            raise EmptyInputError(NO_DATA_READ)
        words = count * size // 2
        fields = encode_address(address) + encode_count(words)
        return self._build_frame(MCCommand.BUFFER_READ, MCSubcommand.WORD, 0x0C, fields)

    def build_write_buffer(self, address: int, values: Sequence[Number], width: ElementWidth = ElementWidth.WORD) -> bytes:
        """Build write request for the buffer memory at an absolute address."""
        if len(values) == 0:
            raise EmptyInputError(NO_DATA_WRITE)
        check_width(width)
        data = pack_values(values, width)
        fields = encode_address(address) + encode_count(len(data) // 2)
        length = self.request_length(19, len(data))
        return self._build_frame(MCCommand.BUFFER_WRITE, MCSubcommand.WORD, length, fields + data)

    def build_read_module_buffer(
        self, module: int, head_address: int, address: int, count: int, width: ElementWidth = ElementWidth.WORD
    ) -> bytes:
        """
        Build read request for the buffer memory of an intelligent function module.

        Args:
            module: Module number (start I/O number divided by 16)
            head_address: Start address of the buffer memory area
            address: Word offset from ``head_address``
            count: Number of ``width`` elements to read
            width: Element width, 1 to 4 bytes

        Returns:
            Complete request frame
        """
        size = check_width(width, minimum=1)
        if count <= 0:
            raise EmptyInputError(NO_DATA_READ)
        fields = encode_address(head_address + address * 2) + encode_count(count * size) + struct.pack("<H", module)
        return self._build_frame(MCCommand.MODULE_BUFFER_READ, MCSubcommand.WORD, 0x0E, fields)

    def build_write_module_buffer(
        self,
        module: int,
        head_address: int,
        address: int,
        values: Sequence[Number],
        width: ElementWidth = ElementWidth.WORD,
    ) -> bytes:
        """Build write request for the buffer memory of an intelligent function module."""
        if len(values) == 0:
            raise EmptyInputError(NO_DATA_WRITE)
        check_width(width, minimum=1)
        data = pack_values(values, width)
        fields = encode_address(head_address + address * 2) + encode_count(len(data)) + struct.pack("<H", module)
        length = self.request_length(21, len(data))
        return self._build_frame(MCCommand.MODULE_BUFFER_WRITE, MCSubcommand.WORD, length, fields + data)

    # ========================================================================
    # Device memory (bit units)
    # ========================================================================

    def build_batch_read_bits(self, point: int, device: DeviceType, count: int) -> bytes:
        """Build batch read request in bit units."""
        if count <= 0:
            raise EmptyInputError(NO_DATA_READ)
        fields = encode_point(point) + bytes([device]) + encode_count(count)
        return self._build_frame(MCCommand.BATCH_READ, MCSubcommand.BIT, 0x0C, fields)

    def build_write_bit(self, point: int, device: DeviceType, state: bool) -> bytes:
        """Build batch write request for a single bit."""
        fields = encode_point(point) + bytes([device]) + encode_count(1) + bytes([0x10 if state else 0x00])
        return self._build_frame(MCCommand.BATCH_WRITE, MCSubcommand.BIT, 0x0D, fields)

    def build_batch_write_bits(self, point: int, device: DeviceType, states: Sequence[bool]) -> bytes:
        """
        Build batch write request in bit units.

        A single state is written with :meth:`build_write_bit`; longer arrays
        are packed two states per byte and must have an even length.
        """
        if len(states) == 0:
            raise EmptyInputError(NO_DATA_WRITE)
        if len(states) == 1:
            return self.build_write_bit(point, device, states[0])
        data = pack_bits(states)
        fields = encode_point(point) + bytes([device]) + encode_count(len(states))
        length = self.request_length(19, len(data))
        return self._build_frame(MCCommand.BATCH_WRITE, MCSubcommand.BIT, length, fields + data)

    def build_random_write_bits(self, points: Sequence[int], states: Sequence[bool], device: DeviceType) -> bytes:
        """Build random write request in bit units, one state per point."""
        if len(points) != len(states):
            raise SizeMismatchError(SIZE_MISMATCH)
        if len(states) == 0:
            raise EmptyInputError(NO_DATA_WRITE)
        count = len(points)
        if count > 0xFF:
            raise OutOfRangeError(f"Too many bit points: {count}")
        fields = bytearray([count])
        for point, state in zip(points, states):
            fields += encode_point(point) + bytes([device, 0x01 if state else 0x00])
        length = self.request_length(14, count * 5)
        return self._build_frame(MCCommand.RANDOM_WRITE, MCSubcommand.BIT, length, bytes(fields))

    # ========================================================================
    # CPU control
    # ========================================================================

    def build_read_cpu_model(self) -> bytes:
        return self._build_frame(MCCommand.CPU_MODEL_READ, 0x0000, 0x06)

    def build_run(self, forced: bool = False, clear_mode: ClearMode = ClearMode.NO_CLEAR) -> bytes:
        mode = FORCED if forced else NOT_FORCED
        return self._build_frame(MCCommand.REMOTE_RUN, 0x0000, 0x0A, struct.pack("<HH", mode, clear_mode))

    def build_pause(self, forced: bool = False) -> bytes:
        mode = FORCED if forced else NOT_FORCED
        return self._build_frame(MCCommand.REMOTE_PAUSE, 0x0000, 0x08, struct.pack("<H", mode))

    def build_stop(self) -> bytes:
        return self._build_frame(MCCommand.REMOTE_STOP, 0x0000, 0x08, struct.pack("<H", 0x0001))

    def build_reset(self) -> bytes:
        return self._build_frame(MCCommand.REMOTE_RESET, 0x0000, 0x08, struct.pack("<H", 0x0001))

    def build_latch_clear(self) -> bytes:
        return self._build_frame(MCCommand.REMOTE_LATCH_CLEAR, 0x0000, 0x08, struct.pack("<H", 0x0001))

    def build_error_led_off(self) -> bytes:
        return self._build_frame(MCCommand.ERROR_LED_OFF, 0x0000, 0x06)

    # ========================================================================
    # Responses
    # ========================================================================

    def expected_length(self, buffer: bytes) -> Optional[int]:
        """
        Total frame size announced by a (partial) response.

        Returns:
            Expected size in bytes, or None while the length field has not
            been received yet
        """
        position = self.frame.data_length_position
        if len(buffer) < position + 2:
            return None
        (declared,) = struct.unpack_from("<H", buffer, position)
        return declared + self.frame.error_code_position

    def parse_response(self, buffer: bytes) -> bytes:
        """
        Validate a response frame and return its payload.

        Args:
            buffer: Complete response frame

        Returns:
            Bytes from the return value position to the end of the frame

        Raises:
            ResponseTooShortError: frame not longer than the minimum length
            ResponseHeaderCorruptError: unexpected first byte
            ControllerError: nonzero end code
            ResponseLengthCorruptError: declared length disagrees with the frame size
        """
        frame = self.frame
        if len(buffer) <= frame.min_response_length:
            raise ResponseTooShortError(f"PLC returned buffer is too small: {len(buffer)}")
        if buffer[0] != frame.response_header:
            raise ResponseHeaderCorruptError(
                f"Response header PLC is corrupt: {frame.response_header:02X} <> {buffer[0]:02X}"
            )
        (error_code,) = struct.unpack_from("<H", buffer, frame.error_code_position)
        check_error(error_code)
        (declared,) = struct.unpack_from("<H", buffer, frame.data_length_position)
        if declared + frame.error_code_position != len(buffer):
            raise ResponseLengthCorruptError(
                f"PLC returned buffer is corrupt: declared {declared}, received {len(buffer)}"
            )
        payload = bytes(buffer[frame.return_value_position :])
        logger.debug(f"Response payload: {len(payload)} bytes")
        return payload

    @staticmethod
    def decode_cpu_model(payload: bytes) -> str:
        """Extract the CPU model name; the trailing 2 bytes hold the model code."""
        return payload[:-2].decode("utf-8", errors="replace").rstrip(" \x00")

    @staticmethod
    def decode_random_bits(words: List[Number]) -> List[bool]:
        """Random bit reads are word reads; bit 0 of each word is the point itself."""
        return [(int(word) & 1) == 1 for word in words]
