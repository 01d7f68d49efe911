"""
MC protocol client.

Reads and writes controller device memory and issues remote control commands
over a TCP or UDP channel.
"""

import re
import logging
from typing import Any, Callable, List, Optional, Sequence

from .connection import Channel, create_channel
from .datatypes import Number, unpack_bits, unpack_values
from .error import (
    ClientDestroyedError,
    ControllerError,
    EmptyInputError,
    InvalidConfigurationError,
    MelsecConnectionError,
    OutOfRangeError,
    NO_DATA_READ,
)
from .frame import FrameParameters, FRAME_3E
from .protocol import MCProtocol
from .type import ClearMode, DeviceType, ElementWidth

logger = logging.getLogger(__name__)

# regexp for checking if an ipv4 address is valid.
ipv4 = r"^(([0-9]|[1-9][0-9]|1[0-9]{2}|2[0-4][0-9]|25[0-5])\.){3}([0-9]|[1-9][0-9]|1[0-9]{2}|2[0-4][0-9]|25[0-5])$"

ChannelFactory = Callable[..., Channel]


def _check_byte(name: str, value: int) -> int:
    if not 0 <= value <= 0xFF:
        raise OutOfRangeError(f"{name} must fit in one byte, got {value}")
    return value


class Client:
    """
    MC protocol client for MELSEC controllers.

    The channel is opened on the first request. It is closed again after every
    request unless ``keep_connection`` is set, and always after a transport
    failure. One request is in flight at a time; share a client between
    threads only with external locking.

    Examples:
        >>> from melsec import Client, DeviceType
        >>> client = Client("192.168.1.10", 5000, use_tcp=True)
        >>> client.write_words(100, [1, 2, 3], DeviceType.D)
        >>> client.read_words(100, DeviceType.D, 3)
        [1, 2, 3]
        >>> client.destroy()
    """

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 5000,
        frame: FrameParameters = FRAME_3E,
        use_tcp: bool = False,
        keep_connection: bool = False,
        send_timeout: float = 2.0,
        receive_timeout: float = 2.0,
        channel_factory: ChannelFactory = create_channel,
    ):
        """
        Initialize MC protocol client.

        Args:
            host: Controller IP address
            port: Controller port number
            frame: Frame variant parameters
            use_tcp: Use TCP instead of UDP
            keep_connection: Keep the channel open between requests
            send_timeout: Send timeout in seconds
            receive_timeout: Receive timeout in seconds
            channel_factory: Callable creating an unopened channel
        """
        self._host = self._check_host(host)
        self._port = self._check_port(port)
        self._use_tcp = use_tcp
        self._send_timeout = send_timeout
        self._receive_timeout = receive_timeout
        self.keep_connection = keep_connection
        self.protocol = MCProtocol(frame)
        self.channel: Optional[Channel] = None
        self._channel_factory = channel_factory
        self._destroyed = False
        self.last_error = 0

        logger.info(f"Client initialized for {self}")

    # ========================================================================
    # Configuration
    # ========================================================================

    @staticmethod
    def _check_host(host: str) -> str:
        if not re.match(ipv4, host):
            raise InvalidConfigurationError(f"{host} is invalid ipv4")
        return host

    @staticmethod
    def _check_port(port: int) -> int:
        if not 0 < port <= 0xFFFF:
            raise InvalidConfigurationError("Port number must be greater than zero and below 65536")
        return port

    @property
    def frame(self) -> FrameParameters:
        return self.protocol.frame

    @property
    def host(self) -> str:
        return self._host

    @host.setter
    def host(self, value: str) -> None:
        self.close()
        self._host = self._check_host(value)

    @property
    def port(self) -> int:
        return self._port

    @port.setter
    def port(self, value: int) -> None:
        self.close()
        self._port = self._check_port(value)

    @property
    def use_tcp(self) -> bool:
        return self._use_tcp

    @use_tcp.setter
    def use_tcp(self, value: bool) -> None:
        self._use_tcp = value
        self.close()

    @property
    def send_timeout(self) -> float:
        return self._send_timeout

    @send_timeout.setter
    def send_timeout(self, value: float) -> None:
        self.close()
        self._send_timeout = value

    @property
    def receive_timeout(self) -> float:
        return self._receive_timeout

    @receive_timeout.setter
    def receive_timeout(self, value: float) -> None:
        self.close()
        self._receive_timeout = value

    @property
    def network_no(self) -> int:
        return self.protocol.network_no

    @network_no.setter
    def network_no(self, value: int) -> None:
        self.protocol.network_no = _check_byte("Network number", value)

    @property
    def pc_no(self) -> int:
        return self.protocol.pc_no

    @pc_no.setter
    def pc_no(self, value: int) -> None:
        self.protocol.pc_no = _check_byte("PC number", value)

    @property
    def destination_cpu(self) -> int:
        return self.protocol.destination_cpu

    @destination_cpu.setter
    def destination_cpu(self, value: int) -> None:
        self.protocol.destination_cpu = _check_byte("Destination CPU", value)

    # ========================================================================
    # Channel lifecycle
    # ========================================================================

    def _get_channel(self) -> Channel:
        if self._destroyed:
            raise ClientDestroyedError("Client has been destroyed")
        if self.channel is None:
            self.channel = self._channel_factory(
                host=self._host,
                port=self._port,
                use_tcp=self._use_tcp,
                send_timeout=self._send_timeout,
                receive_timeout=self._receive_timeout,
                frame_size=self.protocol.expected_length,
            )
        return self.channel

    def _send(self, request: bytes) -> bytes:
        """Exchange one request and return the validated response payload."""
        channel = self._get_channel()
        try:
            response = channel.execute(request)
        except MelsecConnectionError:
            self.close()
            raise
        finally:
            if not self.keep_connection:
                self.close()
        try:
            payload = self.protocol.parse_response(response)
        except ControllerError as e:
            self.last_error = e.error_code or 0
            raise
        self.last_error = 0
        return payload

    def close(self) -> None:
        """Close the channel, if open. The next request opens a new one."""
        if self.channel is not None:
            channel, self.channel = self.channel, None
            channel.close()

    def disconnect(self) -> None:
        self.close()

    def get_connected(self) -> bool:
        """Check if a channel is currently open."""
        return self.channel is not None and self.channel.is_open

    def destroy(self) -> None:
        """Close the channel and refuse any further requests. Safe to call twice."""
        if not self._destroyed:
            self.close()
            self._destroyed = True
            logger.info(f"Client {self} destroyed")

    def __enter__(self) -> "Client":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.destroy()

    def __str__(self) -> str:
        return (
            f"{self._host}:{self._port} "
            f"0x{self.network_no:02X}:0x{self.pc_no:02X}:0x{int(self.destination_cpu):02X}"
        )

    # ========================================================================
    # Generic device access
    # ========================================================================

    def batch_read(
        self, point: int, device: DeviceType, count: int, width: ElementWidth = ElementWidth.WORD
    ) -> List[Number]:
        """
        Read consecutive elements from device memory.

        Args:
            point: First device point
            device: Device type
            count: Number of elements
            width: WORD, DWORD or FLOAT

        Returns:
            Values read
        """
        logger.debug(f"batch_read: {device.name}{point}, count={count}, width={width.name}")
        payload = self._send(self.protocol.build_batch_read_words(point, device, count, width))
        return unpack_values(payload, width)

    def batch_write(
        self, point: int, values: Sequence[Number], device: DeviceType, width: ElementWidth = ElementWidth.WORD
    ) -> None:
        """
        Write consecutive elements to device memory.

        Args:
            point: First device point
            values: Values to write
            device: Device type
            width: WORD, DWORD or FLOAT
        """
        logger.debug(f"batch_write: {device.name}{point}, count={len(values)}, width={width.name}")
        self._send(self.protocol.build_batch_write_words(point, values, device, width))

    def random_read(
        self, points: Sequence[int], device: DeviceType, width: ElementWidth = ElementWidth.WORD
    ) -> List[Number]:
        """Read one element from each of the given device points."""
        logger.debug(f"random_read: {device.name}{list(points)}, width={width.name}")
        payload = self._send(self.protocol.build_random_read_words(points, device, width))
        return unpack_values(payload, width)

    def random_write(
        self,
        points: Sequence[int],
        values: Sequence[Number],
        device: DeviceType,
        width: ElementWidth = ElementWidth.WORD,
    ) -> None:
        """Write one element to each of the given device points."""
        logger.debug(f"random_write: {device.name}{list(points)}, width={width.name}")
        self._send(self.protocol.build_random_write_words(points, values, device, width))

    def read_buffer(self, address: int, count: int, width: ElementWidth = ElementWidth.WORD) -> List[Number]:
        """Read elements from buffer memory at an absolute address."""
        payload = self._send(self.protocol.build_read_buffer(address, count, width))
        return unpack_values(payload, width)

    def write_buffer(self, address: int, values: Sequence[Number], width: ElementWidth = ElementWidth.WORD) -> None:
        """Write elements to buffer memory at an absolute address."""
        self._send(self.protocol.build_write_buffer(address, values, width))

    def read_module_buffer(
        self, module: int, head_address: int, address: int, count: int, width: ElementWidth = ElementWidth.WORD
    ) -> List[Number]:
        """
        Read elements from the buffer memory of an intelligent function module.

        Args:
            module: Module number
            head_address: Start address of the buffer memory area
            address: Word offset from ``head_address``
            count: Number of elements
            width: BYTE, WORD, DWORD or FLOAT

        Returns:
            Values read
        """
        payload = self._send(self.protocol.build_read_module_buffer(module, head_address, address, count, width))
        return unpack_values(payload, width)

    def write_module_buffer(
        self,
        module: int,
        head_address: int,
        address: int,
        values: Sequence[Number],
        width: ElementWidth = ElementWidth.WORD,
    ) -> None:
        """Write elements to the buffer memory of an intelligent function module."""
        self._send(self.protocol.build_write_module_buffer(module, head_address, address, values, width))

    # ========================================================================
    # Typed device access
    # ========================================================================

    def read_word(self, point: int, device: DeviceType) -> int:
        return int(self.read_words(point, device, 1)[0])

    def read_words(self, point: int, device: DeviceType, count: int) -> List[int]:
        return [int(v) for v in self.batch_read(point, device, count, ElementWidth.WORD)]

    def read_words_random(self, points: Sequence[int], device: DeviceType) -> List[int]:
        return [int(v) for v in self.random_read(points, device, ElementWidth.WORD)]

    def write_word(self, point: int, value: int, device: DeviceType) -> None:
        self.write_words(point, [value], device)

    def write_words(self, point: int, values: Sequence[int], device: DeviceType) -> None:
        self.batch_write(point, values, device, ElementWidth.WORD)

    def write_words_random(self, points: Sequence[int], values: Sequence[int], device: DeviceType) -> None:
        self.random_write(points, values, device, ElementWidth.WORD)

    def read_dword(self, point: int, device: DeviceType) -> int:
        return int(self.read_dwords(point, device, 1)[0])

    def read_dwords(self, point: int, device: DeviceType, count: int) -> List[int]:
        return [int(v) for v in self.batch_read(point, device, count, ElementWidth.DWORD)]

    def read_dwords_random(self, points: Sequence[int], device: DeviceType) -> List[int]:
        return [int(v) for v in self.random_read(points, device, ElementWidth.DWORD)]

    def write_dword(self, point: int, value: int, device: DeviceType) -> None:
        self.write_dwords(point, [value], device)

    def write_dwords(self, point: int, values: Sequence[int], device: DeviceType) -> None:
        self.batch_write(point, values, device, ElementWidth.DWORD)

    def write_dwords_random(self, points: Sequence[int], values: Sequence[int], device: DeviceType) -> None:
        self.random_write(points, values, device, ElementWidth.DWORD)

    def read_real(self, point: int, device: DeviceType) -> float:
        return float(self.read_reals(point, device, 1)[0])

    def read_reals(self, point: int, device: DeviceType, count: int) -> List[float]:
        return [float(v) for v in self.batch_read(point, device, count, ElementWidth.FLOAT)]

    def read_reals_random(self, points: Sequence[int], device: DeviceType) -> List[float]:
        return [float(v) for v in self.random_read(points, device, ElementWidth.FLOAT)]

    def write_real(self, point: int, value: float, device: DeviceType) -> None:
        self.write_reals(point, [value], device)

    def write_reals(self, point: int, values: Sequence[float], device: DeviceType) -> None:
        self.batch_write(point, values, device, ElementWidth.FLOAT)

    def write_reals_random(self, points: Sequence[int], values: Sequence[float], device: DeviceType) -> None:
        self.random_write(points, values, device, ElementWidth.FLOAT)

    # ========================================================================
    # Bit access
    # ========================================================================

    def read_bit(self, point: int, device: DeviceType) -> bool:
        return self.read_bits(point, device, 1)[0]

    def read_bits(self, point: int, device: DeviceType, count: int) -> List[bool]:
        """Read consecutive bit points."""
        payload = self._send(self.protocol.build_batch_read_bits(point, device, count))
        return unpack_bits(payload, count)

    def read_bits_random(self, points: Sequence[int], device: DeviceType) -> List[bool]:
        """Read scattered bit points through a random word read."""
        if len(points) == 0:
            raise EmptyInputError(NO_DATA_READ)
        return self.protocol.decode_random_bits(self.random_read(points, device, ElementWidth.WORD))

    def write_bit(self, point: int, state: bool, device: DeviceType) -> None:
        self._send(self.protocol.build_write_bit(point, device, state))

    def write_bits(self, point: int, states: Sequence[bool], device: DeviceType) -> None:
        """Write consecutive bit points. More than one state requires an even count."""
        self._send(self.protocol.build_batch_write_bits(point, device, states))

    def write_bits_random(self, points: Sequence[int], states: Sequence[bool], device: DeviceType) -> None:
        """Write one state to each of the given bit points."""
        self._send(self.protocol.build_random_write_bits(points, states, device))

    # ========================================================================
    # CPU control
    # ========================================================================

    def read_cpu_model_name(self) -> str:
        """Read the CPU model name, e.g. ``Q03UDVCPU``."""
        payload = self._send(self.protocol.build_read_cpu_model())
        return self.protocol.decode_cpu_model(payload)

    def run(self, forced: bool = False, clear_mode: ClearMode = ClearMode.NO_CLEAR) -> None:
        """
        Remote RUN.

        Args:
            forced: Execute even if another device holds the remote STOP/PAUSE
            clear_mode: Device memory clear mode
        """
        logger.info(f"Remote RUN {self} forced={forced} clear_mode={clear_mode.name}")
        self._send(self.protocol.build_run(forced, clear_mode))

    def pause(self, forced: bool = False) -> None:
        logger.info(f"Remote PAUSE {self} forced={forced}")
        self._send(self.protocol.build_pause(forced))

    def stop(self) -> None:
        logger.info(f"Remote STOP {self}")
        self._send(self.protocol.build_stop())

    def reset(self) -> None:
        """
        Remote RESET.

        The controller drops the connection while resetting, so a transport
        failure after the request has been sent is logged and ignored.
        Connection failures before sending and error replies are raised.
        """
        logger.info(f"Remote RESET {self}")
        request = self.protocol.build_reset()
        channel = self._get_channel()
        try:
            channel.open()
        except MelsecConnectionError:
            self.close()
            raise
        try:
            self._send(request)
        except MelsecConnectionError as e:
            logger.warning(f"Ignoring transport failure after remote RESET: {e}")

    def latch_clear(self) -> None:
        logger.info(f"Remote latch clear {self}")
        self._send(self.protocol.build_latch_clear())

    def clear_error_led(self) -> None:
        """Turn off the COM.ERR LED of the Ethernet module."""
        self._send(self.protocol.build_error_led_off())
