import struct
from collections import defaultdict
from typing import Dict, List, Optional, Tuple

import pytest

from melsec.client import Client
from melsec.connection import Channel
from melsec.error import MelsecConnectionError
from melsec.frame import FrameParameters, FRAME_3E

CPU_MODEL = b"Q03UDVCPU       " + b"\x66\x02"


class SimulatedController:
    """In-memory controller answering binary MC protocol requests.

    Requests whose declared length does not match their size are answered
    with end code 0xC061, like a real controller does.
    """

    def __init__(self, frame: FrameParameters = FRAME_3E):
        self.frame = frame
        self.words: Dict[Tuple[int, int], int] = defaultdict(int)
        self.bits: Dict[Tuple[int, int], bool] = defaultdict(bool)
        self.buffer = bytearray(0x10000)
        self.module_buffers: Dict[int, bytearray] = defaultdict(lambda: bytearray(0x10000))
        self.requests: List[bytes] = []
        self.commands: List[Tuple[int, bytes]] = []
        self.end_code = 0
        self.fail: Optional[Exception] = None
        self.opens = 0
        self.closes = 0

    def handle(self, request: bytes) -> bytes:
        self.requests.append(request)
        prefix = len(self.frame.header_prefix)
        station = request[prefix:prefix + 5]
        (declared,) = struct.unpack_from("<H", request, prefix + 5)
        command, subcommand = struct.unpack_from("<HH", request, prefix + 9)
        fields = request[prefix + 13:]
        if declared != len(request) - prefix - 7:
            return self._response(request, station, 0xC061)
        if self.end_code:
            return self._response(request, station, self.end_code)
        handler = getattr(self, f"_cmd_{command:04x}_{subcommand:04x}", None)
        if handler is None:
            return self._response(request, station, 0xC059)
        return self._response(request, station, 0, handler(fields))

    def _response(self, request: bytes, station: bytes, end_code: int, data: bytes = b"") -> bytes:
        header = bytes([self.frame.response_header]) + request[1:len(self.frame.header_prefix)] + station
        return header + struct.pack("<HH", 2 + len(data), end_code) + data

    @staticmethod
    def _point(fields: bytes, offset: int) -> Tuple[int, int]:
        point = int.from_bytes(fields[offset:offset + 3], "little")
        return point, fields[offset + 3]

    def _cmd_0401_0000(self, fields: bytes) -> bytes:
        point, device = self._point(fields, 0)
        (count,) = struct.unpack_from("<H", fields, 4)
        return b"".join(struct.pack("<H", self.words[device, point + i]) for i in range(count))

    def _cmd_1401_0000(self, fields: bytes) -> bytes:
        point, device = self._point(fields, 0)
        (count,) = struct.unpack_from("<H", fields, 4)
        for i, value in enumerate(struct.unpack_from(f"<{count}H", fields, 6)):
            self.words[device, point + i] = value
        return b""

    def _cmd_0401_0001(self, fields: bytes) -> bytes:
        point, device = self._point(fields, 0)
        (count,) = struct.unpack_from("<H", fields, 4)
        states = [self.bits[device, point + i] for i in range(count)]
        if count & 1:
            states.append(False)
        return bytes((0x10 if high else 0) | (0x01 if low else 0) for high, low in zip(states[0::2], states[1::2]))

    def _cmd_1401_0001(self, fields: bytes) -> bytes:
        point, device = self._point(fields, 0)
        (count,) = struct.unpack_from("<H", fields, 4)
        for i in range(count):
            value = fields[6 + i // 2]
            self.bits[device, point + i] = bool(value & 0x10) if i % 2 == 0 else bool(value & 0x01)
        return b""

    def _cmd_0403_0000(self, fields: bytes) -> bytes:
        word_count, dword_count = fields[0], fields[1]
        data = bytearray()
        for i in range(word_count):
            point, device = self._point(fields, 2 + i * 4)
            data += struct.pack("<H", self.words[device, point])
        for i in range(dword_count):
            point, device = self._point(fields, 2 + (word_count + i) * 4)
            data += struct.pack("<HH", self.words[device, point], self.words[device, point + 1])
        return bytes(data)

    def _cmd_1402_0000(self, fields: bytes) -> bytes:
        word_count, dword_count = fields[0], fields[1]
        offset = 2
        for _ in range(word_count):
            point, device = self._point(fields, offset)
            (self.words[device, point],) = struct.unpack_from("<H", fields, offset + 4)
            offset += 6
        for _ in range(dword_count):
            point, device = self._point(fields, offset)
            low, high = struct.unpack_from("<HH", fields, offset + 4)
            self.words[device, point] = low
            self.words[device, point + 1] = high
            offset += 8
        return b""

    def _cmd_1402_0001(self, fields: bytes) -> bytes:
        for i in range(fields[0]):
            point, device = self._point(fields, 1 + i * 5)
            self.bits[device, point] = fields[1 + i * 5 + 4] == 0x01
        return b""

    def _cmd_0613_0000(self, fields: bytes) -> bytes:
        address, words = struct.unpack_from("<IH", fields, 0)
        return bytes(self.buffer[address:address + words * 2])

    def _cmd_1613_0000(self, fields: bytes) -> bytes:
        address, words = struct.unpack_from("<IH", fields, 0)
        self.buffer[address:address + words * 2] = fields[6:6 + words * 2]
        return b""

    def _cmd_0601_0000(self, fields: bytes) -> bytes:
        address, size, module = struct.unpack_from("<IHH", fields, 0)
        return bytes(self.module_buffers[module][address:address + size])

    def _cmd_1601_0000(self, fields: bytes) -> bytes:
        address, size, module = struct.unpack_from("<IHH", fields, 0)
        self.module_buffers[module][address:address + size] = fields[8:8 + size]
        return b""

    def _cmd_0101_0000(self, fields: bytes) -> bytes:
        return CPU_MODEL

    def _control(self, command: int, fields: bytes) -> bytes:
        self.commands.append((command, bytes(fields)))
        return b""

    def _cmd_1001_0000(self, fields: bytes) -> bytes:
        return self._control(0x1001, fields)

    def _cmd_1002_0000(self, fields: bytes) -> bytes:
        return self._control(0x1002, fields)

    def _cmd_1003_0000(self, fields: bytes) -> bytes:
        return self._control(0x1003, fields)

    def _cmd_1005_0000(self, fields: bytes) -> bytes:
        return self._control(0x1005, fields)

    def _cmd_1006_0000(self, fields: bytes) -> bytes:
        return self._control(0x1006, fields)

    def _cmd_1617_0000(self, fields: bytes) -> bytes:
        return self._control(0x1617, fields)


class SimulatedChannel(Channel):
    """Channel delivering frames straight to a :class:`SimulatedController`."""

    def __init__(self, controller: SimulatedController, host: str, port: int, send_timeout: float = 2.0,
                 receive_timeout: float = 2.0):
        super().__init__(host, port, send_timeout, receive_timeout)
        self.controller = controller
        self.opened = False

    @property
    def is_open(self) -> bool:
        return self.opened

    def open(self) -> None:
        if not self.opened:
            self.opened = True
            self.controller.opens += 1

    def close(self) -> None:
        if self.opened:
            self.opened = False
            self.controller.closes += 1

    def execute(self, request: bytes) -> bytes:
        self.open()
        if self.controller.fail is not None:
            raise MelsecConnectionError(f"Communication failed: {self.controller.fail}")
        return self.controller.handle(request)


class ChannelFactory:
    """Channel factory recording the settings of every channel it creates."""

    def __init__(self, controller: SimulatedController):
        self.controller = controller
        self.created: List[dict] = []

    def __call__(self, host, port, use_tcp, send_timeout, receive_timeout, frame_size=None) -> Channel:
        self.created.append(
            {"host": host, "port": port, "use_tcp": use_tcp,
             "send_timeout": send_timeout, "receive_timeout": receive_timeout}
        )
        return SimulatedChannel(self.controller, host, port, send_timeout, receive_timeout)


@pytest.fixture
def controller():
    return SimulatedController()


@pytest.fixture
def factory(controller):
    return ChannelFactory(controller)


@pytest.fixture
def client(factory):
    client = Client("192.168.1.10", 5000, channel_factory=factory)
    yield client
    client.destroy()
