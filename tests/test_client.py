"""
Tests for the MC protocol client against a simulated controller.
"""

import pytest

from melsec.client import Client
from melsec.error import (
    ClientDestroyedError,
    ControllerError,
    EmptyInputError,
    InvalidConfigurationError,
    MelsecConnectionError,
    MelsecError,
    OddSizeArrayError,
    OutOfRangeError,
    SizeMismatchError,
    UnsupportedElementWidthError,
)
from melsec.frame import frame_4e
from melsec.type import ClearMode, DestinationCpu, DeviceType, ElementWidth

from .conftest import ChannelFactory, SimulatedController


class TestWords:
    @pytest.mark.parametrize("width", [ElementWidth.WORD, ElementWidth.DWORD])
    @pytest.mark.parametrize("size", ["one", "ten", "max"])
    def test_round_trip(self, client, width, size):
        # "max" is the largest array whose write request still fits the 2 byte length field
        count = {"one": 1, "ten": 10, "max": (0xFFFF - 12) // width.size}[size]
        mask = (1 << (8 * width.size)) - 1
        values = [(i * 7919) & mask for i in range(count)]
        client.batch_write(100, values, DeviceType.D, width)
        assert client.batch_read(100, DeviceType.D, count, width) == values

    def test_words(self, client, controller):
        client.write_words(10, [1, 2, 0xFFFF], DeviceType.W)
        assert controller.words[DeviceType.W, 12] == 0xFFFF
        assert client.read_words(10, DeviceType.W, 3) == [1, 2, 0xFFFF]
        assert client.read_word(11, DeviceType.W) == 2

    def test_single_word(self, client):
        client.write_word(5, 0x1234, DeviceType.D)
        assert client.read_word(5, DeviceType.D) == 0x1234

    def test_dwords(self, client, controller):
        client.write_dword(0, 0x12345678, DeviceType.D)
        assert controller.words[DeviceType.D, 0] == 0x5678
        assert controller.words[DeviceType.D, 1] == 0x1234
        assert client.read_dword(0, DeviceType.D) == 0x12345678
        client.write_dwords(10, [1, 2], DeviceType.D)
        assert client.read_dwords(10, DeviceType.D, 2) == [1, 2]

    def test_reals(self, client):
        client.write_reals(200, [1.5, -2.25], DeviceType.D)
        assert client.read_reals(200, DeviceType.D, 2) == [1.5, -2.25]
        client.write_real(300, 0.5, DeviceType.D)
        assert client.read_real(300, DeviceType.D) == 0.5

    def test_random_words(self, client):
        client.write_words_random([100, 200, 300], [1, 2, 3], DeviceType.D)
        assert client.read_words_random([300, 100], DeviceType.D) == [3, 1]

    def test_random_dwords(self, client, controller):
        client.write_dwords_random([100, 200, 300], [0x10001, 0x20002, 0x30003], DeviceType.D)
        assert controller.words[DeviceType.D, 201] == 2
        assert client.read_dwords_random([100, 200, 300], DeviceType.D) == [0x10001, 0x20002, 0x30003]
        request = controller.requests[-1]
        assert request[15:17] == b"\x00\x03"

    def test_random_reals(self, client):
        client.write_reals_random([0, 10], [3.5, 4.25], DeviceType.D)
        assert client.read_reals_random([10, 0], DeviceType.D) == [4.25, 3.5]

    def test_validation_happens_before_sending(self, client, controller):
        with pytest.raises(UnsupportedElementWidthError):
            client.batch_read(0, DeviceType.D, 1, ElementWidth.BYTE)
        with pytest.raises(EmptyInputError):
            client.write_words(0, [], DeviceType.D)
        with pytest.raises(SizeMismatchError):
            client.write_words_random([1, 2], [1], DeviceType.D)
        assert controller.requests == []


    def test_empty_reads(self, client, controller):
        with pytest.raises(EmptyInputError):
            client.read_buffer(0x100, 0)
        with pytest.raises(EmptyInputError):
            client.read_module_buffer(3, 0x10, 0, 0)
        with pytest.raises(EmptyInputError):
            client.read_bits(0, DeviceType.M, 0)
        assert controller.requests == []

    def test_out_of_range_arguments(self, client, controller):
        with pytest.raises(OutOfRangeError):
            client.read_word(0x1000000, DeviceType.D)
        with pytest.raises(MelsecError):
            client.write_words(0, [0] * (0xFFFF // 2), DeviceType.D)
        with pytest.raises(ValueError):
            client.write_dwords_random(list(range(256)), [0] * 256, DeviceType.D)
        assert controller.requests == []

class TestBuffers:
    def test_buffer(self, client, controller):
        client.write_buffer(0x100, [0x1111, 0x2222])
        assert controller.buffer[0x100:0x104] == b"\x11\x11\x22\x22"
        assert client.read_buffer(0x100, 2) == [0x1111, 0x2222]
        assert client.read_buffer(0x100, 1, ElementWidth.DWORD) == [0x22221111]

    def test_module_buffer(self, client, controller):
        client.write_module_buffer(3, 0x10, 2, [1, 2, 3], ElementWidth.BYTE)
        assert controller.module_buffers[3][0x14:0x17] == b"\x01\x02\x03"
        assert client.read_module_buffer(3, 0x10, 2, 3, ElementWidth.BYTE) == [1, 2, 3]
        assert client.read_module_buffer(3, 0x10, 2, 1, ElementWidth.WORD) == [0x0201]


class TestBits:
    def test_single_bit(self, client, controller):
        client.write_bit(7, True, DeviceType.M)
        assert controller.bits[DeviceType.M, 7]
        assert client.read_bit(7, DeviceType.M) is True
        assert client.read_bit(8, DeviceType.M) is False

    def test_bit_array(self, client):
        states = [True, True, False, False, True, False]
        client.write_bits(0, states, DeviceType.Y)
        assert client.read_bits(0, DeviceType.Y, 6) == states
        assert client.read_bits(0, DeviceType.Y, 5) == states[:5]

    def test_bit_array_packing(self, client, controller):
        client.write_bits(0, [True, True, False, False], DeviceType.Y)
        assert controller.requests[-1][-2:] == b"\x11\x00"

    def test_odd_bit_array(self, client, controller):
        with pytest.raises(OddSizeArrayError):
            client.write_bits(0, [True, False, True], DeviceType.Y)
        assert controller.requests == []

    def test_random_bits(self, client, controller):
        client.write_bits_random([1, 5, 9], [True, False, True], DeviceType.M)
        assert controller.bits[DeviceType.M, 9]
        assert not controller.bits[DeviceType.M, 5]

    def test_read_bits_random(self, client, controller):
        controller.words[DeviceType.X, 0x10] = 0x0001
        controller.words[DeviceType.X, 0x20] = 0xFFFE
        assert client.read_bits_random([0x10, 0x20], DeviceType.X) == [True, False]
        with pytest.raises(EmptyInputError):
            client.read_bits_random([], DeviceType.X)


class TestControl:
    def test_cpu_model(self, client):
        assert client.read_cpu_model_name() == "Q03UDVCPU"

    def test_commands(self, client, controller):
        client.run(forced=True, clear_mode=ClearMode.CLEAR_OUTSIDE_LATCH)
        client.pause()
        client.stop()
        client.latch_clear()
        client.clear_error_led()
        client.reset()
        assert controller.commands == [
            (0x1001, b"\x03\x00\x01\x00"),
            (0x1003, b"\x01\x00"),
            (0x1002, b"\x01\x00"),
            (0x1005, b"\x01\x00"),
            (0x1617, b""),
            (0x1006, b"\x01\x00"),
        ]

    def test_reset_swallows_transport_failure(self, client, controller):
        controller.fail = ConnectionResetError("reset by peer")
        client.reset()
        assert not client.get_connected()

    def test_reset_raises_controller_error(self, client, controller):
        controller.end_code = 0xC201
        with pytest.raises(ControllerError):
            client.reset()
        assert client.last_error == 0xC201

    def test_stop_propagates_transport_failure(self, client, controller):
        controller.fail = ConnectionResetError("reset by peer")
        with pytest.raises(MelsecConnectionError):
            client.stop()

    def test_controller_error(self, client, controller):
        controller.end_code = 0xC05B
        with pytest.raises(ControllerError) as excinfo:
            client.read_words(0, DeviceType.D, 1)
        assert excinfo.value.error_code == 0xC05B
        assert client.last_error == 0xC05B
        controller.end_code = 0
        client.read_words(0, DeviceType.D, 1)
        assert client.last_error == 0


class TestConfiguration:
    def test_defaults(self, factory):
        client = Client(channel_factory=factory)
        assert client.host == "127.0.0.1"
        assert client.port == 5000
        assert not client.use_tcp
        assert str(client) == "127.0.0.1:5000 0x00:0xFF:0xFF"

    def test_invalid_host(self):
        with pytest.raises(InvalidConfigurationError):
            Client("not an ip")
        client = Client()
        with pytest.raises(InvalidConfigurationError):
            client.host = "300.1.1.1"

    def test_invalid_port(self):
        with pytest.raises(InvalidConfigurationError):
            Client(port=0)
        client = Client()
        with pytest.raises(InvalidConfigurationError):
            client.port = 70000

    def test_station_bytes(self, client, controller):
        client.network_no = 2
        client.pc_no = 3
        client.destination_cpu = DestinationCpu.CPU1
        client.stop()
        assert controller.requests[-1][2:5] == b"\x02\x03\xe0"
        assert str(client) == "192.168.1.10:5000 0x02:0x03:0xE0"
        with pytest.raises(OutOfRangeError):
            client.pc_no = 0x100

    def test_channel_closed_after_each_call(self, client, controller):
        client.read_words(0, DeviceType.D, 1)
        client.read_words(0, DeviceType.D, 1)
        assert controller.opens == 2
        assert controller.closes == 2
        assert not client.get_connected()

    def test_keep_connection(self, client, controller, factory):
        client.keep_connection = True
        client.read_words(0, DeviceType.D, 1)
        client.read_words(0, DeviceType.D, 1)
        assert controller.opens == 1
        assert len(factory.created) == 1
        assert client.get_connected()

    @pytest.mark.parametrize(
        "setting, value",
        [
            ("host", "10.0.0.1"),
            ("port", 5001),
            ("use_tcp", True),
            ("send_timeout", 5.0),
            ("receive_timeout", 5.0),
        ],
    )
    def test_reconfigure_closes_channel(self, client, controller, factory, setting, value):
        client.keep_connection = True
        client.read_words(0, DeviceType.D, 1)
        setattr(client, setting, value)
        assert controller.closes == 1
        assert not client.get_connected()
        client.read_words(0, DeviceType.D, 1)
        assert controller.opens == 2
        assert factory.created[-1][setting] == value

    def test_station_change_keeps_channel(self, client, controller):
        client.keep_connection = True
        client.read_words(0, DeviceType.D, 1)
        client.network_no = 1
        assert client.get_connected()
        assert controller.closes == 0

    def test_transport_failure_closes_kept_channel(self, client, controller):
        client.keep_connection = True
        controller.fail = OSError("broken pipe")
        with pytest.raises(MelsecConnectionError):
            client.read_words(0, DeviceType.D, 1)
        assert not client.get_connected()

    def test_destroy(self, client, controller):
        client.keep_connection = True
        client.read_words(0, DeviceType.D, 1)
        client.destroy()
        client.destroy()
        assert controller.closes == 1
        with pytest.raises(ClientDestroyedError):
            client.read_words(0, DeviceType.D, 1)
        with pytest.raises(ClientDestroyedError):
            client.reset()

    def test_context_manager(self, factory):
        with Client(channel_factory=factory) as client:
            client.stop()
        with pytest.raises(ClientDestroyedError):
            client.stop()

    def test_4e_frame(self):
        controller = SimulatedController(frame_4e(0x55))
        client = Client(frame=frame_4e(0x55), channel_factory=ChannelFactory(controller))
        client.write_words(0, [9, 8], DeviceType.D)
        assert client.read_words(0, DeviceType.D, 2) == [9, 8]
        assert controller.requests[0][:4] == b"\x54\x00\x55\x00"
