"""
Python equivalent for MELSEC specific types.
"""

from enum import Enum, IntEnum


class DeviceType(IntEnum):
    """Binary device codes of the Q/L series device memory."""

    SM = 0x91  # special relay
    SD = 0xA9  # special register
    X = 0x9C  # input
    Y = 0x9D  # output
    M = 0x90  # internal relay
    L = 0x92  # latch relay
    F = 0x93  # annunciator
    V = 0x94  # edge relay
    B = 0xA0  # link relay
    D = 0xA8  # data register
    W = 0xB4  # link register
    TS = 0xC1  # timer contact
    TC = 0xC0  # timer coil
    TN = 0xC2  # timer current value
    SS = 0xC7  # retentive timer contact
    SC = 0xC6  # retentive timer coil
    SN = 0xC8  # retentive timer current value
    CS = 0xC4  # counter contact
    CC = 0xC3  # counter coil
    CN = 0xC5  # counter current value
    SB = 0xA1  # link special relay
    SW = 0xB5  # link special register
    S = 0x98  # step relay
    DX = 0xA2  # direct input
    DY = 0xA3  # direct output
    Z = 0xCC  # index register
    R = 0xAF  # file register (block switching)
    ZR = 0xB0  # file register (serial number)


class DestinationCpu(IntEnum):
    """Low byte of the request destination module I/O number."""

    LOCAL_STATION = 0xFF
    CONTROL_CPU = 0xD0
    STANDBY_CPU = 0xD1
    SYSTEM_A_CPU = 0xD2
    SYSTEM_B_CPU = 0xD3
    CPU1 = 0xE0
    CPU2 = 0xE1
    CPU3 = 0xE2
    CPU4 = 0xE3


class ClearMode(IntEnum):
    """Device memory clear mode of the remote RUN command."""

    NO_CLEAR = 0x00
    CLEAR_OUTSIDE_LATCH = 0x01
    CLEAR_ALL = 0x02


class ElementWidth(Enum):
    """Element width class used to encode counts and reinterpret payloads."""

    BYTE = (1, "B")
    WORD = (2, "H")
    DWORD = (4, "I")
    FLOAT = (4, "f")

    @property
    def size(self) -> int:
        return self.value[0]

    @property
    def format(self) -> str:
        return self.value[1]
