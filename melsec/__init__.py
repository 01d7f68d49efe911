"""
The python-melsec library.

Pure Python implementation of the binary MC protocol for communicating with
Mitsubishi MELSEC controllers over Ethernet.
"""

from importlib.metadata import version, PackageNotFoundError

from .client import Client
from .connection import Channel, TCPChannel, UDPChannel, create_channel
from .frame import FrameParameters, FRAME_3E, FRAME_4E, frame_4e
from .protocol import MCProtocol
from .type import DeviceType, DestinationCpu, ClearMode, ElementWidth

__all__ = [
    "Client",
    "Channel",
    "TCPChannel",
    "UDPChannel",
    "create_channel",
    "FrameParameters",
    "FRAME_3E",
    "FRAME_4E",
    "frame_4e",
    "MCProtocol",
    "DeviceType",
    "DestinationCpu",
    "ClearMode",
    "ElementWidth",
]

try:
    __version__ = version("python-melsec")
except PackageNotFoundError:
    __version__ = "0.0rc0"
