"""
Transport channels carrying MC protocol frames over TCP or UDP.

A channel exchanges one request buffer for one response buffer. It knows
nothing about the frame layout except, for TCP, how to tell when a response
is complete.
"""

import socket
import logging
from typing import Callable, Optional

from .error import MelsecConnectionError, MelsecTimeoutError

logger = logging.getLogger(__name__)

FrameSize = Callable[[bytes], Optional[int]]

RECEIVE_SIZE = 4096


class Channel:
    """
    Base class of the transport channels.

    Subclasses create the socket in :meth:`_create_socket`; everything else,
    timeouts included, is shared.
    """

    def __init__(self, host: str, port: int, send_timeout: float = 2.0, receive_timeout: float = 2.0):
        """
        Initialize channel.

        Args:
            host: Controller IP address
            port: Controller port
            send_timeout: Send timeout in seconds
            receive_timeout: Receive timeout in seconds
        """
        self.host = host
        self.port = port
        self.send_timeout = send_timeout
        self.receive_timeout = receive_timeout
        self.socket: Optional[socket.socket] = None

    @property
    def is_open(self) -> bool:
        return self.socket is not None

    def open(self) -> None:
        """Open the underlying socket, if not open yet."""
        if self.socket is not None:
            return
        try:
            self.socket = self._create_socket()
        except socket.timeout as e:
            raise MelsecTimeoutError(f"Connection to {self.host}:{self.port} timed out") from e
        except OSError as e:
            raise MelsecConnectionError(f"Connection to {self.host}:{self.port} failed: {e}") from e
        logger.info(f"Opened {self.__class__.__name__} to {self.host}:{self.port}")

    def close(self) -> None:
        """Close the underlying socket. Safe to call more than once."""
        if self.socket is None:
            return
        try:
            self.socket.close()
        finally:
            self.socket = None
            logger.info(f"Closed {self.__class__.__name__} to {self.host}:{self.port}")

    def execute(self, request: bytes) -> bytes:
        """
        Send a request and block until the response arrives.

        Args:
            request: Complete request frame

        Returns:
            Complete response frame

        Raises:
            MelsecTimeoutError: send or receive timeout expired
            MelsecConnectionError: any other socket error
        """
        self.open()
        try:
            self._send(request)
            logger.debug(f"Sent {len(request)} bytes: {request.hex()}")
            response = self._receive()
            logger.debug(f"Received {len(response)} bytes: {response.hex()}")
            return response
        except socket.timeout as e:
            raise MelsecTimeoutError(f"Timeout communicating with {self.host}:{self.port}") from e
        except OSError as e:
            raise MelsecConnectionError(f"Communication with {self.host}:{self.port} failed: {e}") from e

    def _socket(self) -> socket.socket:
        if self.socket is None:
            raise MelsecConnectionError("Channel is not open")
        return self.socket

    def _create_socket(self) -> socket.socket:
        raise NotImplementedError

    def _send(self, request: bytes) -> None:
        raise NotImplementedError

    def _receive(self) -> bytes:
        raise NotImplementedError

    def __enter__(self) -> "Channel":
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class TCPChannel(Channel):
    """TCP channel reading until the response frame is complete."""

    def __init__(
        self,
        host: str,
        port: int,
        send_timeout: float = 2.0,
        receive_timeout: float = 2.0,
        frame_size: Optional[FrameSize] = None,
    ):
        super().__init__(host, port, send_timeout, receive_timeout)
        self.frame_size = frame_size

    def _create_socket(self) -> socket.socket:
        sock = socket.create_connection((self.host, self.port), timeout=self.send_timeout)
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        return sock

    def _send(self, request: bytes) -> None:
        sock = self._socket()
        sock.settimeout(self.send_timeout)
        sock.sendall(request)

    def _receive(self) -> bytes:
        sock = self._socket()
        sock.settimeout(self.receive_timeout)
        data = bytearray()
        while True:
            chunk = sock.recv(RECEIVE_SIZE)
            if not chunk:
                raise MelsecConnectionError("Connection closed by peer")
            data.extend(chunk)
            if self.frame_size is None:
                break
            expected = self.frame_size(bytes(data))
            if expected is not None and len(data) >= expected:
                break
        return bytes(data)


class UDPChannel(Channel):
    """UDP channel, one datagram per request and per response."""

    def _create_socket(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            sock.connect((self.host, self.port))
        except OSError:
            sock.close()
            raise
        return sock

    def _send(self, request: bytes) -> None:
        sock = self._socket()
        sock.settimeout(self.send_timeout)
        sock.send(request)

    def _receive(self) -> bytes:
        sock = self._socket()
        sock.settimeout(self.receive_timeout)
        return sock.recv(65535)


def create_channel(
    host: str,
    port: int,
    use_tcp: bool,
    send_timeout: float = 2.0,
    receive_timeout: float = 2.0,
    frame_size: Optional[FrameSize] = None,
) -> Channel:
    """Create an unopened TCP or UDP channel."""
    if use_tcp:
        return TCPChannel(host, port, send_timeout, receive_timeout, frame_size=frame_size)
    return UDPChannel(host, port, send_timeout, receive_timeout)
