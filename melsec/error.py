"""
MC protocol error handling and exception classes.

Maps controller end codes to Python exceptions with meaningful messages.
"""

from typing import Optional


class MelsecError(Exception):
    """Base exception for all MC protocol errors."""

    def __init__(self, message: str, error_code: Optional[int] = None):
        super().__init__(message)
        self.error_code = error_code


class InvalidConfigurationError(MelsecError):
    """Raised when an endpoint or station setting is not valid."""

    pass


class OutOfRangeError(MelsecError, ValueError):
    """Raised when a numeric argument does not fit its field in the request frame."""

    pass


class UnsupportedElementWidthError(MelsecError):
    """Raised when an element width is outside the range accepted by an operation."""

    pass


class EmptyInputError(MelsecError):
    """Raised when a read or write request carries no elements."""

    pass


class SizeMismatchError(MelsecError):
    """Raised when parallel address and value sequences differ in length."""

    pass


class OddSizeArrayError(MelsecError):
    """Raised when a bit array that is packed two per byte has an odd length."""

    pass


class ClientDestroyedError(MelsecError):
    """Raised when a destroyed client is used again."""

    pass


class MelsecConnectionError(MelsecError):
    """Raised when the transport to the controller fails."""

    pass


class MelsecTimeoutError(MelsecConnectionError):
    """Raised when sending to or receiving from the controller times out."""

    pass


class MelsecProtocolError(MelsecError):
    """Raised when a controller response cannot be accepted."""

    pass


class ResponseTooShortError(MelsecProtocolError):
    pass


class ResponseHeaderCorruptError(MelsecProtocolError):
    pass


class ResponseLengthCorruptError(MelsecProtocolError):
    pass


class ControllerError(MelsecProtocolError):
    """Raised when the controller answers with a nonzero end code."""

    pass


WRONG_TYPE_SIZE = "Wrong type size"
NO_DATA_READ = "No data to read"
NO_DATA_WRITE = "No data to write"
SIZE_MISMATCH = "Points and values size mismatch"
ODD_SIZE_ARRAY = "Bit array size must be even"

# common end codes of the Q/L series Ethernet interfaces
mc_end_codes = {
    0xC050: "ASCII data that cannot be converted to binary was received",
    0xC051: "Number of read/write points is out of range",
    0xC052: "Number of read/write points is out of range",
    0xC053: "Number of read/write points is out of range",
    0xC054: "Number of read/write points is out of range",
    0xC055: "Number of file data read/write points is out of range",
    0xC056: "Read/write request exceeds the maximum address",
    0xC057: "Request data length does not match the number of points",
    0xC058: "Request data length after conversion does not match the number of points",
    0xC059: "Command or subcommand specification error",
    0xC05B: "The CPU module cannot read/write the specified device",
    0xC05C: "Request content error",
    0xC05D: "Monitor registration is not performed",
    0xC05F: "The request cannot be executed on the target CPU module",
    0xC060: "Request content error",
    0xC061: "Request data length does not match the number of data",
    0xC06F: "Communication data code setting mismatch",
    0xC070: "Device memory extension cannot be specified for the target station",
    0xC0B5: "Data that cannot be handled by the CPU module was specified",
    0xC200: "Remote password error",
    0xC201: "The port used for communication is locked",
    0xC204: "A different device requested the remote password unlock",
}


def get_error_message(error_code: int) -> str:
    """Get human-readable error message for a controller end code."""
    if error_code in mc_end_codes:
        return mc_end_codes[error_code]
    if 0x4000 <= error_code <= 0x4FFF:
        return "Error detected by the CPU module"
    return f"Unknown error: {error_code:#06x}"


def check_error(error_code: int, context: str = "") -> None:
    """Raise :class:`ControllerError` if the controller returned a nonzero end code."""
    if error_code == 0:
        return

    message = f"PLC return error code: 0x{error_code:04X} ({get_error_message(error_code)})"
    if context:
        message = f"{context}: {message}"
    raise ControllerError(message, error_code)
