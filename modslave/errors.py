"""Error codes of the slave stack and Modbus exception codes."""

from __future__ import annotations

from enum import Enum, IntEnum


class ErrorCode(Enum):
    """Internal error conditions reported by the stack and its callbacks."""

    ENOERR = "no error"
    ENOREG = "illegal register address"
    EINVAL = "illegal argument"
    EPORTERR = "porting layer error"
    ENORES = "insufficient resources"
    EIO = "I/O error"
    EILLSTATE = "protocol stack in illegal state"
    ETIMEDOUT = "timeout error"


class ExceptionCode(IntEnum):
    """Exception codes carried in a Modbus exception response."""

    NONE = 0x00
    ILLEGAL_FUNCTION = 0x01
    ILLEGAL_DATA_ADDRESS = 0x02
    ILLEGAL_DATA_VALUE = 0x03
    SLAVE_DEVICE_FAILURE = 0x04
    ACKNOWLEDGE = 0x05
    SLAVE_BUSY = 0x06
    MEMORY_PARITY_ERROR = 0x08
    GATEWAY_PATH_FAILED = 0x0A
    GATEWAY_TARGET_FAILED = 0x0B


class ModbusError(Exception):
    """Raised when an operation of the stack fails."""

    def __init__(self, code: ErrorCode, message: str | None = None) -> None:
        self.code = code
        super().__init__(message if message is not None else code.value)


class ProtocolException(Exception):
    """Raised by a function handler to answer with a Modbus exception."""

    def __init__(self, code: ExceptionCode, message: str | None = None) -> None:
        self.code = code
        super().__init__(message if message is not None else code.name)


def error_to_exception(code: ErrorCode) -> ExceptionCode:
    """Map an internal error to the exception code sent by function handlers."""
    if code is ErrorCode.ENOERR:
        return ExceptionCode.NONE
    if code is ErrorCode.ENOREG:
        return ExceptionCode.ILLEGAL_DATA_ADDRESS
    if code is ErrorCode.ETIMEDOUT:
        return ExceptionCode.SLAVE_BUSY
    return ExceptionCode.SLAVE_DEVICE_FAILURE


_PORT_MAPPING = {
    ErrorCode.ENOREG: ExceptionCode.ILLEGAL_DATA_ADDRESS,
    ErrorCode.EINVAL: ExceptionCode.ILLEGAL_DATA_VALUE,
    ErrorCode.ENORES: ExceptionCode.SLAVE_DEVICE_FAILURE,
    ErrorCode.ETIMEDOUT: ExceptionCode.SLAVE_BUSY,
    ErrorCode.EPORTERR: ExceptionCode.SLAVE_DEVICE_FAILURE,
    ErrorCode.ENOERR: ExceptionCode.NONE,
}


def port_error_to_exception(code: ErrorCode) -> ExceptionCode:
    """Map an internal error to an exception code, as the register port does."""
    return _PORT_MAPPING.get(code, ExceptionCode.SLAVE_DEVICE_FAILURE)