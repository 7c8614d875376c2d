"""Handlers for the register Modbus functions and the report-slave-id function.

Each handler takes the request PDU (function code followed by data) and
returns the response PDU, or raises ProtocolException.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TypeVar

from .errors import (
    ErrorCode,
    ExceptionCode,
    ModbusError,
    ProtocolException,
    error_to_exception,
)
from .registers import RegisterBank

FUNC_READ_HOLDING_REGISTER = 0x03
FUNC_READ_INPUT_REGISTER = 0x04
FUNC_WRITE_REGISTER = 0x06
FUNC_WRITE_MULTIPLE_REGISTERS = 0x10
FUNC_OTHER_REPORT_SLAVEID = 0x11
FUNC_READWRITE_MULTIPLE_REGISTERS = 0x17

SLAVE_ID_BUFFER_SIZE = 32

_PDU_SIZE_MIN = 1
_READ_SIZE = 4
_WRITE_SIZE = 4
_WRITE_MUL_SIZE_MIN = 5
_READWRITE_SIZE_MIN = 9

_READ_COUNT_MAX = 0x007D
_WRITE_MUL_COUNT_MAX = 0x0078
_READWRITE_WRITE_COUNT_MAX = 0x79

_WRITE_MUL_BYTECNT_OFFSET = 5
_WRITE_MUL_VALUES_OFFSET = 6
_READWRITE_BYTECNT_OFFSET = 9
_READWRITE_VALUES_OFFSET = 10

_T = TypeVar("_T")


def _word(pdu: bytes | bytearray, offset: int) -> int:
    return int.from_bytes(pdu[offset : offset + 2], "big")


def _address(pdu: bytes | bytearray, offset: int = 1) -> int:
    return (_word(pdu, offset) + 1) & 0xFFFF


def _invalid(reason: str) -> ProtocolException:
    return ProtocolException(ExceptionCode.ILLEGAL_DATA_VALUE, reason)


def _call_bank(action: Callable[[], _T]) -> _T:
    try:
        return action()
    except ModbusError as exc:
        raise ProtocolException(error_to_exception(exc.code), str(exc)) from exc


def read_input_registers(bank: RegisterBank, pdu: bytes | bytearray) -> bytes:
    """Answer a read-input-registers request (function 0x04)."""
    if len(pdu) != _READ_SIZE + _PDU_SIZE_MIN:
        raise _invalid("request has the wrong length")
    address = _address(pdu)
    count = _word(pdu, 3)
    if not 1 <= count < _READ_COUNT_MAX:
        raise _invalid(f"quantity {count} is out of range")
    data = _call_bank(lambda: bank.read_input(address, count))
    return bytes([FUNC_READ_INPUT_REGISTER, (count * 2) & 0xFF]) + data


def read_holding_registers(bank: RegisterBank, pdu: bytes | bytearray) -> bytes:
    """Answer a read-holding-registers request (function 0x03).

    Only the low byte of the quantity field is taken as the register count.
    """
    if len(pdu) != _READ_SIZE + _PDU_SIZE_MIN:
        raise _invalid("request has the wrong length")
    address = _address(pdu)
    count = pdu[4]
    if not 1 <= count <= _READ_COUNT_MAX:
        raise _invalid(f"quantity {count} is out of range")
    data = _call_bank(lambda: bank.read_holding(address, count))
    return bytes([FUNC_READ_HOLDING_REGISTER, (count * 2) & 0xFF]) + data


def write_holding_register(bank: RegisterBank, pdu: bytes | bytearray) -> bytes:
    """Answer a write-single-register request (function 0x06) by echoing it."""
    if len(pdu) != _WRITE_SIZE + _PDU_SIZE_MIN:
        raise _invalid("request has the wrong length")
    address = _address(pdu)
    value = bytes(pdu[3:5])
    _call_bank(lambda: bank.write_holding(address, value))
    return bytes(pdu)


def write_multiple_holding_registers(
    bank: RegisterBank, pdu: bytes | bytearray
) -> bytes:
    """Answer a write-multiple-registers request (function 0x10)."""
    if len(pdu) < _WRITE_MUL_SIZE_MIN + _PDU_SIZE_MIN:
        raise _invalid("request has the wrong length")
    address = _address(pdu)
    count = _word(pdu, 3)
    byte_count = pdu[_WRITE_MUL_BYTECNT_OFFSET]
    if not (
        1 <= count <= _WRITE_MUL_COUNT_MAX and byte_count == (2 * count) & 0xFF
    ):
        raise _invalid("register quantity and byte count do not agree")
    values = bytes(pdu[_WRITE_MUL_VALUES_OFFSET : _WRITE_MUL_VALUES_OFFSET + 2 * count])
    if len(values) < 2 * count:
        raise _invalid("request carries fewer register bytes than announced")
    _call_bank(lambda: bank.write_holding(address, values))
    return bytes(pdu[:_WRITE_MUL_BYTECNT_OFFSET])


def read_write_multiple_registers(bank: RegisterBank, pdu: bytes | bytearray) -> bytes:
    """Answer a read/write-multiple-registers request (function 0x17).

    The write is carried out before the read. A request too short to hold
    the fixed fields is answered with the request itself.
    """
    if len(pdu) < _READWRITE_SIZE_MIN + _PDU_SIZE_MIN:
        return bytes(pdu)
    read_address = _address(pdu, 1)
    read_count = _word(pdu, 3)
    write_address = _address(pdu, 5)
    write_count = _word(pdu, 7)
    byte_count = pdu[_READWRITE_BYTECNT_OFFSET]
    if not (
        1 <= read_count <= _READ_COUNT_MAX
        and 1 <= write_count <= _READWRITE_WRITE_COUNT_MAX
        and 2 * write_count == byte_count
    ):
        raise _invalid("register quantities and byte count do not agree")
    values = bytes(
        pdu[_READWRITE_VALUES_OFFSET : _READWRITE_VALUES_OFFSET + byte_count]
    )
    if len(values) < byte_count:
        raise _invalid("request carries fewer register bytes than announced")
    _call_bank(lambda: bank.write_holding(write_address, values))
    data = _call_bank(lambda: bank.read_holding(read_address, read_count))
    return bytes([FUNC_READWRITE_MULTIPLE_REGISTERS, (read_count * 2) & 0xFF]) + data


class SlaveIdentity:
    """Data returned by the report-slave-id function (0x11)."""

    def __init__(self, buffer_size: int = SLAVE_ID_BUFFER_SIZE) -> None:
        self.buffer_size = buffer_size
        self._data = b""

    @property
    def data(self) -> bytes:
        """The identity bytes: slave id, running flag, then additional data."""
        return self._data

    def set(self, slave_id: int, is_running: bool, additional: bytes = b"") -> None:
        """Store the slave id, the running flag and optional additional bytes."""
        if len(additional) + 2 >= self.buffer_size:
            raise ModbusError(
                ErrorCode.ENORES,
                f"{len(additional)} additional bytes do not fit the identity buffer",
            )
        if not 0 <= slave_id <= 0xFF:
            raise ValueError(f"slave id must fit in one byte, got {slave_id}")
        self._data = bytes([slave_id, 0xFF if is_running else 0x00]) + bytes(additional)

    def report(self, pdu: bytes | bytearray) -> bytes:
        """Answer a report-slave-id request with the stored identity."""
        return bytes(pdu[:1]) + self._data