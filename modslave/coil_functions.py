"""Handlers for the coil and discrete-input Modbus functions.

Each handler takes the request PDU (function code followed by data) and
returns the response PDU, or raises ProtocolException.
"""

from __future__ import annotations

from collections.abc import Callable

from .errors import ExceptionCode, ModbusError, ProtocolException, error_to_exception
from .registers import RegisterBank

FUNC_READ_COILS = 0x01
FUNC_READ_DISCRETE_INPUTS = 0x02
FUNC_WRITE_SINGLE_COIL = 0x05
FUNC_WRITE_MULTIPLE_COILS = 0x0F

_PDU_SIZE_MIN = 1
_REQUEST_SIZE = 4
_READ_COUNT_MAX = 0x07D0
_WRITE_MULTIPLE_COUNT_MAX = 0x07B0
_BYTE_COUNT_OFFSET = 5
_VALUES_OFFSET = 6


def _word(pdu: bytes | bytearray, offset: int) -> int:
    return int.from_bytes(pdu[offset : offset + 2], "big")


def _address(pdu: bytes | bytearray) -> int:
    return (_word(pdu, 1) + 1) & 0xFFFF


def _invalid(reason: str) -> ProtocolException:
    return ProtocolException(ExceptionCode.ILLEGAL_DATA_VALUE, reason)


def _call_bank(action: Callable[[], bytes | None]) -> bytes | None:
    try:
        return action()
    except ModbusError as exc:
        raise ProtocolException(error_to_exception(exc.code), str(exc)) from exc


def _read_bits(
    pdu: bytes | bytearray, function_code: int, reader: Callable[[int, int], bytes]
) -> bytes:
    if len(pdu) != _REQUEST_SIZE + _PDU_SIZE_MIN:
        raise _invalid("request has the wrong length")
    address = _address(pdu)
    count = _word(pdu, 3)
    if not 1 <= count < _READ_COUNT_MAX:
        raise _invalid(f"quantity {count} is out of range")
    n_bytes = ((count + 7) // 8) & 0xFF
    data = _call_bank(lambda: reader(address, count))
    return bytes([function_code, n_bytes]) + data


def read_coils(bank: RegisterBank, pdu: bytes | bytearray) -> bytes:
    """Answer a read-coils request (function 0x01)."""
    return _read_bits(pdu, FUNC_READ_COILS, bank.read_coils)


def read_discrete_inputs(bank: RegisterBank, pdu: bytes | bytearray) -> bytes:
    """Answer a read-discrete-inputs request (function 0x02)."""
    return _read_bits(pdu, FUNC_READ_DISCRETE_INPUTS, bank.read_discrete)


def write_coil(bank: RegisterBank, pdu: bytes | bytearray) -> bytes:
    """Answer a write-single-coil request (function 0x05) by echoing it."""
    if len(pdu) != _REQUEST_SIZE + _PDU_SIZE_MIN:
        raise _invalid("request has the wrong length")
    address = _address(pdu)
    if pdu[4] != 0x00 or pdu[3] not in (0xFF, 0x00):
        raise _invalid("coil value must be 0xFF00 or 0x0000")
    state = bytes([1 if pdu[3] == 0xFF else 0, 0])
    _call_bank(lambda: bank.write_coils(address, 1, state))
    return bytes(pdu)


def write_multiple_coils(bank: RegisterBank, pdu: bytes | bytearray) -> bytes:
    """Answer a write-multiple-coils request (function 0x0F)."""
    if len(pdu) <= _REQUEST_SIZE + _PDU_SIZE_MIN:
        raise _invalid("request has the wrong length")
    address = _address(pdu)
    count = _word(pdu, 3)
    byte_count = pdu[_BYTE_COUNT_OFFSET]
    expected = ((count + 7) // 8) & 0xFF
    if not (1 <= count <= _WRITE_MULTIPLE_COUNT_MAX and expected == byte_count):
        raise _invalid("coil quantity and byte count do not agree")
    values = bytes(pdu[_VALUES_OFFSET:])
    if len(values) < byte_count:
        raise _invalid("request carries fewer coil bytes than announced")
    _call_bank(lambda: bank.write_coils(address, count, values))
    return bytes(pdu[:_BYTE_COUNT_OFFSET])