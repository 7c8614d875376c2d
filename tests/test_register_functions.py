import pytest

from modslave.errors import ErrorCode, ExceptionCode, ModbusError, ProtocolException
from modslave.register_functions import (
    SlaveIdentity,
    read_holding_registers,
    read_input_registers,
    read_write_multiple_registers,
    write_holding_register,
    write_multiple_holding_registers,
)
from modslave.registers import RegisterBank


@pytest.fixture
def bank():
    return RegisterBank()


def test_read_input_registers_returns_words(bank):
    bank.input_registers[0] = 0x1234
    bank.input_registers[1] = 0xABCD
    response = read_input_registers(bank, bytes([0x04, 0x00, 0x00, 0x00, 0x02]))
    assert response == bytes([0x04, 0x04, 0x12, 0x34, 0xAB, 0xCD])


def test_read_input_registers_offset_address(bank):
    bank.input_registers[9] = 0x0102
    response = read_input_registers(bank, bytes([0x04, 0x00, 0x09, 0x00, 0x01]))
    assert response[2:] == bytes([0x01, 0x02])


@pytest.mark.parametrize(
    "count, expected",
    [
        (0x0000, ExceptionCode.ILLEGAL_DATA_VALUE),
        (0x007D, ExceptionCode.ILLEGAL_DATA_VALUE),
        (0x007C, ExceptionCode.ILLEGAL_DATA_ADDRESS),
    ],
)
def test_read_input_registers_count_limits(bank, count, expected):
    pdu = bytes([0x04, 0x00, 0x00]) + count.to_bytes(2, "big")
    with pytest.raises(ProtocolException) as info:
        read_input_registers(bank, pdu)
    assert info.value.code is expected


def test_read_input_registers_wrong_length(bank):
    with pytest.raises(ProtocolException) as info:
        read_input_registers(bank, bytes([0x04, 0x00, 0x00, 0x01]))
    assert info.value.code is ExceptionCode.ILLEGAL_DATA_VALUE


def test_read_holding_registers_returns_words(bank):
    bank.holding_registers[2] = 0xBEEF
    response = read_holding_registers(bank, bytes([0x03, 0x00, 0x02, 0x00, 0x01]))
    assert response == bytes([0x03, 0x02, 0xBE, 0xEF])


def test_read_holding_registers_ignores_high_count_byte(bank):
    response = read_holding_registers(bank, bytes([0x03, 0x00, 0x00, 0x01, 0x02]))
    assert len(response) == 2 + 2 * 2
    assert response[1] == 4


def test_read_holding_registers_accepts_max_count(bank):
    with pytest.raises(ProtocolException) as info:
        read_holding_registers(bank, bytes([0x03, 0x00, 0x00, 0x00, 0x7D]))
    assert info.value.code is ExceptionCode.ILLEGAL_DATA_ADDRESS


def test_read_holding_registers_zero_count(bank):
    with pytest.raises(ProtocolException) as info:
        read_holding_registers(bank, bytes([0x03, 0x00, 0x00, 0x00, 0x00]))
    assert info.value.code is ExceptionCode.ILLEGAL_DATA_VALUE


def test_write_holding_register_echoes_and_stores(bank):
    pdu = bytes([0x06, 0x00, 0x04, 0x12, 0x34])
    assert write_holding_register(bank, pdu) == pdu
    assert bank.holding_registers[4] == 0x1234


def test_write_holding_register_out_of_range(bank):
    with pytest.raises(ProtocolException) as info:
        write_holding_register(bank, bytes([0x06, 0x00, 0x0A, 0x00, 0x01]))
    assert info.value.code is ExceptionCode.ILLEGAL_DATA_ADDRESS


def test_write_holding_register_wrong_length(bank):
    with pytest.raises(ProtocolException) as info:
        write_holding_register(bank, bytes([0x06, 0x00, 0x00, 0x00, 0x01, 0x00]))
    assert info.value.code is ExceptionCode.ILLEGAL_DATA_VALUE


def test_write_multiple_holding_registers(bank):
    pdu = bytes([0x10, 0x00, 0x01, 0x00, 0x02, 0x04, 0x00, 0x0A, 0x01, 0x02])
    response = write_multiple_holding_registers(bank, pdu)
    assert response == pdu[:5]
    assert bank.holding_registers[1:3] == [0x000A, 0x0102]


def test_write_multiple_holding_registers_byte_count_mismatch(bank):
    pdu = bytes([0x10, 0x00, 0x00, 0x00, 0x02, 0x03, 0x00, 0x01, 0x00, 0x02])
    with pytest.raises(ProtocolException) as info:
        write_multiple_holding_registers(bank, pdu)
    assert info.value.code is ExceptionCode.ILLEGAL_DATA_VALUE
    assert bank.holding_registers == [0] * 10


def test_write_multiple_holding_registers_count_too_large(bank):
    pdu = bytes([0x10, 0x00, 0x00, 0x00, 0x79, 0xF2]) + bytes(0xF2)
    with pytest.raises(ProtocolException) as info:
        write_multiple_holding_registers(bank, pdu)
    assert info.value.code is ExceptionCode.ILLEGAL_DATA_VALUE


def test_write_multiple_holding_registers_too_short(bank):
    with pytest.raises(ProtocolException) as info:
        write_multiple_holding_registers(bank, bytes([0x10, 0x00, 0x00, 0x00, 0x01]))
    assert info.value.code is ExceptionCode.ILLEGAL_DATA_VALUE


def test_read_write_round_trip(bank):
    pdu = bytes(
        [0x17, 0x00, 0x00, 0x00, 0x02, 0x00, 0x00, 0x00, 0x01, 0x02, 0x55, 0xAA]
    )
    response = read_write_multiple_registers(bank, pdu)
    assert response == bytes([0x17, 0x04, 0x55, 0xAA, 0x00, 0x00])
    assert bank.holding_registers[0] == 0x55AA


def test_read_write_short_request_is_echoed(bank):
    pdu = bytes([0x17, 0x00, 0x00, 0x00, 0x01])
    assert read_write_multiple_registers(bank, pdu) == pdu


def test_read_write_read_count_too_large(bank):
    pdu = bytes(
        [0x17, 0x00, 0x00, 0x00, 0x7E, 0x00, 0x00, 0x00, 0x01, 0x02, 0x00, 0x01]
    )
    with pytest.raises(ProtocolException) as info:
        read_write_multiple_registers(bank, pdu)
    assert info.value.code is ExceptionCode.ILLEGAL_DATA_VALUE


def test_read_write_failed_write_raises_address_error(bank):
    pdu = bytes(
        [0x17, 0x00, 0x00, 0x00, 0x01, 0x00, 0x0A, 0x00, 0x01, 0x02, 0x00, 0x07]
    )
    with pytest.raises(ProtocolException) as info:
        read_write_multiple_registers(bank, pdu)
    assert info.value.code is ExceptionCode.ILLEGAL_DATA_ADDRESS
    assert bank.holding_registers == [0] * 10


def test_read_write_failed_read_keeps_write(bank):
    pdu = bytes(
        [0x17, 0x00, 0x09, 0x00, 0x02, 0x00, 0x03, 0x00, 0x01, 0x02, 0x00, 0x07]
    )
    with pytest.raises(ProtocolException) as info:
        read_write_multiple_registers(bank, pdu)
    assert info.value.code is ExceptionCode.ILLEGAL_DATA_ADDRESS
    assert bank.holding_registers[3] == 0x0007


def test_slave_identity_report(bank):
    identity = SlaveIdentity()
    identity.set(0x11, True, b"AB")
    assert identity.report(bytes([0x11])) == bytes([0x11, 0x11, 0xFF]) + b"AB"


def test_slave_identity_not_running():
    identity = SlaveIdentity()
    identity.set(0x05, False)
    assert identity.data == bytes([0x05, 0x00])


def test_slave_identity_empty_before_set():
    assert SlaveIdentity().report(bytes([0x11])) == bytes([0x11])


def test_slave_identity_buffer_limit():
    identity = SlaveIdentity(buffer_size=32)
    identity.set(1, True, bytes(29))
    assert len(identity.data) == 31
    with pytest.raises(ModbusError) as info:
        identity.set(1, True, bytes(30))
    assert info.value.code is ErrorCode.ENORES
    assert len(identity.data) == 31