import pytest

from modslave.errors import (
    ErrorCode,
    ExceptionCode,
    ModbusError,
    ProtocolException,
    error_to_exception,
    port_error_to_exception,
)


@pytest.mark.parametrize(
    "code, expected",
    [
        (ErrorCode.ENOERR, ExceptionCode.NONE),
        (ErrorCode.ENOREG, ExceptionCode.ILLEGAL_DATA_ADDRESS),
        (ErrorCode.ETIMEDOUT, ExceptionCode.SLAVE_BUSY),
        (ErrorCode.EINVAL, ExceptionCode.SLAVE_DEVICE_FAILURE),
        (ErrorCode.EPORTERR, ExceptionCode.SLAVE_DEVICE_FAILURE),
        (ErrorCode.ENORES, ExceptionCode.SLAVE_DEVICE_FAILURE),
        (ErrorCode.EIO, ExceptionCode.SLAVE_DEVICE_FAILURE),
        (ErrorCode.EILLSTATE, ExceptionCode.SLAVE_DEVICE_FAILURE),
    ],
)
def test_error_to_exception(code, expected):
    assert error_to_exception(code) is expected


@pytest.mark.parametrize(
    "code, expected",
    [
        (ErrorCode.ENOREG, 0x02),
        (ErrorCode.EINVAL, 0x03),
        (ErrorCode.ENORES, 0x04),
        (ErrorCode.ETIMEDOUT, 0x06),
        (ErrorCode.EPORTERR, 0x04),
        (ErrorCode.ENOERR, 0x00),
        (ErrorCode.EIO, 0x04),
        (ErrorCode.EILLSTATE, 0x04),
    ],
)
def test_port_error_to_exception(code, expected):
    assert port_error_to_exception(code) == expected


def test_modbus_error_carries_code():
    err = ModbusError(ErrorCode.EILLSTATE)
    assert err.code is ErrorCode.EILLSTATE
    assert str(err) == ErrorCode.EILLSTATE.value


def test_modbus_error_custom_message():
    err = ModbusError(ErrorCode.EIO, "frame rejected")
    assert err.code is ErrorCode.EIO
    assert str(err) == "frame rejected"


def test_protocol_exception_carries_code():
    exc = ProtocolException(ExceptionCode.ILLEGAL_DATA_VALUE)
    assert exc.code is ExceptionCode.ILLEGAL_DATA_VALUE
    assert str(exc) == "ILLEGAL_DATA_VALUE"