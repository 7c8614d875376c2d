# modslave

A small Modbus slave stack in pure Python, with no third-party dependencies.
It is event driven: transports post events to a single-slot queue, and
`ModbusSlave.poll()` handles one event per call.

## What is in it

- `modslave.stack.ModbusSlave` – the protocol stack. It holds the transport,
  the event queue, a table of up to 16 function handlers and the slave
  address. `init_rtu(address, baud_rate)` or `init_tcp(port)` set it up,
  `enable()` / `disable()` start and stop the transport, `close()` checks the
  stack is disabled, and `poll()` handles at most one pending event and
  returns its `EventType` (or `None`).
- `modslave.rtu.RtuTransport` – RTU framing: t3.5 frame detection,
  CRC checking on receive, address + PDU + CRC on send. `t35_ticks(baud_rate)`
  gives the inter-frame silence in 50 µs ticks (fixed at 35 above 19200 baud).
- `modslave.tcp.TcpTransport` – MBAP framing. `submit_request(adu)` hands in a
  request; replies reuse its transaction, protocol and unit identifiers and
  are appended to `responses`.
- `modslave.port.SerialPort` and `modslave.port.Timer` – a simulated UART and
  t3.5 timer that call back into the RTU transport, as interrupts would.
  `SerialPort.feed(byte)` delivers a received byte, `SerialPort.transmitted`
  collects sent bytes, and `Timer.advance(microseconds)` lets time pass.
- `modslave.registers.RegisterBank` – ten input registers, ten holding
  registers, ten coils and ten discrete inputs, 1-based addresses. Coils and
  discrete inputs start as `1 1 1 1 0 0 0 0 1 1`. With `toggle_discrete`
  (on by default) every discrete-input read inverts all discrete inputs
  afterwards.
- `modslave.coil_functions` – `read_coils`, `read_discrete_inputs`,
  `write_coil`, `write_multiple_coils`.
- `modslave.register_functions` – `read_input_registers`,
  `read_holding_registers`, `write_holding_register`,
  `write_multiple_holding_registers`, `read_write_multiple_registers`, and
  `SlaveIdentity` for report slave ID (function 0x11).
- `modslave.crc.crc16`, `modslave.bits.get_bits` / `set_bits`,
  `modslave.events.EventQueue` / `EventType`.
- `modslave.errors` – `ErrorCode`, `ExceptionCode`, `ModbusError`,
  `ProtocolException`, `error_to_exception`, `port_error_to_exception`.

Note that `read_holding_registers` takes only the low byte of the quantity
field as the register count.

## Installation

```
pip install .
```

## Modbus TCP

```python
from modslave.stack import ModbusSlave

slave = ModbusSlave()
slave.init_tcp(502)
slave.enable()

# Transaction 1, protocol 0, length 6, unit 1,
# read holding registers (0x03) from address 0, count 2.
slave.transport.submit_request(bytes.fromhex("000100000006010300000002"))

slave.poll()  # FRAME_RECEIVED: the request is accepted and queued for execution
slave.poll()  # EXECUTE: the handler runs and the reply is built

print(slave.transport.responses[-1].hex())  # 000100000007010304000000000
```

## Modbus RTU

The RTU transport is driven through its simulated serial port and timer:

```python
from modslave.crc import crc16
from modslave.stack import ModbusSlave

slave = ModbusSlave()
slave.init_rtu(address=1, baud_rate=19200)
slave.enable()
rtu = slave.transport

rtu.timer.advance(rtu.timer.timeout_us)  # bus silent for t3.5
slave.poll()                             # READY

body = bytes([1, 0x03, 0x00, 0x00, 0x00, 0x01])
for byte in body + crc16(body).to_bytes(2, "little"):
    rtu.serial.feed(byte)
rtu.timer.advance(rtu.timer.timeout_us)  # end of frame

slave.poll()  # FRAME_RECEIVED
slave.poll()  # EXECUTE: the reply is written to rtu.serial.transmitted
print(rtu.serial.transmitted.hex())
```

Frames that are too short or fail the CRC are dropped; frames for another
address are ignored. Requests sent to the broadcast address 0 are executed
but not answered.

## Custom handlers

A handler takes the request PDU (function code first) and returns the
response PDU. To answer with a Modbus exception it raises
`ProtocolException(ExceptionCode...)`; the stack then replies with the
function code OR 0x80 and the exception code. Unknown function codes are
answered with `ILLEGAL_FUNCTION`.

```python
from modslave.errors import ExceptionCode, ProtocolException

def echo(pdu: bytes) -> bytes:
    if len(pdu) < 2:
        raise ProtocolException(ExceptionCode.ILLEGAL_DATA_VALUE)
    return pdu

slave.register_handler(0x41, echo)
slave.register_handler(0x41, None)  # remove it again
```

Function codes must be 1..127 (`ModbusError` with `EINVAL` otherwise);
a full handler table raises `ModbusError` with `ENORES`.

## What it does not do

The package does not open real serial ports or TCP sockets: bytes and
requests are handed to the simulated port and `TcpTransport` by your own
code, and replies are collected from `SerialPort.transmitted` and
`TcpTransport.responses`. There is no Modbus ASCII mode, no master side
and no command-line program. Register storage is in memory only.

## Running the tests

```
pip install .[test]
pytest
```