"""Modbus RTU framing: character reception, frame detection and sending."""

from __future__ import annotations

import logging
from enum import Enum, auto

from .crc import crc16
from .errors import ErrorCode, ModbusError
from .events import EventQueue, EventType
from .port import Parity, SerialPort, Timer

log = logging.getLogger(__name__)

SER_PDU_SIZE_MIN = 4
SER_PDU_SIZE_MAX = 256
SER_PDU_SIZE_CRC = 2
SER_PDU_ADDR_OFF = 0
SER_PDU_PDU_OFF = 1

_FAST_BAUD_LIMIT = 19200
_FAST_T35_50US = 35


class RxState(Enum):
    """State of the frame receiver."""

    INIT = auto()
    IDLE = auto()
    RCV = auto()
    ERROR = auto()


class TxState(Enum):
    """State of the frame transmitter."""

    IDLE = auto()
    XMIT = auto()


def t35_ticks(baud_rate: int) -> int:
    """Return the inter-frame silence t3.5 in 50 microsecond ticks."""
    if baud_rate <= 0:
        raise ValueError(f"baud rate must be positive, got {baud_rate}")
    if baud_rate > _FAST_BAUD_LIMIT:
        return _FAST_T35_50US
    return ((7 * 220000) // (2 * baud_rate)) & 0xFFFF


class RtuTransport:
    """RTU transport driven by serial-port and timer callbacks."""

    def __init__(
        self,
        address: int,
        baud_rate: int = 9600,
        parity: Parity = Parity.EVEN,
        port: int = 0,
        serial: SerialPort | None = None,
        events: EventQueue | None = None,
    ) -> None:
        self.address = address
        self.events = events if events is not None else EventQueue()
        self.serial = (
            serial
            if serial is not None
            else SerialPort(port=port, baud_rate=baud_rate, data_bits=8, parity=parity)
        )
        self.serial.on_byte_received = self.receive_fsm
        self.serial.on_transmitter_empty = self.transmit_fsm
        self.timer = Timer(t35_ticks(baud_rate), on_expired=self.timer_expired)
        self._rx_state = RxState.INIT
        self._tx_state = TxState.IDLE
        self._buffer = bytearray(SER_PDU_SIZE_MAX)
        self._rx_pos = 0
        self._tx_frame = b""
        self._tx_pos = 0

    @property
    def rx_state(self) -> RxState:
        return self._rx_state

    @property
    def tx_state(self) -> TxState:
        return self._tx_state

    def start(self) -> None:
        """Start listening; the bus must be silent for t3.5 before it is ready."""
        self._rx_state = RxState.INIT
        self.serial.enable(True, False)
        self.timer.enable()

    def stop(self) -> None:
        """Switch off the serial line and the timer."""
        self.serial.enable(False, False)
        self.timer.disable()

    def receive(self) -> tuple[int, bytes]:
        """Return the address and PDU of the frame just received.

        Raises ModbusError with EIO if the frame is too short or its
        checksum is wrong.
        """
        frame = bytes(self._buffer[: self._rx_pos])
        log.debug("received %d bytes: %s", len(frame), frame.hex(" "))
        if len(frame) < SER_PDU_SIZE_MIN or crc16(frame) != 0:
            raise ModbusError(ErrorCode.EIO, "received frame is short or corrupt")
        return frame[SER_PDU_ADDR_OFF], frame[SER_PDU_PDU_OFF:-SER_PDU_SIZE_CRC]

    def send(self, address: int, pdu: bytes | bytearray) -> None:
        """Send a PDU framed with the slave address and checksum.

        Raises ModbusError with EIO if the receiver is not idle, which means
        the master already sent another frame.
        """
        if self._rx_state is not RxState.IDLE:
            raise ModbusError(ErrorCode.EIO, "receiver is busy; reply aborted")
        if len(pdu) > SER_PDU_SIZE_MAX - SER_PDU_PDU_OFF - SER_PDU_SIZE_CRC:
            raise ValueError(f"PDU of {len(pdu)} bytes does not fit an RTU frame")
        body = bytes([address & 0xFF]) + bytes(pdu)
        frame = body + crc16(body).to_bytes(2, "little")
        self._buffer[: len(frame)] = frame
        self._tx_frame = frame
        self._tx_pos = 0
        self._tx_state = TxState.XMIT
        self.serial.enable(False, True)

    def receive_fsm(self) -> bool:
        """Handle one received character."""
        if self._tx_state is not TxState.IDLE:
            raise RuntimeError("character received while transmitting")
        byte = self.serial.get_byte()
        if self._rx_state is RxState.IDLE:
            self._rx_pos = 0
            self._buffer[self._rx_pos] = byte
            self._rx_pos += 1
            self._rx_state = RxState.RCV
        elif self._rx_state is RxState.RCV:
            if self._rx_pos < SER_PDU_SIZE_MAX:
                self._buffer[self._rx_pos] = byte
                self._rx_pos += 1
            else:
                self._rx_state = RxState.ERROR
        self.timer.enable()
        return False

    def transmit_fsm(self) -> bool:
        """Handle a transmitter-empty event; return True if an event was posted."""
        if self._rx_state is not RxState.IDLE:
            raise RuntimeError("transmitting while the receiver is not idle")
        if self._tx_state is TxState.IDLE:
            self.serial.enable(True, False)
            return False
        if self._tx_pos < len(self._tx_frame):
            self.serial.put_byte(self._tx_frame[self._tx_pos])
            self._tx_pos += 1
            return False
        need_poll = self.events.post(EventType.FRAME_SENT)
        self.serial.enable(True, False)
        self._tx_state = TxState.IDLE
        return need_poll

    def timer_expired(self) -> bool:
        """Handle the end of a t3.5 silence; return True if an event was posted."""
        state = self._rx_state
        if state is RxState.IDLE:
            raise RuntimeError("t3.5 timer expired while the receiver was idle")
        need_poll = False
        if state is RxState.INIT:
            need_poll = self.events.post(EventType.READY)
        elif state is RxState.RCV:
            need_poll = self.events.post(EventType.FRAME_RECEIVED)
        self.timer.disable()
        self._rx_state = RxState.IDLE
        return need_poll