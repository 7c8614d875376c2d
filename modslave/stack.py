"""The Modbus slave protocol stack: state, function dispatch and the poll loop."""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import Enum, auto
from functools import partial

from .coil_functions import (
    FUNC_READ_COILS,
    FUNC_READ_DISCRETE_INPUTS,
    FUNC_WRITE_MULTIPLE_COILS,
    FUNC_WRITE_SINGLE_COIL,
    read_coils,
    read_discrete_inputs,
    write_coil,
    write_multiple_coils,
)
from .errors import ErrorCode, ExceptionCode, ModbusError, ProtocolException
from .events import EventQueue, EventType
from .port import Parity
from .register_functions import (
    FUNC_OTHER_REPORT_SLAVEID,
    FUNC_READ_HOLDING_REGISTER,
    FUNC_READ_INPUT_REGISTER,
    FUNC_READWRITE_MULTIPLE_REGISTERS,
    FUNC_WRITE_MULTIPLE_REGISTERS,
    FUNC_WRITE_REGISTER,
    SlaveIdentity,
    read_holding_registers,
    read_input_registers,
    read_write_multiple_registers,
    write_holding_register,
    write_multiple_holding_registers,
)
from .registers import RegisterBank
from .rtu import RtuTransport
from .tcp import DEFAULT_PORT, MB_TCP_PSEUDO_ADDRESS, TcpTransport

log = logging.getLogger(__name__)

ADDRESS_BROADCAST = 0
ADDRESS_MIN = 1
ADDRESS_MAX = 247
FUNC_HANDLERS_MAX = 16
FUNC_ERROR = 0x80

Handler = Callable[[bytes], bytes]


class Mode(Enum):
    """Transport the stack runs on."""

    RTU = auto()
    TCP = auto()


class _State(Enum):
    ENABLED = auto()
    DISABLED = auto()
    NOT_INITIALIZED = auto()


class ModbusSlave:
    """A Modbus slave serving a register bank over RTU or TCP."""

    def __init__(
        self,
        bank: RegisterBank | None = None,
        identity: SlaveIdentity | None = None,
        events: EventQueue | None = None,
        parity: Parity = Parity.EVEN,
        serial_port: int = 0,
    ) -> None:
        self.bank = bank if bank is not None else RegisterBank()
        self.identity = identity if identity is not None else SlaveIdentity()
        self.events = events if events is not None else EventQueue()
        self.parity = parity
        self.serial_port = serial_port
        self.address = 0
        self._mode: Mode | None = None
        self._state = _State.NOT_INITIALIZED
        self._transport: RtuTransport | TcpTransport | None = None
        self._frame = b""
        self._rcv_address = 0

        builtins: list[tuple[int, Handler | None]] = [
            (FUNC_OTHER_REPORT_SLAVEID, self.identity.report),
            (FUNC_READ_INPUT_REGISTER, partial(read_input_registers, self.bank)),
            (FUNC_READ_HOLDING_REGISTER, partial(read_holding_registers, self.bank)),
            (
                FUNC_WRITE_MULTIPLE_REGISTERS,
                partial(write_multiple_holding_registers, self.bank),
            ),
            (FUNC_WRITE_REGISTER, partial(write_holding_register, self.bank)),
            (
                FUNC_READWRITE_MULTIPLE_REGISTERS,
                partial(read_write_multiple_registers, self.bank),
            ),
            (FUNC_READ_COILS, partial(read_coils, self.bank)),
            (FUNC_WRITE_SINGLE_COIL, partial(write_coil, self.bank)),
            (FUNC_WRITE_MULTIPLE_COILS, partial(write_multiple_coils, self.bank)),
            (FUNC_READ_DISCRETE_INPUTS, partial(read_discrete_inputs, self.bank)),
        ]
        self._handlers = builtins + [(0, None)] * (FUNC_HANDLERS_MAX - len(builtins))

    @property
    def mode(self) -> Mode | None:
        """The transport mode chosen at initialisation."""
        return self._mode

    @property
    def transport(self) -> RtuTransport | TcpTransport | None:
        """The transport in use, once initialised."""
        return self._transport

    @property
    def enabled(self) -> bool:
        """Whether the stack is running."""
        return self._state is _State.ENABLED

    def init_rtu(self, address: int, baud_rate: int) -> None:
        """Set up the stack for Modbus RTU as the slave with the given address."""
        if address == ADDRESS_BROADCAST or not ADDRESS_MIN <= address <= ADDRESS_MAX:
            raise ModbusError(ErrorCode.EINVAL, f"invalid slave address {address}")
        self.address = address
        self._transport = RtuTransport(
            address,
            baud_rate=baud_rate,
            parity=self.parity,
            port=self.serial_port,
            events=self.events,
        )
        self.events.reset()
        self._mode = Mode.RTU
        self._state = _State.DISABLED

    def init_tcp(self, port: int = DEFAULT_PORT) -> None:
        """Set up the stack for Modbus TCP listening on the given port."""
        try:
            transport = TcpTransport(port, events=self.events)
        except ModbusError:
            self._state = _State.DISABLED
            raise
        self.events.reset()
        self._transport = transport
        self.address = MB_TCP_PSEUDO_ADDRESS
        self._mode = Mode.TCP
        self._state = _State.DISABLED

    def register_handler(self, function_code: int, handler: Handler | None) -> None:
        """Install a handler for a function code, or remove it when handler is None."""
        if not 0 < function_code <= 127:
            raise ModbusError(ErrorCode.EINVAL, f"invalid function code {function_code}")
        if handler is not None:
            for index, (_, current) in enumerate(self._handlers):
                if current is None or current == handler:
                    self._handlers[index] = (function_code, handler)
                    return
            raise ModbusError(ErrorCode.ENORES, "no free function handler slot")
        for index, (code, _) in enumerate(self._handlers):
            if code == function_code:
                self._handlers[index] = (0, None)
                return

    def close(self) -> None:
        """Release the port; the stack must be disabled first."""
        if self._state is not _State.DISABLED:
            raise ModbusError(ErrorCode.EILLSTATE, "stack must be disabled to close")

    def enable(self) -> None:
        """Start the transport and the protocol stack."""
        if self._state is not _State.DISABLED or self._transport is None:
            raise ModbusError(ErrorCode.EILLSTATE, "stack is not initialised or already running")
        self._transport.start()
        self._state = _State.ENABLED

    def disable(self) -> None:
        """Stop the transport; disabling a disabled stack does nothing."""
        if self._state is _State.ENABLED:
            if self._transport is not None:
                self._transport.stop()
            self._state = _State.DISABLED
        elif self._state is not _State.DISABLED:
            raise ModbusError(ErrorCode.EILLSTATE, "stack is not initialised")

    def poll(self) -> EventType | None:
        """Handle at most one pending event and return it, or None if there was none."""
        if self._state is not _State.ENABLED or self._transport is None:
            raise ModbusError(ErrorCode.EILLSTATE, "stack is not enabled")
        event = self.events.get()
        if event is EventType.FRAME_RECEIVED:
            self._frame_received()
        elif event is EventType.EXECUTE:
            self._execute()
        return event

    def _frame_received(self) -> None:
        assert self._transport is not None
        try:
            address, frame = self._transport.receive()
        except ModbusError as exc:
            log.debug("dropping frame: %s", exc)
            return
        if address in (self.address, ADDRESS_BROADCAST):
            self._rcv_address = address
            self._frame = frame
            self.events.post(EventType.EXECUTE)

    def _execute(self) -> None:
        assert self._transport is not None
        frame = self._frame
        function_code = frame[0]
        exception = ExceptionCode.ILLEGAL_FUNCTION
        response = frame
        for code, handler in self._handlers:
            if code == 0:
                break
            if code == function_code and handler is not None:
                try:
                    response = handler(frame)
                    exception = ExceptionCode.NONE
                except ProtocolException as exc:
                    exception = exc.code
                break
        if self._rcv_address == ADDRESS_BROADCAST:
            return
        if exception is not ExceptionCode.NONE:
            response = bytes([(function_code | FUNC_ERROR) & 0xFF, int(exception)])
        try:
            self._transport.send(self.address, response)
        except ModbusError as exc:
            log.debug("reply not sent: %s", exc)