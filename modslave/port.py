"""Simulated serial line and character timer used by the RTU transport.

The serial port stands in for a UART driven by interrupts: bytes fed into
it raise the receive callback while reception is enabled, and enabling the
transmitter keeps raising the transmitter-empty callback until the
transmitter is switched off again. The timer counts elapsed time in
microseconds and raises its callback once its timeout has passed.
"""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum

TIMER_TICK_US = 50


class Parity(Enum):
    """Parity setting of the serial line."""

    NONE = "none"
    ODD = "odd"
    EVEN = "even"


class SerialPort:
    """A UART with one receive data register and a record of sent bytes."""

    def __init__(
        self,
        port: int = 0,
        baud_rate: int = 9600,
        data_bits: int = 8,
        parity: Parity = Parity.EVEN,
        on_byte_received: Callable[[], object] | None = None,
        on_transmitter_empty: Callable[[], object] | None = None,
    ) -> None:
        self.port = port
        self.baud_rate = baud_rate
        self.data_bits = data_bits
        self.parity = parity
        self.on_byte_received = on_byte_received
        self.on_transmitter_empty = on_transmitter_empty
        self.rx_enabled = False
        self.tx_enabled = False
        self.transmitted = bytearray()
        self._rx_data = 0
        self._draining = False

    def enable(self, rx: bool, tx: bool) -> None:
        """Switch the receive and transmitter-empty interrupts on or off.

        While the transmitter is enabled the transmitter-empty callback is
        raised again and again, as the hardware would, until it is disabled.
        """
        self.rx_enabled = bool(rx)
        self.tx_enabled = bool(tx)
        if self._draining:
            return
        self._draining = True
        try:
            while self.tx_enabled and self.on_transmitter_empty is not None:
                self.on_transmitter_empty()
        finally:
            self._draining = False

    def put_byte(self, byte: int) -> bool:
        """Send one byte on the line."""
        self.transmitted.append(byte & 0xFF)
        return True

    def get_byte(self) -> int:
        """Return the byte held in the receive data register."""
        return self._rx_data & 0xFF

    def feed(self, byte: int) -> None:
        """Deliver one byte from the line into the receive data register.

        The receive callback is raised only while reception is enabled;
        otherwise the byte just sits in the register.
        """
        if not 0 <= byte <= 0xFF:
            raise ValueError(f"a serial byte must be 0..255, got {byte}")
        self._rx_data = byte
        if self.rx_enabled and self.on_byte_received is not None:
            self.on_byte_received()


class Timer:
    """A restartable timer with a timeout given in 50 microsecond ticks."""

    def __init__(
        self,
        timeout_50us: int,
        on_expired: Callable[[], object] | None = None,
    ) -> None:
        if not 0 < timeout_50us <= 0xFFFF:
            raise ValueError(f"timeout must be 1..65535 ticks, got {timeout_50us}")
        self.timeout_50us = timeout_50us
        self.on_expired = on_expired
        self._running = False
        self._elapsed_us = 0

    @property
    def timeout_us(self) -> int:
        """The timeout in microseconds."""
        return self.timeout_50us * TIMER_TICK_US

    @property
    def running(self) -> bool:
        """Whether the timer is counting."""
        return self._running

    @property
    def elapsed_us(self) -> int:
        """Microseconds counted since the timer was last started or expired."""
        return self._elapsed_us

    def enable(self) -> None:
        """Reset the counter and start the timer."""
        self._elapsed_us = 0
        self._running = True

    def disable(self) -> None:
        """Stop the timer."""
        self._running = False

    def advance(self, microseconds: int) -> bool:
        """Let time pass; return True if the timer expired and fired."""
        if microseconds < 0:
            raise ValueError("time cannot run backwards")
        if not self._running:
            return False
        self._elapsed_us += microseconds
        if self._elapsed_us < self.timeout_us:
            return False
        self._elapsed_us = 0
        if self.on_expired is not None:
            self.on_expired()
        return True