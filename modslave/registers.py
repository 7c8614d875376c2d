"""In-memory register, coil and discrete-input storage served by the slave."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .errors import ErrorCode, ModbusError

log = logging.getLogger(__name__)

REG_INPUT_SIZE = 10
REG_HOLD_SIZE = 10
REG_COILS_SIZE = 10
REG_DISC_SIZE = 10

_DEFAULT_BITS = (1, 1, 1, 1, 0, 0, 0, 0, 1, 1)


def _start_index(size: int, address: int, count: int) -> int:
    """Turn a 1-based register address into a list index, checking the range."""
    index = (address - 1) & 0xFFFF
    if index + count > size:
        raise ModbusError(
            ErrorCode.ENOREG,
            f"addresses {address}..{address + count - 1} are outside 1..{size}",
        )
    return index


def _packed_size(count: int) -> int:
    return (count - 1) // 8 + 1 if count > 0 else 1


def _pack_bits(values: list[int], index: int, count: int) -> bytes:
    out = bytearray(_packed_size(count))
    for offset, value in enumerate(values[index : index + count]):
        if value:
            out[offset // 8] |= 1 << (offset % 8)
    return bytes(out)


def _pack_words(values: list[int], index: int, count: int) -> bytes:
    return b"".join(
        (value & 0xFFFF).to_bytes(2, "big") for value in values[index : index + count]
    )


@dataclass
class RegisterBank:
    """Ten input registers, holding registers, coils and discrete inputs.

    Addresses are 1-based, as they arrive from the function handlers. Every
    read of the discrete inputs inverts all of them afterwards when
    ``toggle_discrete`` is set, simulating inputs that change over time.
    """

    input_registers: list[int] = field(default_factory=lambda: [0] * REG_INPUT_SIZE)
    holding_registers: list[int] = field(default_factory=lambda: [0] * REG_HOLD_SIZE)
    coils: list[int] = field(default_factory=lambda: list(_DEFAULT_BITS))
    discrete_inputs: list[int] = field(default_factory=lambda: list(_DEFAULT_BITS))
    toggle_discrete: bool = True

    def read_input(self, address: int, count: int) -> bytes:
        """Return count input registers as big-endian words."""
        index = _start_index(len(self.input_registers), address, count)
        return _pack_words(self.input_registers, index, count)

    def read_holding(self, address: int, count: int) -> bytes:
        """Return count holding registers as big-endian words."""
        index = _start_index(len(self.holding_registers), address, count)
        return _pack_words(self.holding_registers, index, count)

    def write_holding(self, address: int, data: bytes | bytearray) -> None:
        """Store big-endian words from data into consecutive holding registers."""
        if len(data) % 2:
            raise ValueError("register data must hold whole 16-bit words")
        count = len(data) // 2
        index = _start_index(len(self.holding_registers), address, count)
        for offset in range(count):
            word = data[2 * offset : 2 * offset + 2]
            self.holding_registers[index + offset] = int.from_bytes(word, "big")
        if count:
            value = self.holding_registers[index]
            signed = value - 0x10000 if value & 0x8000 else value
            log.debug("holding register write: %d %d", address, signed)

    def read_coils(self, address: int, count: int) -> bytes:
        """Return count coils packed eight to a byte, lowest address first."""
        index = _start_index(len(self.coils), address, count)
        return _pack_bits(self.coils, index, count)

    def write_coils(self, address: int, count: int, data: bytes | bytearray) -> None:
        """Set count coils from bits packed eight to a byte in data."""
        index = _start_index(len(self.coils), address, count)
        if len(data) < (count + 7) // 8:
            raise ValueError(f"{count} coils need {(count + 7) // 8} bytes of data")
        for offset in range(count):
            self.coils[index + offset] = (data[offset // 8] >> (offset % 8)) & 1

    def read_discrete(self, address: int, count: int) -> bytes:
        """Return count discrete inputs packed eight to a byte."""
        index = _start_index(len(self.discrete_inputs), address, count)
        packed = _pack_bits(self.discrete_inputs, index, count)
        if self.toggle_discrete:
            self.discrete_inputs = [0 if bit else 1 for bit in self.discrete_inputs]
        return packed