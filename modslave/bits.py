"""Reading and writing bit fields packed into a byte buffer."""

from __future__ import annotations

_BITS_PER_BYTE = 8


def _check_width(n_bits: int) -> None:
    if not 0 <= n_bits <= _BITS_PER_BYTE:
        raise ValueError(f"bit field width must be 0..8, got {n_bits}")


def _load_word(buf: bytes | bytearray, byte_offset: int) -> int:
    if byte_offset >= len(buf):
        raise IndexError("bit offset lies past the end of the buffer")
    word = buf[byte_offset]
    if byte_offset + 1 < len(buf):
        word |= buf[byte_offset + 1] << _BITS_PER_BYTE
    return word


def set_bits(buf: bytearray, bit_offset: int, n_bits: int, value: int) -> None:
    """Write the low bits of value into buf starting at bit_offset.

    The value is shifted into place and OR-ed over the cleared field; bits of
    value above n_bits are not masked off.
    """
    _check_width(n_bits)
    if not 0 <= value <= 0xFF:
        raise ValueError(f"value must fit in one byte, got {value}")
    byte_offset, pre_bits = divmod(bit_offset, _BITS_PER_BYTE)
    mask = (((1 << n_bits) - 1) << pre_bits) & 0xFFFF
    word = _load_word(buf, byte_offset)
    word = ((word & ~mask) | (value << pre_bits)) & 0xFFFF

    buf[byte_offset] = word & 0xFF
    high = word >> _BITS_PER_BYTE
    if byte_offset + 1 < len(buf):
        buf[byte_offset + 1] = high
    elif high:
        raise IndexError("bit field extends past the end of the buffer")


def get_bits(buf: bytes | bytearray, bit_offset: int, n_bits: int) -> int:
    """Return the n_bits wide field of buf starting at bit_offset."""
    _check_width(n_bits)
    byte_offset, pre_bits = divmod(bit_offset, _BITS_PER_BYTE)
    mask = (1 << n_bits) - 1
    word = _load_word(buf, byte_offset)
    return ((word >> pre_bits) & mask) & 0xFF