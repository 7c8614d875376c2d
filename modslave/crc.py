"""CRC-16 checksum used by Modbus RTU frames."""

from __future__ import annotations

from collections.abc import Iterable


def _build_table() -> tuple[int, ...]:
    table = []
    for byte in range(256):
        crc = byte
        for _ in range(8):
            crc = (crc >> 1) ^ 0xA001 if crc & 1 else crc >> 1
        table.append(crc)
    return tuple(table)


_TABLE = _build_table()


def crc16(data: bytes | bytearray | Iterable[int]) -> int:
    """Return the Modbus CRC-16 of data.

    The low byte of the result is sent first on the wire. A frame followed by
    its own checksum yields zero.
    """
    crc = 0xFFFF
    for byte in data:
        crc = (crc >> 8) ^ _TABLE[(crc ^ byte) & 0xFF]
    return crc