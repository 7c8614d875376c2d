"""Modbus TCP framing: MBAP header handling on top of a request/response port."""

from __future__ import annotations

from .errors import ErrorCode, ModbusError
from .events import EventQueue, EventType

MB_TCP_PSEUDO_ADDRESS = 255
DEFAULT_PORT = 502

MB_TCP_TID = 0
MB_TCP_PID = 2
MB_TCP_LEN = 4
MB_TCP_UID = 6
MB_TCP_FUNC = 7

MB_TCP_PROTOCOL_ID = 0


class TcpTransport:
    """TCP transport that takes whole request ADUs and records response ADUs.

    A request handed in with ``submit_request`` posts a FRAME_RECEIVED event.
    The header of the latest request is kept so that the reply can reuse its
    transaction, protocol and unit identifiers; only the length field changes.
    """

    def __init__(self, port: int = DEFAULT_PORT, events: EventQueue | None = None) -> None:
        if not 0 <= port <= 0xFFFF:
            raise ModbusError(ErrorCode.EPORTERR, f"cannot listen on TCP port {port}")
        self.port = port
        self.events = events if events is not None else EventQueue()
        self.responses: list[bytes] = []
        self.active = False
        self._request: bytes | None = None
        self._header: bytes | None = None

    def start(self) -> None:
        """Mark the transport active; requests are accepted as soon as the port is open."""
        self.active = True

    def stop(self) -> None:
        """Drop the client connection together with any request in progress."""
        self.active = False
        self._request = None
        self._header = None

    def submit_request(self, adu: bytes | bytearray) -> None:
        """Hand in a complete request ADU as read from a client."""
        data = bytes(adu)
        self._request = data
        self._header = data[:MB_TCP_FUNC]
        self.events.post(EventType.FRAME_RECEIVED)

    def receive(self) -> tuple[int, bytes]:
        """Return the pseudo address and the PDU of the pending request.

        Raises ModbusError with EIO if no request is pending, the request is
        too short or its protocol identifier is not Modbus.
        """
        request, self._request = self._request, None
        if request is None:
            raise ModbusError(ErrorCode.EIO, "no request pending")
        if len(request) <= MB_TCP_FUNC:
            raise ModbusError(ErrorCode.EIO, "request too short to hold a PDU")
        protocol_id = int.from_bytes(request[MB_TCP_PID : MB_TCP_PID + 2], "big")
        if protocol_id != MB_TCP_PROTOCOL_ID:
            raise ModbusError(ErrorCode.EIO, f"unknown protocol id {protocol_id}")
        return MB_TCP_PSEUDO_ADDRESS, request[MB_TCP_FUNC:]

    def send(self, address: int, pdu: bytes | bytearray) -> None:
        """Send a PDU behind the header of the request being answered.

        The address is not used by Modbus TCP. Raises ModbusError with EIO if
        there is no request to answer.
        """
        if self._header is None or len(self._header) < MB_TCP_FUNC:
            raise ModbusError(ErrorCode.EIO, "no client request to answer")
        length = (len(pdu) + 1) & 0xFFFF
        header = self._header
        adu = (
            header[MB_TCP_TID:MB_TCP_LEN]
            + length.to_bytes(2, "big")
            + header[MB_TCP_UID:MB_TCP_FUNC]
            + bytes(pdu)
        )
        self.responses.append(adu)