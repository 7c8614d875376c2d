"""Single-slot event queue between the transport and the poll loop."""

from __future__ import annotations

from enum import Enum, auto


class EventType(Enum):
    """Events that drive the protocol stack."""

    READY = auto()
    FRAME_RECEIVED = auto()
    EXECUTE = auto()
    FRAME_SENT = auto()


class EventQueue:
    """Holds at most one pending event; posting replaces any earlier one."""

    def __init__(self) -> None:
        self._event: EventType | None = None

    def reset(self) -> None:
        """Drop any pending event."""
        self._event = None

    @property
    def pending(self) -> bool:
        """Whether an event is waiting to be taken."""
        return self._event is not None

    def post(self, event: EventType) -> bool:
        """Queue an event, replacing one that has not been taken yet."""
        self._event = event
        return True

    def get(self) -> EventType | None:
        """Take the pending event, or return None if there is none."""
        event, self._event = self._event, None
        return event