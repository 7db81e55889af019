from __future__ import annotations

import enum
from dataclasses import dataclass, field

from .constants import DEFAULT_THRESHOLD
from .message import Message, MessageType
from .net import Address

IDLE_TYPES = frozenset({MessageType.HELLO, MessageType.ERROR})
REQUEST_TYPES = frozenset({MessageType.REQUEST_DATA, MessageType.ERROR})
TRANSFER_TYPES = frozenset({MessageType.ACK, MessageType.ERROR})


class Phase(enum.Enum):
    IDLE = "idle"
    AWAITING_REQUEST = "awaiting-request"
    TRANSFERRING = "transferring"


_PHASE_TYPES = {
    Phase.IDLE: IDLE_TYPES,
    Phase.AWAITING_REQUEST: REQUEST_TYPES,
    Phase.TRANSFERRING: TRANSFER_TYPES,
}


@dataclass(slots=True)
class ServerSession:
    """State of the one client the server is talking to.

    The window fields (``window_size``, ``in_flight``, ``unacked``) are only
    touched by the sender while a transfer is running.
    """

    remote: Address | None = None
    phase: Phase = Phase.IDLE
    expected: frozenset[MessageType] = IDLE_TYPES
    threshold: int = DEFAULT_THRESHOLD
    window_size: int = 1
    in_flight: list[tuple[str, Message]] = field(default_factory=list)
    unacked: set[str] = field(default_factory=set)

    @property
    def bound(self) -> bool:
        return self.remote is not None

    def is_foreign(self, addr: Address) -> bool:
        return self.remote is not None and addr != self.remote

    def bind(self, addr: Address) -> None:
        self.remote = addr

    def advance(self, phase: Phase) -> None:
        self.phase = phase
        self.expected = _PHASE_TYPES[phase]

    def acknowledge(self, chunk_id: str) -> bool:
        if chunk_id in self.unacked:
            self.unacked.discard(chunk_id)
            return True
        return False

    def clear_round(self) -> None:
        self.in_flight.clear()
        self.unacked.clear()

    def reset(self) -> None:
        self.remote = None
        self.advance(Phase.IDLE)
        self.threshold = DEFAULT_THRESHOLD
        self.window_size = 1
        self.clear_round()
