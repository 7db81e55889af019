from __future__ import annotations

from collections import deque

import pytest

from udpft.message import Message
from udpft.net import Datagram, TimedOut

SERVER = ("127.0.0.1", 32000)
CLIENT = ("127.0.0.1", 40001)
OTHER = ("127.0.0.1", 40002)


class ScriptedEndpoint:
    """In-memory stand-in for UdpEndpoint.

    ``receive`` pops pre-scripted results in order and reports a timeout once
    the script runs out. Everything sent is decoded and kept in ``sent``.
    """

    def __init__(self, address=SERVER):
        self.address = address
        self.closed = False
        self.inbox = deque()
        self.sent: list[tuple[Message, tuple[str, int]]] = []
        self.waits: list[int] = []

    def feed(self, *items) -> None:
        self.inbox.extend(items)

    def receive(self, timeout_ms: int):
        self.waits.append(timeout_ms)
        if not self.inbox:
            return TimedOut(timeout_ms)
        return self.inbox.popleft()

    def sendto(self, data: bytes, addr) -> None:
        self.sent.append((Message.from_bytes(data), addr))

    def close(self) -> None:
        self.closed = True

    def sent_messages(self, to=None) -> list[Message]:
        return [m for m, a in self.sent if to is None or a == to]


def dgram(message: Message, addr=CLIENT) -> Datagram:
    return Datagram(message.to_bytes(), addr)


def raw(data: bytes, addr=CLIENT) -> Datagram:
    return Datagram(data, addr)


@pytest.fixture
def endpoint() -> ScriptedEndpoint:
    return ScriptedEndpoint()
