from __future__ import annotations

import logging
import random
import socket
import time
from dataclasses import dataclass
from typing import Tuple, Union

from .constants import RECV_BUFSIZE

logger = logging.getLogger(__name__)

Address = Tuple[str, int]


@dataclass(frozen=True, slots=True)
class Impairment:
    loss_rate: float = 0.0
    delay_ms: int = 0

    def should_drop(self) -> bool:
        return self.loss_rate > 0 and random.random() < self.loss_rate

    def sleep_if_needed(self) -> None:
        if self.delay_ms > 0:
            time.sleep(self.delay_ms / 1000.0)


@dataclass(frozen=True, slots=True)
class Datagram:
    data: bytes
    addr: Address


@dataclass(frozen=True, slots=True)
class TimedOut:
    timeout_ms: int


@dataclass(frozen=True, slots=True)
class TransportFailure:
    error: OSError


ReceiveResult = Union[Datagram, TimedOut, TransportFailure]


class UdpEndpoint:
    def __init__(self, sock: socket.socket, impairment: Impairment | None = None):
        self.sock = sock
        self.impairment = impairment or Impairment()

    @classmethod
    def listening(
        cls,
        host: str,
        port: int,
        impairment: Impairment | None = None,
    ) -> "UdpEndpoint":
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        sock.bind((host, port))
        return cls(sock, impairment)

    @classmethod
    def sending(cls, impairment: Impairment | None = None) -> "UdpEndpoint":
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        return cls(sock, impairment)

    @property
    def address(self) -> Address:
        return self.sock.getsockname()

    @property
    def closed(self) -> bool:
        return self.sock.fileno() == -1

    def sendto(self, data: bytes, addr: Address) -> None:
        if self.impairment.should_drop():
            logger.debug("dropped outbound %d bytes to %s", len(data), addr)
            return
        self.impairment.sleep_if_needed()
        self.sock.sendto(data, addr)

    def receive(self, timeout_ms: int) -> ReceiveResult:
        """Wait up to ``timeout_ms`` for one datagram.

        Timeouts and socket errors are returned as values so the protocol
        loops can branch on them without exception-driven control flow.
        """
        try:
            self.sock.settimeout(timeout_ms / 1000.0)
            data, addr = self.sock.recvfrom(RECV_BUFSIZE)
        except socket.timeout:
            return TimedOut(timeout_ms)
        except OSError as e:
            return TransportFailure(e)
        return Datagram(data, addr)

    def close(self) -> None:
        self.sock.close()
