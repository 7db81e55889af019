from __future__ import annotations

import enum
import logging
from typing import TextIO

from .constants import CONTROL_TIMEOUT_MS, DEFAULT_THRESHOLD, EXIT_ERROR, EXIT_SUCCESS
from .message import DecodeError, Message, MessageType
from .net import Address, TimedOut, TransportFailure, UdpEndpoint
from .receiver import ChunkReceiver, DuplicateChunkError, ProtocolError

logger = logging.getLogger(__name__)


class ClientPhase(enum.Enum):
    START = "start"
    AWAITING_WELCOME = "awaiting-welcome"
    AWAITING_DATA = "awaiting-data"
    TERMINATED = "terminated"


_PHASE_TYPES = {
    ClientPhase.START: frozenset(),
    ClientPhase.AWAITING_WELCOME: frozenset({MessageType.WELCOME, MessageType.ERROR}),
    ClientPhase.AWAITING_DATA: frozenset({MessageType.DATA, MessageType.END, MessageType.ERROR}),
    ClientPhase.TERMINATED: frozenset(),
}


class TransportError(ProtocolError):
    pass


class ServerError(ProtocolError):
    pass


class Client:
    """Fetches one resource from the server into ``sink``.

    ``run`` drives the whole exchange and returns a process exit status:
    EXIT_SUCCESS once End arrives, EXIT_ERROR for every other way the run can
    stop. The client never retries.
    """

    def __init__(
        self,
        udp: UdpEndpoint,
        server: Address,
        resource: str,
        sink: TextIO,
        threshold: int = DEFAULT_THRESHOLD,
        timeout_ms: int = CONTROL_TIMEOUT_MS,
    ):
        self.udp = udp
        self.server = server
        self.resource = resource
        self.threshold = threshold
        self.timeout_ms = timeout_ms
        self.receiver = ChunkReceiver(sink)
        self.phase = ClientPhase.START
        self.acks_sent = 0

    @property
    def expected(self) -> frozenset[MessageType]:
        return _PHASE_TYPES[self.phase]

    def run(self) -> int:
        try:
            self._send(Message.hello(self.threshold))
            self.phase = ClientPhase.AWAITING_WELCOME
            while True:
                message = self._receive()
                if self._handle(message):
                    logger.info("server ended the transfer; %d chars written", self.receiver.chars_written)
                    return EXIT_SUCCESS
        except ProtocolError as e:
            logger.error("terminating: %s", e)
            return EXIT_ERROR
        except OSError as e:
            logger.error("socket error, terminating: %s", e)
            return EXIT_ERROR
        finally:
            self.phase = ClientPhase.TERMINATED

    def _receive(self) -> Message:
        result = self.udp.receive(self.timeout_ms)
        if isinstance(result, TimedOut):
            raise TransportError(f"no message from server within {result.timeout_ms} ms")
        if isinstance(result, TransportFailure):
            raise TransportError(f"socket error: {result.error}")

        try:
            message = Message.from_bytes(result.data)
        except DecodeError as e:
            self._fail("Invalid message format")
            raise ProtocolError(f"malformed message: {e}") from e
        if message.content is None:
            self._fail("Invalid message format")
            raise ProtocolError("message without content")

        logger.debug("<- %s %r", message.type.value, message.content)
        return message

    def _handle(self, message: Message) -> bool:
        """Apply one message; returns True when the transfer is finished."""
        if message.type not in self.expected:
            self._fail(f"unexpected Messagetype: {message.type.value}")
            raise ProtocolError(f"unexpected {message.type.value} in phase {self.phase.value}")

        content = message.content or ""
        if message.type is MessageType.WELCOME:
            self._send(Message.request(self.resource))
            self.phase = ClientPhase.AWAITING_DATA
        elif message.type is MessageType.DATA:
            self._on_data(content)
        elif message.type is MessageType.END:
            return True
        elif message.type is MessageType.ERROR:
            raise ServerError(f"server reported an error: {content}")
        return False

    def _on_data(self, content: str) -> None:
        try:
            chunk_id = self.receiver.accept(content)
        except DuplicateChunkError as e:
            self._fail(f"Duplicate message received with ID: {e.chunk_id}")
            raise
        except OSError as e:
            self._fail(f"Error writing to file: {e}")
            raise ProtocolError(f"cannot write output: {e}") from e
        if chunk_id is not None:
            self._send(Message.ack(chunk_id))
            self.acks_sent += 1

    def _fail(self, reason: str) -> None:
        try:
            self._send(Message.error(reason))
        except OSError as e:
            logger.warning("could not deliver error to server: %s", e)

    def _send(self, message: Message) -> None:
        logger.debug("-> %s %r", message.type.value, message.content)
        self.udp.sendto(message.to_bytes(), self.server)
