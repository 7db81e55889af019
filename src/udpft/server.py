from __future__ import annotations

import logging
import os
import re
from pathlib import Path

from .constants import ACK_TIMEOUT_MS, CONTROL_TIMEOUT_MS, ID_WIDTH, MAX_THRESHOLD, MIN_THRESHOLD
from .message import DecodeError, Message, MessageType
from .net import Address, Datagram, TimedOut, TransportFailure, UdpEndpoint
from .sender import TransferMetrics, WindowSender
from .session import Phase, ServerSession

logger = logging.getLogger(__name__)

BUSY_REASON = "The server is in a session with another client. Try again later."


def parse_threshold(text: str) -> int:
    """Parse a Hello payload into a window threshold in [1, 50]."""
    stripped = text.strip()
    if not re.fullmatch(r"\+?[0-9]+", stripped):
        raise ValueError("The content is not a valid integer")
    value = int(stripped)
    if not MIN_THRESHOLD <= value <= MAX_THRESHOLD:
        raise ValueError(f"Threshold not within {MIN_THRESHOLD}-{MAX_THRESHOLD} range")
    return value


class Server:
    """Single-session file server.

    Serves one client at a time: Hello binds the session, RequestData runs a
    windowed transfer to completion, and End/Error/any violation returns the
    server to idle, ready for the next Hello.
    """

    def __init__(
        self,
        udp: UdpEndpoint,
        root: str | os.PathLike[str] = ".",
        control_timeout_ms: int = CONTROL_TIMEOUT_MS,
        ack_timeout_ms: int = ACK_TIMEOUT_MS,
    ):
        self.udp = udp
        self.root = Path(root)
        self.control_timeout_ms = control_timeout_ms
        self.ack_timeout_ms = ack_timeout_ms
        self.session = ServerSession()
        self.sessions_closed = 0
        self.last_transfer: TransferMetrics | None = None

    def serve_forever(self) -> None:
        self.serve()

    def serve(self, max_sessions: int | None = None) -> None:
        """Serve until ``max_sessions`` more sessions have ended (forever if None)."""
        target = None if max_sessions is None else self.sessions_closed + max_sessions
        logger.info("serving %s from %s", self.udp.address, self.root)
        while not self.udp.closed and (target is None or self.sessions_closed < target):
            self.serve_once()

    def serve_once(self) -> None:
        result = self.udp.receive(self.control_timeout_ms)
        if isinstance(result, TimedOut):
            if self.session.bound:
                logger.warning("timed out waiting for %s", self.session.remote)
                self._fail(self.session.remote, "Timeout occurred while waiting for a message.")
            return
        if isinstance(result, TransportFailure):
            logger.error("socket error: %s", result.error)
            if self.session.bound:
                self._fail(self.session.remote, f"Socket error: {result.error}")
            return
        self.handle(result)

    def handle(self, dgram: Datagram) -> None:
        """Run one inbound datagram through the session state machine."""
        addr = dgram.addr
        session = self.session

        if session.is_foreign(addr):
            logger.warning("busy with %s; rejecting %s", session.remote, addr)
            self._notify(addr, BUSY_REASON)
            return

        try:
            message = Message.from_bytes(dgram.data)
        except DecodeError as e:
            self._reject_malformed(addr, f"Invalid message format: {e}")
            return
        if message.content is None:
            self._reject_malformed(addr, "Invalid message format: missing content")
            return

        logger.debug("<- %s %s %r", addr, message.type.value, message.content)

        if message.type not in session.expected:
            logger.warning("unexpected %s from %s in phase %s", message.type.value, addr, session.phase.value)
            self._fail(addr, f"unexpected Messagetype: {message.type.value}")
            return

        if message.type is MessageType.HELLO:
            self._on_hello(message.content, addr)
        elif message.type is MessageType.REQUEST_DATA:
            self._on_request(message.content, addr)
        elif message.type is MessageType.ACK:
            self._on_ack(message.content)
        elif message.type is MessageType.ERROR:
            logger.warning("error from %s: %s", addr, message.content)
            self._end_session()

    def _on_hello(self, content: str, addr: Address) -> None:
        self.session.bind(addr)
        logger.info("session started with %s", addr)
        try:
            threshold = parse_threshold(content)
        except ValueError as e:
            self._fail(addr, str(e))
            return
        self.session.threshold = threshold
        logger.info("threshold for %s: %d", addr, threshold)
        self._send(Message.welcome(), addr)
        self.session.advance(Phase.AWAITING_REQUEST)

    def _on_request(self, name: str, addr: Address) -> None:
        path = self.root / name
        try:
            found = bool(name) and path.is_file()
        except (OSError, ValueError) as e:
            logger.warning("cannot stat resource %r: %s", name, e)
            found = False
        if not found:
            logger.warning("resource %r not found", name)
            self._fail(addr, f"Data '{name}' not found.")
            return

        self.session.advance(Phase.TRANSFERRING)
        logger.info("sending %s to %s", path, addr)
        try:
            with open(path, "r", encoding="utf-8", newline="") as source:
                sender = WindowSender(
                    self.udp,
                    self.session,
                    source,
                    dispatch=self.handle,
                    abort=lambda reason: self._fail(addr, reason),
                    ack_timeout_ms=self.ack_timeout_ms,
                )
                metrics = sender.run()
        except (OSError, UnicodeDecodeError) as e:
            logger.error("transfer of %s failed: %s", path, e)
            self._fail(addr, f"Error reading file: {e}")
            return

        self.last_transfer = metrics
        if not metrics.completed:
            return
        logger.info(
            "sent %s: %d chunks, %d retransmits, windows %s",
            name,
            metrics.chunks_sent,
            metrics.retransmits,
            metrics.window_sizes,
        )
        self._send(Message.end(), addr)
        self._end_session()

    def _on_ack(self, content: str) -> None:
        chunk_id = content[:ID_WIDTH]
        if len(chunk_id) < ID_WIDTH:
            logger.debug("ignoring short ack %r", content)
        elif self.session.acknowledge(chunk_id):
            logger.debug("ack %s", chunk_id)
        else:
            logger.debug("ack for unknown id %s", chunk_id)

    def _reject_malformed(self, addr: Address, reason: str) -> None:
        logger.warning("%s from %s", reason, addr)
        self._notify(addr, reason)
        if self.session.remote == addr:
            self._end_session()

    def _fail(self, addr: Address, reason: str) -> None:
        self._notify(addr, reason)
        self._end_session()

    def _end_session(self) -> None:
        if self.session.bound:
            logger.info("session ended with %s", self.session.remote)
            self.sessions_closed += 1
        self.session.reset()

    def _notify(self, addr: Address, reason: str) -> None:
        try:
            self._send(Message.error(reason), addr)
        except OSError as e:
            logger.warning("could not deliver error to %s: %s", addr, e)

    def _send(self, message: Message, addr: Address) -> None:
        logger.debug("-> %s %s %r", addr, message.type.value, message.content)
        self.udp.sendto(message.to_bytes(), addr)
