from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, TextIO

from .constants import ACK_TIMEOUT_MS, CHUNK_SIZE
from .message import Message, format_chunk_id
from .net import Address, Datagram, TimedOut, TransportFailure, UdpEndpoint
from .session import Phase, ServerSession

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TransferMetrics:
    chunks_sent: int = 0
    chars_sent: int = 0
    timeouts: int = 0
    retransmits: int = 0
    window_sizes: list[int] = field(default_factory=list)
    completed: bool = False
    start_ts: float = field(default_factory=time.monotonic)
    end_ts: float | None = None

    @property
    def duration_s(self) -> float:
        if self.end_ts is None:
            return 0.0
        return max(0.0, self.end_ts - self.start_ts)


@dataclass(slots=True)
class WindowSender:
    """Pushes one resource to the bound client, round by round.

    Each round sends up to ``window_size`` chunks and then waits until every
    one of them is acknowledged. A clean round doubles the window (never past
    the client's threshold); a round that saw a timeout leaves it at one.

    Inbound datagrams are handed to ``dispatch`` so that acks, errors and
    protocol violations go through the server's normal handling. If that
    handling ends the session, the transfer stops.
    """

    udp: UdpEndpoint
    session: ServerSession
    source: TextIO
    dispatch: Callable[[Datagram], None]
    abort: Callable[[str], None]
    ack_timeout_ms: int = ACK_TIMEOUT_MS
    chunk_size: int = CHUNK_SIZE

    def run(self) -> TransferMetrics:
        metrics = TransferMetrics()
        session = self.session
        dest = session.remote
        if dest is None:
            raise RuntimeError("sender needs a bound session")

        session.window_size = 1
        next_id = 0
        exhausted = False

        while not exhausted:
            if session.window_size > session.threshold:
                logger.debug("window %d clamped to threshold %d", session.window_size, session.threshold)
                session.window_size = session.threshold

            session.clear_round()
            for _ in range(session.window_size):
                payload = self.source.read(self.chunk_size)
                if not payload:
                    exhausted = True
                    break
                chunk_id = format_chunk_id(next_id)
                next_id += 1
                msg = Message.data(chunk_id, payload)
                self._send(msg, dest)
                session.in_flight.append((chunk_id, msg))
                session.unacked.add(chunk_id)
                metrics.chunks_sent += 1
                metrics.chars_sent += len(payload)

            if not session.in_flight:
                break

            metrics.window_sizes.append(session.window_size)
            logger.debug("round %d: %d chunk(s) in flight", len(metrics.window_sizes), len(session.in_flight))

            lossy = False
            while session.unacked:
                result = self.udp.receive(self.ack_timeout_ms)
                if isinstance(result, TimedOut):
                    lossy = True
                    metrics.timeouts += 1
                    session.window_size = 1
                    metrics.retransmits += self._resend(dest)
                    continue
                if isinstance(result, TransportFailure):
                    self.abort(f"socket error while waiting for acks: {result.error}")
                    return self._finish(metrics)

                self.dispatch(result)
                if session.phase is not Phase.TRANSFERRING:
                    logger.warning("transfer to %s interrupted", dest)
                    return self._finish(metrics)

            if not lossy:
                session.window_size *= 2

        session.clear_round()
        metrics.completed = True
        return self._finish(metrics)

    def _resend(self, dest: Address) -> int:
        """Resend still-unacked chunks of this round, at most one window's worth."""
        sent = 0
        for chunk_id, msg in self.session.in_flight:
            if sent >= self.session.window_size:
                break
            if chunk_id in self.session.unacked:
                logger.warning("ack timeout; resending chunk %s", chunk_id)
                self._send(msg, dest)
                sent += 1
        return sent

    def _send(self, msg: Message, dest: Address) -> None:
        logger.debug("-> %s Data %s", dest, msg.content[:4])
        self.udp.sendto(msg.to_bytes(), dest)

    @staticmethod
    def _finish(metrics: TransferMetrics) -> TransferMetrics:
        metrics.end_ts = time.monotonic()
        return metrics
