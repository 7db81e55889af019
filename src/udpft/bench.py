from __future__ import annotations

import os
import string
import tempfile
import threading
import time
from dataclasses import dataclass, field

from .constants import ACK_TIMEOUT_MS, CONTROL_TIMEOUT_MS, DEFAULT_THRESHOLD, EXIT_SUCCESS
from .client import Client
from .net import Impairment, UdpEndpoint
from .server import Server


@dataclass(frozen=True, slots=True)
class BenchmarkResult:
    ok: bool
    bytes_transferred: int
    duration_s: float
    throughput_mbps: float
    retransmits: int
    timeouts: int
    window_sizes: list[int] = field(default_factory=list)


def make_payload(size_bytes: int) -> str:
    alphabet = string.ascii_letters + string.digits + " \n"
    return "".join(alphabet[i % len(alphabet)] for i in range(size_bytes))


def run_benchmark(
    *,
    size_bytes: int,
    threshold: int = DEFAULT_THRESHOLD,
    loss_rate: float = 0.0,
    delay_ms: int = 0,
    ack_timeout_ms: int = ACK_TIMEOUT_MS,
    control_timeout_ms: int = CONTROL_TIMEOUT_MS,
) -> BenchmarkResult:
    """Transfer ``size_bytes`` of text between an in-process server and client.

    Loss is applied to the server's outbound datagrams only. Control messages
    are never retried, so a lossy run can end before the transfer completes.
    """
    payload = make_payload(size_bytes)

    with tempfile.TemporaryDirectory() as workdir:
        resource = os.path.join(workdir, "resource.txt")
        out_path = os.path.join(workdir, "received.txt")
        with open(resource, "w", encoding="utf-8", newline="") as f:
            f.write(payload)

        impair = Impairment(loss_rate=loss_rate, delay_ms=delay_ms)
        server_ep = UdpEndpoint.listening("127.0.0.1", 0, impairment=impair)
        server = Server(
            server_ep,
            root=workdir,
            control_timeout_ms=control_timeout_ms,
            ack_timeout_ms=ack_timeout_ms,
        )

        t = threading.Thread(target=server.serve, kwargs={"max_sessions": 1}, daemon=True)
        t.start()

        client_ep = UdpEndpoint.sending()
        start = time.monotonic()
        try:
            with open(out_path, "w", encoding="utf-8", newline="") as sink:
                status = Client(
                    client_ep,
                    server_ep.address,
                    "resource.txt",
                    sink,
                    threshold=threshold,
                    timeout_ms=control_timeout_ms,
                ).run()
        finally:
            client_ep.close()
        duration_s = max(0.001, time.monotonic() - start)

        t.join(timeout=control_timeout_ms / 1000.0 + 1.0)
        server_ep.close()

        with open(out_path, "r", encoding="utf-8", newline="") as f:
            received = f.read()

    metrics = server.last_transfer
    return BenchmarkResult(
        ok=status == EXIT_SUCCESS and received == payload,
        bytes_transferred=len(received),
        duration_s=duration_s,
        throughput_mbps=(len(received) * 8 / 1_000_000) / duration_s,
        retransmits=metrics.retransmits if metrics else 0,
        timeouts=metrics.timeouts if metrics else 0,
        window_sizes=list(metrics.window_sizes) if metrics else [],
    )
