from __future__ import annotations

import argparse
import json
import logging
from dataclasses import asdict

from .bench import run_benchmark
from .client import Client
from .constants import (
    ACK_TIMEOUT_MS,
    CONTROL_TIMEOUT_MS,
    DEFAULT_OUTPUT,
    DEFAULT_RESOURCE,
    DEFAULT_THRESHOLD,
    EXIT_ERROR,
    EXIT_SUCCESS,
    SERVER_HOST,
    SERVER_PORT,
)
from .net import Impairment, UdpEndpoint
from .server import Server

logger = logging.getLogger(__name__)


def cmd_serve(args: argparse.Namespace) -> int:
    impair = Impairment(args.loss_rate, args.delay_ms)
    try:
        udp = UdpEndpoint.listening(args.host, args.port, impairment=impair)
    except OSError as e:
        logger.error("cannot bind %s:%d: %s", args.host, args.port, e)
        return EXIT_ERROR

    server = Server(
        udp,
        root=args.root,
        control_timeout_ms=args.control_timeout_ms,
        ack_timeout_ms=args.ack_timeout_ms,
    )
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("interrupted; shutting down")
    finally:
        udp.close()
    return EXIT_SUCCESS


def cmd_fetch(args: argparse.Namespace) -> int:
    udp = UdpEndpoint.sending()
    try:
        with open(args.out, "w", encoding="utf-8", newline="") as sink:
            client = Client(
                udp,
                (args.server_host, args.server_port),
                args.resource,
                sink,
                threshold=args.threshold,
                timeout_ms=args.timeout_ms,
            )
            return client.run()
    finally:
        udp.close()


def cmd_bench(args: argparse.Namespace) -> int:
    r = run_benchmark(
        size_bytes=args.size_bytes,
        threshold=args.threshold,
        loss_rate=args.loss_rate,
        delay_ms=args.delay_ms,
    )
    payload = {"role": "bench", **asdict(r)}
    print(json.dumps(payload, indent=2) if args.json else payload)
    return EXIT_SUCCESS if r.ok else EXIT_ERROR


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="udpft", description="Windowed file transfer over UDP.")
    p.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
    sub = p.add_subparsers(dest="cmd", required=True)

    serve = sub.add_parser("serve", help="serve files to one client at a time")
    serve.add_argument("--host", default=SERVER_HOST)
    serve.add_argument("--port", type=int, default=SERVER_PORT)
    serve.add_argument("--root", default=".", help="directory requested names are resolved against")
    serve.add_argument("--control-timeout-ms", type=int, default=CONTROL_TIMEOUT_MS)
    serve.add_argument("--ack-timeout-ms", type=int, default=ACK_TIMEOUT_MS)
    serve.add_argument("--loss-rate", type=float, default=0.0, help="simulate outbound datagram loss")
    serve.add_argument("--delay-ms", type=int, default=0, help="simulate outbound send delay")
    serve.set_defaults(func=cmd_serve)

    fetch = sub.add_parser("fetch", help="download a resource from the server")
    fetch.add_argument("--server-host", default=SERVER_HOST)
    fetch.add_argument("--server-port", type=int, default=SERVER_PORT)
    fetch.add_argument("--resource", default=DEFAULT_RESOURCE)
    fetch.add_argument("--out", default=DEFAULT_OUTPUT)
    fetch.add_argument("--threshold", type=int, default=DEFAULT_THRESHOLD)
    fetch.add_argument("--timeout-ms", type=int, default=CONTROL_TIMEOUT_MS)
    fetch.set_defaults(func=cmd_fetch)

    bench = sub.add_parser("bench", help="loopback transfer benchmark")
    bench.add_argument("--size-bytes", type=int, default=100_000)
    bench.add_argument("--threshold", type=int, default=DEFAULT_THRESHOLD)
    bench.add_argument("--loss-rate", type=float, default=0.0)
    bench.add_argument("--delay-ms", type=int, default=0)
    bench.add_argument("--json", action="store_true")
    bench.set_defaults(func=cmd_bench)

    return p


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(levelname)s] %(message)s",
    )
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
