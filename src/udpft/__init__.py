"""UDP File Transfer (udpft)

A single-session file server and client speaking a small JSON message protocol
over UDP datagrams:
- explicit handshake and per-phase message type gating
- sliding window with per-chunk acknowledgments, doubling on clean rounds
  and resetting to one after a timeout
- duplicate detection and in-arrival-order reassembly on the client
"""

__all__ = []
