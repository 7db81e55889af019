from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TextIO

from .message import split_chunk

logger = logging.getLogger(__name__)


class ProtocolError(Exception):
    pass


class DuplicateChunkError(ProtocolError):
    def __init__(self, chunk_id: str):
        super().__init__(f"duplicate chunk id {chunk_id}")
        self.chunk_id = chunk_id


@dataclass(slots=True)
class ChunkReceiver:
    """Client-side reassembly of Data contents.

    ``received_ids`` lives as long as the receiver and is never cleared, so a
    single run can accept at most 10000 distinct chunks before an id repeats.
    Payloads are written in the order they arrive, not sorted by id.
    """

    sink: TextIO
    received_ids: set[str] = field(default_factory=set)
    chars_written: int = 0

    def accept(self, content: str) -> str | None:
        """Commit one chunk and return the id to acknowledge.

        Returns ``None`` for content too short to carry an id; such chunks are
        dropped without an ack. Raises ``DuplicateChunkError`` for a known id.
        """
        try:
            chunk_id, payload = split_chunk(content)
        except ValueError:
            logger.warning("dropping malformed chunk %r", content)
            return None

        if chunk_id in self.received_ids:
            raise DuplicateChunkError(chunk_id)

        self.sink.write(payload)
        self.sink.flush()
        self.received_ids.add(chunk_id)
        self.chars_written += len(payload)
        logger.debug("accepted chunk %s (%d chars)", chunk_id, len(payload))
        return chunk_id
