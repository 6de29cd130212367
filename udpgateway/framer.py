"""
Framing of reply text into UDP payloads.

Chunked mode splits the encoded reply into pieces of at most ``chunk_size``
bytes, each sent as its own datagram behind a ``[CHUNK i/N]\\n`` header.
Chunks go out in order, back-to-back, with no acknowledgement or
retransmission. Receivers must cope with loss, duplication and reordering on
their own; the only completion signal is the ``N`` in every header.

Single-datagram mode sends the reply as one payload, silently truncated to
``max_datagram`` bytes.
"""

import logging
import math
import re
from typing import List

from .models import OutboundChunk

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1200
BUFFER_SIZE = 8192

_CHUNK_HEADER = re.compile(rb"\[CHUNK (\d+)/(\d+)\]\n")


class ResponseFramer:
    """Turns reply text into the datagrams sent back to a client."""

    def __init__(self, chunk_size: int = CHUNK_SIZE, chunked: bool = True,
                 max_datagram: int = BUFFER_SIZE):
        """
        Initialize the framer.

        Args:
            chunk_size: Maximum payload bytes per chunk
            chunked: Whether to use the chunk protocol
            max_datagram: Truncation limit in single-datagram mode
        """
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self._chunk_size = chunk_size
        self._chunked = chunked
        self._max_datagram = max_datagram

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    @property
    def chunked(self) -> bool:
        return self._chunked

    def split(self, data: bytes) -> List[OutboundChunk]:
        """Split data into consecutive chunks. Empty data gives one empty chunk."""
        total = max(1, math.ceil(len(data) / self._chunk_size))
        return [
            OutboundChunk(
                index=i + 1,
                total=total,
                payload=data[i * self._chunk_size:(i + 1) * self._chunk_size]
            )
            for i in range(total)
        ]

    def frame(self, text: str) -> List[bytes]:
        """Encode reply text as one or more datagram payloads, in send order."""
        data = text.encode('utf-8')
        if not self._chunked:
            if len(data) > self._max_datagram:
                logger.debug(f"Truncating reply of {len(data)} bytes to {self._max_datagram}")
            return [data[:self._max_datagram]]
        return [chunk.to_datagram() for chunk in self.split(data)]


def parse_chunk(datagram: bytes) -> OutboundChunk:
    """
    Parse a datagram produced in chunked mode.

    Raises:
        ValueError: if the header is missing or its numbers are inconsistent
    """
    match = _CHUNK_HEADER.match(datagram)
    if not match:
        raise ValueError("Datagram has no chunk header")
    index, total = int(match.group(1)), int(match.group(2))
    if total < 1 or not 1 <= index <= total:
        raise ValueError(f"Invalid chunk header: {index}/{total}")
    return OutboundChunk(index=index, total=total, payload=datagram[match.end():])
