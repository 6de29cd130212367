import socket
import logging
from typing import Dict, List, Mapping, Optional, Union

from .framer import parse_chunk
from .models import DecodedRequest, OutboundChunk

logger = logging.getLogger(__name__)


class ChunkReassembler:
    """
    Collects the chunks of one reply and rebuilds it.

    Chunks may arrive in any order; duplicates and chunks whose total
    disagrees with the first one seen are ignored.
    """

    def __init__(self):
        self._total: Optional[int] = None
        self._parts: Dict[int, bytes] = {}

    @property
    def total(self) -> Optional[int]:
        return self._total

    @property
    def complete(self) -> bool:
        return self._total is not None and len(self._parts) == self._total

    def missing(self) -> List[int]:
        """Indices not yet received, empty until the first chunk arrives."""
        if self._total is None:
            return []
        return [i for i in range(1, self._total + 1) if i not in self._parts]

    def offer(self, chunk: OutboundChunk) -> Optional[bytes]:
        """Store a chunk, returning the whole reply once every chunk is in."""
        if self._total is None:
            self._total = chunk.total
        if chunk.total != self._total or chunk.index in self._parts:
            return None
        self._parts[chunk.index] = chunk.payload
        if self.complete:
            return b"".join(self._parts[i] for i in range(1, self._total + 1))
        return None


class GatewayClient:
    """Sends requests to a UDP gateway and collects the replies."""

    def __init__(self, host: str = "localhost", port: int = 9050,
                 timeout: float = 5.0, chunked: bool = True,
                 buffer_size: int = 65535):
        """
        Initialize the client.

        Args:
            host: Gateway host
            port: Gateway UDP port
            timeout: Seconds to wait for each reply datagram
            chunked: Whether the gateway replies in chunked mode
            buffer_size: Receive buffer size
        """
        self._address = (host, port)
        self._timeout = timeout
        self._chunked = chunked
        self._buffer_size = buffer_size

    def send(self, data: bytes) -> bytes:
        """
        Send one datagram and return the reply payload.

        Raises:
            socket.timeout: if the reply, or any chunk of it, does not arrive
        """
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
            sock.settimeout(self._timeout)
            sock.sendto(data, self._address)
            if not self._chunked:
                reply, _ = sock.recvfrom(self._buffer_size)
                return reply

            reassembler = ChunkReassembler()
            while True:
                datagram, _ = sock.recvfrom(self._buffer_size)
                try:
                    chunk = parse_chunk(datagram)
                except ValueError as e:
                    logger.warning(f"Ignoring datagram: {e}")
                    continue
                reply = reassembler.offer(chunk)
                if reply is not None:
                    return reply

    def request(self, method: str, url: str,
                headers: Optional[Mapping[str, str]] = None,
                body: Union[bytes, str] = b"") -> str:
        """Send a request through the gateway and return the reply text."""
        reply = self.send(DecodedRequest.encode(method, url, headers, body))
        return reply.decode('utf-8', errors='replace')
