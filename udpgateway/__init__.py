"""
A UDP-to-HTTP gateway: HTTP requests arrive as single datagrams and the
responses go back over UDP, split into chunks when they are large.
"""

from .server import GatewayServer
from .handler import RequestHandler
from .forwarder import HTTPForwarder
from .framer import ResponseFramer, parse_chunk
from .models import DecodedRequest, ForwardResult, OutboundChunk
from .client import GatewayClient, ChunkReassembler
from .config import GatewayConfig
from .exceptions import (
    GatewayError, MalformedRequestLine, DecodeFailure,
    ForwardFailure, ForwardTimeout, SocketFatal
)

__all__ = [
    'GatewayServer', 'RequestHandler', 'HTTPForwarder', 'ResponseFramer', 'parse_chunk',
    'DecodedRequest', 'ForwardResult', 'OutboundChunk', 'GatewayClient', 'ChunkReassembler',
    'GatewayConfig', 'GatewayError', 'MalformedRequestLine', 'DecodeFailure',
    'ForwardFailure', 'ForwardTimeout', 'SocketFatal'
]
