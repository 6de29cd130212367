from typing import Optional


class GatewayError(Exception):
    """Base class for all gateway errors."""


class MalformedRequestLine(GatewayError):
    """The first line of a datagram is missing or has no space in it."""

    def __init__(self, line: Optional[str] = None):
        self.line = line
        super().__init__(f"Invalid request line: {line!r}")


class DecodeFailure(GatewayError):
    """Any other error raised while decoding a datagram."""


class ForwardFailure(GatewayError):
    """The outbound HTTP call could not be completed."""


class ForwardTimeout(ForwardFailure):
    """The outbound HTTP call exceeded its connect or read timeout."""


class SocketFatal(GatewayError):
    """Bind or I/O error on the UDP socket. Stops the listener loop."""
