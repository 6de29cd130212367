import logging
from typing import List, Optional

from .exceptions import MalformedRequestLine, DecodeFailure
from .forwarder import HTTPForwarder
from .framer import ResponseFramer
from .models import DecodedRequest

logger = logging.getLogger(__name__)

INVALID_REQUEST_LINE = "Invalid request line"


class RequestHandler:
    """Handles processing of individual datagrams."""

    def __init__(self, forwarder: Optional[HTTPForwarder] = None,
                 framer: Optional[ResponseFramer] = None):
        """
        Initialize the request handler.

        Args:
            forwarder: Issues decoded requests over HTTP
            framer: Turns reply text into datagram payloads
        """
        self._forwarder = forwarder or HTTPForwarder()
        self._framer = framer or ResponseFramer()

    @property
    def framer(self) -> ResponseFramer:
        return self._framer

    def handle_datagram(self, data: bytes) -> List[bytes]:
        """Process one datagram and return the reply payloads in send order."""
        return self._framer.frame(self.handle_request(data))

    def handle_request(self, data: bytes) -> str:
        """
        Decode and forward one request, returning the reply text.

        Decoder and forwarder failures are turned into error text; nothing
        raised here reaches the listener loop.
        """
        try:
            request = DecodedRequest.from_raw_data(data)
        except MalformedRequestLine as e:
            logger.warning(f"Invalid request line: {e.line!r}")
            return INVALID_REQUEST_LINE
        except DecodeFailure as e:
            logger.error(f"Error while handling request: {e}")
            return f"Error parsing request: {e}"

        logger.debug(
            f"Parsed request: method={request.method} url={request.target} "
            f"headers={request.headers} body={request.body!r}"
        )
        try:
            return self._forwarder.forward(request).to_text()
        except Exception as e:
            logger.error(f"HTTP forwarding error: {e}")
            return f"HTTP request failed: {e}"
