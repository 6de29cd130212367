import logging

import requests
from urllib3.exceptions import ReadTimeoutError

from .exceptions import ForwardFailure, ForwardTimeout
from .models import DecodedRequest, ForwardResult, split_lines

logger = logging.getLogger(__name__)

BODY_METHODS = frozenset(['POST', 'PUT', 'PATCH'])


class HTTPForwarder:
    """Issues decoded requests to their target URL over HTTP."""

    def __init__(self, connect_timeout: float = 5.0, read_timeout: float = 10.0):
        """
        Initialize the forwarder.

        Args:
            connect_timeout: Seconds allowed to establish the connection
            read_timeout: Seconds allowed between bytes of the response
        """
        self._connect_timeout = connect_timeout
        self._read_timeout = read_timeout

    @property
    def timeout(self):
        return (self._connect_timeout, self._read_timeout)

    def forward(self, request: DecodedRequest) -> ForwardResult:
        """
        Forward the request and capture the response.

        Never raises: transport and protocol errors come back as a failed
        ForwardResult.
        """
        try:
            return self._send(request)
        except ForwardFailure as e:
            logger.error(f"HTTP forwarding error: {e}")
            return ForwardResult.failed(e)

    def _send(self, request: DecodedRequest) -> ForwardResult:
        logger.info(f"Forwarding HTTP request: {request.method} {request.target}")

        data = None
        if request.body and request.method.upper() in BODY_METHODS:
            data = request.body
            logger.debug(f"Sending body: {request.body!r}")

        try:
            # Module-level call: a fresh session and connection per request
            with requests.request(
                request.method,
                request.target,
                headers=dict(request.headers),
                data=data,
                timeout=self.timeout,
                stream=True
            ) as response:
                status_code = response.status_code
                content = response.content
        except requests.exceptions.Timeout as e:
            raise ForwardTimeout(str(e)) from e
        except requests.ConnectionError as e:
            # A stall while reading the body surfaces as a wrapped ReadTimeoutError
            if e.args and isinstance(e.args[0], ReadTimeoutError):
                raise ForwardTimeout(str(e)) from e
            raise ForwardFailure(str(e)) from e
        except requests.RequestException as e:
            raise ForwardFailure(str(e)) from e
        except Exception as e:
            raise ForwardFailure(str(e)) from e

        body = content.decode('utf-8', errors='replace')
        logger.info(f"HTTP response status: {status_code}")
        return ForwardResult(
            status_code=status_code,
            body_text='\n'.join(split_lines(body))
        )
