import socket
import threading
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Tuple

from .config import GatewayConfig
from .exceptions import SocketFatal
from .forwarder import HTTPForwarder
from .framer import ResponseFramer
from .handler import RequestHandler

logger = logging.getLogger(__name__)


class GatewayServer:
    """Listener loop for the UDP-to-HTTP gateway."""

    def __init__(self, host: str = "0.0.0.0", port: int = 9050,
                 handler: RequestHandler = None, buffer_size: int = 8192,
                 max_workers: int = 8, poll_interval: float = 0.5):
        """
        Initialize the gateway server.

        Args:
            host: Host address to bind the UDP socket
            port: Port number to listen on, 0 for an ephemeral port
            handler: Turns each datagram into reply payloads
            buffer_size: Receive buffer size; longer datagrams are truncated
            max_workers: Requests processed at once, 0 for a serial loop
            poll_interval: Seconds between checks for shutdown while idle
        """
        self._host = host
        self._port = port
        self._handler = handler or RequestHandler()
        self._buffer_size = buffer_size
        self._max_workers = max_workers
        self._poll_interval = poll_interval

        self._socket: Optional[socket.socket] = None
        self._send_lock = threading.Lock()
        self._slots = threading.BoundedSemaphore(max_workers) if max_workers > 0 else None
        self._fatal: Optional[SocketFatal] = None
        self._running = False
        self._stopped = threading.Event()
        self._stopped.set()

    @classmethod
    def from_config(cls, config: GatewayConfig) -> 'GatewayServer':
        """Build a server and its collaborators from configuration."""
        forwarder = HTTPForwarder(
            connect_timeout=config.get("connect_timeout"),
            read_timeout=config.get("read_timeout")
        )
        framer = ResponseFramer(
            chunk_size=config.get("chunk_size"),
            chunked=config.get("chunked"),
            max_datagram=config.get("buffer_size")
        )
        return cls(
            host=config.get("host"),
            port=config.get("port"),
            handler=RequestHandler(forwarder, framer),
            buffer_size=config.get("buffer_size"),
            max_workers=config.get("max_workers")
        )

    @property
    def host(self) -> str:
        """Get the host address."""
        return self._host

    @property
    def port(self) -> int:
        """Get the configured port number."""
        return self._port

    @property
    def server_address(self) -> Tuple[str, int]:
        """Get the address the socket is bound to."""
        if self._socket is None:
            raise RuntimeError("Server socket is not open")
        return self._socket.getsockname()[:2]

    @property
    def server_socket(self) -> Optional[socket.socket]:
        """Get the server socket, None while closed."""
        return self._socket

    @property
    def running(self) -> bool:
        return self._running

    def open(self) -> None:
        """Create and bind the UDP socket. Does nothing if already open."""
        if self._socket is not None:
            return
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            sock.bind((self._host, self._port))
        except OSError as e:
            sock.close()
            raise SocketFatal(f"Cannot bind {self._host}:{self._port}: {e}") from e
        sock.settimeout(self._poll_interval)
        self._socket = sock
        logger.info(f"UDP gateway bound to {self.server_address[0]}:{self.server_address[1]}")

    def close(self) -> None:
        """Release the UDP socket."""
        if self._socket is not None:
            self._socket.close()
            self._socket = None

    def __enter__(self) -> 'GatewayServer':
        self.open()
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.shutdown()
        # A loop running in another thread closes the socket once in-flight replies are sent
        self._stopped.wait()
        self.close()

    def start(self) -> None:
        """
        Run the listener loop until shutdown() or a socket error.

        Raises:
            SocketFatal: on bind failure or an I/O error on the socket
        """
        self.open()
        self._running = True
        self._stopped.clear()
        self._fatal = None
        executor = None
        if self._max_workers > 0:
            executor = ThreadPoolExecutor(
                max_workers=self._max_workers,
                thread_name_prefix="udpgateway"
            )
        logger.info(f"UDP gateway started with {self._max_workers} workers")

        try:
            while self._running:
                try:
                    data, address = self._socket.recvfrom(self._buffer_size)
                except socket.timeout:
                    continue
                except OSError as e:
                    if not self._running:
                        break
                    raise SocketFatal(f"Receive failed: {e}") from e

                logger.debug(f"Received {len(data)} bytes from {address[0]}:{address[1]}")
                if executor is None:
                    self._process(data, address)
                elif self._acquire_slot():
                    future = executor.submit(self._process_in_slot, data, address)
                    future.add_done_callback(self._log_worker_error)

            if self._fatal is not None:
                raise self._fatal
        except SocketFatal as e:
            logger.error(f"Server error: {e}")
            raise
        finally:
            self._running = False
            if executor is not None:
                executor.shutdown(wait=True)
            self.close()
            self._stopped.set()
            logger.info("UDP gateway stopped")

    def shutdown(self) -> None:
        """Stop the listener loop. start() returns within one poll interval."""
        self._running = False

    def _acquire_slot(self) -> bool:
        """Wait for a free worker, giving up if the server stops meanwhile."""
        while self._running:
            if self._slots.acquire(timeout=self._poll_interval):
                return True
        return False

    def wait_stopped(self, timeout: Optional[float] = None) -> bool:
        """Block until the listener loop has exited and released the socket."""
        return self._stopped.wait(timeout)

    @staticmethod
    def _log_worker_error(future) -> None:
        error = future.exception()
        if error is not None:
            logger.error(f"Worker failed: {error!r}")

    def _process_in_slot(self, data: bytes, address: Tuple[str, int]) -> None:
        try:
            self._process(data, address)
        finally:
            self._slots.release()

    def _process(self, data: bytes, address: Tuple[str, int]) -> None:
        """Handle one datagram and send its reply to the sender."""
        try:
            payloads = self._handler.handle_datagram(data)
        except Exception as e:
            logger.error(f"Error handling datagram from {address[0]}:{address[1]}: {e}")
            payloads = self._handler.framer.frame(f"Error parsing request: {e}")
        self._send_reply(payloads, address)

    def _send_reply(self, payloads: List[bytes], address: Tuple[str, int]) -> None:
        # One reply's datagrams go out together, never interleaved with another's
        with self._send_lock:
            try:
                for i, payload in enumerate(payloads, 1):
                    self._socket.sendto(payload, address)
                    logger.debug(f"Sent datagram {i}/{len(payloads)} to {address[0]}:{address[1]}")
            except OSError as e:
                self._fatal = SocketFatal(f"Send to {address[0]}:{address[1]} failed: {e}")
                self._running = False
