import argparse
import logging
import sys

from .config import GatewayConfig
from .exceptions import SocketFatal
from .server import GatewayServer

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="udp-http-gateway",
        description="Forward HTTP requests received as UDP datagrams"
    )
    parser.add_argument("--config", help="Path to a JSON configuration file")
    parser.add_argument("--host", help="Address to bind (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, help="UDP port to listen on (default: 9050)")
    parser.add_argument("--buffer-size", type=int, help="Receive buffer size in bytes (default: 8192)")
    parser.add_argument("--chunk-size", type=int, help="Reply chunk size in bytes (default: 1200)")
    parser.add_argument("--no-chunking", action="store_true",
                        help="Reply with one datagram, truncated to the buffer size")
    parser.add_argument("--workers", type=int,
                        help="Requests handled concurrently, 0 for serial (default: 8)")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    try:
        config = GatewayConfig(args.config)
        config.update(
            host=args.host,
            port=args.port,
            buffer_size=args.buffer_size,
            chunk_size=args.chunk_size,
            chunked=False if args.no_chunking else None,
            max_workers=args.workers
        )
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return 2

    server = GatewayServer.from_config(config)
    try:
        server.start()
    except SocketFatal:
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
        server.shutdown()
    return 0


if __name__ == "__main__":
    sys.exit(main())
