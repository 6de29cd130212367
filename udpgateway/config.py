from typing import Dict, Any
import json
import os

# Largest payload an IPv4 UDP datagram can carry
MAX_UDP_PAYLOAD = 65507

# Room for the "[CHUNK i/N]\n" header in front of each chunk
CHUNK_HEADER_ALLOWANCE = 32


class GatewayConfig:
    """Configuration for the UDP gateway: defaults, then a JSON file, then overrides."""

    def __init__(self, config_path: str = None):
        """
        Initialize configuration with optional config file path.

        Args:
            config_path: Path to JSON configuration file

        Raises:
            ValueError: if the file cannot be read or holds invalid values
        """
        self.config_path = config_path
        self.config = self._load_default_config()

        if config_path and os.path.exists(config_path):
            self._load_config_file()
        self.validate()

    def _load_default_config(self) -> Dict[str, Any]:
        """Load default configuration settings."""
        return {
            "host": "0.0.0.0",
            "port": 9050,
            "buffer_size": 8192,
            "chunk_size": 1200,
            "chunked": True,
            "connect_timeout": 5.0,
            "read_timeout": 10.0,
            "max_workers": 8
        }

    def _load_config_file(self) -> None:
        """Overlay values from the JSON file."""
        try:
            with open(self.config_path, 'r') as f:
                self.config.update(json.load(f))
        except Exception as e:
            raise ValueError(f"Error loading config file: {e}")

    def get(self, key: str) -> Any:
        """Get configuration value by key."""
        return self.config.get(key)

    def update(self, **overrides: Any) -> None:
        """
        Override values, ignoring any given as None.

        Raises:
            ValueError: if the result is invalid
        """
        self.config.update({k: v for k, v in overrides.items() if v is not None})
        self.validate()

    def validate(self) -> None:
        """
        Check that replies built from these values fit in a UDP datagram.

        Raises:
            ValueError: describing the first invalid value found
        """
        buffer_size = self.config["buffer_size"]
        chunk_size = self.config["chunk_size"]

        if buffer_size <= 0:
            raise ValueError(f"buffer_size must be positive, got {buffer_size}")
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        if self.config["max_workers"] < 0:
            raise ValueError(f"max_workers must not be negative, got {self.config['max_workers']}")
        if not self.config["chunked"] and buffer_size > MAX_UDP_PAYLOAD:
            raise ValueError(
                f"buffer_size {buffer_size} exceeds the UDP payload limit of "
                f"{MAX_UDP_PAYLOAD} bytes in single-datagram mode"
            )
        if self.config["chunked"] and chunk_size + CHUNK_HEADER_ALLOWANCE > MAX_UDP_PAYLOAD:
            raise ValueError(
                f"chunk_size {chunk_size} leaves no room for the chunk header "
                f"within {MAX_UDP_PAYLOAD} bytes"
            )
