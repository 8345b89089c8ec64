"""Shared enumerations for conduit."""

from enum import Enum


class LogLevel(str, Enum):
    """Log verbosity level."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"


class LogFormat(str, Enum):
    """Log output format."""

    COLORED = "colored"
    JSON = "json"


class BackoffType(str, Enum):
    """Retry backoff strategy."""

    FIXED = "fixed"
    EXPONENTIAL = "exponential"


class TransportKind(str, Enum):
    """MCP connection transport type.

    Values match the ``type`` field used in the on-disk config files.
    """

    LOCAL_PROCESS = "stdio"
    STREAMING_NETWORK = "sse"

    @classmethod
    def parse(cls, value: "str | TransportKind | None") -> "TransportKind":
        """Parse a config value, accepting the common aliases.

        Args:
            value: Raw ``type``/``transportType`` value (None means stdio)

        Returns:
            Matching TransportKind

        Raises:
            ValueError: If the value names no known transport
        """
        if value is None:
            return cls.LOCAL_PROCESS
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower()
        if normalized in _TRANSPORT_ALIASES:
            return _TRANSPORT_ALIASES[normalized]
        msg = f"Unknown transport type: {value}"
        raise ValueError(msg)


_TRANSPORT_ALIASES = {
    "stdio": TransportKind.LOCAL_PROCESS,
    "local": TransportKind.LOCAL_PROCESS,
    "local-process": TransportKind.LOCAL_PROCESS,
    "sse": TransportKind.STREAMING_NETWORK,
    "http": TransportKind.STREAMING_NETWORK,
    "streamable-http": TransportKind.STREAMING_NETWORK,
    "streamablehttp": TransportKind.STREAMING_NETWORK,
    "streaming-network": TransportKind.STREAMING_NETWORK,
}


class ConnectionStatus(str, Enum):
    """MCP server connection status."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    HANDSHAKING = "handshaking"
    CONNECTED = "connected"
    ERROR = "error"
