"""Conduit configuration data models."""

from dataclasses import dataclass, field
from typing import Any, Literal

from conduit_core.types import RetryConfig, TransportKind

# Built-in defaults, in seconds
DEFAULT_TIMEOUT = 30.0
DEFAULT_RETRY_ATTEMPTS = 3
DEFAULT_RETRY_DELAY = 1.0
DEFAULT_HEALTH_CHECK_INTERVAL = 60.0


@dataclass(frozen=True)
class ServerDescriptor:
    """Immutable definition of one MCP server.

    Durations are seconds. ``command``/``args``/``cwd``/``env`` apply to the
    local-process transport, ``url``/``headers`` to the streaming-network one.
    """

    id: str
    name: str
    transport: TransportKind = TransportKind.LOCAL_PROCESS
    command: str | None = None
    args: tuple[str, ...] = ()
    cwd: str | None = None
    env: dict[str, str] = field(default_factory=dict)
    url: str | None = None
    headers: dict[str, str] = field(default_factory=dict)
    enabled: bool = True
    timeout: float = DEFAULT_TIMEOUT
    retry_attempts: int = DEFAULT_RETRY_ATTEMPTS
    retry_delay: float = DEFAULT_RETRY_DELAY
    health_check_interval: float = DEFAULT_HEALTH_CHECK_INTERVAL
    description: str | None = None
    always_allow: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        # Accept raw strings and aliases; unknown values stay as given for validation
        try:
            transport = TransportKind.parse(self.transport)
        except ValueError:
            return
        object.__setattr__(self, "transport", transport)

    @property
    def is_local_process(self) -> bool:
        """True when the server is spawned as a child process."""
        return self.transport == TransportKind.LOCAL_PROCESS

    @property
    def transport_name(self) -> str:
        """Transport value for logs (the raw value if it names no known transport)."""
        if isinstance(self.transport, TransportKind):
            return self.transport.value
        return str(self.transport)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for logs and status output. Header and env values are masked."""
        return {
            "id": self.id,
            "name": self.name,
            "transport": self.transport_name,
            "command": self.command,
            "args": list(self.args),
            "cwd": self.cwd,
            "env": {key: "***" for key in self.env},
            "url": self.url,
            "headers": {key: "***" for key in self.headers},
            "enabled": self.enabled,
            "timeout": self.timeout,
            "retry_attempts": self.retry_attempts,
            "retry_delay": self.retry_delay,
            "health_check_interval": self.health_check_interval,
            "description": self.description,
            "always_allow": list(self.always_allow),
        }


@dataclass
class ConfigDefaults:
    """The ``defaults`` block of a config file, converted to seconds."""

    timeout: float = DEFAULT_TIMEOUT
    retry_attempts: int = DEFAULT_RETRY_ATTEMPTS
    retry_delay: float = DEFAULT_RETRY_DELAY
    health_check_interval: float = DEFAULT_HEALTH_CHECK_INTERVAL
    auto_connect: bool = True

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "ConfigDefaults":
        """Build from a raw ``defaults`` block (durations in milliseconds).

        Args:
            data: Raw block, or None when the file has none

        Returns:
            ConfigDefaults with absent fields taken from the built-in defaults

        Raises:
            TypeError, ValueError: If a field has the wrong type
        """
        if not data:
            return cls()
        if not isinstance(data, dict):
            msg = "defaults must be an object"
            raise TypeError(msg)

        defaults = cls()
        if data.get("timeout") is not None:
            defaults.timeout = float(data["timeout"]) / 1000
        if data.get("retryAttempts") is not None:
            defaults.retry_attempts = int(data["retryAttempts"])
        if data.get("retryDelay") is not None:
            defaults.retry_delay = float(data["retryDelay"]) / 1000
        if data.get("healthCheckInterval") is not None:
            defaults.health_check_interval = float(data["healthCheckInterval"]) / 1000
        if data.get("autoConnect") is not None:
            defaults.auto_connect = bool(data["autoConnect"])
        return defaults


@dataclass
class ProviderFormatConfig:
    """Provider settings file: ``{"mcpServers": {id: {...}}, "defaults": {...}}``."""

    servers: dict[str, dict[str, Any]] = field(default_factory=dict)
    defaults: ConfigDefaults = field(default_factory=ConfigDefaults)
    kind: Literal["provider"] = "provider"


@dataclass
class CliFormatConfig:
    """CLI config file: ``{"version": ..., "servers": [{...}], "defaults": {...}}``."""

    servers: list[dict[str, Any]] = field(default_factory=list)
    defaults: ConfigDefaults = field(default_factory=ConfigDefaults)
    version: str | None = None
    kind: Literal["cli"] = "cli"


ConfigDocument = ProviderFormatConfig | CliFormatConfig


@dataclass
class ManagerSettings:
    """Timeouts and policies of the connection manager. Durations in seconds."""

    default_health_check_interval: float = DEFAULT_HEALTH_CHECK_INTERVAL
    disconnect_timeout: float = 5.0
    dispose_timeout: float = 2.0  # Shorter than disconnect_timeout
    health_check_timeout: float = 10.0
    readiness_timeout: float = 10.0
    readiness_poll_interval: float = 0.1
    process_shutdown_grace: float = 1.0
    reconnect: RetryConfig | None = None  # None = reconnect is the caller's decision
