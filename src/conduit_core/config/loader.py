"""MCP server configuration loader."""

import json
import os
import re
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from conduit_core.errors import ConduitError, create_error
from conduit_core.types import TransportKind

from .models import (
    CliFormatConfig,
    ConfigDefaults,
    ConfigDocument,
    ProviderFormatConfig,
    ServerDescriptor,
)

CLI_CONFIG_FILENAME = "mcp-config.json"
PROVIDER_CONFIG_FILENAME = "mcp_settings.json"
PROJECT_DIR_NAME = ".conduit"
GLOBAL_STORAGE_ENV = "CONDUIT_GLOBAL_STORAGE"

_ENV_PATTERN = re.compile(r"\$\{([^}:]+)(?::([?-])([^}]*))?\}")


def resolve_env_vars(
    value: str,
    environ: Mapping[str, str] | None = None,
    config_path: str | Path | None = None,
) -> str:
    """Resolve environment variable references in string.

    Supports:
    - ${VAR} - Required, error if not set
    - ${VAR:-default} - With default value
    - ${VAR:?error message} - Required with custom error

    Args:
        value: String with potential env var references
        environ: Variables to resolve against (defaults to os.environ)
        config_path: Config file being loaded, for error context

    Returns:
        String with env vars resolved

    Raises:
        ConfigurationError: If required var not set
    """
    env = os.environ if environ is None else environ

    def replacer(match: re.Match[str]) -> str:
        var_name = match.group(1)
        operator = match.group(2)  # '-' or '?' or None
        operand = match.group(3)  # default value or error message

        env_value = env.get(var_name)

        if env_value is not None:
            return env_value

        # Variable not set
        if operator == "-":
            return operand or ""
        elif operator == "?":
            error_msg = operand or f"Required environment variable {var_name} not set"
        else:
            error_msg = f"Required environment variable {var_name} not set"
        raise create_error("CONFIG_INVALID", detail=error_msg, config_path=config_path)

    return _ENV_PATTERN.sub(replacer, value)


@dataclass
class ConfigLocations:
    """Candidate config locations, in resolution order."""

    cwd: Path | None = None
    global_storage: Path | None = None

    def resolved_cwd(self) -> Path:
        return self.cwd or Path.cwd()

    def resolved_global_storage(self) -> Path:
        if self.global_storage is not None:
            return self.global_storage
        env_path = os.environ.get(GLOBAL_STORAGE_ENV)
        if env_path:
            return Path(env_path).expanduser()
        return Path.home() / PROJECT_DIR_NAME

    def candidates(self) -> list[Path]:
        """List candidate files. The first existing one wins.

        Returns:
            CLI-local, project, global provider and global CLI paths
        """
        cwd = self.resolved_cwd()
        global_storage = self.resolved_global_storage()
        return [
            cwd / CLI_CONFIG_FILENAME,
            cwd / PROJECT_DIR_NAME / PROVIDER_CONFIG_FILENAME,
            global_storage / PROVIDER_CONFIG_FILENAME,
            global_storage / CLI_CONFIG_FILENAME,
        ]


def read_config_file(path: Path) -> Any:
    """Read and decode a config file (YAML for .yaml/.yml, JSON otherwise).

    Args:
        path: File to read

    Returns:
        Decoded document

    Raises:
        ConfigurationError: If the file cannot be read or decoded
    """
    try:
        text = path.read_text(encoding="utf-8")
        if path.suffix.lower() in (".yaml", ".yml"):
            return yaml.safe_load(text)
        return json.loads(text)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError, yaml.YAMLError) as e:
        raise create_error(
            "CONFIG_PARSE_FAILED",
            config_path=path,
            detail=f"{type(e).__name__}: {e}",
        ) from e


def parse_config_document(data: Any, config_path: str | Path | None = None) -> ConfigDocument:
    """Classify a decoded config document as provider or CLI format.

    Args:
        data: Decoded JSON/YAML document
        config_path: Source path, for error context

    Returns:
        ProviderFormatConfig or CliFormatConfig

    Raises:
        ConfigurationError: If the document has neither shape
    """
    if data is None:
        return ProviderFormatConfig()
    if not isinstance(data, dict):
        raise create_error(
            "CONFIG_INVALID",
            config_path=config_path,
            detail="Top-level configuration must be an object",
        )

    try:
        defaults = ConfigDefaults.from_dict(data.get("defaults"))
    except (TypeError, ValueError) as e:
        raise create_error(
            "CONFIG_INVALID", config_path=config_path, detail=f"defaults: {e}"
        ) from e

    if "servers" in data:
        servers = data["servers"]
        if not isinstance(servers, list) or not all(isinstance(s, dict) for s in servers):
            raise create_error(
                "CONFIG_INVALID",
                config_path=config_path,
                detail="'servers' must be a list of objects",
            )
        version = data.get("version")
        return CliFormatConfig(
            servers=servers,
            defaults=defaults,
            version=str(version) if version is not None else None,
        )

    if "mcpServers" in data:
        server_map = data["mcpServers"] or {}
    else:
        # Bare id -> config map
        server_map = {key: value for key, value in data.items() if key != "defaults"}

    if not isinstance(server_map, dict) or not all(
        isinstance(value, dict) for value in server_map.values()
    ):
        raise create_error(
            "CONFIG_INVALID",
            config_path=config_path,
            detail="'mcpServers' must map server ids to objects",
        )
    return ProviderFormatConfig(servers=server_map, defaults=defaults)


class _FieldReader:
    """Typed access to one raw server entry, raising CONFIG_INVALID on bad values."""

    def __init__(
        self,
        raw: dict[str, Any],
        path: str,
        environ: Mapping[str, str] | None,
        config_path: str | Path | None,
    ):
        self.raw = raw
        self.path = path
        self.environ = environ
        self.config_path = config_path

    def _invalid(self, key: str, message: str) -> ConduitError:
        return create_error(
            "CONFIG_INVALID",
            config_path=self.config_path,
            detail=f"{self.path}.{key}: {message}",
        )

    def string(self, key: str, resolve: bool = False) -> str | None:
        value = self.raw.get(key)
        if value is None:
            return None
        if not isinstance(value, str):
            raise self._invalid(key, "must be a string")
        return self._resolve(value) if resolve else value

    def string_list(self, key: str, resolve: bool = False) -> tuple[str, ...]:
        value = self.raw.get(key)
        if value is None:
            return ()
        if not isinstance(value, list):
            raise self._invalid(key, "must be a list")
        items = [str(item) for item in value]
        return tuple(self._resolve(item) if resolve else item for item in items)

    def string_map(self, key: str) -> dict[str, str]:
        value = self.raw.get(key)
        if value is None:
            return {}
        if not isinstance(value, dict):
            raise self._invalid(key, "must be an object")
        return {str(k): self._resolve(str(v)) for k, v in value.items()}

    def seconds(self, key: str, default: float, scale: float) -> float:
        """Read a duration, dividing by ``scale`` (1000 for milliseconds)."""
        value = self.raw.get(key)
        if value is None:
            return default
        try:
            return float(value) / scale
        except (TypeError, ValueError):
            raise self._invalid(key, "must be a number") from None

    def integer(self, key: str, default: int) -> int:
        value = self.raw.get(key)
        if value is None:
            return default
        try:
            return int(value)
        except (TypeError, ValueError):
            raise self._invalid(key, "must be an integer") from None

    def transport(self, *keys: str) -> TransportKind:
        raw_value = next((self.raw[k] for k in keys if self.raw.get(k) is not None), None)
        try:
            return TransportKind.parse(raw_value)
        except ValueError as e:
            raise self._invalid(keys[0], str(e)) from e

    def _resolve(self, value: str) -> str:
        return resolve_env_vars(value, self.environ, self.config_path)


def normalize_provider_config(
    config: ProviderFormatConfig,
    config_path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> list[ServerDescriptor]:
    """Map a provider-format document to server descriptors.

    ``timeout`` is in seconds in this format; ``retryDelay`` and
    ``healthCheckInterval`` are milliseconds.

    Args:
        config: Parsed provider document
        config_path: Source path, for error context
        environ: Variables for ${VAR} resolution (defaults to os.environ)

    Returns:
        Descriptors in file order, disabled servers included
    """
    defaults = config.defaults
    descriptors: list[ServerDescriptor] = []
    for server_id, raw in config.servers.items():
        fields = _FieldReader(raw, f"mcpServers.{server_id}", environ, config_path)
        enabled = raw.get("enabled") is not False and raw.get("disabled") is not True
        descriptors.append(
            ServerDescriptor(
                id=str(server_id),
                name=fields.string("name") or str(server_id),
                transport=fields.transport("type", "transportType"),
                command=fields.string("command", resolve=True),
                args=fields.string_list("args", resolve=True),
                cwd=fields.string("cwd", resolve=True),
                env=fields.string_map("env"),
                url=fields.string("url", resolve=True),
                headers=fields.string_map("headers"),
                enabled=enabled,
                timeout=fields.seconds("timeout", defaults.timeout, 1),
                retry_attempts=fields.integer("retryAttempts", defaults.retry_attempts),
                retry_delay=fields.seconds("retryDelay", defaults.retry_delay, 1000),
                health_check_interval=fields.seconds(
                    "healthCheckInterval", defaults.health_check_interval, 1000
                ),
                description=fields.string("description"),
                always_allow=fields.string_list("alwaysAllow"),
            )
        )
    return descriptors


def normalize_cli_config(
    config: CliFormatConfig,
    config_path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> list[ServerDescriptor]:
    """Map a CLI-format document to server descriptors. Durations are milliseconds.

    Args:
        config: Parsed CLI document
        config_path: Source path, for error context
        environ: Variables for ${VAR} resolution (defaults to os.environ)

    Returns:
        Descriptors in file order, disabled servers included

    Raises:
        ConfigurationError: If an entry has no id or a field has the wrong type
    """
    defaults = config.defaults
    descriptors: list[ServerDescriptor] = []
    for index, raw in enumerate(config.servers):
        fields = _FieldReader(raw, f"servers[{index}]", environ, config_path)
        server_id = fields.string("id")
        if not server_id:
            raise create_error(
                "CONFIG_INVALID",
                config_path=config_path,
                detail=f"servers[{index}].id is required",
            )
        descriptors.append(
            ServerDescriptor(
                id=server_id,
                name=fields.string("name") or server_id,
                transport=fields.transport("type", "transportType"),
                command=fields.string("command", resolve=True),
                args=fields.string_list("args", resolve=True),
                cwd=fields.string("cwd", resolve=True),
                env=fields.string_map("env"),
                url=fields.string("url", resolve=True),
                headers=fields.string_map("headers"),
                enabled=raw.get("enabled") is not False,
                timeout=fields.seconds("timeout", defaults.timeout, 1000),
                retry_attempts=fields.integer("retryAttempts", defaults.retry_attempts),
                retry_delay=fields.seconds("retryDelay", defaults.retry_delay, 1000),
                health_check_interval=fields.seconds(
                    "healthCheckInterval", defaults.health_check_interval, 1000
                ),
                description=fields.string("description"),
                always_allow=fields.string_list("alwaysAllow"),
            )
        )
    return descriptors


def normalize_config(
    config: ConfigDocument,
    config_path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> list[ServerDescriptor]:
    """Normalize either config variant."""
    if isinstance(config, CliFormatConfig):
        return normalize_cli_config(config, config_path, environ)
    return normalize_provider_config(config, config_path, environ)


class ConfigLoader:
    """Locate, parse and normalize MCP server configuration."""

    def __init__(self, locations: ConfigLocations | None = None, logger: Any = None):
        """Initialize config loader.

        Args:
            locations: Candidate locations (defaults to cwd + global storage)
            logger: Optional ConduitLogger instance
        """
        self.locations = locations or ConfigLocations()
        self._logger = logger
        self._config_path: Path | None = None
        self._defaults = ConfigDefaults()

    @property
    def config_path(self) -> Path | None:
        """Path of the last loaded file, None if none was found."""
        return self._config_path

    @property
    def defaults(self) -> ConfigDefaults:
        """Effective defaults of the last loaded file."""
        return self._defaults

    def resolve_path(self, explicit_path: str | Path | None = None) -> Path | None:
        """Resolve the config file to load.

        Args:
            explicit_path: Path given by the caller; skips the search when set

        Returns:
            First existing candidate, the explicit path, or None
        """
        if explicit_path is not None:
            return Path(explicit_path).expanduser()
        for candidate in self.locations.candidates():
            if candidate.is_file():
                return candidate
        return None

    def load(
        self,
        explicit_path: str | Path | None = None,
        include_disabled: bool = False,
    ) -> list[ServerDescriptor]:
        """Load server descriptors.

        Args:
            explicit_path: Optional config file path
            include_disabled: Keep servers marked disabled

        Returns:
            Normalized descriptors (empty when no file exists)

        Raises:
            ConfigurationError: If the file is malformed
        """
        path = self.resolve_path(explicit_path)
        self._config_path = path
        self._defaults = ConfigDefaults()

        if path is None or not path.exists():
            self._log(
                "DEBUG", "No MCP configuration file found", {"path": str(path) if path else None}
            )
            return []

        document = parse_config_document(read_config_file(path), path)
        descriptors = normalize_config(document, path)
        self._defaults = document.defaults

        if not include_disabled:
            descriptors = [d for d in descriptors if d.enabled]

        self._log(
            "INFO",
            f"Loaded {len(descriptors)} MCP server(s) from {path}",
            {"format": document.kind, "servers": [d.id for d in descriptors]},
        )
        return descriptors

    def _log(self, level: str, message: str, context: dict[str, Any] | None = None) -> None:
        if self._logger:
            self._logger._log(level, "config", message, context)


def load_server_configs(
    explicit_path: str | Path | None = None,
    locations: ConfigLocations | None = None,
    logger: Any = None,
) -> list[ServerDescriptor]:
    """Load enabled server descriptors from the first config file found.

    Args:
        explicit_path: Optional config file path
        locations: Candidate locations (defaults to cwd + global storage)
        logger: Optional ConduitLogger instance

    Returns:
        Enabled descriptors, empty list when no file exists

    Raises:
        ConfigurationError: If the file is malformed
    """
    return ConfigLoader(locations, logger).load(explicit_path)
