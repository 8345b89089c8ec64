"""Conduit configuration - MCP server config discovery and manager settings."""

from .loader import (
    CLI_CONFIG_FILENAME,
    GLOBAL_STORAGE_ENV,
    PROJECT_DIR_NAME,
    PROVIDER_CONFIG_FILENAME,
    ConfigLoader,
    ConfigLocations,
    load_server_configs,
    normalize_cli_config,
    normalize_config,
    normalize_provider_config,
    parse_config_document,
    read_config_file,
    resolve_env_vars,
)
from .models import (
    CliFormatConfig,
    ConfigDefaults,
    ConfigDocument,
    ManagerSettings,
    ProviderFormatConfig,
    ServerDescriptor,
)

__all__ = [
    # Models
    "ServerDescriptor",
    "ConfigDefaults",
    "ProviderFormatConfig",
    "CliFormatConfig",
    "ConfigDocument",
    "ManagerSettings",
    # Loader
    "ConfigLoader",
    "ConfigLocations",
    "load_server_configs",
    "parse_config_document",
    "normalize_provider_config",
    "normalize_cli_config",
    "normalize_config",
    "read_config_file",
    "resolve_env_vars",
    # Constants
    "CLI_CONFIG_FILENAME",
    "PROVIDER_CONFIG_FILENAME",
    "PROJECT_DIR_NAME",
    "GLOBAL_STORAGE_ENV",
]
