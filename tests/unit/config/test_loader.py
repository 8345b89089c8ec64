"""Unit tests for MCP server configuration loading."""

import json
from pathlib import Path

import pytest

from conduit_core.config import (
    CLI_CONFIG_FILENAME,
    GLOBAL_STORAGE_ENV,
    PROJECT_DIR_NAME,
    PROVIDER_CONFIG_FILENAME,
    CliFormatConfig,
    ConfigDefaults,
    ConfigLoader,
    ConfigLocations,
    ProviderFormatConfig,
    ServerDescriptor,
    load_server_configs,
    normalize_cli_config,
    normalize_provider_config,
    parse_config_document,
    resolve_env_vars,
)
from conduit_core.errors import ConfigurationError
from conduit_core.types import TransportKind


def _write_json(path: Path, data) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data))
    return path


@pytest.fixture
def locations(tmp_path: Path) -> ConfigLocations:
    """Isolated project and global directories."""
    return ConfigLocations(cwd=tmp_path / "project", global_storage=tmp_path / "global")


class TestResolveEnvVars:
    """Tests for ${VAR} resolution."""

    def test_set_variable(self):
        assert resolve_env_vars("Bearer ${TOKEN}", {"TOKEN": "abc"}) == "Bearer abc"

    def test_default_used_when_unset(self):
        assert resolve_env_vars("${PORT:-8080}", {}) == "8080"

    def test_missing_variable_raises(self):
        """A required variable that is unset is a config error."""
        with pytest.raises(ConfigurationError) as exc_info:
            resolve_env_vars("${MISSING}", {}, config_path="/tmp/mcp.json")
        assert exc_info.value.code == "CONFIG_INVALID"
        assert "MISSING" in exc_info.value.detail
        assert exc_info.value.config_path == "/tmp/mcp.json"

    def test_custom_error_message(self):
        with pytest.raises(ConfigurationError, match="Invalid MCP configuration"):
            resolve_env_vars("${KEY:?set KEY first}", {})

    def test_plain_string_untouched(self):
        assert resolve_env_vars("no variables here", {}) == "no variables here"


class TestParseConfigDocument:
    """Tests for config shape detection."""

    def test_cli_format(self):
        document = parse_config_document(
            {"version": 1, "servers": [{"id": "a", "command": "x"}]}
        )
        assert isinstance(document, CliFormatConfig)
        assert document.version == "1"
        assert document.kind == "cli"

    def test_provider_format(self):
        document = parse_config_document({"mcpServers": {"a": {"command": "x"}}})
        assert isinstance(document, ProviderFormatConfig)
        assert list(document.servers) == ["a"]

    def test_bare_server_map(self):
        """A bare id-to-entry map is read as provider format."""
        document = parse_config_document(
            {"a": {"command": "x"}, "defaults": {"timeout": 5000}}
        )
        assert isinstance(document, ProviderFormatConfig)
        assert list(document.servers) == ["a"]
        assert document.defaults.timeout == 5.0

    def test_empty_document(self):
        """An empty YAML file means no servers."""
        document = parse_config_document(None)
        assert isinstance(document, ProviderFormatConfig)
        assert document.servers == {}

    def test_non_object_rejected(self):
        with pytest.raises(ConfigurationError):
            parse_config_document(["a", "b"])

    def test_servers_must_be_list(self):
        with pytest.raises(ConfigurationError, match="Invalid MCP configuration"):
            parse_config_document({"servers": {"a": {}}})

    def test_bad_defaults(self):
        with pytest.raises(ConfigurationError) as exc_info:
            parse_config_document({"mcpServers": {}, "defaults": {"timeout": "soon"}})
        assert exc_info.value.detail.startswith("defaults:")


class TestNormalize:
    """Tests for mapping raw entries to descriptors."""

    def test_provider_units(self):
        """Provider timeout is seconds, the other durations milliseconds."""
        document = ProviderFormatConfig(
            servers={
                "github": {
                    "command": "npx",
                    "args": ["-y", "@modelcontextprotocol/server-github"],
                    "timeout": 45,
                    "retryDelay": 500,
                    "healthCheckInterval": 30000,
                    "alwaysAllow": ["search"],
                }
            }
        )
        (descriptor,) = normalize_provider_config(document, environ={})

        assert descriptor.id == "github"
        assert descriptor.name == "github"
        assert descriptor.transport == TransportKind.LOCAL_PROCESS
        assert descriptor.args == ("-y", "@modelcontextprotocol/server-github")
        assert descriptor.timeout == 45.0
        assert descriptor.retry_delay == 0.5
        assert descriptor.health_check_interval == 30.0
        assert descriptor.always_allow == ("search",)

    def test_cli_units(self):
        """CLI durations are all milliseconds."""
        document = CliFormatConfig(
            servers=[{"id": "local", "name": "Local", "command": "srv", "timeout": 2500}]
        )
        (descriptor,) = normalize_cli_config(document, environ={})
        assert descriptor.name == "Local"
        assert descriptor.timeout == 2.5

    def test_defaults_back_fill(self):
        """Fields absent from an entry come from the defaults block."""
        document = CliFormatConfig(
            servers=[{"id": "a", "command": "x"}],
            defaults=ConfigDefaults.from_dict(
                {"timeout": 10000, "retryAttempts": 5, "retryDelay": 200}
            ),
        )
        (descriptor,) = normalize_cli_config(document, environ={})
        assert descriptor.timeout == 10.0
        assert descriptor.retry_attempts == 5
        assert descriptor.retry_delay == 0.2
        assert descriptor.health_check_interval == 60.0

    def test_streaming_transport_and_headers(self):
        """Headers and URLs resolve environment variables."""
        document = ProviderFormatConfig(
            servers={
                "remote": {
                    "type": "sse",
                    "url": "https://${HOST}/mcp",
                    "headers": {"Authorization": "Bearer ${TOKEN}"},
                }
            }
        )
        (descriptor,) = normalize_provider_config(
            document, environ={"HOST": "mcp.example.com", "TOKEN": "t0k"}
        )
        assert descriptor.transport == TransportKind.STREAMING_NETWORK
        assert descriptor.url == "https://mcp.example.com/mcp"
        assert descriptor.headers == {"Authorization": "Bearer t0k"}

    def test_transport_type_alias(self):
        document = CliFormatConfig(
            servers=[{"id": "a", "transportType": "streamable-http", "url": "http://h/mcp"}]
        )
        (descriptor,) = normalize_cli_config(document, environ={})
        assert descriptor.transport == TransportKind.STREAMING_NETWORK

    def test_unknown_transport(self):
        document = CliFormatConfig(servers=[{"id": "a", "type": "carrier-pigeon"}])
        with pytest.raises(ConfigurationError) as exc_info:
            normalize_cli_config(document, environ={})
        assert "servers[0].type" in exc_info.value.detail

    def test_cli_entry_requires_id(self):
        document = CliFormatConfig(servers=[{"command": "x"}])
        with pytest.raises(ConfigurationError, match="Invalid MCP configuration") as exc_info:
            normalize_cli_config(document, environ={})
        assert exc_info.value.detail == "servers[0].id is required"

    def test_wrong_field_type(self):
        document = ProviderFormatConfig(servers={"a": {"command": "x", "args": "not-a-list"}})
        with pytest.raises(ConfigurationError) as exc_info:
            normalize_provider_config(document, environ={})
        assert exc_info.value.detail == "mcpServers.a.args: must be a list"

    def test_disabled_flags(self):
        """Both ``enabled: false`` and legacy ``disabled: true`` disable a server."""
        document = ProviderFormatConfig(
            servers={
                "on": {"command": "x"},
                "off": {"command": "x", "enabled": False},
                "legacy": {"command": "x", "disabled": True},
            }
        )
        enabled = {d.id: d.enabled for d in normalize_provider_config(document, environ={})}
        assert enabled == {"on": True, "off": False, "legacy": False}

    def test_env_values_resolved(self):
        document = ProviderFormatConfig(
            servers={"a": {"command": "x", "env": {"API_KEY": "${KEY}", "DEBUG": 1}}}
        )
        (descriptor,) = normalize_provider_config(document, environ={"KEY": "secret"})
        assert descriptor.env == {"API_KEY": "secret", "DEBUG": "1"}

    def test_to_dict_masks_secrets(self):
        descriptor = ServerDescriptor(
            id="a", name="A", env={"API_KEY": "secret"}, headers={"Authorization": "x"}
        )
        data = descriptor.to_dict()
        assert data["env"] == {"API_KEY": "***"}
        assert data["headers"] == {"Authorization": "***"}


class TestConfigLocations:
    """Tests for config file resolution order."""

    def test_candidate_order(self, locations, tmp_path):
        assert locations.candidates() == [
            tmp_path / "project" / CLI_CONFIG_FILENAME,
            tmp_path / "project" / PROJECT_DIR_NAME / PROVIDER_CONFIG_FILENAME,
            tmp_path / "global" / PROVIDER_CONFIG_FILENAME,
            tmp_path / "global" / CLI_CONFIG_FILENAME,
        ]

    def test_global_storage_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv(GLOBAL_STORAGE_ENV, str(tmp_path / "elsewhere"))
        assert ConfigLocations(cwd=tmp_path).resolved_global_storage() == tmp_path / "elsewhere"


class TestConfigLoader:
    """Tests for ConfigLoader.load."""

    def test_no_file_means_no_servers(self, locations):
        loader = ConfigLoader(locations)
        assert loader.load() == []
        assert loader.config_path is None

    def test_project_cli_beats_global_provider(self, locations, tmp_path):
        """The CLI file in the working directory wins over the global settings."""
        _write_json(
            tmp_path / "global" / PROVIDER_CONFIG_FILENAME,
            {"mcpServers": {"global-server": {"command": "g"}}},
        )
        local = _write_json(
            tmp_path / "project" / CLI_CONFIG_FILENAME,
            {"servers": [{"id": "local-server", "command": "l"}]},
        )

        loader = ConfigLoader(locations)
        descriptors = loader.load()

        assert [d.id for d in descriptors] == ["local-server"]
        assert loader.config_path == local

    def test_global_used_when_no_project_file(self, locations, tmp_path):
        _write_json(
            tmp_path / "global" / PROVIDER_CONFIG_FILENAME,
            {"mcpServers": {"global-server": {"command": "g"}}},
        )
        assert [d.id for d in ConfigLoader(locations).load()] == ["global-server"]

    def test_disabled_filtered(self, locations, tmp_path):
        path = _write_json(
            tmp_path / "mcp.json",
            {"mcpServers": {"a": {"command": "x"}, "b": {"command": "x", "disabled": True}}},
        )
        loader = ConfigLoader(locations)
        assert [d.id for d in loader.load(path)] == ["a"]
        assert [d.id for d in loader.load(path, include_disabled=True)] == ["a", "b"]

    def test_malformed_json(self, locations, tmp_path):
        """A syntax error names the offending file."""
        path = tmp_path / "broken.json"
        path.write_text('{"mcpServers": {')

        with pytest.raises(ConfigurationError) as exc_info:
            ConfigLoader(locations).load(path)

        assert exc_info.value.code == "CONFIG_PARSE_FAILED"
        assert exc_info.value.config_path == str(path)
        assert str(path) in str(exc_info.value)

    def test_yaml_config(self, locations, tmp_path):
        path = tmp_path / "mcp.yaml"
        path.write_text(
            "servers:\n"
            "  - id: docs\n"
            "    type: http\n"
            "    url: https://docs.example.com/mcp\n"
            "defaults:\n"
            "  autoConnect: false\n"
        )
        loader = ConfigLoader(locations)
        (descriptor,) = loader.load(path)

        assert descriptor.transport == TransportKind.STREAMING_NETWORK
        assert loader.defaults.auto_connect is False

    def test_explicit_missing_path(self, locations, tmp_path):
        assert ConfigLoader(locations).load(tmp_path / "nope.json") == []

    def test_logs_loaded_servers(self, locations, tmp_path, json_logger, log_entries):
        path = _write_json(tmp_path / "mcp.json", {"mcpServers": {"a": {"command": "x"}}})
        ConfigLoader(locations, logger=json_logger).load(path)

        entries = [e for e in log_entries() if e["component"] == "config"]
        assert entries[-1]["servers"] == ["a"]
        assert entries[-1]["format"] == "provider"

    def test_load_server_configs(self, locations, tmp_path):
        path = _write_json(tmp_path / "mcp.json", {"servers": [{"id": "a", "command": "x"}]})
        assert [d.id for d in load_server_configs(path, locations)] == ["a"]
