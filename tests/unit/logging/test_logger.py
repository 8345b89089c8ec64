"""Unit tests for ConduitLogger and its scoped loggers."""

import io

from conduit_core.logging import ConduitLogger, LogConfig
from conduit_core.types import LogFormat, LogLevel


def _logger(output: io.StringIO, **config) -> ConduitLogger:
    config.setdefault("format", LogFormat.JSON)
    return ConduitLogger(LogConfig(output=output, **config))


class TestLogConfig:
    """Tests for LogConfig defaults."""

    def test_default_components(self):
        """Config and mcp components are on by default."""
        config = LogConfig()
        assert config.components == {"config": True, "mcp": True}
        assert config.level == LogLevel.INFO


class TestConduitLogger:
    """Tests for level and component filtering."""

    def test_json_entry_fields(self, json_logger, log_entries):
        """JSON lines carry timestamp, level, component, message and context."""
        json_logger._log(LogLevel.INFO, "config", "Loaded 2 servers", {"format": "cli"})

        (entry,) = log_entries()
        assert entry["level"] == "INFO"
        assert entry["component"] == "config"
        assert entry["message"] == "Loaded 2 servers"
        assert entry["format"] == "cli"
        assert entry["timestamp"].endswith("Z")

    def test_accepts_string_levels(self, json_logger, log_entries):
        """Plain level names are accepted."""
        json_logger._log("WARN", "config", "careful")
        assert log_entries()[0]["level"] == "WARN"

    def test_level_filtering(self):
        """Messages below the configured level are dropped."""
        output = io.StringIO()
        logger = _logger(output, level=LogLevel.WARN)

        logger._log(LogLevel.INFO, "mcp.manager", "quiet")
        logger._log(LogLevel.ERROR, "mcp.manager", "loud")

        lines = output.getvalue().splitlines()
        assert len(lines) == 1
        assert "loud" in lines[0]

    def test_component_prefix_disables_children(self):
        """Disabling a prefix silences every component below it."""
        output = io.StringIO()
        logger = _logger(output, components={"mcp": False, "config": True})

        logger._log(LogLevel.INFO, "mcp.github", "hidden")
        logger._log(LogLevel.INFO, "mcp.manager", "hidden too")
        logger._log(LogLevel.INFO, "config", "shown")

        assert output.getvalue().count("\n") == 1
        assert "shown" in output.getvalue()

    def test_most_specific_switch_wins(self):
        """A server's stderr can be silenced while the server stays visible."""
        output = io.StringIO()
        logger = _logger(output, components={"mcp": True, "mcp.github.stderr": False})

        logger.server("github").stderr("noisy WARNING line")
        logger.server("github").disconnected()

        text = output.getvalue()
        assert "noisy" not in text
        assert "Disconnected" in text

    def test_unknown_component_enabled(self, json_logger, log_entries):
        """Components without a switch are logged."""
        json_logger._log(LogLevel.INFO, "other", "visible")
        assert len(log_entries()) == 1

    def test_colored_output(self):
        """Colored output prefixes the component and truncates context."""
        output = io.StringIO()
        logger = ConduitLogger(
            LogConfig(format=LogFormat.COLORED, truncate_at=10, output=output)
        )

        logger._log(LogLevel.INFO, "mcp.manager", "hello", {"key": "a" * 50})

        text = output.getvalue()
        assert "[MCP.MANAGER]" in text
        assert "hello" in text
        assert "..." in text

    def test_configure_replaces_config(self):
        """configure() swaps the active configuration."""
        first = io.StringIO()
        second = io.StringIO()
        logger = _logger(first)

        logger.configure(LogConfig(format=LogFormat.JSON, output=second))
        logger._log(LogLevel.INFO, "config", "moved")

        assert first.getvalue() == ""
        assert "moved" in second.getvalue()


class TestServerLogger:
    """Tests for server-scoped lifecycle logging."""

    def test_component_and_server_id(self, json_logger, log_entries):
        """Server loggers log under mcp.<id> and tag the server id."""
        json_logger.server("github").connecting("stdio", attempt=2)

        (entry,) = log_entries()
        assert entry["component"] == "mcp.github"
        assert entry["server_id"] == "github"
        assert entry["event"] == "connecting"
        assert "attempt 2" in entry["message"]

    def test_failed_last_attempt_is_error(self, json_logger, log_entries):
        """Only the final failed attempt logs at ERROR."""
        server_log = json_logger.server("github")
        server_log.failed(RuntimeError("refused"), 1, 2)
        server_log.failed(RuntimeError("refused"), 2, 2)

        levels = [entry["level"] for entry in log_entries()]
        assert levels == ["WARN", "ERROR"]

    def test_stderr_component(self, json_logger, log_entries):
        """stderr lines go to the server's stderr component."""
        json_logger.server("github").stderr("something broke")

        (entry,) = log_entries()
        assert entry["component"] == "mcp.github.stderr"
        assert entry["level"] == "WARN"

    def test_health_failed(self, json_logger, log_entries):
        """Health failures carry the error count."""
        json_logger.server("github").health_failed(3, "timeout")

        (entry,) = log_entries()
        assert entry["error_count"] == 3
        assert "timeout" in entry["message"]


class TestToolLogger:
    """Tests for tool call logging."""

    def test_result_truncated(self):
        """Results longer than truncate_at are cut."""
        output = io.StringIO()
        logger = _logger(output, truncate_at=5)

        logger.server("s").tool("echo").result("x" * 20, 12, True)

        assert '"result": "xxxxx..."' in output.getvalue()

    def test_reported_error_logs_warn(self, json_logger, log_entries):
        """A tool that reported isError logs at WARN."""
        json_logger.server("s").tool("echo").result([], 5, False)
        assert log_entries()[0]["level"] == "WARN"

    def test_error(self, json_logger, log_entries):
        """Failed calls log at ERROR with duration."""
        json_logger.server("s").tool("echo").error("boom", 1500)

        (entry,) = log_entries()
        assert entry["level"] == "ERROR"
        assert entry["tool_name"] == "echo"
        assert "1.50s" in entry["message"]
