"""Conduit Logger - hierarchical colored logging for MCP connection management."""

import json
import sys
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, TextIO

from conduit_core.logging.colors import (
    CYAN,
    GREEN,
    LIGHT_BLUE,
    MAGENTA,
    ORANGE,
    RED,
    RESET,
    YELLOW,
)
from conduit_core.types import LogFormat, LogLevel


@dataclass
class LogConfig:
    """Logger configuration.

    ``components`` maps component names or dotted prefixes to an on/off
    switch: ``{"mcp": False}`` silences every ``mcp.*`` component while
    ``{"mcp.github.stderr": False}`` silences a single server's stderr.
    """

    level: LogLevel = LogLevel.INFO
    format: LogFormat = LogFormat.COLORED
    show_params: bool = True
    show_results: bool = True
    truncate_at: int = 200
    components: dict[str, bool] = field(default_factory=dict)
    # stdout belongs to the agent's own output
    output: TextIO = field(default=sys.stderr)

    def __post_init__(self) -> None:
        """Initialize default components if not provided."""
        if not self.components:
            self.components = {
                "config": True,
                "mcp": True,
            }


class ConduitLogger:
    """Main logger facade. Creates server-scoped loggers."""

    def __init__(self, config: LogConfig | None = None):
        """Initialize logger with configuration.

        Args:
            config: Logger configuration (defaults to LogConfig())
        """
        self.config = config or LogConfig()
        self._level_order = {
            LogLevel.DEBUG: 0,
            LogLevel.INFO: 1,
            LogLevel.WARN: 2,
            LogLevel.ERROR: 3,
        }

    def server(self, server_id: str) -> "ServerLogger":
        """Get a logger scoped to one MCP server.

        Args:
            server_id: Server identifier

        Returns:
            ServerLogger instance
        """
        return ServerLogger(self, server_id)

    def configure(self, config: LogConfig) -> None:
        """Update configuration.

        Args:
            config: New logger configuration
        """
        self.config = config

    def _should_log(self, level: LogLevel) -> bool:
        """Check if a log level should be logged.

        Args:
            level: Log level to check

        Returns:
            True if should log, False otherwise
        """
        return self._level_order.get(level, 0) >= self._level_order.get(self.config.level, 1)

    def _component_enabled(self, component: str) -> bool:
        """Resolve the most specific component switch for a dotted name."""
        parts = component.split(".")
        for end in range(len(parts), 0, -1):
            key = ".".join(parts[:end])
            if key in self.config.components:
                return self.config.components[key]
        return True

    def _log(
        self,
        level: LogLevel | str,
        component: str,
        message: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Internal logging method.

        Args:
            level: Log level
            component: Component name (config, mcp.manager, mcp.<server>, ...)
            message: Log message
            context: Additional context data
        """
        level = LogLevel(level)
        if not self._should_log(level):
            return

        if not self._component_enabled(component):
            return

        if self.config.format == LogFormat.JSON:
            self._log_json(level, component, message, context)
        else:
            self._log_colored(level, component, message, context)

    def _log_json(
        self,
        level: LogLevel,
        component: str,
        message: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Log in JSON format.

        Args:
            level: Log level
            component: Component name
            message: Log message
            context: Additional context data
        """
        log_entry = {
            "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "level": level.value,
            "component": component,
            "message": message,
        }
        if context:
            log_entry.update(context)

        print(json.dumps(log_entry, default=str), file=self.config.output)

    def _log_colored(
        self,
        level: LogLevel,
        component: str,
        message: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Log in colored format.

        Args:
            level: Log level
            component: Component name
            message: Log message
            context: Additional context data
        """
        level_colors = {
            LogLevel.DEBUG: LIGHT_BLUE,
            LogLevel.INFO: CYAN,
            LogLevel.WARN: YELLOW,
            LogLevel.ERROR: RED,
        }

        color = level_colors.get(level, RESET)
        if component.endswith(".stderr"):
            component_color = ORANGE
        elif component == "mcp.manager":
            component_color = GREEN
        elif component.startswith("mcp."):
            component_color = CYAN
        else:
            component_color = MAGENTA

        # Format: [COMPONENT] message
        output = f"{component_color}[{component.upper()}]{RESET} {color}{message}{RESET}"

        if context and self.config.show_params:
            context_str = str(context)
            if len(context_str) > self.config.truncate_at:
                context_str = context_str[: self.config.truncate_at] + "..."
            output += f" {LIGHT_BLUE}{context_str}{RESET}"

        print(output, file=self.config.output)


class ServerLogger:
    """Logger for one server's connection lifecycle."""

    def __init__(self, parent: ConduitLogger, server_id: str):
        """Initialize server logger.

        Args:
            parent: Parent ConduitLogger instance
            server_id: Server identifier
        """
        self.parent = parent
        self.server_id = server_id
        self.component = f"mcp.{server_id}"

    def log(
        self,
        level: LogLevel,
        message: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Log a free-form message for this server."""
        merged = {"server_id": self.server_id}
        if context:
            merged.update(context)
        self.parent._log(level, self.component, message, merged)

    def connecting(self, transport: str, attempt: int = 1) -> None:
        """Log connection attempt start.

        Args:
            transport: Transport kind value
            attempt: Attempt number (1-based)
        """
        message = f"Connecting to MCP server (transport={transport})"
        if attempt > 1:
            message += f" attempt {attempt}"
        self.log(LogLevel.INFO, message, {"event": "connecting", "transport": transport})

    def connected(self, duration_ms: int, ready: bool) -> None:
        """Log completed handshake.

        Args:
            duration_ms: Connect duration in milliseconds
            ready: Whether the server is already capability-ready
        """
        duration_s = duration_ms / 1000
        suffix = "ready" if ready else "not yet ready"
        self.log(
            LogLevel.INFO,
            f"Connected ({duration_s:.2f}s, {suffix}) ✓",
            {"event": "connected", "duration_ms": duration_ms, "ready": ready},
        )

    def disconnected(self) -> None:
        """Log teardown."""
        self.log(LogLevel.INFO, "Disconnected", {"event": "disconnected"})

    def failed(self, error: Exception, attempt: int, max_attempts: int) -> None:
        """Log failed connection attempt.

        Args:
            error: Exception that caused failure
            attempt: Attempt number
            max_attempts: Total attempts allowed
        """
        level = LogLevel.ERROR if attempt >= max_attempts else LogLevel.WARN
        self.log(
            level,
            f"Connection attempt {attempt}/{max_attempts} failed: {error}",
            {"event": "connect_failed", "error_type": type(error).__name__},
        )

    def health_failed(self, error_count: int, reason: str | None = None) -> None:
        """Log failed health check.

        Args:
            error_count: Connection error counter after the failure
            reason: Optional failure reason
        """
        message = "Health check failed"
        if reason:
            message += f": {reason}"
        self.log(
            LogLevel.WARN,
            message,
            {"event": "health_failed", "error_count": error_count},
        )

    def stderr(self, line: str) -> None:
        """Log one line of the server's stderr.

        Args:
            line: Decoded stderr line
        """
        level = LogLevel.DEBUG if "INFO" in line.upper() else LogLevel.WARN
        self.parent._log(level, f"{self.component}.stderr", line)

    def tool(self, tool_name: str) -> "ToolLogger":
        """Get a logger for calls of one tool on this server."""
        return ToolLogger(self, tool_name)


class ToolLogger:
    """Logger for tool invocations on one server."""

    def __init__(self, parent: ServerLogger, tool_name: str):
        """Initialize tool logger.

        Args:
            parent: Parent ServerLogger instance
            tool_name: Tool name
        """
        self.parent = parent
        self.tool_name = tool_name

    def calling(self, params: dict[str, Any] | None = None) -> None:
        """Log tool call start.

        Args:
            params: Optional tool parameters
        """
        context: dict[str, Any] = {"event": "tool_calling", "tool_name": self.tool_name}
        if params:
            context["params"] = params
        self.parent.log(LogLevel.DEBUG, f"Calling tool '{self.tool_name}'", context)

    def result(self, result: Any, duration_ms: int, success: bool) -> None:
        """Log tool call result.

        Args:
            result: Tool result payload
            duration_ms: Execution duration in milliseconds
            success: False when the tool reported isError
        """
        config = self.parent.parent.config
        context: dict[str, Any] = {
            "event": "tool_result",
            "tool_name": self.tool_name,
            "duration_ms": duration_ms,
        }

        duration_s = duration_ms / 1000
        if success:
            message = f"Tool '{self.tool_name}' completed ({duration_s:.2f}s) ✓"
        else:
            message = f"Tool '{self.tool_name}' reported an error ({duration_s:.2f}s)"

        if config.show_results:
            result_str = str(result)
            if len(result_str) > config.truncate_at:
                result_str = result_str[: config.truncate_at] + "..."
            context["result"] = result_str

        self.parent.log(LogLevel.INFO if success else LogLevel.WARN, message, context)

    def error(self, error: str, duration_ms: int) -> None:
        """Log tool call error.

        Args:
            error: Error message
            duration_ms: Execution duration in milliseconds
        """
        duration_s = duration_ms / 1000
        self.parent.log(
            LogLevel.ERROR,
            f"Tool '{self.tool_name}' failed ({duration_s:.2f}s): {error}",
            {
                "event": "tool_error",
                "tool_name": self.tool_name,
                "duration_ms": duration_ms,
                "error": error,
            },
        )
