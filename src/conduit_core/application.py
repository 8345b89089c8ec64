"""Conduit Application - owns the MCP connection manager for one process.

The process entry point creates exactly one ConduitApplication, initializes
it, and passes ``application.manager`` to the components that need MCP
access (task execution engine, batch executor). ``dispose()`` on exit tears
every server down within the manager's bounded budget.
"""

import sys
from pathlib import Path
from typing import Any, TextIO

from conduit_core.config import ConfigLoader, ConfigLocations, ManagerSettings
from conduit_core.errors import ConduitError, ErrorFactory, ErrorRegistry
from conduit_core.logging import ConduitLogger, LogConfig
from conduit_core.mcp import MCPConnectionManager, ServerInfo
from conduit_core.types import LogLevel


class ConduitApplication:
    """
    Conduit application orchestrator.

    Initialization sequence:

    1. Logger setup
    2. Error registry
    3. Config loader
    4. MCP connection manager
    5. Connect to enabled servers (optional)
    """

    def __init__(
        self,
        config_path: str | Path | None = None,
        settings: ManagerSettings | None = None,
        log_output: TextIO | None = None,
        log_config: LogConfig | None = None,
        locations: ConfigLocations | None = None,
    ):
        """Initialize application.

        Args:
            config_path: Path to MCP config file (optional, skips the search)
            settings: Manager timeouts and reconnect policy
            log_output: Output stream for logs (default: sys.stderr)
            log_config: Full logger configuration (overrides log_output)
            locations: Candidate config locations (default: cwd + global storage)
        """
        self._config_path = config_path
        self._settings = settings or ManagerSettings()
        self._log_output = log_output or sys.stderr
        self._log_config = log_config
        self._locations = locations
        self._initialized = False

        # Components (initialized in initialize())
        self.logger: ConduitLogger | None = None
        self.error_registry: ErrorRegistry | None = None
        self.error_factory: ErrorFactory | None = None
        self.config_loader: ConfigLoader | None = None
        self.manager: MCPConnectionManager | None = None
        self.connected: dict[str, ServerInfo] = {}

    async def __aenter__(self) -> "ConduitApplication":
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.dispose()

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(self, auto_connect: bool = True) -> None:
        """Initialize all components.

        Connection failures and a malformed config file are logged, never
        raised: the agent runs without the affected servers.

        Args:
            auto_connect: Connect to the enabled servers from the config file
                (the file's ``defaults.autoConnect`` can also turn this off)
        """
        if self._initialized:
            return

        # 1. Logger
        self.logger = ConduitLogger(self._log_config or LogConfig(output=self._log_output))

        # 2. Error handling
        self.error_registry = ErrorRegistry()
        self.error_factory = ErrorFactory(registry=self.error_registry)

        # 3. Config loader
        self.config_loader = ConfigLoader(self._locations, logger=self.logger)

        # 4. MCP connection manager
        self.manager = MCPConnectionManager(
            settings=self._settings,
            logger=self.logger,
            error_factory=self.error_factory,
            config_loader=self.config_loader,
            config_path=self._config_path,
        )

        self._initialized = True

        # 5. Connect to configured servers
        if auto_connect:
            try:
                descriptors = self.manager.load_configs()
            except ConduitError as e:
                self.logger._log(LogLevel.ERROR, "config", f"Ignoring MCP configuration: {e}")
                return

            if not self.config_loader.defaults.auto_connect:
                self.logger._log(
                    LogLevel.INFO, "config", "autoConnect disabled in MCP configuration"
                )
                return
            self.connected = await self.manager.connect_all(descriptors)

    async def dispose(self) -> None:
        """Dispose the manager. Safe to call more than once."""
        if not self._initialized:
            return

        if self.manager:
            await self.manager.dispose()

        self._initialized = False
