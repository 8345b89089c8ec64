"""MCP Connection Manager - owns every MCP server connection."""

import asyncio
import time
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

from jsonschema import SchemaError, ValidationError, validate

from conduit_core.config.loader import ConfigLoader
from conduit_core.config.models import ManagerSettings, ServerDescriptor
from conduit_core.errors import (
    ConduitError,
    ErrorFactory,
    JSONRPCError,
    MCPConnectionError,
    create_error,
    get_error_factory,
)
from conduit_core.logging.logger import ConduitLogger
from conduit_core.types import (
    ConnectionStatus,
    LogLevel,
    TransportKind,
    ValidationIssue,
    ValidationResult,
)

from .connection import MCPConnection
from .events import StatusBroadcaster, StatusCallback, Unsubscribe
from .stdio import LocalProcessConnection
from .streaming import StreamingNetworkConnection
from .types import ExecutionResult, ResourceDescriptor, ServerInfo, ToolDescriptor

# Builds the transport-appropriate connection for a descriptor
ConnectionFactory = Callable[
    [ServerDescriptor, ManagerSettings, ConduitLogger | None], MCPConnection
]


def create_connection(
    descriptor: ServerDescriptor,
    settings: ManagerSettings,
    logger: ConduitLogger | None = None,
) -> MCPConnection:
    """Default connection factory.

    Args:
        descriptor: Server definition
        settings: Manager settings
        logger: Optional logger

    Returns:
        LocalProcessConnection or StreamingNetworkConnection
    """
    if descriptor.transport == TransportKind.STREAMING_NETWORK:
        return StreamingNetworkConnection(descriptor, settings, logger)
    return LocalProcessConnection(descriptor, settings, logger)


class MCPConnectionManager:
    """Manages all MCP server connections.

    One instance per process, created by the entry point and passed to its
    consumers. Keeps at most one connection per server id, runs a health
    check task per connection, and tears everything down in bounded time on
    dispose().
    """

    def __init__(
        self,
        settings: ManagerSettings | None = None,
        logger: ConduitLogger | None = None,
        error_factory: ErrorFactory | None = None,
        config_loader: ConfigLoader | None = None,
        config_path: str | Path | None = None,
        connection_factory: ConnectionFactory | None = None,
    ):
        """Initialize MCP connection manager.

        Args:
            settings: Timeouts and reconnect policy
            logger: Optional logger
            error_factory: Optional error factory
            config_loader: Loader used by discovery and connect_all
            config_path: Explicit config file (skips the location search)
            connection_factory: Builds connections (tests inject fakes here)
        """
        self.settings = settings or ManagerSettings()
        self._logger = logger
        self._error_factory = error_factory or get_error_factory()
        self._config_loader = config_loader or ConfigLoader(logger=logger)
        self._config_path = config_path
        self._connection_factory = connection_factory or create_connection

        self._connections: dict[str, MCPConnection] = {}
        self._health_tasks: dict[str, asyncio.Task[None]] = {}
        self._reconnect_tasks: dict[str, asyncio.Task[None]] = {}
        self._unsubscribers: dict[str, Unsubscribe] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}
        self._events = StatusBroadcaster(logger, "mcp.manager")

        self._disposing = False
        self._disposed = False
        self._dispose_done: asyncio.Event | None = None

    def _log(self, level: LogLevel, message: str, context: dict[str, Any] | None = None) -> None:
        """Log message if logger available."""
        if self._logger:
            self._logger._log(level, "mcp.manager", message, context)

    async def __aenter__(self) -> "MCPConnectionManager":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.dispose()

    # ── Registry ─────────────────────────────────────────────────────

    @property
    def disposed(self) -> bool:
        return self._disposed

    def get_connection(self, server_id: str) -> MCPConnection | None:
        """Get connection by server id.

        Args:
            server_id: Server identifier

        Returns:
            MCPConnection if registered, None otherwise
        """
        return self._connections.get(server_id)

    def get_connected_servers(self) -> list[str]:
        """Ids of registered connections whose status is connected."""
        return [
            server_id
            for server_id, connection in self._connections.items()
            if connection.status == ConnectionStatus.CONNECTED
        ]

    def get_status(self) -> dict[str, ServerInfo]:
        """Summaries of every registered connection from cached capabilities.

        Returns:
            Dict of server id to ServerInfo
        """
        return {
            server_id: self._summary(connection)
            for server_id, connection in self._connections.items()
        }

    def subscribe(self, callback: StatusCallback) -> Unsubscribe:
        """Subscribe to status changes of every registered connection.

        Args:
            callback: Called with each StatusEvent

        Returns:
            Unsubscribe function
        """
        return self._events.subscribe(callback)

    @asynccontextmanager
    async def _server_lock(self, server_id: str) -> AsyncIterator[None]:
        """Serialize lifecycle operations on one server id.

        The lock is dropped once nobody holds or waits for it.
        """
        lock = self._locks.get(server_id)
        if lock is None:
            lock = self._locks[server_id] = asyncio.Lock()
        self._lock_users[server_id] = self._lock_users.get(server_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            users = self._lock_users.get(server_id, 1) - 1
            if users > 0:
                self._lock_users[server_id] = users
            else:
                self._lock_users.pop(server_id, None)
                if self._locks.get(server_id) is lock:
                    del self._locks[server_id]

    def _ensure_active(self) -> None:
        if self._disposing or self._disposed:
            raise create_error("MANAGER_DISPOSED")

    def _register(self, connection: MCPConnection, unsubscribe: Unsubscribe) -> None:
        server_id = connection.server_id
        self._connections[server_id] = connection
        self._unsubscribers[server_id] = unsubscribe
        self._start_health_check(connection)

    def _unregister(self, server_id: str) -> None:
        self._cancel_health_check(server_id)
        self._connections.pop(server_id, None)
        unsubscribe = self._unsubscribers.pop(server_id, None)
        if unsubscribe:
            unsubscribe()

    def _summary(self, connection: MCPConnection) -> ServerInfo:
        return ServerInfo(
            id=connection.server_id,
            name=connection.descriptor.name,
            status=connection.status,
            tools=connection.capabilities.tools or [],
            resources=connection.capabilities.resources or [],
            capability_ready=connection.is_ready,
            error_count=connection.error_count,
            last_error=connection.last_error,
        )

    # ── Configuration ────────────────────────────────────────────────

    def load_configs(self) -> list[ServerDescriptor]:
        """Load enabled server descriptors from the configured location.

        Raises:
            ConfigurationError: If the config file is malformed
        """
        return self._config_loader.load(self._config_path)

    def validate_server_config(self, descriptor: ServerDescriptor) -> ValidationResult:
        """Validate a descriptor without any I/O.

        Args:
            descriptor: Server definition to check

        Returns:
            ValidationResult with errors and warnings
        """
        errors: list[ValidationIssue] = []
        warnings: list[ValidationIssue] = []

        if not descriptor.id or not descriptor.id.strip():
            errors.append(ValidationIssue(path="id", message="Server id is required"))
        if not descriptor.name or not descriptor.name.strip():
            errors.append(ValidationIssue(path="name", message="Server name is required"))

        try:
            transport = TransportKind.parse(descriptor.transport)
        except ValueError as e:
            errors.append(ValidationIssue(path="transport", message=str(e)))
            transport = None

        if transport == TransportKind.LOCAL_PROCESS:
            if not descriptor.command or not descriptor.command.strip():
                errors.append(
                    ValidationIssue(
                        path="command",
                        message="command is required for local-process servers",
                    )
                )
        elif transport == TransportKind.STREAMING_NETWORK:
            if not descriptor.url:
                errors.append(
                    ValidationIssue(path="url", message="url is required for streaming servers")
                )
            else:
                parsed = urlparse(descriptor.url)
                if parsed.scheme not in ("http", "https") or not parsed.netloc:
                    errors.append(
                        ValidationIssue(
                            path="url",
                            message=f"Invalid URL '{descriptor.url}': expected http(s)://host",
                        )
                    )

        if descriptor.timeout <= 0:
            warnings.append(
                ValidationIssue(
                    path="timeout", message="timeout should be positive", severity="warning"
                )
            )
        if descriptor.retry_attempts < 0:
            warnings.append(
                ValidationIssue(
                    path="retry_attempts",
                    message="retry_attempts should not be negative",
                    severity="warning",
                )
            )
        if descriptor.health_check_interval <= 0:
            warnings.append(
                ValidationIssue(
                    path="health_check_interval",
                    message="health_check_interval should be positive; the manager default is used",
                    severity="warning",
                )
            )

        return ValidationResult(valid=True, errors=errors, warnings=warnings)

    # ── Lifecycle ────────────────────────────────────────────────────

    async def connect_to_server(self, descriptor: ServerDescriptor) -> MCPConnection:
        """Connect to a server, replacing any existing connection for its id.

        Args:
            descriptor: Server definition

        Returns:
            The registered, connected MCPConnection

        Raises:
            ConduitError(MANAGER_DISPOSED): If the manager is disposed
            ConfigurationError: If the descriptor is invalid (nothing is spawned)
            MCPConnectionError: If the connection cannot be established
        """
        self._ensure_active()

        validation = self.validate_server_config(descriptor)
        if not validation.valid:
            raise create_error(
                "SERVER_CONFIG_INVALID",
                server_id=descriptor.id or "<unnamed>",
                detail="; ".join(validation.error_messages()),
            )
        for warning in validation.warnings:
            self._log(LogLevel.WARN, f"Server '{descriptor.id}': {warning}")

        async with self._server_lock(descriptor.id):
            self._ensure_active()

            if descriptor.id in self._connections:
                self._log(LogLevel.INFO, f"Replacing existing connection for '{descriptor.id}'")
                try:
                    await self._disconnect_locked(descriptor.id)
                except ConduitError as e:
                    self._log(
                        LogLevel.WARN,
                        f"Previous connection for '{descriptor.id}' did not close cleanly: {e}",
                    )

            connection = self._connection_factory(descriptor, self.settings, self._logger)
            unsubscribe = connection.subscribe(self._events.publish)
            try:
                await connection.connect()
            except MCPConnectionError:
                unsubscribe()
                raise
            except Exception as e:
                connection.force_terminate()
                unsubscribe()
                raise self._error_factory.from_exception(
                    e,
                    "connect",
                    server_id=descriptor.id,
                    timeout_seconds=descriptor.timeout,
                ) from e

            if self._disposing or self._disposed:
                connection.force_terminate()
                unsubscribe()
                raise create_error("MANAGER_DISPOSED")

            self._register(connection, unsubscribe)
            self._log(
                LogLevel.INFO,
                f"Registered MCP server '{descriptor.id}'",
                {"server_id": descriptor.id, "capability_ready": connection.is_ready},
            )
            return connection

    async def connect_all(
        self, descriptors: list[ServerDescriptor] | None = None
    ) -> dict[str, ServerInfo]:
        """Connect to many servers in parallel.

        Failures are logged but don't stop others.

        Args:
            descriptors: Servers to connect (defaults to the enabled configured servers)

        Returns:
            Dict of server id to ServerInfo
        """
        if descriptors is None:
            descriptors = self.load_configs()
        descriptors = [d for d in descriptors if d.enabled]

        if not descriptors:
            self._log(LogLevel.INFO, "No MCP servers configured")
            return {}

        self._log(LogLevel.INFO, f"Connecting to {len(descriptors)} MCP servers")
        await asyncio.gather(*(self._connect_one(d) for d in descriptors))

        summaries: dict[str, ServerInfo] = {}
        for descriptor in descriptors:
            connection = self._connections.get(descriptor.id)
            if connection is not None:
                summaries[descriptor.id] = self._summary(connection)
            else:
                summaries[descriptor.id] = ServerInfo(
                    id=descriptor.id,
                    name=descriptor.name,
                    status=ConnectionStatus.ERROR,
                )

        connected = sum(1 for s in summaries.values() if s.status == ConnectionStatus.CONNECTED)
        self._log(LogLevel.INFO, f"Connected to {connected}/{len(summaries)} servers")
        return summaries

    async def _connect_one(self, descriptor: ServerDescriptor) -> None:
        """Connect to one server, catching exceptions."""
        try:
            await self.connect_to_server(descriptor)
        except Exception as e:
            self._log(LogLevel.ERROR, f"Failed to connect to '{descriptor.id}': {e}")

    async def disconnect_from_server(self, server_id: str, timeout: float | None = None) -> None:
        """Disconnect and remove a server. No-op for unknown ids.

        Args:
            server_id: Server identifier
            timeout: Seconds to wait (defaults to settings.disconnect_timeout)

        Raises:
            MCPConnectionError(MCP_DISCONNECT_TIMEOUT): If the server had to be force-terminated
        """
        async with self._server_lock(server_id):
            self._cancel_reconnect(server_id)
            await self._disconnect_locked(server_id, timeout)

    async def _disconnect_locked(self, server_id: str, timeout: float | None = None) -> None:
        connection = self._connections.get(server_id)
        if connection is None:
            return

        timeout = self.settings.disconnect_timeout if timeout is None else timeout
        self._cancel_health_check(server_id)
        try:
            await asyncio.wait_for(connection.disconnect(), timeout=timeout)
        except TimeoutError as e:
            connection.force_terminate()
            self._log(
                LogLevel.WARN,
                f"Disconnect from '{server_id}' timed out after {timeout}s, force-terminated",
            )
            raise create_error(
                "MCP_DISCONNECT_TIMEOUT", server_id=server_id, timeout_seconds=timeout
            ) from e
        except Exception:
            connection.force_terminate()
            raise
        finally:
            self._unregister(server_id)

    async def dispose(self) -> None:
        """Tear down every connection in bounded time. Idempotent, never raises.

        Each connection gets ``dispose_timeout`` seconds to disconnect and is
        force-terminated after that. Afterwards the manager rejects new
        connections.
        """
        if self._disposed:
            return
        if self._disposing:
            if self._dispose_done is not None:
                await self._dispose_done.wait()
            return

        self._disposing = True
        self._dispose_done = asyncio.Event()
        self._log(LogLevel.INFO, f"Disposing {len(self._connections)} MCP connections")

        try:
            for task in list(self._reconnect_tasks.values()):
                task.cancel()
            self._reconnect_tasks.clear()
            for server_id in list(self._health_tasks):
                self._cancel_health_check(server_id)

            await asyncio.gather(
                *(
                    self._dispose_connection(server_id, connection)
                    for server_id, connection in list(self._connections.items())
                ),
                return_exceptions=True,
            )
        finally:
            for server_id in list(self._connections):
                self._unregister(server_id)
            self._locks.clear()
            self._lock_users.clear()
            self._disposed = True
            self._disposing = False
            self._dispose_done.set()
            self._log(LogLevel.INFO, "MCP connection manager disposed")
            self._events.clear()

    async def _dispose_connection(self, server_id: str, connection: MCPConnection) -> None:
        try:
            await asyncio.wait_for(connection.disconnect(), timeout=self.settings.dispose_timeout)
        except TimeoutError:
            self._log(
                LogLevel.WARN,
                f"'{server_id}' did not disconnect within "
                f"{self.settings.dispose_timeout}s, force-terminating",
            )
            self._force_terminate(connection)
        except Exception as e:
            self._log(LogLevel.WARN, f"Error disconnecting '{server_id}': {e}, force-terminating")
            self._force_terminate(connection)
        finally:
            self._unregister(server_id)

    def _force_terminate(self, connection: MCPConnection) -> None:
        try:
            connection.force_terminate()
        except Exception as e:
            self._log(LogLevel.ERROR, f"Force-terminate of '{connection.server_id}' failed: {e}")

    # ── Health ───────────────────────────────────────────────────────

    def _start_health_check(self, connection: MCPConnection) -> None:
        interval = connection.descriptor.health_check_interval
        if interval <= 0:
            interval = self.settings.default_health_check_interval
        self._cancel_health_check(connection.server_id)
        self._health_tasks[connection.server_id] = asyncio.create_task(
            self._health_loop(connection, interval),
            name=f"mcp-{connection.server_id}-health",
        )

    def _cancel_health_check(self, server_id: str) -> None:
        task = self._health_tasks.pop(server_id, None)
        if task is not None and not task.done():
            task.cancel()

    async def _health_loop(self, connection: MCPConnection, interval: float) -> None:
        """Background loop for periodic health checks."""
        while True:
            try:
                await asyncio.sleep(interval)
                healthy = await asyncio.wait_for(
                    connection.is_healthy(), timeout=self.settings.health_check_timeout
                )
            except asyncio.CancelledError:
                break
            except TimeoutError:
                connection.mark_unhealthy("Health check timed out")
                healthy = False
            except Exception as e:
                self._log(LogLevel.ERROR, f"Health check for '{connection.server_id}' failed: {e}")
                healthy = False

            if not healthy:
                self._log(
                    LogLevel.WARN,
                    f"MCP server '{connection.server_id}' is unhealthy",
                    {"server_id": connection.server_id, "error_count": connection.error_count},
                )
                if self.settings.reconnect is not None:
                    self._schedule_reconnect(connection.descriptor)

    def _schedule_reconnect(self, descriptor: ServerDescriptor) -> None:
        existing = self._reconnect_tasks.get(descriptor.id)
        if existing is not None and not existing.done():
            return
        task = asyncio.create_task(
            self._reconnect_loop(descriptor), name=f"mcp-{descriptor.id}-reconnect"
        )
        self._reconnect_tasks[descriptor.id] = task

        def _forget(done: asyncio.Task[None]) -> None:
            if self._reconnect_tasks.get(descriptor.id) is done:
                del self._reconnect_tasks[descriptor.id]

        task.add_done_callback(_forget)

    def _cancel_reconnect(self, server_id: str) -> None:
        task = self._reconnect_tasks.get(server_id)
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()

    async def _reconnect_loop(self, descriptor: ServerDescriptor) -> None:
        policy = self.settings.reconnect
        if policy is None:
            return
        for attempt in range(1, policy.max_attempts + 1):
            await asyncio.sleep(policy.delay_for(attempt))
            if self._disposing or self._disposed:
                return
            self._log(
                LogLevel.INFO,
                f"Reconnecting to '{descriptor.id}' (attempt {attempt}/{policy.max_attempts})",
            )
            try:
                await self.connect_to_server(descriptor)
                return
            except ConduitError as e:
                self._log(LogLevel.WARN, f"Reconnect to '{descriptor.id}' failed: {e}")
                if e.code == "MANAGER_DISPOSED":
                    return
        self._log(LogLevel.ERROR, f"Giving up reconnecting to '{descriptor.id}'")

    # ── Discovery ────────────────────────────────────────────────────

    async def discover_servers(self) -> list[ServerInfo]:
        """Summarize configured and live servers with their capabilities.

        Never raises: a broken config file falls back to the live
        connections, and per-server errors yield empty capability lists.

        Returns:
            ServerInfo per configured server, then per live server not in config
        """
        try:
            descriptors = self.load_configs()
        except Exception as e:
            self._log(LogLevel.WARN, f"Could not load MCP config, using live connections: {e}")
            descriptors = []

        entries: dict[str, str] = {d.id: d.name for d in descriptors}
        for server_id, connection in self._connections.items():
            entries.setdefault(server_id, connection.descriptor.name)

        return list(
            await asyncio.gather(
                *(self._describe_server(server_id, name) for server_id, name in entries.items())
            )
        )

    async def _describe_server(self, server_id: str, name: str) -> ServerInfo:
        connection = self._connections.get(server_id)
        if connection is None:
            return ServerInfo(id=server_id, name=name, status=ConnectionStatus.DISCONNECTED)

        tools: list[ToolDescriptor] = []
        resources: list[ResourceDescriptor] = []
        if connection.is_ready:
            tools, resources = await asyncio.gather(
                self._query_capability(connection, "tools"),
                self._query_capability(connection, "resources"),
            )

        info = self._summary(connection)
        info.name = name
        info.tools = tools
        info.resources = resources
        return info

    async def _query_capability(self, connection: MCPConnection, kind: str) -> list[Any]:
        try:
            if kind == "tools":
                return await connection.list_tools()
            return await connection.list_resources()
        except JSONRPCError as e:
            if e.is_method_not_found:
                return []
            reason = str(e)
        except Exception as e:
            reason = str(e) or type(e).__name__
        self._log(
            LogLevel.WARN,
            f"Failed to list {kind} from '{connection.server_id}': {reason}",
        )
        return []

    async def list_available_tools(self) -> list[ToolDescriptor]:
        """All tools of capability-ready servers (cached where possible).

        Returns:
            Flattened tool list; failing servers are skipped
        """
        tools: list[ToolDescriptor] = []
        for connection in list(self._connections.values()):
            if not connection.is_ready:
                continue
            cached = connection.capabilities.tools
            if cached is None:
                cached = await self._query_capability(connection, "tools")
            tools.extend(cached)
        return tools

    async def list_available_resources(self) -> list[ResourceDescriptor]:
        """All resources of capability-ready servers (cached where possible).

        Returns:
            Flattened resource list; failing servers are skipped
        """
        resources: list[ResourceDescriptor] = []
        for connection in list(self._connections.values()):
            if not connection.is_ready:
                continue
            cached = connection.capabilities.resources
            if cached is None:
                cached = await self._query_capability(connection, "resources")
            resources.extend(cached)
        return resources

    # ── Invocation ───────────────────────────────────────────────────

    async def execute_tool(
        self,
        server_id: str,
        tool_name: str,
        arguments: dict[str, Any] | None = None,
    ) -> ExecutionResult:
        """Call a tool on a specific server.

        Args:
            server_id: Server identifier
            tool_name: Name of tool
            arguments: Tool arguments

        Returns:
            ExecutionResult (success=False when the tool reported isError)

        Raises:
            ToolExecutionError: TOOL_SERVER_UNAVAILABLE / TOOL_SERVER_NOT_READY
                without sending, TOOL_NOT_FOUND / TOOL_TIMEOUT / TOOL_FAILED
                when the call fails
        """
        connection = self._connections.get(server_id)
        if connection is None or connection.status != ConnectionStatus.CONNECTED:
            raise create_error("TOOL_SERVER_UNAVAILABLE", server_id=server_id, tool_name=tool_name)
        if not connection.is_ready:
            raise create_error("TOOL_SERVER_NOT_READY", server_id=server_id, tool_name=tool_name)

        tool_log = self._logger.server(server_id).tool(tool_name) if self._logger else None
        if tool_log:
            tool_log.calling(arguments)

        start = time.monotonic()
        try:
            result = await connection.call_tool(tool_name, arguments)
        except Exception as e:
            duration_ms = int((time.monotonic() - start) * 1000)
            error = self._error_factory.from_exception(
                e,
                "tool",
                server_id=server_id,
                tool_name=tool_name,
                timeout_seconds=connection.descriptor.timeout,
            )
            connection.record_failure(str(error))
            if tool_log:
                tool_log.error(str(error), duration_ms)
            raise error from e

        duration_ms = int((time.monotonic() - start) * 1000)
        success = not result.get("isError", False)
        metadata: dict[str, Any] = {"duration_ms": duration_ms}
        if "_meta" in result:
            metadata["_meta"] = result["_meta"]
        if "structuredContent" in result:
            metadata["structuredContent"] = result["structuredContent"]

        content = result.get("content", [])
        if tool_log:
            tool_log.result(content, duration_ms, success)
        return ExecutionResult(success=success, result=content, metadata=metadata)

    async def access_resource(self, server_id: str, uri: str) -> dict[str, Any]:
        """Read a resource from a specific server.

        Args:
            server_id: Server identifier
            uri: Resource URI

        Returns:
            ReadResourceResult dict (``contents``)

        Raises:
            ResourceAccessError: RESOURCE_SERVER_UNAVAILABLE / RESOURCE_SERVER_NOT_READY
                without sending, RESOURCE_NOT_FOUND / RESOURCE_TIMEOUT /
                RESOURCE_FAILED when the read fails
        """
        connection = self._connections.get(server_id)
        if connection is None or connection.status != ConnectionStatus.CONNECTED:
            raise create_error("RESOURCE_SERVER_UNAVAILABLE", server_id=server_id, uri=uri)
        if not connection.is_ready:
            raise create_error("RESOURCE_SERVER_NOT_READY", server_id=server_id, uri=uri)

        try:
            return await connection.read_resource(uri)
        except Exception as e:
            error = self._error_factory.from_exception(
                e,
                "resource",
                server_id=server_id,
                uri=uri,
                timeout_seconds=connection.descriptor.timeout,
            )
            connection.record_failure(str(error))
            self._log(LogLevel.ERROR, str(error), {"server_id": server_id, "uri": uri})
            raise error from e

    def validate_tool_parameters(
        self,
        server_id: str,
        tool_name: str,
        arguments: dict[str, Any] | None,
    ) -> bool:
        """Check arguments against the tool's cached input schema.

        Args:
            server_id: Server identifier
            tool_name: Name of tool
            arguments: Tool arguments

        Returns:
            False if the tool is unknown or the arguments do not match
        """
        connection = self._connections.get(server_id)
        if connection is None:
            return False
        tool = connection.capabilities.get_tool(tool_name)
        if tool is None:
            return False
        if not tool.input_schema:
            return True

        try:
            validate(instance=arguments or {}, schema=tool.input_schema)
        except ValidationError as e:
            self._log(LogLevel.DEBUG, f"Invalid arguments for '{tool_name}': {e.message}")
            return False
        except SchemaError as e:
            # The server's own schema is broken; nothing to check against
            self._log(
                LogLevel.WARN,
                f"Tool '{tool_name}' on '{server_id}' has an invalid schema: {e.message}",
            )
        return True
