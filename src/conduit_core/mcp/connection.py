"""MCP Connection - state machine shared by both transports.

A connection owns one transport to one server. Subclasses provide the
transport (child process pipes or HTTP streaming); this base class owns the
status machine, retries, readiness probing, request correlation and the
capability cache.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from collections import deque
from datetime import UTC, datetime
from typing import Any

from conduit_core.config.models import ManagerSettings, ServerDescriptor
from conduit_core.errors import JSONRPCError, create_error
from conduit_core.logging.logger import ConduitLogger
from conduit_core.types import ConnectionStatus, LogLevel

from .events import StatusBroadcaster, StatusCallback, StatusEvent, Unsubscribe
from .types import CapabilityCache, ResourceDescriptor, ToolDescriptor

ERROR_HISTORY_SIZE = 10
MAX_CONNECT_BACKOFF = 60.0

# A successful (or -32601) reply to any of these proves the server is ready
READINESS_METHODS = frozenset({"tools/list", "resources/list", "ping"})

TOOLS_LIST_CHANGED = "notifications/tools/list_changed"
RESOURCES_LIST_CHANGED = "notifications/resources/list_changed"


class MCPConnection(ABC):
    """Single MCP server connection."""

    def __init__(
        self,
        descriptor: ServerDescriptor,
        settings: ManagerSettings | None = None,
        logger: ConduitLogger | None = None,
    ):
        """Initialize MCP connection.

        Args:
            descriptor: Server definition
            settings: Manager timeouts (readiness polling, shutdown grace)
            logger: Optional logger
        """
        self.descriptor = descriptor
        self.settings = settings or ManagerSettings()
        self._logger = logger
        self._server_log = logger.server(descriptor.id) if logger else None

        self._status = ConnectionStatus.DISCONNECTED
        self._ready = False
        self._closing = False
        self.last_activity: datetime | None = None
        self.error_count = 0
        self.error_history: deque[str] = deque(maxlen=ERROR_HISTORY_SIZE)
        self.capabilities = CapabilityCache()
        self.server_info: dict[str, Any] | None = None

        self._pending: dict[int, asyncio.Future[Any]] = {}
        self._next_id = 0
        self._events = StatusBroadcaster(logger, f"mcp.{descriptor.id}")

    # ── State ────────────────────────────────────────────────────────

    @property
    def server_id(self) -> str:
        return self.descriptor.id

    @property
    def status(self) -> ConnectionStatus:
        """Current connection status."""
        return self._status

    @property
    def is_ready(self) -> bool:
        """Connected and capability-ready."""
        return self._status == ConnectionStatus.CONNECTED and self._ready

    @property
    def last_error(self) -> str | None:
        return self.error_history[-1] if self.error_history else None

    @property
    def pending_requests(self) -> int:
        return len(self._pending)

    def subscribe(self, callback: StatusCallback) -> Unsubscribe:
        """Subscribe to status changes of this connection.

        Args:
            callback: Called with a StatusEvent on every transition

        Returns:
            Unsubscribe function
        """
        return self._events.subscribe(callback)

    def _set_status(self, status: ConnectionStatus, error: str | None = None) -> None:
        previous = self._status
        if previous == status:
            return
        self._status = status
        self._events.publish(
            StatusEvent(server_id=self.server_id, previous=previous, current=status, error=error)
        )

    def _record_error(self, message: str) -> None:
        self.error_history.append(message)

    def record_failure(self, message: str) -> None:
        """Count a failed operation against this connection.

        Args:
            message: Failure description kept in the error history
        """
        self.error_count += 1
        self._record_error(message)

    def _mark_ready(self) -> None:
        if self._ready:
            return
        self._ready = True
        self._log(LogLevel.INFO, "Server is capability-ready", {"event": "ready"})

    def _log(self, level: LogLevel, message: str, context: dict[str, Any] | None = None) -> None:
        """Log message if logger available."""
        if self._server_log:
            self._server_log.log(level, message, context)

    # ── Lifecycle ────────────────────────────────────────────────────

    async def connect(self) -> None:
        """Establish the connection and run the MCP handshake.

        Retries up to ``retry_attempts`` times with exponential backoff
        starting at ``retry_delay``. Each attempt is bounded by the
        descriptor timeout. After the handshake the server is probed for
        readiness within what is left of that budget; a server that stays
        silent is left connected but not ready.

        Raises:
            MCPConnectionError: If every attempt fails
        """
        if self._status == ConnectionStatus.CONNECTED:
            self._log(LogLevel.DEBUG, "Already connected")
            return

        descriptor = self.descriptor
        max_attempts = max(1, descriptor.retry_attempts)
        delay = descriptor.retry_delay
        last_error: BaseException | None = None

        for attempt in range(1, max_attempts + 1):
            if attempt > 1:
                await asyncio.sleep(delay)
                delay = min(delay * 2, MAX_CONNECT_BACKOFF)  # Exponential backoff

            self._closing = False
            self._set_status(ConnectionStatus.CONNECTING)
            if self._server_log:
                self._server_log.connecting(descriptor.transport_name, attempt)
            start = time.monotonic()

            try:
                await asyncio.wait_for(self._open_and_initialize(), timeout=descriptor.timeout)
            except asyncio.CancelledError:
                self._abort()
                raise
            except Exception as e:
                last_error = e
                reason = self._describe(e)
                self._record_error(reason)
                self._abort()
                self._set_status(ConnectionStatus.ERROR, reason)
                if self._server_log:
                    self._server_log.failed(e, attempt, max_attempts)
                continue

            self._set_status(ConnectionStatus.CONNECTED)
            elapsed = time.monotonic() - start
            budget = min(max(descriptor.timeout - elapsed, 0.0), self.settings.readiness_timeout)
            await self._await_readiness(budget)
            if self._server_log:
                self._server_log.connected(int((time.monotonic() - start) * 1000), self._ready)
            return

        timed_out = isinstance(last_error, TimeoutError) or (
            getattr(last_error, "code", None) == "MCP_REQUEST_TIMEOUT"
        )
        code = "MCP_CONNECT_TIMEOUT" if timed_out else "MCP_CONNECTION_FAILED"
        raise create_error(
            code,
            server_id=self.server_id,
            timeout_seconds=descriptor.timeout,
            detail=self._describe(last_error) if last_error else None,
        ) from last_error

    async def _open_and_initialize(self) -> None:
        await self._open_transport()
        self._set_status(ConnectionStatus.HANDSHAKING)
        self.server_info = await self._handshake()
        if self._status != ConnectionStatus.HANDSHAKING:
            raise create_error(
                "MCP_CONNECTION_CLOSED",
                server_id=self.server_id,
                detail=self.last_error or "Transport closed during handshake",
            )

    async def _await_readiness(self, budget: float) -> bool:
        """Poll until the server answers a capability or ping request.

        Args:
            budget: Seconds available for probing

        Returns:
            True if the server became ready
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + budget
        interval = self.settings.readiness_poll_interval

        while self._status == ConnectionStatus.CONNECTED:
            remaining = max(deadline - loop.time(), interval)
            if await self._probe_readiness(remaining):
                return True
            if loop.time() >= deadline:
                break
            await asyncio.sleep(interval)

        self._log(
            LogLevel.WARN,
            f"Server did not become capability-ready within {budget:.1f}s",
            {"event": "not_ready"},
        )
        return False

    async def _probe_readiness(self, timeout: float) -> bool:
        for method in ("tools/list", "ping"):
            try:
                await self._send_request(method, timeout=timeout)
            except JSONRPCError as e:
                if e.is_method_not_found:
                    return True
            except Exception as e:
                self._log(LogLevel.DEBUG, f"Readiness probe '{method}' failed: {e}")
                if self._status != ConnectionStatus.CONNECTED:
                    return False
            else:
                return True
        return False

    async def disconnect(self) -> None:
        """Gracefully close the transport.

        Unbounded; the manager races this against its disconnect timeout
        and falls back to force_terminate().
        """
        if self._status == ConnectionStatus.DISCONNECTED and not self._has_transport():
            return

        self._closing = True
        self._log(LogLevel.DEBUG, "Disconnecting from MCP server")
        try:
            await self._close_transport()
        finally:
            self._fail_pending("MCP_CONNECTION_CLOSED", "Connection closed by client")
            self._reset()
            self._set_status(ConnectionStatus.DISCONNECTED)
            if self._server_log:
                self._server_log.disconnected()

    def force_terminate(self) -> None:
        """Tear the transport down immediately without awaiting anything.

        Fails every in-flight request and marks the connection disconnected.
        """
        self._closing = True
        self._abort()
        self._reset()
        self._set_status(ConnectionStatus.DISCONNECTED)
        self._log(LogLevel.WARN, "Connection force-terminated", {"event": "force_terminated"})

    def _abort(self) -> None:
        self._kill_transport()
        self._fail_pending("MCP_CONNECTION_CLOSED", "Connection terminated")

    def _reset(self) -> None:
        self._ready = False
        self.capabilities.clear()

    def _on_transport_closed(self, reason: str) -> None:
        """Handle the transport closing without a disconnect() call."""
        self._fail_pending("MCP_CONNECTION_CLOSED", reason)
        if self._closing or self._status == ConnectionStatus.DISCONNECTED:
            return
        self._record_error(reason)
        self._ready = False
        self._set_status(ConnectionStatus.ERROR, reason)
        self._log(LogLevel.ERROR, f"Connection lost: {reason}", {"event": "connection_lost"})

    # ── Requests ─────────────────────────────────────────────────────

    def _allocate_id(self) -> int:
        self._next_id += 1
        return self._next_id

    def _fail_pending(self, code: str, detail: str) -> None:
        pending = list(self._pending.values())
        self._pending.clear()
        for future in pending:
            if not future.done():
                future.set_exception(create_error(code, server_id=self.server_id, detail=detail))

    async def _send_request(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> dict[str, Any]:
        """Send a request without the readiness gate.

        Args:
            method: JSON-RPC method
            params: Optional parameters
            timeout: Seconds before giving up (defaults to the descriptor timeout)

        Returns:
            Result dict

        Raises:
            JSONRPCError: If the server replies with an error
            MCPConnectionError: On timeout or closed transport
        """
        timeout = self.descriptor.timeout if timeout is None else timeout
        try:
            result = await asyncio.wait_for(self._transport_request(method, params), timeout)
        except TimeoutError as e:
            raise create_error(
                "MCP_REQUEST_TIMEOUT",
                server_id=self.server_id,
                method=method,
                timeout_seconds=timeout,
            ) from e
        except JSONRPCError as e:
            if e.is_method_not_found and method in READINESS_METHODS:
                self._mark_ready()
            raise

        self.last_activity = datetime.now(UTC)
        if method in READINESS_METHODS:
            self._mark_ready()
        return result or {}

    async def request(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> dict[str, Any]:
        """Send a request to a connected, capability-ready server.

        Args:
            method: JSON-RPC method
            params: Optional parameters
            timeout: Optional timeout override in seconds

        Returns:
            Result dict

        Raises:
            MCPConnectionError: MCP_NOT_CONNECTED or MCP_NOT_READY (nothing is sent)
            JSONRPCError: If the server replies with an error
        """
        if self._status != ConnectionStatus.CONNECTED:
            raise create_error("MCP_NOT_CONNECTED", server_id=self.server_id)
        if not self._ready:
            raise create_error("MCP_NOT_READY", server_id=self.server_id)
        return await self._send_request(method, params, timeout)

    def _handle_notification(self, method: str, params: dict[str, Any] | None) -> None:
        if method == TOOLS_LIST_CHANGED:
            self.capabilities.invalidate_tools()
            self._log(LogLevel.DEBUG, "Tool list changed, cache invalidated")
        elif method == RESOURCES_LIST_CHANGED:
            self.capabilities.invalidate_resources()
            self._log(LogLevel.DEBUG, "Resource list changed, cache invalidated")

    # ── MCP operations ───────────────────────────────────────────────

    async def list_tools(self) -> list[ToolDescriptor]:
        """Fetch every page of ``tools/list`` and refresh the cache.

        Returns:
            Tools advertised by the server
        """
        items = await self._list_all("tools/list", "tools")
        tools = [ToolDescriptor.from_mcp(item, self.server_id) for item in items]
        self.capabilities.set_tools(tools)
        return tools

    async def list_resources(self) -> list[ResourceDescriptor]:
        """Fetch every page of ``resources/list`` and refresh the cache.

        Returns:
            Resources advertised by the server
        """
        items = await self._list_all("resources/list", "resources")
        resources = [ResourceDescriptor.from_mcp(item, self.server_id) for item in items]
        self.capabilities.set_resources(resources)
        return resources

    async def _list_all(self, method: str, key: str) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        cursor: str | None = None
        while True:
            params = {"cursor": cursor} if cursor else None
            result = await self.request(method, params)
            items.extend(result.get(key) or [])
            cursor = result.get("nextCursor")
            if not cursor:
                return items

    async def call_tool(
        self, tool_name: str, arguments: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        """Invoke ``tools/call``.

        Args:
            tool_name: Tool to call
            arguments: Tool arguments

        Returns:
            Raw CallToolResult dict (content, isError, structuredContent, _meta)
        """
        return await self.request("tools/call", {"name": tool_name, "arguments": arguments or {}})

    async def read_resource(self, uri: str) -> dict[str, Any]:
        """Invoke ``resources/read``.

        Args:
            uri: Resource URI

        Returns:
            Raw ReadResourceResult dict (contents)
        """
        return await self.request("resources/read", {"uri": uri})

    async def is_healthy(self) -> bool:
        """Ping the server.

        A failed ping flips the status to error and bumps ``error_count``
        without tearing the connection down.

        Returns:
            True if the server answered
        """
        if self._status != ConnectionStatus.CONNECTED:
            return False

        try:
            await self._send_request("ping", timeout=self.settings.health_check_timeout)
            return True
        except JSONRPCError as e:
            if e.is_method_not_found:
                return True
            reason = str(e)
        except Exception as e:
            reason = self._describe(e)

        self.mark_unhealthy(reason)
        return False

    def mark_unhealthy(self, reason: str) -> None:
        """Record a failed health check and flip the status to error.

        Args:
            reason: Failure description
        """
        self.record_failure(f"Health check failed: {reason}")
        if self._status == ConnectionStatus.CONNECTED:
            self._set_status(ConnectionStatus.ERROR, reason)
        if self._server_log:
            self._server_log.health_failed(self.error_count, reason)

    @staticmethod
    def _describe(error: BaseException) -> str:
        return str(error) or type(error).__name__

    # ── Transport hooks ──────────────────────────────────────────────

    @abstractmethod
    async def _open_transport(self) -> None:
        """Open the transport (spawn the process / create the client)."""

    @abstractmethod
    async def _handshake(self) -> dict[str, Any]:
        """Run the MCP initialize handshake.

        Returns:
            InitializeResult dict (protocolVersion, capabilities, serverInfo)
        """

    @abstractmethod
    async def _transport_request(self, method: str, params: dict[str, Any] | None) -> Any:
        """Send one request and wait for its correlated response."""

    @abstractmethod
    async def _close_transport(self) -> None:
        """Close the transport gracefully."""

    @abstractmethod
    def _kill_transport(self) -> None:
        """Drop the transport immediately. Must not await."""

    @abstractmethod
    def _has_transport(self) -> bool:
        """True while a transport handle is held."""
