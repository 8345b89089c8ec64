"""Streaming-network MCP connection.

Uses the FastMCP client over streamable HTTP (or SSE for ``/sse`` URLs)
with the configured headers.
"""

import asyncio
from collections.abc import Callable
from contextlib import AsyncExitStack
from functools import partial
from typing import Any

import mcp.types
from fastmcp.client import Client
from fastmcp.client.messages import MessageHandler
from fastmcp.client.transports import ClientTransport, SSETransport, StreamableHttpTransport
from mcp.shared.exceptions import McpError

from conduit_core.errors import JSONRPCError, create_error
from conduit_core.types import LogLevel

from .connection import RESOURCES_LIST_CHANGED, TOOLS_LIST_CHANGED, MCPConnection
from .protocol import INTERNAL_ERROR, METHOD_NOT_FOUND


class _ListChangedMessageHandler(MessageHandler):
    """Message handler that forwards list_changed notifications."""

    def __init__(self, on_notification: Callable[[str, dict[str, Any] | None], None]):
        self._on_notification = on_notification

    async def on_tool_list_changed(self, message: mcp.types.ToolListChangedNotification) -> None:
        """Handle tool list changed notification from server."""
        self._on_notification(TOOLS_LIST_CHANGED, None)

    async def on_resource_list_changed(
        self, message: mcp.types.ResourceListChangedNotification
    ) -> None:
        """Handle resource list changed notification from server."""
        self._on_notification(RESOURCES_LIST_CHANGED, None)


class StreamingNetworkConnection(MCPConnection):
    """MCP connection over a persistent HTTP stream."""

    def __init__(self, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self._client: Client | None = None
        self._exit_stack: AsyncExitStack | None = None
        self._tasks: set[asyncio.Task[Any]] = set()
        self._closers: set[asyncio.Task[None]] = set()

    def _create_transport(self) -> ClientTransport:
        """Create the FastMCP transport for the configured URL.

        Raises:
            ConfigurationError: If no URL is configured
        """
        url = self.descriptor.url
        if not url:
            raise create_error(
                "SERVER_CONFIG_INVALID",
                server_id=self.server_id,
                detail="No URL specified for streaming-network server",
            )
        headers = dict(self.descriptor.headers) or None
        if url.rstrip("/").endswith("/sse"):
            return SSETransport(url=url, headers=headers)
        return StreamableHttpTransport(url=url, headers=headers)

    async def _open_transport(self) -> None:
        self._client = Client(
            self._create_transport(),
            timeout=self.descriptor.timeout,
            message_handler=_ListChangedMessageHandler(self._handle_notification),
        )

    async def _handshake(self) -> dict[str, Any]:
        assert self._client is not None
        # Entering the client context opens the stream and runs initialize
        self._exit_stack = AsyncExitStack()
        await self._exit_stack.enter_async_context(self._client)

        initialize_result = getattr(self._client, "initialize_result", None)
        if initialize_result is None:
            return {}
        return initialize_result.model_dump(by_alias=True, exclude_none=True, mode="json")

    async def _transport_request(self, method: str, params: dict[str, Any] | None) -> Any:
        request_id = self._allocate_id()
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future

        task = asyncio.ensure_future(self._dispatch(method, params or {}))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        task.add_done_callback(partial(self._relay, future))
        try:
            return await future
        finally:
            self._pending.pop(request_id, None)
            if not task.done():
                task.cancel()

    def _relay(self, future: asyncio.Future[Any], task: asyncio.Task[Any]) -> None:
        """Copy the outcome of a dispatch task into its request future."""
        if future.done():
            return
        if task.cancelled():
            future.set_exception(
                create_error(
                    "MCP_CONNECTION_CLOSED",
                    server_id=self.server_id,
                    detail="Request cancelled",
                )
            )
        elif task.exception() is not None:
            future.set_exception(task.exception())  # type: ignore[arg-type]
        else:
            future.set_result(task.result())

    async def _dispatch(self, method: str, params: dict[str, Any]) -> dict[str, Any]:
        """Map a JSON-RPC method onto the FastMCP client call."""
        client = self._client
        if client is None:
            raise create_error("MCP_CONNECTION_CLOSED", server_id=self.server_id)

        result: Any
        try:
            if method == "ping":
                if not await client.ping():
                    raise JSONRPCError(INTERNAL_ERROR, "Ping was not acknowledged")
                return {}
            elif method == "tools/list":
                result = await client.list_tools_mcp()
            elif method == "resources/list":
                result = await client.list_resources_mcp()
            elif method == "tools/call":
                result = await client.call_tool_mcp(params["name"], params.get("arguments") or {})
            elif method == "resources/read":
                result = await client.read_resource_mcp(params["uri"])
            else:
                raise JSONRPCError(METHOD_NOT_FOUND, f"Method not supported: {method}")
        except McpError as e:
            raise JSONRPCError(e.error.code, e.error.message, e.error.data) from e

        data: dict[str, Any] = result.model_dump(by_alias=True, exclude_none=True, mode="json")
        # The client fetches a single page
        data.pop("nextCursor", None)
        return data

    async def _close_transport(self) -> None:
        exit_stack = self._exit_stack
        if exit_stack is not None:
            await exit_stack.aclose()
        self._exit_stack = None
        self._client = None

    def _kill_transport(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()
        exit_stack = self._exit_stack
        self._exit_stack = None
        self._client = None
        if exit_stack is None:
            return

        # The session task keeps the HTTP stream open until the client context exits
        task = asyncio.get_running_loop().create_task(
            self._close_detached(exit_stack), name=f"mcp-{self.server_id}-close"
        )
        self._closers.add(task)
        task.add_done_callback(self._closers.discard)

    async def _close_detached(self, exit_stack: AsyncExitStack) -> None:
        try:
            await asyncio.wait_for(exit_stack.aclose(), timeout=self.settings.process_shutdown_grace)
        except TimeoutError:
            self._log(LogLevel.WARN, "Streaming client did not close after force-terminate")
        except Exception as e:
            self._log(LogLevel.DEBUG, f"Error closing streaming client: {e}")

    def _has_transport(self) -> bool:
        return self._client is not None
