"""Fixtures for MCP connection and manager tests.

FakeConnection keeps the real MCPConnection state machine and replaces the
transport with scripted per-method handlers.
"""

import asyncio
from collections.abc import Callable
from typing import Any

import pytest

from conduit_core.config import ManagerSettings, ServerDescriptor
from conduit_core.logging import ConduitLogger
from conduit_core.mcp import MCPConnection

# Handler value: the request never gets an answer
HANG = "hang"

DEFAULT_TOOLS = [
    {
        "name": "echo",
        "description": "Echo text back",
        "inputSchema": {
            "type": "object",
            "properties": {"text": {"type": "string"}},
            "required": ["text"],
        },
    },
    {"name": "noop", "description": "Does nothing"},
]

DEFAULT_RESOURCES = [
    {"uri": "file:///readme.md", "name": "readme", "mimeType": "text/markdown"},
]


def default_handlers() -> dict[str, Any]:
    return {
        "ping": {},
        "tools/list": {"tools": DEFAULT_TOOLS},
        "resources/list": {"resources": DEFAULT_RESOURCES},
        "tools/call": lambda params: {
            "content": [{"type": "text", "text": (params.get("arguments") or {}).get("text", "")}],
            "isError": False,
        },
        "resources/read": lambda params: {
            "contents": [{"uri": params["uri"], "text": "# readme"}],
        },
    }


class FakeConnection(MCPConnection):
    """In-memory connection driven by ``handlers``.

    A handler is a result dict, an exception to raise, a callable taking the
    params, or "hang".
    """

    def __init__(self, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.handlers: dict[str, Any] = default_handlers()
        self.open_failures: list[BaseException] = []
        self.hang_on_open = False
        self.hang_on_close = False
        self.sent: list[tuple[str, dict[str, Any] | None]] = []
        self.open_count = 0
        self.closed = False
        self.killed = False
        self._open = False

    def sent_methods(self) -> list[str]:
        return [method for method, _ in self.sent]

    async def _open_transport(self) -> None:
        self.open_count += 1
        if self.open_failures:
            raise self.open_failures.pop(0)
        if self.hang_on_open:
            await asyncio.Event().wait()
        self._open = True

    async def _handshake(self) -> dict[str, Any]:
        return {
            "protocolVersion": "2025-06-18",
            "capabilities": {"tools": {"listChanged": True}},
            "serverInfo": {"name": "fake", "version": "1.0.0"},
        }

    async def _transport_request(self, method: str, params: dict[str, Any] | None) -> Any:
        self.sent.append((method, params))
        handler = self.handlers.get(method, HANG)
        if handler == HANG:
            request_id = self._allocate_id()
            future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
            self._pending[request_id] = future
            try:
                return await future
            finally:
                self._pending.pop(request_id, None)
        if isinstance(handler, BaseException):
            raise handler
        if callable(handler):
            return handler(params or {})
        return handler

    async def _close_transport(self) -> None:
        if self.hang_on_close:
            await asyncio.Event().wait()
        self._open = False
        self.closed = True

    def _kill_transport(self) -> None:
        self._open = False
        self.killed = True

    def _has_transport(self) -> bool:
        return self._open


class FakeConnectionFactory:
    """Connection factory handing out FakeConnections.

    ``plan(server_id, ...)`` queues the setup of the next connection built
    for that id; later connections get the defaults.
    """

    def __init__(self) -> None:
        self.created: list[FakeConnection] = []
        self._plans: dict[str, list[dict[str, Any]]] = {}

    def plan(self, server_id: str, **setup: Any) -> None:
        self._plans.setdefault(server_id, []).append(setup)

    def for_server(self, server_id: str) -> list[FakeConnection]:
        return [c for c in self.created if c.server_id == server_id]

    def __call__(
        self,
        descriptor: ServerDescriptor,
        settings: ManagerSettings,
        logger: ConduitLogger | None = None,
    ) -> FakeConnection:
        connection = FakeConnection(descriptor, settings, logger)
        plans = self._plans.get(descriptor.id)
        if plans:
            setup = plans.pop(0)
            connection.handlers.update(setup.pop("handlers", {}))
            for key, value in setup.items():
                setattr(connection, key, value)
        self.created.append(connection)
        return connection


async def _wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            pytest.fail("Condition not met in time")
        await asyncio.sleep(0.01)


@pytest.fixture
def wait_until() -> Callable[..., Any]:
    """Poll until predicate() is true or fail the test."""
    return _wait_until


@pytest.fixture
def settings() -> ManagerSettings:
    """Manager settings with test-sized timeouts."""
    return ManagerSettings(
        default_health_check_interval=60.0,
        disconnect_timeout=0.5,
        dispose_timeout=0.3,
        health_check_timeout=0.3,
        readiness_timeout=0.3,
        readiness_poll_interval=0.01,
        process_shutdown_grace=0.1,
    )


@pytest.fixture
def factory() -> FakeConnectionFactory:
    return FakeConnectionFactory()


@pytest.fixture
def descriptor() -> Callable[..., ServerDescriptor]:
    """Build a local-process descriptor with fast timings."""

    def _descriptor(server_id: str = "alpha", **overrides: Any) -> ServerDescriptor:
        fields: dict[str, Any] = {
            "id": server_id,
            "name": server_id.title(),
            "command": "fake-server",
            "timeout": 2.0,
            "retry_attempts": 1,
            "retry_delay": 0.01,
        }
        fields.update(overrides)
        return ServerDescriptor(**fields)

    return _descriptor


@pytest.fixture
def fake_connection(settings, descriptor) -> Callable[..., FakeConnection]:
    """Build a standalone FakeConnection."""

    def _connection(server_id: str = "alpha", logger=None, **overrides: Any) -> FakeConnection:
        return FakeConnection(descriptor(server_id, **overrides), settings, logger)

    return _connection
