"""Tests for LocalProcessConnection against the scripted stdio server."""

import contextlib
import os
import signal
import sys

import pytest

from conduit_core.config import ConfigLoader, ConfigLocations, ServerDescriptor
from conduit_core.errors import ConfigurationError, JSONRPCError, MCPConnectionError
from conduit_core.mcp import LocalProcessConnection, MCPConnectionManager
from conduit_core.types import ConnectionStatus


def _process_gone(pid: int) -> bool:
    """True once the pid is reaped or a zombie."""
    try:
        with open(f"/proc/{pid}/stat") as f:
            state = f.read().rsplit(")", 1)[-1].split()[0]
    except (FileNotFoundError, ProcessLookupError):
        return True
    return state == "Z"


@pytest.fixture
def stdio_connection(stdio_descriptor, settings, json_logger):
    """Build LocalProcessConnections and kill any process left after the test."""
    connections = []

    def _connection(*flags, **overrides):
        connection = LocalProcessConnection(
            stdio_descriptor(*flags, **overrides), settings, json_logger
        )
        connections.append(connection)
        return connection

    yield _connection

    for connection in connections:
        if connection.pid is not None:
            with contextlib.suppress(ProcessLookupError):
                os.killpg(connection.pid, signal.SIGKILL)


class TestCommandLine:
    """Tests for argv resolution."""

    def test_command_with_args(self, settings):
        connection = LocalProcessConnection(
            ServerDescriptor(id="a", name="A", command="npx", args=("-y", "srv")), settings
        )
        assert connection._command_line() == ["npx", "-y", "srv"]

    def test_single_string_is_split(self, settings):
        connection = LocalProcessConnection(
            ServerDescriptor(id="a", name="A", command="uvx 'my server' --port 3"), settings
        )
        assert connection._command_line() == ["uvx", "my server", "--port", "3"]

    def test_missing_command(self, settings):
        connection = LocalProcessConnection(ServerDescriptor(id="a", name="A"), settings)
        with pytest.raises(ConfigurationError) as exc_info:
            connection._command_line()
        assert exc_info.value.code == "SERVER_CONFIG_INVALID"

    def test_unbalanced_quotes(self, settings):
        connection = LocalProcessConnection(
            ServerDescriptor(id="a", name="A", command="srv 'oops"), settings
        )
        with pytest.raises(ConfigurationError):
            connection._command_line()


@pytest.mark.integration
class TestLocalProcessConnection:
    """End-to-end tests over real pipes."""

    @pytest.mark.asyncio
    async def test_connect_and_list(self, stdio_connection):
        connection = stdio_connection()

        await connection.connect()

        assert connection.is_ready
        assert connection.pid is not None
        assert connection.server_info["serverInfo"]["name"] == "fake-mcp-server"
        tools = await connection.list_tools()
        assert [t.name for t in tools] == ["echo", "fail", "sleep", "touch"]
        resources = await connection.list_resources()
        assert [r.uri for r in resources] == ["file:///greeting.txt"]

    @pytest.mark.asyncio
    async def test_paged_tools(self, stdio_connection):
        connection = stdio_connection("--paged")
        await connection.connect()

        tools = await connection.list_tools()

        assert [t.name for t in tools] == ["echo", "fail", "sleep", "touch"]

    @pytest.mark.asyncio
    async def test_call_tool(self, stdio_connection):
        connection = stdio_connection()
        await connection.connect()

        ok = await connection.call_tool("echo", {"text": "hi"})
        failed = await connection.call_tool("fail")

        assert ok["content"] == [{"type": "text", "text": "hi"}]
        assert ok["structuredContent"] == {"echo": "hi"}
        assert failed["isError"] is True

    @pytest.mark.asyncio
    async def test_unknown_tool(self, stdio_connection):
        connection = stdio_connection()
        await connection.connect()

        with pytest.raises(JSONRPCError) as exc_info:
            await connection.call_tool("nope")
        assert exc_info.value.is_method_not_found

    @pytest.mark.asyncio
    async def test_read_resource(self, stdio_connection):
        connection = stdio_connection()
        await connection.connect()

        result = await connection.read_resource("file:///greeting.txt")
        assert result["contents"][0]["text"] == "hello"

        with pytest.raises(JSONRPCError) as exc_info:
            await connection.read_resource("file:///missing.txt")
        assert exc_info.value.code == -32002

    @pytest.mark.asyncio
    async def test_server_without_tools_is_ready(self, stdio_connection):
        connection = stdio_connection("--no-tools")

        await connection.connect()

        assert connection.is_ready

    @pytest.mark.asyncio
    async def test_silent_initialize_times_out(self, stdio_connection, wait_until):
        connection = stdio_connection("--silent-init", timeout=0.5)

        with pytest.raises(MCPConnectionError) as exc_info:
            await connection.connect()

        assert exc_info.value.code == "MCP_CONNECT_TIMEOUT"
        assert connection.status == ConnectionStatus.ERROR
        assert connection.pid is None
        await wait_until(lambda: not connection._reapers)

    @pytest.mark.asyncio
    async def test_spawn_failure(self, stdio_connection):
        connection = stdio_connection(command="/nonexistent/mcp-server", args=())

        with pytest.raises(MCPConnectionError) as exc_info:
            await connection.connect()

        assert exc_info.value.code == "MCP_CONNECTION_FAILED"
        assert connection.status == ConnectionStatus.ERROR

    @pytest.mark.asyncio
    async def test_stderr_goes_to_error_history(self, stdio_connection, wait_until):
        """stderr lines are recorded and non-JSON stdout is skipped."""
        connection = stdio_connection("--stderr")

        await connection.connect()

        assert connection.is_ready
        await wait_until(lambda: "stderr: fake server starting" in connection.error_history)
        assert connection.error_count == 0

    @pytest.mark.asyncio
    async def test_list_changed_notification(self, stdio_connection):
        connection = stdio_connection()
        await connection.connect()
        await connection.list_tools()

        await connection.call_tool("touch")

        assert connection.capabilities.tools is None

    @pytest.mark.asyncio
    async def test_request_timeout(self, stdio_connection):
        connection = stdio_connection()
        await connection.connect()

        with pytest.raises(MCPConnectionError) as exc_info:
            await connection.request(
                "tools/call", {"name": "sleep", "arguments": {"seconds": 2}}, timeout=0.2
            )
        assert exc_info.value.code == "MCP_REQUEST_TIMEOUT"

    @pytest.mark.asyncio
    async def test_process_exit_sets_error(self, stdio_connection, wait_until):
        """A server that exits on its own leaves the connection in error."""
        connection = stdio_connection("--exit-after-init")

        try:
            await connection.connect()
        except MCPConnectionError:
            pass

        await wait_until(lambda: connection.status == ConnectionStatus.ERROR)
        assert "closed stdout" in " ".join(connection.error_history)
        await wait_until(lambda: not connection._reapers)

    @pytest.mark.asyncio
    async def test_disconnect(self, stdio_connection, wait_until):
        connection = stdio_connection()
        await connection.connect()
        pid = connection.pid

        await connection.disconnect()

        assert connection.status == ConnectionStatus.DISCONNECTED
        assert connection.pid is None
        if sys.platform == "linux":
            await wait_until(lambda: _process_gone(pid))

    @pytest.mark.asyncio
    async def test_force_terminate_reaps_process(self, stdio_connection, wait_until):
        """A killed server is waited on and its pipes are drained."""
        connection = stdio_connection()
        await connection.connect()
        process = connection._process

        connection.force_terminate()

        assert connection.status == ConnectionStatus.DISCONNECTED
        assert connection._reapers
        await wait_until(lambda: not connection._reapers)
        assert process.returncode == -signal.SIGKILL
        assert process.stdout.at_eof()


@pytest.mark.integration
@pytest.mark.skipif(sys.platform != "linux", reason="inspects /proc")
class TestStubbornServer:
    """A server that ignores stdin EOF and SIGTERM."""

    @pytest.mark.asyncio
    async def test_disconnect_timeout_kills(
        self, stdio_descriptor, settings, tmp_path, wait_until
    ):
        loader = ConfigLoader(ConfigLocations(cwd=tmp_path, global_storage=tmp_path))
        async with MCPConnectionManager(settings=settings, config_loader=loader) as manager:
            connection = await manager.connect_to_server(stdio_descriptor("--stubborn"))
            pid = connection.pid
            assert not _process_gone(pid)

            with pytest.raises(MCPConnectionError) as exc_info:
                await manager.disconnect_from_server("fake", timeout=0.5)

            assert exc_info.value.code == "MCP_DISCONNECT_TIMEOUT"
            assert manager.get_connection("fake") is None
            await wait_until(lambda: _process_gone(pid))
            await wait_until(lambda: not connection._reapers)

    @pytest.mark.asyncio
    async def test_dispose_kills(self, stdio_descriptor, settings, tmp_path, wait_until):
        loader = ConfigLoader(ConfigLocations(cwd=tmp_path, global_storage=tmp_path))
        manager = MCPConnectionManager(settings=settings, config_loader=loader)
        connection = await manager.connect_to_server(stdio_descriptor("--stubborn"))
        pid = connection.pid

        await manager.dispose()

        assert manager.disposed
        await wait_until(lambda: _process_gone(pid))
        await wait_until(lambda: not connection._reapers)
