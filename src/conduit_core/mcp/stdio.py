"""Local-process MCP connection.

Spawns the server as a child in its own process group and speaks
newline-delimited JSON-RPC over its stdin/stdout. stderr is drained into
the log and the connection's error history.
"""

import asyncio
import os
import shlex
import signal
from typing import Any

from mcp.types import LATEST_PROTOCOL_VERSION, InitializeResult

from conduit_core.errors import JSONRPCError, create_error
from conduit_core.types import LogLevel

from .connection import MCPConnection
from .protocol import CLIENT_INFO, METHOD_NOT_FOUND, JSONRPCMessage

# asyncio's default 64 KiB line limit is too small for large tool results
STREAM_LIMIT = 16 * 1024 * 1024


class LocalProcessConnection(MCPConnection):
    """MCP connection to a spawned child process."""

    def __init__(self, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self._process: asyncio.subprocess.Process | None = None
        self._reader_task: asyncio.Task[None] | None = None
        self._stderr_task: asyncio.Task[None] | None = None
        self._write_lock = asyncio.Lock()
        self._reapers: set[asyncio.Task[None]] = set()

    @property
    def pid(self) -> int | None:
        """PID (and process group id) of the running server."""
        return self._process.pid if self._process else None

    def _command_line(self) -> list[str]:
        """Resolve the argv to spawn.

        A command given as one string without separate args is split with
        shlex, so ``"npx -y server"`` works as well as ``command`` + ``args``.
        """
        command = self.descriptor.command
        if not command:
            raise create_error(
                "SERVER_CONFIG_INVALID",
                server_id=self.server_id,
                detail="No command specified for local-process server",
            )
        if self.descriptor.args:
            return [command, *self.descriptor.args]
        try:
            parts = shlex.split(command)
        except ValueError as e:
            raise create_error(
                "SERVER_CONFIG_INVALID",
                server_id=self.server_id,
                detail=f"Invalid command: {e}",
            ) from e
        return parts or [command]

    async def _open_transport(self) -> None:
        argv = self._command_line()
        env = {**os.environ, **self.descriptor.env}

        process = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=self.descriptor.cwd,
            env=env,
            start_new_session=True,  # Own process group, so killpg reaches grandchildren
            limit=STREAM_LIMIT,
        )
        self._process = process
        self._log(LogLevel.DEBUG, f"Spawned server process (pid={process.pid})", {"argv": argv})

        self._reader_task = asyncio.create_task(
            self._read_loop(process), name=f"mcp-{self.server_id}-stdout"
        )
        self._stderr_task = asyncio.create_task(
            self._pump_stderr(process), name=f"mcp-{self.server_id}-stderr"
        )

    async def _handshake(self) -> dict[str, Any]:
        result = await self._send_request(
            "initialize",
            {
                "protocolVersion": LATEST_PROTOCOL_VERSION,
                "capabilities": {},
                "clientInfo": CLIENT_INFO,
            },
        )
        initialize_result = InitializeResult.model_validate(result)
        await self._write(JSONRPCMessage.notification("notifications/initialized"))
        return initialize_result.model_dump(by_alias=True, exclude_none=True, mode="json")

    # ── Channel ──────────────────────────────────────────────────────

    async def _write(self, message: dict[str, Any]) -> None:
        process = self._process
        if process is None or process.stdin is None or process.stdin.is_closing():
            raise create_error(
                "MCP_CONNECTION_CLOSED",
                server_id=self.server_id,
                detail="Server stdin is closed",
            )
        async with self._write_lock:
            process.stdin.write(JSONRPCMessage.encode(message))
            await process.stdin.drain()

    async def _transport_request(self, method: str, params: dict[str, Any] | None) -> Any:
        request_id = self._allocate_id()
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future
        try:
            await self._write(JSONRPCMessage.request(method, params, id=request_id))
            return await future
        finally:
            self._pending.pop(request_id, None)

    async def _read_loop(self, process: asyncio.subprocess.Process) -> None:
        """Read stdout until EOF, routing responses, requests and notifications."""
        assert process.stdout is not None
        reason = "Server process closed stdout"
        try:
            while True:
                line = await process.stdout.readline()
                if not line:
                    break
                line = line.strip()
                if not line:
                    continue
                try:
                    message = JSONRPCMessage.parse(line)
                except ValueError:
                    self._log(LogLevel.DEBUG, f"Ignoring non-JSON output: {line[:200]!r}")
                    continue
                await self._dispatch(message)
        except (OSError, ValueError) as e:
            reason = f"Failed reading server output: {e}"

        if process.returncode is not None:
            reason += f" (exit code {process.returncode})"
        self._on_transport_closed(reason)

    async def _dispatch(self, message: dict[str, Any]) -> None:
        if JSONRPCMessage.is_response(message):
            future = self._pending.get(message.get("id"))  # type: ignore[arg-type]
            if future is None or future.done():
                self._log(
                    LogLevel.DEBUG,
                    f"Dropping response for unknown request id {message.get('id')!r}",
                )
                return
            if JSONRPCMessage.is_error(message):
                future.set_exception(JSONRPCError.from_error(JSONRPCMessage.get_error(message)))
            else:
                future.set_result(message.get("result"))
        elif JSONRPCMessage.is_request(message):
            await self._answer_server_request(message)
        elif JSONRPCMessage.is_notification(message):
            self._handle_notification(message["method"], message.get("params"))

    async def _answer_server_request(self, message: dict[str, Any]) -> None:
        request_id = message["id"]
        method = message["method"]
        if method == "ping":
            reply = JSONRPCMessage.success_response(request_id, {})
        else:
            reply = JSONRPCMessage.error_response(
                request_id, METHOD_NOT_FOUND, f"Method not found: {method}"
            )
        try:
            await self._write(reply)
        except Exception as e:
            self._log(LogLevel.DEBUG, f"Could not answer server request '{method}': {e}")

    async def _pump_stderr(self, process: asyncio.subprocess.Process) -> None:
        assert process.stderr is not None
        try:
            while True:
                line = await process.stderr.readline()
                if not line:
                    return
                text = line.decode("utf-8", errors="replace").rstrip()
                if not text:
                    continue
                self._record_error(f"stderr: {text}")
                if self._server_log:
                    self._server_log.stderr(text)
        except (OSError, ValueError):
            return

    # ── Teardown ─────────────────────────────────────────────────────

    async def _close_transport(self) -> None:
        process = self._process
        if process is None:
            return

        # EOF on stdin asks a well-behaved server to exit
        if process.stdin is not None and not process.stdin.is_closing():
            process.stdin.close()

        try:
            await asyncio.wait_for(process.wait(), timeout=self.settings.process_shutdown_grace)
        except TimeoutError:
            self._log(LogLevel.DEBUG, "Server ignored stdin EOF, sending SIGTERM")
            self._signal_group(process, signal.SIGTERM)
            await process.wait()

        await self._stop_tasks()
        self._process = None

    async def _stop_tasks(self) -> None:
        for task in (self._reader_task, self._stderr_task):
            if task is None:
                continue
            if not task.done():
                task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._reader_task = None
        self._stderr_task = None

    def _kill_transport(self) -> None:
        process = self._process
        self._process = None
        readers = [t for t in (self._reader_task, self._stderr_task) if t is not None]
        for task in readers:
            if not task.done():
                task.cancel()
        self._reader_task = None
        self._stderr_task = None

        if process is None:
            return
        if process.returncode is None:
            self._signal_group(process, signal.SIGKILL)
        if process.stdin is not None and not process.stdin.is_closing():
            process.stdin.close()

        reaper = asyncio.get_running_loop().create_task(
            self._reap(process, readers), name=f"mcp-{self.server_id}-reap"
        )
        self._reapers.add(reaper)
        reaper.add_done_callback(self._reapers.discard)

    async def _reap(
        self, process: asyncio.subprocess.Process, readers: list[asyncio.Task[None]]
    ) -> None:
        """Wait for a killed process and drain its pipes so its transport closes."""
        # The cancelled readers must let go of stdout/stderr first
        await asyncio.gather(*readers, return_exceptions=True)
        try:
            await asyncio.wait_for(
                process.communicate(), timeout=self.settings.process_shutdown_grace
            )
        except TimeoutError:
            self._log(LogLevel.WARN, f"Killed server process (pid={process.pid}) did not exit")
        except (OSError, ValueError) as e:
            self._log(LogLevel.DEBUG, f"Error reaping server process: {e}")

    def _signal_group(self, process: asyncio.subprocess.Process, sig: signal.Signals) -> None:
        """Signal the server's whole process group, falling back to the child alone."""
        try:
            os.killpg(process.pid, sig)
            return
        except ProcessLookupError:
            return
        except (PermissionError, AttributeError):
            pass
        try:
            process.send_signal(sig)
        except ProcessLookupError:
            pass

    def _has_transport(self) -> bool:
        return self._process is not None
