"""JSON-RPC protocol helpers for MCP communication."""

import json
from typing import Any

from conduit_core.errors.rpc import (
    CONNECTION_CLOSED,
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    REQUEST_TIMEOUT,
    RESOURCE_NOT_FOUND,
    JSONRPCError,
)

# clientInfo sent in the initialize handshake
CLIENT_INFO = {"name": "conduit-core", "version": "0.1.0"}

__all__ = [
    "JSONRPCMessage",
    "CLIENT_INFO",
    "JSONRPCError",
    "PARSE_ERROR",
    "INVALID_REQUEST",
    "METHOD_NOT_FOUND",
    "INVALID_PARAMS",
    "INTERNAL_ERROR",
    "CONNECTION_CLOSED",
    "REQUEST_TIMEOUT",
    "RESOURCE_NOT_FOUND",
]


class JSONRPCMessage:
    """JSON-RPC 2.0 message builder and parser."""

    @staticmethod
    def request(method: str, params: dict[str, Any] | None = None, id: int = 1) -> dict[str, Any]:
        """Build a JSON-RPC request.

        Args:
            method: Method name (e.g., "initialize", "tools/list", "tools/call")
            params: Optional parameters
            id: Request ID

        Returns:
            JSON-RPC request dict
        """
        msg: dict[str, Any] = {
            "jsonrpc": "2.0",
            "method": method,
            "id": id,
        }
        if params is not None:
            msg["params"] = params
        return msg

    @staticmethod
    def notification(method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """Build a JSON-RPC notification (no response expected).

        Args:
            method: Method name
            params: Optional parameters

        Returns:
            JSON-RPC notification dict
        """
        msg: dict[str, Any] = {
            "jsonrpc": "2.0",
            "method": method,
        }
        if params is not None:
            msg["params"] = params
        return msg

    @staticmethod
    def success_response(id: int | str, result: Any) -> dict[str, Any]:
        """Build a JSON-RPC success response.

        Args:
            id: Request ID
            result: Result data

        Returns:
            JSON-RPC response dict
        """
        return {
            "jsonrpc": "2.0",
            "id": id,
            "result": result,
        }

    @staticmethod
    def error_response(
        id: int | str | None, code: int, message: str, data: Any = None
    ) -> dict[str, Any]:
        """Build a JSON-RPC error response.

        Args:
            id: Request ID
            code: Error code
            message: Error message
            data: Optional error data

        Returns:
            JSON-RPC error response dict
        """
        error: dict[str, Any] = {
            "code": code,
            "message": message,
        }
        if data is not None:
            error["data"] = data

        return {
            "jsonrpc": "2.0",
            "id": id,
            "error": error,
        }

    @staticmethod
    def encode(message: dict[str, Any]) -> bytes:
        """Encode a message as one newline-terminated line.

        Args:
            message: Message dict

        Returns:
            UTF-8 bytes ending in a newline
        """
        return (json.dumps(message, separators=(",", ":")) + "\n").encode("utf-8")

    @staticmethod
    def parse(message: str | bytes) -> dict[str, Any]:
        """Parse a JSON-RPC message.

        Args:
            message: JSON string or bytes

        Returns:
            Parsed message dict

        Raises:
            ValueError: If message is not a valid JSON object
        """
        if isinstance(message, bytes):
            message = message.decode("utf-8")
        parsed = json.loads(message)
        if not isinstance(parsed, dict):
            msg = "JSON-RPC message must be an object"
            raise ValueError(msg)
        return parsed

    @staticmethod
    def is_response(message: dict[str, Any]) -> bool:
        """Check if message is a response (has 'result' or 'error').

        Args:
            message: Parsed message dict

        Returns:
            True if response, False if request/notification
        """
        return "result" in message or "error" in message

    @staticmethod
    def is_request(message: dict[str, Any]) -> bool:
        """Check if message is a request sent by the peer (has method and id)."""
        return "method" in message and message.get("id") is not None

    @staticmethod
    def is_notification(message: dict[str, Any]) -> bool:
        """Check if message is a notification (method without id)."""
        return "method" in message and message.get("id") is None

    @staticmethod
    def is_error(message: dict[str, Any]) -> bool:
        """Check if message is an error response.

        Args:
            message: Parsed message dict

        Returns:
            True if error response
        """
        return "error" in message

    @staticmethod
    def get_result(message: dict[str, Any]) -> Any:
        """Extract result from response message.

        Args:
            message: Parsed response message

        Returns:
            Result data

        Raises:
            KeyError: If message has no result
        """
        return message["result"]

    @staticmethod
    def get_error(message: dict[str, Any]) -> dict[str, Any]:
        """Extract error from error response.

        Args:
            message: Parsed error response

        Returns:
            Error dict with code, message, data

        Raises:
            KeyError: If message has no error
        """
        error: dict[str, Any] = message["error"]
        return error
