"""JSON-RPC error codes and the exception raised for RPC-level failures."""

from typing import Any

# JSON-RPC 2.0 standard codes
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603

# MCP-specific codes
CONNECTION_CLOSED = -32000
REQUEST_TIMEOUT = -32001
RESOURCE_NOT_FOUND = -32002


class JSONRPCError(Exception):
    """Error response received from (or synthesized for) an MCP server."""

    def __init__(self, code: int, message: str, data: Any = None):
        super().__init__(f"[{code}] {message}")
        self.code = code
        self.message = message
        self.data = data

    @classmethod
    def from_error(cls, error: dict[str, Any]) -> "JSONRPCError":
        """Build from the ``error`` member of a JSON-RPC response.

        Args:
            error: Error dict with code, message, data

        Returns:
            JSONRPCError instance
        """
        return cls(
            code=int(error.get("code", INTERNAL_ERROR)),
            message=str(error.get("message", "Unknown error")),
            data=error.get("data"),
        )

    @property
    def is_method_not_found(self) -> bool:
        """True for -32601 (method/tool not supported)."""
        return self.code == METHOD_NOT_FOUND
