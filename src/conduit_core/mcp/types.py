"""MCP connection manager types."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from conduit_core.types import ConnectionStatus


@dataclass
class ToolDescriptor:
    """Tool advertised by an MCP server."""

    name: str
    server_id: str
    description: str = ""
    input_schema: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mcp(cls, data: dict[str, Any], server_id: str) -> "ToolDescriptor":
        """Build from one entry of a ``tools/list`` result.

        Args:
            data: Tool dict (name, description, inputSchema)
            server_id: Owning server

        Returns:
            ToolDescriptor instance
        """
        return cls(
            name=data["name"],
            server_id=server_id,
            description=data.get("description") or "",
            input_schema=data.get("inputSchema") or {},
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "server_id": self.server_id,
            "description": self.description,
            "input_schema": self.input_schema,
        }


@dataclass
class ResourceDescriptor:
    """Resource advertised by an MCP server."""

    uri: str
    server_id: str
    name: str | None = None
    description: str | None = None
    mime_type: str | None = None

    @classmethod
    def from_mcp(cls, data: dict[str, Any], server_id: str) -> "ResourceDescriptor":
        """Build from one entry of a ``resources/list`` result.

        Args:
            data: Resource dict (uri, name, description, mimeType)
            server_id: Owning server

        Returns:
            ResourceDescriptor instance
        """
        return cls(
            uri=str(data["uri"]),
            server_id=server_id,
            name=data.get("name"),
            description=data.get("description"),
            mime_type=data.get("mimeType"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "uri": self.uri,
            "server_id": self.server_id,
            "name": self.name,
            "description": self.description,
            "mime_type": self.mime_type,
        }


@dataclass
class ExecutionResult:
    """Result of a tool call.

    ``success`` is False when the tool itself reported ``isError``; transport
    and RPC failures are raised as ToolExecutionError instead.
    """

    success: bool
    result: Any  # Raw MCP content list
    metadata: dict[str, Any] | None = None  # _meta, structuredContent, duration_ms

    @property
    def text(self) -> str:
        """Concatenated text items of the result content."""
        if not isinstance(self.result, list):
            return "" if self.result is None else str(self.result)
        parts = [
            item.get("text", "")
            for item in self.result
            if isinstance(item, dict) and item.get("type") == "text"
        ]
        return "\n".join(parts)


@dataclass
class ServerInfo:
    """Per-server summary for discovery and status output."""

    id: str
    name: str
    status: ConnectionStatus
    tools: list[ToolDescriptor] = field(default_factory=list)
    resources: list[ResourceDescriptor] = field(default_factory=list)
    capability_ready: bool = False
    error_count: int = 0
    last_error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize for display adapters.

        Returns:
            Dictionary with tools and resources flattened to dicts
        """
        return {
            "id": self.id,
            "name": self.name,
            "status": self.status.value,
            "tools": [tool.to_dict() for tool in self.tools],
            "resources": [resource.to_dict() for resource in self.resources],
            "capability_ready": self.capability_ready,
            "error_count": self.error_count,
            "last_error": self.last_error,
        }


class CapabilityCache:
    """Cached tool and resource lists of one connection.

    ``None`` means the list has not been fetched (or was invalidated by a
    ``list_changed`` notification); an empty list means the server has none.
    """

    def __init__(self) -> None:
        self._tools: list[ToolDescriptor] | None = None
        self._resources: list[ResourceDescriptor] | None = None
        self.updated_at: datetime | None = None

    @property
    def tools(self) -> list[ToolDescriptor] | None:
        return None if self._tools is None else list(self._tools)

    @property
    def resources(self) -> list[ResourceDescriptor] | None:
        return None if self._resources is None else list(self._resources)

    @property
    def is_populated(self) -> bool:
        return self._tools is not None or self._resources is not None

    def set_tools(self, tools: list[ToolDescriptor]) -> None:
        self._tools = list(tools)
        self.updated_at = datetime.now(UTC)

    def set_resources(self, resources: list[ResourceDescriptor]) -> None:
        self._resources = list(resources)
        self.updated_at = datetime.now(UTC)

    def get_tool(self, name: str) -> ToolDescriptor | None:
        """Get a cached tool by name.

        Args:
            name: Tool name

        Returns:
            ToolDescriptor if cached, None otherwise
        """
        for tool in self._tools or []:
            if tool.name == name:
                return tool
        return None

    def invalidate_tools(self) -> None:
        self._tools = None

    def invalidate_resources(self) -> None:
        self._resources = None

    def clear(self) -> None:
        """Drop everything (on disconnect)."""
        self._tools = None
        self._resources = None
        self.updated_at = None
