"""Conduit MCP - client-side MCP server connection management."""

from .connection import MCPConnection
from .events import StatusBroadcaster, StatusEvent
from .manager import ConnectionFactory, MCPConnectionManager, create_connection
from .protocol import JSONRPCMessage
from .stdio import LocalProcessConnection
from .streaming import StreamingNetworkConnection
from .types import (
    CapabilityCache,
    ExecutionResult,
    ResourceDescriptor,
    ServerInfo,
    ToolDescriptor,
)

__all__ = [
    # Connection
    "MCPConnection",
    "LocalProcessConnection",
    "StreamingNetworkConnection",
    # Manager
    "MCPConnectionManager",
    "ConnectionFactory",
    "create_connection",
    # Events
    "StatusEvent",
    "StatusBroadcaster",
    # Types
    "ToolDescriptor",
    "ResourceDescriptor",
    "ExecutionResult",
    "ServerInfo",
    "CapabilityCache",
    # Protocol
    "JSONRPCMessage",
]
