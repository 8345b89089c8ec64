"""Conduit Core - MCP connection manager for a command-line agent.

Loads MCP server configuration, keeps one connection per server over
local-process or streaming-network transports, and exposes discovery,
tool invocation and resource access to the agent.
"""

from conduit_core.application import ConduitApplication

__version__ = "0.1.0"
__all__ = ["__version__", "ConduitApplication"]
