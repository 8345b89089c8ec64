"""Conduit error handling - structured errors with context."""

from .errors import (
    ConduitError,
    ConfigurationError,
    ErrorCategory,
    ErrorMatcher,
    ErrorTemplate,
    MatchResult,
    MCPConnectionError,
    ResourceAccessError,
    ToolExecutionError,
)
from .factory import ErrorFactory, create_error, get_error_factory
from .matchers import ErrorMatcherChain
from .registry import ErrorRegistry
from .rpc import JSONRPCError

__all__ = [
    # Core error types
    "ConduitError",
    "ConfigurationError",
    "MCPConnectionError",
    "ToolExecutionError",
    "ResourceAccessError",
    "ErrorCategory",
    "ErrorTemplate",
    "MatchResult",
    "JSONRPCError",
    # Registry and factory
    "ErrorRegistry",
    "ErrorFactory",
    "ErrorMatcherChain",
    "ErrorMatcher",
    # Convenience functions
    "get_error_factory",
    "create_error",
]
