"""Error factory for creating ConduitErrors from any exception type."""

from typing import Any

from .errors import ConduitError
from .matchers import ErrorMatcherChain
from .registry import ErrorRegistry

# Error code per (operation, matched kind)
OPERATION_CODES: dict[str, dict[str, str]] = {
    "tool": {
        "not_found": "TOOL_NOT_FOUND",
        "timeout": "TOOL_TIMEOUT",
        "not_ready": "TOOL_SERVER_NOT_READY",
        "unavailable": "TOOL_SERVER_UNAVAILABLE",
        "failed": "TOOL_FAILED",
    },
    "resource": {
        "not_found": "RESOURCE_NOT_FOUND",
        "timeout": "RESOURCE_TIMEOUT",
        "not_ready": "RESOURCE_SERVER_NOT_READY",
        "unavailable": "RESOURCE_SERVER_UNAVAILABLE",
        "failed": "RESOURCE_FAILED",
    },
    "connect": {
        "timeout": "MCP_CONNECT_TIMEOUT",
    },
}

DEFAULT_OPERATION_CODE = {
    "tool": "TOOL_FAILED",
    "resource": "RESOURCE_FAILED",
    "connect": "MCP_CONNECTION_FAILED",
}


class ErrorFactory:
    """Creates ConduitErrors from any exception type."""

    def __init__(
        self,
        registry: ErrorRegistry | None = None,
        matcher_chain: ErrorMatcherChain | None = None,
    ):
        """Initialize error factory.

        Args:
            registry: Error registry (defaults to new ErrorRegistry())
            matcher_chain: Matcher chain (defaults to new ErrorMatcherChain())
        """
        self.registry = registry or ErrorRegistry()
        self.matcher_chain = matcher_chain or ErrorMatcherChain()

    def from_exception(
        self,
        error: BaseException,
        operation: str,
        **context: Any,
    ) -> ConduitError:
        """Classify an exception raised during an MCP operation.

        Args:
            error: Exception raised by the connection or transport
            operation: One of "tool", "resource", "connect"
            **context: server_id, tool_name, uri, timeout_seconds, ...

        Returns:
            ConduitError of the operation's category
        """
        match_result = self.matcher_chain.match(error)

        codes = OPERATION_CODES.get(operation, {})
        code = codes.get(match_result.kind, DEFAULT_OPERATION_CODE.get(operation, "INTERNAL_ERROR"))

        merged = {**match_result.context, **{k: v for k, v in context.items() if v is not None}}
        if match_result.retryable is not None:
            merged.setdefault("retryable", match_result.retryable)

        cause = error if isinstance(error, ConduitError) else None
        return self.registry.create(code=code, context=merged, cause=cause)

    def create(
        self,
        code: str,
        context: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> ConduitError:
        """Create ConduitError directly from code.

        Args:
            code: Error code
            context: Context variables for template interpolation
            **kwargs: Additional context variables

        Returns:
            ConduitError instance
        """
        merged_context = dict(context or {})
        merged_context.update(kwargs)

        return self.registry.create(code=code, context=merged_context)


# Convenience singleton
_default_factory: ErrorFactory | None = None


def get_error_factory() -> ErrorFactory:
    """Get default error factory singleton.

    Returns:
        Default ErrorFactory instance
    """
    global _default_factory  # noqa: PLW0603
    if _default_factory is None:
        _default_factory = ErrorFactory()
    return _default_factory


def create_error(code: str, **context: Any) -> ConduitError:
    """Convenience function to create error.

    Args:
        code: Error code
        **context: Context variables for template interpolation

    Returns:
        ConduitError instance
    """
    return get_error_factory().create(code, context)
