"""Conduit error types."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Error source categories."""

    CONFIGURATION = "CONFIGURATION"
    CONNECTION = "CONNECTION"
    TOOL = "TOOL"
    RESOURCE = "RESOURCE"
    SYSTEM = "SYSTEM"


@dataclass(eq=False)
class ConduitError(Exception):
    """Structured error with context. Base exception for all conduit errors."""

    # Identity
    code: str  # e.g., "TOOL_NOT_FOUND"
    category: ErrorCategory

    # Messages
    message: str  # Human-readable summary
    detail: str | None = None  # Extended explanation
    suggestion: str | None = None  # Actionable fix

    # Context
    retryable: bool = False
    server_id: str | None = None
    tool_name: str | None = None
    uri: str | None = None
    config_path: str | None = None
    rpc_code: int | None = None  # JSON-RPC error code from the server, if any

    # Error chain (max depth 3)
    cause: "ConduitError | None" = None

    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def __post_init__(self) -> None:
        """Set Exception message."""
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.detail and self.detail != self.message:
            return f"{self.message}: {self.detail}"
        return self.message

    def to_dict(self) -> dict[str, Any]:
        """Serialize for display adapters and logs.

        Returns:
            Dictionary representation of the error
        """
        return {
            "code": self.code,
            "category": self.category.value,
            "message": self.message,
            "detail": self.detail,
            "suggestion": self.suggestion,
            "retryable": self.retryable,
            "server_id": self.server_id,
            "tool_name": self.tool_name,
            "uri": self.uri,
            "config_path": self.config_path,
            "rpc_code": self.rpc_code,
            "timestamp": self.timestamp.isoformat(),
            "cause": self.cause.to_dict() if self.cause else None,
        }

    def with_context(
        self,
        server_id: str | None = None,
        tool_name: str | None = None,
        uri: str | None = None,
    ) -> "ConduitError":
        """Return copy with additional context.

        Args:
            server_id: Optional server identifier
            tool_name: Optional tool name
            uri: Optional resource URI

        Returns:
            New error of the same class with updated context
        """
        return replace(
            self,
            server_id=server_id or self.server_id,
            tool_name=tool_name or self.tool_name,
            uri=uri or self.uri,
        )


class ConfigurationError(ConduitError):
    """Bad or missing descriptor fields, malformed config file."""


class MCPConnectionError(ConduitError):
    """Handshake or transport failure. Always carries ``server_id``."""


class ToolExecutionError(ConduitError):
    """Tool invocation failure. Carries ``tool_name`` and ``server_id``."""

    @property
    def is_not_found(self) -> bool:
        """True when the server reported the tool/method does not exist."""
        return self.code == "TOOL_NOT_FOUND"


class ResourceAccessError(ConduitError):
    """Resource read failure. Carries ``server_id`` and ``uri``."""

    @property
    def is_not_found(self) -> bool:
        """True when the server reported the resource does not exist."""
        return self.code == "RESOURCE_NOT_FOUND"


ERROR_CLASSES: dict[ErrorCategory, type[ConduitError]] = {
    ErrorCategory.CONFIGURATION: ConfigurationError,
    ErrorCategory.CONNECTION: MCPConnectionError,
    ErrorCategory.TOOL: ToolExecutionError,
    ErrorCategory.RESOURCE: ResourceAccessError,
    ErrorCategory.SYSTEM: ConduitError,
}


@dataclass
class ErrorTemplate:
    """Template for creating errors."""

    code: str
    category: ErrorCategory
    message_template: str  # "Tool '{tool_name}' not found on server '{server_id}'"
    detail_template: str | None = None
    suggestion_template: str | None = None
    default_retryable: bool = False


@dataclass
class MatchResult:
    """Result of matching an exception.

    ``kind`` is one of ``not_found``, ``timeout``, ``unavailable``, ``failed``.
    """

    kind: str
    context: dict[str, Any]
    retryable: bool | None = None  # None = use template default


class ErrorMatcher(ABC):
    """Base class for exception matchers."""

    @abstractmethod
    def matches(self, error: BaseException) -> bool:
        """Check if this matcher handles the error.

        Args:
            error: Exception to check

        Returns:
            True if this matcher can handle the error
        """

    @abstractmethod
    def extract(self, error: BaseException) -> MatchResult:
        """Extract classification info from the exception.

        Args:
            error: Exception to extract from

        Returns:
            MatchResult with kind and context
        """
