"""Error matchers for classifying transport and RPC exceptions."""

import asyncio

import httpx
from mcp.shared.exceptions import McpError
from pydantic import ValidationError

from .errors import ConduitError, ErrorMatcher, MatchResult
from .rpc import CONNECTION_CLOSED, METHOD_NOT_FOUND, RESOURCE_NOT_FOUND, JSONRPCError

NOT_FOUND_CODES = frozenset({METHOD_NOT_FOUND, RESOURCE_NOT_FOUND})


class JSONRPCErrorMatcher(ErrorMatcher):
    """Matches error responses from an MCP server."""

    def matches(self, error: BaseException) -> bool:
        return isinstance(error, (JSONRPCError, McpError))

    def extract(self, error: BaseException) -> MatchResult:
        if isinstance(error, McpError):
            code = error.error.code
            message = error.error.message
        else:
            assert isinstance(error, JSONRPCError)
            code = error.code
            message = error.message

        if code in NOT_FOUND_CODES:
            kind = "not_found"
        elif code == CONNECTION_CLOSED:
            kind = "unavailable"
        else:
            kind = "failed"

        return MatchResult(
            kind=kind,
            context={"detail": message, "rpc_code": code},
            retryable=kind == "unavailable",
        )


class ConduitErrorMatcher(ErrorMatcher):
    """Matches errors already raised by a connection (not ready, closed, timeout)."""

    _KINDS = {
        "MCP_NOT_CONNECTED": "unavailable",
        "MCP_CONNECTION_CLOSED": "unavailable",
        "MCP_NOT_READY": "not_ready",
        "MCP_REQUEST_TIMEOUT": "timeout",
    }

    def matches(self, error: BaseException) -> bool:
        return isinstance(error, ConduitError)

    def extract(self, error: BaseException) -> MatchResult:
        assert isinstance(error, ConduitError)
        kind = self._KINDS.get(error.code, "failed")
        context = {"detail": str(error), "rpc_code": error.rpc_code}
        return MatchResult(kind=kind, context=context, retryable=error.retryable)


class TimeoutErrorMatcher(ErrorMatcher):
    """Matches timeout errors."""

    def matches(self, error: BaseException) -> bool:
        """Check if error is a timeout error.

        Args:
            error: Exception to check

        Returns:
            True if error is a timeout error
        """
        return isinstance(error, (asyncio.TimeoutError, TimeoutError, httpx.TimeoutException))

    def extract(self, error: BaseException) -> MatchResult:
        return MatchResult(
            kind="timeout",
            context={"detail": str(error) or "Operation timed out"},
            retryable=True,
        )


class TransportErrorMatcher(ErrorMatcher):
    """Matches broken pipes, refused connections and HTTP transport failures."""

    def matches(self, error: BaseException) -> bool:
        return isinstance(error, (httpx.TransportError, OSError, EOFError))

    def extract(self, error: BaseException) -> MatchResult:
        return MatchResult(
            kind="unavailable",
            context={"detail": f"{type(error).__name__}: {error}"},
            retryable=True,
        )


class InvalidResponseMatcher(ErrorMatcher):
    """Matches responses that do not fit the MCP result schema."""

    def matches(self, error: BaseException) -> bool:
        return isinstance(error, (ValidationError, ValueError, KeyError))

    def extract(self, error: BaseException) -> MatchResult:
        return MatchResult(
            kind="failed",
            context={"detail": f"Invalid response: {error}"},
            retryable=False,
        )


class GenericErrorMatcher(ErrorMatcher):
    """Fallback matcher for any exception."""

    def matches(self, error: BaseException) -> bool:
        """Always matches."""
        return True

    def extract(self, error: BaseException) -> MatchResult:
        return MatchResult(
            kind="failed",
            context={"detail": f"{type(error).__name__}: {error}"},
            retryable=False,
        )


class ErrorMatcherChain:
    """Ordered chain of matchers. First match wins."""

    def __init__(self) -> None:
        """Initialize matcher chain with built-in matchers."""
        self.matchers: list[ErrorMatcher] = []
        self._load_builtin_matchers()

    def match(self, error: BaseException) -> MatchResult:
        """Find first matching matcher and extract result.

        Args:
            error: Exception to match

        Returns:
            MatchResult from first matching matcher
        """
        for matcher in self.matchers:
            if matcher.matches(error):
                return matcher.extract(error)

        # Should never reach here due to GenericErrorMatcher
        return MatchResult(kind="failed", context={"detail": str(error)}, retryable=False)

    def _load_builtin_matchers(self) -> None:
        """Load built-in matchers in priority order."""
        # Order matters - more specific matchers first.
        # httpx.TimeoutException is a TransportError, so timeouts go first.
        self.matchers = [
            JSONRPCErrorMatcher(),
            ConduitErrorMatcher(),
            TimeoutErrorMatcher(),
            TransportErrorMatcher(),
            InvalidResponseMatcher(),
            GenericErrorMatcher(),  # Fallback - must be last
        ]
