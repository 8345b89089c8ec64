"""Error registry for creating errors from templates."""

from typing import Any

from .errors import ERROR_CLASSES, ConduitError, ErrorCategory, ErrorTemplate


class ErrorRegistry:
    """Registry of error templates. Creates errors from templates + context."""

    def __init__(self) -> None:
        """Initialize error registry with built-in templates."""
        self._templates: dict[str, ErrorTemplate] = {}
        self._load_builtin_templates()

    def get_template(self, code: str) -> ErrorTemplate | None:
        """Get template by error code.

        Args:
            code: Error code to look up

        Returns:
            ErrorTemplate if found, None otherwise
        """
        return self._templates.get(code)

    def register(self, template: ErrorTemplate) -> None:
        """Add or replace a template.

        Args:
            template: Template to register under its code
        """
        self._templates[template.code] = template

    def list_codes(self) -> list[str]:
        """List all registered error codes.

        Returns:
            List of error codes
        """
        return list(self._templates.keys())

    def create(
        self,
        code: str,
        context: dict[str, Any] | None = None,
        cause: ConduitError | None = None,
    ) -> ConduitError:
        """Create error instance from template + context.

        The returned instance is the category subclass (ConfigurationError,
        MCPConnectionError, ...) so callers can catch by type.

        Args:
            code: Error code
            context: Context variables for template interpolation
            cause: Optional cause error

        Returns:
            ConduitError instance

        Raises:
            ValueError: If error code not found
        """
        template = self.get_template(code)
        if not template:
            msg = f"Unknown error code: {code}"
            raise ValueError(msg)

        context = context or {}

        message = self._interpolate(template.message_template, context)
        # An explicit detail in the context wins over the template detail
        detail = context.get("detail") or self._interpolate(template.detail_template, context)
        suggestion = self._interpolate(template.suggestion_template, context)

        if message is None:
            message = f"Error {code}"

        error_class = ERROR_CLASSES.get(template.category, ConduitError)
        config_path = context.get("config_path")
        return error_class(
            code=template.code,
            category=template.category,
            message=message,
            detail=detail,
            suggestion=suggestion,
            retryable=context.get("retryable", template.default_retryable),
            server_id=context.get("server_id"),
            tool_name=context.get("tool_name"),
            uri=context.get("uri"),
            config_path=str(config_path) if config_path is not None else None,
            rpc_code=context.get("rpc_code"),
            cause=cause,
        )

    def _interpolate(
        self,
        template: str | None,
        context: dict[str, Any],
    ) -> str | None:
        """Safe string interpolation.

        Args:
            template: Template string with {var} placeholders
            context: Context variables

        Returns:
            Interpolated string or None if template is None
        """
        if template is None:
            return None

        try:
            return template.format(**context)
        except (KeyError, IndexError):
            # Missing context variable - return template as-is
            return template

    def _load_builtin_templates(self) -> None:
        """Load hardcoded built-in templates."""
        # CONFIGURATION Errors
        self.register(
            ErrorTemplate(
                code="CONFIG_INVALID",
                category=ErrorCategory.CONFIGURATION,
                message_template="Invalid MCP configuration",
                detail_template="The MCP configuration at '{config_path}' is invalid",
                suggestion_template="Check the configuration file and fix errors",
            )
        )

        self.register(
            ErrorTemplate(
                code="CONFIG_PARSE_FAILED",
                category=ErrorCategory.CONFIGURATION,
                message_template="Failed to parse MCP configuration file '{config_path}'",
                detail_template="The file is not valid JSON or YAML",
                suggestion_template="Fix the syntax errors in the configuration file",
            )
        )

        self.register(
            ErrorTemplate(
                code="SERVER_CONFIG_INVALID",
                category=ErrorCategory.CONFIGURATION,
                message_template="Invalid server configuration for '{server_id}'",
                detail_template="The server descriptor failed validation",
                suggestion_template="Fix the listed fields and try again",
            )
        )

        # CONNECTION Errors
        self.register(
            ErrorTemplate(
                code="MCP_CONNECTION_FAILED",
                category=ErrorCategory.CONNECTION,
                message_template="Failed to connect to MCP server '{server_id}'",
                detail_template="Could not establish connection to the MCP server",
                suggestion_template="Check that the MCP server command or URL is correct",
                default_retryable=True,
            )
        )

        self.register(
            ErrorTemplate(
                code="MCP_CONNECT_TIMEOUT",
                category=ErrorCategory.CONNECTION,
                message_template=(
                    "Connection to MCP server '{server_id}' timed out after {timeout_seconds}s"
                ),
                detail_template="The server did not complete the MCP handshake in time",
                suggestion_template="Increase the server timeout or check if the server is stuck",
                default_retryable=True,
            )
        )

        self.register(
            ErrorTemplate(
                code="MCP_DISCONNECT_TIMEOUT",
                category=ErrorCategory.CONNECTION,
                message_template=(
                    "Disconnect from MCP server '{server_id}' timed out after {timeout_seconds}s"
                ),
                detail_template="The server was force-terminated",
            )
        )

        self.register(
            ErrorTemplate(
                code="MCP_NOT_CONNECTED",
                category=ErrorCategory.CONNECTION,
                message_template="MCP server '{server_id}' is not connected",
                suggestion_template="Connect to the server before sending requests",
                default_retryable=True,
            )
        )

        self.register(
            ErrorTemplate(
                code="MCP_NOT_READY",
                category=ErrorCategory.CONNECTION,
                message_template="MCP server '{server_id}' is not ready for capability requests",
                detail_template="The server has not yet answered a capability or ping request",
                suggestion_template="Wait for the server to finish initializing and retry",
                default_retryable=True,
            )
        )

        self.register(
            ErrorTemplate(
                code="MCP_CONNECTION_CLOSED",
                category=ErrorCategory.CONNECTION,
                message_template="Connection to MCP server '{server_id}' was closed",
                default_retryable=True,
            )
        )

        self.register(
            ErrorTemplate(
                code="MCP_REQUEST_TIMEOUT",
                category=ErrorCategory.CONNECTION,
                message_template=(
                    "Request '{method}' to MCP server '{server_id}' "
                    "timed out after {timeout_seconds}s"
                ),
                default_retryable=True,
            )
        )

        # TOOL Errors
        self.register(
            ErrorTemplate(
                code="TOOL_SERVER_UNAVAILABLE",
                category=ErrorCategory.TOOL,
                message_template="Server '{server_id}' is not connected",
                detail_template="Cannot call tool '{tool_name}' without a live connection",
                suggestion_template="Connect to the server and retry",
                default_retryable=True,
            )
        )

        self.register(
            ErrorTemplate(
                code="TOOL_SERVER_NOT_READY",
                category=ErrorCategory.TOOL,
                message_template="Server '{server_id}' is not ready to execute tools",
                detail_template="The server has not confirmed it can answer capability requests",
                suggestion_template="Wait for the server to finish initializing and retry",
                default_retryable=True,
            )
        )

        self.register(
            ErrorTemplate(
                code="TOOL_NOT_FOUND",
                category=ErrorCategory.TOOL,
                message_template="Tool '{tool_name}' not found on server '{server_id}'",
                suggestion_template="Run discovery to list the tools the server provides",
            )
        )

        self.register(
            ErrorTemplate(
                code="TOOL_TIMEOUT",
                category=ErrorCategory.TOOL,
                message_template=(
                    "Tool '{tool_name}' on server '{server_id}' timed out after {timeout_seconds}s"
                ),
                suggestion_template="Increase the server timeout or check if the tool is stuck",
                default_retryable=True,
            )
        )

        self.register(
            ErrorTemplate(
                code="TOOL_FAILED",
                category=ErrorCategory.TOOL,
                message_template="Tool '{tool_name}' failed on server '{server_id}'",
                detail_template="The tool encountered an error during execution",
                suggestion_template="Check the server logs for more details",
            )
        )

        # RESOURCE Errors
        self.register(
            ErrorTemplate(
                code="RESOURCE_SERVER_UNAVAILABLE",
                category=ErrorCategory.RESOURCE,
                message_template="Server '{server_id}' is not connected",
                detail_template="Cannot read resource '{uri}' without a live connection",
                suggestion_template="Connect to the server and retry",
                default_retryable=True,
            )
        )

        self.register(
            ErrorTemplate(
                code="RESOURCE_SERVER_NOT_READY",
                category=ErrorCategory.RESOURCE,
                message_template="Server '{server_id}' is not ready to serve resources",
                suggestion_template="Wait for the server to finish initializing and retry",
                default_retryable=True,
            )
        )

        self.register(
            ErrorTemplate(
                code="RESOURCE_NOT_FOUND",
                category=ErrorCategory.RESOURCE,
                message_template="Resource '{uri}' not found on server '{server_id}'",
                suggestion_template="Run discovery to list the resources the server provides",
            )
        )

        self.register(
            ErrorTemplate(
                code="RESOURCE_TIMEOUT",
                category=ErrorCategory.RESOURCE,
                message_template=(
                    "Reading '{uri}' from server '{server_id}' timed out after {timeout_seconds}s"
                ),
                default_retryable=True,
            )
        )

        self.register(
            ErrorTemplate(
                code="RESOURCE_FAILED",
                category=ErrorCategory.RESOURCE,
                message_template="Resource access failed for '{uri}' on server '{server_id}'",
                suggestion_template="Check the server logs for more details",
            )
        )

        # SYSTEM Errors
        self.register(
            ErrorTemplate(
                code="MANAGER_DISPOSED",
                category=ErrorCategory.SYSTEM,
                message_template="MCP connection manager has been disposed",
                detail_template="No new connections can be registered after shutdown",
            )
        )

        self.register(
            ErrorTemplate(
                code="INTERNAL_ERROR",
                category=ErrorCategory.SYSTEM,
                message_template="Internal conduit error",
                detail_template="An unexpected error occurred",
                suggestion_template="Check the logs and report this issue",
            )
        )
