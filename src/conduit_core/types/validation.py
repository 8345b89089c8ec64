"""Shared validation types for conduit."""

from dataclasses import dataclass, field


@dataclass
class ValidationIssue:
    """Single validation issue (error or warning).

    Used by:
    - MCPConnectionManager.validate_server_config()
    - ConfigLoader (per-server checks while normalizing)
    """

    path: str  # e.g., "command" or "servers[0].url"
    message: str  # Human-readable description
    severity: str = "error"  # "error" | "warning"

    def __str__(self) -> str:
        return f"{self.path}: {self.message}" if self.path else self.message


@dataclass
class ValidationResult:
    """Result of validating a server descriptor."""

    valid: bool
    errors: list[ValidationIssue] = field(default_factory=list)
    warnings: list[ValidationIssue] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Ensure valid is False if there are errors."""
        if self.errors:
            self.valid = False

    def error_messages(self) -> list[str]:
        """Flatten errors to strings for error details."""
        return [str(issue) for issue in self.errors]
