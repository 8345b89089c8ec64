"""Shared types for conduit.

Import from here rather than submodules:
    from conduit_core.types import ConnectionStatus, TransportKind, ValidationResult
"""

from .config import RetryConfig
from .enums import (
    BackoffType,
    ConnectionStatus,
    LogFormat,
    LogLevel,
    TransportKind,
)
from .validation import ValidationIssue, ValidationResult

__all__ = [
    # Enums
    "LogLevel",
    "LogFormat",
    "BackoffType",
    "TransportKind",
    "ConnectionStatus",
    # Config
    "RetryConfig",
    # Validation
    "ValidationIssue",
    "ValidationResult",
]
