"""
Pytest configuration and shared fixtures for conduit tests.
"""

import io
import json
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from conduit_core.config import ServerDescriptor  # noqa: E402
from conduit_core.logging import ConduitLogger, LogConfig  # noqa: E402
from conduit_core.types import LogFormat, LogLevel, TransportKind  # noqa: E402

# =============================================================================
# Path Fixtures
# =============================================================================


@pytest.fixture(scope="session")
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture(scope="session")
def tests_dir() -> Path:
    """Return the tests directory."""
    return Path(__file__).parent


@pytest.fixture(scope="session")
def fixtures_dir(tests_dir: Path) -> Path:
    """Return the fixtures directory."""
    return tests_dir / "fixtures"


@pytest.fixture(scope="session")
def fake_server_path(fixtures_dir: Path) -> Path:
    """Return path to the scripted stdio MCP server."""
    return fixtures_dir / "fake_mcp_server.py"


# =============================================================================
# Logging Fixtures
# =============================================================================


@pytest.fixture
def log_output() -> io.StringIO:
    """Buffer that captures JSON log lines."""
    return io.StringIO()


@pytest.fixture
def json_logger(log_output: io.StringIO) -> ConduitLogger:
    """Logger writing JSON lines at DEBUG level into ``log_output``."""
    return ConduitLogger(LogConfig(level=LogLevel.DEBUG, format=LogFormat.JSON, output=log_output))


@pytest.fixture
def log_entries(log_output: io.StringIO) -> Callable[[], list[dict[str, Any]]]:
    """Parse everything logged so far into dicts."""

    def _entries() -> list[dict[str, Any]]:
        return [json.loads(line) for line in log_output.getvalue().splitlines() if line]

    return _entries


# =============================================================================
# Descriptor Fixtures
# =============================================================================


@pytest.fixture
def stdio_descriptor(fake_server_path: Path) -> Callable[..., ServerDescriptor]:
    """Build a descriptor that spawns the fake server with extra flags."""

    def _descriptor(*flags: str, server_id: str = "fake", **overrides: Any) -> ServerDescriptor:
        fields: dict[str, Any] = {
            "id": server_id,
            "name": f"Fake {server_id}",
            "transport": TransportKind.LOCAL_PROCESS,
            "command": sys.executable,
            "args": (str(fake_server_path), *flags),
            "timeout": 10.0,
            "retry_attempts": 1,
            "retry_delay": 0.01,
        }
        fields.update(overrides)
        return ServerDescriptor(**fields)

    return _descriptor


# =============================================================================
# Markers Configuration
# =============================================================================


def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "integration: Tests that spawn a real MCP server process")
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "property: Property-based tests (hypothesis)")
    config.addinivalue_line("markers", "slow: Slow tests")
