"""Status-change notifications for MCP connections."""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from conduit_core.types import ConnectionStatus, LogLevel


@dataclass(frozen=True)
class StatusEvent:
    """A connection moved from one status to another."""

    server_id: str
    previous: ConnectionStatus
    current: ConnectionStatus
    error: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


# Callback receives the event; its return value is ignored
StatusCallback = Callable[[StatusEvent], None]
Unsubscribe = Callable[[], None]


class StatusBroadcaster:
    """Ordered fan-out of StatusEvents to subscribers.

    Subscribers are called synchronously in subscription order. A failing
    subscriber is logged and does not stop delivery to the others.
    """

    def __init__(self, logger: Any = None, component: str = "mcp.events"):
        """Initialize broadcaster.

        Args:
            logger: Optional ConduitLogger instance
            component: Log component for subscriber failures
        """
        self._subscribers: list[StatusCallback] = []
        self._logger = logger
        self._component = component

    def subscribe(self, callback: StatusCallback) -> Unsubscribe:
        """Register a callback.

        Args:
            callback: Called with every subsequent StatusEvent

        Returns:
            Function that removes the subscription (safe to call twice)
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def publish(self, event: StatusEvent) -> None:
        """Deliver an event to every current subscriber.

        Args:
            event: Event to deliver
        """
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception as e:
                if self._logger:
                    self._logger._log(
                        LogLevel.WARN,
                        self._component,
                        f"Status subscriber failed: {e}",
                        {"server_id": event.server_id},
                    )

    def clear(self) -> None:
        self._subscribers.clear()

    def __len__(self) -> int:
        return len(self._subscribers)
