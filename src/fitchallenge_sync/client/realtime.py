"""Connection status of the live change feed.

Each client owns one registry. Listeners are held by reference and dropped
on unsubscribe.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum

import structlog

logger = structlog.get_logger()


class RealtimeStatus(str, Enum):
    """Live feed channel states."""

    SUBSCRIBED = "SUBSCRIBED"
    CHANNEL_ERROR = "CHANNEL_ERROR"
    TIMED_OUT = "TIMED_OUT"
    CLOSED = "CLOSED"
    DISCONNECTED = "DISCONNECTED"
    CONNECTING = "CONNECTING"


@dataclass(frozen=True)
class RealtimeConnectionState:
    """Snapshot of the live feed connection.

    Attributes:
        status: Current channel status
        channel_name: Channel the status belongs to
        last_error: Message of the last channel error, if any
        last_updated_at: When the status last changed
    """

    status: RealtimeStatus = RealtimeStatus.DISCONNECTED
    channel_name: str | None = None
    last_error: str | None = None
    last_updated_at: datetime | None = None


StateListener = Callable[[RealtimeConnectionState], None]


class RealtimeStatusRegistry:
    """Holds the live feed status and notifies listeners of changes."""

    def __init__(self) -> None:
        self._state = RealtimeConnectionState()
        self._listeners: list[StateListener] = []
        self.logger = logger.bind(component="realtime_status")

    @property
    def state(self) -> RealtimeConnectionState:
        """Current connection state."""
        return self._state

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a listener; it is called immediately with the current state.

        Returns:
            Function that removes the listener
        """
        self._listeners.append(listener)
        self._call(listener, self._state)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def update(
        self,
        channel_name: str,
        status: RealtimeStatus,
        error: Exception | str | None = None,
    ) -> None:
        """Record a status change and notify listeners."""
        self._state = RealtimeConnectionState(
            status=status,
            channel_name=channel_name,
            last_error=str(error) if error is not None else None,
            last_updated_at=datetime.now(UTC),
        )

        if status in (RealtimeStatus.CHANNEL_ERROR, RealtimeStatus.TIMED_OUT):
            self.logger.warning(
                "Realtime channel problem",
                channel=channel_name,
                status=status.value,
                error=self._state.last_error,
            )
        else:
            self.logger.info("Realtime channel status", channel=channel_name, status=status.value)

        for listener in list(self._listeners):
            self._call(listener, self._state)

    def reset(self) -> None:
        """Mark the feed as disconnected (cleanup)."""
        self.update("", RealtimeStatus.DISCONNECTED)

    def _call(self, listener: StateListener, state: RealtimeConnectionState) -> None:
        try:
            listener(state)
        except Exception:
            self.logger.exception("Realtime status listener raised")
