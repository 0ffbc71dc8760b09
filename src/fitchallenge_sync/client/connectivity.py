"""Connectivity monitoring.

Watches reachability transitions and drains the offline queue exactly once
per "was offline, now online" transition. Purely event-driven: the transport
feeds ``handle_change``; there is one eager check at startup and no timer.

The drain is fire-and-forget. The caller is never blocked and a failing
drain is logged, not raised; the queue retries on the next transition or
explicit trigger.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Protocol

import httpx
import structlog

from fitchallenge_sync.client.queue import ActionQueue, ProcessQueueResult
from fitchallenge_sync.core.config import settings

logger = structlog.get_logger()


@dataclass(frozen=True)
class NetworkStatus:
    """Observed network state.

    Attributes:
        is_connected: Whether a network link is up
        is_internet_reachable: Whether the server answered (None if unknown)
        connection_type: Transport label (wifi, cellular, ...) if known
    """

    is_connected: bool
    is_internet_reachable: bool | None = None
    connection_type: str | None = None


StatusListener = Callable[[NetworkStatus], None]


class ReachabilityProbe(Protocol):
    """One-shot reachability check."""

    async def __call__(self) -> NetworkStatus: ...


class HttpReachabilityProbe:
    """Checks reachability by requesting the sync server's health endpoint."""

    def __init__(
        self,
        base_url: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
    ) -> None:
        self.base_url = (base_url or settings.sync_server_url).rstrip("/")
        self.http_client = http_client
        self.timeout = timeout or settings.probe_timeout_seconds

    async def __call__(self) -> NetworkStatus:
        try:
            if self.http_client is not None:
                response = await self.http_client.get(
                    f"{self.base_url}/health", timeout=self.timeout
                )
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(f"{self.base_url}/health")
        except httpx.TransportError:
            return NetworkStatus(is_connected=False, is_internet_reachable=False)

        return NetworkStatus(is_connected=True, is_internet_reachable=response.is_success)


class ConnectivityMonitor:
    """Triggers queue drains on reconnect.

    Attributes:
        status: Last observed network status
        was_disconnected: Latch set while offline, cleared by the reconnect drain
    """

    def __init__(
        self,
        queue: ActionQueue,
        probe: Callable[[], Awaitable[NetworkStatus]] | None = None,
    ) -> None:
        """Initialize monitor.

        Args:
            queue: Queue to drain on reconnect
            probe: Reachability check for the eager startup check
        """
        self.queue = queue
        self.probe = probe or HttpReachabilityProbe()
        self.status = NetworkStatus(is_connected=True)
        self.was_disconnected = False
        self._listeners: list[StatusListener] = []
        self._tasks: set[asyncio.Task[ProcessQueueResult]] = set()
        self.logger = logger.bind(component="connectivity_monitor")

    @property
    def is_connected(self) -> bool:
        """Whether the last observed status was connected."""
        return self.status.is_connected

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        """Register a status listener.

        Returns:
            Function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def start(self) -> None:
        """Run the eager startup reachability check."""
        self.handle_change(await self.probe())

    def handle_change(self, status: NetworkStatus) -> asyncio.Task[ProcessQueueResult] | None:
        """Process a reachability event from the transport.

        Returns:
            The background drain task if this event was a reconnect
        """
        self.status = status
        self._notify(status)

        if not status.is_connected:
            if not self.was_disconnected:
                self.logger.info("Connection lost", pending=self.queue.pending_count)
            self.was_disconnected = True
            return None

        if not self.was_disconnected:
            return None

        self.was_disconnected = False
        self.logger.info("Connection restored, draining queue", pending=self.queue.pending_count)
        return self.trigger_drain()

    def trigger_drain(self) -> asyncio.Task[ProcessQueueResult]:
        """Start a background drain without waiting for it."""
        task = asyncio.get_running_loop().create_task(self.queue.process_queue())
        self._tasks.add(task)
        task.add_done_callback(self._on_drain_done)
        return task

    async def wait_idle(self) -> None:
        """Wait for outstanding background drains to finish."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    def _on_drain_done(self, task: asyncio.Task[ProcessQueueResult]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self.logger.error("Queue processing failed", error=str(exc)[:100])

    def _notify(self, status: NetworkStatus) -> None:
        for listener in list(self._listeners):
            try:
                listener(status)
            except Exception:
                self.logger.exception("Network status listener raised")
