"""Client-side entry point for the UI.

Wires the offline queue, connectivity monitor, change throttle and realtime
status registry together behind a small API:

    client = ActivitySyncClient(token_provider=session.get_token)
    await client.start()
    item_id = client.enqueue_log_activity(challenge_id, "steps", 1200)
    client.on_change(("leaderboard", challenge_id), refetch_leaderboard)
    ...
    await client.aclose()
"""

import asyncio
from collections.abc import Awaitable, Callable, Hashable
from datetime import datetime
from typing import Any
from uuid import UUID

import httpx
import structlog

from fitchallenge_sync.client.actions import (
    AcceptInviteAction,
    Action,
    LogActivityAction,
    SendFriendRequestAction,
)
from fitchallenge_sync.client.connectivity import (
    ConnectivityMonitor,
    HttpReachabilityProbe,
    NetworkStatus,
)
from fitchallenge_sync.client.executor import HttpActionExecutor, TokenProvider
from fitchallenge_sync.client.queue import ActionQueue, ProcessQueueResult
from fitchallenge_sync.client.realtime import RealtimeStatusRegistry
from fitchallenge_sync.client.repository import JsonFileQueueRepository, QueueRepository
from fitchallenge_sync.client.throttle import ChangeThrottle, RefreshCallback
from fitchallenge_sync.core.config import settings
from fitchallenge_sync.services.lifecycle import EffectiveStatus

logger = structlog.get_logger()


class ActivitySyncClient:
    """Offline-first client for challenge activity."""

    def __init__(
        self,
        token_provider: TokenProvider,
        base_url: str | None = None,
        repository: QueueRepository | None = None,
        http_client: httpx.AsyncClient | None = None,
        probe: Callable[[], Awaitable[NetworkStatus]] | None = None,
        throttle_delay: float | None = None,
        invalidate: RefreshCallback | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            token_provider: Resolves the session token when an action runs
            base_url: Sync server URL
            repository: Queue persistence (defaults to the JSON file at settings.queue_path)
            http_client: Shared HTTP client
            probe: Reachability probe for the startup check
            throttle_delay: Debounce delay for change refreshes, in seconds
            invalidate: Callback invoked for every refreshed query key
        """
        base_url = base_url or settings.sync_server_url
        self.executor = HttpActionExecutor(
            token_provider=token_provider,
            base_url=base_url,
            http_client=http_client,
        )
        self.queue = ActionQueue(
            repository=repository or JsonFileQueueRepository(settings.queue_path),
            executor=self.executor,
        )
        self.monitor = ConnectivityMonitor(
            self.queue,
            probe=probe or HttpReachabilityProbe(base_url, http_client=self.executor.http_client),
        )
        self.throttle = ChangeThrottle(delay=throttle_delay, invalidate=invalidate)
        self.realtime = RealtimeStatusRegistry()
        self.logger = logger.bind(component="sync_client")

    async def start(self) -> None:
        """Check connectivity once and drain anything left from a previous run."""
        await self.monitor.start()
        if self.monitor.is_connected and self.queue.pending_count:
            self.monitor.trigger_drain()

    def enqueue_log_activity(
        self,
        challenge_id: str,
        activity_type: str,
        value: int,
        client_event_id: UUID | None = None,
        recorded_at: datetime | None = None,
    ) -> str:
        """Queue an activity log. Always succeeds synchronously.

        Returns:
            Queue item id
        """
        fields: dict[str, Any] = {
            "challenge_id": challenge_id,
            "activity_type": activity_type,
            "value": value,
            "recorded_at": recorded_at,
        }
        if client_event_id is not None:
            fields["client_event_id"] = client_event_id
        return self._enqueue(LogActivityAction(**fields))

    def enqueue_accept_invite(self, challenge_id: str) -> str:
        """Queue an invite acceptance."""
        return self._enqueue(AcceptInviteAction(challenge_id=challenge_id))

    def enqueue_send_friend_request(self, target_user_id: str) -> str:
        """Queue a friend request."""
        return self._enqueue(SendFriendRequestAction(target_user_id=target_user_id))

    async def process_queue(self) -> ProcessQueueResult:
        """Explicitly drain the queue."""
        return await self.queue.process_queue()

    async def get_effective_status(self, challenge_id: str) -> EffectiveStatus:
        """Challenge status for display; ``forbidden`` if it cannot be looked up."""
        try:
            return await self.executor.get_effective_status(challenge_id)
        except Exception as e:
            self.logger.warning(
                "Challenge status lookup failed",
                challenge_id=challenge_id,
                error_type=type(e).__name__,
            )
            return EffectiveStatus.FORBIDDEN

    def on_change(self, key: Any, callback: RefreshCallback) -> Callable[[], None]:
        """Subscribe a refresh callback to a query key."""
        return self.throttle.on_change(key, callback)

    def notify(self, key: Hashable) -> None:
        """Report a live change event for a query key."""
        self.throttle.notify(key)

    async def aclose(self) -> None:
        """End the session: cancel pending refreshes and release resources."""
        self.throttle.close()
        self.realtime.reset()
        await self.monitor.wait_idle()
        await self.executor.aclose()

    def _enqueue(self, action: Action) -> str:
        item_id = self.queue.enqueue(action)
        if self.monitor.is_connected:
            self._drain_in_background()
        return item_id

    def _drain_in_background(self) -> None:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            # No loop (sync caller); the next reconnect or explicit drain picks it up.
            return
        self.monitor.trigger_drain()
