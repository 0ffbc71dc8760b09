"""Client-side offline queue, connectivity and change throttling."""

from fitchallenge_sync.client.actions import (
    AcceptInviteAction,
    LogActivityAction,
    QueuedAction,
    SendFriendRequestAction,
)
from fitchallenge_sync.client.connectivity import ConnectivityMonitor, NetworkStatus
from fitchallenge_sync.client.queue import ActionQueue, FailedAction, ProcessQueueResult
from fitchallenge_sync.client.repository import (
    InMemoryQueueRepository,
    JsonFileQueueRepository,
    QueueRepository,
)
from fitchallenge_sync.client.sync_client import ActivitySyncClient
from fitchallenge_sync.client.throttle import ChangeThrottle

__all__ = [
    "AcceptInviteAction",
    "ActionQueue",
    "ActivitySyncClient",
    "ChangeThrottle",
    "ConnectivityMonitor",
    "FailedAction",
    "InMemoryQueueRepository",
    "JsonFileQueueRepository",
    "LogActivityAction",
    "NetworkStatus",
    "ProcessQueueResult",
    "QueueRepository",
    "QueuedAction",
    "SendFriendRequestAction",
]
