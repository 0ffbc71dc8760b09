"""Tests for the client facade."""

from collections.abc import Callable

import httpx
import pytest

from fitchallenge_sync.client.connectivity import NetworkStatus
from fitchallenge_sync.client.repository import InMemoryQueueRepository
from fitchallenge_sync.client.sync_client import ActivitySyncClient
from fitchallenge_sync.services.lifecycle import EffectiveStatus

OFFLINE = NetworkStatus(is_connected=False, is_internet_reachable=False)
ONLINE = NetworkStatus(is_connected=True, is_internet_reachable=True)


async def _token() -> str | None:
    return "session-token"


def _client(
    handler: Callable[[httpx.Request], httpx.Response],
    repository: InMemoryQueueRepository | None = None,
) -> ActivitySyncClient:
    async def probe() -> NetworkStatus:
        return OFFLINE

    return ActivitySyncClient(
        token_provider=_token,
        base_url="http://sync.test",
        repository=repository or InMemoryQueueRepository(),
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        probe=probe,
        throttle_delay=0.01,
    )


def _ok(request: httpx.Request) -> httpx.Response:
    return httpx.Response(201, json={"status": "created"})


async def test_offline_enqueue_then_drain_on_reconnect() -> None:
    """Actions taken offline are sent once the connection returns."""
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return _ok(request)

    client = _client(handler)
    await client.start()

    client.enqueue_log_activity("c1", "steps", 1200)
    client.enqueue_accept_invite("c2")
    assert client.queue.pending_count == 2
    assert requests == []

    task = client.monitor.handle_change(ONLINE)
    assert task is not None
    result = await task

    assert result.succeeded == 2
    assert [r.url.path for r in requests] == [
        "/api/v1/challenges/c1/activity",
        "/api/v1/challenges/c2/invite/accept",
    ]
    await client.aclose()


async def test_enqueue_while_online_sends_in_background() -> None:
    client = _client(_ok)
    client.monitor.handle_change(ONLINE)

    client.enqueue_send_friend_request("bob")
    await client.monitor.wait_idle()

    assert client.queue.pending_count == 0
    await client.aclose()


async def test_restart_resumes_persisted_queue() -> None:
    """Items left by a previous run are drained at startup when online."""
    repository = InMemoryQueueRepository()
    offline = _client(_ok, repository)
    await offline.start()
    offline.enqueue_log_activity("c1", "steps", 100)
    await offline.aclose()

    async def online_probe() -> NetworkStatus:
        return ONLINE

    restarted = ActivitySyncClient(
        token_provider=_token,
        base_url="http://sync.test",
        repository=repository,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(_ok)),
        probe=online_probe,
    )
    await restarted.start()
    await restarted.monitor.wait_idle()

    assert repository.load() == []
    await restarted.aclose()


@pytest.mark.parametrize(
    ("handler", "expected"),
    [
        (
            lambda r: httpx.Response(200, json={"status": "active"}),
            EffectiveStatus.ACTIVE,
        ),
        (lambda r: httpx.Response(500), EffectiveStatus.FORBIDDEN),
        (lambda r: httpx.Response(200, json={"status": "bogus"}), EffectiveStatus.FORBIDDEN),
    ],
)
async def test_effective_status_fails_closed(
    handler: Callable[[httpx.Request], httpx.Response], expected: EffectiveStatus
) -> None:
    """Any lookup failure reads as forbidden, never completed."""
    client = _client(handler)

    assert await client.get_effective_status("c1") == expected
    await client.aclose()


async def test_aclose_cancels_pending_refreshes() -> None:
    refreshed: list[object] = []
    client = _client(_ok)
    client.on_change("leaderboard", refreshed.append)
    client.notify("leaderboard")

    await client.aclose()

    assert client.throttle.pending_keys == []
    assert refreshed == []
