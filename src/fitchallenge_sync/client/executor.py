"""Executes queued actions against the sync server.

Identity is resolved when an action runs, never when it is queued: a token
captured at enqueue time may be long expired by the time the device comes
back online.
"""

from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any, Protocol

import httpx
import structlog

from fitchallenge_sync.client.actions import (
    AcceptInviteAction,
    Action,
    LogActivityAction,
    SendFriendRequestAction,
)
from fitchallenge_sync.client.errors import ActionRejectedError, AuthenticationRequiredError
from fitchallenge_sync.core.config import settings
from fitchallenge_sync.services.lifecycle import EffectiveStatus

logger = structlog.get_logger()

TokenProvider = Callable[[], Awaitable[str | None]]


class ExecutionOutcome(str, Enum):
    """Successful outcome of an action.

    Attributes:
        APPLIED: The server performed the operation
        ALREADY_APPLIED: The server had already applied it (idempotent duplicate)
    """

    APPLIED = "applied"
    ALREADY_APPLIED = "already_applied"


class ActionExecutor(Protocol):
    """Runs one queued action; raises on failure."""

    async def execute(self, action: Action) -> ExecutionOutcome: ...


_DUPLICATE_STATUSES = frozenset({"duplicate", "unchanged"})


class HttpActionExecutor:
    """Action executor speaking the sync server's HTTP API.

    Attributes:
        base_url: Sync server base URL
        token_provider: Async callable returning the current session token
    """

    def __init__(
        self,
        token_provider: TokenProvider,
        base_url: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
    ) -> None:
        """Initialize executor.

        Args:
            token_provider: Resolves the caller's token at execution time
            base_url: Sync server URL (defaults to settings.sync_server_url)
            http_client: Client to use; one is created (and owned) if omitted
            timeout: Per-request timeout in seconds
        """
        self.token_provider = token_provider
        self.base_url = (base_url or settings.sync_server_url).rstrip("/")
        self._owns_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient(
            timeout=timeout or settings.request_timeout_seconds
        )
        self.logger = logger.bind(component="action_executor")

    async def execute(self, action: Action) -> ExecutionOutcome:
        """Run a queued action.

        Returns:
            APPLIED or ALREADY_APPLIED

        Raises:
            AuthenticationRequiredError: No session token available
            ActionRejectedError: Server rejected the action with a domain code
            httpx.HTTPError: Transport or status failures
        """
        headers = await self._auth_headers()
        path, body = self._build_request(action)

        response = await self.http_client.post(
            f"{self.base_url}{settings.api_prefix}{path}",
            json=body,
            headers=headers,
        )
        return self._interpret(response)

    async def get_effective_status(self, challenge_id: str) -> EffectiveStatus:
        """Fetch a challenge's effective status from the server.

        Raises:
            httpx.HTTPError: Transport or status failures
        """
        response = await self.http_client.get(
            f"{self.base_url}{settings.api_prefix}/challenges/{challenge_id}/status",
            headers=await self._auth_headers(),
        )
        response.raise_for_status()
        return EffectiveStatus(response.json()["status"])

    async def aclose(self) -> None:
        """Close the HTTP client if this executor created it."""
        if self._owns_client:
            await self.http_client.aclose()

    async def _auth_headers(self) -> dict[str, str]:
        token = await self.token_provider()
        if not token:
            raise AuthenticationRequiredError("No authenticated session")
        return {"Authorization": f"Bearer {token}"}

    @staticmethod
    def _build_request(action: Action) -> tuple[str, dict[str, Any]]:
        """Map an action to its endpoint path and JSON body."""
        if isinstance(action, LogActivityAction):
            body: dict[str, Any] = {
                "activity_type": action.activity_type,
                "value": action.value,
                "source": "manual",
                "client_event_id": str(action.client_event_id),
            }
            if action.recorded_at is not None:
                body["recorded_at"] = action.recorded_at.isoformat()
            return f"/challenges/{action.challenge_id}/activity", body

        if isinstance(action, AcceptInviteAction):
            return f"/challenges/{action.challenge_id}/invite/accept", {}

        if isinstance(action, SendFriendRequestAction):
            return "/friends/requests", {"target_user_id": action.target_user_id}

        raise TypeError(f"Unknown action type: {type(action).__name__}")

    def _interpret(self, response: httpx.Response) -> ExecutionOutcome:
        """Turn a server response into an outcome or an exception."""
        if response.is_success:
            status = _json_or_empty(response).get("status")
            if status in _DUPLICATE_STATUSES:
                return ExecutionOutcome.ALREADY_APPLIED
            return ExecutionOutcome.APPLIED

        # A conflict on an idempotent operation means it was already applied
        if response.status_code == 409:
            return ExecutionOutcome.ALREADY_APPLIED

        payload = _json_or_empty(response)
        code = payload.get("error")
        if isinstance(code, str):
            raise ActionRejectedError(code, response.status_code, payload.get("detail"))

        response.raise_for_status()
        raise RuntimeError(f"Unexpected response status {response.status_code}")


def _json_or_empty(response: httpx.Response) -> dict[str, Any]:
    try:
        payload = response.json()
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}
