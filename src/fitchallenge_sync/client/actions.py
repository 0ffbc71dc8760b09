"""Queued action types.

Only idempotent operations may be queued for offline execution:

- log_activity: idempotent via the client_event_id unique constraint
- accept_invite: idempotent (accepting twice is a no-op)
- send_friend_request: idempotent via the (requested_by, requested_to)
  unique constraint

Actions carry no identity. The executor resolves the caller when the action
runs, never when it is queued.
"""

from datetime import UTC, datetime
from typing import Annotated, Literal
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, TypeAdapter


class LogActivityAction(BaseModel):
    """Log activity against a challenge.

    client_event_id is generated at enqueue time so every retry of this
    action reuses the same idempotency key.
    """

    kind: Literal["log_activity"] = "log_activity"
    challenge_id: str
    activity_type: str
    value: int = Field(gt=0)
    client_event_id: UUID = Field(default_factory=uuid4)
    recorded_at: datetime | None = None


class AcceptInviteAction(BaseModel):
    """Accept an invite to a challenge."""

    kind: Literal["accept_invite"] = "accept_invite"
    challenge_id: str


class SendFriendRequestAction(BaseModel):
    """Send a friend request."""

    kind: Literal["send_friend_request"] = "send_friend_request"
    target_user_id: str


Action = Annotated[
    LogActivityAction | AcceptInviteAction | SendFriendRequestAction,
    Field(discriminator="kind"),
]


def _new_id() -> str:
    return uuid4().hex


class QueuedAction(BaseModel):
    """An action waiting in the offline queue.

    Attributes:
        id: Queue item id
        action: The operation to perform
        created_at: When the item was enqueued
        retry_count: Failed transient attempts so far
        last_error: Sanitized message of the last failure
    """

    id: str = Field(default_factory=_new_id)
    action: Action
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    retry_count: int = 0
    last_error: str | None = None

    @property
    def kind(self) -> str:
        """Action kind, for logging."""
        return self.action.kind


queued_actions_adapter = TypeAdapter(list[QueuedAction])
