"""Pydantic schemas for the sync API."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from fitchallenge_sync.models.activity_log import ActivitySource
from fitchallenge_sync.services.lifecycle import EffectiveStatus


class ActivityLogRequest(BaseModel):
    """Body of an activity log write."""

    activity_type: str = Field(min_length=1, max_length=50, description="Kind of activity")
    value: int = Field(gt=0, description="Positive amount to add to progress")
    recorded_at: datetime | None = Field(
        default=None, description="When the activity happened (defaults to server time)"
    )
    source: ActivitySource = Field(default=ActivitySource.MANUAL, description="Entry source")
    client_event_id: UUID | None = Field(
        default=None, description="Idempotency key for manual entries"
    )
    source_external_id: str | None = Field(
        default=None, max_length=255, description="Idempotency key for health imports"
    )
    unit: str | None = Field(default=None, max_length=50, description="Unit label")


class ActivityLogResponse(BaseModel):
    """Result of an activity log write."""

    status: str = Field(description="'created' or 'duplicate'")
    activity_id: str | None = None
    current_progress: int
    current_streak: int | None = None


class ChallengeStatusResponse(BaseModel):
    """Effective status of a challenge."""

    challenge_id: str
    status: EffectiveStatus
    label: str


class LeaderboardRow(BaseModel):
    """One ranked leaderboard row."""

    rank: int
    user_id: str
    current_progress: int
    current_streak: int
    display_name: str | None = None


class FriendRequestCreate(BaseModel):
    """Body of a friend request."""

    target_user_id: str = Field(min_length=1, max_length=255)


class ActionResponse(BaseModel):
    """Outcome of an idempotent action."""

    status: str


class BatchActivityItem(ActivityLogRequest):
    """One health-provider sample in a batch import."""

    source: ActivitySource = Field(default=ActivitySource.HEALTHKIT, description="Entry source")


class ActivityBatchRequest(BaseModel):
    """Body of a batch activity import."""

    activities: list[BatchActivityItem] = Field(min_length=1, max_length=500)


class BatchItemErrorResponse(BaseModel):
    """A rejected batch item."""

    index: int
    error: str
    detail: str
    source_external_id: str | None = None
    client_event_id: str | None = None


class ActivityBatchResponse(BaseModel):
    """Result of a batch activity import."""

    inserted: int
    deduplicated: int
    total_processed: int
    errors: list[BatchItemErrorResponse]
    current_progress: int | None = None
