"""Pydantic schemas for API requests and responses."""

from fitchallenge_sync.schemas.activity import (
    ActionResponse,
    ActivityLogRequest,
    ActivityLogResponse,
    ChallengeStatusResponse,
    FriendRequestCreate,
    LeaderboardRow,
)

__all__ = [
    "ActionResponse",
    "ActivityLogRequest",
    "ActivityLogResponse",
    "ChallengeStatusResponse",
    "FriendRequestCreate",
    "LeaderboardRow",
]
