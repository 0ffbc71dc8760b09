"""Database models."""

from fitchallenge_sync.models.activity_log import ActivityLog, ActivitySource
from fitchallenge_sync.models.base import Base
from fitchallenge_sync.models.challenge import Challenge, StatusOverride
from fitchallenge_sync.models.friendship import Friendship, FriendshipStatus
from fitchallenge_sync.models.participant import ChallengeParticipant, InviteStatus
from fitchallenge_sync.models.profile import Profile

__all__ = [
    "Base",
    "ActivityLog",
    "ActivitySource",
    "Challenge",
    "ChallengeParticipant",
    "Friendship",
    "FriendshipStatus",
    "InviteStatus",
    "Profile",
    "StatusOverride",
]
