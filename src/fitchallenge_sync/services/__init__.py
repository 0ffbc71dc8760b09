"""Application services."""

from fitchallenge_sync.services.friends import FriendService
from fitchallenge_sync.services.ingestion import (
    ActivityEntry,
    BatchIngestResult,
    IngestionService,
    IngestResult,
)
from fitchallenge_sync.services.invites import InviteService
from fitchallenge_sync.services.leaderboard import LeaderboardEntry, LeaderboardService
from fitchallenge_sync.services.lifecycle import EffectiveStatus, get_effective_status
from fitchallenge_sync.services.streak import StreakAggregator, display_streak

__all__ = [
    "ActivityEntry",
    "BatchIngestResult",
    "EffectiveStatus",
    "FriendService",
    "IngestResult",
    "IngestionService",
    "InviteService",
    "LeaderboardEntry",
    "LeaderboardService",
    "StreakAggregator",
    "display_streak",
    "get_effective_status",
]
