"""Challenge leaderboard.

Ranks accepted participants by the materialized current_progress using
standard competition ranking: ties share a rank and the next rank skips
(1, 1, 3). Ties are listed by user id for a deterministic order.
"""

from dataclasses import dataclass
from datetime import date

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fitchallenge_sync.models.participant import ChallengeParticipant, InviteStatus
from fitchallenge_sync.models.profile import Profile
from fitchallenge_sync.services.streak import display_streak


@dataclass(frozen=True)
class LeaderboardEntry:
    """One ranked row of a leaderboard."""

    rank: int
    user_id: str
    current_progress: int
    current_streak: int
    display_name: str | None


class LeaderboardService:
    """Reads leaderboards in a single query."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize leaderboard service.

        Args:
            session: Database session
        """
        self.session = session

    async def get_leaderboard(
        self,
        challenge_id: str,
        caller_id: str,
        today: date | None = None,
    ) -> list[LeaderboardEntry]:
        """Get ranked accepted participants.

        Returns an empty list unless the caller is an accepted participant.
        """
        result = await self.session.execute(
            select(
                ChallengeParticipant.user_id,
                ChallengeParticipant.current_progress,
                Profile.current_streak,
                Profile.last_activity_date,
                Profile.display_name,
            )
            .outerjoin(Profile, Profile.user_id == ChallengeParticipant.user_id)
            .where(
                ChallengeParticipant.challenge_id == challenge_id,
                ChallengeParticipant.invite_status == InviteStatus.ACCEPTED.value,
            )
            .order_by(ChallengeParticipant.current_progress.desc(), ChallengeParticipant.user_id)
        )
        rows = result.all()
        if caller_id not in {row.user_id for row in rows}:
            return []

        entries: list[LeaderboardEntry] = []
        previous_progress: int | None = None
        rank = 0
        for position, row in enumerate(rows, start=1):
            if row.current_progress != previous_progress:
                rank = position
                previous_progress = row.current_progress
            entries.append(
                LeaderboardEntry(
                    rank=rank,
                    user_id=row.user_id,
                    current_progress=row.current_progress,
                    current_streak=display_streak(
                        row.current_streak or 0, row.last_activity_date, today
                    ),
                    display_name=row.display_name,
                )
            )
        return entries
