"""Consecutive-day activity streaks.

Rules, given the new entry's UTC calendar date ``d`` and the stored
``last_activity_date`` ``L``:

    L set and d <= L   -> no change (same day or backdated data)
    d == L + 1 day     -> streak + 1
    otherwise          -> streak reset to 1

The aggregator runs inside the ingestion transaction, so it never sees a
row that is later rolled back. Decay to zero after a missed day is only
applied at read time by ``display_streak``.
"""

from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fitchallenge_sync.core.exceptions import DataIntegrityError
from fitchallenge_sync.models.base import ensure_utc, utc_now
from fitchallenge_sync.models.profile import Profile

logger = structlog.get_logger()


@dataclass(frozen=True)
class StreakUpdate:
    """Outcome of applying one activity to a user's streak.

    Attributes:
        changed: Whether the stored streak fields were modified
        current_streak: Streak after the update
        longest_streak: Longest streak after the update
        last_activity_date: Last activity date after the update
    """

    changed: bool
    current_streak: int
    longest_streak: int
    last_activity_date: date | None


def next_streak(
    activity_date: date,
    last_activity_date: date | None,
    current_streak: int,
) -> int | None:
    """Compute the new streak value, or None when the entry leaves it untouched."""
    if last_activity_date is not None and activity_date <= last_activity_date:
        return None
    if last_activity_date is not None and activity_date == last_activity_date + timedelta(days=1):
        return current_streak + 1
    return 1


def display_streak(
    current_streak: int,
    last_activity_date: date | None,
    today: date | None = None,
) -> int:
    """Streak as shown to users: 0 once more than a day has passed without activity."""
    if last_activity_date is None:
        return 0
    today = today or datetime.now(UTC).date()
    if (today - last_activity_date).days > 1:
        return 0
    return current_streak


class StreakAggregator:
    """Maintains per-user streak fields from accepted activity."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize streak aggregator.

        Args:
            session: Database session of the enclosing ingestion transaction
        """
        self.session = session
        self.logger = logger.bind(component="streak_aggregator")

    async def record_activity(self, user_id: str, recorded_at: datetime) -> StreakUpdate:
        """Apply a newly accepted activity to the user's streak.

        Does not commit; the caller owns the transaction.

        Raises:
            DataIntegrityError: If the user has no profile row
        """
        activity_date = ensure_utc(recorded_at).date()

        result = await self.session.execute(
            select(Profile).where(Profile.user_id == user_id).with_for_update()
        )
        profile = result.scalar_one_or_none()
        if profile is None:
            self.logger.error("Profile missing for streak update", user_id=user_id)
            raise DataIntegrityError(f"Profile missing for user {user_id}")

        streak = next_streak(activity_date, profile.last_activity_date, profile.current_streak)
        if streak is None:
            return StreakUpdate(
                changed=False,
                current_streak=profile.current_streak,
                longest_streak=profile.longest_streak,
                last_activity_date=profile.last_activity_date,
            )

        profile.current_streak = streak
        profile.longest_streak = max(profile.longest_streak, streak)
        profile.last_activity_date = activity_date
        profile.updated_at = utc_now()
        await self.session.flush()

        self.logger.debug(
            "Streak updated",
            user_id=user_id,
            current_streak=streak,
            activity_date=activity_date.isoformat(),
        )
        return StreakUpdate(
            changed=True,
            current_streak=profile.current_streak,
            longest_streak=profile.longest_streak,
            last_activity_date=profile.last_activity_date,
        )
