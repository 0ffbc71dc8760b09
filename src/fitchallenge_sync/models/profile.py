"""User profile with streak tracking fields."""

from datetime import date

from sqlalchemy import CheckConstraint, Date, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from fitchallenge_sync.models.base import Base, TimestampMixin


class Profile(Base, TimestampMixin):
    """Public profile plus the consecutive-day activity streak.

    Streak fields are written only by the streak aggregator. Decay to zero
    after a missed day is a read-time display concern and is never stored.
    """

    __tablename__ = "profiles"

    user_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    username: Mapped[str | None] = mapped_column(String(100), unique=True, nullable=True)
    display_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    current_streak: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    longest_streak: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_activity_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    __table_args__ = (
        CheckConstraint("current_streak >= 0", name="ck_profiles_current_streak"),
        CheckConstraint("longest_streak >= 0", name="ck_profiles_longest_streak"),
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<Profile(user_id={self.user_id}, streak={self.current_streak})>"
