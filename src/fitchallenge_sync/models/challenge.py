"""Challenge model.

Only explicit user actions are stored on a challenge (``status_override``).
Whether a challenge is upcoming, active or completed is always derived from
its time bounds; see ``services.lifecycle``.
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import CheckConstraint, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from fitchallenge_sync.models.base import Base, TimestampMixin, generate_uuid


class StatusOverride(str, Enum):
    """Explicit status set by a user action.

    Attributes:
        CANCELLED: Creator cancelled the challenge
        ARCHIVED: Creator's account was deleted
    """

    CANCELLED = "cancelled"
    ARCHIVED = "archived"


class Challenge(Base, TimestampMixin):
    """A time-boxed challenge with the half-open active window [start_date, end_date)."""

    __tablename__ = "challenges"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    title: Mapped[str] = mapped_column(String(255), default="")
    challenge_type: Mapped[str] = mapped_column(String(50), default="steps")
    goal_value: Mapped[int | None] = mapped_column(Integer, nullable=True)

    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    status_override: Mapped[str | None] = mapped_column(String(20), nullable=True)
    created_by: Mapped[str | None] = mapped_column(String(255), nullable=True)

    __table_args__ = (CheckConstraint("start_date < end_date", name="ck_challenges_window"),)

    def __repr__(self) -> str:
        """String representation."""
        return f"<Challenge(id={self.id}, start={self.start_date}, end={self.end_date})>"
