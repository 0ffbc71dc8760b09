"""Challenge participation and the materialized progress aggregate."""

from enum import Enum

from sqlalchemy import ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from fitchallenge_sync.models.base import Base, TimestampMixin


class InviteStatus(str, Enum):
    """Participation state of a user in a challenge."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


class ChallengeParticipant(Base, TimestampMixin):
    """A user's membership in a challenge.

    current_progress is the running sum of accepted activity values. It is
    only ever changed by the ingestion transaction's atomic increment and is
    never recomputed by summing activity_logs on read.
    """

    __tablename__ = "challenge_participants"

    challenge_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("challenges.id", ondelete="CASCADE"),
        primary_key=True,
    )
    user_id: Mapped[str] = mapped_column(String(255), primary_key=True)

    invite_status: Mapped[str] = mapped_column(
        String(20), default=InviteStatus.PENDING.value, nullable=False
    )
    current_progress: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    __table_args__ = (Index("ix_challenge_participants_user_status", "user_id", "invite_status"),)

    @property
    def is_accepted(self) -> bool:
        """Return True if the user has accepted the invite."""
        return self.invite_status == InviteStatus.ACCEPTED.value

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<ChallengeParticipant(challenge_id={self.challenge_id}, user_id={self.user_id}, "
            f"status={self.invite_status}, progress={self.current_progress})>"
        )
