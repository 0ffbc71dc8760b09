"""Activity log model - the append-only record of accepted activity."""

from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from fitchallenge_sync.models.base import Base, generate_uuid, utc_now


class ActivitySource(str, Enum):
    """Where an activity entry came from.

    Attributes:
        MANUAL: Entered by the user; deduplicated by client_event_id
        HEALTHKIT: Imported from Apple Health; deduplicated by source_external_id
        GOOGLEFIT: Imported from Google Fit; deduplicated by source_external_id
    """

    MANUAL = "manual"
    HEALTHKIT = "healthkit"
    GOOGLEFIT = "googlefit"

    @property
    def is_health_sync(self) -> bool:
        """Return True for health-provider imports."""
        return self in (ActivitySource.HEALTHKIT, ActivitySource.GOOGLEFIT)


class ActivityLog(Base):
    """One accepted activity entry.

    Immutable once inserted. Two idempotency keys are enforced by unique
    constraints; rows with a NULL key column never conflict with each other.
    """

    __tablename__ = "activity_logs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    challenge_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("challenges.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)

    activity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    value: Mapped[int] = mapped_column(Integer, nullable=False)
    unit: Mapped[str] = mapped_column(String(50), nullable=False)
    recorded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    source: Mapped[str] = mapped_column(String(20), default=ActivitySource.MANUAL.value)
    client_event_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    source_external_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    __table_args__ = (
        UniqueConstraint(
            "challenge_id", "user_id", "client_event_id", name="uq_activity_logs_client_event"
        ),
        UniqueConstraint("source", "source_external_id", name="uq_activity_logs_source_external"),
        Index("ix_activity_logs_challenge_recorded", "challenge_id", "recorded_at"),
        Index("ix_activity_logs_user_recorded", "user_id", "recorded_at"),
    )

    @property
    def has_dedupe_key(self) -> bool:
        """Return True if either idempotency key is set."""
        return self.client_event_id is not None or self.source_external_id is not None

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<ActivityLog(id={self.id}, challenge_id={self.challenge_id}, "
            f"user_id={self.user_id}, value={self.value}, source={self.source})>"
        )
