"""Friendship model."""

from enum import Enum

from sqlalchemy import CheckConstraint, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from fitchallenge_sync.models.base import Base, TimestampMixin, generate_uuid


class FriendshipStatus(str, Enum):
    """State of a friend request."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    BLOCKED = "blocked"


class Friendship(Base, TimestampMixin):
    """A directed friend request; unique per (requested_by, requested_to)."""

    __tablename__ = "friendships"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    requested_by: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    requested_to: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(20), default=FriendshipStatus.PENDING.value)

    __table_args__ = (
        UniqueConstraint("requested_by", "requested_to", name="uq_friendships_pair"),
        CheckConstraint("requested_by <> requested_to", name="ck_friendships_not_self"),
    )
