"""Challenge lifecycle status derived from time bounds.

Single source of truth for "is this challenge accepting activity". The
ingestion transaction and every display surface call into this module;
nothing else does its own date math on challenges.

Boundary convention is the half-open interval [start_date, end_date):

    now <  start_date              -> upcoming
    start_date <= now < end_date   -> active
    end_date <= now                -> completed

An explicit override (cancelled, archived) wins over time. ``forbidden`` is
only produced when the challenge could not be found; it must never be
treated as completed or active.
"""

from datetime import datetime
from enum import Enum

from sqlalchemy.ext.asyncio import AsyncSession

from fitchallenge_sync.models.base import ensure_utc, utc_now
from fitchallenge_sync.models.challenge import Challenge, StatusOverride


class EffectiveStatus(str, Enum):
    """Time-and-override derived lifecycle phase of a challenge."""

    UPCOMING = "upcoming"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    ARCHIVED = "archived"
    FORBIDDEN = "forbidden"


_OVERRIDES = {
    StatusOverride.CANCELLED.value: EffectiveStatus.CANCELLED,
    StatusOverride.ARCHIVED.value: EffectiveStatus.ARCHIVED,
}

STATUS_LABELS: dict[EffectiveStatus, str] = {
    EffectiveStatus.UPCOMING: "Starting Soon",
    EffectiveStatus.ACTIVE: "Active",
    EffectiveStatus.COMPLETED: "Completed",
    EffectiveStatus.CANCELLED: "Cancelled",
    EffectiveStatus.ARCHIVED: "Archived",
    EffectiveStatus.FORBIDDEN: "Unavailable",
}


def effective_status(
    now: datetime,
    start_date: datetime,
    end_date: datetime,
    status_override: str | None = None,
) -> EffectiveStatus:
    """Compute a challenge's effective status.

    Args:
        now: Reference instant
        start_date: Inclusive start of the active window
        end_date: Exclusive end of the active window
        status_override: Stored explicit status (cancelled/archived) or None

    Returns:
        The effective status
    """
    if status_override in _OVERRIDES:
        return _OVERRIDES[status_override]

    now = ensure_utc(now)
    if now < ensure_utc(start_date):
        return EffectiveStatus.UPCOMING
    if now >= ensure_utc(end_date):
        return EffectiveStatus.COMPLETED
    return EffectiveStatus.ACTIVE


def challenge_status(challenge: Challenge | None, now: datetime | None = None) -> EffectiveStatus:
    """Effective status of a loaded challenge, failing closed when it is missing."""
    if challenge is None:
        return EffectiveStatus.FORBIDDEN
    return effective_status(
        now or utc_now(),
        challenge.start_date,
        challenge.end_date,
        challenge.status_override,
    )


def is_within_window(challenge: Challenge, instant: datetime) -> bool:
    """Check ``start_date <= instant < end_date``.

    Uses exactly the boundary convention of ``effective_status``.
    """
    instant = ensure_utc(instant)
    return ensure_utc(challenge.start_date) <= instant < ensure_utc(challenge.end_date)


def can_log_activity(challenge: Challenge | None, now: datetime | None = None) -> bool:
    """Return True if the challenge currently accepts activity."""
    return challenge_status(challenge, now) == EffectiveStatus.ACTIVE


def status_label(status: EffectiveStatus) -> str:
    """Human-readable label for display."""
    return STATUS_LABELS[status]


async def get_effective_status(
    session: AsyncSession,
    challenge_id: str,
    now: datetime | None = None,
) -> EffectiveStatus:
    """Look up a challenge and compute its effective status.

    Read-only and side-effect free.

    Args:
        session: Database session
        challenge_id: Challenge to look up
        now: Reference instant (defaults to current UTC time)

    Returns:
        Effective status, or FORBIDDEN if the challenge does not exist
    """
    challenge = await session.get(Challenge, challenge_id)
    return challenge_status(challenge, now)
