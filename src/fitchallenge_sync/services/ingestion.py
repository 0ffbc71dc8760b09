"""Atomic activity ingestion.

The only code path that creates ActivityLog rows and the only code path that
increments ChallengeParticipant.current_progress. One call is one database
transaction:

    1. participation    caller must be an accepted participant
    2. active window    effective status must be ``active`` (fail-closed)
    3. recorded_at      start_date <= recorded_at < end_date, and not more
                        than the clock-skew grace in the future
    4. dedupe key       manual needs client_event_id, health imports need
                        source_external_id
    5. insert           inside a SAVEPOINT; a unique violation on a supplied
                        dedupe key is an idempotent success
    6. aggregate        atomic ``current_progress = current_progress + value``
                        only when step 5 created a row
    7. streak           applied in the same transaction

Concurrent callers racing on one dedupe key are resolved by the unique
constraints: exactly one insert wins and only the winner increments.

Batch imports run the same pipeline once per item, each inside its own
SAVEPOINT, so one rejected sample never discards the rest of the batch.
"""

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from uuid import UUID

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fitchallenge_sync.core.config import settings
from fitchallenge_sync.core.exceptions import (
    ChallengeNotActiveError,
    DataIntegrityError,
    DedupeKeyRequiredError,
    IngestionError,
    InvalidValueError,
    NotParticipantError,
    RecordedAtOutOfBoundsError,
)
from fitchallenge_sync.models.activity_log import ActivityLog, ActivitySource
from fitchallenge_sync.models.base import ensure_utc, utc_now
from fitchallenge_sync.models.challenge import Challenge
from fitchallenge_sync.models.participant import ChallengeParticipant, InviteStatus
from fitchallenge_sync.services.lifecycle import (
    EffectiveStatus,
    challenge_status,
    is_within_window,
)
from fitchallenge_sync.services.streak import StreakAggregator

logger = structlog.get_logger()


@dataclass(frozen=True)
class IngestResult:
    """Outcome of an ingestion call.

    Attributes:
        created: True if a new row was inserted, False for an idempotent duplicate
        activity_id: Id of the inserted row (None for duplicates)
        current_progress: Participant's aggregate after the call
        current_streak: User's stored streak after the call (None for duplicates)
    """

    created: bool
    activity_id: str | None
    current_progress: int
    current_streak: int | None = None

    @property
    def status(self) -> str:
        """Wire status: ``created`` or ``duplicate``."""
        return "created" if self.created else "duplicate"


@dataclass(frozen=True)
class ActivityEntry:
    """One item of a batch import."""

    activity_type: str
    value: int
    recorded_at: datetime | None = None
    source: ActivitySource | str = ActivitySource.HEALTHKIT
    client_event_id: UUID | str | None = None
    source_external_id: str | None = None
    unit: str | None = None


@dataclass(frozen=True)
class BatchItemError:
    """A batch item that was rejected; the rest of the batch still applies."""

    index: int
    error: str
    detail: str
    source_external_id: str | None = None
    client_event_id: str | None = None


@dataclass
class BatchIngestResult:
    """Outcome of a batch import.

    Attributes:
        inserted: Items that created a new row
        deduplicated: Items already recorded under the same dedupe key
        errors: Rejected items with their domain error code
        current_progress: Aggregate after the last applied item (None if none applied)
    """

    inserted: int = 0
    deduplicated: int = 0
    errors: list[BatchItemError] = field(default_factory=list)
    current_progress: int | None = None

    @property
    def total_processed(self) -> int:
        return self.inserted + self.deduplicated + len(self.errors)


class IngestionService:
    """Validates and records activity for a challenge participant."""

    def __init__(
        self,
        session: AsyncSession,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize ingestion service.

        Args:
            session: Database session; this service commits or rolls it back
            clock: Source of the server's current time
        """
        self.session = session
        self.clock = clock
        self.grace = timedelta(seconds=settings.clock_skew_grace_seconds)
        self.logger = logger.bind(service="ingestion")

    async def log_activity(
        self,
        user_id: str,
        challenge_id: str,
        activity_type: str,
        value: int,
        recorded_at: datetime | None = None,
        source: ActivitySource | str = ActivitySource.MANUAL,
        client_event_id: UUID | str | None = None,
        source_external_id: str | None = None,
        unit: str | None = None,
    ) -> IngestResult:
        """Record one activity entry atomically.

        Args:
            user_id: Authenticated caller
            challenge_id: Target challenge
            activity_type: Kind of activity (steps, workouts, ...)
            value: Positive amount to add
            recorded_at: When the activity happened (defaults to server now)
            source: manual, healthkit or googlefit
            client_event_id: Idempotency key for manual entries
            source_external_id: Idempotency key for health-provider imports
            unit: Unit label (defaults to activity_type)

        Returns:
            IngestResult describing whether a row was created

        Raises:
            InvalidValueError: value is not positive
            NotParticipantError: caller is not an accepted participant
            ChallengeNotActiveError: challenge is not active
            RecordedAtOutOfBoundsError: recorded_at outside the window
            DedupeKeyRequiredError: source-specific idempotency key missing
            DataIntegrityError: derived state missing
        """
        try:
            result = await self._ingest(
                user_id=user_id,
                challenge_id=challenge_id,
                activity_type=activity_type,
                value=value,
                recorded_at=recorded_at,
                source=ActivitySource(source),
                client_event_id=str(client_event_id) if client_event_id is not None else None,
                source_external_id=source_external_id,
                unit=unit,
            )
        except Exception:
            await self.session.rollback()
            raise

        await self.session.commit()
        return result

    async def log_activity_batch(
        self,
        user_id: str,
        challenge_id: str,
        entries: Sequence[ActivityEntry],
    ) -> BatchIngestResult:
        """Record a batch of health-provider samples in one transaction.

        Each entry runs the full ingestion pipeline inside its own SAVEPOINT.
        A rejected entry is rolled back alone and reported in ``errors``;
        duplicates are counted, not re-applied. A data integrity failure
        aborts the whole batch.

        Args:
            user_id: Authenticated caller
            challenge_id: Target challenge
            entries: Samples to record, in order

        Returns:
            BatchIngestResult with inserted/deduplicated counts and per-item errors

        Raises:
            DataIntegrityError: derived state missing
        """
        log = self.logger.bind(user_id=user_id, challenge_id=challenge_id)
        outcome = BatchIngestResult()

        try:
            for index, entry in enumerate(entries):
                client_event_id = (
                    str(entry.client_event_id) if entry.client_event_id is not None else None
                )
                try:
                    async with self.session.begin_nested():
                        result = await self._ingest(
                            user_id=user_id,
                            challenge_id=challenge_id,
                            activity_type=entry.activity_type,
                            value=entry.value,
                            recorded_at=entry.recorded_at,
                            source=ActivitySource(entry.source),
                            client_event_id=client_event_id,
                            source_external_id=entry.source_external_id,
                            unit=entry.unit,
                        )
                except IngestionError as e:
                    outcome.errors.append(
                        BatchItemError(
                            index=index,
                            error=e.code,
                            detail=e.message,
                            source_external_id=entry.source_external_id,
                            client_event_id=client_event_id,
                        )
                    )
                    continue

                outcome.current_progress = result.current_progress
                if result.created:
                    outcome.inserted += 1
                else:
                    outcome.deduplicated += 1
        except Exception:
            await self.session.rollback()
            raise

        await self.session.commit()
        log.info(
            "Activity batch processed",
            inserted=outcome.inserted,
            deduplicated=outcome.deduplicated,
            errors=len(outcome.errors),
        )
        return outcome

    async def _ingest(
        self,
        user_id: str,
        challenge_id: str,
        activity_type: str,
        value: int,
        recorded_at: datetime | None,
        source: ActivitySource,
        client_event_id: str | None,
        source_external_id: str | None,
        unit: str | None,
    ) -> IngestResult:
        now = self.clock()
        log = self.logger.bind(user_id=user_id, challenge_id=challenge_id, source=source.value)

        if value <= 0:
            raise InvalidValueError(f"Activity value must be positive, got {value}")

        # 1) Participation
        if not await self._is_accepted_participant(challenge_id, user_id):
            log.info("Activity rejected", reason=NotParticipantError.code)
            raise NotParticipantError("Not an accepted participant of this challenge")

        # 2) Active window, fail-closed on missing challenge
        challenge = await self.session.get(Challenge, challenge_id)
        status = challenge_status(challenge, now)
        if challenge is None or status != EffectiveStatus.ACTIVE:
            log.info("Activity rejected", reason=ChallengeNotActiveError.code, status=status.value)
            raise ChallengeNotActiveError(status.value)

        # 3) recorded_at bounds
        recorded_at = ensure_utc(recorded_at) if recorded_at is not None else now
        if not is_within_window(challenge, recorded_at) or recorded_at > now + self.grace:
            log.info(
                "Activity rejected",
                reason=RecordedAtOutOfBoundsError.code,
                recorded_at=recorded_at.isoformat(),
            )
            raise RecordedAtOutOfBoundsError(
                f"recorded_at {recorded_at.isoformat()} is outside the challenge window"
            )

        # 4) Dedupe key by source
        if source == ActivitySource.MANUAL and client_event_id is None:
            raise DedupeKeyRequiredError(
                "client_event_id_required_for_manual",
                "Manual activity requires client_event_id",
            )
        if source.is_health_sync and source_external_id is None:
            raise DedupeKeyRequiredError(
                "source_external_id_required_for_health_sync",
                "Health sync activity requires source_external_id",
            )

        # 5) Idempotent insert
        entry = ActivityLog(
            challenge_id=challenge_id,
            user_id=user_id,
            activity_type=activity_type,
            value=value,
            unit=unit or activity_type,
            recorded_at=recorded_at,
            source=source.value,
            client_event_id=client_event_id,
            source_external_id=source_external_id,
            created_at=now,
        )
        try:
            async with self.session.begin_nested():
                self.session.add(entry)
        except IntegrityError:
            if client_event_id is None and source_external_id is None:
                raise
            log.info(
                "Duplicate activity ignored",
                client_event_id=client_event_id,
                source_external_id=source_external_id,
            )
            progress = await self._current_progress(challenge_id, user_id)
            return IngestResult(created=False, activity_id=None, current_progress=progress)

        # 6) Aggregate, re-checking acceptance in the same statement
        result = await self.session.execute(
            update(ChallengeParticipant)
            .where(
                ChallengeParticipant.challenge_id == challenge_id,
                ChallengeParticipant.user_id == user_id,
                ChallengeParticipant.invite_status == InviteStatus.ACCEPTED.value,
            )
            .values(
                current_progress=ChallengeParticipant.current_progress + value,
                updated_at=now,
            )
            .returning(ChallengeParticipant.current_progress)
        )
        progress = result.scalar_one_or_none()
        if progress is None:
            log.error("Participant left during ingestion, rolling back activity")
            raise NotParticipantError("Participation ended before activity was recorded")

        # 7) Streak, same unit of work
        streak = await StreakAggregator(self.session).record_activity(user_id, recorded_at)

        log.info(
            "Activity accepted",
            activity_id=entry.id,
            value=value,
            current_progress=progress,
        )
        return IngestResult(
            created=True,
            activity_id=entry.id,
            current_progress=progress,
            current_streak=streak.current_streak,
        )

    async def _is_accepted_participant(self, challenge_id: str, user_id: str) -> bool:
        result = await self.session.execute(
            select(ChallengeParticipant.user_id).where(
                ChallengeParticipant.challenge_id == challenge_id,
                ChallengeParticipant.user_id == user_id,
                ChallengeParticipant.invite_status == InviteStatus.ACCEPTED.value,
            )
        )
        return result.scalar_one_or_none() is not None

    async def _current_progress(self, challenge_id: str, user_id: str) -> int:
        result = await self.session.execute(
            select(ChallengeParticipant.current_progress).where(
                ChallengeParticipant.challenge_id == challenge_id,
                ChallengeParticipant.user_id == user_id,
            )
        )
        progress = result.scalar_one_or_none()
        if progress is None:
            self.logger.error(
                "Participant row missing for duplicate activity",
                user_id=user_id,
                challenge_id=challenge_id,
            )
            raise DataIntegrityError(
                f"No participant row for user {user_id} in challenge {challenge_id}"
            )
        return progress
