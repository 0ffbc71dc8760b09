"""Tests for atomic activity ingestion."""

from datetime import timedelta
from uuid import uuid4

import pytest
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fitchallenge_sync.core.exceptions import (
    ChallengeNotActiveError,
    DataIntegrityError,
    DedupeKeyRequiredError,
    InvalidValueError,
    NotParticipantError,
    RecordedAtOutOfBoundsError,
)
from fitchallenge_sync.models import (
    ActivityLog,
    ActivitySource,
    Challenge,
    ChallengeParticipant,
    InviteStatus,
    Profile,
    StatusOverride,
)
from fitchallenge_sync.services.ingestion import ActivityEntry, IngestionService
from tests.fixtures.challenge_seed import (
    CHALLENGE_END,
    CHALLENGE_START,
    NOW,
    fixed_clock,
    seed_challenge,
    seed_participant,
)


async def _progress(session: AsyncSession, user_id: str = "alice") -> int:
    result = await session.execute(
        select(ChallengeParticipant.current_progress).where(
            ChallengeParticipant.challenge_id == "challenge-1",
            ChallengeParticipant.user_id == user_id,
        )
    )
    return result.scalar_one()


async def _log_count(session: AsyncSession) -> int:
    result = await session.execute(select(func.count()).select_from(ActivityLog))
    return result.scalar_one()


@pytest.fixture
def service(async_session: AsyncSession) -> IngestionService:
    """Ingestion service with the clock pinned inside the challenge window."""
    return IngestionService(async_session, clock=fixed_clock)


@pytest.mark.usefixtures("participant")
class TestIdempotentIngestion:
    """Duplicate submissions never double-count."""

    async def test_first_submission_creates(
        self, async_session: AsyncSession, service: IngestionService
    ) -> None:
        """A new event inserts a row and increments progress."""
        result = await service.log_activity(
            "alice", "challenge-1", "steps", 100, client_event_id=uuid4()
        )

        assert result.created is True
        assert result.status == "created"
        assert result.activity_id is not None
        assert result.current_progress == 100
        assert await _progress(async_session) == 100
        assert await _log_count(async_session) == 1

    async def test_replayed_event_is_duplicate(
        self, async_session: AsyncSession, service: IngestionService
    ) -> None:
        """The same client_event_id applied twice counts once."""
        event_id = uuid4()

        first = await service.log_activity(
            "alice", "challenge-1", "steps", 100, client_event_id=event_id
        )
        second = await service.log_activity(
            "alice", "challenge-1", "steps", 100, client_event_id=event_id
        )

        assert first.created is True
        assert second.created is False
        assert second.status == "duplicate"
        assert second.activity_id is None
        assert second.current_progress == 100
        assert await _progress(async_session) == 100
        assert await _log_count(async_session) == 1

    async def test_replay_from_another_session(
        self,
        async_session: AsyncSession,
        session_maker: async_sessionmaker[AsyncSession],
        service: IngestionService,
    ) -> None:
        """Idempotency is enforced by the database, not by session state."""
        event_id = uuid4()
        await service.log_activity("alice", "challenge-1", "steps", 100, client_event_id=event_id)

        async with session_maker() as other:
            replay = await IngestionService(other, clock=fixed_clock).log_activity(
                "alice", "challenge-1", "steps", 100, client_event_id=event_id
            )

        assert replay.created is False
        assert await _progress(async_session) == 100

    async def test_distinct_events_both_count(
        self, async_session: AsyncSession, service: IngestionService
    ) -> None:
        """Different client_event_ids are separate entries."""
        await service.log_activity("alice", "challenge-1", "steps", 100, client_event_id=uuid4())
        result = await service.log_activity(
            "alice", "challenge-1", "steps", 100, client_event_id=uuid4()
        )

        assert result.current_progress == 200
        assert await _log_count(async_session) == 2

    @pytest.mark.parametrize("order", [(0, 1), (1, 0)], ids=["manual-first", "health-first"])
    async def test_distinct_sources_sum_in_either_order(
        self,
        async_session: AsyncSession,
        session_maker: async_sessionmaker[AsyncSession],
        order: tuple[int, int],
    ) -> None:
        """Two sources landing from separate sessions add up, whichever finishes first."""
        submissions = [
            {"value": 100, "client_event_id": uuid4()},
            {
                "value": 250,
                "source": ActivitySource.HEALTHKIT,
                "source_external_id": "hk-sample-7",
            },
        ]
        seen: list[int] = []

        for index in order:
            async with session_maker() as session:
                result = await IngestionService(session, clock=fixed_clock).log_activity(
                    "alice", "challenge-1", "steps", **submissions[index]
                )
            seen.append(result.current_progress)

        first_value = submissions[order[0]]["value"]
        assert seen == [first_value, 350]
        assert await _progress(async_session) == 350
        assert await _log_count(async_session) == 2

    async def test_health_sync_deduplicates_by_external_id(
        self, async_session: AsyncSession, service: IngestionService
    ) -> None:
        """HealthKit imports are keyed on source_external_id."""
        for _ in range(2):
            result = await service.log_activity(
                "alice",
                "challenge-1",
                "steps",
                5000,
                source=ActivitySource.HEALTHKIT,
                source_external_id="hk-sample-42",
            )

        assert result.created is False
        assert await _progress(async_session) == 5000

    async def test_same_external_id_on_another_source_is_distinct(
        self, async_session: AsyncSession, service: IngestionService
    ) -> None:
        """External ids are unique per source."""
        await service.log_activity(
            "alice", "challenge-1", "steps", 10, source="healthkit", source_external_id="sample-1"
        )
        result = await service.log_activity(
            "alice", "challenge-1", "steps", 10, source="googlefit", source_external_id="sample-1"
        )

        assert result.created is True
        assert await _progress(async_session) == 20


@pytest.mark.usefixtures("participant")
class TestRecordedAtBounds:
    """recorded_at must fall inside [start_date, end_date)."""

    async def test_start_boundary_accepted(self, service: IngestionService) -> None:
        result = await service.log_activity(
            "alice", "challenge-1", "steps", 1, recorded_at=CHALLENGE_START, client_event_id=uuid4()
        )
        assert result.created is True

    async def test_end_boundary_rejected(
        self, async_session: AsyncSession, challenge: Challenge
    ) -> None:
        """end_date itself is outside the window, even with the clock just before it."""
        service = IngestionService(
            async_session, clock=lambda: CHALLENGE_END - timedelta(seconds=1)
        )

        with pytest.raises(RecordedAtOutOfBoundsError):
            await service.log_activity(
                "alice",
                "challenge-1",
                "steps",
                1,
                recorded_at=CHALLENGE_END,
                client_event_id=uuid4(),
            )
        assert await _log_count(async_session) == 0

    async def test_before_start_rejected(self, service: IngestionService) -> None:
        with pytest.raises(RecordedAtOutOfBoundsError):
            await service.log_activity(
                "alice",
                "challenge-1",
                "steps",
                1,
                recorded_at=CHALLENGE_START - timedelta(seconds=1),
                client_event_id=uuid4(),
            )

    async def test_backfill_inside_window_accepted(self, service: IngestionService) -> None:
        """Earlier in-window activity is accepted while the challenge is active."""
        result = await service.log_activity(
            "alice",
            "challenge-1",
            "steps",
            1,
            recorded_at=CHALLENGE_START + timedelta(days=1),
            client_event_id=uuid4(),
        )
        assert result.created is True

    async def test_small_clock_skew_accepted(self, service: IngestionService) -> None:
        """A few minutes in the future is tolerated."""
        result = await service.log_activity(
            "alice",
            "challenge-1",
            "steps",
            1,
            recorded_at=NOW + timedelta(minutes=4),
            client_event_id=uuid4(),
        )
        assert result.created is True

    async def test_far_future_rejected(self, service: IngestionService) -> None:
        with pytest.raises(RecordedAtOutOfBoundsError):
            await service.log_activity(
                "alice",
                "challenge-1",
                "steps",
                1,
                recorded_at=NOW + timedelta(minutes=10),
                client_event_id=uuid4(),
            )

    async def test_defaults_to_server_time(
        self, async_session: AsyncSession, service: IngestionService
    ) -> None:
        """Omitted recorded_at is stamped with the server clock."""
        result = await service.log_activity(
            "alice", "challenge-1", "steps", 1, client_event_id=uuid4()
        )

        entry = await async_session.get(ActivityLog, result.activity_id)
        assert entry is not None
        assert entry.recorded_at.replace(tzinfo=None) == NOW.replace(tzinfo=None)


class TestRejections:
    """Validation failures roll back and change nothing."""

    @pytest.mark.usefixtures("participant")
    async def test_manual_requires_client_event_id(self, service: IngestionService) -> None:
        with pytest.raises(DedupeKeyRequiredError) as exc_info:
            await service.log_activity("alice", "challenge-1", "steps", 1)
        assert exc_info.value.code == "client_event_id_required_for_manual"

    @pytest.mark.usefixtures("participant")
    async def test_health_sync_requires_external_id(self, service: IngestionService) -> None:
        with pytest.raises(DedupeKeyRequiredError) as exc_info:
            await service.log_activity(
                "alice", "challenge-1", "steps", 1, source=ActivitySource.GOOGLEFIT
            )
        assert exc_info.value.code == "source_external_id_required_for_health_sync"

    @pytest.mark.usefixtures("participant")
    @pytest.mark.parametrize("value", [0, -5])
    async def test_non_positive_value(self, service: IngestionService, value: int) -> None:
        with pytest.raises(InvalidValueError):
            await service.log_activity(
                "alice", "challenge-1", "steps", value, client_event_id=uuid4()
            )

    async def test_pending_invite_is_not_participant(
        self, async_session: AsyncSession, challenge: Challenge, service: IngestionService
    ) -> None:
        """Only accepted participants may log."""
        await seed_participant(
            async_session, "challenge-1", "bob", invite_status=InviteStatus.PENDING
        )

        with pytest.raises(NotParticipantError):
            await service.log_activity("bob", "challenge-1", "steps", 1, client_event_id=uuid4())
        assert await _log_count(async_session) == 0

    async def test_stranger_is_not_participant(
        self, challenge: Challenge, service: IngestionService
    ) -> None:
        with pytest.raises(NotParticipantError):
            await service.log_activity(
                "mallory", "challenge-1", "steps", 1, client_event_id=uuid4()
            )

    async def test_cancelled_challenge(
        self, async_session: AsyncSession, service: IngestionService
    ) -> None:
        """Overrides are checked before time bounds."""
        await seed_challenge(async_session, status_override=StatusOverride.CANCELLED.value)
        await seed_participant(async_session, "challenge-1", "alice")

        with pytest.raises(ChallengeNotActiveError) as exc_info:
            await service.log_activity(
                "alice", "challenge-1", "steps", 1, client_event_id=uuid4()
            )
        assert exc_info.value.status == "cancelled"
        assert exc_info.value.code == "challenge_not_active"

    async def test_upcoming_challenge(self, async_session: AsyncSession) -> None:
        await seed_challenge(async_session)
        await seed_participant(async_session, "challenge-1", "alice")
        service = IngestionService(async_session, clock=lambda: CHALLENGE_START - timedelta(days=1))

        with pytest.raises(ChallengeNotActiveError) as exc_info:
            await service.log_activity(
                "alice", "challenge-1", "steps", 1, client_event_id=uuid4()
            )
        assert exc_info.value.status == "upcoming"

    async def test_completed_challenge(self, async_session: AsyncSession) -> None:
        await seed_challenge(async_session)
        await seed_participant(async_session, "challenge-1", "alice")
        service = IngestionService(async_session, clock=lambda: CHALLENGE_END)

        with pytest.raises(ChallengeNotActiveError) as exc_info:
            await service.log_activity(
                "alice",
                "challenge-1",
                "steps",
                1,
                recorded_at=CHALLENGE_END - timedelta(hours=1),
                client_event_id=uuid4(),
            )
        assert exc_info.value.status == "completed"


class TestAtomicity:
    """Ingestion, aggregate and streak commit or roll back together."""

    async def test_streak_updated_with_activity(
        self, async_session: AsyncSession, participant: ChallengeParticipant
    ) -> None:
        result = await IngestionService(async_session, clock=fixed_clock).log_activity(
            "alice", "challenge-1", "steps", 100, client_event_id=uuid4()
        )

        assert result.current_streak == 1
        profile = await async_session.get(Profile, "alice")
        assert profile is not None
        await async_session.refresh(profile)
        assert profile.current_streak == 1
        assert profile.last_activity_date == NOW.date()

    async def test_duplicate_leaves_streak_alone(
        self, async_session: AsyncSession, participant: ChallengeParticipant
    ) -> None:
        service = IngestionService(async_session, clock=fixed_clock)
        event_id = uuid4()
        await service.log_activity("alice", "challenge-1", "steps", 100, client_event_id=event_id)

        duplicate = await service.log_activity(
            "alice", "challenge-1", "steps", 100, client_event_id=event_id
        )

        assert duplicate.current_streak is None

    async def test_missing_profile_rolls_back_everything(
        self, async_session: AsyncSession, challenge: Challenge
    ) -> None:
        """Derived state failure undoes the insert and the increment."""
        await seed_participant(async_session, "challenge-1", "nobody", with_profile=False)

        with pytest.raises(DataIntegrityError):
            await IngestionService(async_session, clock=fixed_clock).log_activity(
                "nobody", "challenge-1", "steps", 100, client_event_id=uuid4()
            )

        assert await _log_count(async_session) == 0
        assert await _progress(async_session, "nobody") == 0

    async def test_participant_leaving_mid_ingestion_rolls_back(
        self, async_session: AsyncSession, participant: ChallengeParticipant
    ) -> None:
        """Participation ending before the increment undoes the insert as well."""

        class LeavesAfterCheck(IngestionService):
            async def _is_accepted_participant(self, challenge_id: str, user_id: str) -> bool:
                accepted = await super()._is_accepted_participant(challenge_id, user_id)
                await self.session.execute(
                    update(ChallengeParticipant)
                    .where(
                        ChallengeParticipant.challenge_id == challenge_id,
                        ChallengeParticipant.user_id == user_id,
                    )
                    .values(invite_status=InviteStatus.DECLINED.value)
                )
                return accepted

        with pytest.raises(NotParticipantError):
            await LeavesAfterCheck(async_session, clock=fixed_clock).log_activity(
                "alice", "challenge-1", "steps", 100, client_event_id=uuid4()
            )

        assert await _log_count(async_session) == 0
        assert await _progress(async_session) == 0

    async def test_missing_participant_row_on_duplicate_path(
        self, async_session: AsyncSession, challenge: Challenge
    ) -> None:
        """A duplicate whose participant row is gone is an integrity failure, not zero."""
        service = IngestionService(async_session, clock=fixed_clock)

        with pytest.raises(DataIntegrityError):
            await service._current_progress("challenge-1", "ghost")


def _sample(external_id: str | None, value: int = 500, **kwargs: object) -> ActivityEntry:
    return ActivityEntry(
        activity_type="steps", value=value, source_external_id=external_id, **kwargs
    )


class TestBatchIngestion:
    """Health-provider batch imports."""

    async def test_mixed_batch(
        self, async_session: AsyncSession, participant: ChallengeParticipant
    ) -> None:
        """Good samples apply, duplicates are counted, bad samples are reported."""
        result = await IngestionService(async_session, clock=fixed_clock).log_activity_batch(
            "alice",
            "challenge-1",
            [
                _sample("hk-1", 500),
                _sample("hk-2", 300),
                _sample("hk-1", 500),
                _sample("hk-3", recorded_at=CHALLENGE_START - timedelta(days=1)),
                _sample(None),
            ],
        )

        assert result.inserted == 2
        assert result.deduplicated == 1
        assert [(e.index, e.error) for e in result.errors] == [
            (3, "recorded_at_out_of_bounds"),
            (4, "source_external_id_required_for_health_sync"),
        ]
        assert result.errors[0].source_external_id == "hk-3"
        assert result.total_processed == 5
        assert result.current_progress == 800
        assert await _progress(async_session) == 800
        assert await _log_count(async_session) == 2

    async def test_replayed_batch_is_all_duplicates(
        self, async_session: AsyncSession, participant: ChallengeParticipant
    ) -> None:
        service = IngestionService(async_session, clock=fixed_clock)
        batch = [_sample("hk-1", 500), _sample("hk-2", 300)]

        await service.log_activity_batch("alice", "challenge-1", batch)
        replay = await service.log_activity_batch("alice", "challenge-1", batch)

        assert replay.inserted == 0
        assert replay.deduplicated == 2
        assert replay.current_progress == 800
        assert await _log_count(async_session) == 2

    async def test_stranger_batch_rejects_every_item(
        self, async_session: AsyncSession, participant: ChallengeParticipant
    ) -> None:
        result = await IngestionService(async_session, clock=fixed_clock).log_activity_batch(
            "mallory", "challenge-1", [_sample("hk-1"), _sample("hk-2")]
        )

        assert result.inserted == 0
        assert [e.error for e in result.errors] == ["not_participant", "not_participant"]
        assert result.current_progress is None
        assert await _log_count(async_session) == 0

    async def test_integrity_failure_aborts_batch(
        self, async_session: AsyncSession, challenge: Challenge
    ) -> None:
        await seed_participant(async_session, "challenge-1", "nobody", with_profile=False)

        with pytest.raises(DataIntegrityError):
            await IngestionService(async_session, clock=fixed_clock).log_activity_batch(
                "nobody", "challenge-1", [_sample("hk-1"), _sample("hk-2")]
            )

        assert await _log_count(async_session) == 0
        assert await _progress(async_session, "nobody") == 0
