"""Tests for invites, friend requests and leaderboards."""

from datetime import date
from uuid import uuid4

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from fitchallenge_sync.core.exceptions import (
    InvalidFriendRequestError,
    InviteNotFoundError,
    NotParticipantError,
)
from fitchallenge_sync.models import Challenge, ChallengeParticipant, Friendship, InviteStatus
from fitchallenge_sync.services.friends import FriendService
from fitchallenge_sync.services.ingestion import IngestionService
from fitchallenge_sync.services.invites import InviteService
from fitchallenge_sync.services.leaderboard import LeaderboardService
from tests.fixtures.challenge_seed import fixed_clock, seed_participant


async def _invite_status(session: AsyncSession, user_id: str) -> str:
    result = await session.execute(
        select(ChallengeParticipant.invite_status).where(
            ChallengeParticipant.challenge_id == "challenge-1",
            ChallengeParticipant.user_id == user_id,
        )
    )
    return result.scalar_one()


class TestInviteService:
    """Tests for invite acceptance and leaving."""

    async def test_accept_pending_invite(
        self, async_session: AsyncSession, challenge: Challenge
    ) -> None:
        await seed_participant(
            async_session, "challenge-1", "bob", invite_status=InviteStatus.PENDING
        )

        changed = await InviteService(async_session).accept_invite("bob", "challenge-1")

        assert changed is True
        result = await async_session.execute(
            select(ChallengeParticipant.invite_status).where(
                ChallengeParticipant.user_id == "bob"
            )
        )
        assert result.scalar_one() == InviteStatus.ACCEPTED.value

    async def test_accept_twice_is_noop(
        self, async_session: AsyncSession, challenge: Challenge
    ) -> None:
        """Repeating the action is safe."""
        await seed_participant(
            async_session, "challenge-1", "bob", invite_status=InviteStatus.PENDING
        )
        service = InviteService(async_session)

        assert await service.accept_invite("bob", "challenge-1") is True
        assert await service.accept_invite("bob", "challenge-1") is False

    async def test_accept_without_invite(
        self, async_session: AsyncSession, challenge: Challenge
    ) -> None:
        with pytest.raises(InviteNotFoundError):
            await InviteService(async_session).accept_invite("stranger", "challenge-1")

    async def test_declined_invite_cannot_be_accepted(
        self, async_session: AsyncSession, challenge: Challenge
    ) -> None:
        """Only a pending invite moves to accepted."""
        await seed_participant(
            async_session, "challenge-1", "bob", invite_status=InviteStatus.DECLINED
        )

        with pytest.raises(InviteNotFoundError):
            await InviteService(async_session).accept_invite("bob", "challenge-1")

        assert await _invite_status(async_session, "bob") == InviteStatus.DECLINED.value

    async def test_leave_challenge(
        self, async_session: AsyncSession, participant: ChallengeParticipant
    ) -> None:
        """Leaving keeps the row, marked declined, with its progress."""
        await InviteService(async_session).leave_challenge("alice", "challenge-1")

        assert await _invite_status(async_session, "alice") == InviteStatus.DECLINED.value

    async def test_leave_ends_activity_logging(
        self, async_session: AsyncSession, participant: ChallengeParticipant
    ) -> None:
        await InviteService(async_session).leave_challenge("alice", "challenge-1")

        with pytest.raises(NotParticipantError):
            await IngestionService(async_session, clock=fixed_clock).log_activity(
                "alice", "challenge-1", "steps", 100, client_event_id=uuid4()
            )

    async def test_leave_twice_rejected(
        self, async_session: AsyncSession, participant: ChallengeParticipant
    ) -> None:
        service = InviteService(async_session)
        await service.leave_challenge("alice", "challenge-1")

        with pytest.raises(NotParticipantError):
            await service.leave_challenge("alice", "challenge-1")

    async def test_left_challenge_cannot_be_rejoined_by_accepting(
        self, async_session: AsyncSession, participant: ChallengeParticipant
    ) -> None:
        service = InviteService(async_session)
        await service.leave_challenge("alice", "challenge-1")

        with pytest.raises(InviteNotFoundError):
            await service.accept_invite("alice", "challenge-1")

    async def test_pending_invitee_cannot_leave(
        self, async_session: AsyncSession, challenge: Challenge
    ) -> None:
        await seed_participant(
            async_session, "challenge-1", "bob", invite_status=InviteStatus.PENDING
        )

        with pytest.raises(NotParticipantError):
            await InviteService(async_session).leave_challenge("bob", "challenge-1")

        assert await _invite_status(async_session, "bob") == InviteStatus.PENDING.value


class TestFriendService:
    """Tests for friend requests."""

    async def test_send_request(self, async_session: AsyncSession) -> None:
        created = await FriendService(async_session).send_friend_request("alice", "bob")

        assert created is True

    async def test_duplicate_request_is_noop(self, async_session: AsyncSession) -> None:
        """The unique pair constraint makes a repeat a no-op success."""
        service = FriendService(async_session)

        assert await service.send_friend_request("alice", "bob") is True
        assert await service.send_friend_request("alice", "bob") is False

        result = await async_session.execute(select(func.count()).select_from(Friendship))
        assert result.scalar_one() == 1

    async def test_request_to_self_rejected(self, async_session: AsyncSession) -> None:
        with pytest.raises(InvalidFriendRequestError):
            await FriendService(async_session).send_friend_request("alice", "alice")


class TestLeaderboardService:
    """Tests for ranking."""

    @pytest.fixture
    async def ranked_challenge(self, async_session: AsyncSession, challenge: Challenge) -> str:
        """Four accepted participants and one pending invitee."""
        await seed_participant(
            async_session,
            "challenge-1",
            "alice",
            current_progress=500,
            current_streak=3,
            last_activity_date=date(2024, 1, 10),
        )
        await seed_participant(async_session, "challenge-1", "bob", current_progress=500)
        await seed_participant(
            async_session,
            "challenge-1",
            "carol",
            current_progress=300,
            current_streak=5,
            last_activity_date=date(2024, 1, 7),
        )
        await seed_participant(async_session, "challenge-1", "dave", current_progress=100)
        await seed_participant(
            async_session,
            "challenge-1",
            "erin",
            invite_status=InviteStatus.PENDING,
            current_progress=900,
        )
        return "challenge-1"

    async def test_competition_ranking(
        self, async_session: AsyncSession, ranked_challenge: str
    ) -> None:
        """Ties share a rank and the next rank is skipped."""
        entries = await LeaderboardService(async_session).get_leaderboard(
            ranked_challenge, "alice", today=date(2024, 1, 10)
        )

        assert [(e.rank, e.user_id) for e in entries] == [
            (1, "alice"),
            (1, "bob"),
            (3, "carol"),
            (4, "dave"),
        ]

    async def test_streaks_decay_at_read_time(
        self, async_session: AsyncSession, ranked_challenge: str
    ) -> None:
        """A streak last extended more than a day ago shows as zero."""
        entries = await LeaderboardService(async_session).get_leaderboard(
            ranked_challenge, "alice", today=date(2024, 1, 10)
        )
        streaks = {e.user_id: e.current_streak for e in entries}

        assert streaks["alice"] == 3
        assert streaks["carol"] == 0

    async def test_hidden_from_non_participants(
        self, async_session: AsyncSession, ranked_challenge: str
    ) -> None:
        """Pending invitees and strangers see nothing."""
        service = LeaderboardService(async_session)

        assert await service.get_leaderboard(ranked_challenge, "erin") == []
        assert await service.get_leaderboard(ranked_challenge, "mallory") == []
