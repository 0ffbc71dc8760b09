"""Challenge invite responses and leaving a challenge."""

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from fitchallenge_sync.core.exceptions import InviteNotFoundError, NotParticipantError
from fitchallenge_sync.models.base import utc_now
from fitchallenge_sync.models.participant import ChallengeParticipant, InviteStatus

logger = structlog.get_logger()


class InviteService:
    """Moves a caller's participation between invite states.

    Only a pending invite can be accepted. Accepting an already-accepted
    invite is a no-op success, so the call is safe to queue offline and
    retry. A declined invite stays declined.
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize invite service.

        Args:
            session: Database session
        """
        self.session = session
        self.logger = logger.bind(service="invites")

    async def accept_invite(self, user_id: str, challenge_id: str) -> bool:
        """Accept the caller's pending invite to a challenge.

        Returns:
            True if the status changed, False if it was already accepted

        Raises:
            InviteNotFoundError: If there is no pending or accepted invite
        """
        result = await self.session.execute(
            select(ChallengeParticipant)
            .where(
                ChallengeParticipant.challenge_id == challenge_id,
                ChallengeParticipant.user_id == user_id,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        participant = result.scalar_one_or_none()
        if participant is None:
            raise InviteNotFoundError(f"No invite for challenge {challenge_id}")

        if participant.is_accepted:
            return False

        if participant.invite_status != InviteStatus.PENDING.value:
            self.logger.info(
                "Invite not pending",
                user_id=user_id,
                challenge_id=challenge_id,
                invite_status=participant.invite_status,
            )
            raise InviteNotFoundError(f"No pending invite for challenge {challenge_id}")

        participant.invite_status = InviteStatus.ACCEPTED.value
        participant.updated_at = utc_now()
        await self.session.commit()

        self.logger.info("Invite accepted", user_id=user_id, challenge_id=challenge_id)
        return True

    async def leave_challenge(self, user_id: str, challenge_id: str) -> None:
        """Leave a challenge the caller had accepted.

        The participation row is kept as ``declined`` so its progress and
        activity history stay intact.

        Raises:
            NotParticipantError: If the caller is not an accepted participant
        """
        result = await self.session.execute(
            update(ChallengeParticipant)
            .where(
                ChallengeParticipant.challenge_id == challenge_id,
                ChallengeParticipant.user_id == user_id,
                ChallengeParticipant.invite_status == InviteStatus.ACCEPTED.value,
            )
            .values(invite_status=InviteStatus.DECLINED.value, updated_at=utc_now())
            .returning(ChallengeParticipant.user_id)
        )
        if result.scalar_one_or_none() is None:
            await self.session.rollback()
            raise NotParticipantError("Not an accepted participant of this challenge")

        await self.session.commit()
        self.logger.info("Left challenge", user_id=user_id, challenge_id=challenge_id)
