"""Friend requests."""

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fitchallenge_sync.core.exceptions import InvalidFriendRequestError
from fitchallenge_sync.models.friendship import Friendship, FriendshipStatus

logger = structlog.get_logger()


class FriendService:
    """Sends friend requests idempotently.

    The (requested_by, requested_to) unique constraint turns a repeated
    request into a no-op success.
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize friend service.

        Args:
            session: Database session
        """
        self.session = session
        self.logger = logger.bind(service="friends")

    async def send_friend_request(self, user_id: str, target_user_id: str) -> bool:
        """Send a friend request from user_id to target_user_id.

        Returns:
            True if a new request was created, False if it already existed

        Raises:
            InvalidFriendRequestError: If the target is the caller
        """
        if user_id == target_user_id:
            raise InvalidFriendRequestError("Cannot send a friend request to yourself")

        self.session.add(
            Friendship(
                requested_by=user_id,
                requested_to=target_user_id,
                status=FriendshipStatus.PENDING.value,
            )
        )
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            self.logger.debug("Duplicate friend request", user_id=user_id, target=target_user_id)
            return False

        self.logger.info("Friend request sent", user_id=user_id, target=target_user_id)
        return True
