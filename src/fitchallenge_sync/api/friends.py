"""Friend request endpoint."""

from litestar import Router, post
from litestar.status_codes import HTTP_200_OK
from sqlalchemy.ext.asyncio import AsyncSession

from fitchallenge_sync.core.auth import caller_dependency
from fitchallenge_sync.schemas.activity import ActionResponse, FriendRequestCreate
from fitchallenge_sync.services.friends import FriendService


@post("/friends/requests", status_code=HTTP_200_OK)
async def send_friend_request(
    data: FriendRequestCreate,
    caller_id: str,
    session: AsyncSession,
) -> ActionResponse:
    """Send a friend request. Repeating the call is a no-op."""
    created = await FriendService(session).send_friend_request(caller_id, data.target_user_id)
    return ActionResponse(status="created" if created else "duplicate")


friends_router = Router(
    path="/",
    dependencies=caller_dependency,
    route_handlers=[send_friend_request],
)
