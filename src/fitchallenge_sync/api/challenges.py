"""Challenge status, leaderboard and invite endpoints."""

from litestar import Router, get, post
from litestar.status_codes import HTTP_200_OK
from sqlalchemy.ext.asyncio import AsyncSession

from fitchallenge_sync.core.auth import caller_dependency
from fitchallenge_sync.schemas.activity import (
    ActionResponse,
    ChallengeStatusResponse,
    LeaderboardRow,
)
from fitchallenge_sync.services.invites import InviteService
from fitchallenge_sync.services.leaderboard import LeaderboardService
from fitchallenge_sync.services.lifecycle import get_effective_status, status_label


@get("/challenges/{challenge_id:str}/status")
async def challenge_status(challenge_id: str, session: AsyncSession) -> ChallengeStatusResponse:
    """Effective status of a challenge; ``forbidden`` if it cannot be found."""
    status = await get_effective_status(session, challenge_id)
    return ChallengeStatusResponse(
        challenge_id=challenge_id,
        status=status,
        label=status_label(status),
    )


@get("/challenges/{challenge_id:str}/leaderboard")
async def leaderboard(
    challenge_id: str,
    caller_id: str,
    session: AsyncSession,
) -> list[LeaderboardRow]:
    """Ranked accepted participants (empty unless the caller participates)."""
    entries = await LeaderboardService(session).get_leaderboard(challenge_id, caller_id)
    return [
        LeaderboardRow(
            rank=entry.rank,
            user_id=entry.user_id,
            current_progress=entry.current_progress,
            current_streak=entry.current_streak,
            display_name=entry.display_name,
        )
        for entry in entries
    ]


@post("/challenges/{challenge_id:str}/invite/accept", status_code=HTTP_200_OK)
async def accept_invite(
    challenge_id: str,
    caller_id: str,
    session: AsyncSession,
) -> ActionResponse:
    """Accept the caller's invite. Repeating the call is a no-op."""
    changed = await InviteService(session).accept_invite(caller_id, challenge_id)
    return ActionResponse(status="accepted" if changed else "unchanged")


@post("/challenges/{challenge_id:str}/leave", status_code=HTTP_200_OK)
async def leave_challenge(
    challenge_id: str,
    caller_id: str,
    session: AsyncSession,
) -> ActionResponse:
    """Leave an accepted challenge. Progress and history are kept."""
    await InviteService(session).leave_challenge(caller_id, challenge_id)
    return ActionResponse(status="left")


challenges_router = Router(
    path="/",
    dependencies=caller_dependency,
    route_handlers=[challenge_status, leaderboard, accept_invite, leave_challenge],
)
