"""API routes."""

from litestar import Router

from fitchallenge_sync.api.activity import activity_router
from fitchallenge_sync.api.challenges import challenges_router
from fitchallenge_sync.api.friends import friends_router
from fitchallenge_sync.api.health import health_router
from fitchallenge_sync.core.config import settings

# Versioned API routers
_v1_routers = [
    activity_router,  # Activity ingestion
    challenges_router,  # Status, leaderboard, invites
    friends_router,  # Friend requests
]

api_v1_router = Router(path=settings.api_prefix, route_handlers=_v1_routers)

# - health_router: /health - no auth needed, no version prefix
# - api_v1_router: /api/v1/* - caller identity required
api_routers = [health_router, api_v1_router]

__all__ = ["api_routers"]
