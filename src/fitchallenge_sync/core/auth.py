"""Caller identity for API requests.

Sessions and tokens are issued and verified by the fronting auth gateway.
By the time a request reaches this server the gateway has replaced any
client-supplied identity header with the authenticated user id, so handlers
only need to read it.
"""

from typing import Any

import structlog
from litestar import Request
from litestar.connection import ASGIConnection
from litestar.di import Provide
from litestar.exceptions import NotAuthorizedException

from fitchallenge_sync.core.config import settings

logger = structlog.get_logger()


def _extract_user_id(connection: ASGIConnection[Any, Any, Any, Any]) -> str | None:
    """Extract the caller's user id from request headers."""
    user_id = connection.headers.get(settings.user_id_header, "").strip()
    return user_id or None


async def provide_caller_id(request: Request[Any, Any, Any]) -> str:
    """Resolve the authenticated caller for this request.

    Raises:
        NotAuthorizedException: If the gateway did not supply an identity
    """
    user_id = _extract_user_id(request)
    if user_id is None:
        logger.warning("Request without caller identity", path=request.url.path)
        raise NotAuthorizedException("Authentication required")
    return user_id


caller_dependency = {"caller_id": Provide(provide_caller_id)}
