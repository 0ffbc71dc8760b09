"""Map domain exceptions to HTTP error responses.

Error bodies carry the stable domain code so clients can classify
failures without parsing messages:

    {"error": "challenge_not_active", "detail": "Challenge is completed, not active"}
"""

from typing import Any

import structlog
from litestar import Request, Response
from litestar.status_codes import (
    HTTP_403_FORBIDDEN,
    HTTP_404_NOT_FOUND,
    HTTP_422_UNPROCESSABLE_ENTITY,
    HTTP_500_INTERNAL_SERVER_ERROR,
)

from fitchallenge_sync.core.exceptions import (
    DataIntegrityError,
    FitChallengeError,
    InviteNotFoundError,
    NotParticipantError,
)

logger = structlog.get_logger()


def status_code_for(exc: FitChallengeError) -> int:
    """HTTP status for a domain exception."""
    if isinstance(exc, NotParticipantError):
        return HTTP_403_FORBIDDEN
    if isinstance(exc, InviteNotFoundError):
        return HTTP_404_NOT_FOUND
    if isinstance(exc, DataIntegrityError):
        return HTTP_500_INTERNAL_SERVER_ERROR
    return HTTP_422_UNPROCESSABLE_ENTITY


def domain_error_handler(
    request: Request[Any, Any, Any], exc: FitChallengeError
) -> Response[dict[str, str]]:
    """Render a domain exception as a JSON error body."""
    status_code = status_code_for(exc)
    if status_code >= HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error("Data integrity failure", path=request.url.path, error=exc.message)
    return Response(
        content={"error": exc.code, "detail": exc.message},
        status_code=status_code,
    )


exception_handlers = {FitChallengeError: domain_error_handler}
