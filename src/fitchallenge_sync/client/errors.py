"""Error classification for queued actions.

Every failure of a queued action is classified as transient (the item stays
queued and is retried on a later drain) or permanent (the item is dropped
immediately and reported to the user).

    TRANSIENT (retry):
    - NETWORK_UNAVAILABLE: connection could not be established
    - TIMEOUT: request timed out (client side or HTTP 408)
    - RATE_LIMITED: HTTP 429
    - SERVER_ERROR: HTTP 5xx
    - AUTH_REQUIRED: no usable session right now (HTTP 401 or no token);
      a later drain may run after the session was refreshed
    - INTERNAL_ERROR: unexpected exception

    PERMANENT (drop and report):
    - VALIDATION_FAILED: server rejected the action (not_participant,
      challenge_not_active, recorded_at_out_of_bounds, ...)
    - FORBIDDEN: HTTP 403
    - NOT_FOUND: HTTP 404
    - INTEGRITY_ERROR: server reported a data integrity failure

Messages are sanitized before they are stored or logged: credentials are
redacted and text is truncated.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any

import httpx
import structlog

from fitchallenge_sync.core.exceptions import DataIntegrityError, FitChallengeError

logger = structlog.get_logger()


class ActionErrorType(str, Enum):
    """Categorized failure of a queued action."""

    NETWORK_UNAVAILABLE = "network_unavailable"
    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"
    SERVER_ERROR = "server_error"
    AUTH_REQUIRED = "auth_required"
    INTERNAL_ERROR = "internal_error"

    VALIDATION_FAILED = "validation_failed"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    INTEGRITY_ERROR = "integrity_error"


TRANSIENT_ERROR_TYPES = frozenset(
    {
        ActionErrorType.NETWORK_UNAVAILABLE,
        ActionErrorType.TIMEOUT,
        ActionErrorType.RATE_LIMITED,
        ActionErrorType.SERVER_ERROR,
        ActionErrorType.AUTH_REQUIRED,
        ActionErrorType.INTERNAL_ERROR,
    }
)


class AuthenticationRequiredError(Exception):
    """No authenticated session is available to run an action."""


class ActionRejectedError(Exception):
    """The server rejected an action with a domain error code.

    Attributes:
        code: Domain error code from the response body
        status_code: HTTP status of the response
        detail: Server-provided explanation
    """

    def __init__(self, code: str, status_code: int, detail: str | None = None) -> None:
        super().__init__(f"{code}: {detail}" if detail else code)
        self.code = code
        self.status_code = status_code
        self.detail = detail


_SECRET_PATTERNS = [
    re.compile(r"(?i)bearer\s+[A-Za-z0-9\-._~+/]+=*"),
    re.compile(r"(?i)\b(access_token|refresh_token|token|api_?key|password|secret)=[^\s&\"']+"),
    re.compile(r"\beyJ[A-Za-z0-9_\-]+\.[A-Za-z0-9_\-]+\.[A-Za-z0-9_\-]+"),
]


def sanitize_error_message(message: str, max_length: int = 200) -> str:
    """Redact credentials from an error message and truncate it.

    Args:
        message: Raw error text
        max_length: Maximum length of the result

    Returns:
        Message safe to persist and log
    """
    for pattern in _SECRET_PATTERNS:
        message = pattern.sub("[REDACTED]", message)
    return message[:max_length]


@dataclass
class ActionError:
    """Classified failure of a queued action.

    Attributes:
        error_type: Category of the failure
        message: Sanitized, human-readable message
        is_transient: Whether the action should stay queued for retry
        code: Domain error code when the server supplied one
        original_exception: The exception that was classified
    """

    error_type: ActionErrorType
    message: str
    is_transient: bool
    code: str | None = None
    original_exception: Exception | None = None

    def to_log_dict(self) -> dict[str, Any]:
        """Convert to dict for structured logging."""
        return {
            "error_type": self.error_type.value,
            "message": self.message,
            "is_transient": self.is_transient,
            "code": self.code,
        }


class ActionErrorHandler:
    """Classifies exceptions raised while executing queued actions.

    Usage:
        handler = ActionErrorHandler()

        try:
            await executor.execute(item.action)
        except Exception as e:
            error = handler.classify(e, context={"item_id": item.id})
            if error.is_transient:
                ...  # keep queued
    """

    def __init__(self, max_message_length: int = 200) -> None:
        """Initialize error handler.

        Args:
            max_message_length: Truncation length for stored messages
        """
        self.max_message_length = max_message_length
        self.logger = logger.bind(component="action_error_handler")

    def classify(
        self,
        exception: Exception,
        context: dict[str, Any] | None = None,
    ) -> ActionError:
        """Classify an exception into an ActionError.

        Args:
            exception: The exception to classify
            context: Additional context (item id, action kind)

        Returns:
            ActionError with classification
        """
        context = context or {}

        if isinstance(exception, ActionRejectedError):
            return self._handle_rejection(exception, context)
        if isinstance(exception, DataIntegrityError):
            return self._build(ActionErrorType.INTEGRITY_ERROR, exception, code=exception.code)
        if isinstance(exception, FitChallengeError):
            return self._build(ActionErrorType.VALIDATION_FAILED, exception, code=exception.code)
        if isinstance(exception, AuthenticationRequiredError):
            return self._build(ActionErrorType.AUTH_REQUIRED, exception)

        # HTTP client exceptions
        if isinstance(exception, httpx.TimeoutException):
            return self._build(ActionErrorType.TIMEOUT, exception)
        if isinstance(exception, httpx.TransportError):
            self.logger.warning("Sync server unreachable", error=str(exception)[:100], **context)
            return self._build(ActionErrorType.NETWORK_UNAVAILABLE, exception)
        if isinstance(exception, httpx.HTTPStatusError):
            return self._handle_http_status(exception, context)

        return self._handle_unknown_error(exception, context)

    def _handle_rejection(
        self,
        exception: ActionRejectedError,
        context: dict[str, Any],
    ) -> ActionError:
        """Handle a domain error body returned by the server."""
        if exception.code == DataIntegrityError.code:
            error_type = ActionErrorType.INTEGRITY_ERROR
            self.logger.error("Server reported data integrity failure", **context)
        elif exception.status_code == 403:
            error_type = ActionErrorType.FORBIDDEN
        elif exception.status_code == 404:
            error_type = ActionErrorType.NOT_FOUND
        elif exception.status_code >= 500:
            error_type = ActionErrorType.SERVER_ERROR
        else:
            error_type = ActionErrorType.VALIDATION_FAILED

        return self._build(error_type, exception, code=exception.code)

    def _handle_http_status(
        self,
        exception: httpx.HTTPStatusError,
        context: dict[str, Any],
    ) -> ActionError:
        """Handle HTTP status errors without a domain error body."""
        status_code = exception.response.status_code

        if status_code == 401:
            error_type = ActionErrorType.AUTH_REQUIRED
        elif status_code == 403:
            error_type = ActionErrorType.FORBIDDEN
        elif status_code == 404:
            error_type = ActionErrorType.NOT_FOUND
        elif status_code == 408:
            error_type = ActionErrorType.TIMEOUT
        elif status_code == 429:
            error_type = ActionErrorType.RATE_LIMITED
        elif status_code >= 500:
            error_type = ActionErrorType.SERVER_ERROR
        else:
            error_type = ActionErrorType.VALIDATION_FAILED

        self.logger.warning(
            "HTTP status error",
            status_code=status_code,
            error_type=error_type.value,
            **context,
        )
        return self._build(error_type, exception, message=f"HTTP {status_code}")

    def _handle_unknown_error(
        self,
        exception: Exception,
        context: dict[str, Any],
    ) -> ActionError:
        """Handle unexpected errors; assumed transient."""
        self.logger.exception(
            "Unexpected error executing queued action",
            error_type=type(exception).__name__,
            **context,
        )
        return self._build(
            ActionErrorType.INTERNAL_ERROR,
            exception,
            message=f"{type(exception).__name__}: {exception}",
        )

    def _build(
        self,
        error_type: ActionErrorType,
        exception: Exception,
        code: str | None = None,
        message: str | None = None,
    ) -> ActionError:
        return ActionError(
            error_type=error_type,
            message=sanitize_error_message(message or str(exception), self.max_message_length),
            is_transient=error_type in TRANSIENT_ERROR_TYPES,
            code=code,
            original_exception=exception,
        )
