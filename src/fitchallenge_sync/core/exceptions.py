"""Domain exceptions.

Every rejection the server can produce carries a stable ``code`` string. The
code travels over the wire in error bodies, so clients can tell a permanent
validation failure apart from a transient infrastructure problem without
parsing messages.

Validation (never retried):
    not_participant, challenge_not_active, recorded_at_out_of_bounds,
    client_event_id_required_for_manual,
    source_external_id_required_for_health_sync, invalid_value,
    invite_not_found, invalid_friend_request

Data integrity (fatal, logged loudly):
    data_integrity
"""


class FitChallengeError(Exception):
    """Base class for all domain errors."""

    code = "error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.code)
        self.message = message or self.code


class IngestionError(FitChallengeError):
    """Activity rejected by the ingestion transaction."""


class NotParticipantError(IngestionError):
    """Caller has no accepted participation in the challenge."""

    code = "not_participant"


class ChallengeNotActiveError(IngestionError):
    """Challenge is not currently accepting activity."""

    code = "challenge_not_active"

    def __init__(self, status: str) -> None:
        super().__init__(f"Challenge is {status}, not active")
        self.status = status


class RecordedAtOutOfBoundsError(IngestionError):
    """recorded_at falls outside [start_date, end_date) or too far in the future."""

    code = "recorded_at_out_of_bounds"


class DedupeKeyRequiredError(IngestionError):
    """The source requires an idempotency key that was not supplied."""

    def __init__(self, code: str, message: str) -> None:
        self.code = code
        super().__init__(message)


class InvalidValueError(IngestionError):
    """Activity value must be a positive integer."""

    code = "invalid_value"


class InviteNotFoundError(FitChallengeError):
    """No invite exists for the caller on this challenge."""

    code = "invite_not_found"


class InvalidFriendRequestError(FitChallengeError):
    """Friend request cannot be sent (e.g. to yourself)."""

    code = "invalid_friend_request"


class DataIntegrityError(FitChallengeError):
    """Derived state is missing or inconsistent.

    Never coerced to a default: the surrounding transaction is rolled back.
    """

    code = "data_integrity"
