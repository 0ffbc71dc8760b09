"""Activity ingestion endpoint."""

from litestar import Response, Router, post
from litestar.status_codes import HTTP_200_OK, HTTP_201_CREATED
from sqlalchemy.ext.asyncio import AsyncSession

from fitchallenge_sync.core.auth import caller_dependency
from fitchallenge_sync.schemas.activity import (
    ActivityBatchRequest,
    ActivityBatchResponse,
    ActivityLogRequest,
    ActivityLogResponse,
    BatchItemErrorResponse,
)
from fitchallenge_sync.services.ingestion import ActivityEntry, IngestionService


@post("/challenges/{challenge_id:str}/activity")
async def log_activity(
    challenge_id: str,
    data: ActivityLogRequest,
    caller_id: str,
    session: AsyncSession,
) -> Response[ActivityLogResponse]:
    """Record activity for the caller in a challenge.

    Returns 201 when a new entry was recorded and 200 when the same
    idempotency key had already been applied.

    Example:
        POST /api/v1/challenges/<id>/activity
        {"activity_type": "steps", "value": 1200,
         "client_event_id": "0b6c4c1e-..."}
    """
    result = await IngestionService(session).log_activity(
        user_id=caller_id,
        challenge_id=challenge_id,
        activity_type=data.activity_type,
        value=data.value,
        recorded_at=data.recorded_at,
        source=data.source,
        client_event_id=data.client_event_id,
        source_external_id=data.source_external_id,
        unit=data.unit,
    )

    return Response(
        ActivityLogResponse(
            status=result.status,
            activity_id=result.activity_id,
            current_progress=result.current_progress,
            current_streak=result.current_streak,
        ),
        status_code=HTTP_201_CREATED if result.created else HTTP_200_OK,
    )


@post("/challenges/{challenge_id:str}/activity/batch", status_code=HTTP_200_OK)
async def log_activity_batch(
    challenge_id: str,
    data: ActivityBatchRequest,
    caller_id: str,
    session: AsyncSession,
) -> ActivityBatchResponse:
    """Import a batch of health-provider samples.

    Rejected samples are reported per item and do not fail the request.
    """
    result = await IngestionService(session).log_activity_batch(
        user_id=caller_id,
        challenge_id=challenge_id,
        entries=[
            ActivityEntry(
                activity_type=item.activity_type,
                value=item.value,
                recorded_at=item.recorded_at,
                source=item.source,
                client_event_id=item.client_event_id,
                source_external_id=item.source_external_id,
                unit=item.unit,
            )
            for item in data.activities
        ],
    )
    return ActivityBatchResponse(
        inserted=result.inserted,
        deduplicated=result.deduplicated,
        total_processed=result.total_processed,
        errors=[
            BatchItemErrorResponse(
                index=error.index,
                error=error.error,
                detail=error.detail,
                source_external_id=error.source_external_id,
                client_event_id=error.client_event_id,
            )
            for error in result.errors
        ],
        current_progress=result.current_progress,
    )


activity_router = Router(
    path="/",
    dependencies=caller_dependency,
    route_handlers=[log_activity, log_activity_batch],
)
