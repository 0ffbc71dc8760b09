"""Durable offline action queue.

Buffers idempotent mutations so they survive disconnection and restarts,
then replays them against the server in FIFO order.

    enqueue()        append + persist, return id; never touches the network
    process_queue()  single-flight drain: one pass over the queue in order
    clear_queue()    drop everything (operator/debug escape hatch)

Per item, per pass:

    success / already applied   -> removed
    permanent error             -> removed, reported as failed
    transient error             -> retry_count += 1, stays in place
    transient, retries spent    -> removed, reported as failed

A failing item never stops the pass. Each resolution is applied to the live
queue and persisted straight away, so items enqueued during a drain are kept
and picked up by the next call.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime

import structlog

from fitchallenge_sync.client.actions import Action, QueuedAction
from fitchallenge_sync.client.errors import (
    ActionError,
    ActionErrorHandler,
    ActionErrorType,
    sanitize_error_message,
)
from fitchallenge_sync.client.executor import ActionExecutor
from fitchallenge_sync.client.repository import QueueRepository
from fitchallenge_sync.core.config import settings

logger = structlog.get_logger()


@dataclass(frozen=True)
class ProcessQueueResult:
    """Summary of one drain pass.

    Attributes:
        processed: Items attempted in this pass
        succeeded: Items that succeeded (including idempotent duplicates)
        failed: Items that failed, whether dropped or kept for retry
        remaining: Items still queued after the pass
    """

    processed: int
    succeeded: int
    failed: int
    remaining: int


@dataclass(frozen=True)
class FailedAction:
    """A queued action that will not be retried.

    Kept so the user can be told and re-enter the data if needed.
    """

    item: QueuedAction
    error_type: ActionErrorType
    message: str
    failed_at: datetime


FailureListener = Callable[[FailedAction], None]


class ActionQueue:
    """FIFO queue of pending idempotent actions with bounded retries.

    Attributes:
        repository: Persistence for queued items
        executor: Runs actions against the server
        max_retries: Attempts before a transiently failing item is dropped
    """

    def __init__(
        self,
        repository: QueueRepository,
        executor: ActionExecutor,
        max_retries: int | None = None,
        error_handler: ActionErrorHandler | None = None,
    ) -> None:
        """Initialize the queue, loading any persisted items.

        Args:
            repository: Queue persistence
            executor: Action executor
            max_retries: Retry cap (defaults to settings.queue_max_retries)
            error_handler: Classifier for execution errors
        """
        self.repository = repository
        self.executor = executor
        self.max_retries = max_retries or settings.queue_max_retries
        self.error_handler = error_handler or ActionErrorHandler(
            max_message_length=settings.queue_error_max_length
        )
        self.last_processed_at: datetime | None = None
        self._items: list[QueuedAction] = repository.load()
        self._processing = False
        self._failures: list[FailedAction] = []
        self._failure_listeners: list[FailureListener] = []
        self.logger = logger.bind(component="offline_queue")

    @property
    def items(self) -> list[QueuedAction]:
        """Snapshot of pending items in queue order."""
        return list(self._items)

    @property
    def pending_count(self) -> int:
        """Number of pending items."""
        return len(self._items)

    @property
    def is_processing(self) -> bool:
        """Whether a drain is running."""
        return self._processing

    @property
    def failures(self) -> list[FailedAction]:
        """Permanently failed actions not yet acknowledged by the user."""
        return list(self._failures)

    def acknowledge_failures(self) -> list[FailedAction]:
        """Return and clear the recorded permanent failures."""
        failures, self._failures = self._failures, []
        return failures

    def subscribe_failures(self, listener: FailureListener) -> Callable[[], None]:
        """Register a callback for permanent failures.

        Returns:
            Function that removes the listener
        """
        self._failure_listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._failure_listeners:
                self._failure_listeners.remove(listener)

        return unsubscribe

    def enqueue(self, action: Action) -> str:
        """Append an action and persist the queue.

        Returns:
            Id of the queued item
        """
        item = QueuedAction(action=action)
        self._items.append(item)
        self.repository.save(self._items)

        self.logger.info(
            "Action queued",
            kind=item.kind,
            item_id=item.id,
            queue_depth=len(self._items),
        )
        return item.id

    def remove(self, item_id: str) -> bool:
        """Remove a single item. Returns True if it was queued."""
        before = len(self._items)
        self._items = [item for item in self._items if item.id != item_id]
        if len(self._items) == before:
            return False
        self.repository.save(self._items)
        return True

    def clear_queue(self) -> int:
        """Drop all pending items.

        Returns:
            Number of items dropped
        """
        dropped = len(self._items)
        self._items = []
        self.last_processed_at = None
        self.repository.save(self._items)
        self.logger.warning("Offline queue cleared", dropped=dropped)
        return dropped

    async def process_queue(self) -> ProcessQueueResult:
        """Run one drain pass.

        Returns a no-op result if a drain is already running.
        """
        if self._processing:
            return ProcessQueueResult(0, 0, 0, remaining=len(self._items))
        if not self._items:
            return ProcessQueueResult(0, 0, 0, remaining=0)

        self._processing = True
        succeeded = 0
        failed = 0
        try:
            for item in list(self._items):
                # Dropped by clear_queue() or remove() while an earlier item ran
                if not self._is_pending(item.id):
                    continue
                if await self._process_item(item):
                    succeeded += 1
                else:
                    failed += 1
        finally:
            self._processing = False
            self.last_processed_at = datetime.now(UTC)

        result = ProcessQueueResult(
            processed=succeeded + failed,
            succeeded=succeeded,
            failed=failed,
            remaining=len(self._items),
        )
        self.logger.info(
            "Queue drain complete",
            processed=result.processed,
            succeeded=result.succeeded,
            failed=result.failed,
            remaining=result.remaining,
        )
        return result

    async def _process_item(self, item: QueuedAction) -> bool:
        """Attempt one item and apply the outcome. Returns True on success."""
        log = self.logger.bind(kind=item.kind, item_id=item.id)

        try:
            outcome = await self.executor.execute(item.action)
        except Exception as e:
            error = self.error_handler.classify(e, context={"kind": item.kind, "item_id": item.id})
            self._handle_failure(item, error)
            return False

        self.remove(item.id)
        log.info("Queued action processed", outcome=outcome.value)
        return True

    def _handle_failure(self, item: QueuedAction, error: ActionError) -> None:
        log = self.logger.bind(kind=item.kind, item_id=item.id)
        attempts = item.retry_count + 1

        if error.is_transient and attempts < self.max_retries:
            self._replace(
                item.model_copy(update={"retry_count": attempts, "last_error": error.message})
            )
            log.warning(
                "Queued action will be retried",
                attempt=attempts,
                max_retries=self.max_retries,
                error_type=error.error_type.value,
            )
            return

        self.remove(item.id)
        if error.is_transient:
            log.error(
                "Queued action failed permanently after retries",
                max_retries=self.max_retries,
                error=sanitize_error_message(error.message, 100),
            )
        else:
            log.error(
                "Queued action rejected",
                error_type=error.error_type.value,
                code=error.code,
                error=sanitize_error_message(error.message, 100),
            )

        failure = FailedAction(
            item=item.model_copy(update={"retry_count": attempts, "last_error": error.message}),
            error_type=error.error_type,
            message=error.message,
            failed_at=datetime.now(UTC),
        )
        self._failures.append(failure)
        self._notify_failure(failure)

    def _is_pending(self, item_id: str) -> bool:
        return any(item.id == item_id for item in self._items)

    def _replace(self, updated: QueuedAction) -> None:
        self._items = [updated if item.id == updated.id else item for item in self._items]
        self.repository.save(self._items)

    def _notify_failure(self, failure: FailedAction) -> None:
        for listener in list(self._failure_listeners):
            try:
                listener(failure)
            except Exception:
                self.logger.exception("Failure listener raised", item_id=failure.item.id)
