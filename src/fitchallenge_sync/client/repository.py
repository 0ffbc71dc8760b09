"""Persistence for the offline action queue.

The queue only ever reads and writes its whole item list, so any storage
that supports atomic whole-value read/write will do.
"""

import os
import tempfile
from pathlib import Path
from typing import Protocol

import structlog
from pydantic import ValidationError

from fitchallenge_sync.client.actions import QueuedAction, queued_actions_adapter

logger = structlog.get_logger()


class QueueRepository(Protocol):
    """Storage contract for the action queue."""

    def load(self) -> list[QueuedAction]:
        """Return the persisted items in queue order."""
        ...

    def save(self, items: list[QueuedAction]) -> None:
        """Atomically replace the persisted items."""
        ...


class InMemoryQueueRepository:
    """Non-durable repository for tests and ephemeral clients."""

    def __init__(self, items: list[QueuedAction] | None = None) -> None:
        self._items = [item.model_copy() for item in items or []]
        self.save_count = 0

    def load(self) -> list[QueuedAction]:
        return [item.model_copy() for item in self._items]

    def save(self, items: list[QueuedAction]) -> None:
        self._items = [item.model_copy() for item in items]
        self.save_count += 1


class JsonFileQueueRepository:
    """Queue stored as a JSON array in a single file.

    Writes go to a temporary file in the same directory which is fsynced and
    then renamed over the target, so a crash leaves either the old or the new
    queue, never a torn file.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path).expanduser()
        self.logger = logger.bind(component="queue_repository", path=str(self.path))

    def load(self) -> list[QueuedAction]:
        if not self.path.exists():
            return []

        try:
            return queued_actions_adapter.validate_json(self.path.read_bytes())
        except ValidationError as e:
            self.logger.error("Discarding unreadable offline queue", error_count=e.error_count())
            return []

    def save(self, items: list[QueuedAction]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = queued_actions_adapter.dump_json(items)

        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
