"""Throttled refreshes for live change events.

A live change feed can deliver a burst of events (five friends logging
activity in the same minute). Refreshes are debounced per query key on the
trailing edge: a burst of N ``notify(key)`` calls yields one refresh,
``delay`` seconds after the last call. Keys are independent.

The change feed is a hint, never the source of truth; callbacks should
re-fetch rather than apply event payloads.
"""

import asyncio
import inspect
from collections.abc import Callable, Hashable
from typing import Any

import structlog

from fitchallenge_sync.core.config import settings

logger = structlog.get_logger()

RefreshCallback = Callable[[Hashable], Any]


def normalize_key(key: Any) -> Hashable:
    """Turn a query key into a hashable value.

    Lists (and nested lists) become tuples so ``["leaderboard", "x"]`` and
    ``("leaderboard", "x")`` address the same key.
    """
    if isinstance(key, list | tuple):
        return tuple(normalize_key(part) for part in key)
    return key


class ChangeThrottle:
    """Per-key trailing-edge debounce of refresh callbacks.

    Attributes:
        delay: Quiet period in seconds after the last notify before refreshing
    """

    def __init__(
        self,
        delay: float | None = None,
        invalidate: RefreshCallback | None = None,
    ) -> None:
        """Initialize throttle.

        Args:
            delay: Debounce delay in seconds (defaults to settings.throttle_delay_ms)
            invalidate: Optional callback invoked for every key that fires
        """
        self.delay = settings.throttle_delay_seconds if delay is None else delay
        self.invalidate = invalidate
        self._pending: dict[Hashable, asyncio.TimerHandle] = {}
        self._subscribers: dict[Hashable, list[RefreshCallback]] = {}
        self._tasks: set[asyncio.Task[Any]] = set()
        self.logger = logger.bind(component="change_throttle")

    @property
    def pending_keys(self) -> list[Hashable]:
        """Keys with a scheduled refresh."""
        return list(self._pending)

    def on_change(self, key: Any, callback: RefreshCallback) -> Callable[[], None]:
        """Subscribe a refresh callback to a query key.

        Returns:
            Function that removes the subscription
        """
        key = normalize_key(key)
        self._subscribers.setdefault(key, []).append(callback)

        def unsubscribe() -> None:
            callbacks = self._subscribers.get(key)
            if callbacks and callback in callbacks:
                callbacks.remove(callback)
                if not callbacks:
                    del self._subscribers[key]

        return unsubscribe

    def notify(self, key: Any) -> None:
        """Schedule a refresh for key, restarting its timer if one is pending."""
        key = normalize_key(key)
        existing = self._pending.pop(key, None)
        if existing is not None:
            existing.cancel()

        loop = asyncio.get_running_loop()
        self._pending[key] = loop.call_later(self.delay, self._fire, key)

    def cancel(self, key: Any) -> bool:
        """Cancel a pending refresh. Returns True if one was pending."""
        handle = self._pending.pop(normalize_key(key), None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def cancel_all(self) -> None:
        """Cancel every pending refresh (session end)."""
        for handle in self._pending.values():
            handle.cancel()
        cancelled = len(self._pending)
        self._pending.clear()
        if cancelled:
            self.logger.debug("Pending refreshes cancelled", count=cancelled)

    def close(self) -> None:
        """Cancel pending refreshes and drop all subscriptions."""
        self.cancel_all()
        self._subscribers.clear()

    def _fire(self, key: Hashable) -> None:
        self._pending.pop(key, None)

        callbacks = list(self._subscribers.get(key, []))
        if self.invalidate is not None:
            callbacks.append(self.invalidate)

        for callback in callbacks:
            try:
                result = callback(key)
            except Exception:
                self.logger.exception("Refresh callback raised", key=str(key))
                continue
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._tasks.add(task)
                task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            self.logger.error("Refresh callback failed", error=str(task.exception()))
