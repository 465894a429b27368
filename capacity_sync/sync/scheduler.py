"""Debounce scheduler.

One cancellable asyncio task per key. Scheduling a key again cancels the
pending task, so a burst of edits ends in a single callback carrying the
last state.

A task removes itself from the map when its delay elapses, before the
callback runs: a write in flight is never cancelled by a later schedule.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from capacity_sync.config import Settings, get_settings

logger = logging.getLogger(__name__)

Callback = Callable[[], Awaitable[Any]]


@dataclass
class _Pending:
    task: asyncio.Task
    callback: Callback


class DebounceScheduler:
    """Keyed debounce timers backed by asyncio tasks."""

    def __init__(self, default_delay_ms: Optional[int] = None, settings: Optional[Settings] = None):
        settings = settings or get_settings()
        self.default_delay_ms = settings.debounce_delay_ms if default_delay_ms is None else default_delay_ms
        self._pending: dict[str, _Pending] = {}

    def schedule(self, key: str, callback: Callback, delay_ms: Optional[int] = None) -> asyncio.Task:
        """Run ``callback`` after the delay unless the key is scheduled again.

        Must be called from a running event loop.
        """
        delay = self.default_delay_ms if delay_ms is None else delay_ms
        self.cancel(key)

        task = asyncio.get_running_loop().create_task(self._run(key, callback, delay))
        task.add_done_callback(self._log_failure)
        self._pending[key] = _Pending(task=task, callback=callback)
        logger.debug(f"Scheduled {key} in {delay}ms")
        return task

    async def _run(self, key: str, callback: Callback, delay_ms: int) -> Any:
        await asyncio.sleep(delay_ms / 1000)
        pending = self._pending.get(key)
        if pending is not None and pending.task is asyncio.current_task():
            del self._pending[key]
        return await callback()

    def _log_failure(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(
                "Debounced callback failed",
                extra={"error": str(error), "error_type": type(error).__name__},
            )

    def cancel(self, key: str) -> bool:
        """Cancel a pending callback. Returns False if none was pending."""
        pending = self._pending.pop(key, None)
        if pending is None:
            return False
        pending.task.cancel()
        return True

    def is_pending(self, key: str) -> bool:
        return key in self._pending

    @property
    def pending_keys(self) -> list[str]:
        return list(self._pending)

    async def flush(self, key: str) -> Any:
        """Run a pending callback now instead of waiting for its delay.

        Returns:
            The callback result, or None if nothing was pending
        """
        pending = self._pending.pop(key, None)
        if pending is None:
            return None
        pending.task.cancel()
        return await pending.callback()

    def cancel_all(self) -> int:
        """Cancel every pending callback. Returns how many were cancelled."""
        keys = list(self._pending)
        for key in keys:
            self.cancel(key)
        return len(keys)
