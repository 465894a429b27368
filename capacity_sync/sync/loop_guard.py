"""Loop guard for the update bus.

Keeps A -> B -> A propagation from running forever. An inbound event is
rejected when:

1. The subscriber published it itself
2. The subscriber is in the middle of its own write
3. An event from the same publisher was accepted for this subscriber less
   than the settle window ago

The window is heuristic: a rejected event only costs a missed refresh, the
next edit propagates normally. When pending writes are committed back to
back (``draining``), there is no next edit, so only self-published events
are rejected and convergence rests on handlers patching differing values
only.
"""
import asyncio
import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Iterator, Optional

from capacity_sync.config import Settings, get_settings
from capacity_sync.schemas.events import UpdateEvent

logger = logging.getLogger(__name__)


@dataclass
class SubscriberState:
    """Guard state of one subscriber."""

    updating_depth: int = 0
    last_accepted: dict[str, float] = field(default_factory=dict)

    @property
    def is_updating(self) -> bool:
        return self.updating_depth > 0


class LoopGuard:
    """Per-subscriber updating flags and per-publisher settle windows."""

    def __init__(
        self,
        window_ms: Optional[int] = None,
        release_ms: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
        settings: Optional[Settings] = None,
    ):
        """Initialize guard.

        Args:
            window_ms: Settle window between accepted events of one publisher
            release_ms: Delay before the updating flag is cleared after a write
            clock: Time source in seconds (injectable for tests)
            settings: Engine settings supplying the defaults
        """
        settings = settings or get_settings()
        self.window_ms = settings.loop_guard_window_ms if window_ms is None else window_ms
        self.release_ms = settings.updating_release_ms if release_ms is None else release_ms
        self._clock = clock
        self._states: dict[str, SubscriberState] = {}
        self._draining = 0

    @property
    def is_draining(self) -> bool:
        return self._draining > 0

    def state(self, subscriber_id: str) -> SubscriberState:
        state = self._states.get(subscriber_id)
        if state is None:
            state = self._states[subscriber_id] = SubscriberState()
        return state

    # -------------------------------------------------------------------------
    # Settle window
    # -------------------------------------------------------------------------

    def is_update_too_recent(
        self,
        subscriber_id: str,
        publisher_id: str,
        window_ms: Optional[int] = None,
    ) -> bool:
        """Check whether this publisher's last accepted event is inside the window."""
        window = self.window_ms if window_ms is None else window_ms
        last = self.state(subscriber_id).last_accepted.get(publisher_id)
        if last is None:
            return False
        return (self._clock() - last) * 1000 < window

    def mark_accepted(self, subscriber_id: str, publisher_id: str) -> None:
        self.state(subscriber_id).last_accepted[publisher_id] = self._clock()

    # -------------------------------------------------------------------------
    # Updating flag
    # -------------------------------------------------------------------------

    def is_updating(self, subscriber_id: str) -> bool:
        state = self._states.get(subscriber_id)
        return bool(state and state.is_updating)

    def begin_update(self, subscriber_id: str) -> None:
        """Mark a locally initiated write as in progress."""
        self.state(subscriber_id).updating_depth += 1

    def end_update(self, subscriber_id: str, delay_ms: Optional[int] = None) -> None:
        """Clear the updating flag, after ``release_ms`` when a loop is running.

        Echoes of the subscriber's own write arrive right after it, so the
        flag stays up a little longer than the write itself.
        """
        delay = self.release_ms if delay_ms is None else delay_ms
        state = self.state(subscriber_id)
        if delay <= 0 or self.is_draining:
            _release(state)
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            _release(state)
            return
        loop.call_later(delay / 1000, _release, state)

    @contextmanager
    def updating(self, subscriber_id: str, delay_ms: Optional[int] = None) -> Iterator[None]:
        """Hold the updating flag for the duration of a block."""
        self.begin_update(subscriber_id)
        try:
            yield
        finally:
            self.end_update(subscriber_id, delay_ms)

    # -------------------------------------------------------------------------
    # Decision
    # -------------------------------------------------------------------------

    def should_process(self, subscriber_id: str, event: UpdateEvent) -> bool:
        """Decide whether a subscriber acts on an event; stamps it when accepted."""
        if event.publisher_id == subscriber_id:
            logger.debug(f"Skipping self update for {subscriber_id}")
            return False
        if self.is_updating(subscriber_id):
            logger.debug(
                "Skipping update while subscriber is writing",
                extra={"subscriber_id": subscriber_id, "publisher_id": event.publisher_id},
            )
            return False
        if not self.is_draining and self.is_update_too_recent(subscriber_id, event.publisher_id):
            logger.debug(
                "Skipping update inside settle window",
                extra={"subscriber_id": subscriber_id, "publisher_id": event.publisher_id},
            )
            return False

        self.mark_accepted(subscriber_id, event.publisher_id)
        return True

    @contextmanager
    def draining(self) -> Iterator[None]:
        """Accept every event a subscriber did not publish itself.

        Updating flags held by earlier writes and all settle stamps are
        dropped on entry and on exit. Inside the block flags release as soon
        as a write returns and the settle window is not applied.
        """
        self._states.clear()
        self._draining += 1
        try:
            yield
        finally:
            self._draining -= 1
            self._states.clear()

    def forget(self, subscriber_id: str) -> None:
        """Drop all state of a subscriber.

        Pending releases keep a reference to the dropped state and no longer
        affect a subscriber registered again under the same id.
        """
        self._states.pop(subscriber_id, None)


def _release(state: SubscriberState) -> None:
    state.updating_depth = max(0, state.updating_depth - 1)
