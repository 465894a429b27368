"""Tests for the debounce scheduler."""
import asyncio
import logging

import pytest

from capacity_sync.sync.scheduler import DebounceScheduler


@pytest.fixture
def scheduler(settings):
    return DebounceScheduler(default_delay_ms=10, settings=settings)


def recorder(calls, value):
    async def _callback():
        calls.append(value)
        return value

    return _callback


class TestSchedule:
    """Tests for debounced scheduling."""

    def test_default_delay_from_settings(self, settings):
        """The default delay comes from the settings."""
        assert DebounceScheduler(settings=settings).default_delay_ms == 0

    @pytest.mark.asyncio
    async def test_burst_runs_last_callback_once(self, scheduler):
        """Rescheduling a key replaces the pending callback."""
        calls = []
        for value in ["a", "b", "c"]:
            scheduler.schedule("member-1", recorder(calls, value))

        await asyncio.sleep(0.05)

        assert calls == ["c"]
        assert not scheduler.is_pending("member-1")

    @pytest.mark.asyncio
    async def test_keys_are_independent(self, scheduler):
        """Different keys do not cancel each other."""
        calls = []
        scheduler.schedule("a", recorder(calls, "a"))
        scheduler.schedule("b", recorder(calls, "b"))

        await asyncio.sleep(0.05)

        assert sorted(calls) == ["a", "b"]

    @pytest.mark.asyncio
    async def test_in_flight_callback_not_cancelled(self, scheduler):
        """A callback that already started survives a new schedule of its key."""
        calls = []
        started = asyncio.Event()
        release = asyncio.Event()

        async def slow():
            started.set()
            await release.wait()
            calls.append("first")

        scheduler.schedule("member-1", slow, delay_ms=0)
        await started.wait()

        scheduler.schedule("member-1", recorder(calls, "second"), delay_ms=0)
        release.set()
        await asyncio.sleep(0.02)

        assert sorted(calls) == ["first", "second"]

    @pytest.mark.asyncio
    async def test_failure_is_logged(self, scheduler, caplog):
        """A failing callback is logged, not raised."""

        async def boom():
            raise RuntimeError("store down")

        with caplog.at_level(logging.ERROR, logger="capacity_sync.sync.scheduler"):
            scheduler.schedule("member-1", boom, delay_ms=0)
            await asyncio.sleep(0.02)

        assert "Debounced callback failed" in caplog.text


class TestCancelAndFlush:
    """Tests for cancel and flush."""

    @pytest.mark.asyncio
    async def test_cancel(self, scheduler):
        """Cancelled callbacks never run."""
        calls = []
        scheduler.schedule("member-1", recorder(calls, "a"))

        assert scheduler.cancel("member-1") is True
        assert scheduler.cancel("member-1") is False
        await asyncio.sleep(0.05)

        assert calls == []

    @pytest.mark.asyncio
    async def test_flush_runs_now(self, scheduler):
        """Flushing runs the callback without waiting for its delay."""
        calls = []
        scheduler.schedule("member-1", recorder(calls, "a"), delay_ms=10_000)

        result = await scheduler.flush("member-1")

        assert result == "a"
        assert calls == ["a"]
        assert scheduler.pending_keys == []

    @pytest.mark.asyncio
    async def test_flush_nothing_pending(self, scheduler):
        """Flushing an unknown key returns None."""
        assert await scheduler.flush("member-1") is None

    @pytest.mark.asyncio
    async def test_cancel_all(self, scheduler):
        """Every pending callback is cancelled."""
        calls = []
        scheduler.schedule("a", recorder(calls, "a"), delay_ms=10_000)
        scheduler.schedule("b", recorder(calls, "b"), delay_ms=10_000)

        assert scheduler.cancel_all() == 2
        assert scheduler.pending_keys == []
