"""
Pytest configuration and fixtures.

Provides settings with zero delays, a controllable clock, the in-memory
store and a recording notifier.
"""

import pytest

from capacity_sync.config import Settings
from capacity_sync.notifications import RecordingNotifier
from capacity_sync.store import InMemoryGraphStore
from tests.factories import FakeClock


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def settings():
    """Settings with every delay and window at zero."""
    return Settings(
        _env_file=None,
        debounce_delay_ms=0,
        loop_guard_window_ms=0,
        updating_release_ms=0,
        explicit_save_delay_ms=0,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryGraphStore()


@pytest.fixture
def notifier():
    return RecordingNotifier()
