"""Tests for settings loading."""
import pytest
from pydantic import ValidationError

from capacity_sync.config import Settings


class TestSettings:
    """Tests for defaults and environment overrides."""

    def test_defaults(self):
        """Timing defaults match the documented values."""
        settings = Settings(_env_file=None)

        assert settings.debounce_delay_ms == 500
        assert settings.loop_guard_window_ms == 200
        assert settings.updating_release_ms == 100
        assert settings.explicit_save_entity_types == ["provider"]
        assert settings.unknown_member_capacity == 40

    def test_env_override(self, monkeypatch):
        """Prefixed environment variables override defaults."""
        monkeypatch.setenv("CAPACITY_SYNC_DEBOUNCE_DELAY_MS", "750")
        monkeypatch.setenv("CAPACITY_SYNC_EXPLICIT_SAVE_ENTITY_TYPES", '["provider", "option"]')

        settings = Settings(_env_file=None)

        assert settings.debounce_delay_ms == 750
        assert settings.explicit_save_entity_types == ["provider", "option"]

    def test_window_bounded(self):
        """The settle window is capped."""
        with pytest.raises(ValidationError):
            Settings(_env_file=None, loop_guard_window_ms=6000)
