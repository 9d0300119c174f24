"""Tests for configuration system."""

from pathlib import Path

import pytest

from mova_widget.config import (
    Settings,
    get_settings,
    override_settings,
    reset_settings,
    settings,
)


class TestSettings:
    """Tests for Settings class."""

    def test_default_values(self) -> None:
        """Test default configuration values."""
        s = Settings()
        assert s.prefs_name == "mova_widget_prefs"
        assert s.max_retries == 3
        assert s.backoff_base_seconds == 2.0
        assert s.restart_wait_seconds == 10.0
        assert s.task_budget_seconds is None
        assert s.exhausted_ttl_days == 7
        assert s.lock_enabled is True
        assert s.log_level == "INFO"

    def test_custom_values(self) -> None:
        """Test custom configuration values."""
        s = Settings(
            storage_path="/custom/path",
            max_retries=5,
            restart_wait_seconds=1.5,
        )
        # Use Path comparison to handle platform differences
        assert s.storage_path == Path("/custom/path")
        assert s.max_retries == 5
        assert s.restart_wait_seconds == 1.5

    def test_derived_paths(self) -> None:
        """Store and task lock live side by side under storage_path."""
        s = Settings(storage_path="/data", prefs_name="prefs")
        assert s.store_file == Path("/data") / "prefs.json"
        assert s.task_lock_file == Path("/data") / "prefs.task.lock"

    def test_bounds(self) -> None:
        """Invalid values are rejected."""
        with pytest.raises(ValueError):
            Settings(max_retries=0)

        with pytest.raises(ValueError):
            Settings(backoff_base_seconds=-1.0)

        with pytest.raises(ValueError):
            Settings(task_budget_seconds=0)

        with pytest.raises(ValueError):
            Settings(exhausted_ttl_days=-1)

    def test_env_prefix(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """MOVA_WIDGET_* environment variables override defaults."""
        monkeypatch.setenv("MOVA_WIDGET_MAX_RETRIES", "7")
        monkeypatch.setenv("MOVA_WIDGET_LOG_JSON", "true")
        s = Settings()
        assert s.max_retries == 7
        assert s.log_json is True


class TestSettingsInjection:
    """Tests for settings dependency injection."""

    def test_get_settings_returns_singleton(self) -> None:
        """Test that get_settings returns same instance."""
        reset_settings()
        try:
            assert get_settings() is get_settings()
        finally:
            reset_settings()

    def test_override_settings(self) -> None:
        """Test that override_settings replaces the singleton."""
        custom = Settings(max_retries=9)
        override_settings(custom)
        try:
            assert get_settings() is custom
            assert settings.max_retries == 9
        finally:
            reset_settings()

    def test_reset_settings(self) -> None:
        """Test that reset_settings forces a reload."""
        custom = Settings(max_retries=9)
        override_settings(custom)
        reset_settings()
        try:
            assert get_settings() is not custom
        finally:
            reset_settings()
