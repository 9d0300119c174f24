"""Configuration system for the Mova widget task pipeline."""

from pathlib import Path
from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Mova Widget Configuration."""

    # Storage
    storage_path: Path = Field(
        default=Path.home() / ".mova-widget",
        description="Directory holding the store shared by the app and the widget task",
    )
    prefs_name: str = Field(
        default="mova_widget_prefs",
        min_length=1,
        description="File stem of the shared key/value store",
    )

    # Retry policy
    max_retries: int = Field(
        default=3,
        ge=1,
        description="Counted submission attempts per call, also the re-drive cutoff",
    )
    backoff_base_seconds: float = Field(
        default=2.0,
        ge=0.0,
        description="Initial backoff between attempts (doubles each attempt)",
    )
    restart_wait_seconds: float = Field(
        default=10.0,
        ge=0.0,
        description="Wait after requesting a server restart",
    )

    # HTTP
    request_timeout_seconds: float = Field(
        default=15.0,
        gt=0.0,
        description="Timeout for a single HTTP request",
    )

    # Invocation budget
    task_budget_seconds: float | None = Field(
        default=None,
        gt=0.0,
        description="Wall-clock budget for one task invocation (None = unbounded)",
    )

    # Cross-process locking
    lock_enabled: bool = Field(
        default=True,
        description="Enable cross-process file locking around the shared store",
    )
    lock_timeout_seconds: float = Field(
        default=10.0,
        ge=0.0,
        description="Timeout for acquiring the store lock",
    )

    # Pending queue housekeeping
    exhausted_ttl_days: int = Field(
        default=7,
        ge=0,
        description="Age after which exhausted pending entries are evicted (0 = keep forever)",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )
    log_json: bool = Field(
        default=False,
        description="Emit JSON structured log lines",
    )

    model_config = {
        "env_prefix": "MOVA_WIDGET_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }

    @property
    def store_file(self) -> Path:
        """Path of the shared key/value store file."""
        return self.storage_path / f"{self.prefs_name}.json"

    @property
    def task_lock_file(self) -> Path:
        """Path of the lock serializing whole task invocations."""
        return self.storage_path / f"{self.prefs_name}.task.lock"


# Settings singleton with dependency injection support
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the settings instance (lazy-loaded singleton).

    Returns:
        The Settings instance.

    Example:
        from mova_widget.config import get_settings
        settings = get_settings()
        print(settings.storage_path)
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def override_settings(new_settings: Settings) -> None:
    """Override the settings instance (for testing).

    Args:
        new_settings: The new Settings instance to use.
    """
    global _settings
    _settings = new_settings


def reset_settings() -> None:
    """Reset settings to None (forces reload on next get_settings call)."""
    global _settings
    _settings = None


class _SettingsProxy:
    """Proxy object that resolves attributes against the current settings."""

    def __getattr__(self, name: str) -> Any:
        return getattr(get_settings(), name)

    def __repr__(self) -> str:
        return repr(get_settings())


settings = _SettingsProxy()
