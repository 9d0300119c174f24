"""Mova Widget - offline-resilient quick capture for the Mova todo app."""

__version__ = "0.1.0"

from mova_widget.config import Settings, get_settings
from mova_widget.core import (
    Credentials,
    MovaWidgetError,
    PendingSubmission,
    StorageError,
    TaskResult,
    TaskStatus,
    ValidationError,
)

__all__ = [
    # Version info
    "__version__",
    # Configuration
    "Settings",
    "get_settings",
    # Errors
    "MovaWidgetError",
    "StorageError",
    "ValidationError",
    # Models
    "Credentials",
    "PendingSubmission",
    "TaskResult",
    "TaskStatus",
]
