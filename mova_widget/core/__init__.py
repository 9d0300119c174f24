"""Core components for the Mova widget task pipeline."""

from mova_widget.core.errors import (
    CorruptStoreError,
    FileLockError,
    MovaWidgetError,
    StorageError,
    ValidationError,
)
from mova_widget.core.models import (
    Credentials,
    OutcomeKind,
    PendingSubmission,
    SubmissionOutcome,
    SubmitResult,
    TaskResult,
    TaskStatus,
    WidgetDisplayState,
    WidgetInfo,
)
from mova_widget.core.process_lock import ProcessLockManager
from mova_widget.core.retry_machine import RetryPhase, RetryPolicy, RetryState
from mova_widget.core.utils import normalize_server_url, now_ms, utc_now

__all__ = [
    # Errors
    "MovaWidgetError",
    "StorageError",
    "CorruptStoreError",
    "FileLockError",
    "ValidationError",
    # Models
    "Credentials",
    "PendingSubmission",
    "OutcomeKind",
    "SubmissionOutcome",
    "SubmitResult",
    "TaskStatus",
    "TaskResult",
    "WidgetDisplayState",
    "WidgetInfo",
    # Retry state machine
    "RetryPhase",
    "RetryPolicy",
    "RetryState",
    # Locking
    "ProcessLockManager",
    # Utilities
    "normalize_server_url",
    "now_ms",
    "utc_now",
]
