"""Service layer for the Mova widget task pipeline."""

from mova_widget.services.credentials import CredentialStore
from mova_widget.services.pending_queue import PendingQueue
from mova_widget.services.retry import RetryOrchestrator, Sleeper
from mova_widget.services.session import clear_widget_credentials, save_credentials_for_widget

__all__ = [
    "CredentialStore",
    "PendingQueue",
    "RetryOrchestrator",
    "Sleeper",
    "clear_widget_credentials",
    "save_credentials_for_widget",
]
