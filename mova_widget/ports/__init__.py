"""Port interfaces for the Mova widget task pipeline."""

from mova_widget.ports.client import SubmissionClientProtocol
from mova_widget.ports.storage import KeyValueStoreProtocol

__all__ = [
    "KeyValueStoreProtocol",
    "SubmissionClientProtocol",
]
