"""Adapters binding the ports to concrete storage and HTTP."""

from mova_widget.adapters.file_store import JsonFileStore
from mova_widget.adapters.http_client import HttpSubmissionClient

__all__ = [
    "HttpSubmissionClient",
    "JsonFileStore",
]
