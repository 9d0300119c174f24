"""Protocol interface for the remote todo API."""

from __future__ import annotations

from typing import Protocol

from mova_widget.core.models import SubmissionOutcome


class SubmissionClientProtocol(Protocol):
    """One-shot calls against the remote todo server.

    Implementations never raise for HTTP or network problems; every
    outcome is classified into a ``SubmissionOutcome``.
    """

    def submit_once(
        self,
        server_url: str,
        username: str,
        password: str,
        text: str,
    ) -> SubmissionOutcome:
        """Issue exactly one create-request for ``text``."""
        ...

    def request_restart(self, server_url: str, username: str, password: str) -> bool:
        """Ask the server to restart itself. Best-effort.

        Returns:
            True if the server acknowledged with a 2xx, False otherwise.
        """
        ...
