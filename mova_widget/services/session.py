"""Main-app side of the shared store.

The app calls these on sign-in and sign-out so the widget task, which
cannot see the app's in-memory session, finds the current login.
"""

from __future__ import annotations

import logging

from mova_widget.services.credentials import CredentialStore
from mova_widget.services.pending_queue import PendingQueue

logger = logging.getLogger(__name__)


def save_credentials_for_widget(
    credentials: CredentialStore,
    server_url: str,
    username: str,
    password: str,
) -> None:
    """Publish the login to the widget after a successful sign-in.

    Raises:
        ValidationError: If any field is empty.
        StorageError: If the store cannot be written.
    """
    credentials.set(server_url, username, password)


def clear_widget_credentials(
    credentials: CredentialStore,
    queue: PendingQueue,
    discard_pending: bool = True,
) -> int:
    """Remove the login from the widget's view on sign-out.

    Pending submissions belong to the signed-out account, so they are
    dropped too unless ``discard_pending`` is False.

    Returns:
        Number of pending submissions discarded.

    Raises:
        StorageError: If the store cannot be written.
    """
    credentials.clear()
    if not discard_pending:
        return 0

    discarded = queue.count()
    queue.clear()
    if discarded:
        logger.warning("Discarded %d pending submission(s) on sign-out", discarded)
    return discarded
