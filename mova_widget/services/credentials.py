"""Credential store shared between the main app and the widget task.

The main app writes the login wholesale on sign-in and clears it on
sign-out. The widget task only reads it, and cannot report errors to a
user, so ``get()`` fails safe to an empty login instead of raising.
"""

from __future__ import annotations

import logging

from mova_widget.core.errors import StorageError, ValidationError
from mova_widget.core.models import Credentials
from mova_widget.core.utils import normalize_server_url
from mova_widget.ports.storage import KeyValueStoreProtocol

logger = logging.getLogger(__name__)

API_URL_KEY = "mova_api_url"
USERNAME_KEY = "mova_username"
PASSWORD_KEY = "mova_password"

CREDENTIAL_KEYS = (API_URL_KEY, USERNAME_KEY, PASSWORD_KEY)


class CredentialStore:
    """Reads and writes the server login in the shared store."""

    def __init__(self, store: KeyValueStoreProtocol) -> None:
        self._store = store

    def get(self) -> Credentials:
        """Read the current login.

        Never raises. A storage failure, or a login with any field missing
        or empty, is returned as ``Credentials.empty()``.
        """
        try:
            values = self._store.get_many(CREDENTIAL_KEYS)
        except StorageError as e:
            logger.error("Failed to read widget credentials: %s", e)
            return Credentials.empty()
        except Exception as e:
            logger.error("Unexpected error reading widget credentials: %s", e)
            return Credentials.empty()

        credentials = Credentials(
            server_url=values.get(API_URL_KEY),
            username=values.get(USERNAME_KEY),
            password=values.get(PASSWORD_KEY),
        )
        if not credentials.is_complete:
            if any(values.values()):
                logger.warning("Ignoring partial widget credentials")
            return Credentials.empty()
        return credentials

    def set(self, server_url: str, username: str, password: str) -> None:
        """Store a complete login, replacing any previous one.

        Raises:
            ValidationError: If any field is empty.
            StorageError: If the store cannot be written.
        """
        server_url = normalize_server_url(server_url or "")
        if not server_url or not username or not password:
            raise ValidationError("server URL, username and password are all required")

        self._store.set_many(
            {API_URL_KEY: server_url, USERNAME_KEY: username, PASSWORD_KEY: password}
        )
        logger.info("Widget credentials saved for %s", server_url)

    def clear(self) -> None:
        """Remove the stored login.

        Raises:
            StorageError: If the store cannot be written.
        """
        self._store.remove_many(CREDENTIAL_KEYS)
        logger.info("Widget credentials cleared")
