"""Protocol interface for the durable cross-process key/value store.

The main app and the widget task run in different processes and share
nothing in memory. Both sides talk to the store only through this
contract; implementations must not cache values between calls.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from typing import Protocol


class KeyValueStoreProtocol(Protocol):
    """Protocol for a persistent string key/value store."""

    def get(self, key: str) -> str | None:
        """Read a value.

        Returns:
            The stored string, or None if the key is absent.

        Raises:
            StorageError: If the store cannot be read.
        """
        ...

    def get_many(self, keys: Iterable[str]) -> dict[str, str | None]:
        """Read several keys from one consistent snapshot.

        Raises:
            StorageError: If the store cannot be read.
        """
        ...

    def set(self, key: str, value: str) -> None:
        """Write a value, replacing any previous one.

        Raises:
            StorageError: If the store cannot be written.
        """
        ...

    def set_many(self, values: Mapping[str, str]) -> None:
        """Write several keys in one atomic write.

        Raises:
            StorageError: If the store cannot be written.
        """
        ...

    def remove(self, key: str) -> None:
        """Delete a key. No-op if absent.

        Raises:
            StorageError: If the store cannot be written.
        """
        ...

    def remove_many(self, keys: Iterable[str]) -> None:
        """Delete several keys in one atomic write.

        Raises:
            StorageError: If the store cannot be written.
        """
        ...

    def update(self, key: str, fn: Callable[[str | None], str | None]) -> str | None:
        """Atomically read-modify-write one key.

        ``fn`` receives the current value (or None) and returns the new
        value; returning None deletes the key. Other writers are excluded
        for the duration of the call.

        Returns:
            The value written (or None if deleted).

        Raises:
            StorageError: If the store cannot be read or written.
        """
        ...
