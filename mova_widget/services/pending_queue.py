"""Durable queue of submissions that have not reached the server yet.

The queue lives under one key of the shared store as a JSON array of
``{"text", "timestamp", "retryCount"}`` objects in arrival order. Each
operation below is a single atomic read-modify-write against the store;
there is no transaction spanning several operations.

Items that fail validation are skipped on read and written back unchanged
by every mutation, so nothing the app stored is lost to a widget write.

Read vs. write failure policy:
    - ``list_all`` fails safe: an unreadable or corrupt queue reads as empty.
    - Mutations raise ``StorageError`` instead, so a corrupt queue is
      reported rather than silently overwritten with a fresh one.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from mova_widget.core.errors import StorageError, ValidationError
from mova_widget.core.models import PendingSubmission
from mova_widget.core.utils import now_ms
from mova_widget.ports.storage import KeyValueStoreProtocol

logger = logging.getLogger(__name__)

PENDING_TODOS_KEY = "mova_pending_todos"


class PendingQueue:
    """Append-ordered queue of ``PendingSubmission`` entries keyed by timestamp."""

    def __init__(
        self,
        store: KeyValueStoreProtocol,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        """Initialize the queue.

        Args:
            store: Shared key/value store.
            clock: Returns the current time in epoch milliseconds.
        """
        self._store = store
        self._clock = clock

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_all(self) -> list[PendingSubmission]:
        """Snapshot of every entry in insertion order. Never raises."""
        try:
            return _decode(self._store.get(PENDING_TODOS_KEY))
        except StorageError as e:
            logger.error("Failed to read pending submissions: %s", e)
            return []

    def count(self) -> int:
        return len(self.list_all())

    def exhausted(self, max_retries: int) -> list[PendingSubmission]:
        """Entries that the re-drive routine no longer attempts."""
        return [entry for entry in self.list_all() if entry.is_exhausted(max_retries)]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def enqueue(self, text: str) -> PendingSubmission:
        """Append a new entry with ``retryCount = 0``.

        The timestamp is the current time in milliseconds, bumped past the
        newest existing entry if needed so identifiers stay unique.

        Returns:
            The stored entry.

        Raises:
            ValidationError: If ``text`` is empty.
            StorageError: If the queue cannot be read or written.
        """
        if not text:
            raise ValidationError("Cannot queue an empty submission")

        created: list[PendingSubmission] = []

        def _append(raw: str | None) -> str:
            items = _load(raw)
            timestamps = [entry.timestamp for _, entry in items if entry is not None]
            timestamp = self._clock()
            if timestamps:
                timestamp = max(timestamp, max(timestamps) + 1)
            entry = PendingSubmission(text=text, timestamp=timestamp, retry_count=0)
            created.append(entry)
            return _dump([*items, (entry.to_wire(), entry)])

        self._store.update(PENDING_TODOS_KEY, _append)
        logger.info("Queued pending submission %d", created[0].timestamp)
        return created[0]

    def remove(self, entry_id: int) -> None:
        """Delete the entry with this timestamp. No-op if absent.

        Raises:
            StorageError: If the queue cannot be read or written.
        """
        removed = False

        def _remove(raw: str | None) -> str | None:
            nonlocal removed
            items = _load(raw)
            kept = [(item, e) for item, e in items if e is None or e.timestamp != entry_id]
            removed = len(kept) != len(items)
            return _dump(kept) if raw is not None else None

        self._store.update(PENDING_TODOS_KEY, _remove)
        if removed:
            logger.info("Removed pending submission %d", entry_id)

    def increment_retry(self, entry_id: int) -> None:
        """Add one to the entry's ``retryCount``. No-op if absent.

        Raises:
            StorageError: If the queue cannot be read or written.
        """
        bumped: int | None = None

        def _bump(raw: str | None) -> str | None:
            nonlocal bumped
            updated: list[_Item] = []
            for item, e in _load(raw):
                if e is not None and e.timestamp == entry_id:
                    e = e.model_copy(update={"retry_count": e.retry_count + 1})
                    bumped = e.retry_count
                updated.append((item, e))
            return _dump(updated) if raw is not None else None

        self._store.update(PENDING_TODOS_KEY, _bump)
        if bumped is not None:
            logger.info("Pending submission %d now at retry %d", entry_id, bumped)

    def evict_exhausted(self, max_retries: int, older_than_ms: int) -> list[PendingSubmission]:
        """Drop exhausted entries enqueued before ``older_than_ms``.

        Returns:
            The evicted entries.

        Raises:
            StorageError: If the queue cannot be read or written.
        """
        evicted: list[PendingSubmission] = []

        def _evict(raw: str | None) -> str | None:
            kept: list[_Item] = []
            evicted.clear()
            for item, e in _load(raw):
                if e is not None and e.is_exhausted(max_retries) and e.timestamp < older_than_ms:
                    evicted.append(e)
                else:
                    kept.append((item, e))
            return _dump(kept) if raw is not None else None

        self._store.update(PENDING_TODOS_KEY, _evict)
        for e in evicted:
            logger.warning(
                "Evicted pending submission %d after %d failed retries",
                e.timestamp,
                e.retry_count,
            )
        return evicted

    def clear(self) -> None:
        """Remove the whole queue.

        Raises:
            StorageError: If the store cannot be written.
        """
        self._store.remove(PENDING_TODOS_KEY)
        logger.info("Pending submissions cleared")


# A stored item paired with its decoded entry, or None when it is malformed.
_Item = tuple[Any, PendingSubmission | None]


def _load(raw: str | None) -> list[_Item]:
    """Parse the stored JSON array, keeping malformed items as they are.

    Raises:
        StorageError: If the value is not a JSON array.
    """
    if raw is None or not raw.strip():
        return []
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise StorageError(f"Pending queue is not valid JSON: {e.msg}") from e
    if not isinstance(data, list):
        raise StorageError(f"Pending queue must be a JSON array, got {type(data).__name__}")

    items: list[_Item] = []
    for index, item in enumerate(data):
        try:
            items.append((item, PendingSubmission.model_validate(item)))
        except PydanticValidationError as e:
            logger.warning("Skipping malformed pending entry at index %d: %s", index, e)
            items.append((item, None))
    return items


def _decode(raw: str | None) -> list[PendingSubmission]:
    return [entry for _, entry in _load(raw) if entry is not None]


def _dump(items: list[_Item]) -> str:
    """Encode entries back to the wire form; malformed items are written unchanged."""
    return json.dumps(
        [entry.to_wire() if entry is not None else item for item, entry in items],
        ensure_ascii=False,
    )
