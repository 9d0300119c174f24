"""Unit tests for PendingQueue.

Tests cover:
1. Enqueue - ordering, retryCount=0, unique timestamps, empty text
2. Reads - idempotent list_all, wire format, malformed items skipped
3. Mutations - remove / increment_retry by id, absent ids are no-ops
4. Durability - a queue rebuilt over the same file sees prior writes
5. Failure policy - corrupt queue reads empty but refuses mutation,
   malformed items survive every mutation
6. Eviction of exhausted entries
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from mova_widget.adapters.file_store import JsonFileStore
from mova_widget.core.errors import StorageError, ValidationError
from mova_widget.services.pending_queue import PENDING_TODOS_KEY, PendingQueue


class FixedClock:
    """Epoch-ms clock that only moves when told to."""

    def __init__(self, start: int = 1_700_000_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def queue(store: JsonFileStore, clock: FixedClock) -> PendingQueue:
    return PendingQueue(store, clock=clock)


# =============================================================================
# Enqueue
# =============================================================================


@pytest.mark.unit
class TestEnqueue:
    def test_enqueue_appends_in_order(self, queue: PendingQueue, clock: FixedClock) -> None:
        queue.enqueue("first")
        clock.now += 50
        queue.enqueue("second")

        texts = [entry.text for entry in queue.list_all()]
        assert texts == ["first", "second"]

    def test_new_entry_has_zero_retries(self, queue: PendingQueue, clock: FixedClock) -> None:
        entry = queue.enqueue("buy milk")
        assert entry.retry_count == 0
        assert entry.timestamp == clock.now
        assert queue.list_all() == [entry]

    def test_same_millisecond_gets_unique_ids(self, queue: PendingQueue) -> None:
        a = queue.enqueue("a")
        b = queue.enqueue("b")
        c = queue.enqueue("c")
        assert len({a.id, b.id, c.id}) == 3
        assert a.id < b.id < c.id

    def test_clock_going_backwards_keeps_ids_unique(
        self, queue: PendingQueue, clock: FixedClock
    ) -> None:
        a = queue.enqueue("a")
        clock.now -= 10_000
        b = queue.enqueue("b")
        assert b.id > a.id

    def test_empty_text_rejected(self, queue: PendingQueue) -> None:
        with pytest.raises(ValidationError):
            queue.enqueue("")
        assert queue.list_all() == []

    def test_wire_format(self, queue: PendingQueue, store: JsonFileStore, clock: FixedClock) -> None:
        queue.enqueue("buy milk")
        raw = json.loads(store.get(PENDING_TODOS_KEY))
        assert raw == [{"text": "buy milk", "timestamp": clock.now, "retryCount": 0}]


# =============================================================================
# Reads
# =============================================================================


@pytest.mark.unit
class TestReads:
    def test_empty_store_lists_nothing(self, queue: PendingQueue) -> None:
        assert queue.list_all() == []
        assert queue.count() == 0

    def test_list_all_is_idempotent(self, queue: PendingQueue) -> None:
        queue.enqueue("a")
        queue.enqueue("b")
        assert queue.list_all() == queue.list_all()

    def test_reads_entries_written_by_app(self, queue: PendingQueue, store: JsonFileStore) -> None:
        store.set(
            PENDING_TODOS_KEY,
            json.dumps([{"text": "from app", "timestamp": 42, "retryCount": 2}]),
        )
        [entry] = queue.list_all()
        assert entry.text == "from app"
        assert entry.id == 42
        assert entry.retry_count == 2

    def test_malformed_items_skipped(self, queue: PendingQueue, store: JsonFileStore) -> None:
        store.set(
            PENDING_TODOS_KEY,
            json.dumps(
                [
                    {"text": "good", "timestamp": 1, "retryCount": 0},
                    {"text": "", "timestamp": 2, "retryCount": 0},
                    {"timestamp": 3},
                    "not an object",
                ]
            ),
        )
        assert [e.text for e in queue.list_all()] == ["good"]

    def test_exhausted(self, queue: PendingQueue, store: JsonFileStore) -> None:
        store.set(
            PENDING_TODOS_KEY,
            json.dumps(
                [
                    {"text": "fresh", "timestamp": 1, "retryCount": 0},
                    {"text": "spent", "timestamp": 2, "retryCount": 3},
                ]
            ),
        )
        assert [e.text for e in queue.exhausted(3)] == ["spent"]


# =============================================================================
# Mutations
# =============================================================================


@pytest.mark.unit
class TestMutations:
    def test_remove_by_id(self, queue: PendingQueue, clock: FixedClock) -> None:
        a = queue.enqueue("a")
        clock.now += 1
        b = queue.enqueue("b")

        queue.remove(a.id)

        assert queue.list_all() == [b]

    def test_remove_absent_is_noop(self, queue: PendingQueue) -> None:
        entry = queue.enqueue("a")
        queue.remove(entry.id + 999)
        assert queue.list_all() == [entry]

    def test_remove_on_empty_store_does_not_write(
        self, queue: PendingQueue, store: JsonFileStore
    ) -> None:
        queue.remove(1)
        assert not store.path.exists()

    def test_increment_retry(self, queue: PendingQueue) -> None:
        entry = queue.enqueue("a")
        queue.increment_retry(entry.id)
        queue.increment_retry(entry.id)
        [updated] = queue.list_all()
        assert updated.retry_count == 2
        assert updated.text == "a"
        assert updated.id == entry.id

    def test_increment_only_touches_target(self, queue: PendingQueue) -> None:
        a = queue.enqueue("a")
        queue.enqueue("b")
        queue.increment_retry(a.id)
        assert [e.retry_count for e in queue.list_all()] == [1, 0]

    def test_increment_absent_is_noop(self, queue: PendingQueue) -> None:
        entry = queue.enqueue("a")
        queue.increment_retry(entry.id + 1)
        assert queue.list_all() == [entry]

    def test_clear(self, queue: PendingQueue, store: JsonFileStore) -> None:
        queue.enqueue("a")
        queue.clear()
        assert queue.list_all() == []
        assert store.get(PENDING_TODOS_KEY) is None


# =============================================================================
# Durability
# =============================================================================


@pytest.mark.unit
class TestDurability:
    def test_rebuilt_queue_sees_prior_writes(self, store_path: Path) -> None:
        """A new process reconstructs the store and queue from scratch."""
        first = PendingQueue(JsonFileStore(store_path))
        entry = first.enqueue("survives")
        first.increment_retry(entry.id)

        second = PendingQueue(JsonFileStore(store_path))
        [loaded] = second.list_all()
        assert loaded.text == "survives"
        assert loaded.retry_count == 1

    def test_queue_shares_store_with_other_keys(
        self, queue: PendingQueue, store: JsonFileStore
    ) -> None:
        store.set("mova_username", "alice")
        queue.enqueue("a")
        queue.clear()
        assert store.get("mova_username") == "alice"


# =============================================================================
# Failure policy
# =============================================================================


@pytest.mark.unit
class TestCorruptQueue:
    @pytest.fixture
    def corrupt(self, store: JsonFileStore) -> JsonFileStore:
        store.set(PENDING_TODOS_KEY, "{not json")
        return store

    def test_list_all_reads_empty(self, queue: PendingQueue, corrupt: JsonFileStore) -> None:
        assert queue.list_all() == []

    def test_enqueue_refuses_to_overwrite(
        self, queue: PendingQueue, corrupt: JsonFileStore
    ) -> None:
        with pytest.raises(StorageError):
            queue.enqueue("a")
        assert corrupt.get(PENDING_TODOS_KEY) == "{not json"

    def test_remove_refuses(self, queue: PendingQueue, corrupt: JsonFileStore) -> None:
        with pytest.raises(StorageError):
            queue.remove(1)

    def test_non_array_is_corrupt(self, queue: PendingQueue, store: JsonFileStore) -> None:
        store.set(PENDING_TODOS_KEY, json.dumps({"text": "a"}))
        assert queue.list_all() == []
        with pytest.raises(StorageError):
            queue.increment_retry(1)


@pytest.mark.unit
class TestMalformedItemsPreserved:
    BAD_TIMESTAMP = {"text": "bad", "timestamp": 1_700_000_000_001.5, "retryCount": 0}
    EMPTY_TEXT = {"text": "", "timestamp": 7, "retryCount": 0}

    @pytest.fixture
    def mixed(self, store: JsonFileStore) -> JsonFileStore:
        store.set(
            PENDING_TODOS_KEY,
            json.dumps(
                [
                    {"text": "keep me", "timestamp": 5, "retryCount": 1},
                    self.BAD_TIMESTAMP,
                    self.EMPTY_TEXT,
                ]
            ),
        )
        return store

    def stored(self, store: JsonFileStore) -> list:
        return json.loads(store.get(PENDING_TODOS_KEY))

    def test_enqueue_keeps_malformed_items(
        self, queue: PendingQueue, mixed: JsonFileStore, clock: FixedClock
    ) -> None:
        queue.enqueue("new")

        items = self.stored(mixed)
        assert items[1:3] == [self.BAD_TIMESTAMP, self.EMPTY_TEXT]
        assert [item["text"] for item in items] == ["keep me", "bad", "", "new"]
        assert items[3]["timestamp"] == clock.now

    def test_remove_keeps_malformed_items(self, queue: PendingQueue, mixed: JsonFileStore) -> None:
        queue.remove(5)
        assert self.stored(mixed) == [self.BAD_TIMESTAMP, self.EMPTY_TEXT]

    def test_increment_keeps_malformed_items(
        self, queue: PendingQueue, mixed: JsonFileStore
    ) -> None:
        queue.increment_retry(5)

        items = self.stored(mixed)
        assert items[0]["retryCount"] == 2
        assert items[1:] == [self.BAD_TIMESTAMP, self.EMPTY_TEXT]

    def test_eviction_never_drops_malformed_items(
        self, queue: PendingQueue, mixed: JsonFileStore
    ) -> None:
        queue.evict_exhausted(max_retries=1, older_than_ms=10**15)
        assert self.stored(mixed) == [self.BAD_TIMESTAMP, self.EMPTY_TEXT]

    def test_reads_still_skip_them(self, queue: PendingQueue, mixed: JsonFileStore) -> None:
        assert [e.text for e in queue.list_all()] == ["keep me"]


# =============================================================================
# Eviction
# =============================================================================


@pytest.mark.unit
class TestEvictExhausted:
    def test_evicts_only_old_exhausted_entries(
        self, queue: PendingQueue, store: JsonFileStore
    ) -> None:
        store.set(
            PENDING_TODOS_KEY,
            json.dumps(
                [
                    {"text": "old spent", "timestamp": 100, "retryCount": 3},
                    {"text": "new spent", "timestamp": 900, "retryCount": 3},
                    {"text": "old fresh", "timestamp": 101, "retryCount": 1},
                ]
            ),
        )

        evicted = queue.evict_exhausted(max_retries=3, older_than_ms=500)

        assert [e.text for e in evicted] == ["old spent"]
        assert [e.text for e in queue.list_all()] == ["new spent", "old fresh"]

    def test_nothing_to_evict(self, queue: PendingQueue) -> None:
        queue.enqueue("a")
        assert queue.evict_exhausted(max_retries=3, older_than_ms=10**15) == []
        assert queue.count() == 1
