"""JSON-file key/value store shared between the app and the widget task.

Layout: a single JSON object of string values, one file per preference
set (``<storage_path>/<prefs_name>.json``). Writes go to a uniquely named
temp file in the same directory and are published with ``os.replace()``,
so readers only ever see a complete old or a complete new file, even if
the writing process is killed mid-write.

Every operation runs under a cross-process ``ProcessLockManager`` on
``<file>.lock`` and re-reads the file; nothing is cached in memory.
"""

from __future__ import annotations

import json
import logging
import os
import random
import time
from collections.abc import Callable, Iterable, Mapping
from pathlib import Path

from mova_widget.core.errors import CorruptStoreError, StorageError
from mova_widget.core.process_lock import ProcessLockManager

logger = logging.getLogger(__name__)


class JsonFileStore:
    """Durable string key/value store backed by one JSON file.

    Implements ``KeyValueStoreProtocol``.
    """

    def __init__(self, path: Path, lock: ProcessLockManager | None = None) -> None:
        """Initialize the store.

        Args:
            path: Location of the JSON file. Parent directories are created
                on first write.
            lock: Cross-process lock guarding the file. Defaults to a lock
                on ``<path>.lock``.
        """
        self._path = path
        self._lock = lock or ProcessLockManager(path.with_name(path.name + ".lock"))

    @property
    def path(self) -> Path:
        return self._path

    @property
    def lock(self) -> ProcessLockManager:
        return self._lock

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._read().get(key)

    def get_many(self, keys: Iterable[str]) -> dict[str, str | None]:
        with self._lock:
            data = self._read()
        return {key: data.get(key) for key in keys}

    def set(self, key: str, value: str) -> None:
        self.set_many({key: value})

    def set_many(self, values: Mapping[str, str]) -> None:
        for key, value in values.items():
            if not isinstance(value, str):
                raise TypeError(
                    f"Store value for {key!r} must be a string, got {type(value).__name__}"
                )
        with self._lock:
            data = self._read()
            data.update(values)
            self._write(data)

    def remove(self, key: str) -> None:
        self.remove_many([key])

    def remove_many(self, keys: Iterable[str]) -> None:
        with self._lock:
            data = self._read()
            changed = False
            for key in keys:
                if key in data:
                    del data[key]
                    changed = True
            if changed:
                self._write(data)

    def update(self, key: str, fn: Callable[[str | None], str | None]) -> str | None:
        with self._lock:
            data = self._read()
            new_value = fn(data.get(key))
            if new_value is None:
                if key not in data:
                    return None
                del data[key]
            else:
                data[key] = new_value
            self._write(data)
            return new_value

    def snapshot(self) -> dict[str, str]:
        """Return a copy of every key/value pair."""
        with self._lock:
            return dict(self._read())

    # ------------------------------------------------------------------
    # File I/O (caller holds the lock)
    # ------------------------------------------------------------------

    def _read(self) -> dict[str, str]:
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as e:
            raise StorageError(f"Failed to read store {self._path.name}: {e}") from e

        if not raw.strip():
            return {}

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise CorruptStoreError(self._path, f"invalid JSON ({e.msg})") from e

        if not isinstance(data, dict):
            raise CorruptStoreError(self._path, f"expected an object, got {type(data).__name__}")

        result: dict[str, str] = {}
        for key, value in data.items():
            if isinstance(value, str):
                result[key] = value
            else:
                logger.warning("Ignoring non-string value for key %r in %s", key, self._path.name)
        return result

    def _write(self, data: dict[str, str]) -> None:
        tmp_path = self._path.with_name(f".{self._path.name}.{_make_suffix()}.tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False)
                f.flush()
                os.fsync(f.fileno())
            os.replace(str(tmp_path), str(self._path))
        except OSError as e:
            try:
                tmp_path.unlink(missing_ok=True)
            except OSError:
                logger.debug("Could not remove temp file %s", tmp_path.name)
            raise StorageError(f"Failed to write store {self._path.name}: {e}") from e


def _make_suffix() -> str:
    """Unique temp-file suffix: ``{time_ns}-{pid}-{random_hex}``."""
    return f"{time.time_ns()}-{os.getpid()}-{random.randbytes(4).hex()}"
