"""Cross-process file lock shared by the app and the widget task.

Two locks exist per store: ``<prefs>.json.lock`` guards each single
read-modify-write of the store file, and ``<prefs>.task.lock`` keeps
whole widget-task invocations from overlapping. Both are
``ProcessLockManager`` instances over ``filelock``.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from types import TracebackType

from filelock import FileLock
from filelock import Timeout as FileLockTimeout

from mova_widget.core.errors import FileLockError

logger = logging.getLogger(__name__)


class ProcessLockManager:
    """OS-level lock on a file path, reentrant within one thread.

    A store operation that calls another store operation (``set`` going
    through ``set_many``) re-enters the lock instead of deadlocking on
    itself. Each thread keeps its own nesting count; only the outermost
    release unlocks the file.

    When ``enabled`` is False, or the lock file cannot be created (for
    example on a read-only mount), every method succeeds without locking.
    """

    def __init__(
        self,
        lock_path: Path,
        timeout: float = 10.0,
        poll_interval: float = 0.05,
        enabled: bool = True,
    ) -> None:
        """Set up the lock without taking it.

        Args:
            lock_path: Lock file location; its directory is created.
            timeout: Default seconds ``acquire()`` waits before giving up.
            poll_interval: Seconds between attempts while waiting.
            enabled: False turns the manager into a no-op.
        """
        self.lock_path = lock_path
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.enabled = enabled
        self._nesting = threading.local()
        self._lock: FileLock | None = None

        if enabled:
            try:
                lock_path.parent.mkdir(parents=True, exist_ok=True)
                self._lock = FileLock(str(lock_path), timeout=timeout)
            except Exception as e:
                logger.warning("Lock file %s unavailable (%s), running unlocked", lock_path.name, e)
                self.enabled = False

    def _get_depth(self) -> int:
        return getattr(self._nesting, "count", 0)

    def _set_depth(self, count: int) -> None:
        self._nesting.count = count

    def acquire(self, timeout: float | None = None) -> bool:
        """Take the lock, waiting up to ``timeout`` seconds.

        Args:
            timeout: Overrides the default wait; ``0`` tries exactly once.

        Returns:
            True when this call took the file lock (or locking is off),
            False when it only re-entered a lock this thread already had.

        Raises:
            FileLockError: If another process kept the lock past the wait.
        """
        lock = self._lock
        if not self.enabled or lock is None:
            return True

        depth = self._get_depth()
        if depth:
            self._set_depth(depth + 1)
            return False

        wait = self.timeout if timeout is None else timeout
        try:
            lock.acquire(timeout=wait, poll_interval=self.poll_interval)
        except FileLockTimeout as e:
            raise FileLockError(
                lock_path=str(self.lock_path),
                timeout=wait,
                message=f"{self.lock_path.name} still held by another process after {wait}s",
            ) from e
        self._set_depth(1)
        return True

    def try_acquire(self) -> bool:
        """Take the lock only if nobody else holds it right now."""
        try:
            self.acquire(timeout=0)
        except FileLockError:
            return False
        return True

    def release(self) -> bool:
        """Undo one ``acquire()``.

        Returns:
            True once the file lock is actually free (or was never held),
            False while outer ``acquire()`` calls in this thread remain.
        """
        lock = self._lock
        if not self.enabled or lock is None:
            return True

        depth = self._get_depth()
        if depth > 1:
            self._set_depth(depth - 1)
            return False
        if depth == 1:
            lock.release()
            self._set_depth(0)
        return True

    def __enter__(self) -> ProcessLockManager:
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.release()
