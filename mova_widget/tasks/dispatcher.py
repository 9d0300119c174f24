"""Widget task dispatcher: the function the host calls.

The host OS runs this in a short-lived process whenever the
quick-capture widget submits text (``SUBMIT_TODO``) or decides to re-drive
queued work (``RETRY_PENDING``). Any other action name is answered with
``unknown_action`` and has no side effects.

Nothing escapes ``handle()``: every path returns a ``TaskResult``. Errors
are classified into a status rather than raised, so the widget can pick
what to render from ``TaskResult.status`` alone.

Durability rule for ``SUBMIT_TODO``: the text is written to the pending
queue *before* the first network call and removed only after the server
confirmed it, so the host killing the process during a backoff never
loses a submission. It can at worst be delivered twice.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from mova_widget.core.errors import FileLockError, StorageError
from mova_widget.core.models import (
    Credentials,
    PendingSubmission,
    TaskResult,
    TaskStatus,
    WidgetDisplayState,
    WidgetInfo,
)
from mova_widget.core.process_lock import ProcessLockManager
from mova_widget.core.tracing import invocation_context
from mova_widget.core.utils import now_ms
from mova_widget.services.credentials import CredentialStore
from mova_widget.services.pending_queue import PendingQueue
from mova_widget.services.retry import RetryOrchestrator

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

SUBMIT_TODO = "SUBMIT_TODO"
RETRY_PENDING = "RETRY_PENDING"

NO_AUTH_MESSAGE = "Please log in to the Mova app first"
BUSY_ERROR = "busy"
STORAGE_ERROR = "storage_error"
INTERNAL_ERROR = "internal_error"

MS_PER_DAY = 86_400_000

KNOWN_WIDGETS = frozenset({"QuickCaptureWidget"})

_DISPLAY_STATES: dict[TaskStatus, WidgetDisplayState] = {
    TaskStatus.SUCCESS: WidgetDisplayState.SUCCESS,
    TaskStatus.QUEUED: WidgetDisplayState.OFFLINE,
    TaskStatus.NO_AUTH: WidgetDisplayState.ERROR,
    TaskStatus.ERROR: WidgetDisplayState.ERROR,
}


class WidgetTaskDispatcher:
    """Maps host actions onto the credential store, queue and orchestrator.

    Holds no state between invocations. ``orchestrator_factory`` is called
    once per ``handle()`` so each invocation gets a fresh wall-clock budget.
    """

    def __init__(
        self,
        credentials: CredentialStore,
        queue: PendingQueue,
        orchestrator_factory: Callable[[], RetryOrchestrator],
        *,
        max_retries: int = 3,
        exhausted_ttl_days: int = 0,
        task_lock: ProcessLockManager | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            credentials: Shared credential store (read-only here).
            queue: Shared pending queue.
            orchestrator_factory: Builds the retry orchestrator for one invocation.
            max_retries: Entries with this many failed replays are skipped.
            exhausted_ttl_days: Evict skipped entries older than this (0 = never).
            task_lock: Cross-process lock serializing whole invocations.
            clock: Epoch-millisecond clock used for eviction cutoffs.
        """
        self._credentials = credentials
        self._queue = queue
        self._orchestrator_factory = orchestrator_factory
        self._max_retries = max_retries
        self._exhausted_ttl_days = exhausted_ttl_days
        self._task_lock = task_lock
        self._clock = clock
        self._handlers: dict[str, Callable[[Mapping[str, Any]], TaskResult]] = {
            SUBMIT_TODO: self._handle_submit,
            RETRY_PENDING: self._handle_retry_pending,
        }

    # ------------------------------------------------------------------
    # Primary entry point
    # ------------------------------------------------------------------

    def handle(
        self,
        action: str | None,
        payload: Mapping[str, Any] | None = None,
        host_info: WidgetInfo | None = None,
    ) -> TaskResult:
        """Run one host invocation.

        Args:
            action: Action name from the host.
            payload: Action data; ``SUBMIT_TODO`` needs a non-empty ``text``.
            host_info: Widget instance that triggered the task.

        Returns:
            The classified result. Never raises.
        """
        widget_id = host_info.widget_id if host_info else None
        with invocation_context(str(action), widget_id=widget_id) as ctx:
            try:
                handler = self._handlers.get(action) if isinstance(action, str) else None
                if handler is None:
                    logger.info("Ignoring unknown action %r", action)
                    return TaskResult(TaskStatus.UNKNOWN_ACTION)
                result = handler(payload or {})
            except Exception:
                logger.exception("Widget task %s failed unexpectedly", action)
                return TaskResult(TaskStatus.ERROR, error=INTERNAL_ERROR)

            logger.info(
                "Widget task %s finished with %s in %.0fms",
                ctx.action,
                result.status.value,
                ctx.elapsed_ms(),
            )
            return result

    # ------------------------------------------------------------------
    # SUBMIT_TODO
    # ------------------------------------------------------------------

    def _handle_submit(self, payload: Mapping[str, Any]) -> TaskResult:
        text = payload.get("text")
        if not isinstance(text, str) or not text:
            logger.info("SUBMIT_TODO without text, treating as unknown action")
            return TaskResult(TaskStatus.UNKNOWN_ACTION)

        try:
            self._acquire_task_lock(blocking=True)
        except FileLockError as e:
            logger.warning("Another widget task is running (%s), queueing submission", e)
            return self._queue_after_failure(text, BUSY_ERROR)

        try:
            return self._submit_locked(text)
        finally:
            self._release_task_lock()

    def _submit_locked(self, text: str) -> TaskResult:
        credentials = self._credentials.get()
        if not credentials.is_complete:
            logger.info("No widget credentials, queueing submission for later")
            try:
                self._queue.enqueue(text)
            except StorageError as e:
                logger.error("Could not queue unauthenticated submission: %s", e)
                return TaskResult(TaskStatus.NO_AUTH, message=NO_AUTH_MESSAGE, error=STORAGE_ERROR)
            return TaskResult(TaskStatus.NO_AUTH, message=NO_AUTH_MESSAGE)

        journal = self._write_ahead(text)
        orchestrator = self._orchestrator_factory()
        result = orchestrator.submit_with_retry(credentials, text)

        if not result.success:
            if journal is not None:
                return TaskResult(TaskStatus.QUEUED, error=result.error)
            return self._queue_after_failure(text, result.error)

        delivered_ids: set[int] = set()
        if journal is not None:
            try:
                self._queue.remove(journal.id)
            except StorageError as e:
                # The entry stays queued and will be delivered again on a later re-drive.
                logger.error("Delivered submission %d could not be dequeued: %s", journal.id, e)
                delivered_ids.add(journal.id)

        try:
            self._drain(orchestrator, credentials, skip_ids=delivered_ids)
            self._evict_expired()
        except Exception:
            logger.exception("Catch-up re-drive after successful submission failed")
        return TaskResult(TaskStatus.SUCCESS)

    def _write_ahead(self, text: str) -> PendingSubmission | None:
        try:
            return self._queue.enqueue(text)
        except StorageError as e:
            logger.error("Could not journal submission before sending: %s", e)
            return None

    def _queue_after_failure(self, text: str, error: str | None) -> TaskResult:
        try:
            self._queue.enqueue(text)
        except StorageError as e:
            logger.error("Submission lost, pending queue unwritable: %s", e)
            return TaskResult(TaskStatus.ERROR, error=STORAGE_ERROR)
        return TaskResult(TaskStatus.QUEUED, error=error)

    # ------------------------------------------------------------------
    # RETRY_PENDING
    # ------------------------------------------------------------------

    def _handle_retry_pending(self, payload: Mapping[str, Any]) -> TaskResult:
        if not self._acquire_task_lock(blocking=False):
            logger.info("Another widget task holds the queue, skipping re-drive")
            return TaskResult(TaskStatus.RETRY_COMPLETE)

        try:
            credentials = self._credentials.get()
            if credentials.is_complete:
                self._drain(self._orchestrator_factory(), credentials)
            else:
                logger.info("No widget credentials, skipping re-drive")
            self._evict_expired()
        finally:
            self._release_task_lock()
        return TaskResult(TaskStatus.RETRY_COMPLETE)

    def _drain(
        self,
        orchestrator: RetryOrchestrator,
        credentials: Credentials,
        skip_ids: set[int] | None = None,
    ) -> None:
        """Replay every non-exhausted entry once, in queue order.

        Entries whose id is in ``skip_ids`` were already delivered during
        this invocation and are left alone.
        """
        replayed = delivered = 0
        for entry in self._queue.list_all():
            if entry.is_exhausted(self._max_retries) or (skip_ids and entry.id in skip_ids):
                continue
            sleeper = orchestrator.sleeper
            if sleeper.cancelled or sleeper.remaining() == 0.0:
                logger.warning("Invocation budget spent, leaving remaining entries for later")
                break

            replayed += 1
            result = orchestrator.submit_with_retry(credentials, entry.text)
            try:
                if result.success:
                    self._queue.remove(entry.id)
                    delivered += 1
                else:
                    self._queue.increment_retry(entry.id)
            except StorageError as e:
                logger.error("Could not update pending submission %d: %s", entry.id, e)

        if replayed:
            logger.info("Re-drive delivered %d of %d pending submission(s)", delivered, replayed)

    def _evict_expired(self) -> None:
        if self._exhausted_ttl_days <= 0:
            return
        cutoff = self._clock() - self._exhausted_ttl_days * MS_PER_DAY
        try:
            self._queue.evict_exhausted(self._max_retries, cutoff)
        except StorageError as e:
            logger.error("Could not evict exhausted pending submissions: %s", e)

    # ------------------------------------------------------------------
    # Task lock
    # ------------------------------------------------------------------

    def _acquire_task_lock(self, blocking: bool) -> bool:
        if self._task_lock is None:
            return True
        if blocking:
            self._task_lock.acquire()
            return True
        return self._task_lock.try_acquire()

    def _release_task_lock(self) -> None:
        if self._task_lock is not None:
            self._task_lock.release()


# ---------------------------------------------------------------------------
# Host entry point
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WidgetRender:
    """What the host should draw for a widget after an invocation."""

    widget_name: str
    state: WidgetDisplayState
    result: TaskResult | None = None
    message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"widget": self.widget_name, "state": self.state.value}
        if self.result is not None:
            data["result"] = self.result.to_dict()
        if self.message is not None:
            data["message"] = self.message
        return data


def display_state_for(status: TaskStatus) -> WidgetDisplayState:
    """Widget state for a task status; statuses without a visual are idle."""
    return _DISPLAY_STATES.get(status, WidgetDisplayState.IDLE)


def widget_task_entry(
    dispatcher: WidgetTaskDispatcher,
    widget_info: WidgetInfo,
    action: str | None,
    payload: Mapping[str, Any] | None = None,
) -> WidgetRender:
    """Host-facing wrapper: dispatch a click action and choose a render.

    Without an action the widget is simply re-rendered idle. Unknown widget
    names render an error and dispatch nothing.
    """
    if widget_info.widget_name not in KNOWN_WIDGETS:
        logger.warning("Unknown widget %r", widget_info.widget_name)
        return WidgetRender(
            widget_name=widget_info.widget_name,
            state=WidgetDisplayState.ERROR,
            message=f"Unknown: {widget_info.widget_name}",
        )

    if not action:
        return WidgetRender(widget_name=widget_info.widget_name, state=WidgetDisplayState.IDLE)

    result = dispatcher.handle(action, payload, widget_info)
    return WidgetRender(
        widget_name=widget_info.widget_name,
        state=display_state_for(result.status),
        result=result,
        message=result.message,
    )
