"""Retry orchestration for a single submission.

Drives the pure state machine in ``core/retry_machine.py`` against a
``SubmissionClientProtocol``, performing the side effect each phase
calls for: a create-request in ATTEMPTING, a restart request on entry
to AWAITING_RESTART, and a wait in AWAITING_RESTART and BACKOFF.

Waits go through a ``Sleeper`` so they can be cancelled and bounded by
the host's wall-clock budget for the invocation. Nothing is kept between
calls; the orchestrator is safe to rebuild in every process.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable

from mova_widget.core.models import Credentials, SubmitResult
from mova_widget.core.retry_machine import (
    RestartBudget,
    RetryPhase,
    RetryPolicy,
    RetryState,
    abandon,
    after_wait,
    counted_attempts,
    initial_state,
    on_outcome,
)
from mova_widget.ports.client import SubmissionClientProtocol

logger = logging.getLogger(__name__)


class Sleeper:
    """Interruptible, deadline-aware waits.

    ``sleep()`` blocks on a ``threading.Event`` so another thread (or a
    signal handler) can cut it short with ``cancel()``. When a deadline is
    set, a wait that would end past it is refused up front rather than
    started, leaving the caller time to persist its state before the host
    kills the process.
    """

    def __init__(
        self,
        deadline: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the sleeper.

        Args:
            deadline: Absolute ``clock()`` value after which no wait may end.
            clock: Monotonic clock in seconds.
        """
        self._deadline = deadline
        self._clock = clock
        self._cancelled = threading.Event()

    @classmethod
    def with_budget(cls, budget_seconds: float | None) -> Sleeper:
        """Sleeper whose deadline is ``budget_seconds`` from now (None = unbounded)."""
        if budget_seconds is None:
            return cls()
        return cls(deadline=time.monotonic() + budget_seconds)

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def remaining(self) -> float | None:
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - self._clock())

    def cancel(self) -> None:
        self._cancelled.set()

    def sleep(self, seconds: float) -> bool:
        """Wait ``seconds``.

        Returns:
            True if the full wait elapsed; False if it was refused because
            of the deadline or interrupted by ``cancel()``.
        """
        if self._cancelled.is_set():
            return False
        remaining = self.remaining()
        if remaining is not None and seconds > remaining:
            logger.warning(
                "Wait of %.1fs exceeds remaining budget of %.1fs, giving up", seconds, remaining
            )
            return False
        if seconds <= 0:
            return True
        return not self._cancelled.wait(seconds)


class RetryOrchestrator:
    """Bounded, backoff-spaced submission of one text with at most one restart."""

    def __init__(
        self,
        client: SubmissionClientProtocol,
        policy: RetryPolicy | None = None,
        sleeper: Sleeper | None = None,
    ) -> None:
        self._client = client
        self._policy = policy or RetryPolicy()
        self._sleeper = sleeper or Sleeper()

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    @property
    def sleeper(self) -> Sleeper:
        return self._sleeper

    def submit_with_retry(self, credentials: Credentials, text: str) -> SubmitResult:
        """Deliver ``text`` to the server, retrying transient failures.

        Args:
            credentials: A complete login.
            text: Todo title to create.

        Returns:
            ``SubmitResult(success=True)`` on delivery; otherwise failure with
            ``"Authentication failed"`` or the last observed error code.
        """
        if not credentials.is_complete:
            raise ValueError("submit_with_retry requires complete credentials")

        state = initial_state()

        while not state.is_terminal:
            if state.phase is RetryPhase.ATTEMPTING:
                outcome = self._client.submit_once(
                    credentials.server_url, credentials.username, credentials.password, text
                )
                state = on_outcome(state, outcome, self._policy)
                if state.phase is RetryPhase.AWAITING_RESTART:
                    logger.info("Server unavailable, requesting restart")
                    self._request_restart(credentials)
                elif state.phase is RetryPhase.BACKOFF:
                    logger.info(
                        "Retry %d/%d in %.1fs (%s)",
                        state.attempt + 1,
                        self._policy.max_attempts,
                        state.delay,
                        state.last_error,
                    )
                continue

            if self._sleeper.sleep(state.delay):
                state = after_wait(state)
            else:
                state = abandon(state, "cancelled")

        return self._finish(state)

    def _request_restart(self, credentials: Credentials) -> None:
        # Result discarded: the restart wait and the retry run regardless of it.
        _ = self._client.request_restart(
            credentials.server_url, credentials.username, credentials.password
        )

    def _finish(self, state: RetryState) -> SubmitResult:
        restart_requested = state.restart is RestartBudget.SPENT
        if state.phase is RetryPhase.SUCCESS:
            logger.info("Submission delivered after %d request(s)", state.attempts_made)
            return SubmitResult(
                success=True,
                attempts=state.attempts_made,
                restart_requested=restart_requested,
            )

        logger.warning(
            "Submission failed after %d counted attempt(s): %s",
            counted_attempts(state),
            state.last_error,
        )
        return SubmitResult(
            success=False,
            error=state.last_error or "Unknown error",
            attempts=state.attempts_made,
            restart_requested=restart_requested,
        )
