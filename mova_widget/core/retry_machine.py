"""Retry state machine for a single submission.

Pure data and pure transition functions; no I/O, no sleeping. The
orchestrator in ``services/retry.py`` drives it and performs the side
effects each phase asks for.

Phases:
    ATTEMPTING       -> SUCCESS            (create succeeded)
    ATTEMPTING       -> FAILED             (auth failure, or last attempt failed)
    ATTEMPTING       -> AWAITING_RESTART   (server unavailable, restart budget available)
    ATTEMPTING       -> BACKOFF            (any other failure with attempts left)
    AWAITING_RESTART -> ATTEMPTING         (same attempt index)
    BACKOFF          -> ATTEMPTING         (next attempt index)
    AWAITING_RESTART | BACKOFF -> FAILED   (wait abandoned)

The restart budget is part of the state and only moves AVAILABLE -> SPENT,
on entry to AWAITING_RESTART. No transition produces AVAILABLE again, so a
second restart within one call is unreachable.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum

from mova_widget.core.models import OutcomeKind, SubmissionOutcome

AUTH_FAILED_MESSAGE = "Authentication failed"


class RetryPhase(Enum):
    """Where a submission is in its retry lifecycle."""

    ATTEMPTING = "attempting"
    AWAITING_RESTART = "awaiting_restart"
    BACKOFF = "backoff"
    SUCCESS = "success"
    FAILED = "failed"


class RestartBudget(Enum):
    """Whether the one restart request of this call is still available."""

    AVAILABLE = "available"
    SPENT = "spent"


_TERMINAL = frozenset({RetryPhase.SUCCESS, RetryPhase.FAILED})
_WAITING = frozenset({RetryPhase.AWAITING_RESTART, RetryPhase.BACKOFF})


@dataclass(frozen=True)
class RetryPolicy:
    """Timing and budget knobs for one submission."""

    max_attempts: int = 3
    backoff_base_seconds: float = 2.0
    restart_wait_seconds: float = 10.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.backoff_base_seconds < 0 or self.restart_wait_seconds < 0:
            raise ValueError("wait times must be non-negative")

    def backoff_for(self, attempt: int) -> float:
        """Delay after a failed attempt: base * 2**attempt (2s, 4s, 8s...)."""
        return self.backoff_base_seconds * (2**attempt)


@dataclass(frozen=True)
class RetryState:
    """Immutable snapshot of a submission's retry lifecycle.

    Attributes:
        phase: Current phase.
        attempt: Zero-based index of the counted attempt in progress.
        restart: Restart budget for this call.
        last_error: Most recent failure reason, reported on FAILED.
        delay: Seconds to wait in a waiting phase, 0 otherwise.
        attempts_made: Number of create-requests issued so far.
    """

    phase: RetryPhase
    attempt: int = 0
    restart: RestartBudget = RestartBudget.AVAILABLE
    last_error: str = ""
    delay: float = 0.0
    attempts_made: int = 0

    @property
    def is_terminal(self) -> bool:
        return self.phase in _TERMINAL

    @property
    def is_waiting(self) -> bool:
        return self.phase in _WAITING


def initial_state() -> RetryState:
    """State before the first create-request."""
    return RetryState(phase=RetryPhase.ATTEMPTING)


def on_outcome(state: RetryState, outcome: SubmissionOutcome, policy: RetryPolicy) -> RetryState:
    """Transition out of ATTEMPTING after one create-request.

    Raises:
        ValueError: If called outside ATTEMPTING.
    """
    if state.phase is not RetryPhase.ATTEMPTING:
        raise ValueError(f"on_outcome called in phase {state.phase.value}")

    made = state.attempts_made + 1

    if outcome.kind is OutcomeKind.SUCCESS:
        return replace(state, phase=RetryPhase.SUCCESS, delay=0.0, attempts_made=made)

    if outcome.kind is OutcomeKind.AUTH_FAILURE:
        return replace(
            state,
            phase=RetryPhase.FAILED,
            last_error=AUTH_FAILED_MESSAGE,
            delay=0.0,
            attempts_made=made,
        )

    if (
        outcome.kind is OutcomeKind.SERVER_UNAVAILABLE
        and state.restart is RestartBudget.AVAILABLE
    ):
        return replace(
            state,
            phase=RetryPhase.AWAITING_RESTART,
            restart=RestartBudget.SPENT,
            last_error=outcome.reason,
            delay=policy.restart_wait_seconds,
            attempts_made=made,
        )

    if state.attempt < policy.max_attempts - 1:
        return replace(
            state,
            phase=RetryPhase.BACKOFF,
            last_error=outcome.reason,
            delay=policy.backoff_for(state.attempt),
            attempts_made=made,
        )

    return replace(
        state,
        phase=RetryPhase.FAILED,
        last_error=outcome.reason,
        delay=0.0,
        attempts_made=made,
    )


def after_wait(state: RetryState) -> RetryState:
    """Transition out of a waiting phase once its delay has elapsed.

    A restart wait re-runs the same attempt index; a backoff advances it.

    Raises:
        ValueError: If called outside a waiting phase.
    """
    if state.phase is RetryPhase.AWAITING_RESTART:
        return replace(state, phase=RetryPhase.ATTEMPTING, delay=0.0)
    if state.phase is RetryPhase.BACKOFF:
        return replace(state, phase=RetryPhase.ATTEMPTING, attempt=state.attempt + 1, delay=0.0)
    raise ValueError(f"after_wait called in phase {state.phase.value}")


def abandon(state: RetryState, reason: str | None = None) -> RetryState:
    """Give up from a waiting phase (budget exhausted or cancelled).

    Keeps the last observed error unless there is none yet.
    """
    if state.is_terminal:
        return state
    return replace(
        state,
        phase=RetryPhase.FAILED,
        last_error=state.last_error or reason or "cancelled",
        delay=0.0,
    )


def counted_attempts(state: RetryState) -> int:
    """Counted attempts consumed so far (the restart re-run is not counted)."""
    return state.attempt + 1 if state.attempts_made else 0
