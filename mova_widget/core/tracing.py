"""Invocation tracing for widget task runs.

Every host invocation of the task handler runs inside an
``InvocationContext`` so log lines from the store, the HTTP client and
the retry loop can be correlated. The context lives in a contextvar.

Usage:
    from mova_widget.core.tracing import invocation_context

    with invocation_context("SUBMIT_TODO", widget_id=7) as ctx:
        ...
        logger.info("done in %.1fms", ctx.elapsed_ms())
"""

from __future__ import annotations

import contextvars
import uuid
from collections.abc import Generator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from contextvars import Token

from mova_widget.core.utils import utc_now


@dataclass
class InvocationContext:
    """Context information for one task invocation.

    Attributes:
        invocation_id: Unique identifier for the invocation (first 12 chars of UUID).
        action: Action name the host passed in.
        widget_id: Host widget instance id, if any.
        started_at: When the invocation started.
    """

    invocation_id: str
    action: str
    widget_id: str | None
    started_at: datetime

    @classmethod
    def create(cls, action: str, widget_id: str | int | None = None) -> InvocationContext:
        """Create a new context with an auto-generated id."""
        return cls(
            invocation_id=uuid.uuid4().hex[:12],
            action=action,
            widget_id=str(widget_id) if widget_id is not None else None,
            started_at=utc_now(),
        )

    def elapsed_ms(self) -> float:
        """Elapsed time since the invocation started, in milliseconds."""
        return (utc_now() - self.started_at).total_seconds() * 1000


_context: contextvars.ContextVar[InvocationContext | None] = contextvars.ContextVar(
    "invocation_context", default=None
)


def get_current_context() -> InvocationContext | None:
    """Get the current invocation context, or None outside an invocation."""
    return _context.get()


def set_context(ctx: InvocationContext) -> Token[InvocationContext | None]:
    """Set the current invocation context.

    Returns:
        A token that can be used to reset the context.
    """
    return _context.set(ctx)


def clear_context(token: Token[InvocationContext | None]) -> None:
    """Reset the context to its previous value."""
    _context.reset(token)


@contextmanager
def invocation_context(
    action: str,
    widget_id: str | int | None = None,
) -> Generator[InvocationContext, None, None]:
    """Context manager for invocation tracing.

    Creates an InvocationContext, sets it as current, and clears it on exit.

    Args:
        action: Action name the host passed in.
        widget_id: Host widget instance id, if any.

    Yields:
        The created InvocationContext.
    """
    ctx = InvocationContext.create(action, widget_id=widget_id)
    token = set_context(ctx)
    try:
        yield ctx
    finally:
        clear_context(token)


def format_context_prefix() -> str:
    """Format the current context as a log prefix.

    Returns:
        A string like "[inv=abc123][widget=7]" or "" if no context.
    """
    ctx = get_current_context()
    if ctx is None:
        return ""

    parts = [f"[inv={ctx.invocation_id}]"]
    if ctx.widget_id:
        parts.append(f"[widget={ctx.widget_id}]")
    return "".join(parts)
