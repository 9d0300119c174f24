"""Data models for the Mova widget task pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


@dataclass(frozen=True)
class Credentials:
    """Last-known server login, as written by the main app.

    All three fields present, or the whole login is treated as absent.
    """

    server_url: str | None = None
    username: str | None = None
    password: str | None = None

    @classmethod
    def empty(cls) -> Credentials:
        return cls()

    @property
    def is_complete(self) -> bool:
        """True when every field is a non-empty string."""
        return bool(self.server_url and self.username and self.password)

    def __repr__(self) -> str:
        return (
            f"Credentials(server_url={self.server_url!r}, username={self.username!r}, "
            f"password={'***' if self.password else None})"
        )


class PendingSubmission(BaseModel):
    """A submission that has not been delivered yet.

    Serialized with the wire names the app's shared store uses:
    ``{"text", "timestamp", "retryCount"}``. ``timestamp`` is the epoch-ms
    enqueue time and doubles as the entry's identifier.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    text: str = Field(..., min_length=1)
    timestamp: int = Field(..., ge=0, description="Epoch milliseconds at enqueue (identifier)")
    retry_count: int = Field(default=0, ge=0, alias="retryCount")

    @property
    def id(self) -> int:
        return self.timestamp

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)

    def is_exhausted(self, max_retries: int) -> bool:
        return self.retry_count >= max_retries


class OutcomeKind(str, Enum):
    """Semantic classification of one create-request."""

    SUCCESS = "success"
    AUTH_FAILURE = "auth_failed"
    SERVER_UNAVAILABLE = "server_unavailable"
    OTHER_FAILURE = "other_failure"


@dataclass(frozen=True)
class SubmissionOutcome:
    """Result of a single ``submit_once`` call.

    ``reason`` is the short error code carried upward as the last observed
    error: ``auth_failed``, ``server_unavailable``, ``http_<status>`` or
    ``network_error``. Empty for success.
    """

    kind: OutcomeKind
    reason: str = ""

    @classmethod
    def success(cls) -> SubmissionOutcome:
        return cls(OutcomeKind.SUCCESS)

    @classmethod
    def auth_failure(cls) -> SubmissionOutcome:
        return cls(OutcomeKind.AUTH_FAILURE, "auth_failed")

    @classmethod
    def server_unavailable(cls) -> SubmissionOutcome:
        return cls(OutcomeKind.SERVER_UNAVAILABLE, "server_unavailable")

    @classmethod
    def other_failure(cls, reason: str) -> SubmissionOutcome:
        return cls(OutcomeKind.OTHER_FAILURE, reason or "Unknown error")

    @property
    def ok(self) -> bool:
        return self.kind is OutcomeKind.SUCCESS


@dataclass(frozen=True)
class SubmitResult:
    """Terminal result of ``RetryOrchestrator.submit_with_retry``."""

    success: bool
    error: str | None = None
    attempts: int = 0
    restart_requested: bool = False


class TaskStatus(str, Enum):
    """Outcome reported back to the host for one invocation."""

    SUCCESS = "success"
    NO_AUTH = "no_auth"
    QUEUED = "queued"
    RETRY_COMPLETE = "retry_complete"
    UNKNOWN_ACTION = "unknown_action"
    ERROR = "error"


@dataclass(frozen=True)
class TaskResult:
    """Structured result the dispatcher hands back to the host."""

    status: TaskStatus
    message: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, str]:
        data = {"status": self.status.value}
        if self.message is not None:
            data["message"] = self.message
        if self.error is not None:
            data["error"] = self.error
        return data


class WidgetDisplayState(str, Enum):
    """What the widget should render after an invocation."""

    IDLE = "idle"
    SUCCESS = "success"
    OFFLINE = "offline"
    ERROR = "error"


@dataclass(frozen=True)
class WidgetInfo:
    """Host-supplied description of the widget instance that triggered a task."""

    widget_name: str = "QuickCaptureWidget"
    widget_id: int | str | None = None
    extra: dict[str, Any] = field(default_factory=dict)
