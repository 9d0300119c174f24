"""Log setup for the widget task and the CLI.

Every create and restart request carries the user's password as an
HTTP Basic token, so both formatters scrub passwords and Basic tokens
from the final line before a handler sees it. Lines logged during a
task invocation are tagged with its ``[inv=..][widget=..]`` prefix (or
``invocation_id`` / ``widget_id`` keys in JSON mode).

Handlers write to stderr: stdout is reserved for the task's JSON result.
"""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timezone

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

SENSITIVE_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (
        re.compile(r"authorization[\"']?\s*[:=]\s*[\"']?basic\s+[\w+/=]+", re.I),
        "Authorization=***MASKED***",
    ),
    (re.compile(r"\bbasic\s+[A-Za-z0-9+/]{8,}={0,2}", re.I), "Basic ***MASKED***"),
    (re.compile(r'password["\']?\s*[:=]\s*["\']?[^\s"\',}]+', re.I), "password=***MASKED***"),
]


def mask_secrets(message: str) -> str:
    """Replace passwords and Basic auth tokens in ``message``."""
    for pattern, replacement in SENSITIVE_PATTERNS:
        message = pattern.sub(replacement, message)
    return message


def _current_ids() -> tuple[str | None, str | None]:
    from mova_widget.core.tracing import get_current_context

    ctx = get_current_context()
    if ctx is None:
        return None, None
    return ctx.invocation_id, ctx.widget_id


def _tagged(record: logging.LogRecord) -> logging.LogRecord:
    """Copy of ``record`` whose message starts with the invocation tag."""
    from mova_widget.core.tracing import format_context_prefix

    tag = format_context_prefix()
    if not tag:
        return record

    tagged = logging.makeLogRecord(record.__dict__)
    tagged.msg = f"{tag} {record.getMessage()}"
    tagged.args = None
    return tagged


class SecureFormatter(logging.Formatter):
    """Text formatter that tags invocation ids and masks credentials."""

    def __init__(
        self,
        fmt: str | None = TEXT_FORMAT,
        datefmt: str | None = DATE_FORMAT,
        include_trace_context: bool = True,
    ) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self.include_trace_context = include_trace_context

    def format(self, record: logging.LogRecord) -> str:
        if self.include_trace_context:
            record = _tagged(record)
        return mask_secrets(super().format(record))


class JSONFormatter(logging.Formatter):
    """One JSON object per line, credentials masked."""

    def __init__(self, include_trace_context: bool = True) -> None:
        super().__init__()
        self.include_trace_context = include_trace_context

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, str] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if self.include_trace_context:
            invocation_id, widget_id = _current_ids()
            if invocation_id:
                entry["invocation_id"] = invocation_id
            if widget_id:
                entry["widget_id"] = widget_id
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return mask_secrets(json.dumps(entry, ensure_ascii=False))


def configure_logging(
    level: str = "INFO",
    json_format: bool = False,
    mask_sensitive: bool = True,
    include_trace_context: bool = True,
) -> None:
    """Route all logging to one stderr handler.

    Calling it again replaces the previous handler, so the CLI can
    reconfigure freely.

    Args:
        level: Root log level name.
        json_format: Emit JSON lines instead of text.
        mask_sensitive: Scrub credentials from text lines (JSON is always scrubbed).
        include_trace_context: Tag lines with the current invocation ids.
    """
    formatter: logging.Formatter
    if json_format:
        formatter = JSONFormatter(include_trace_context=include_trace_context)
    elif mask_sensitive:
        formatter = SecureFormatter(include_trace_context=include_trace_context)
    else:
        formatter = logging.Formatter(fmt=TEXT_FORMAT, datefmt=DATE_FORMAT)

    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)
