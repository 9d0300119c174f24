"""Entry point for the widget task and the app-side store commands.

CLI usage::

    python -m mova_widget task SUBMIT_TODO --text "buy milk" --widget-id 7
    echo '{"text": "buy milk"}' | python -m mova_widget task SUBMIT_TODO --payload -
    python -m mova_widget task RETRY_PENDING
    python -m mova_widget login --url https://todo.example.com --username me
    python -m mova_widget logout
    python -m mova_widget pending list

``task`` always exits 0 and prints the render decision as one JSON line on
stdout; logs go to stderr.
"""

from __future__ import annotations

import argparse
import getpass
import json
import logging
import sys
from typing import TYPE_CHECKING, Any, NoReturn

if TYPE_CHECKING:
    from mova_widget.config import Settings
    from mova_widget.factory import WidgetServices

logger = logging.getLogger(__name__)

MAX_PAYLOAD_BYTES = 524_288


def _build_services() -> tuple[Settings, WidgetServices]:
    from mova_widget.config import get_settings
    from mova_widget.core.logging import configure_logging
    from mova_widget.factory import ServiceFactory

    settings = get_settings()
    configure_logging(level=settings.log_level, json_format=settings.log_json)
    return settings, ServiceFactory(settings).create_all()


def _read_payload(args: argparse.Namespace) -> dict[str, Any]:
    """Build the action payload from ``--text`` and/or ``--payload``."""
    payload: dict[str, Any] = {}
    if args.payload:
        raw = sys.stdin.read(MAX_PAYLOAD_BYTES) if args.payload == "-" else args.payload
        if raw and raw.strip():
            parsed = json.loads(raw)
            if isinstance(parsed, dict):
                payload.update(parsed)
    if args.text is not None:
        payload["text"] = args.text
    return payload


def run_task(args: argparse.Namespace) -> int:
    """Run one widget task invocation and print the render decision.

    Returns:
        Always 0; failures are reported in the printed JSON.
    """
    from mova_widget.core.models import WidgetDisplayState, WidgetInfo
    from mova_widget.tasks.dispatcher import WidgetRender, widget_task_entry

    widget_info = WidgetInfo(widget_name=args.widget_name, widget_id=args.widget_id)
    try:
        _settings, services = _build_services()
        payload = _read_payload(args)
        render = widget_task_entry(services.dispatcher, widget_info, args.action, payload)
    except Exception as e:
        logger.exception("Widget task could not run")
        render = WidgetRender(
            widget_name=widget_info.widget_name,
            state=WidgetDisplayState.ERROR,
            message=f"Error: {str(e)[:50]}",
        )

    json.dump(render.to_dict(), sys.stdout)
    sys.stdout.write("\n")
    sys.stdout.flush()
    return 0


def run_login(args: argparse.Namespace) -> int:
    """Publish a login for the widget (what the app does after sign-in)."""
    from mova_widget.core.errors import MovaWidgetError
    from mova_widget.services.session import save_credentials_for_widget

    _settings, services = _build_services()
    password = args.password or getpass.getpass("Password: ")
    try:
        save_credentials_for_widget(services.credentials, args.url, args.username, password)
    except MovaWidgetError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    print(f"Widget credentials saved for {args.username}")
    return 0


def run_logout(args: argparse.Namespace) -> int:
    """Remove the widget login (what the app does on sign-out)."""
    from mova_widget.core.errors import MovaWidgetError
    from mova_widget.services.session import clear_widget_credentials

    _settings, services = _build_services()
    try:
        discarded = clear_widget_credentials(
            services.credentials, services.queue, discard_pending=not args.keep_pending
        )
    except MovaWidgetError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    print("Widget credentials cleared")
    if discarded:
        print(f"Discarded {discarded} pending submission(s)")
    return 0


def run_pending(args: argparse.Namespace) -> int:
    """Inspect or clean up the pending queue."""
    from mova_widget.core.errors import MovaWidgetError

    settings, services = _build_services()

    if args.pending_command == "list":
        entries = [
            {**entry.to_wire(), "exhausted": entry.is_exhausted(settings.max_retries)}
            for entry in services.queue.list_all()
        ]
        json.dump(entries, sys.stdout, ensure_ascii=False, indent=2)
        sys.stdout.write("\n")
        return 0

    if args.pending_command == "purge-exhausted":
        from mova_widget.core.utils import now_ms
        from mova_widget.tasks.dispatcher import MS_PER_DAY

        # --all ignores the age cutoff
        cutoff = now_ms() + 1 if args.all else now_ms() - settings.exhausted_ttl_days * MS_PER_DAY
        try:
            evicted = services.queue.evict_exhausted(settings.max_retries, cutoff)
        except MovaWidgetError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        print(f"Evicted {len(evicted)} exhausted submission(s)")
        return 0

    print("Usage: mova_widget pending {list,purge-exhausted}", file=sys.stderr)
    return 1


def run_version() -> None:
    """Print version information."""
    from mova_widget import __version__

    print(f"mova-widget {__version__}")


def main() -> NoReturn:
    """Main entry point with subcommand support."""
    parser = argparse.ArgumentParser(
        prog="mova_widget",
        description="Mova quick-capture widget task pipeline",
    )
    parser.add_argument(
        "--version",
        action="store_true",
        help="Show version information",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    task_parser = subparsers.add_parser(
        "task",
        help="Run one widget task invocation (as the host would)",
    )
    task_parser.add_argument("action", help="SUBMIT_TODO or RETRY_PENDING")
    task_parser.add_argument("--text", default=None, help="Todo text for SUBMIT_TODO")
    task_parser.add_argument(
        "--payload",
        default=None,
        help="JSON object payload, or '-' to read it from stdin",
    )
    task_parser.add_argument(
        "--widget-name",
        default="QuickCaptureWidget",
        help="Widget name reported by the host",
    )
    task_parser.add_argument("--widget-id", default=None, help="Widget instance id")

    login_parser = subparsers.add_parser(
        "login",
        help="Save server credentials for the widget",
    )
    login_parser.add_argument("--url", required=True, help="Server base URL")
    login_parser.add_argument("--username", required=True, help="Username")
    login_parser.add_argument(
        "--password",
        default=None,
        help="Password (prompted for when omitted)",
    )

    logout_parser = subparsers.add_parser(
        "logout",
        help="Clear the widget's server credentials",
    )
    logout_parser.add_argument(
        "--keep-pending",
        action="store_true",
        help="Keep queued submissions instead of discarding them",
    )

    pending_parser = subparsers.add_parser(
        "pending",
        help="Inspect or clean up queued submissions",
    )
    pending_sub = pending_parser.add_subparsers(dest="pending_command")
    pending_sub.add_parser("list", help="Print queued submissions as JSON")
    purge_parser = pending_sub.add_parser(
        "purge-exhausted",
        help="Evict submissions that ran out of retries",
    )
    purge_parser.add_argument(
        "--all",
        action="store_true",
        help="Evict every exhausted submission regardless of age",
    )

    args = parser.parse_args()

    if args.version:
        run_version()
        sys.exit(0)

    if args.command == "task":
        sys.exit(run_task(args))
    elif args.command == "login":
        sys.exit(run_login(args))
    elif args.command == "logout":
        sys.exit(run_logout(args))
    elif args.command == "pending":
        sys.exit(run_pending(args))
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
