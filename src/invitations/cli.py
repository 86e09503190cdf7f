"""Operator CLI for the invitation engine.

Subcommands:

- ``sweep``: expire every overdue open invitation (run from cron or a scheduler).
- ``timeline``: print an invitation's reconstructed timeline.
- ``list``: list active invitations for an engagement or an organization.
- ``stats``: invitation statistics for a time range.
- ``drain``: replay undelivered notifications from the outbox.

Output formats: table (default) or JSON.

Usage::

    invitations sweep
    invitations timeline 3f2a... --format json
    invitations list --engagement J1 --status pending
    invitations stats --last 30d
"""

from __future__ import annotations

import argparse
import json
import sys
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import structlog

from invitations.app import close_services, configure_logging, initialize_services
from invitations.config import get_settings
from invitations.domain.errors import InvitationError
from invitations.domain.types import InvitationStatus
from invitations.engine import InvitationEngine
from invitations.expiry import sweep_expired

logger = structlog.get_logger()

Column = tuple[str, str, int]

_INVITATION_COLUMNS: list[Column] = [
    ("ID", "id", 32),
    ("Engagement", "engagement_id", 15),
    ("Organization", "target_org_id", 15),
    ("Status", "status", 12),
    ("Sent", "sent_at", 20),
    ("Expires", "expires_at", 20),
]

_TIMELINE_COLUMNS: list[Column] = [
    ("Timestamp", "timestamp", 20),
    ("Actor", "actor", 12),
    ("Action", "action", 16),
    ("Details", "details", 40),
]


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser.

    Returns:
        A configured :class:`argparse.ArgumentParser`.
    """
    parser = argparse.ArgumentParser(prog="invitations", description="Invitation engine operations")
    parser.add_argument(
        "--db",
        type=str,
        default=None,
        help="Path to the invitation database (default: DB_PATH setting)",
    )
    parser.add_argument(
        "--format",
        type=str,
        choices=["table", "json"],
        default="table",
        dest="output_format",
        help="Output format (default: table)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    sweep = subparsers.add_parser("sweep", help="Expire overdue invitations")
    sweep.add_argument("--limit", type=int, default=None, help="Maximum invitations per pass")

    timeline = subparsers.add_parser("timeline", help="Show an invitation's timeline")
    timeline.add_argument("invitation_id", type=str)

    list_cmd = subparsers.add_parser("list", help="List active invitations")
    target = list_cmd.add_mutually_exclusive_group(required=True)
    target.add_argument("--engagement", type=str, help="Filter by engagement ID")
    target.add_argument("--org", type=str, help="Filter by target organization ID")
    list_cmd.add_argument(
        "--status",
        type=str,
        choices=[s.value for s in InvitationStatus],
        help="Filter by status",
    )
    list_cmd.add_argument("--limit", type=int, default=20, help="Page size (default: 20)")
    list_cmd.add_argument("--offset", type=int, default=0, help="Rows to skip (default: 0)")

    stats = subparsers.add_parser("stats", help="Invitation statistics")
    stats.add_argument("--engagement", type=str, help="Filter by engagement ID")
    stats.add_argument("--initiator", type=str, help="Filter by initiator ID")
    stats.add_argument(
        "--last",
        type=str,
        default="30d",
        help='Time range, e.g. "7d" or "24h" (default: 30d)',
    )

    drain = subparsers.add_parser("drain", help="Replay undelivered notifications")
    drain.add_argument("--limit", type=int, default=100, help="Maximum entries (default: 100)")

    return parser


def parse_last_duration(last: str) -> timedelta:
    """Convert a shorthand duration such as ``7d`` or ``24h`` to a ``timedelta``.

    Raises:
        ValueError: If the format is not recognized.
    """
    if not last or len(last) < 2:
        msg = f"Unrecognized duration format: {last!r}"
        raise ValueError(msg)

    unit = last[-1]
    try:
        value = int(last[:-1])
    except ValueError:
        msg = f"Unrecognized duration format: {last!r}"
        raise ValueError(msg) from None

    if unit == "d":
        return timedelta(days=value)
    if unit == "h":
        return timedelta(hours=value)
    msg = f"Unrecognized duration format: {last!r}. Use 'd' for days or 'h' for hours."
    raise ValueError(msg)


def format_table(rows: list[dict[str, Any]], columns: list[Column]) -> str:
    """Format rows as a fixed-width table, truncating long cells.

    Args:
        rows: Row dicts.
        columns: ``(header, key, width)`` for each column.

    Returns:
        Formatted table string with header row.
    """
    if not rows:
        return "No results found."

    def truncate(value: Any, width: int) -> str:
        s = "" if value is None else str(value)
        if len(s) > width:
            return s[: width - 3] + "..."
        return s

    header_line = "  ".join(h.ljust(w) for h, _, w in columns)
    lines = [header_line, "-" * len(header_line)]
    for row in rows:
        lines.append("  ".join(truncate(row.get(k), w).ljust(w) for _, k, w in columns))
    return "\n".join(lines)


def format_json(payload: Any) -> str:
    """Format a payload as pretty-printed JSON."""
    return json.dumps(payload, indent=2, default=str)


def _format_stats_table(stats: dict[str, Any]) -> str:
    lines = [
        f"Total invitations:   {stats['total']}",
        f"Response rate:       {stats['response_rate']}%",
        f"Avg response (h):    {stats['average_response_hours'] or '-'}",
        "",
    ]
    lines.extend(f"  {status:<12} {count}" for status, count in stats["by_status"].items())
    return "\n".join(lines)


def run_command(args: argparse.Namespace, services: dict[str, Any]) -> str:
    """Execute the parsed subcommand and return its rendered output."""
    engine: InvitationEngine = services["engine"]
    as_json = args.output_format == "json"

    if args.command == "sweep":
        limit = args.limit or services["_settings"].sweep_batch_size
        expired = sweep_expired(engine, limit=limit)
        if as_json:
            return format_json({"expired": expired})
        return f"Expired {len(expired)} invitation(s)."

    if args.command == "timeline":
        events = [e.model_dump(mode="json") for e in engine.get_timeline(args.invitation_id)]
        return format_json(events) if as_json else format_table(events, _TIMELINE_COLUMNS)

    if args.command == "list":
        status = InvitationStatus(args.status) if args.status else None
        invitations = engine.list_active(
            engagement_id=args.engagement,
            target_org_id=args.org,
            status=status,
            limit=args.limit,
            offset=args.offset,
        )
        rows = [i.model_dump(mode="json", exclude={"history"}) for i in invitations]
        return format_json(rows) if as_json else format_table(rows, _INVITATION_COLUMNS)

    if args.command == "stats":
        since = datetime.now(tz=UTC) - parse_last_duration(args.last)
        stats = engine.stats(
            engagement_id=args.engagement, initiator_id=args.initiator, since=since
        ).model_dump(mode="json")
        return format_json(stats) if as_json else _format_stats_table(stats)

    if args.command == "drain":
        counts = services["dispatcher"].drain(limit=args.limit)
        if as_json:
            return format_json(counts)
        return f"Dispatched {counts['dispatched']}, failed {counts['failed']}."

    msg = f"Unknown command: {args.command}"
    raise ValueError(msg)


def main(argv: list[str] | None = None) -> int:
    """Parse arguments, run the command, and print its output.

    Returns:
        The process exit code: 0 on success, 1 on a domain or input error.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = get_settings()
    if args.db:
        settings = settings.model_copy(update={"db_path": Path(args.db)})
    configure_logging(production=settings.production)

    services = initialize_services(settings)
    try:
        print(run_command(args, services))
    except (InvitationError, ValueError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    finally:
        close_services(services)
    return 0


if __name__ == "__main__":
    sys.exit(main())
