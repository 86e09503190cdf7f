"""Notification outbox: durable record of notifications owed to recipients.

Entries are written in the same transaction as the invitation transition
that caused them (callers pass the connection while a transaction is
open), then consumed by the dispatcher.  Uses parameterized queries
exclusively.
"""

from __future__ import annotations

import sqlite3
from datetime import UTC, datetime

from invitations.notifications.models import NotificationRecord, OutboxEntry, OutboxStatus


def _now() -> str:
    return datetime.now(tz=UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


def enqueue_notification(conn: sqlite3.Connection, record: NotificationRecord) -> int:
    """Insert a pending outbox entry without committing.

    Args:
        conn: A connection with an open transaction.
        record: The notification owed.

    Returns:
        The outbox row id.
    """
    cursor = conn.execute(
        """
        INSERT INTO notification_outbox (
            notification_id, invitation_id, record_json, status, created_at
        ) VALUES (?, ?, ?, ?, ?)
        """,
        (
            record.id,
            record.invitation_id,
            record.model_dump_json(),
            OutboxStatus.PENDING.value,
            _now(),
        ),
    )
    return cursor.lastrowid or 0


def _entry_from_row(row: tuple) -> OutboxEntry:
    outbox_id, record_json, status, attempts, last_error, created_at, dispatched_at = row
    return OutboxEntry(
        id=outbox_id,
        record=NotificationRecord.model_validate_json(record_json),
        status=status,
        attempts=attempts,
        last_error=last_error,
        created_at=created_at,
        dispatched_at=dispatched_at,
    )


_COLUMNS = "id, record_json, status, attempts, last_error, created_at, dispatched_at"


def get_outbox_entry(conn: sqlite3.Connection, notification_id: str) -> OutboxEntry | None:
    """Return the outbox entry for *notification_id*, if any."""
    row = conn.execute(
        f"SELECT {_COLUMNS} FROM notification_outbox WHERE notification_id = ?",
        (notification_id,),
    ).fetchone()
    return _entry_from_row(row) if row is not None else None


def list_undelivered(
    conn: sqlite3.Connection,
    *,
    max_attempts: int | None = None,
    limit: int = 100,
) -> list[OutboxEntry]:
    """Return pending and failed entries, oldest first.

    Args:
        conn: An open database connection.
        max_attempts: Skip entries that already failed this many times.
        limit: Maximum number of entries to return.
    """
    query = (
        f"SELECT {_COLUMNS} FROM notification_outbox "
        "WHERE status IN (?, ?)"
    )
    params: list[str | int] = [OutboxStatus.PENDING.value, OutboxStatus.FAILED.value]
    if max_attempts is not None:
        query += " AND attempts < ?"
        params.append(max_attempts)
    query += " ORDER BY id ASC LIMIT ?"
    params.append(limit)
    return [_entry_from_row(row) for row in conn.execute(query, params).fetchall()]


def mark_dispatched(conn: sqlite3.Connection, notification_id: str) -> None:
    """Mark an entry delivered and commit."""
    conn.execute(
        """
        UPDATE notification_outbox
        SET status = ?, attempts = attempts + 1, last_error = NULL, dispatched_at = ?
        WHERE notification_id = ?
        """,
        (OutboxStatus.DISPATCHED.value, _now(), notification_id),
    )
    conn.commit()


def mark_failed(conn: sqlite3.Connection, notification_id: str, error: str) -> None:
    """Record a failed delivery attempt and commit."""
    conn.execute(
        """
        UPDATE notification_outbox
        SET status = ?, attempts = attempts + 1, last_error = ?
        WHERE notification_id = ?
        """,
        (OutboxStatus.FAILED.value, error, notification_id),
    )
    conn.commit()
