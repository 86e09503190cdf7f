"""Notification sinks: where dispatched records are handed off.

Delivery over email, WhatsApp or push is an external concern; the sink only
has to accept the record and the requested channels.
"""

from __future__ import annotations

import json
import sqlite3
import threading
from typing import Protocol

from invitations.domain.errors import StoreBusyError
from invitations.domain.models import format_ts
from invitations.domain.types import Channel
from invitations.notifications.models import NotificationRecord


class NotificationSink(Protocol):
    """Accept a notification record for delivery on the given channels."""

    def deliver(self, record: NotificationRecord, channels: list[Channel]) -> None: ...


class SQLiteNotificationSink:
    """Store delivered notifications in the ``notifications`` table.

    Downstream delivery workers and dashboards read from this table.
    Re-delivering the same record is a no-op.
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        lock: threading.RLock | None = None,
        lock_timeout: float = 5.0,
    ) -> None:
        self._conn = conn
        self._lock = lock or threading.RLock()
        self._lock_timeout = lock_timeout

    def deliver(self, record: NotificationRecord, channels: list[Channel]) -> None:
        if not self._lock.acquire(timeout=self._lock_timeout):
            raise StoreBusyError(self._lock_timeout)
        try:
            self._insert(record, channels)
        finally:
            self._lock.release()

    def _insert(self, record: NotificationRecord, channels: list[Channel]) -> None:
        with self._conn:
            self._conn.execute(
                """
                INSERT OR IGNORE INTO notifications (
                    id, invitation_id, recipient_id, notification_type, title,
                    message, priority, channels, action_url, metadata, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.id,
                    record.invitation_id,
                    record.recipient_id,
                    record.notification_type.value,
                    record.title,
                    record.message,
                    record.priority.value,
                    json.dumps([c.value for c in channels]),
                    record.action_url,
                    json.dumps(record.metadata, default=str) if record.metadata else None,
                    format_ts(record.created_at),
                ),
            )


class InMemoryNotificationSink:
    """Collect delivered records in a list (development and tests)."""

    def __init__(self) -> None:
        self.delivered: list[tuple[NotificationRecord, list[Channel]]] = []

    def deliver(self, record: NotificationRecord, channels: list[Channel]) -> None:
        self.delivered.append((record, list(channels)))
