"""Notification dispatcher: drain the outbox into the notification sink.

Dispatch happens after the transition has committed.  A failure is logged,
recorded on the outbox entry, and handed back to the caller as a warning;
it never rolls back or retries the transition itself.  Undelivered entries
stay in the outbox and can be replayed with :meth:`NotificationDispatcher.drain`.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from invitations.notifications.models import OutboxStatus
from invitations.notifications.outbox import (
    get_outbox_entry,
    list_undelivered,
    mark_dispatched,
    mark_failed,
)
from invitations.notifications.sink import NotificationSink
from invitations.observability.metrics import NOTIFICATION_FAILURES
from invitations.resilience.retry import delivery_retrying

if TYPE_CHECKING:
    from invitations.store.store import InvitationStore

logger = structlog.get_logger()


class NotificationDispatcher:
    """Deliver outbox entries to a :class:`NotificationSink`.

    Args:
        store: The invitation store that owns the outbox connection.
        sink: Where records are handed off for delivery.
        max_attempts: Delivery attempts per dispatch call.
        initial_wait: First retry backoff in seconds.
    """

    def __init__(
        self,
        store: InvitationStore,
        sink: NotificationSink,
        max_attempts: int = 3,
        initial_wait: float = 0.5,
    ) -> None:
        self._store = store
        self._sink = sink
        self._max_attempts = max_attempts
        self._initial_wait = initial_wait

    def dispatch(self, notification_id: str) -> str | None:
        """Deliver one outbox entry.

        Args:
            notification_id: ID of the notification record in the outbox.

        Returns:
            ``None`` on success (or if already delivered), otherwise a
            warning message describing the failure.
        """
        with self._store.locked() as conn:
            entry = get_outbox_entry(conn, notification_id)

        if entry is None:
            logger.warning("Outbox entry not found", notification_id=notification_id)
            return f"notification {notification_id} not found in outbox"
        if entry.status == OutboxStatus.DISPATCHED:
            return None

        record = entry.record
        try:
            for attempt in delivery_retrying(self._max_attempts, self._initial_wait):
                with attempt:
                    self._sink.deliver(record, list(record.channels))
        except Exception as exc:
            NOTIFICATION_FAILURES.inc()
            logger.exception(
                "Notification dispatch failed",
                notification_id=notification_id,
                invitation_id=record.invitation_id,
                notification_type=record.notification_type.value,
            )
            with self._store.locked() as conn:
                mark_failed(conn, notification_id, str(exc))
            return f"notification {record.notification_type.value} was not delivered: {exc}"

        with self._store.locked() as conn:
            mark_dispatched(conn, notification_id)
        logger.info(
            "Notification dispatched",
            notification_id=notification_id,
            invitation_id=record.invitation_id,
            recipient_id=record.recipient_id,
            notification_type=record.notification_type.value,
        )
        return None

    def drain(self, limit: int = 100, max_attempts: int | None = None) -> dict[str, int]:
        """Replay pending and failed outbox entries, oldest first.

        Args:
            limit: Maximum number of entries handled in this pass.
            max_attempts: Skip entries that already failed this many times.

        Returns:
            Counts of ``dispatched`` and ``failed`` entries.
        """
        with self._store.locked() as conn:
            entries = list_undelivered(conn, max_attempts=max_attempts, limit=limit)

        counts = {"dispatched": 0, "failed": 0}
        for entry in entries:
            warning = self.dispatch(entry.record.id)
            counts["failed" if warning else "dispatched"] += 1

        logger.info("Outbox drained", **counts)
        return counts
