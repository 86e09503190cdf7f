"""Notification records, the outbox, sinks, and the dispatcher."""

from invitations.notifications.builder import TEMPLATES, build_notification, invitation_link
from invitations.notifications.dispatcher import NotificationDispatcher
from invitations.notifications.models import (
    NotificationRecord,
    NotificationType,
    OutboxEntry,
    OutboxStatus,
)
from invitations.notifications.sink import (
    InMemoryNotificationSink,
    NotificationSink,
    SQLiteNotificationSink,
)

__all__ = [
    "TEMPLATES",
    "InMemoryNotificationSink",
    "NotificationDispatcher",
    "NotificationRecord",
    "NotificationSink",
    "NotificationType",
    "OutboxEntry",
    "OutboxStatus",
    "SQLiteNotificationSink",
    "build_notification",
    "invitation_link",
]
