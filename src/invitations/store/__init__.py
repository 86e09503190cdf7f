"""Invitation persistence package.

Provides SQLite-backed storage for invitations, their append-only history,
and the notification outbox, plus serialization helpers.
"""

from invitations.store.schema import connect, init_invitation_tables
from invitations.store.store import InvitationStore

__all__ = [
    "InvitationStore",
    "connect",
    "init_invitation_tables",
]
