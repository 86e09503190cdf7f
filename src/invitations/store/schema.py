"""SQLite schema for invitation persistence.

Provides the DDL for the invitation table, its append-only history table,
the notification outbox, and the delivered-notification table.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path


def connect(db_path: Path | str, timeout: float = 5.0) -> sqlite3.Connection:
    """Open a SQLite connection with WAL mode and foreign keys enabled.

    Args:
        db_path: Path to the database file, or ``":memory:"``.
        timeout: Seconds to wait on a locked database before failing.

    Returns:
        An open sqlite3.Connection shared across threads.
    """
    conn = sqlite3.connect(str(db_path), timeout=timeout, check_same_thread=False)
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    return conn


def init_invitation_tables(conn: sqlite3.Connection) -> None:
    """Create the invitation tables if they do not already exist.

    The partial UNIQUE index on ``(engagement_id, target_org_id)`` restricted
    to active rows is the single enforcement point for "one active
    invitation per pair": the existence check and the insert are one
    statement.

    Args:
        conn: An open sqlite3.Connection.
    """
    conn.execute("""
        CREATE TABLE IF NOT EXISTS invitations (
            id TEXT PRIMARY KEY,
            engagement_id TEXT NOT NULL,
            target_org_id TEXT NOT NULL,
            initiator_id TEXT NOT NULL,
            status TEXT NOT NULL,
            message TEXT,
            proposed_schedule_json TEXT NOT NULL DEFAULT '[]',
            confirmed_schedule_json TEXT,
            counter_proposal_json TEXT,
            response_message TEXT,
            sent_at TEXT NOT NULL,
            responded_at TEXT,
            expires_at TEXT NOT NULL,
            reminders_sent INTEGER NOT NULL DEFAULT 0,
            is_active INTEGER NOT NULL DEFAULT 1,
            last_updated TEXT NOT NULL,
            updated_by TEXT NOT NULL,
            version INTEGER NOT NULL DEFAULT 0
        )
    """)

    conn.execute("""
        CREATE UNIQUE INDEX IF NOT EXISTS idx_invitations_active_pair
        ON invitations (engagement_id, target_org_id)
        WHERE is_active = 1
    """)
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_invitations_status_expiry ON invitations (status, expires_at)"
    )
    conn.execute("CREATE INDEX IF NOT EXISTS idx_invitations_sent_at ON invitations (sent_at)")
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_invitations_target_org ON invitations (target_org_id)"
    )

    conn.execute("""
        CREATE TABLE IF NOT EXISTS invitation_history (
            invitation_id TEXT NOT NULL REFERENCES invitations (id),
            seq INTEGER NOT NULL,
            timestamp TEXT NOT NULL,
            actor TEXT NOT NULL,
            action TEXT NOT NULL,
            details TEXT NOT NULL,
            proposed_schedule_json TEXT,
            PRIMARY KEY (invitation_id, seq)
        )
    """)

    conn.execute("""
        CREATE TABLE IF NOT EXISTS notification_outbox (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            notification_id TEXT NOT NULL UNIQUE,
            invitation_id TEXT NOT NULL REFERENCES invitations (id),
            record_json TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'pending',
            attempts INTEGER NOT NULL DEFAULT 0,
            last_error TEXT,
            created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now')),
            dispatched_at TEXT
        )
    """)
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_outbox_status ON notification_outbox (status)"
    )

    conn.execute("""
        CREATE TABLE IF NOT EXISTS notifications (
            id TEXT PRIMARY KEY,
            invitation_id TEXT NOT NULL,
            recipient_id TEXT NOT NULL,
            notification_type TEXT NOT NULL,
            title TEXT NOT NULL,
            message TEXT NOT NULL,
            priority TEXT NOT NULL,
            channels TEXT NOT NULL,
            action_url TEXT NOT NULL,
            metadata TEXT,
            created_at TEXT NOT NULL
        )
    """)
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_notifications_recipient ON notifications (recipient_id)"
    )

    conn.commit()
