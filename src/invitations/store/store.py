"""SQLite-backed invitation store with atomic create and conditional updates.

Mirrors the audit store pattern: accepts a sqlite3.Connection, uses
parameterized queries exclusively, and commits synchronously after writes.
Every write runs in a single transaction so a transition is either fully
applied (row, history entries, outbox entry) or not applied at all.
"""

from __future__ import annotations

import sqlite3
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import Any

import structlog

from invitations.domain.errors import (
    AlreadyExistsError,
    ConflictError,
    NotFoundError,
    StoreBusyError,
)
from invitations.domain.models import Invitation, format_ts
from invitations.domain.types import OPEN_STATUSES, InvitationStatus
from invitations.notifications.models import NotificationRecord
from invitations.notifications.outbox import enqueue_notification
from invitations.store.serializers import (
    history_entry_from_row,
    history_entry_to_row,
    invitation_from_row,
    invitation_to_row,
)

logger = structlog.get_logger()

Mutator = Callable[[Invitation], Invitation]
Notifier = Callable[[Invitation, Invitation], NotificationRecord | None]

_IMMUTABLE_FIELDS = ("id", "engagement_id", "target_org_id", "initiator_id")


class InvitationStore:
    """Persist and retrieve invitations in SQLite.

    The connection is shared, so all access goes through an internal
    re-entrant lock.  Cross-process safety comes from the version check in
    :meth:`conditional_update` and the partial unique index used by
    :meth:`create`.
    """

    def __init__(self, conn: sqlite3.Connection, lock_timeout: float = 5.0) -> None:
        """Initialize with an open database connection.

        Args:
            conn: An open sqlite3.Connection whose database already has the
                  invitation tables (see ``init_invitation_tables``).
            lock_timeout: Seconds to wait for the shared connection before
                raising :class:`StoreBusyError`.
        """
        self._conn = conn
        self._lock = threading.RLock()
        self._lock_timeout = lock_timeout

    @property
    def connection(self) -> sqlite3.Connection:
        return self._conn

    @property
    def lock(self) -> threading.RLock:
        """The lock guarding the shared connection; share it with other writers."""
        return self._lock

    @contextmanager
    def locked(self) -> Iterator[sqlite3.Connection]:
        """Hold the store lock and yield the shared connection.

        Raises:
            StoreBusyError: If the lock is not acquired within ``lock_timeout``.
        """
        if not self._lock.acquire(timeout=self._lock_timeout):
            logger.warning("Invitation store lock timed out", timeout=self._lock_timeout)
            raise StoreBusyError(self._lock_timeout)
        try:
            yield self._conn
        finally:
            self._lock.release()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _fetch(self, query: str, params: tuple[Any, ...] | list[Any]) -> list[dict[str, Any]]:
        cursor = self._conn.execute(query, params)
        columns = [d[0] for d in cursor.description]
        return [dict(zip(columns, row, strict=True)) for row in cursor.fetchall()]

    def _load_history(self, invitation_ids: list[str]) -> dict[str, list[Any]]:
        history: dict[str, list[Any]] = {i: [] for i in invitation_ids}
        if not invitation_ids:
            return history
        placeholders = ", ".join("?" for _ in invitation_ids)
        rows = self._fetch(
            f"SELECT * FROM invitation_history WHERE invitation_id IN ({placeholders}) "
            "ORDER BY invitation_id, seq",
            invitation_ids,
        )
        for row in rows:
            history[row["invitation_id"]].append(history_entry_from_row(row))
        return history

    def _hydrate(self, rows: list[dict[str, Any]]) -> list[Invitation]:
        history = self._load_history([r["id"] for r in rows])
        return [invitation_from_row(r, history[r["id"]]) for r in rows]

    def _insert_history(self, invitation: Invitation, start: int) -> None:
        self._conn.executemany(
            """
            INSERT INTO invitation_history (
                invitation_id, seq, timestamp, actor, action, details, proposed_schedule_json
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            [
                history_entry_to_row(invitation.id, seq, entry)
                for seq, entry in enumerate(invitation.history[start:], start=start)
            ],
        )

    # ------------------------------------------------------------------
    # Write operations
    # ------------------------------------------------------------------

    def create(
        self,
        invitation: Invitation,
        notification: NotificationRecord | None = None,
    ) -> Invitation:
        """Insert a new invitation if no active one exists for its pair.

        The duplicate check is the partial unique index itself, so two
        concurrent creates for the same pair cannot both succeed.

        Args:
            invitation: The invitation to insert.
            notification: Optional record to enqueue in the same transaction.

        Returns:
            The stored invitation.

        Raises:
            AlreadyExistsError: If an active invitation already exists for
                ``(engagement_id, target_org_id)``.
        """
        row = invitation_to_row(invitation)
        columns = ", ".join(row)
        placeholders = ", ".join("?" for _ in row)

        with self.locked():
            try:
                with self._conn:
                    self._conn.execute(
                        f"INSERT INTO invitations ({columns}) VALUES ({placeholders})",
                        tuple(row.values()),
                    )
                    self._insert_history(invitation, 0)
                    if notification is not None:
                        enqueue_notification(self._conn, notification)
            except sqlite3.IntegrityError as exc:
                existing = self.find_active(invitation.engagement_id, invitation.target_org_id)
                if existing is None:
                    raise
                logger.info(
                    "Active invitation already exists",
                    engagement_id=invitation.engagement_id,
                    target_org_id=invitation.target_org_id,
                    existing_id=existing.id,
                )
                raise AlreadyExistsError(
                    invitation.engagement_id, invitation.target_org_id, existing.id
                ) from exc
        return invitation

    def conditional_update(
        self,
        invitation_id: str,
        expected_version: int,
        mutator: Mutator,
        notify: Notifier | None = None,
    ) -> Invitation:
        """Apply *mutator* if the stored version still equals *expected_version*.

        The mutator receives the current invitation and returns the next one.
        New history entries, the row update, and the optional outbox record
        are written in one transaction.

        Args:
            invitation_id: The invitation to update.
            expected_version: The version the caller based its decision on.
            mutator: Pure function computing the next invitation.
            notify: Optional ``(before, after) -> NotificationRecord`` hook
                    whose result is enqueued atomically with the update.

        Returns:
            The updated invitation with its version incremented.

        Raises:
            NotFoundError: If the invitation does not exist.
            ConflictError: If the stored version moved since it was read.
            ValueError: If the mutator touched immutable fields or rewrote
                existing history.
        """
        with self.locked():
            current = self.get(invitation_id)
            if current.version != expected_version:
                raise ConflictError(invitation_id, expected_version)

            after = mutator(current)
            for field in _IMMUTABLE_FIELDS:
                if getattr(after, field) != getattr(current, field):
                    raise ValueError(f"{field} is immutable")
            if after.history[: len(current.history)] != current.history:
                raise ValueError("history is append-only")

            after = after.evolve(version=expected_version + 1)
            record = notify(current, after) if notify is not None else None

            row = invitation_to_row(after)
            row.pop("id")
            assignments = ", ".join(f"{column} = ?" for column in row)

            with self._conn:
                cursor = self._conn.execute(
                    f"UPDATE invitations SET {assignments} WHERE id = ? AND version = ?",
                    (*row.values(), invitation_id, expected_version),
                )
                if cursor.rowcount != 1:
                    raise ConflictError(invitation_id, expected_version)
                self._insert_history(after, len(current.history))
                if record is not None:
                    enqueue_notification(self._conn, record)

        return after

    # ------------------------------------------------------------------
    # Read operations
    # ------------------------------------------------------------------

    def get(self, invitation_id: str) -> Invitation:
        """Load one invitation with its full history.

        Raises:
            NotFoundError: If no invitation has this id.
        """
        with self.locked():
            rows = self._fetch("SELECT * FROM invitations WHERE id = ?", (invitation_id,))
            if not rows:
                raise NotFoundError("invitation", invitation_id)
            return self._hydrate(rows)[0]

    def find_active(self, engagement_id: str, target_org_id: str) -> Invitation | None:
        """Return the active invitation for the pair, if one exists."""
        with self.locked():
            rows = self._fetch(
                "SELECT * FROM invitations "
                "WHERE engagement_id = ? AND target_org_id = ? AND is_active = 1",
                (engagement_id, target_org_id),
            )
            return self._hydrate(rows)[0] if rows else None

    def _active_filter(
        self,
        engagement_id: str | None,
        target_org_id: str | None,
        status: InvitationStatus | None,
    ) -> tuple[str, list[Any]]:
        conditions = ["is_active = 1"]
        params: list[Any] = []
        if engagement_id is not None:
            conditions.append("engagement_id = ?")
            params.append(engagement_id)
        if target_org_id is not None:
            conditions.append("target_org_id = ?")
            params.append(target_org_id)
        if status is not None:
            conditions.append("status = ?")
            params.append(InvitationStatus(status).value)
        return "WHERE " + " AND ".join(conditions), params

    def list_active(
        self,
        *,
        engagement_id: str | None = None,
        target_org_id: str | None = None,
        status: InvitationStatus | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[Invitation]:
        """List active invitations, newest ``sent_at`` first.

        Args:
            engagement_id: Filter by engagement.
            target_org_id: Filter by target organization.
            status: Optional status filter.
            limit: Page size.
            offset: Number of rows to skip.
        """
        where, params = self._active_filter(engagement_id, target_org_id, status)
        with self.locked():
            rows = self._fetch(
                f"SELECT * FROM invitations {where} ORDER BY sent_at DESC LIMIT ? OFFSET ?",
                [*params, limit, offset],
            )
            return self._hydrate(rows)

    def count_active(
        self,
        *,
        engagement_id: str | None = None,
        target_org_id: str | None = None,
        status: InvitationStatus | None = None,
    ) -> int:
        """Count active invitations matching the same filters as :meth:`list_active`."""
        where, params = self._active_filter(engagement_id, target_org_id, status)
        with self.locked():
            row = self._conn.execute(f"SELECT COUNT(*) FROM invitations {where}", params).fetchone()
        return int(row[0])

    def count_open(self) -> int:
        """Count active invitations still awaiting a response."""
        open_values = sorted(s.value for s in OPEN_STATUSES)
        placeholders = ", ".join("?" for _ in open_values)
        with self.locked():
            row = self._conn.execute(
                f"SELECT COUNT(*) FROM invitations WHERE is_active = 1 AND status IN ({placeholders})",
                open_values,
            ).fetchone()
        return int(row[0])

    def find_expirable(self, now: datetime, limit: int = 500) -> list[Invitation]:
        """Return active open invitations whose ``expires_at`` is before *now*."""
        open_values = sorted(s.value for s in OPEN_STATUSES)
        placeholders = ", ".join("?" for _ in open_values)
        with self.locked():
            rows = self._fetch(
                "SELECT * FROM invitations "
                f"WHERE is_active = 1 AND status IN ({placeholders}) AND expires_at < ? "
                "ORDER BY expires_at ASC LIMIT ?",
                [*open_values, format_ts(now), limit],
            )
            return self._hydrate(rows)

    def response_rows(
        self,
        *,
        engagement_id: str | None = None,
        initiator_id: str | None = None,
        since: datetime | None = None,
    ) -> list[dict[str, Any]]:
        """Return ``status``, ``sent_at`` and ``responded_at`` of active invitations.

        Used by the statistics report.
        """
        conditions = ["is_active = 1"]
        params: list[Any] = []
        if engagement_id is not None:
            conditions.append("engagement_id = ?")
            params.append(engagement_id)
        if initiator_id is not None:
            conditions.append("initiator_id = ?")
            params.append(initiator_id)
        if since is not None:
            conditions.append("sent_at >= ?")
            params.append(format_ts(since))
        with self.locked():
            return self._fetch(
                "SELECT status, sent_at, responded_at FROM invitations WHERE "
                + " AND ".join(conditions),
                params,
            )
