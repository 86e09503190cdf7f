"""Tests for NotificationDispatcher dispatch and drain."""

from __future__ import annotations

import sqlite3
from unittest.mock import MagicMock

from invitations.engine import InvitationEngine
from invitations.notifications.dispatcher import NotificationDispatcher
from invitations.notifications.models import OutboxStatus
from invitations.notifications.outbox import get_outbox_entry
from invitations.notifications.sink import InMemoryNotificationSink
from invitations.store import InvitationStore

INITIATOR = "recruiter-1"


def _failing_sink(error: Exception | None = None) -> MagicMock:
    sink = MagicMock()
    sink.deliver.side_effect = error or RuntimeError("sink offline")
    return sink


class TestDispatch:
    def test_delivers_and_marks_dispatched(
        self,
        engine: InvitationEngine,
        sink: InMemoryNotificationSink,
        conn: sqlite3.Connection,
    ) -> None:
        result = engine.create_invitation("J1", "C1", INITIATOR)

        assert result.warnings == []
        assert len(sink.delivered) == 1
        record, channels = sink.delivered[0]
        assert record.id == result.notification_id
        assert channels == record.channels
        assert get_outbox_entry(conn, record.id).status == OutboxStatus.DISPATCHED

    def test_already_dispatched_is_noop(
        self,
        engine: InvitationEngine,
        dispatcher: NotificationDispatcher,
        sink: InMemoryNotificationSink,
    ) -> None:
        result = engine.create_invitation("J1", "C1", INITIATOR)

        assert dispatcher.dispatch(result.notification_id) is None
        assert len(sink.delivered) == 1

    def test_unknown_notification_returns_warning(self, dispatcher: NotificationDispatcher) -> None:
        warning = dispatcher.dispatch("missing")
        assert warning is not None
        assert "missing" in warning

    def test_failure_is_warning_and_recorded(self, store: InvitationStore, conn: sqlite3.Connection, directory, clock) -> None:
        failing = NotificationDispatcher(store, _failing_sink(), max_attempts=2, initial_wait=0)
        engine = InvitationEngine(store, directory, directory, failing, clock=clock)

        result = engine.create_invitation("J1", "C1", INITIATOR)

        assert len(result.warnings) == 1
        assert "sink offline" in result.warnings[0]
        assert store.get(result.invitation.id).status == "pending"
        entry = get_outbox_entry(conn, result.notification_id)
        assert entry.status == OutboxStatus.FAILED
        assert entry.attempts == 1
        assert entry.last_error == "sink offline"

    def test_retries_before_giving_up(self, store: InvitationStore, directory, clock) -> None:
        sink = _failing_sink()
        failing = NotificationDispatcher(store, sink, max_attempts=3, initial_wait=0)
        engine = InvitationEngine(store, directory, directory, failing, clock=clock)

        engine.create_invitation("J1", "C1", INITIATOR)

        assert sink.deliver.call_count == 3

    def test_transient_failure_recovers(self, store: InvitationStore, conn, directory, clock) -> None:
        sink = MagicMock()
        sink.deliver.side_effect = [RuntimeError("blip"), None]
        flaky = NotificationDispatcher(store, sink, max_attempts=3, initial_wait=0)
        engine = InvitationEngine(store, directory, directory, flaky, clock=clock)

        result = engine.create_invitation("J1", "C1", INITIATOR)

        assert result.warnings == []
        assert get_outbox_entry(conn, result.notification_id).status == OutboxStatus.DISPATCHED


class TestDrain:
    def test_replays_undelivered_entries(
        self,
        store: InvitationStore,
        conn: sqlite3.Connection,
        directory,
        clock,
    ) -> None:
        engine = InvitationEngine(store, directory, directory, dispatcher=None, clock=clock)
        first = engine.create_invitation("J1", "C1", INITIATOR)
        second = engine.create_invitation("J1", "C2", INITIATOR)
        assert get_outbox_entry(conn, first.notification_id).status == OutboxStatus.PENDING

        sink = InMemoryNotificationSink()
        counts = NotificationDispatcher(store, sink, max_attempts=1, initial_wait=0).drain()

        assert counts == {"dispatched": 2, "failed": 0}
        assert [r.id for r, _ in sink.delivered] == [first.notification_id, second.notification_id]

    def test_counts_failures(self, store: InvitationStore, directory, clock) -> None:
        engine = InvitationEngine(store, directory, directory, dispatcher=None, clock=clock)
        engine.create_invitation("J1", "C1", INITIATOR)

        failing = NotificationDispatcher(store, _failing_sink(), max_attempts=1, initial_wait=0)

        assert failing.drain() == {"dispatched": 0, "failed": 1}
        assert failing.drain(max_attempts=1) == {"dispatched": 0, "failed": 0}
