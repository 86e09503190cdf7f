"""Shared pytest fixtures for the invitation engine test suite."""

from __future__ import annotations

import sqlite3
from datetime import UTC, datetime, timedelta

import pytest

from invitations.collaborators import Engagement, Organization, StaticDirectory
from invitations.domain.models import ConfirmedSchedule, ScheduleWindow
from invitations.engine import InvitationEngine
from invitations.notifications.dispatcher import NotificationDispatcher
from invitations.notifications.sink import InMemoryNotificationSink
from invitations.store import InvitationStore, connect, init_invitation_tables

START = datetime(2026, 1, 15, 12, 0, tzinfo=UTC)

INITIATOR = "recruiter-1"
REP_C1 = "tpo-c1"
REP_C2 = "tpo-c2"


class FakeClock:
    """A settable clock; call it to read the current time."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    """Clock starting at 2026-01-15 12:00 UTC."""
    return FakeClock(START)


@pytest.fixture
def directory() -> StaticDirectory:
    """Two engagements (one closed) and three organizations (one without representative)."""
    return StaticDirectory(
        engagements=[
            Engagement(id="J1", initiator_id=INITIATOR, title="Campus Hiring Drive"),
            Engagement(id="J2", initiator_id=INITIATOR, title="Closed Drive", is_open=False),
        ],
        organizations=[
            Organization(id="C1", name="Northfield Institute", representative_id=REP_C1),
            Organization(id="C2", name="Lakeside College", representative_id=REP_C2),
            Organization(id="C3", name="Riverside University"),
        ],
    )


@pytest.fixture
def conn() -> sqlite3.Connection:
    """In-memory SQLite connection with the invitation tables initialized."""
    connection = connect(":memory:")
    init_invitation_tables(connection)
    return connection


@pytest.fixture
def store(conn: sqlite3.Connection) -> InvitationStore:
    return InvitationStore(conn)


@pytest.fixture
def sink() -> InMemoryNotificationSink:
    return InMemoryNotificationSink()


@pytest.fixture
def dispatcher(store: InvitationStore, sink: InMemoryNotificationSink) -> NotificationDispatcher:
    """Dispatcher with a single attempt and no backoff."""
    return NotificationDispatcher(store, sink, max_attempts=1, initial_wait=0)


@pytest.fixture
def engine(
    store: InvitationStore,
    directory: StaticDirectory,
    dispatcher: NotificationDispatcher,
    clock: FakeClock,
) -> InvitationEngine:
    return InvitationEngine(store, directory, directory, dispatcher, clock=clock)


@pytest.fixture
def window() -> ScheduleWindow:
    """A one-day window a week after the invitation is sent."""
    return ScheduleWindow(start=START + timedelta(days=7), end=START + timedelta(days=7, hours=8))


@pytest.fixture
def confirmed() -> ConfirmedSchedule:
    return ConfirmedSchedule(start=START + timedelta(days=7), end=START + timedelta(days=7, hours=8))
