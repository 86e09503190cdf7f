"""Tests for the negotiation history ledger."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from invitations.domain.models import HistoryEntry, Invitation
from invitations.domain.types import HistoryAction, Role
from invitations.ledger import append_event, next_timestamp, reconstruct_timeline

NOW = datetime(2026, 1, 15, 12, 0, tzinfo=UTC)


def _invitation(history: list[HistoryEntry] | None = None) -> Invitation:
    return Invitation(
        engagement_id="J1",
        target_org_id="C1",
        initiator_id="recruiter-1",
        history=history or [],
        sent_at=NOW,
        expires_at=NOW + timedelta(days=7),
        last_updated=NOW,
        updated_by="recruiter-1",
    )


def _proposed() -> HistoryEntry:
    return HistoryEntry(
        timestamp=NOW, actor=Role.INITIATOR, action=HistoryAction.PROPOSED, details="Invitation sent"
    )


class TestAppendEvent:
    def test_appends_without_mutating(self) -> None:
        invitation = _invitation([_proposed()])

        history = append_event(
            invitation,
            actor=Role.COUNTERPARTY,
            action=HistoryAction.DECLINED,
            details="dates don't work",
            now=NOW + timedelta(hours=1),
        )

        assert len(history) == 2
        assert history[-1].details == "dates don't work"
        assert history[-1].actor == Role.COUNTERPARTY
        assert len(invitation.history) == 1

    def test_clock_going_backwards_is_clamped(self) -> None:
        invitation = _invitation([_proposed()])

        history = append_event(
            invitation,
            actor=Role.COUNTERPARTY,
            action=HistoryAction.ACCEPTED,
            details="ok",
            now=NOW - timedelta(minutes=5),
        )

        assert history[-1].timestamp == NOW

    def test_next_timestamp_on_empty_history(self) -> None:
        later = NOW + timedelta(days=1)
        assert next_timestamp(_invitation(), later) == later


class TestReconstructTimeline:
    def test_explicit_proposed_entry_is_not_duplicated(self) -> None:
        timeline = reconstruct_timeline(_invitation([_proposed()]))

        assert len(timeline) == 1
        assert timeline[0].action == HistoryAction.PROPOSED
        assert timeline[0].synthetic is False

    def test_legacy_record_gets_synthetic_created_event(self) -> None:
        declined = HistoryEntry(
            timestamp=NOW + timedelta(hours=2),
            actor=Role.COUNTERPARTY,
            action=HistoryAction.DECLINED,
            details="no",
        )

        timeline = reconstruct_timeline(_invitation([declined]))

        assert [e.action for e in timeline] == [HistoryAction.CREATED, HistoryAction.DECLINED]
        assert timeline[0].synthetic is True
        assert timeline[0].timestamp == NOW

    def test_empty_history_yields_only_created(self) -> None:
        timeline = reconstruct_timeline(_invitation())
        assert [e.action for e in timeline] == [HistoryAction.CREATED]

    def test_same_timestamp_events_keep_ledger_order(self) -> None:
        entries = [
            _proposed(),
            HistoryEntry(
                timestamp=NOW, actor=Role.COUNTERPARTY, action=HistoryAction.COUNTER_PROPOSED, details="x"
            ),
            HistoryEntry(timestamp=NOW, actor=Role.INITIATOR, action=HistoryAction.DECLINED, details="y"),
        ]

        timeline = reconstruct_timeline(_invitation(entries))

        assert [e.action for e in timeline] == [
            HistoryAction.PROPOSED,
            HistoryAction.COUNTER_PROPOSED,
            HistoryAction.DECLINED,
        ]
