"""Serialization helpers between invitation models and SQLite rows.

Timestamps are stored as fixed-width UTC strings
(``YYYY-MM-DDTHH:MM:SS.ffffffZ``) so that text ordering in SQL matches
chronological ordering.  Nested value objects are stored as JSON.
"""

from __future__ import annotations

from typing import Any

from pydantic import TypeAdapter

from invitations.domain.models import (
    ConfirmedSchedule,
    CounterProposal,
    HistoryEntry,
    Invitation,
    ScheduleWindow,
    format_ts,
    parse_ts,
)

_SCHEDULE = TypeAdapter(list[ScheduleWindow])


def dump_schedule(schedule: list[ScheduleWindow] | None) -> str | None:
    if schedule is None:
        return None
    return _SCHEDULE.dump_json(schedule).decode()


def load_schedule(raw: str | None) -> list[ScheduleWindow] | None:
    if raw is None:
        return None
    return _SCHEDULE.validate_json(raw)


def invitation_to_row(invitation: Invitation) -> dict[str, Any]:
    """Flatten an invitation (without its history) into column values."""
    return {
        "id": invitation.id,
        "engagement_id": invitation.engagement_id,
        "target_org_id": invitation.target_org_id,
        "initiator_id": invitation.initiator_id,
        "status": invitation.status.value,
        "message": invitation.message,
        "proposed_schedule_json": dump_schedule(invitation.proposed_schedule),
        "confirmed_schedule_json": (
            invitation.confirmed_schedule.model_dump_json()
            if invitation.confirmed_schedule is not None
            else None
        ),
        "counter_proposal_json": (
            invitation.counter_proposal.model_dump_json()
            if invitation.counter_proposal is not None
            else None
        ),
        "response_message": invitation.response_message,
        "sent_at": format_ts(invitation.sent_at),
        "responded_at": (
            format_ts(invitation.responded_at) if invitation.responded_at is not None else None
        ),
        "expires_at": format_ts(invitation.expires_at),
        "reminders_sent": invitation.reminders_sent,
        "is_active": 1 if invitation.is_active else 0,
        "last_updated": format_ts(invitation.last_updated),
        "updated_by": invitation.updated_by,
        "version": invitation.version,
    }


def history_entry_to_row(invitation_id: str, seq: int, entry: HistoryEntry) -> tuple[Any, ...]:
    """Return the parameter tuple for one ``invitation_history`` insert."""
    return (
        invitation_id,
        seq,
        format_ts(entry.timestamp),
        entry.actor.value,
        entry.action.value,
        entry.details,
        dump_schedule(entry.proposed_schedule),
    )


def history_entry_from_row(row: dict[str, Any]) -> HistoryEntry:
    return HistoryEntry(
        timestamp=parse_ts(row["timestamp"]),
        actor=row["actor"],
        action=row["action"],
        details=row["details"],
        proposed_schedule=load_schedule(row["proposed_schedule_json"]),
    )


def invitation_from_row(row: dict[str, Any], history: list[HistoryEntry]) -> Invitation:
    """Rebuild an invitation from its column values and ordered history."""
    confirmed = row["confirmed_schedule_json"]
    counter = row["counter_proposal_json"]
    return Invitation(
        id=row["id"],
        engagement_id=row["engagement_id"],
        target_org_id=row["target_org_id"],
        initiator_id=row["initiator_id"],
        status=row["status"],
        message=row["message"],
        proposed_schedule=load_schedule(row["proposed_schedule_json"]) or [],
        confirmed_schedule=(
            ConfirmedSchedule.model_validate_json(confirmed) if confirmed is not None else None
        ),
        counter_proposal=(
            CounterProposal.model_validate_json(counter) if counter is not None else None
        ),
        response_message=row["response_message"],
        history=history,
        sent_at=parse_ts(row["sent_at"]),
        responded_at=parse_ts(row["responded_at"]) if row["responded_at"] else None,
        expires_at=parse_ts(row["expires_at"]),
        reminders_sent=row["reminders_sent"],
        is_active=bool(row["is_active"]),
        last_updated=parse_ts(row["last_updated"]),
        updated_by=row["updated_by"],
        version=row["version"],
    )
