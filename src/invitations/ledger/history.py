"""Negotiation history ledger.

History entries are only ever appended.  Creation writes an explicit
``proposed`` entry, so the stored history is the whole timeline.  Records
written before that convention get a synthesized ``created`` event taken
from ``sent_at`` when the timeline is reconstructed.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from invitations.domain.models import HistoryEntry, Invitation, ScheduleWindow, utc
from invitations.domain.types import HistoryAction, Role


class TimelineEvent(BaseModel):
    """One event of a reconstructed invitation timeline."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    actor: Role
    action: HistoryAction
    details: str
    proposed_schedule: list[ScheduleWindow] | None = None
    synthetic: bool = False


def next_timestamp(invitation: Invitation, now: datetime) -> datetime:
    """Return *now*, clamped so it never precedes the last history entry."""
    now = utc(now)
    if invitation.history and invitation.history[-1].timestamp > now:
        return invitation.history[-1].timestamp
    return now


def append_event(
    invitation: Invitation,
    *,
    actor: Role,
    action: HistoryAction,
    details: str,
    now: datetime,
    proposed_schedule: list[ScheduleWindow] | None = None,
) -> list[HistoryEntry]:
    """Return the invitation's history with one new entry appended.

    The invitation itself is not modified; callers pass the returned list to
    :meth:`Invitation.evolve` inside a conditional update so the append and
    the status write land together.

    Args:
        invitation: The invitation whose ledger is extended.
        actor: Who performed the action.
        action: The ledger action.
        details: Human-readable description.
        now: The event time (clamped to keep the ledger monotonic).
        proposed_schedule: Dates attached to the event, if any.

    Returns:
        A new list containing every existing entry plus the new one.
    """
    entry = HistoryEntry(
        timestamp=next_timestamp(invitation, now),
        actor=actor,
        action=action,
        details=details,
        proposed_schedule=proposed_schedule,
    )
    return [*invitation.history, entry]


def reconstruct_timeline(invitation: Invitation) -> list[TimelineEvent]:
    """Build the chronologically sorted timeline of an invitation.

    Args:
        invitation: The invitation to describe.

    Returns:
        Timeline events, earliest first.
    """
    events = [
        TimelineEvent(
            timestamp=entry.timestamp,
            actor=entry.actor,
            action=entry.action,
            details=entry.details,
            proposed_schedule=entry.proposed_schedule,
        )
        for entry in invitation.history
    ]

    if not invitation.history or invitation.history[0].action != HistoryAction.PROPOSED:
        events.insert(
            0,
            TimelineEvent(
                timestamp=invitation.sent_at,
                actor=Role.INITIATOR,
                action=HistoryAction.CREATED,
                details="Invitation created and sent",
                synthetic=True,
            ),
        )

    # sorted() is stable, so same-timestamp events keep ledger order
    return sorted(events, key=lambda e: e.timestamp)
