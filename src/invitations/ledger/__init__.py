"""Append-only negotiation history ledger and timeline reconstruction."""

from invitations.ledger.history import (
    TimelineEvent,
    append_event,
    next_timestamp,
    reconstruct_timeline,
)

__all__ = [
    "TimelineEvent",
    "append_event",
    "next_timestamp",
    "reconstruct_timeline",
]
