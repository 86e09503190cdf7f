"""Pydantic v2 models for the invitation aggregate and its value objects."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from itertools import pairwise
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from invitations.domain.types import (
    HistoryAction,
    InvitationStatus,
    Role,
    VisitMode,
)


def utc(value: datetime) -> datetime:
    """Return *value* as an aware UTC datetime (naive values are taken as UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def format_ts(value: datetime) -> str:
    """Render a datetime as a fixed-width UTC string that sorts chronologically."""
    return utc(value).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def parse_ts(value: str) -> datetime:
    """Parse a string produced by :func:`format_ts`."""
    return utc(datetime.fromisoformat(value))


def new_invitation_id() -> str:
    """Generate an opaque invitation identifier."""
    return uuid.uuid4().hex


class ScheduleWindow(BaseModel):
    """A date/time window offered by one of the parties."""

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime
    is_flexible: bool = False
    preferred_time_slots: list[str] = Field(default_factory=list)
    note: str | None = None

    @field_validator("start", "end")
    @classmethod
    def normalize_timezone(cls, v: datetime) -> datetime:
        return utc(v)

    @model_validator(mode="after")
    def end_must_not_precede_start(self) -> ScheduleWindow:
        """Ensure the window is not inverted."""
        if self.end < self.start:
            raise ValueError(f"end ({self.end}) must not precede start ({self.start})")
        return self


class ConfirmedSchedule(BaseModel):
    """The agreed engagement window, set only when an invitation is accepted."""

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime
    visit_mode: VisitMode = VisitMode.PHYSICAL
    capacity: int = 100

    @field_validator("start", "end")
    @classmethod
    def normalize_timezone(cls, v: datetime) -> datetime:
        return utc(v)

    @field_validator("capacity")
    @classmethod
    def capacity_must_be_positive(cls, v: int) -> int:
        """Ensure capacity is at least 1."""
        if v < 1:
            raise ValueError("capacity must be at least 1")
        return v

    @model_validator(mode="after")
    def end_must_not_precede_start(self) -> ConfirmedSchedule:
        """Ensure the confirmed window is not inverted."""
        if self.end < self.start:
            raise ValueError(f"end ({self.end}) must not precede start ({self.start})")
        return self


class CounterProposal(BaseModel):
    """Alternative dates offered by the counterparty."""

    model_config = ConfigDict(frozen=True)

    alternative_schedule: list[ScheduleWindow]
    message: str | None = None
    additional_requirements: str | None = None
    proposed_at: datetime

    @field_validator("alternative_schedule")
    @classmethod
    def schedule_must_not_be_empty(cls, v: list[ScheduleWindow]) -> list[ScheduleWindow]:
        """A counter-proposal without dates is meaningless."""
        if not v:
            raise ValueError("alternative_schedule must not be empty")
        return v

    @field_validator("proposed_at")
    @classmethod
    def normalize_timezone(cls, v: datetime) -> datetime:
        return utc(v)


class HistoryEntry(BaseModel):
    """A single append-only ledger event."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    actor: Role
    action: HistoryAction
    details: str
    proposed_schedule: list[ScheduleWindow] | None = None

    @field_validator("timestamp")
    @classmethod
    def normalize_timezone(cls, v: datetime) -> datetime:
        return utc(v)


class Invitation(BaseModel):
    """The invitation aggregate root.

    Instances are immutable; state changes produce a new instance through
    :meth:`evolve`, which re-runs every invariant check.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_invitation_id)
    engagement_id: str
    target_org_id: str
    initiator_id: str

    status: InvitationStatus = InvitationStatus.PENDING
    message: str | None = None
    proposed_schedule: list[ScheduleWindow] = Field(default_factory=list)
    confirmed_schedule: ConfirmedSchedule | None = None
    counter_proposal: CounterProposal | None = None
    response_message: str | None = None

    history: list[HistoryEntry] = Field(default_factory=list)

    sent_at: datetime
    responded_at: datetime | None = None
    expires_at: datetime
    reminders_sent: int = 0

    is_active: bool = True
    last_updated: datetime
    updated_by: str
    version: int = 0

    @field_validator("engagement_id", "target_org_id", "initiator_id")
    @classmethod
    def reference_must_not_be_empty(cls, v: str) -> str:
        """Foreign references must be non-blank."""
        if not v.strip():
            raise ValueError("reference ids must not be empty")
        return v

    @field_validator("sent_at", "expires_at", "last_updated")
    @classmethod
    def normalize_timezone(cls, v: datetime) -> datetime:
        return utc(v)

    @field_validator("responded_at")
    @classmethod
    def normalize_optional_timezone(cls, v: datetime | None) -> datetime | None:
        return utc(v) if v is not None else None

    @model_validator(mode="after")
    def check_invariants(self) -> Invitation:
        """Enforce the aggregate's cross-field invariants."""
        if self.expires_at <= self.sent_at:
            raise ValueError("expires_at must be later than sent_at")

        accepted = self.status == InvitationStatus.ACCEPTED
        if accepted != (self.confirmed_schedule is not None):
            raise ValueError("confirmed_schedule must be set if and only if status is accepted")

        if self.status == InvitationStatus.NEGOTIATING and self.counter_proposal is None:
            raise ValueError("a negotiating invitation must carry a counter_proposal")

        for earlier, later in pairwise(self.history):
            if later.timestamp < earlier.timestamp:
                raise ValueError("history timestamps must be non-decreasing")

        if self.reminders_sent < 0:
            raise ValueError("reminders_sent must not be negative")
        return self

    def evolve(self, **changes: Any) -> Invitation:
        """Return a validated copy of this invitation with *changes* applied."""
        data = self.model_dump()
        data.update(changes)
        return type(self).model_validate(data)
