"""Notification record models emitted on every successful transition."""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from invitations.domain.types import Channel, NotificationPriority, Role


class NotificationType(StrEnum):
    """Kinds of invitation notifications."""

    INVITATION_RECEIVED = "job_invitation"
    INVITATION_ACCEPTED = "invitation_accepted"
    INVITATION_DECLINED = "invitation_declined"
    COUNTER_PROPOSAL = "invitation_counter_proposal"
    COUNTER_ACCEPTED = "counter_proposal_accepted"
    COUNTER_DECLINED = "counter_proposal_declined"
    INVITATION_RESENT = "invitation_resent"
    INVITATION_EXPIRED = "invitation_expired"
    INVITATION_WITHDRAWN = "invitation_withdrawn"
    INVITATION_REMINDER = "invitation_reminder"


class OutboxStatus(StrEnum):
    """Delivery state of an outbox entry."""

    PENDING = "pending"
    DISPATCHED = "dispatched"
    FAILED = "failed"


class NotificationRecord(BaseModel):
    """A notification describing one invitation event, addressed to the other party."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    invitation_id: str
    recipient_id: str
    recipient_role: Role
    sender_id: str | None = None
    notification_type: NotificationType
    title: str
    message: str
    priority: NotificationPriority
    channels: list[Channel]
    action_url: str
    related_engagement_id: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime


class OutboxEntry(BaseModel):
    """A persisted notification owed to a recipient, awaiting dispatch."""

    id: int
    record: NotificationRecord
    status: OutboxStatus
    attempts: int = 0
    last_error: str | None = None
    created_at: str
    dispatched_at: str | None = None
