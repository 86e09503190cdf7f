"""Build notification records describing invitation events.

Each event is addressed to the other party: counterparty actions notify the
initiator, initiator actions notify the organization's representative, and
system expiry notifies the initiator so they can resend.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from invitations.domain.models import Invitation
from invitations.domain.types import Channel, NotificationPriority, Role
from invitations.notifications.models import NotificationRecord, NotificationType


@dataclass(frozen=True)
class NotificationTemplate:
    """Priority, channels and wording for one notification type."""

    priority: NotificationPriority
    channels: tuple[Channel, ...]
    title: str
    message: str


_URGENT_CHANNELS = (Channel.PLATFORM, Channel.EMAIL, Channel.WHATSAPP)

TEMPLATES: dict[NotificationType, NotificationTemplate] = {
    NotificationType.INVITATION_RECEIVED: NotificationTemplate(
        NotificationPriority.HIGH,
        _URGENT_CHANNELS,
        "New Invitation: {engagement}",
        "You have been invited to {engagement}. Please review and respond to the invitation.",
    ),
    NotificationType.INVITATION_ACCEPTED: NotificationTemplate(
        NotificationPriority.HIGH,
        _URGENT_CHANNELS,
        "Invitation Accepted: {engagement}",
        "{organization} has accepted your invitation and confirmed the schedule.",
    ),
    NotificationType.INVITATION_DECLINED: NotificationTemplate(
        NotificationPriority.MEDIUM,
        (Channel.PLATFORM, Channel.EMAIL),
        "Invitation Declined: {engagement}",
        "{organization} has declined your invitation.",
    ),
    NotificationType.COUNTER_PROPOSAL: NotificationTemplate(
        NotificationPriority.HIGH,
        _URGENT_CHANNELS,
        "Counter Proposal: {engagement}",
        "{organization} has proposed alternative dates.",
    ),
    NotificationType.COUNTER_ACCEPTED: NotificationTemplate(
        NotificationPriority.HIGH,
        _URGENT_CHANNELS,
        "Counter Proposal Accepted: {engagement}",
        "Your counter proposal has been accepted. The engagement is scheduled.",
    ),
    NotificationType.COUNTER_DECLINED: NotificationTemplate(
        NotificationPriority.HIGH,
        (Channel.PLATFORM, Channel.EMAIL),
        "Counter Proposal Declined: {engagement}",
        "Your counter proposal has been declined.",
    ),
    NotificationType.INVITATION_RESENT: NotificationTemplate(
        NotificationPriority.HIGH,
        _URGENT_CHANNELS,
        "Invitation Resent: {engagement}",
        "You have been invited again to {engagement}. Please review and respond.",
    ),
    NotificationType.INVITATION_EXPIRED: NotificationTemplate(
        NotificationPriority.LOW,
        (Channel.PLATFORM,),
        "Invitation Expired: {engagement}",
        "Your invitation to {organization} expired without a response.",
    ),
    NotificationType.INVITATION_WITHDRAWN: NotificationTemplate(
        NotificationPriority.MEDIUM,
        (Channel.PLATFORM, Channel.EMAIL),
        "Invitation Withdrawn: {engagement}",
        "The invitation to {engagement} has been withdrawn.",
    ),
    NotificationType.INVITATION_REMINDER: NotificationTemplate(
        NotificationPriority.MEDIUM,
        (Channel.PLATFORM, Channel.EMAIL),
        "Reminder: {engagement}",
        "An invitation to {engagement} is still awaiting your response.",
    ),
}


def invitation_link(invitation_id: str) -> str:
    """Deep link reference to an invitation."""
    return f"/invitations/{invitation_id}"


def build_notification(
    invitation: Invitation,
    notification_type: NotificationType,
    *,
    actor: Role,
    sender_id: str | None,
    representative_id: str | None,
    now: datetime,
    engagement_title: str | None = None,
    organization_name: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> NotificationRecord | None:
    """Synthesize the notification for one event on *invitation*.

    Args:
        invitation: The invitation after the event.
        notification_type: Which event happened.
        actor: Who caused the event; the recipient is the other party.
        sender_id: The acting user, if any.
        representative_id: The target organization's representative.
        now: Creation time of the record.
        engagement_title: Display name of the engagement.
        organization_name: Display name of the target organization.
        metadata: Extra structured context for delivery templates.

    Returns:
        The record, or ``None`` when the recipient cannot be resolved.
    """
    if actor == Role.INITIATOR:
        recipient_id, recipient_role = representative_id, Role.COUNTERPARTY
    else:
        recipient_id, recipient_role = invitation.initiator_id, Role.INITIATOR

    if recipient_id is None:
        return None

    template = TEMPLATES[notification_type]
    names = {
        "engagement": engagement_title or invitation.engagement_id,
        "organization": organization_name or invitation.target_org_id,
    }

    return NotificationRecord(
        invitation_id=invitation.id,
        recipient_id=recipient_id,
        recipient_role=recipient_role,
        sender_id=sender_id,
        notification_type=notification_type,
        title=template.title.format(**names),
        message=template.message.format(**names),
        priority=template.priority,
        channels=list(template.channels),
        action_url=invitation_link(invitation.id),
        related_engagement_id=invitation.engagement_id,
        metadata={
            "status": invitation.status.value,
            "expires_at": invitation.expires_at.isoformat(),
            **(metadata or {}),
        },
        created_at=now,
    )
