"""Domain enumerations for the invitation negotiation engine."""

from enum import StrEnum


class InvitationStatus(StrEnum):
    """States in the invitation lifecycle."""

    PENDING = "pending"
    NEGOTIATING = "negotiating"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    EXPIRED = "expired"


class Role(StrEnum):
    """The party performing an action on an invitation."""

    INITIATOR = "initiator"
    COUNTERPARTY = "counterparty"
    SYSTEM = "system"


class InvitationAction(StrEnum):
    """Actions that can trigger status transitions."""

    ACCEPT = "accept"
    DECLINE = "decline"
    COUNTER_PROPOSE = "counter_propose"
    RESPOND_ACCEPT = "respond_accept"
    RESPOND_DECLINE = "respond_decline"
    RESEND = "resend"
    EXPIRE = "expire"


class HistoryAction(StrEnum):
    """Actions recorded in the negotiation history ledger."""

    PROPOSED = "proposed"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    COUNTER_PROPOSED = "counter_proposed"
    RESEND = "resend"
    EXPIRED = "expired"
    WITHDRAWN = "withdrawn"
    CREATED = "created"


class VisitMode(StrEnum):
    """How a confirmed engagement takes place."""

    PHYSICAL = "physical"
    VIRTUAL = "virtual"
    HYBRID = "hybrid"


class NotificationPriority(StrEnum):
    """Priority attached to a notification record."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class Channel(StrEnum):
    """Delivery channels a notification may be requested on."""

    PLATFORM = "platform"
    EMAIL = "email"
    WHATSAPP = "whatsapp"
    PUSH = "push"


# Statuses in which the invitation is still awaiting a response.
OPEN_STATUSES: frozenset[InvitationStatus] = frozenset(
    {InvitationStatus.PENDING, InvitationStatus.NEGOTIATING}
)
