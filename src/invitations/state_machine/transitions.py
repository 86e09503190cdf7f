"""Transition table defining all valid (status, action, role) -> status mappings."""

from invitations.domain.types import InvitationAction, InvitationStatus, Role

# All valid (current_status, action, role) -> next_status mappings.
# Any triple not in this dict is an illegal transition.
TRANSITIONS: dict[tuple[InvitationStatus, InvitationAction, Role], InvitationStatus] = {
    # From PENDING
    (InvitationStatus.PENDING, InvitationAction.ACCEPT, Role.COUNTERPARTY): (
        InvitationStatus.ACCEPTED
    ),
    (InvitationStatus.PENDING, InvitationAction.DECLINE, Role.COUNTERPARTY): (
        InvitationStatus.DECLINED
    ),
    (InvitationStatus.PENDING, InvitationAction.COUNTER_PROPOSE, Role.COUNTERPARTY): (
        InvitationStatus.NEGOTIATING
    ),
    (InvitationStatus.PENDING, InvitationAction.EXPIRE, Role.SYSTEM): InvitationStatus.EXPIRED,
    # From NEGOTIATING
    (InvitationStatus.NEGOTIATING, InvitationAction.RESPOND_ACCEPT, Role.INITIATOR): (
        InvitationStatus.ACCEPTED
    ),
    (InvitationStatus.NEGOTIATING, InvitationAction.RESPOND_DECLINE, Role.INITIATOR): (
        InvitationStatus.DECLINED
    ),
    (InvitationStatus.NEGOTIATING, InvitationAction.DECLINE, Role.COUNTERPARTY): (
        InvitationStatus.DECLINED
    ),
    (InvitationStatus.NEGOTIATING, InvitationAction.EXPIRE, Role.SYSTEM): (
        InvitationStatus.EXPIRED
    ),
    # From DECLINED
    (InvitationStatus.DECLINED, InvitationAction.RESEND, Role.INITIATOR): InvitationStatus.PENDING,
    # From EXPIRED
    (InvitationStatus.EXPIRED, InvitationAction.RESEND, Role.INITIATOR): InvitationStatus.PENDING,
}

# Statuses with no outgoing transitions at all.
TERMINAL_STATUSES: frozenset[InvitationStatus] = frozenset({InvitationStatus.ACCEPTED})

# The role each action must be performed by.
ACTION_ROLES: dict[InvitationAction, Role] = {
    action: role for (_, action, role) in TRANSITIONS
}
