"""Pure transition functions over the invitation transition table."""

from __future__ import annotations

from invitations.domain.errors import IllegalTransitionError
from invitations.domain.types import InvitationAction, InvitationStatus, Role
from invitations.state_machine.transitions import ACTION_ROLES, TERMINAL_STATUSES, TRANSITIONS


def transition(
    status: InvitationStatus,
    role: Role,
    action: InvitationAction,
) -> InvitationStatus:
    """Validate an action and compute the next status.

    This function never mutates anything; callers apply the returned status
    together with the action's side effects inside a conditional update.

    Args:
        status: The invitation's current status.
        role: The role of the party performing the action.
        action: The action being attempted.

    Returns:
        The status the invitation moves to.

    Raises:
        IllegalTransitionError: If ``(status, action, role)`` is not in the
            transition table.
    """
    if not is_allowed(status, role, action):
        reason = None
        if status in TERMINAL_STATUSES:
            reason = f"invitation is already {status}"
        elif ACTION_ROLES.get(action) not in (None, role):
            reason = f"{action} must be performed by the {ACTION_ROLES[action]}"
        raise IllegalTransitionError(status, action, role, reason)
    return TRANSITIONS[(status, action, role)]


def is_allowed(status: InvitationStatus, role: Role, action: InvitationAction) -> bool:
    """Return True if *role* may perform *action* from *status*."""
    return (status, action, role) in TRANSITIONS


def valid_actions(status: InvitationStatus, role: Role) -> list[InvitationAction]:
    """Return a sorted list of actions *role* may perform from *status*.

    Returns an empty list for terminal statuses.
    """
    return sorted(a for s, a, r in TRANSITIONS if s == status and r == role)
