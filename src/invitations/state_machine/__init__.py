"""Invitation state machine: the transition table and pure validation functions."""

from invitations.state_machine.machine import is_allowed, transition, valid_actions
from invitations.state_machine.transitions import ACTION_ROLES, TERMINAL_STATUSES, TRANSITIONS

__all__ = [
    "ACTION_ROLES",
    "TERMINAL_STATUSES",
    "TRANSITIONS",
    "is_allowed",
    "transition",
    "valid_actions",
]
