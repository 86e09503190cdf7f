"""Authorization checks for invitation actions."""

from invitations.auth.guard import AuthorizationGuard

__all__ = ["AuthorizationGuard"]
