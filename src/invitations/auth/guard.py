"""Authorization guard: verify the caller is the legitimate party for an action.

Runs before any state is touched, so a refused caller never causes a
partial write.
"""

from __future__ import annotations

import structlog

from invitations.collaborators import IdentityResolver
from invitations.domain.errors import UnauthorizedError
from invitations.domain.models import Invitation
from invitations.domain.types import Role

logger = structlog.get_logger()


class AuthorizationGuard:
    """Resolve callers to roles on a given invitation.

    Args:
        resolver: Maps an organization to its designated representative.
    """

    def __init__(self, resolver: IdentityResolver) -> None:
        self._resolver = resolver

    def role_of(self, invitation: Invitation, caller_id: str) -> Role | None:
        """Return the caller's role on *invitation*, or ``None`` if unrelated."""
        if caller_id == invitation.initiator_id:
            return Role.INITIATOR
        representative = self._resolver.representative_of(invitation.target_org_id)
        if representative is not None and caller_id == representative:
            return Role.COUNTERPARTY
        return None

    def require(self, invitation: Invitation, caller_id: str, role: Role, action: str) -> None:
        """Ensure *caller_id* holds *role* on *invitation*.

        Raises:
            UnauthorizedError: If the caller does not hold the role.
        """
        if role == Role.INITIATOR:
            allowed = caller_id == invitation.initiator_id
        elif role == Role.COUNTERPARTY:
            representative = self._resolver.representative_of(invitation.target_org_id)
            allowed = representative is not None and caller_id == representative
        else:
            allowed = False

        if not allowed:
            logger.warning(
                "Unauthorized invitation action",
                invitation_id=invitation.id,
                caller_id=caller_id,
                action=action,
                required_role=role.value,
            )
            raise UnauthorizedError(caller_id, action)

    def require_participant(self, invitation: Invitation, caller_id: str, action: str) -> Role:
        """Ensure *caller_id* is either party; return their role.

        Raises:
            UnauthorizedError: If the caller is neither party.
        """
        role = self.role_of(invitation, caller_id)
        if role is None:
            raise UnauthorizedError(caller_id, action)
        return role
