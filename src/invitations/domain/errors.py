"""Domain-specific exception classes for the invitation engine.

Every error here is recoverable by the caller: retry, correct the input, or
surface the message to the end user.
"""

from __future__ import annotations

from invitations.domain.types import InvitationAction, InvitationStatus, Role


class InvitationError(Exception):
    """Base class for all domain errors in the invitation engine."""


class NotFoundError(InvitationError):
    """Raised when an invitation, engagement, or organization does not resolve.

    Attributes:
        kind: The kind of entity that was looked up.
        identifier: The identifier that failed to resolve.
    """

    def __init__(self, kind: str, identifier: str) -> None:
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} '{identifier}' not found")


class UnauthorizedError(InvitationError):
    """Raised when the caller is not the legitimate party for an action.

    Attributes:
        caller_id: The identity that attempted the action.
        action: The action that was refused.
    """

    def __init__(self, caller_id: str, action: str) -> None:
        self.caller_id = caller_id
        self.action = action
        super().__init__(f"Caller '{caller_id}' is not authorized to {action} this invitation")


class IllegalTransitionError(InvitationError):
    """Raised when an action is not valid from the invitation's current status.

    Attributes:
        status: The status the invitation was in.
        action: The action that was rejected.
        role: The role that attempted it.
        reason: Optional extra context (e.g. "invitation has expired").
    """

    def __init__(
        self,
        status: InvitationStatus,
        action: InvitationAction | str,
        role: Role | None = None,
        reason: str | None = None,
    ) -> None:
        self.status = status
        self.action = action
        self.role = role
        self.reason = reason
        message = f"Cannot apply action '{action}' in status '{status}'"
        if role is not None:
            message += f" as {role}"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class AlreadyExistsError(InvitationError):
    """Raised when an active invitation already exists for the pair.

    Attributes:
        engagement_id: The engagement of the attempted invitation.
        target_org_id: The target organization of the attempted invitation.
        existing_id: ID of the active invitation that blocked the insert.
    """

    def __init__(self, engagement_id: str, target_org_id: str, existing_id: str | None) -> None:
        self.engagement_id = engagement_id
        self.target_org_id = target_org_id
        self.existing_id = existing_id
        super().__init__(
            f"An active invitation already exists for engagement '{engagement_id}' "
            f"and organization '{target_org_id}'"
        )


class ConflictError(InvitationError):
    """Raised when an optimistic-concurrency check fails on update.

    Attributes:
        invitation_id: The invitation whose version moved.
        expected_version: The version the caller read.
    """

    def __init__(self, invitation_id: str, expected_version: int) -> None:
        self.invitation_id = invitation_id
        self.expected_version = expected_version
        super().__init__(
            f"Invitation '{invitation_id}' changed since version {expected_version}; retry"
        )


class InvitationValidationError(InvitationError):
    """Raised when required input is missing or malformed."""


class StoreBusyError(InvitationError):
    """Raised when the store could not be acquired within its timeout.

    Attributes:
        timeout: Seconds waited before giving up.
    """

    def __init__(self, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(f"Invitation store busy; gave up after {timeout}s")
