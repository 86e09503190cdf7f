"""Domain types, models, and errors for the invitation engine."""

from invitations.domain.errors import (
    AlreadyExistsError,
    ConflictError,
    IllegalTransitionError,
    InvitationError,
    InvitationValidationError,
    NotFoundError,
    StoreBusyError,
    UnauthorizedError,
)
from invitations.domain.models import (
    ConfirmedSchedule,
    CounterProposal,
    HistoryEntry,
    Invitation,
    ScheduleWindow,
)
from invitations.domain.types import (
    OPEN_STATUSES,
    Channel,
    HistoryAction,
    InvitationAction,
    InvitationStatus,
    NotificationPriority,
    Role,
    VisitMode,
)

__all__ = [
    "OPEN_STATUSES",
    "AlreadyExistsError",
    "Channel",
    "ConfirmedSchedule",
    "ConflictError",
    "CounterProposal",
    "HistoryAction",
    "HistoryEntry",
    "IllegalTransitionError",
    "Invitation",
    "InvitationAction",
    "InvitationError",
    "InvitationStatus",
    "InvitationValidationError",
    "NotFoundError",
    "NotificationPriority",
    "Role",
    "ScheduleWindow",
    "StoreBusyError",
    "UnauthorizedError",
    "VisitMode",
]
