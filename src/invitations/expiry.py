"""Expiry policy: validity windows, the expiry predicate, and the sweep.

The engine never polls the clock on its own.  An external scheduler runs
:func:`sweep_expired` (via ``invitations sweep``) which moves overdue open
invitations to ``expired`` through the regular transition path.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import structlog

from invitations.domain.errors import ConflictError, IllegalTransitionError, InvitationValidationError
from invitations.domain.models import Invitation, utc
from invitations.domain.types import OPEN_STATUSES

if TYPE_CHECKING:
    from invitations.engine import InvitationEngine

logger = structlog.get_logger()

DEFAULT_VALIDITY_WINDOW = timedelta(days=7)


def compute_expires_at(now: datetime, window: timedelta | None = None) -> datetime:
    """Return the expiry instant for an invitation sent at *now*.

    Args:
        now: The send time.
        window: Validity duration; defaults to seven days.

    Returns:
        ``now + window`` as an aware UTC datetime.

    Raises:
        InvitationValidationError: If the window is zero or negative.
    """
    window = DEFAULT_VALIDITY_WINDOW if window is None else window
    if window <= timedelta(0):
        raise InvitationValidationError(f"validity window must be positive, got {window}")
    return utc(now) + window


def is_expired(invitation: Invitation, now: datetime) -> bool:
    """Return True if *invitation* is past due and still awaiting a response."""
    return utc(now) > invitation.expires_at and invitation.status in OPEN_STATUSES


def sweep_expired(
    engine: InvitationEngine,
    now: datetime | None = None,
    limit: int = 500,
) -> list[str]:
    """Expire every overdue open invitation in one pass.

    Records that changed concurrently (responded to, or already expired by a
    parallel sweep) are skipped rather than failing the whole pass.

    Args:
        engine: The engine whose store is swept.
        now: Reference time; defaults to the current UTC time.
        limit: Maximum number of records handled in this pass.

    Returns:
        IDs of the invitations that were moved to ``expired``.
    """
    now = utc(now) if now is not None else datetime.now(tz=UTC)
    expired_ids: list[str] = []

    for invitation in engine.store.find_expirable(now, limit=limit):
        try:
            engine.expire(invitation.id, now=now)
        except (ConflictError, IllegalTransitionError) as exc:
            logger.info("Skipping invitation during expiry sweep", invitation_id=invitation.id, reason=str(exc))
            continue
        expired_ids.append(invitation.id)

    logger.info("Expiry sweep complete", expired=len(expired_ids))
    return expired_ids
