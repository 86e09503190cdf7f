"""Invitation engine: the operations callers perform on invitations.

Every mutating operation follows the same path:

1. Resolve the caller's role with the :class:`AuthorizationGuard` (nothing is
   written when this fails).
2. Validate the action against the transition table and the expiry policy.
3. Apply the action's side effects through ``InvitationStore.conditional_update``,
   which appends the ledger entry and enqueues the notification in the same
   transaction.  Version conflicts are retried against the fresh state.
4. Hand the committed notification to the dispatcher.  Delivery failures
   come back as warnings on the result and never undo the transition.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

import structlog

from invitations.auth.guard import AuthorizationGuard
from invitations.collaborators import Engagement, EngagementDirectory, IdentityResolver
from invitations.domain.errors import (
    AlreadyExistsError,
    IllegalTransitionError,
    InvitationValidationError,
    NotFoundError,
    UnauthorizedError,
)
from invitations.domain.models import (
    ConfirmedSchedule,
    CounterProposal,
    HistoryEntry,
    Invitation,
    ScheduleWindow,
    utc,
)
from invitations.domain.types import (
    OPEN_STATUSES,
    HistoryAction,
    InvitationAction,
    InvitationStatus,
    Role,
)
from invitations.expiry import DEFAULT_VALIDITY_WINDOW, compute_expires_at, is_expired
from invitations.ledger.history import TimelineEvent, append_event, reconstruct_timeline
from invitations.notifications.builder import build_notification
from invitations.notifications.dispatcher import NotificationDispatcher
from invitations.notifications.models import NotificationRecord, NotificationType
from invitations.observability.metrics import ACTIVE_INVITATIONS, TRANSITIONS_TOTAL
from invitations.resilience.retry import conflict_retrying
from invitations.state_machine.machine import transition, valid_actions
from invitations.stats import DEFAULT_STATS_WINDOW, InvitationStats, compute_stats
from invitations.store.store import InvitationStore

logger = structlog.get_logger()

Clock = Callable[[], datetime]


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of a successful mutating operation.

    Attributes:
        invitation: The invitation as committed.
        notification_id: ID of the notification enqueued for this event, if any.
        warnings: Non-fatal problems, e.g. a notification that was not delivered.
    """

    invitation: Invitation
    notification_id: str | None = None
    warnings: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class BatchCreateResult:
    """Outcome of creating invitations for several organizations at once."""

    created: list[TransitionResult] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    @property
    def warnings(self) -> list[str]:
        return [w for result in self.created for w in result.warnings]


# Mutators receive the current invitation, the validated next status and the
# event time; they return the next invitation.
_Apply = Callable[[Invitation, InvitationStatus, datetime], Invitation]


class InvitationEngine:
    """Coordinate the guard, state machine, ledger, store and dispatcher.

    Args:
        store: Persistence for invitations, history and the outbox.
        directory: Engagement lookup.
        resolver: Organization to representative lookup.
        dispatcher: Delivers enqueued notifications after commit.  When
            ``None``, notifications stay in the outbox until drained.
        validity_window: Default time an invitation stays open.
        conflict_retry_attempts: Attempts per operation on version conflicts.
        clock: Returns the current time; injectable for tests.
    """

    def __init__(
        self,
        store: InvitationStore,
        directory: EngagementDirectory,
        resolver: IdentityResolver,
        dispatcher: NotificationDispatcher | None = None,
        *,
        validity_window: timedelta = DEFAULT_VALIDITY_WINDOW,
        conflict_retry_attempts: int = 3,
        clock: Clock | None = None,
    ) -> None:
        self.store = store
        self.guard = AuthorizationGuard(resolver)
        self._directory = directory
        self._resolver = resolver
        self._dispatcher = dispatcher
        self._validity_window = validity_window
        self._conflict_retry_attempts = conflict_retry_attempts
        self._clock = clock or (lambda: datetime.now(tz=UTC))

    def _now(self) -> datetime:
        return utc(self._clock())

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def _require_engagement(self, engagement_id: str, initiator_id: str) -> Engagement:
        engagement = self._directory.get_engagement(engagement_id)
        if engagement is None:
            raise NotFoundError("engagement", engagement_id)
        if engagement.initiator_id != initiator_id:
            raise UnauthorizedError(initiator_id, "invite organizations to")
        if not engagement.is_open:
            raise InvitationValidationError(
                f"engagement '{engagement_id}' is not open for invitations"
            )
        return engagement

    def _require_organization(self, target_org_id: str) -> None:
        if self._resolver.organization_name(target_org_id) is None:
            raise NotFoundError("organization", target_org_id)

    def create_invitation(
        self,
        engagement_id: str,
        target_org_id: str,
        initiator_id: str,
        message: str | None = None,
        proposed_schedule: list[ScheduleWindow] | None = None,
        validity_window: timedelta | None = None,
    ) -> TransitionResult:
        """Create a pending invitation and notify the organization.

        Args:
            engagement_id: The engagement the organization is invited to.
            target_org_id: The invited organization.
            initiator_id: The user sending the invitation; must own the engagement.
            message: Optional note to the organization.
            proposed_schedule: Dates offered by the initiator.
            validity_window: How long the invitation stays open.

        Returns:
            The created invitation with its notification outcome.

        Raises:
            NotFoundError: If the engagement or organization does not resolve.
            UnauthorizedError: If the initiator does not own the engagement.
            InvitationValidationError: If the engagement is closed or the
                window is not positive.
            AlreadyExistsError: If an active invitation exists for the pair.
        """
        engagement = self._require_engagement(engagement_id, initiator_id)
        self._require_organization(target_org_id)
        return self._create(engagement, target_org_id, message, proposed_schedule, validity_window)

    def _create(
        self,
        engagement: Engagement,
        target_org_id: str,
        message: str | None,
        proposed_schedule: list[ScheduleWindow] | None,
        validity_window: timedelta | None,
    ) -> TransitionResult:
        now = self._now()
        window = validity_window if validity_window is not None else self._validity_window
        schedule = list(proposed_schedule or [])

        invitation = Invitation(
            engagement_id=engagement.id,
            target_org_id=target_org_id,
            initiator_id=engagement.initiator_id,
            message=message,
            proposed_schedule=schedule,
            history=[
                HistoryEntry(
                    timestamp=now,
                    actor=Role.INITIATOR,
                    action=HistoryAction.PROPOSED,
                    details=message or "Invitation sent",
                    proposed_schedule=schedule or None,
                )
            ],
            sent_at=now,
            expires_at=compute_expires_at(now, window),
            last_updated=now,
            updated_by=engagement.initiator_id,
        )

        record = self._build_notification(
            invitation,
            NotificationType.INVITATION_RECEIVED,
            actor=Role.INITIATOR,
            sender_id=engagement.initiator_id,
            now=now,
        )
        created = self.store.create(invitation, record)

        TRANSITIONS_TOTAL.labels(action="create", status=created.status.value).inc()
        ACTIVE_INVITATIONS.inc()
        logger.info(
            "Invitation created",
            invitation_id=created.id,
            engagement_id=created.engagement_id,
            target_org_id=created.target_org_id,
            expires_at=created.expires_at.isoformat(),
        )
        return self._finish(created, record)

    def create_invitations(
        self,
        engagement_id: str,
        target_org_ids: Iterable[str],
        initiator_id: str,
        message: str | None = None,
        proposed_schedule: list[ScheduleWindow] | None = None,
        validity_window: timedelta | None = None,
    ) -> BatchCreateResult:
        """Invite several organizations to one engagement.

        Organizations that already hold an active invitation for the
        engagement are skipped, not treated as errors.  Every organization is
        resolved before anything is written.

        Returns:
            The created invitations and the skipped organization ids.

        Raises:
            NotFoundError: If the engagement or any organization does not resolve.
            UnauthorizedError: If the initiator does not own the engagement.
            InvitationValidationError: If the engagement is closed, no
                organization is given, or the window is not positive.
        """
        org_ids = list(dict.fromkeys(target_org_ids))
        if not org_ids:
            raise InvitationValidationError("at least one target organization is required")

        engagement = self._require_engagement(engagement_id, initiator_id)
        for org_id in org_ids:
            self._require_organization(org_id)

        created: list[TransitionResult] = []
        skipped: list[str] = []
        for org_id in org_ids:
            try:
                created.append(
                    self._create(engagement, org_id, message, proposed_schedule, validity_window)
                )
            except AlreadyExistsError:
                skipped.append(org_id)

        logger.info(
            "Batch invitations created",
            engagement_id=engagement_id,
            created=len(created),
            skipped=len(skipped),
        )
        return BatchCreateResult(created=created, skipped=skipped)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _check_actionable(
        self,
        invitation: Invitation,
        action: InvitationAction | str,
        role: Role,
        now: datetime,
        allow_overdue: bool = False,
    ) -> None:
        """Reject actions on withdrawn invitations and on overdue ones awaiting the sweep.

        Expiry itself is only accepted once the invitation is past due.
        """
        if not invitation.is_active:
            raise IllegalTransitionError(
                invitation.status, action, role, "invitation has been withdrawn"
            )
        if action == InvitationAction.EXPIRE:
            if invitation.status in OPEN_STATUSES and not is_expired(invitation, now):
                raise IllegalTransitionError(
                    invitation.status, action, role, "invitation has not expired yet"
                )
            return
        if allow_overdue or action == InvitationAction.RESEND:
            return
        if is_expired(invitation, now):
            raise IllegalTransitionError(invitation.status, action, role, "invitation has expired")

    def _apply(
        self,
        invitation_id: str,
        *,
        caller_id: str | None,
        role: Role,
        action: InvitationAction,
        notification_type: NotificationType,
        apply: _Apply,
        now: datetime | None = None,
    ) -> TransitionResult:
        """Run one table-driven transition with conflict retries."""
        captured: list[NotificationRecord] = []

        for attempt in conflict_retrying(self._conflict_retry_attempts):
            with attempt:
                captured.clear()
                event_time = utc(now) if now is not None else self._now()
                current = self.store.get(invitation_id)
                if role != Role.SYSTEM:
                    self.guard.require(current, caller_id or "", role, action)

                def mutate(inv: Invitation, event_time: datetime = event_time) -> Invitation:
                    self._check_actionable(inv, action, role, event_time)
                    next_status = transition(inv.status, role, action)
                    return apply(inv, next_status, event_time).evolve(
                        status=next_status,
                        last_updated=event_time,
                        updated_by=caller_id or role.value,
                    )

                def notify(
                    before: Invitation, after: Invitation, event_time: datetime = event_time
                ) -> NotificationRecord | None:
                    record = self._build_notification(
                        after, notification_type, actor=role, sender_id=caller_id, now=event_time
                    )
                    if record is not None:
                        captured.append(record)
                    return record

                before = current
                updated = self.store.conditional_update(
                    current.id, current.version, mutate, notify
                )

        self._track(before, updated, action)
        logger.info(
            "Invitation transitioned",
            invitation_id=updated.id,
            action=action.value,
            role=role.value,
            from_status=before.status.value,
            to_status=updated.status.value,
            version=updated.version,
        )
        return self._finish(updated, captured[0] if captured else None)

    def accept(
        self,
        invitation_id: str,
        caller_id: str,
        confirmed_schedule: ConfirmedSchedule,
        note: str | None = None,
    ) -> TransitionResult:
        """Accept a pending invitation on behalf of the invited organization.

        Raises:
            NotFoundError: If the invitation does not exist.
            UnauthorizedError: If the caller is not the organization's representative.
            IllegalTransitionError: If the invitation is not pending or is overdue.
        """

        def apply(inv: Invitation, status: InvitationStatus, now: datetime) -> Invitation:
            return inv.evolve(
                status=status,
                confirmed_schedule=confirmed_schedule,
                responded_at=now,
                response_message=note,
                history=append_event(
                    inv,
                    actor=Role.COUNTERPARTY,
                    action=HistoryAction.ACCEPTED,
                    details=note or "Invitation accepted",
                    now=now,
                ),
            )

        return self._apply(
            invitation_id,
            caller_id=caller_id,
            role=Role.COUNTERPARTY,
            action=InvitationAction.ACCEPT,
            notification_type=NotificationType.INVITATION_ACCEPTED,
            apply=apply,
        )

    def decline(
        self,
        invitation_id: str,
        caller_id: str,
        reason: str | None = None,
    ) -> TransitionResult:
        """Decline a pending or negotiating invitation as the invited organization."""

        def apply(inv: Invitation, status: InvitationStatus, now: datetime) -> Invitation:
            return inv.evolve(
                responded_at=now,
                response_message=reason,
                history=append_event(
                    inv,
                    actor=Role.COUNTERPARTY,
                    action=HistoryAction.DECLINED,
                    details=reason or "Invitation declined",
                    now=now,
                ),
            )

        return self._apply(
            invitation_id,
            caller_id=caller_id,
            role=Role.COUNTERPARTY,
            action=InvitationAction.DECLINE,
            notification_type=NotificationType.INVITATION_DECLINED,
            apply=apply,
        )

    def counter_propose(
        self,
        invitation_id: str,
        caller_id: str,
        alternative_schedule: list[ScheduleWindow],
        note: str | None = None,
        additional_requirements: str | None = None,
    ) -> TransitionResult:
        """Offer alternative dates on a pending invitation.

        Raises:
            InvitationValidationError: If no alternative dates are given.
        """
        if not alternative_schedule:
            raise InvitationValidationError("alternative_schedule must contain at least one window")
        schedule = list(alternative_schedule)

        def apply(inv: Invitation, status: InvitationStatus, now: datetime) -> Invitation:
            return inv.evolve(
                status=status,
                counter_proposal=CounterProposal(
                    alternative_schedule=schedule,
                    message=note,
                    additional_requirements=additional_requirements,
                    proposed_at=now,
                ),
                responded_at=now,
                response_message=note,
                history=append_event(
                    inv,
                    actor=Role.COUNTERPARTY,
                    action=HistoryAction.COUNTER_PROPOSED,
                    details=note or "Alternative dates proposed",
                    now=now,
                    proposed_schedule=schedule,
                ),
            )

        return self._apply(
            invitation_id,
            caller_id=caller_id,
            role=Role.COUNTERPARTY,
            action=InvitationAction.COUNTER_PROPOSE,
            notification_type=NotificationType.COUNTER_PROPOSAL,
            apply=apply,
        )

    def respond_to_counter(
        self,
        invitation_id: str,
        caller_id: str,
        accept: bool,
        final_schedule: ConfirmedSchedule | None = None,
        note: str | None = None,
    ) -> TransitionResult:
        """Accept or decline the organization's counter-proposal as the initiator.

        Accepting requires the final agreed dates in this call; the confirmed
        schedule is never derived from the proposal or counter-proposal.

        Raises:
            InvitationValidationError: If ``accept`` is set without ``final_schedule``.
        """
        if accept and final_schedule is None:
            raise InvitationValidationError("final_schedule is required to accept a counter proposal")

        if accept:
            action = InvitationAction.RESPOND_ACCEPT
            notification_type = NotificationType.COUNTER_ACCEPTED
            history_action = HistoryAction.ACCEPTED
            default_details = "Counter proposal accepted"
        else:
            action = InvitationAction.RESPOND_DECLINE
            notification_type = NotificationType.COUNTER_DECLINED
            history_action = HistoryAction.DECLINED
            default_details = "Counter proposal declined"

        def apply(inv: Invitation, status: InvitationStatus, now: datetime) -> Invitation:
            changes = {
                "history": append_event(
                    inv,
                    actor=Role.INITIATOR,
                    action=history_action,
                    details=note or default_details,
                    now=now,
                )
            }
            if accept:
                changes |= {"status": status, "confirmed_schedule": final_schedule}
            return inv.evolve(**changes)

        return self._apply(
            invitation_id,
            caller_id=caller_id,
            role=Role.INITIATOR,
            action=action,
            notification_type=notification_type,
            apply=apply,
        )

    def resend(
        self,
        invitation_id: str,
        caller_id: str,
        new_message: str | None = None,
        new_schedule: list[ScheduleWindow] | None = None,
        validity_window: timedelta | None = None,
    ) -> TransitionResult:
        """Reopen a declined or expired invitation with a fresh validity window.

        Raises:
            IllegalTransitionError: If the invitation is pending, negotiating or accepted.
            InvitationValidationError: If the window is not positive.
        """
        window = validity_window if validity_window is not None else self._validity_window
        if window <= timedelta(0):
            raise InvitationValidationError(f"validity window must be positive, got {window}")

        def apply(inv: Invitation, status: InvitationStatus, now: datetime) -> Invitation:
            return inv.evolve(
                status=status,
                responded_at=None,
                sent_at=now,
                expires_at=compute_expires_at(now, window),
                message=new_message if new_message is not None else inv.message,
                proposed_schedule=(
                    list(new_schedule) if new_schedule is not None else inv.proposed_schedule
                ),
                history=append_event(
                    inv,
                    actor=Role.INITIATOR,
                    action=HistoryAction.RESEND,
                    details=new_message or "Invitation resent",
                    now=now,
                    proposed_schedule=list(new_schedule) if new_schedule else None,
                ),
            )

        return self._apply(
            invitation_id,
            caller_id=caller_id,
            role=Role.INITIATOR,
            action=InvitationAction.RESEND,
            notification_type=NotificationType.INVITATION_RESENT,
            apply=apply,
        )

    def expire(self, invitation_id: str, now: datetime | None = None) -> TransitionResult:
        """Move an open invitation to ``expired``.  Called by the expiry sweep.

        Raises:
            IllegalTransitionError: If the invitation is not open or not yet past due.
        """

        def apply(inv: Invitation, status: InvitationStatus, now: datetime) -> Invitation:
            return inv.evolve(
                history=append_event(
                    inv,
                    actor=Role.SYSTEM,
                    action=HistoryAction.EXPIRED,
                    details="Invitation expired without a response",
                    now=now,
                ),
            )

        return self._apply(
            invitation_id,
            caller_id=None,
            role=Role.SYSTEM,
            action=InvitationAction.EXPIRE,
            notification_type=NotificationType.INVITATION_EXPIRED,
            apply=apply,
            now=now,
        )

    # ------------------------------------------------------------------
    # Status-independent initiator actions
    # ------------------------------------------------------------------

    def _initiator_update(
        self,
        invitation_id: str,
        caller_id: str,
        action: str,
        notification_type: NotificationType,
        allowed: frozenset[InvitationStatus],
        apply: Callable[[Invitation, datetime], Invitation],
        allow_overdue: bool = False,
    ) -> TransitionResult:
        captured: list[NotificationRecord] = []

        for attempt in conflict_retrying(self._conflict_retry_attempts):
            with attempt:
                captured.clear()
                now = self._now()
                current = self.store.get(invitation_id)
                self.guard.require(current, caller_id, Role.INITIATOR, action)

                def mutate(inv: Invitation, now: datetime = now) -> Invitation:
                    self._check_actionable(inv, action, Role.INITIATOR, now, allow_overdue)
                    if inv.status not in allowed:
                        raise IllegalTransitionError(
                            inv.status, action, Role.INITIATOR, f"invitation is {inv.status}"
                        )
                    return apply(inv, now).evolve(last_updated=now, updated_by=caller_id)

                def notify(
                    before: Invitation, after: Invitation, now: datetime = now
                ) -> NotificationRecord | None:
                    record = self._build_notification(
                        after, notification_type, actor=Role.INITIATOR, sender_id=caller_id, now=now
                    )
                    if record is not None:
                        captured.append(record)
                    return record

                before = current
                updated = self.store.conditional_update(current.id, current.version, mutate, notify)

        self._track(before, updated, action)
        logger.info("Invitation updated", invitation_id=updated.id, action=action)
        return self._finish(updated, captured[0] if captured else None)

    def withdraw(
        self,
        invitation_id: str,
        caller_id: str,
        reason: str | None = None,
    ) -> TransitionResult:
        """Soft-delete an invitation that has not been accepted.

        The record is kept with ``is_active = False``, which frees the
        ``(engagement, organization)`` pair for a new invitation.
        """

        def apply(inv: Invitation, now: datetime) -> Invitation:
            return inv.evolve(
                is_active=False,
                history=append_event(
                    inv,
                    actor=Role.INITIATOR,
                    action=HistoryAction.WITHDRAWN,
                    details=reason or "Invitation withdrawn",
                    now=now,
                ),
            )

        return self._initiator_update(
            invitation_id,
            caller_id,
            "withdraw",
            NotificationType.INVITATION_WITHDRAWN,
            frozenset(InvitationStatus) - {InvitationStatus.ACCEPTED},
            apply,
            allow_overdue=True,
        )

    def remind(self, invitation_id: str, caller_id: str) -> TransitionResult:
        """Send the organization a reminder about an invitation awaiting response."""

        def apply(inv: Invitation, now: datetime) -> Invitation:
            return inv.evolve(reminders_sent=inv.reminders_sent + 1)

        return self._initiator_update(
            invitation_id,
            caller_id,
            "remind",
            NotificationType.INVITATION_REMINDER,
            OPEN_STATUSES,
            apply,
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, invitation_id: str) -> Invitation:
        """Return one invitation.

        Raises:
            NotFoundError: If the invitation does not exist.
        """
        return self.store.get(invitation_id)

    def get_timeline(self, invitation_id: str) -> list[TimelineEvent]:
        """Return the invitation's events, earliest first."""
        return reconstruct_timeline(self.store.get(invitation_id))

    def available_actions(self, invitation_id: str, caller_id: str) -> list[str]:
        """Return the actions *caller_id* can take on the invitation right now.

        Raises:
            NotFoundError: If the invitation does not exist.
            UnauthorizedError: If the caller is neither party.
        """
        invitation = self.store.get(invitation_id)
        role = self.guard.require_participant(invitation, caller_id, "view")
        if not invitation.is_active:
            return []

        overdue = is_expired(invitation, self._now())
        actions: list[str] = [
            action
            for action in valid_actions(invitation.status, role)
            if action == InvitationAction.RESEND or not overdue
        ]
        if role == Role.INITIATOR:
            if invitation.status in OPEN_STATUSES and not overdue:
                actions.append("remind")
            if invitation.status != InvitationStatus.ACCEPTED:
                actions.append("withdraw")
        return actions

    @staticmethod
    def _check_list_filter(engagement_id: str | None, target_org_id: str | None) -> None:
        if (engagement_id is None) == (target_org_id is None):
            raise InvitationValidationError(
                "exactly one of engagement_id or target_org_id is required"
            )

    def list_active(
        self,
        engagement_id: str | None = None,
        target_org_id: str | None = None,
        status: InvitationStatus | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[Invitation]:
        """List active invitations for an engagement or an organization, newest first.

        Raises:
            InvitationValidationError: Unless exactly one of ``engagement_id``
                and ``target_org_id`` is given, or on a bad page size.
        """
        self._check_list_filter(engagement_id, target_org_id)
        if limit < 1 or offset < 0:
            raise InvitationValidationError("limit must be positive and offset non-negative")
        return self.store.list_active(
            engagement_id=engagement_id,
            target_org_id=target_org_id,
            status=status,
            limit=limit,
            offset=offset,
        )

    def count_active(
        self,
        engagement_id: str | None = None,
        target_org_id: str | None = None,
        status: InvitationStatus | None = None,
    ) -> int:
        """Count what :meth:`list_active` would return across all pages."""
        self._check_list_filter(engagement_id, target_org_id)
        return self.store.count_active(
            engagement_id=engagement_id, target_org_id=target_org_id, status=status
        )

    def stats(
        self,
        engagement_id: str | None = None,
        initiator_id: str | None = None,
        since: datetime | None = None,
    ) -> InvitationStats:
        """Aggregate active invitations sent since *since* (default: last 30 days)."""
        since = utc(since) if since is not None else self._now() - DEFAULT_STATS_WINDOW
        rows = self.store.response_rows(
            engagement_id=engagement_id, initiator_id=initiator_id, since=since
        )
        return compute_stats(rows, since=since)

    # ------------------------------------------------------------------
    # Notifications and bookkeeping
    # ------------------------------------------------------------------

    def _build_notification(
        self,
        invitation: Invitation,
        notification_type: NotificationType,
        *,
        actor: Role,
        sender_id: str | None,
        now: datetime,
    ) -> NotificationRecord | None:
        engagement = self._directory.get_engagement(invitation.engagement_id)
        record = build_notification(
            invitation,
            notification_type,
            actor=actor,
            sender_id=sender_id,
            representative_id=self._resolver.representative_of(invitation.target_org_id),
            now=now,
            engagement_title=engagement.title if engagement is not None else None,
            organization_name=self._resolver.organization_name(invitation.target_org_id),
        )
        if record is None:
            logger.warning(
                "No notification recipient resolved",
                invitation_id=invitation.id,
                target_org_id=invitation.target_org_id,
                notification_type=notification_type.value,
            )
        return record

    def _finish(self, invitation: Invitation, record: NotificationRecord | None) -> TransitionResult:
        if record is None:
            return TransitionResult(
                invitation=invitation,
                warnings=["no notification recipient could be resolved"],
            )
        warnings: list[str] = []
        if self._dispatcher is not None:
            warning = self._dispatcher.dispatch(record.id)
            if warning:
                warnings.append(warning)
        return TransitionResult(invitation=invitation, notification_id=record.id, warnings=warnings)

    @staticmethod
    def _track(before: Invitation, after: Invitation, action: str) -> None:
        TRANSITIONS_TOTAL.labels(action=str(action), status=after.status.value).inc()
        was_open = before.is_active and before.status in OPEN_STATUSES
        is_open = after.is_active and after.status in OPEN_STATUSES
        if is_open and not was_open:
            ACTIVE_INVITATIONS.inc()
        elif was_open and not is_open:
            ACTIVE_INVITATIONS.dec()
