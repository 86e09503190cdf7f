"""Tests for the pure transition functions."""

from __future__ import annotations

import pytest

from invitations.domain.errors import IllegalTransitionError
from invitations.domain.types import InvitationAction, InvitationStatus, Role
from invitations.state_machine import is_allowed, transition, valid_actions


class TestTransition:
    def test_valid_transition_returns_next_status(self) -> None:
        result = transition(InvitationStatus.PENDING, Role.COUNTERPARTY, InvitationAction.ACCEPT)
        assert result == InvitationStatus.ACCEPTED

    def test_accept_twice_is_illegal(self) -> None:
        with pytest.raises(IllegalTransitionError, match="already accepted"):
            transition(InvitationStatus.ACCEPTED, Role.COUNTERPARTY, InvitationAction.ACCEPT)

    def test_wrong_role_names_required_role(self) -> None:
        with pytest.raises(IllegalTransitionError, match="performed by the counterparty") as exc:
            transition(InvitationStatus.PENDING, Role.INITIATOR, InvitationAction.ACCEPT)
        assert exc.value.role == Role.INITIATOR
        assert exc.value.status == InvitationStatus.PENDING

    @pytest.mark.parametrize(
        "status",
        [InvitationStatus.PENDING, InvitationStatus.NEGOTIATING, InvitationStatus.ACCEPTED],
    )
    def test_resend_only_from_declined_or_expired(self, status: InvitationStatus) -> None:
        with pytest.raises(IllegalTransitionError):
            transition(status, Role.INITIATOR, InvitationAction.RESEND)

    def test_counter_propose_twice_is_illegal(self) -> None:
        with pytest.raises(IllegalTransitionError):
            transition(
                InvitationStatus.NEGOTIATING, Role.COUNTERPARTY, InvitationAction.COUNTER_PROPOSE
            )

    def test_expire_from_declined_is_illegal(self) -> None:
        with pytest.raises(IllegalTransitionError):
            transition(InvitationStatus.DECLINED, Role.SYSTEM, InvitationAction.EXPIRE)


class TestIsAllowed:
    def test_allowed(self) -> None:
        assert is_allowed(InvitationStatus.DECLINED, Role.INITIATOR, InvitationAction.RESEND)

    def test_not_allowed(self) -> None:
        assert not is_allowed(InvitationStatus.DECLINED, Role.COUNTERPARTY, InvitationAction.RESEND)


class TestValidActions:
    def test_counterparty_on_pending(self) -> None:
        assert valid_actions(InvitationStatus.PENDING, Role.COUNTERPARTY) == [
            InvitationAction.ACCEPT,
            InvitationAction.COUNTER_PROPOSE,
            InvitationAction.DECLINE,
        ]

    def test_initiator_on_negotiating(self) -> None:
        assert valid_actions(InvitationStatus.NEGOTIATING, Role.INITIATOR) == [
            InvitationAction.RESPOND_ACCEPT,
            InvitationAction.RESPOND_DECLINE,
        ]

    def test_terminal_status_has_no_actions(self) -> None:
        for role in Role:
            assert valid_actions(InvitationStatus.ACCEPTED, role) == []
