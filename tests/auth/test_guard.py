"""Tests for the authorization guard."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from invitations.auth import AuthorizationGuard
from invitations.collaborators import StaticDirectory
from invitations.domain.errors import UnauthorizedError
from invitations.domain.models import Invitation
from invitations.domain.types import Role

NOW = datetime(2026, 1, 15, 12, 0, tzinfo=UTC)


@pytest.fixture
def invitation() -> Invitation:
    return Invitation(
        engagement_id="J1",
        target_org_id="C1",
        initiator_id="recruiter-1",
        sent_at=NOW,
        expires_at=NOW + timedelta(days=7),
        last_updated=NOW,
        updated_by="recruiter-1",
    )


@pytest.fixture
def guard(directory: StaticDirectory) -> AuthorizationGuard:
    return AuthorizationGuard(directory)


class TestRoleOf:
    def test_initiator(self, guard: AuthorizationGuard, invitation: Invitation) -> None:
        assert guard.role_of(invitation, "recruiter-1") == Role.INITIATOR

    def test_counterparty_representative(self, guard: AuthorizationGuard, invitation: Invitation) -> None:
        assert guard.role_of(invitation, "tpo-c1") == Role.COUNTERPARTY

    def test_other_organizations_representative(
        self, guard: AuthorizationGuard, invitation: Invitation
    ) -> None:
        assert guard.role_of(invitation, "tpo-c2") is None


class TestRequire:
    def test_initiator_passes(self, guard: AuthorizationGuard, invitation: Invitation) -> None:
        guard.require(invitation, "recruiter-1", Role.INITIATOR, "resend")

    def test_counterparty_cannot_act_as_initiator(
        self, guard: AuthorizationGuard, invitation: Invitation
    ) -> None:
        with pytest.raises(UnauthorizedError) as exc:
            guard.require(invitation, "tpo-c1", Role.INITIATOR, "resend")
        assert exc.value.caller_id == "tpo-c1"
        assert exc.value.action == "resend"

    def test_initiator_cannot_act_as_counterparty(
        self, guard: AuthorizationGuard, invitation: Invitation
    ) -> None:
        with pytest.raises(UnauthorizedError):
            guard.require(invitation, "recruiter-1", Role.COUNTERPARTY, "accept")

    def test_organization_without_representative(self, directory: StaticDirectory) -> None:
        guard = AuthorizationGuard(directory)
        invitation = Invitation(
            engagement_id="J1",
            target_org_id="C3",
            initiator_id="recruiter-1",
            sent_at=NOW,
            expires_at=NOW + timedelta(days=7),
            last_updated=NOW,
            updated_by="recruiter-1",
        )
        with pytest.raises(UnauthorizedError):
            guard.require(invitation, "anyone", Role.COUNTERPARTY, "accept")

    def test_system_role_is_never_granted_to_callers(
        self, guard: AuthorizationGuard, invitation: Invitation
    ) -> None:
        with pytest.raises(UnauthorizedError):
            guard.require(invitation, "recruiter-1", Role.SYSTEM, "expire")


class TestRequireParticipant:
    def test_returns_role(self, guard: AuthorizationGuard, invitation: Invitation) -> None:
        assert guard.require_participant(invitation, "tpo-c1", "view") == Role.COUNTERPARTY

    def test_rejects_outsider(self, guard: AuthorizationGuard, invitation: Invitation) -> None:
        with pytest.raises(UnauthorizedError):
            guard.require_participant(invitation, "stranger", "view")
