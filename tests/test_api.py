"""Tests for the invitation HTTP routes.

The router is mounted on a minimal FastAPI app whose services dict holds an
engine backed by in-memory SQLite and a fixed clock.
"""

from __future__ import annotations

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from invitations.api import register_error_handlers, router
from invitations.domain.errors import StoreBusyError
from invitations.engine import InvitationEngine

INITIATOR = "recruiter-1"
REP_C1 = "tpo-c1"

WINDOW = {"start": "2026-01-25T09:00:00Z", "end": "2026-01-25T17:00:00Z"}


def _as(caller: str) -> dict[str, str]:
    return {"X-Caller-ID": caller}


@pytest.fixture()
def client(engine: InvitationEngine) -> TestClient:
    app = FastAPI()
    app.state.services = {"engine": engine}
    app.include_router(router)
    register_error_handlers(app)
    return TestClient(app)


@pytest.fixture()
def invitation_id(client: TestClient) -> str:
    resp = client.post(
        "/invitations",
        json={"engagement_id": "J1", "target_org_ids": ["C1"], "proposed_schedule": [WINDOW]},
        headers=_as(INITIATOR),
    )
    return resp.json()["created"][0]["invitation"]["id"]


class TestCreate:
    def test_creates_and_reports_skipped(self, client: TestClient, invitation_id: str) -> None:
        resp = client.post(
            "/invitations",
            json={"engagement_id": "J1", "target_org_ids": ["C1", "C2"], "validity_days": 3},
            headers=_as(INITIATOR),
        )

        assert resp.status_code == 201
        body = resp.json()
        assert body["skipped"] == ["C1"]
        created = body["created"][0]
        assert created["invitation"]["target_org_id"] == "C2"
        assert created["invitation"]["status"] == "pending"
        assert created["invitation"]["expires_at"].startswith("2026-01-18T12:00:00")
        assert created["notification_id"]
        assert created["warnings"] == []

    def test_missing_caller_header_is_401(self, client: TestClient) -> None:
        resp = client.post("/invitations", json={"engagement_id": "J1", "target_org_ids": ["C1"]})
        assert resp.status_code == 401

    def test_empty_target_list_is_422(self, client: TestClient) -> None:
        resp = client.post(
            "/invitations",
            json={"engagement_id": "J1", "target_org_ids": []},
            headers=_as(INITIATOR),
        )
        assert resp.status_code == 422

    def test_unknown_engagement_is_404(self, client: TestClient) -> None:
        resp = client.post(
            "/invitations",
            json={"engagement_id": "J9", "target_org_ids": ["C1"]},
            headers=_as(INITIATOR),
        )
        assert resp.status_code == 404
        assert resp.json()["error"] == "NotFoundError"


class TestTransitions:
    def test_accept(self, client: TestClient, invitation_id: str) -> None:
        resp = client.post(
            f"/invitations/{invitation_id}/accept",
            json={"confirmed_schedule": {**WINDOW, "visit_mode": "virtual", "capacity": 30}},
            headers=_as(REP_C1),
        )

        assert resp.status_code == 200
        invitation = resp.json()["invitation"]
        assert invitation["status"] == "accepted"
        assert invitation["confirmed_schedule"]["visit_mode"] == "virtual"
        assert invitation["version"] == 1

    def test_wrong_caller_is_403(self, client: TestClient, invitation_id: str) -> None:
        resp = client.post(
            f"/invitations/{invitation_id}/decline", json={}, headers=_as("tpo-c2")
        )
        assert resp.status_code == 403
        assert resp.json()["error"] == "UnauthorizedError"

    def test_illegal_transition_is_409(self, client: TestClient, invitation_id: str) -> None:
        client.post(f"/invitations/{invitation_id}/decline", json={}, headers=_as(REP_C1))

        resp = client.post(
            f"/invitations/{invitation_id}/decline", json={}, headers=_as(REP_C1)
        )

        assert resp.status_code == 409
        assert resp.json()["error"] == "IllegalTransitionError"

    def test_negotiation_round_trip(self, client: TestClient, invitation_id: str) -> None:
        countered = client.post(
            f"/invitations/{invitation_id}/counter-propose",
            json={"alternative_schedule": [WINDOW], "note": "Next week instead"},
            headers=_as(REP_C1),
        )
        assert countered.json()["invitation"]["status"] == "negotiating"

        missing_final = client.post(
            f"/invitations/{invitation_id}/counter-response",
            json={"accept": True},
            headers=_as(INITIATOR),
        )
        assert missing_final.status_code == 422

        accepted = client.post(
            f"/invitations/{invitation_id}/counter-response",
            json={"accept": True, "final_schedule": WINDOW},
            headers=_as(INITIATOR),
        )
        assert accepted.status_code == 200
        assert accepted.json()["invitation"]["status"] == "accepted"

    def test_resend_after_decline(self, client: TestClient, invitation_id: str) -> None:
        client.post(
            f"/invitations/{invitation_id}/decline", json={"reason": "busy"}, headers=_as(REP_C1)
        )

        resp = client.post(
            f"/invitations/{invitation_id}/resend",
            json={"message": "Try again?"},
            headers=_as(INITIATOR),
        )

        assert resp.status_code == 200
        invitation = resp.json()["invitation"]
        assert invitation["status"] == "pending"
        assert invitation["message"] == "Try again?"

    def test_remind_and_withdraw(self, client: TestClient, invitation_id: str) -> None:
        reminded = client.post(f"/invitations/{invitation_id}/remind", headers=_as(INITIATOR))
        assert reminded.json()["invitation"]["reminders_sent"] == 1

        withdrawn = client.post(
            f"/invitations/{invitation_id}/withdraw",
            json={"reason": "Drive cancelled"},
            headers=_as(INITIATOR),
        )
        assert withdrawn.json()["invitation"]["is_active"] is False


class TestQueries:
    def test_get_and_timeline(self, client: TestClient, invitation_id: str) -> None:
        client.post(f"/invitations/{invitation_id}/decline", json={}, headers=_as(REP_C1))

        invitation = client.get(f"/invitations/{invitation_id}")
        timeline = client.get(f"/invitations/{invitation_id}/timeline")

        assert invitation.json()["status"] == "declined"
        body = timeline.json()
        assert body["invitation_id"] == invitation_id
        assert [e["action"] for e in body["events"]] == ["proposed", "declined"]

    def test_unknown_invitation_is_404(self, client: TestClient) -> None:
        assert client.get("/invitations/missing").status_code == 404

    def test_busy_store_is_503(
        self, client: TestClient, engine: InvitationEngine, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def busy(invitation_id: str):
            raise StoreBusyError(0.05)

        monkeypatch.setattr(engine, "get", busy)

        resp = client.get("/invitations/anything")

        assert resp.status_code == 503
        assert resp.json()["error"] == "StoreBusyError"

    def test_list_by_engagement_and_organization(
        self, client: TestClient, invitation_id: str
    ) -> None:
        client.post(
            "/invitations",
            json={"engagement_id": "J1", "target_org_ids": ["C2"]},
            headers=_as(INITIATOR),
        )

        by_engagement = client.get("/engagements/J1/invitations", params={"limit": 1})
        by_org = client.get("/organizations/C1/invitations", params={"status": "pending"})

        page = by_engagement.json()
        assert page["total"] == 2
        assert page["limit"] == 1
        assert len(page["invitations"]) == 1
        assert [i["id"] for i in by_org.json()["invitations"]] == [invitation_id]

    def test_list_rejects_oversized_page(self, client: TestClient) -> None:
        assert client.get("/engagements/J1/invitations", params={"limit": 500}).status_code == 422

    def test_stats(self, client: TestClient, invitation_id: str) -> None:
        client.post(f"/invitations/{invitation_id}/decline", json={}, headers=_as(REP_C1))

        resp = client.get("/invitations/stats", params={"engagement_id": "J1", "days": 3650})

        body = resp.json()
        assert body["total"] == 1
        assert body["by_status"]["declined"] == 1
        assert body["response_rate"] == 100.0

    def test_available_actions(self, client: TestClient, invitation_id: str) -> None:
        resp = client.get(f"/invitations/{invitation_id}/actions", headers=_as(REP_C1))

        assert resp.status_code == 200
        assert resp.json()["actions"] == ["accept", "counter_propose", "decline"]
        assert client.get(f"/invitations/{invitation_id}/actions").status_code == 401
