"""FastAPI routes for the invitation engine.

Authentication is handled upstream; the authenticated user id arrives in the
``X-Caller-ID`` header and is passed to the engine, which decides whether the
caller may act.  Engine calls block on SQLite, so they run in a worker thread.
Domain errors are turned into HTTP status codes by the handler registered with
:func:`register_error_handlers`.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta
from typing import Any

import structlog
from fastapi import APIRouter, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

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
from invitations.domain.models import ConfirmedSchedule, ScheduleWindow
from invitations.domain.types import InvitationStatus
from invitations.engine import InvitationEngine, TransitionResult

logger = structlog.get_logger()

router = APIRouter()

CALLER_HEADER = "X-Caller-ID"

_STATUS_CODES: dict[type[InvitationError], int] = {
    NotFoundError: 404,
    UnauthorizedError: 403,
    IllegalTransitionError: 409,
    AlreadyExistsError: 409,
    ConflictError: 409,
    InvitationValidationError: 422,
    StoreBusyError: 503,
}


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------


class CreateInvitationsRequest(BaseModel):
    engagement_id: str
    target_org_ids: list[str] = Field(min_length=1)
    message: str | None = None
    proposed_schedule: list[ScheduleWindow] = Field(default_factory=list)
    validity_days: int | None = Field(default=None, ge=1)


class AcceptRequest(BaseModel):
    confirmed_schedule: ConfirmedSchedule
    note: str | None = None


class DeclineRequest(BaseModel):
    reason: str | None = None


class CounterProposeRequest(BaseModel):
    alternative_schedule: list[ScheduleWindow] = Field(min_length=1)
    note: str | None = None
    additional_requirements: str | None = None


class CounterResponseRequest(BaseModel):
    accept: bool
    final_schedule: ConfirmedSchedule | None = None
    note: str | None = None


class ResendRequest(BaseModel):
    message: str | None = None
    proposed_schedule: list[ScheduleWindow] | None = None
    validity_days: int | None = Field(default=None, ge=1)


class WithdrawRequest(BaseModel):
    reason: str | None = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _engine(request: Request) -> InvitationEngine:
    return request.app.state.services["engine"]


def _caller(request: Request) -> str:
    """Return the caller id from the request headers.

    Raises:
        HTTPException: 401 if the header is missing or blank.
    """
    caller_id = request.headers.get(CALLER_HEADER, "").strip()
    if not caller_id:
        logger.warning("Missing caller header", path=request.url.path)
        raise HTTPException(status_code=401, detail=f"Missing {CALLER_HEADER} header")
    return caller_id


def _days(value: int | None) -> timedelta | None:
    return timedelta(days=value) if value is not None else None


def _result_payload(result: TransitionResult) -> dict[str, Any]:
    return {
        "invitation": result.invitation.model_dump(mode="json"),
        "notification_id": result.notification_id,
        "warnings": result.warnings,
    }


async def invitation_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Render a domain error as a JSON response with the matching status code."""
    status_code = next(
        (code for cls, code in _STATUS_CODES.items() if isinstance(exc, cls)),
        400,
    )
    logger.info(
        "Request rejected",
        path=request.url.path,
        error=type(exc).__name__,
        status_code=status_code,
    )
    return JSONResponse(
        status_code=status_code,
        content={"error": type(exc).__name__, "detail": str(exc)},
    )


def register_error_handlers(app: FastAPI) -> None:
    """Map every :class:`InvitationError` raised by a route to an HTTP response."""
    app.add_exception_handler(InvitationError, invitation_error_handler)


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@router.post("/invitations", status_code=201)
async def create_invitations(request: Request, body: CreateInvitationsRequest) -> dict[str, Any]:
    """Invite one or more organizations to an engagement.

    Organizations that already hold an active invitation are reported in
    ``skipped`` rather than failing the request.
    """
    caller_id = _caller(request)
    result = await asyncio.to_thread(
        _engine(request).create_invitations,
        body.engagement_id,
        body.target_org_ids,
        caller_id,
        body.message,
        body.proposed_schedule,
        _days(body.validity_days),
    )
    return {
        "created": [_result_payload(r) for r in result.created],
        "skipped": result.skipped,
        "warnings": result.warnings,
    }


@router.get("/invitations/stats")
async def invitation_stats(
    request: Request,
    engagement_id: str | None = None,
    initiator_id: str | None = None,
    days: int = Query(default=30, ge=1),
) -> dict[str, Any]:
    """Totals, status breakdown, average response time and response rate."""
    since = datetime.now(tz=UTC) - timedelta(days=days)
    stats = await asyncio.to_thread(
        _engine(request).stats, engagement_id, initiator_id, since
    )
    return stats.model_dump(mode="json")


@router.get("/invitations/{invitation_id}")
async def get_invitation(request: Request, invitation_id: str) -> dict[str, Any]:
    invitation = await asyncio.to_thread(_engine(request).get, invitation_id)
    return invitation.model_dump(mode="json")


@router.get("/invitations/{invitation_id}/timeline")
async def get_timeline(request: Request, invitation_id: str) -> dict[str, Any]:
    events = await asyncio.to_thread(_engine(request).get_timeline, invitation_id)
    return {"invitation_id": invitation_id, "events": [e.model_dump(mode="json") for e in events]}


@router.get("/invitations/{invitation_id}/actions")
async def get_available_actions(request: Request, invitation_id: str) -> dict[str, Any]:
    """Actions the caller can take on the invitation right now."""
    actions = await asyncio.to_thread(
        _engine(request).available_actions, invitation_id, _caller(request)
    )
    return {"invitation_id": invitation_id, "actions": [str(a) for a in actions]}


@router.post("/invitations/{invitation_id}/accept")
async def accept_invitation(
    request: Request, invitation_id: str, body: AcceptRequest
) -> dict[str, Any]:
    result = await asyncio.to_thread(
        _engine(request).accept, invitation_id, _caller(request), body.confirmed_schedule, body.note
    )
    return _result_payload(result)


@router.post("/invitations/{invitation_id}/decline")
async def decline_invitation(
    request: Request, invitation_id: str, body: DeclineRequest
) -> dict[str, Any]:
    result = await asyncio.to_thread(
        _engine(request).decline, invitation_id, _caller(request), body.reason
    )
    return _result_payload(result)


@router.post("/invitations/{invitation_id}/counter-propose")
async def counter_propose(
    request: Request, invitation_id: str, body: CounterProposeRequest
) -> dict[str, Any]:
    result = await asyncio.to_thread(
        _engine(request).counter_propose,
        invitation_id,
        _caller(request),
        body.alternative_schedule,
        body.note,
        body.additional_requirements,
    )
    return _result_payload(result)


@router.post("/invitations/{invitation_id}/counter-response")
async def respond_to_counter(
    request: Request, invitation_id: str, body: CounterResponseRequest
) -> dict[str, Any]:
    result = await asyncio.to_thread(
        _engine(request).respond_to_counter,
        invitation_id,
        _caller(request),
        body.accept,
        body.final_schedule,
        body.note,
    )
    return _result_payload(result)


@router.post("/invitations/{invitation_id}/resend")
async def resend_invitation(
    request: Request, invitation_id: str, body: ResendRequest
) -> dict[str, Any]:
    result = await asyncio.to_thread(
        _engine(request).resend,
        invitation_id,
        _caller(request),
        body.message,
        body.proposed_schedule,
        _days(body.validity_days),
    )
    return _result_payload(result)


@router.post("/invitations/{invitation_id}/remind")
async def remind(request: Request, invitation_id: str) -> dict[str, Any]:
    result = await asyncio.to_thread(_engine(request).remind, invitation_id, _caller(request))
    return _result_payload(result)


@router.post("/invitations/{invitation_id}/withdraw")
async def withdraw_invitation(
    request: Request, invitation_id: str, body: WithdrawRequest
) -> dict[str, Any]:
    result = await asyncio.to_thread(
        _engine(request).withdraw, invitation_id, _caller(request), body.reason
    )
    return _result_payload(result)


async def _list(
    request: Request,
    *,
    engagement_id: str | None = None,
    target_org_id: str | None = None,
    status: InvitationStatus | None,
    limit: int,
    offset: int,
) -> dict[str, Any]:
    engine = _engine(request)

    def query() -> tuple[list[Any], int]:
        invitations = engine.list_active(engagement_id, target_org_id, status, limit, offset)
        return invitations, engine.count_active(engagement_id, target_org_id, status)

    invitations, total = await asyncio.to_thread(query)
    return {
        "invitations": [i.model_dump(mode="json") for i in invitations],
        "total": total,
        "limit": limit,
        "offset": offset,
    }


@router.get("/engagements/{engagement_id}/invitations")
async def list_engagement_invitations(
    request: Request,
    engagement_id: str,
    status: InvitationStatus | None = None,
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
) -> dict[str, Any]:
    """Active invitations sent for one engagement, newest first."""
    return await _list(
        request, engagement_id=engagement_id, status=status, limit=limit, offset=offset
    )


@router.get("/organizations/{org_id}/invitations")
async def list_organization_invitations(
    request: Request,
    org_id: str,
    status: InvitationStatus | None = None,
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
) -> dict[str, Any]:
    """Active invitations received by one organization, newest first."""
    return await _list(request, target_org_id=org_id, status=status, limit=limit, offset=offset)
