"""Invitation statistics for dashboards: totals, status breakdown, response rate."""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from datetime import datetime, timedelta
from typing import Any

from pydantic import BaseModel, Field

from invitations.domain.models import parse_ts
from invitations.domain.types import InvitationStatus

DEFAULT_STATS_WINDOW = timedelta(days=30)

# Statuses that count as a response from the counterparty.
_RESPONDED = (InvitationStatus.ACCEPTED, InvitationStatus.DECLINED)


class InvitationStats(BaseModel):
    """Aggregated statistics over a set of active invitations."""

    total: int = 0
    by_status: dict[InvitationStatus, int] = Field(default_factory=dict)
    average_response_hours: float | None = None
    response_rate: float = 0.0
    since: datetime | None = None


def compute_stats(rows: Iterable[dict[str, Any]], since: datetime | None = None) -> InvitationStats:
    """Aggregate ``status`` / ``sent_at`` / ``responded_at`` rows.

    Response time averages only invitations that have a ``responded_at``.
    The response rate is the share of accepted and declined invitations,
    as a percentage of the total.

    Args:
        rows: Rows as returned by ``InvitationStore.response_rows``.
        since: The lower ``sent_at`` bound the rows were selected with.

    Returns:
        The aggregated statistics; all-zero for an empty input.
    """
    counts: Counter[InvitationStatus] = Counter()
    response_seconds: list[float] = []

    for row in rows:
        status = InvitationStatus(row["status"])
        counts[status] += 1
        if row["responded_at"]:
            delta = parse_ts(row["responded_at"]) - parse_ts(row["sent_at"])
            response_seconds.append(delta.total_seconds())

    total = sum(counts.values())
    responded = sum(counts[s] for s in _RESPONDED)

    return InvitationStats(
        total=total,
        by_status={status: counts[status] for status in InvitationStatus},
        average_response_hours=(
            round(sum(response_seconds) / len(response_seconds) / 3600, 2)
            if response_seconds
            else None
        ),
        response_rate=round(responded / total * 100, 2) if total else 0.0,
        since=since,
    )
