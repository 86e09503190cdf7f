"""Prometheus metrics instrumentation for the invitation engine.

Provides:
- ``setup_metrics(app)``: Attach prometheus-fastapi-instrumentator to a FastAPI app,
  exposing ``/metrics`` with HTTP request duration/count.
- ``TRANSITIONS_TOTAL``: Counter of applied transitions, labelled by action and
  resulting status.
- ``NOTIFICATION_FAILURES``: Counter of notifications the sink did not accept.
- ``ACTIVE_INVITATIONS``: Gauge of open (pending or negotiating) invitations
  touched by this process.

Business metrics are updated at state transitions (not by polling the database).
"""

from __future__ import annotations

from fastapi import FastAPI
from prometheus_client import Counter, Gauge
from prometheus_fastapi_instrumentator import Instrumentator

TRANSITIONS_TOTAL: Counter = Counter(
    "invitation_transitions_total",
    "Total number of applied invitation transitions",
    ["action", "status"],
)

NOTIFICATION_FAILURES: Counter = Counter(
    "invitation_notification_failures_total",
    "Total number of notifications that could not be delivered",
)

ACTIVE_INVITATIONS: Gauge = Gauge(
    "invitation_open_total",
    "Number of invitations awaiting a response",
)


def setup_metrics(app: FastAPI) -> None:
    """Instrument *app* with Prometheus HTTP metrics and expose ``/metrics``.

    Excludes health/ready/metrics endpoints from instrumentation to avoid
    noise in dashboards.

    Args:
        app: The FastAPI application to instrument.
    """
    Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=True,
        excluded_handlers=["/health", "/ready", "/metrics"],
    ).instrument(app).expose(app, include_in_schema=False, should_gzip=True)
