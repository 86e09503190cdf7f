"""Sentry SDK initialization with the structlog-sentry bridge."""

from __future__ import annotations

import logging

import sentry_sdk
import structlog
from sentry_sdk.integrations.logging import LoggingIntegration
from structlog_sentry import SentryProcessor


def init_sentry(dsn: str, environment: str = "development") -> None:
    """Initialize the Sentry SDK.  No-op when *dsn* is empty.

    Args:
        dsn: Sentry DSN string.  Empty string disables Sentry.
        environment: Environment tag attached to every event.
    """
    if not dsn:
        return

    sentry_sdk.init(
        dsn=dsn,
        environment=environment,
        traces_sample_rate=0.1,
        send_default_pii=False,
        # structlog-sentry reports errors; the stdlib integration would duplicate them
        integrations=[LoggingIntegration(event_level=None, level=None)],
    )


def get_sentry_processor() -> structlog.types.Processor:
    """Return a structlog processor that forwards ERROR events to Sentry.

    Place it after ``add_log_level`` and before the renderer.
    """
    return SentryProcessor(event_level=logging.ERROR)
