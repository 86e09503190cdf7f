"""Application entry point for the invitation engine HTTP service.

Configures:
- **structlog** with JSON rendering (production) or colored console (development)
- **Sentry** error forwarding when ``SENTRY_DSN`` is set
- **SQLite** invitation store, outbox dispatcher and directory collaborators
- **FastAPI** routes, health checks, request-id middleware and ``/metrics``
- an optional in-process **expiry sweep** (``SWEEP_INTERVAL_SECONDS``)
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import structlog
import uvicorn
from fastapi import FastAPI

from invitations.api import register_error_handlers
from invitations.api import router as invitations_router
from invitations.collaborators import StaticDirectory
from invitations.config import Settings, get_settings
from invitations.engine import InvitationEngine
from invitations.expiry import sweep_expired
from invitations.health import register_health_routes
from invitations.notifications.dispatcher import NotificationDispatcher
from invitations.notifications.sink import SQLiteNotificationSink
from invitations.observability.metrics import ACTIVE_INVITATIONS, setup_metrics
from invitations.observability.middleware import RequestIdMiddleware
from invitations.observability.sentry import get_sentry_processor, init_sentry
from invitations.store import InvitationStore, connect, init_invitation_tables

logger = structlog.get_logger()


def configure_logging(production: bool = False, sentry_enabled: bool = False) -> None:
    """Configure structlog for production (JSON) or development (console).

    Production mode (*production=True*): JSON rendering at INFO level.
    Development mode: colored console rendering at DEBUG level.

    Args:
        production: Enable production mode if ``True``.
        sentry_enabled: Insert the Sentry processor before the renderer.
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    if sentry_enabled:
        shared_processors.append(get_sentry_processor())

    if production:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
        log_level = logging.INFO
    else:
        renderer = structlog.dev.ConsoleRenderer()
        log_level = logging.DEBUG

    structlog.configure(
        processors=[*shared_processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.bind_contextvars(service="invitation-engine")


def initialize_services(settings: Settings | None = None) -> dict[str, Any]:
    """Set up the shared services for the application.

    Opens the SQLite database, creates the invitation tables, loads the
    engagement/organization directory, and wires the store, sink,
    dispatcher and engine together.

    Args:
        settings: Application settings.  If ``None``, ``get_settings()`` is used.

    Returns:
        A dict of initialized service instances keyed by name.
    """
    if settings is None:
        settings = get_settings()

    services: dict[str, Any] = {}

    db_path = settings.db_path
    if str(db_path) != ":memory:":
        db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = connect(db_path, timeout=settings.store_timeout_seconds)
    init_invitation_tables(conn)
    services["db_conn"] = conn

    store = InvitationStore(conn, lock_timeout=settings.store_timeout_seconds)
    services["store"] = store
    open_count = store.count_open()
    ACTIVE_INVITATIONS.set(open_count)
    logger.info("Open invitation gauge seeded", open_invitations=open_count)

    directory = StaticDirectory.from_yaml(settings.directory_path)
    services["directory"] = directory
    logger.info("Directory loaded", path=str(settings.directory_path))

    sink = SQLiteNotificationSink(
        conn, lock=store.lock, lock_timeout=settings.store_timeout_seconds
    )
    dispatcher = NotificationDispatcher(
        store,
        sink,
        max_attempts=settings.notification_max_attempts,
        initial_wait=settings.notification_retry_initial_wait,
    )
    services["dispatcher"] = dispatcher

    services["engine"] = InvitationEngine(
        store,
        directory,
        directory,
        dispatcher,
        validity_window=settings.default_validity_window,
        conflict_retry_attempts=settings.conflict_retry_attempts,
    )
    services["_settings"] = settings

    logger.info("Services initialized", db_path=str(db_path))
    return services


def close_services(services: dict[str, Any]) -> None:
    """Close the database connection held in *services*, if any.

    The connection is closed while holding the store lock so a worker thread
    still inside a store call finishes first.
    """
    conn = services.get("db_conn")
    if conn is None:
        return
    store: InvitationStore | None = services.get("store")
    if store is not None:
        with store.lock:
            conn.close()
    else:
        conn.close()
    logger.info("Invitation database connection closed")


async def run_expiry_sweep_periodically(services: dict[str, Any], interval_seconds: int) -> None:
    """Expire overdue invitations every *interval_seconds*.

    Args:
        services: The initialized services dict.
        interval_seconds: Seconds between sweeps.  Zero or less disables the loop.
    """
    if interval_seconds <= 0:
        return

    engine: InvitationEngine = services["engine"]
    settings: Settings = services["_settings"]

    while True:
        await asyncio.sleep(interval_seconds)
        try:
            expired = await asyncio.to_thread(
                sweep_expired, engine, limit=settings.sweep_batch_size
            )
            logger.info("Periodic expiry sweep finished", expired=len(expired))
        except Exception:
            logger.exception("Periodic expiry sweep failed")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Start the expiry sweep on startup; stop it and close the database on shutdown.

    Args:
        app: The FastAPI application instance.

    Yields:
        Control to the application.
    """
    services = app.state.services
    settings: Settings = app.state.settings
    sweep_task = asyncio.create_task(
        run_expiry_sweep_periodically(services, settings.sweep_interval_seconds)
    )
    logger.info("FastAPI application starting")
    yield
    sweep_task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await sweep_task
    close_services(services)
    logger.info("FastAPI application stopped")


def create_app(services: dict[str, Any]) -> FastAPI:
    """Create the FastAPI app with lifespan, routes, health checks and metrics.

    Args:
        services: The initialized services dict from ``initialize_services``.

    Returns:
        The configured FastAPI application.
    """
    fastapi_app = FastAPI(title="Invitation Engine", lifespan=lifespan)
    fastapi_app.state.services = services
    fastapi_app.state.settings = services.get("_settings", get_settings())
    fastapi_app.add_middleware(RequestIdMiddleware)
    fastapi_app.include_router(invitations_router)
    register_error_handlers(fastapi_app)
    register_health_routes(fastapi_app)
    setup_metrics(fastapi_app)
    return fastapi_app


async def main() -> None:
    """Main entry point: configure logging, wire services, and serve HTTP."""
    settings = get_settings()
    init_sentry(settings.sentry_dsn, environment="production" if settings.production else "development")
    configure_logging(production=settings.production, sentry_enabled=bool(settings.sentry_dsn))
    logger.info("Application starting")

    services = initialize_services(settings)
    fastapi_app = create_app(services)

    config = uvicorn.Config(
        fastapi_app,
        host="0.0.0.0",
        port=settings.port,
        log_level="info",
    )
    server = uvicorn.Server(config)
    await server.serve()


def run() -> None:
    """Console-script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
