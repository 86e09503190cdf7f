"""Health and readiness endpoints for container orchestration.

- ``GET /health``: liveness check.  Returns 200 if the process is alive.
- ``GET /ready``: readiness check.  Returns 200 only when the invitation
  database answers and the engine is wired; 503 with per-check details
  otherwise.
"""

from __future__ import annotations

import asyncio
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


def register_health_routes(app: FastAPI) -> None:
    """Register ``/health`` and ``/ready`` endpoints on *app*.

    Args:
        app: The FastAPI application instance.
    """

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Liveness check."""
        return {"status": "healthy"}

    @app.get("/ready")
    async def ready(request: Request) -> JSONResponse:
        """Readiness check: checks the database connection and the engine."""
        services: dict[str, Any] = request.app.state.services
        checks: dict[str, str] = {}

        db_conn = services.get("db_conn")
        if db_conn is not None:
            try:
                await asyncio.to_thread(db_conn.execute, "SELECT 1")
                checks["database"] = "ok"
            except Exception:
                checks["database"] = "fail"
        else:
            checks["database"] = "fail"

        checks["engine"] = "ok" if services.get("engine") is not None else "fail"

        all_ok = all(v == "ok" for v in checks.values())
        status = "ready" if all_ok else "not_ready"
        code = 200 if all_ok else 503

        return JSONResponse(content={"status": status, "checks": checks}, status_code=code)
