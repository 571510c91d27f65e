"""
Health Router
Liveness and readiness endpoints for load balancers and orchestration.

Endpoints:
- /          - Service banner
- /healthz   - Liveness check (is the process running?)
- /health    - Alias for /healthz
- /readyz    - Readiness check (can we reach the database?)
"""

import asyncio
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from startupvista.core.config import Settings, get_settings
from startupvista.core.database import get_db_session

router = APIRouter(tags=["Health"])

# Track startup time for uptime calculation
_start_time = time.time()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/")
async def root(settings: Settings = Depends(get_settings)):
    return {
        "message": f"{settings.app_name} API is running",
        "version": settings.app_version,
    }


@router.get("/healthz")
async def health_check():
    """
    Liveness probe - is the app process running?
    Returns 200 if the process is alive.
    """
    return {"status": "ok", "timestamp": _now()}


@router.get("/health")
async def health_alias():
    """Alias for /healthz for compatibility."""
    return {"status": "ok", "timestamp": _now()}


@router.get("/readyz")
async def readiness_check(request: Request, settings: Settings = Depends(get_settings)):
    """
    Readiness check - is the app ready to serve traffic?
    Returns 503 when the database is unreachable.
    """
    checks: dict = {}
    details: dict = {}
    start = time.perf_counter()

    try:
        db_start = time.perf_counter()
        async with get_db_session() as session:
            await asyncio.wait_for(
                session.execute(text("SELECT 1")),
                timeout=settings.store_timeout_seconds,
            )
        checks["database"] = True
        details["database_latency_ms"] = round((time.perf_counter() - db_start) * 1000, 2)
    except asyncio.TimeoutError:
        checks["database"] = False
        details["database_error"] = f"Connection timeout ({settings.store_timeout_seconds:g}s)"
    except Exception as e:
        checks["database"] = False
        details["database_error"] = str(e)

    # Informational only: Firebase initializes lazily on first federated login
    bridge = getattr(request.app.state, "identity_bridge", None)
    checks["firebase_initialized"] = bool(getattr(bridge, "initialized", False))
    checks["token_signing"] = bool(settings.jwt_secret)

    details["check_duration_ms"] = round((time.perf_counter() - start) * 1000, 2)

    ready = checks["database"] is True and checks["token_signing"]
    return JSONResponse(
        status_code=200 if ready else 503,
        content={
            "status": "ready" if ready else "degraded",
            "checks": checks,
            "details": details,
            "uptime_seconds": round(time.time() - _start_time, 2),
            "timestamp": _now(),
        },
    )
