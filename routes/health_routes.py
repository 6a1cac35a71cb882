"""
Health check endpoint.

GET /health — checks Redis connectivity.
Every OTP operation needs Redis, so a missing or failing Redis is
"unhealthy" (503) rather than degraded.
"""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(request: Request) -> JSONResponse:
    checks: dict[str, str] = {}
    overall = "healthy"

    redis = request.app.state.redis
    if redis is None:
        checks["redis"] = "not_configured"
        overall = "unhealthy"
    else:
        try:
            await redis.ping()
            checks["redis"] = "ok"
        except Exception:
            checks["redis"] = "error"
            overall = "unhealthy"

    status_code = 503 if overall == "unhealthy" else 200
    return JSONResponse(
        status_code=status_code,
        content={"status": overall, "checks": checks},
    )
