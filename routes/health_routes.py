"""
Health check endpoint.

GET /health: checks that the policy document loads and a config source is active.
Rules:
- Policy store failure → "unhealthy" (503), no request can be verified.
- Config source failure → "unhealthy" (503), secrets cannot be resolved.
"""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from errors import ConfigError, PolicyError

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(request: Request) -> JSONResponse:
    checks: dict[str, str] = {}
    overall = "healthy"

    try:
        source = request.app.state.config_resolver.source()
        checks["config_source"] = source.name
    except ConfigError:
        checks["config_source"] = "error"
        overall = "unhealthy"

    try:
        store = await request.app.state.policy_cache.current()
        checks["policy"] = "ok"
        checks["provider"] = store.provider
    except PolicyError:
        checks["policy"] = "error"
        overall = "unhealthy"

    status_code = 503 if overall == "unhealthy" else 200
    return JSONResponse(
        status_code=status_code,
        content={"status": overall, "checks": checks},
    )
