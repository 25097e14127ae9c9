"""
Liveness and readiness probes.

live:  is the process alive? (no I/O)
ready: can it serve traffic? (database round-trip through the pool)
"""

import asyncio

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from querygate.core.pool import health_check

router = APIRouter(prefix="/health", tags=["health"])


@router.get("/live")
async def live() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/ready")
async def ready(request: Request) -> JSONResponse:
    failures: list[str] = []
    pool = request.app.state.pool
    if not await asyncio.to_thread(health_check, pool):
        failures.append("database")
    transport = getattr(request.app.state, "transport", None)
    if transport is not None and not await asyncio.to_thread(getattr, transport, "connected"):
        failures.append("transport")
    if failures:
        return JSONResponse(status_code=503, content={"status": "unavailable", "failures": failures})
    return JSONResponse(content={"status": "ok", "pool": pool.stats()})
