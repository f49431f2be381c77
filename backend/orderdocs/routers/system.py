"""System router providing health, readiness and configuration endpoints."""
import time

from fastapi import APIRouter, Depends

from ..context import AppContext, get_context

router = APIRouter()

_start_time = time.time()


def _success(data, **meta):
    return {"status": "success", "data": data, "meta": meta or None, "timestamp": time.time()}


@router.get("/health", tags=["System"])  # liveness
async def health():
    return _success({"ok": True})


@router.get("/readiness", tags=["System"])  # readiness: db connectivity
async def readiness(ctx: AppContext = Depends(get_context)):
    db_health = await ctx.database.health_check()
    return _success({
        "database": db_health,
        "storage_configured": ctx.storage.configured,
        "uptime_s": int(time.time() - _start_time),
    })


@router.get("/api/system/config", tags=["System"])
async def config_report(ctx: AppContext = Depends(get_context)):
    """Non-secret configuration summary plus the validation report."""
    report = ctx.settings.validate_all()
    return _success({
        "config": ctx.settings.summary(),
        "validation": report.model_dump(),
    })
