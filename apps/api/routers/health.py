"""
Health check endpoints.
"""

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text
import redis.asyncio as redis

from config import settings
from database import engine

router = APIRouter()


async def _database_status() -> str:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return "up"
    except Exception as e:
        return f"down: {str(e)}"


async def _redis_status() -> str:
    try:
        r = redis.from_url(settings.REDIS_URL)
        await r.ping()
        await r.aclose()
        return "up"
    except Exception as e:
        return f"down: {str(e)}"


@router.get("/health")
async def health_check():
    """
    Health check endpoint.
    The ledger depends on the database; Redis only backs report generation
    and rate limits, so losing it degrades rather than fails the API.
    """
    health_status = {
        "status": "healthy",
        "api": "up",
        "database": await _database_status(),
        "redis": "skipped",
        "report_generation": "enabled" if settings.REPORT_GENERATION_ENABLED else "disabled",
    }
    if health_status["database"] != "up":
        health_status["status"] = "degraded"

    if settings.REPORT_GENERATION_ENABLED:
        health_status["redis"] = await _redis_status()
        if health_status["redis"] != "up":
            health_status["status"] = "degraded"

    return health_status


@router.get("/health/ready")
async def readiness_check():
    """Kubernetes-style readiness probe."""
    database = await _database_status()
    if database != "up":
        return JSONResponse(
            status_code=503,
            content={"ready": False, "database": database},
        )
    return {"ready": True}


@router.get("/health/live")
async def liveness_check():
    """Kubernetes-style liveness probe."""
    return {"alive": True}
