import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.db.base import get_session_factory
from app.db.redis import get_redis, redis_enabled

logger = structlog.get_logger(__name__)

router = APIRouter()

SERVICE = "billing-engine"


@router.get("/health")
async def health_check(request: Request):
    """Liveness check.

    Returns 503 during graceful shutdown so the load balancer stops routing traffic.
    """
    if getattr(request.app.state, "shutting_down", False):
        return JSONResponse(
            status_code=503,
            content={"status": "shutting_down", "service": SERVICE},
        )
    return {"status": "healthy", "service": SERVICE}


@router.get("/ready")
async def readiness_check():
    """Readiness check - verifies the database, and Redis when locks use it."""
    checks = {"database": False}

    try:
        async with get_session_factory()() as session:
            await session.execute(text("SELECT 1"))
        checks["database"] = True
    except (SQLAlchemyError, RuntimeError) as e:
        logger.error("database_health_check_failed", error=str(e))

    if redis_enabled():
        checks["redis"] = False
        try:
            await get_redis().ping()
            checks["redis"] = True
        except (RedisError, RuntimeError) as e:
            logger.error("redis_health_check_failed", error=str(e))

    all_healthy = all(checks.values())
    status_code = 200 if all_healthy else 503

    return JSONResponse(
        status_code=status_code,
        content={"status": "ready" if all_healthy else "degraded", "checks": checks},
    )
