import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.api.deps import get_resources
from app.core.resources import AppResources

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check():
    """Liveness probe."""
    return {"status": "healthy", "service": "case-timelines"}


@router.get("/ready")
async def readiness_check(resources: AppResources = Depends(get_resources)):
    """Readiness check - verifies database, Redis and object storage."""
    checks = {"database": False, "redis": False, "storage": resources.storage.is_configured}

    try:
        await resources.database.ping()
        checks["database"] = True
    except Exception as e:
        logger.error("database_check_failed", error=str(e))

    try:
        await resources.redis.client.ping()
        checks["redis"] = True
    except Exception as e:
        logger.error("redis_check_failed", error=str(e))

    all_healthy = all(checks.values())
    status_code = 200 if all_healthy else 503

    return JSONResponse(
        status_code=status_code,
        content={"status": "ready" if all_healthy else "degraded", "checks": checks},
    )
