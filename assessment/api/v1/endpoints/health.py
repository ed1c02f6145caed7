"""
Health check endpoints
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
import psutil

from assessment.core.config import settings
from assessment.core.database import check_connection, get_db
from assessment.db.redis import RedisPublisher

router = APIRouter()


@router.get("/health")
async def health_check():
    """Liveness probe"""
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
    }


@router.get("/health/detailed")
async def detailed_health_check(db: Session = Depends(get_db)):
    """Readiness probe with dependency and resource checks"""
    health_status = {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "checks": {},
    }

    if check_connection(db):
        health_status["checks"]["database"] = "healthy"
    else:
        health_status["checks"]["database"] = "unhealthy"
        health_status["status"] = "degraded"

    if settings.NOTIFIER_BACKEND.lower() == "redis":
        publisher = RedisPublisher()
        try:
            redis_ok = publisher.ping()
        finally:
            publisher.close()
        health_status["checks"]["redis"] = "healthy" if redis_ok else "disconnected"
        if not redis_ok:
            health_status["status"] = "degraded"
    else:
        health_status["checks"]["redis"] = "not configured"

    memory = psutil.virtual_memory()
    health_status["checks"]["resources"] = {
        "cpu_percent": psutil.cpu_percent(interval=None),
        "memory_percent": memory.percent,
        "memory_available_mb": round(memory.available / (1024 * 1024), 1),
    }

    return health_status
