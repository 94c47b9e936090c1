"""
Health and Status Endpoints
"""
import time
from typing import Any, Dict

from fastapi import APIRouter, Depends

from ...container import SecurityServices
from ...utils.logger import setup_logger
from ...utils.timeutils import utcnow
from ..dependencies import get_services

logger = setup_logger(__name__)
router = APIRouter(tags=["health"])

# Track API start time for uptime calculation
API_START_TIME = time.time()


@router.get("/health")
async def health_check(services: SecurityServices = Depends(get_services)) -> Dict[str, Any]:
    """
    Health check with dependency validation

    The counter store being down degrades the service (inline checks fail
    open) rather than making it unhealthy.
    """
    health_status = {
        "status": "healthy",
        "timestamp": utcnow().isoformat(),
        "uptime_seconds": int(time.time() - API_START_TIME),
        "dependencies": {}
    }

    counter_health = await services.counter_store.health_check()
    health_status["dependencies"]["counter_store"] = counter_health
    if counter_health["status"] != "healthy":
        health_status["status"] = "degraded"

    try:
        await services.database.ping()
        health_status["dependencies"]["database"] = {"status": "healthy"}
    except Exception as e:
        logger.warning(f"Database health check failed: {e}")
        health_status["status"] = "degraded"
        health_status["dependencies"]["database"] = {"status": "unhealthy", "error": str(e)}

    health_status["dependencies"]["scheduler"] = {
        "status": "running" if services.scheduler.is_running else "stopped"
    }
    return health_status
