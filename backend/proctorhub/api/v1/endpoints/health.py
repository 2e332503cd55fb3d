from fastapi import APIRouter
from sqlalchemy import text
import time
from typing import Dict, Any

from ....core.cache import cache
from ....core.database import SessionLocal

router = APIRouter()


@router.get("")
async def get_health() -> Dict[str, Any]:
    """Service, database, cache and host status"""
    health_status = {
        "status": "healthy",
        "timestamp": time.time(),
        "service": "proctoring-api",
        "services": {}
    }

    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        health_status["services"]["database"] = "healthy"
    except Exception as e:
        health_status["services"]["database"] = f"error: {str(e)}"
        health_status["status"] = "unhealthy"
    finally:
        db.close()

    cache_health = await cache.ahealth_check()
    health_status["services"]["cache"] = "healthy" if cache_health else "unavailable"

    try:
        import psutil
        health_status["system"] = {
            "cpu_percent": psutil.cpu_percent(),
            "memory_percent": psutil.virtual_memory().percent,
            "disk_percent": psutil.disk_usage('/').percent
        }
    except Exception as e:
        health_status["system"] = f"error: {str(e)}"

    return health_status
