from fastapi import APIRouter, HTTPException
from datetime import datetime
from rota.db import get_db

router = APIRouter()


@router.get("/health")
async def health_check():
    """
    Basic health check endpoint for production monitoring
    """
    health_status = {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "version": "1.0.0",
        "checks": {}
    }

    db = get_db()
    if db is not None and await db.ping():
        health_status["checks"]["store"] = {"status": "healthy", "backend": type(db).__name__}
    else:
        health_status["checks"]["store"] = {"status": "unhealthy"}
        health_status["status"] = "degraded"

    # 200 even when degraded; /health/ready is the probe that fails
    return health_status


@router.get("/health/ready")
async def readiness_check():
    """
    Kubernetes readiness probe endpoint
    """
    db = get_db()
    if db is None or not await db.ping():
        raise HTTPException(
            status_code=503,
            detail={
                "status": "not_ready",
                "timestamp": datetime.utcnow().isoformat(),
            }
        )
    return {
        "status": "ready",
        "timestamp": datetime.utcnow().isoformat()
    }


@router.get("/health/live")
async def liveness_check():
    """
    Kubernetes liveness probe endpoint
    """
    return {
        "status": "alive",
        "timestamp": datetime.utcnow().isoformat()
    }
