from datetime import datetime, timezone
import asyncio
from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from logdash.core.config import settings
from logdash.core.exceptions import RuntimeUnavailable
from logdash.services.docker_client import RUNTIME_ERRORS, docker_client
from logdash.services.logs.bridge import session_registry


router = APIRouter()


def ping_docker() -> None:
    with docker_client() as client:
        try:
            client.ping()
        except RUNTIME_ERRORS as e:
            raise RuntimeUnavailable(f"Docker daemon did not answer ping: {str(e)}")


@router.get("")
async def basic_health_check():
    return {
        "status": "healthy",
        "service": "docker-log-dashboard",
        "version": settings.app_version,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "active_sessions": session_registry.count()
    }


@router.get("/ready")
async def readiness_check():
    try:
        await asyncio.to_thread(ping_docker)
    except RuntimeUnavailable as e:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "ready": False,
                "error": e.message,
                "timestamp": datetime.now(timezone.utc).isoformat()
            }
        )

    return {"ready": True, "timestamp": datetime.now(timezone.utc).isoformat()}
