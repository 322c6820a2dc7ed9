from fastapi import APIRouter

from logdash.api.endpoints import containers, dashboard, health
from logdash.api.websocket import logs

api_router = APIRouter()

# Dashboard page
api_router.include_router(dashboard.router, tags=["dashboard"])

# Container directory and log streaming
api_router.include_router(containers.router, prefix="/containers", tags=["containers"])
api_router.include_router(logs.router, tags=["logs"])

# System
api_router.include_router(health.router, prefix="/health", tags=["health"])
