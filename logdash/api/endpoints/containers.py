import asyncio
from typing import List
from fastapi import APIRouter

from logdash.services.container_directory import list_containers


router = APIRouter()


@router.get("", response_model=List[str])
async def get_containers():
    """List the names of running containers, in daemon order"""
    # RuntimeUnavailable is rendered by the application's exception handler
    return await asyncio.to_thread(list_containers)
