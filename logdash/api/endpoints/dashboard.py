from fastapi import APIRouter
from fastapi.responses import HTMLResponse

from logdash.ui import get_dashboard_html


router = APIRouter()


@router.get("/", response_class=HTMLResponse)
async def get_dashboard():
    """Serve the dashboard page."""
    return HTMLResponse(content=get_dashboard_html())
