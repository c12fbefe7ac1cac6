import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from activity_feed.dependencies import get_coordinator
from activity_feed.services.fetch_coordinator import FetchCoordinator
from activity_feed.services.pipeline_log import recent_events

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check(
    request: Request,
    coordinator: FetchCoordinator = Depends(get_coordinator),
) -> JSONResponse:
    server_status = "offline"
    check_reachable = getattr(coordinator.transport, "check_reachable", None)
    if check_reachable is None:
        server_status = "n/a"
    elif await check_reachable():
        server_status = "online"

    scheduler = getattr(request.app.state, "scheduler", None)
    scheduler_status = "running" if scheduler and scheduler.running else "stopped"

    store = coordinator.store
    return JSONResponse({
        "status": "ok" if server_status != "offline" else "degraded",
        "server": server_status,
        "account": store.account_name,
        "account_connected": coordinator.account.connected,
        "row_count": store.row_count,
        "current_item": store.current_item,
        "currently_fetching": store.currently_fetching,
        "scheduler": scheduler_status,
    })


@router.get("/feed/log")
async def feed_log(
    account: Optional[str] = None,
    category: Optional[str] = None,
) -> JSONResponse:
    """Recent pipeline events, newest first, optionally for one account or category."""
    return JSONResponse(recent_events(60, account=account, category=category))
