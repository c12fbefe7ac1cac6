import logging

from fastapi import APIRouter, Depends, HTTPException

from activity_feed.dependencies import get_coordinator
from activity_feed.schemas import (
    ActionResultSchema,
    ActivityRowSchema,
    FeedStatusSchema,
    FetchOutcome,
)
from activity_feed.services.activity_api import ActivityApiError
from activity_feed.services.fetch_coordinator import FetchCoordinator, FetchInProgressError
from activity_feed.services.presentation import build_row
from activity_feed.services.scheduler import refresh_activities

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/activities", tags=["activities"])


def _status(coordinator: FetchCoordinator) -> FeedStatusSchema:
    store = coordinator.store
    return FeedStatusSchema(
        account=store.account_name,
        row_count=store.row_count,
        current_item=store.current_item,
        currently_fetching=store.currently_fetching,
    )


@router.get("", response_model=list[ActivityRowSchema])
async def list_activities(
    display_actions: bool = True,
    coordinator: FetchCoordinator = Depends(get_coordinator),
) -> list[ActivityRowSchema]:
    connected = coordinator.account.connected
    return [
        build_row(activity, position, connected, display_actions)
        for position, activity in enumerate(coordinator.store)
    ]


@router.get("/status", response_model=FeedStatusSchema)
async def feed_status(
    coordinator: FetchCoordinator = Depends(get_coordinator),
) -> FeedStatusSchema:
    return _status(coordinator)


@router.post("/fetch", response_model=FetchOutcome)
async def fetch_page(
    coordinator: FetchCoordinator = Depends(get_coordinator),
) -> FetchOutcome:
    try:
        task = coordinator.start_fetch()
    except FetchInProgressError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    return await task


@router.post("/refresh", response_model=FeedStatusSchema)
async def refresh(
    coordinator: FetchCoordinator = Depends(get_coordinator),
) -> FeedStatusSchema:
    if coordinator.currently_fetching:
        raise HTTPException(status_code=409, detail="An activity fetch is already in flight")
    await refresh_activities(coordinator)
    return _status(coordinator)


@router.get("/{position}", response_model=ActivityRowSchema)
async def activity_detail(
    position: int,
    coordinator: FetchCoordinator = Depends(get_coordinator),
) -> ActivityRowSchema:
    activity = coordinator.store.activity_at(position)
    if activity is None:
        raise HTTPException(status_code=404, detail="Activity not found")
    return build_row(activity, position, coordinator.account.connected)


@router.delete("/{position}", response_model=FeedStatusSchema)
async def remove_activity(
    position: int,
    coordinator: FetchCoordinator = Depends(get_coordinator),
) -> FeedStatusSchema:
    if coordinator.store.remove_at(position) is None:
        raise HTTPException(status_code=404, detail="Activity not found")
    return _status(coordinator)


@router.post("/{position}/actions/{action_index}", response_model=ActionResultSchema)
async def trigger_action(
    position: int,
    action_index: int,
    coordinator: FetchCoordinator = Depends(get_coordinator),
) -> ActionResultSchema:
    try:
        return await coordinator.trigger_action(position, action_index)
    except IndexError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except ActivityApiError as exc:
        logger.warning("Action %d on row %d failed: %s", action_index, position, exc.message)
        raise HTTPException(status_code=502, detail=exc.message)
