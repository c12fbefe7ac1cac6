import logging
from datetime import datetime, timedelta, timezone

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from activity_feed.config import settings
from activity_feed.schemas import FetchOutcome
from activity_feed.services.fetch_coordinator import FetchCoordinator, FetchInProgressError
from activity_feed.services.pipeline_log import log_event

logger = logging.getLogger(__name__)

UTC = timezone.utc


def create_scheduler(coordinator: FetchCoordinator) -> AsyncIOScheduler:
    scheduler = AsyncIOScheduler(timezone="UTC")
    scheduler.add_job(
        refresh_activities,
        "interval",
        minutes=settings.REFRESH_INTERVAL_MINUTES,
        args=[coordinator],
        id="refresh_job",
        replace_existing=True,
    )
    return scheduler


def _limit_reached(coordinator: FetchCoordinator) -> bool:
    store = coordinator.store
    if len(store.fetched_activities()) >= settings.MAX_ACTIVITIES:
        return True
    oldest = store.oldest_fetched_date
    cutoff = datetime.now(UTC) - timedelta(days=settings.MAX_ACTIVITIES_DAYS)
    return oldest is not None and oldest < cutoff


async def drain_feed(coordinator: FetchCoordinator) -> list[FetchOutcome]:
    """
    Fetch pages until the server runs out, a fetch fails, or the feed holds
    MAX_ACTIVITIES rows / reaches MAX_ACTIVITIES_DAYS back. Hitting one of the
    limits adds the "more activities" row pointing at the server activity app.
    """
    outcomes: list[FetchOutcome] = []
    while True:
        try:
            outcome = await coordinator.start_fetch()
        except FetchInProgressError:
            logger.info("Another fetch started mid-drain, stopped after %d pages", len(outcomes))
            break
        outcomes.append(outcome)

        if not outcome.ok or outcome.discarded:
            break
        if outcome.end_of_feed:
            logger.debug("Reached the end of the activity feed")
            break
        if _limit_reached(coordinator):
            coordinator.store.show_more_available(f"{coordinator.account.url.rstrip('/')}/apps/activity")
            logger.info("Activity limit reached, stopped fetching")
            break
        if outcome.added == 0:
            # full page with nothing new
            break
    return outcomes


async def refresh_activities(coordinator: FetchCoordinator) -> None:
    """
    Refetch the server activities while keeping local entries. If the first
    page fails the previously fetched rows are put back.
    """
    if coordinator.currently_fetching:
        logger.debug("Refresh skipped: a fetch is still running")
        return
    store = coordinator.store
    previous = store.fetched_snapshot()
    removed = store.clear_fetched()
    outcomes = await drain_feed(coordinator)
    added = sum(outcome.added for outcome in outcomes)
    failed = [outcome for outcome in outcomes if not outcome.ok]
    if failed:
        log_event(
            "warn", "refresh",
            f"Refresh incomplete: {failed[-1].error}: {failed[-1].message}",
            account=store.account_name,
        )
    if outcomes and not outcomes[0].ok:
        # first page failed: keep showing what was there before
        store.restore_fetched(previous)
        logger.warning("Refresh failed, kept %d previously fetched rows", len(previous.rows))
        return
    logger.info("Refresh complete: dropped %d, fetched %d activities", removed, added)
