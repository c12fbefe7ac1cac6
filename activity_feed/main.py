import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from activity_feed.config import settings
from activity_feed.dependencies import build_coordinator
from activity_feed.routers.activities import router as activities_router
from activity_feed.routers.health import router as health_router
from activity_feed.services.action_sources import NotificationActionSource
from activity_feed.services.activity_api import ActivityApiError
from activity_feed.services.scheduler import create_scheduler, drain_feed

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # ── STARTUP ──────────────────────────────────────────────────────────────
    coordinator = build_coordinator()
    app.state.coordinator = coordinator
    logger.info("Activity feed ready for %s", coordinator.account.display_name)

    if isinstance(coordinator.action_source, NotificationActionSource):
        try:
            await coordinator.action_source.refresh(coordinator.transport)
        except ActivityApiError as exc:
            logger.warning("Could not load notification actions: %s", exc.message)

    scheduler = create_scheduler(coordinator)
    scheduler.start()
    app.state.scheduler = scheduler
    logger.info("Scheduler started")

    # Initial fetch, delayed 2s to let the app finish starting
    async def startup_task():
        await asyncio.sleep(2)
        logger.info("Starting initial activity fetch...")
        outcomes = await drain_feed(coordinator)
        logger.info("Initial fetch complete: %d pages", len(outcomes))

    asyncio.create_task(startup_task())

    yield

    # ── SHUTDOWN ─────────────────────────────────────────────────────────────
    scheduler.shutdown(wait=False)
    await coordinator.transport.aclose()
    logger.info("Scheduler stopped")


app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)

app.include_router(activities_router)
app.include_router(health_router)


# ── Request logging middleware ────────────────────────────────────────────────
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s → %d [%.1fms]",
        request.method,
        request.url.path,
        response.status_code,
        duration_ms,
    )
    return response


# ── Global 500 handler ────────────────────────────────────────────────────────
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled exception on %s: %s", request.url.path, exc, exc_info=True)
    return JSONResponse({"error": str(exc), "status": 500}, status_code=500)
