from fastapi import Request

from activity_feed.config import settings
from activity_feed.models import AccountContext
from activity_feed.services.action_sources import NotificationActionSource
from activity_feed.services.activity_api import ActivityApiClient
from activity_feed.services.feed_store import FeedStore
from activity_feed.services.fetch_coordinator import FetchCoordinator


def build_coordinator() -> FetchCoordinator:
    account = AccountContext(
        display_name=settings.ACCOUNT_DISPLAY_NAME or settings.ACCOUNT_USER or settings.SERVER_URL,
        url=settings.SERVER_URL,
    )
    client = ActivityApiClient(
        settings.SERVER_URL,
        user=settings.ACCOUNT_USER,
        password=settings.ACCOUNT_PASSWORD,
    )
    return FetchCoordinator(
        FeedStore(account.display_name),
        client,
        account,
        action_source=NotificationActionSource(),
        page_size=settings.ACTIVITY_PAGE_SIZE,
    )


async def get_coordinator(request: Request) -> FetchCoordinator:
    return request.app.state.coordinator
