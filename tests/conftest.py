import sys, os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from datetime import datetime, timezone
from typing import AsyncGenerator

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from activity_feed.dependencies import get_coordinator
from activity_feed.main import app
from activity_feed.models import (
    AccountContext,
    Activity,
    ActivityType,
    SyncFileItemStatus,
    SyncResultStatus,
)
from activity_feed.services.action_sources import DictActionSource
from activity_feed.services.activity_api import ActivityApiClient
from activity_feed.services.feed_store import FeedStore
from activity_feed.services.fetch_coordinator import FetchCoordinator
from fake_activity_server import FAKE_SERVER_URL, FakeRemoteActivityStorage, create_fake_server

ACCOUNT_NAME = "alice@example.de"


@pytest.fixture
def account() -> AccountContext:
    return AccountContext(display_name=ACCOUNT_NAME, url=FAKE_SERVER_URL)


@pytest.fixture
def storage() -> FakeRemoteActivityStorage:
    return FakeRemoteActivityStorage()


@pytest_asyncio.fixture
async def api_client(storage) -> AsyncGenerator[ActivityApiClient, None]:
    http_client = httpx.AsyncClient(
        transport=ASGITransport(app=create_fake_server(storage)),
        base_url=FAKE_SERVER_URL,
    )
    client = ActivityApiClient(FAKE_SERVER_URL, http_client=http_client)
    yield client
    await client.aclose()


@pytest.fixture
def store(account) -> FeedStore:
    return FeedStore(account.display_name)


@pytest.fixture
def coordinator(store, api_client, account, storage) -> FetchCoordinator:
    return FetchCoordinator(
        store,
        api_client,
        account,
        action_source=DictActionSource(storage.actions_by_id()),
        page_size=50,
    )


@pytest_asyncio.fixture
async def client(coordinator) -> AsyncGenerator[AsyncClient, None]:
    app.dependency_overrides[get_coordinator] = lambda: coordinator
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac
    app.dependency_overrides.clear()


# Local activities are compared by kind, id and account name, so those are always set

@pytest.fixture
def notification_activity() -> Activity:
    return Activity(
        id=1,
        kind=ActivityType.NOTIFICATION,
        account_name=ACCOUNT_NAME,
        date_time=datetime.now(timezone.utc),
        subject="Sample notification text",
    )


@pytest.fixture
def sync_error_activity() -> Activity:
    return Activity(
        id=2,
        kind=ActivityType.SYNC_RESULT_ERROR,
        account_name=ACCOUNT_NAME,
        sync_result_status=SyncResultStatus.ERROR,
        subject="Sample failed sync text",
        message="/path/to/thingy",
        link="/path/to/thingy",
    )


@pytest.fixture
def sync_file_item_activity() -> Activity:
    return Activity(
        id=3,
        kind=ActivityType.SYNC_FILE_ITEM,
        account_name=ACCOUNT_NAME,
        sync_file_item_status=SyncFileItemStatus.SUCCESS,
        message="Sample file successfully synced text",
        link=FAKE_SERVER_URL,
        file="xyz.pdf",
    )


@pytest.fixture
def file_ignored_activity() -> Activity:
    return Activity(
        id=4,
        kind=ActivityType.FILE_IGNORED,
        account_name=ACCOUNT_NAME,
        sync_file_item_status=SyncFileItemStatus.FILE_IGNORED,
        subject="Sample ignored file sync text",
        link=FAKE_SERVER_URL,
        folder="thingy",
        file="test.txt",
    )
