import logging
from enum import Enum
from typing import Any, Optional, Protocol

import httpx

from activity_feed.config import settings
from activity_feed.models import ActivityLink
from activity_feed.schemas import ActivityPage

logger = logging.getLogger(__name__)

ACTIVITY_PATH = "ocs/v2.php/apps/activity/api/v2/activity"
NOTIFICATIONS_PATH = "ocs/v2.php/apps/notifications/api/v2/notifications"
STATUS_PATH = "status.php"

OCS_HEADERS = {"OCS-APIRequest": "true", "Accept": "application/json"}


class FetchErrorCategory(str, Enum):
    NOT_FOUND = "not_found"
    BAD_REQUEST = "bad_request"
    SERVER_ERROR = "server_error"
    OTHER = "other"


def category_for_status(status_code: int) -> FetchErrorCategory:
    if status_code == 404:
        return FetchErrorCategory.NOT_FOUND
    if status_code == 400:
        return FetchErrorCategory.BAD_REQUEST
    if 500 <= status_code < 600:
        return FetchErrorCategory.SERVER_ERROR
    return FetchErrorCategory.OTHER


class ActivityApiError(Exception):
    def __init__(
        self,
        category: FetchErrorCategory,
        message: str,
        status_code: Optional[int] = None,
    ) -> None:
        self.category = category
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class ActivityTransport(Protocol):
    async def fetch_page(self, since: int, limit: int) -> ActivityPage: ...

    async def send_action(self, link: ActivityLink) -> int: ...


def _ocs_message(body: Any) -> str:
    if isinstance(body, dict):
        meta = (body.get("ocs") or {}).get("meta") or {}
        return str(meta.get("message") or "").strip()
    return ""


def _ocs_data(body: Any) -> list[dict]:
    if not isinstance(body, dict):
        raise ActivityApiError(FetchErrorCategory.OTHER, "Response is not an OCS envelope")
    ocs = body.get("ocs") or {}
    meta = ocs.get("meta") or {}
    try:
        status_code = int(meta.get("statuscode") or 200)
    except (TypeError, ValueError):
        raise ActivityApiError(
            FetchErrorCategory.OTHER,
            f"Invalid OCS status code {meta.get('statuscode')!r}",
        )
    if status_code >= 400:
        raise ActivityApiError(
            category_for_status(status_code),
            str(meta.get("message") or f"OCS status {status_code}").strip(),
            status_code,
        )
    data = ocs.get("data") or []
    if not isinstance(data, list):
        raise ActivityApiError(FetchErrorCategory.OTHER, "OCS data is not a list")
    return [item for item in data if isinstance(item, dict)]


class ActivityApiClient:
    """Talks to the activity and notifications OCS endpoints of one account."""

    def __init__(
        self,
        base_url: str,
        user: str = "",
        password: str = "",
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        auth = httpx.BasicAuth(user, password) if user else None
        self._client = http_client or httpx.AsyncClient(
            timeout=settings.REQUEST_TIMEOUT_SECONDS, auth=auth
        )

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    async def _get_json(self, path: str, params: dict[str, Any]) -> tuple[int, Any]:
        try:
            response = await self._client.get(
                self._url(path), params=params, headers=OCS_HEADERS
            )
        except httpx.TimeoutException as exc:
            raise ActivityApiError(FetchErrorCategory.OTHER, f"Request timed out: {exc}") from exc
        except httpx.HTTPError as exc:
            raise ActivityApiError(
                FetchErrorCategory.OTHER, f"Cannot reach {self.base_url}: {exc}"
            ) from exc

        if response.status_code == 304:
            return response.status_code, None

        try:
            body = response.json()
        except ValueError:
            body = None

        if response.status_code >= 400:
            message = _ocs_message(body) or f"HTTP {response.status_code}"
            raise ActivityApiError(
                category_for_status(response.status_code), message, response.status_code
            )
        if body is None:
            raise ActivityApiError(
                FetchErrorCategory.OTHER, "Invalid JSON in response", response.status_code
            )
        return response.status_code, body

    async def fetch_page(self, since: int, limit: int) -> ActivityPage:
        """Fetch activities older than since. A 304 means there is nothing left."""
        status_code, body = await self._get_json(
            ACTIVITY_PATH,
            {"since": since, "limit": limit, "format": "json"},
        )
        if status_code == 304:
            logger.debug("Activity endpoint returned 304, no more activities")
            return ActivityPage(records=[], status_code=status_code, not_modified=True)

        records = _ocs_data(body)
        logger.debug("Fetched %d activities (since=%d, limit=%d)", len(records), since, limit)
        return ActivityPage(records=records, status_code=status_code)

    async def fetch_notifications(self) -> list[dict]:
        status_code, body = await self._get_json(NOTIFICATIONS_PATH, {"format": "json"})
        if status_code == 304:
            return []
        return _ocs_data(body)

    async def send_action(self, link: ActivityLink) -> int:
        """Run a non-WEB action link against the server and return the HTTP status."""
        method = link.verb or "GET"
        url = link.link if "://" in link.link else self._url(link.link)
        try:
            response = await self._client.request(
                method,
                url,
                params={"format": "json"},
                headers=OCS_HEADERS,
            )
        except httpx.HTTPError as exc:
            raise ActivityApiError(
                FetchErrorCategory.OTHER, f"{method} {link.link} failed: {exc}"
            ) from exc

        if response.status_code >= 400:
            raise ActivityApiError(
                category_for_status(response.status_code),
                f"{method} {link.link} returned {response.status_code}",
                response.status_code,
            )
        return response.status_code

    async def check_reachable(self) -> bool:
        try:
            response = await self._client.get(self._url(STATUS_PATH))
        except httpx.HTTPError:
            return False
        return response.status_code == 200

    async def aclose(self) -> None:
        await self._client.aclose()
