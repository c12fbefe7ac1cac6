import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from activity_feed.config import settings
from activity_feed.models import (
    AccountContext,
    Activity,
    ActivityType,
    SENTINEL_TYPES,
    SyncFileItemStatus,
    SyncResultStatus,
    TalkNotificationData,
)
from activity_feed.schemas import ActionResultSchema, FetchOutcome
from activity_feed.services.action_sources import ActionSource, links_from_payload
from activity_feed.services.activity_api import ActivityApiError, ActivityTransport
from activity_feed.services.feed_store import FeedStore
from activity_feed.services.pipeline_log import log_event

logger = logging.getLogger(__name__)

TALK_OBJECT_TYPES = ("chat", "call", "room")

# Verbs handled by the client itself instead of a server request
_OPEN_URL_VERBS = ("", "WEB", "REPLY")


class FetchInProgressError(RuntimeError):
    pass


def _parse_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            logger.debug("Unparseable activity date %r", value)
        else:
            return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return datetime.now(timezone.utc)


def _kind_for(payload: dict[str, Any]) -> Optional[ActivityType]:
    explicit = payload.get("kind")
    if explicit:
        try:
            kind = ActivityType(explicit)
        except ValueError:
            return None
        return None if kind in SENTINEL_TYPES else kind
    if "notification_id" in payload:
        return ActivityType.NOTIFICATION
    if payload.get("type"):
        return ActivityType.ACTIVITY
    return None


def _enum_or_none(enum_cls, value):
    if value in (None, ""):
        return None
    try:
        return enum_cls(value)
    except ValueError:
        return None


def parse_activity(payload: Any, account_name: str) -> Optional[Activity]:
    """
    Normalise one raw server record. Absent optional fields fall back to empty
    values; a record without an id or a type discriminant is unusable and
    returns None.
    """
    if not isinstance(payload, dict):
        return None

    raw_id = payload.get("activity_id")
    if raw_id is None:
        raw_id = payload.get("notification_id", payload.get("id"))
    try:
        activity_id = int(raw_id)
    except (TypeError, ValueError):
        return None

    kind = _kind_for(payload)
    if kind is None:
        return None

    object_type = str(payload.get("object_type") or "")
    object_id = str(payload.get("object_id") or "")
    talk_notification = None
    if object_type in TALK_OBJECT_TYPES and payload.get("app") == "spreed":
        token, _, message_id = object_id.partition("/")
        talk_notification = TalkNotificationData(
            conversation_token=token,
            message_id=message_id,
        )

    return Activity(
        id=activity_id,
        kind=kind,
        account_name=account_name,
        subject=str(payload.get("subject") or ""),
        message=str(payload.get("message") or ""),
        link=str(payload.get("link") or ""),
        date_time=_parse_datetime(payload.get("datetime") or payload.get("date")),
        sync_result_status=_enum_or_none(SyncResultStatus, payload.get("sync_result_status")),
        sync_file_item_status=_enum_or_none(SyncFileItemStatus, payload.get("sync_file_item_status")),
        file=str(payload.get("file") or ""),
        folder=str(payload.get("folder") or ""),
        app=str(payload.get("app") or ""),
        object_type=object_type,
        object_id=object_id,
        object_name=str(payload.get("object_name") or ""),
        icon=str(payload.get("icon") or ""),
        talk_notification=talk_notification,
        links=links_from_payload(payload),
    )


class FetchCoordinator:
    """
    Runs one page fetch at a time against the transport and merges the result
    into the feed store. The fetch itself runs as an asyncio task; callers get
    the task back (or an on_complete callback) and never block on the request.
    """

    def __init__(
        self,
        store: FeedStore,
        transport: ActivityTransport,
        account: AccountContext,
        action_source: Optional[ActionSource] = None,
        page_size: Optional[int] = None,
    ) -> None:
        self.store = store
        self.transport = transport
        self.account = account
        self.action_source = action_source
        self.page_size = page_size or settings.ACTIVITY_PAGE_SIZE
        self.store.account_name = account.display_name

    @property
    def currently_fetching(self) -> bool:
        return self.store.currently_fetching

    def switch_account(self, account: AccountContext, transport: ActivityTransport) -> None:
        self.account = account
        self.transport = transport
        self.store.reset(account.display_name)

    def start_fetch(
        self,
        on_complete: Optional[Callable[[FetchOutcome], None]] = None,
    ) -> "asyncio.Task[FetchOutcome]":
        if self.store.currently_fetching:
            raise FetchInProgressError("An activity fetch is already in flight")

        loop = asyncio.get_running_loop()
        since = self.store.current_item
        self.store.currently_fetching = True
        self.store.show_placeholder()
        logger.debug("Starting activity fetch since=%d limit=%d", since, self.page_size)

        task = loop.create_task(self._fetch(since, self.store.generation))
        if on_complete is not None:

            def _notify(done: "asyncio.Task[FetchOutcome]") -> None:
                if not done.cancelled() and done.exception() is None:
                    on_complete(done.result())

            task.add_done_callback(_notify)
        return task

    async def _fetch(self, since: int, generation: int) -> FetchOutcome:
        limit = self.page_size
        try:
            try:
                page = await self.transport.fetch_page(since, limit)
            except ActivityApiError as exc:
                if generation != self.store.generation:
                    return FetchOutcome(since=since, limit=limit, discarded=True)
                logger.warning(
                    "Activity fetch failed (%s): %s", exc.category.value, exc.message
                )
                log_event(
                    "error", "fetch",
                    f"Fetch failed ({exc.category.value}): {exc.message}",
                    account=self.account.display_name,
                )
                return FetchOutcome(
                    since=since,
                    limit=limit,
                    current_item=self.store.current_item,
                    error=exc.category.value,
                    message=exc.message,
                )

            if generation != self.store.generation:
                logger.info("Discarding activity page fetched before the feed was reset")
                return FetchOutcome(since=since, limit=limit, discarded=True)

            activities = self._normalise(page.records)
            rows = self.store.merge_page(activities)
            added = rows.count if rows else 0

            logger.info(
                "Merged %d of %d fetched activities (since=%d)",
                added, len(page.records), since,
            )
            if added:
                log_event(
                    "success", "fetch",
                    f"{added} new activit{'ies' if added != 1 else 'y'}, cursor at {self.store.current_item}",
                    account=self.account.display_name,
                )
            return FetchOutcome(
                since=since,
                limit=limit,
                received=len(page.records),
                added=added,
                first_row=rows.first if rows else None,
                last_row=rows.last if rows else None,
                current_item=self.store.current_item,
                end_of_feed=page.not_modified or len(page.records) < limit,
            )
        finally:
            if generation == self.store.generation:
                self.store.hide_placeholder()
                self.store.currently_fetching = False

    def _normalise(self, records: list[dict[str, Any]]) -> list[Activity]:
        activities = []
        for payload in records:
            activity = parse_activity(payload, self.account.display_name)
            if activity is None:
                logger.warning("Dropping activity without id or type: %s", payload)
                continue
            if not activity.links:
                self._backfill_links(activity)
            activities.append(activity)
        return activities

    def _backfill_links(self, activity: Activity) -> None:
        if self.action_source is None:
            return
        # ids are only comparable within the kinds the source is keyed by
        kinds = self.action_source.kinds
        if kinds is not None and activity.kind not in kinds:
            return
        links = links_from_payload(self.action_source.lookup_actions_by_id(activity.id))
        if links:
            activity.links = links

    async def trigger_action(self, position: int, action_index: int) -> ActionResultSchema:
        """
        Run action action_index of the activity at position. WEB and REPLY
        links are returned for the caller to open; other verbs go to the
        server, and a successful DELETE dismisses the activity.
        """
        activity = self.store.activity_at(position)
        if activity is None:
            raise IndexError(f"No activity at row {position}")
        if not 0 <= action_index < len(activity.links):
            raise IndexError(f"Activity {activity.id} has no action {action_index}")

        link = activity.links[action_index]
        if link.verb in _OPEN_URL_VERBS:
            return ActionResultSchema(verb=link.verb or "WEB", open_url=link.link or activity.link)

        status_code = await self.transport.send_action(link)
        removed = False
        if link.verb == "DELETE":
            removed = self.store.remove_by_identity(activity) is not None
        log_event(
            "info", "action",
            f"{link.verb} {link.label or link.link} → {status_code}",
            account=activity.account_name,
            activity_id=activity.id,
        )
        return ActionResultSchema(verb=link.verb, status_code=status_code, removed=removed)
