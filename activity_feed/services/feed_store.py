"""
Ordered, de-duplicated in-memory collection of activities for one account.

Locally generated entries are inserted at the front, fetched pages are appended
at the end in server order. Every mutation returns the affected (inclusive) row
range so a rendering layer can refresh just those rows.
"""
import logging
from datetime import datetime
from enum import Enum
from gettext import gettext as _
from typing import Iterator, NamedTuple, Optional, Sequence

from activity_feed.models import Activity, ActivityType
from activity_feed.services.pipeline_log import log_event

logger = logging.getLogger(__name__)

PLACEHOLDER_ID = -1
MORE_AVAILABLE_ID = -2

Identity = tuple[ActivityType, int, str]


class LocalCategory(str, Enum):
    NOTIFICATION = "notification"
    SYNC_ERROR = "sync_error"
    NETWORK_ERROR = "network_error"
    SYNC_FILE_ITEM = "sync_file_item"
    FILE_IGNORED = "file_ignored"


class ErrorType(str, Enum):
    SYNC_ERROR = "sync_error"
    NETWORK_ERROR = "network_error"


class RowRange(NamedTuple):
    first: int
    last: int

    @property
    def count(self) -> int:
        return self.last - self.first + 1


class FetchedSnapshot(NamedTuple):
    rows: list[Activity]
    current_item: int


class FeedStore:
    def __init__(self, account_name: str = "") -> None:
        self.account_name = account_name
        self.current_item = 0
        self.currently_fetching = False
        # bumped whenever the feed is wiped, so stale fetch results can be discarded
        self.generation = 0
        self._activities: list[Activity] = []
        self._local_categories: dict[Identity, LocalCategory] = {}

    # ── Read access ──────────────────────────────────────────────────────────

    def __len__(self) -> int:
        return len(self._activities)

    def __iter__(self) -> Iterator[Activity]:
        return iter(list(self._activities))

    @property
    def row_count(self) -> int:
        return len(self._activities)

    @property
    def activities(self) -> list[Activity]:
        return list(self._activities)

    @property
    def has_placeholder(self) -> bool:
        return self._index_of_kind(ActivityType.DUMMY_FETCHING) is not None

    def activity_at(self, position: int) -> Optional[Activity]:
        if 0 <= position < len(self._activities):
            return self._activities[position]
        return None

    def local_activities(self, category: LocalCategory) -> list[Activity]:
        return [
            activity
            for activity in self._activities
            if self._local_categories.get(activity.identity) == category
        ]

    def fetched_activities(self) -> list[Activity]:
        return [activity for activity in self._activities if self._is_fetched(activity)]

    @property
    def oldest_fetched_date(self) -> Optional[datetime]:
        dates = [activity.date_time for activity in self.fetched_activities()]
        return min(dates) if dates else None

    # ── Local events ─────────────────────────────────────────────────────────

    def insert_local(self, activity: Activity, category: LocalCategory) -> RowRange:
        """
        Put a locally generated activity at the top of the feed. An entry with
        the same identity is moved up, so rows 0..its old position change.
        """
        category = LocalCategory(category)
        if activity.is_sentinel:
            raise ValueError(f"{activity.kind.value} rows are managed by the store")

        existing = self._index_of(activity.identity)
        if existing is not None:
            logger.debug("Moving existing activity %s to the front", activity.identity)
            del self._activities[existing]

        self._activities.insert(0, activity)
        self._local_categories[activity.identity] = category
        logger.info("Added %s activity %d to the feed", category.value, activity.id)
        log_event(
            "info", "local",
            f"{category.value}: {activity.subject or activity.message or activity.file}",
            account=activity.account_name,
            activity_id=activity.id,
        )
        return RowRange(0, existing or 0)

    def add_notification(self, activity: Activity) -> RowRange:
        return self.insert_local(activity, LocalCategory.NOTIFICATION)

    def add_error(self, activity: Activity, error_type: ErrorType = ErrorType.SYNC_ERROR) -> RowRange:
        category = (
            LocalCategory.NETWORK_ERROR
            if error_type == ErrorType.NETWORK_ERROR
            else LocalCategory.SYNC_ERROR
        )
        return self.insert_local(activity, category)

    def add_ignored_file(self, activity: Activity) -> RowRange:
        return self.insert_local(activity, LocalCategory.FILE_IGNORED)

    def add_sync_file_item(self, activity: Activity) -> RowRange:
        return self.insert_local(activity, LocalCategory.SYNC_FILE_ITEM)

    def clear_category(self, category: LocalCategory) -> int:
        """Remove every local entry that was inserted under category."""
        category = LocalCategory(category)
        kept = []
        removed = 0
        for activity in self._activities:
            if self._local_categories.get(activity.identity) == category:
                del self._local_categories[activity.identity]
                removed += 1
            else:
                kept.append(activity)
        self._activities = kept
        if removed:
            logger.info("Cleared %d %s entries", removed, category.value)
        return removed

    # ── Removal ──────────────────────────────────────────────────────────────

    def remove_at(self, position: int) -> Optional[RowRange]:
        if not 0 <= position < len(self._activities):
            logger.warning(
                "Cannot remove activity at row %d, feed has %d rows",
                position,
                len(self._activities),
            )
            return None

        activity = self._activities.pop(position)
        self._local_categories.pop(activity.identity, None)
        return RowRange(position, position)

    def remove_by_identity(self, activity: Activity) -> Optional[RowRange]:
        position = self._index_of(activity.identity)
        if position is None:
            logger.debug("Activity %s not in feed, nothing to remove", activity.identity)
            return None
        return self.remove_at(position)

    # ── Fetched pages ────────────────────────────────────────────────────────

    def merge_page(self, activities: Sequence[Activity]) -> Optional[RowRange]:
        """
        Append the unseen activities of a fetched page and move the cursor back
        to the oldest id of the page. Re-merging the same page is a no-op.
        The fetching placeholder is removed in every case.
        """
        self.hide_placeholder()

        page = [activity for activity in activities if not activity.is_sentinel]
        if not page:
            return None

        page_min = min(activity.id for activity in page)
        if self.current_item <= 0 or page_min < self.current_item:
            self.current_item = page_min

        seen = {activity.identity for activity in self._activities}
        fresh: list[Activity] = []
        for activity in page:
            if activity.identity in seen:
                continue
            seen.add(activity.identity)
            fresh.append(activity)

        if not fresh:
            logger.debug("Page of %d activities contained nothing new", len(page))
            return None

        insert_at = len(self._activities)
        more_at = self._index_of_kind(ActivityType.DUMMY_MORE_AVAILABLE)
        if more_at is not None:
            insert_at = more_at
        self._activities[insert_at:insert_at] = fresh
        return RowRange(insert_at, insert_at + len(fresh) - 1)

    # ── Sentinels ────────────────────────────────────────────────────────────

    def show_placeholder(self) -> Optional[RowRange]:
        if not self.currently_fetching or self.has_placeholder:
            return None
        self._activities.insert(
            0,
            Activity(
                id=PLACEHOLDER_ID,
                kind=ActivityType.DUMMY_FETCHING,
                account_name=self.account_name,
                subject=_("Fetching activities…"),
            ),
        )
        return RowRange(0, 0)

    def hide_placeholder(self) -> Optional[RowRange]:
        position = self._index_of_kind(ActivityType.DUMMY_FETCHING)
        if position is None:
            return None
        del self._activities[position]
        return RowRange(position, position)

    def show_more_available(self, link: str = "") -> Optional[RowRange]:
        if self._index_of_kind(ActivityType.DUMMY_MORE_AVAILABLE) is not None:
            return None
        self._activities.append(
            Activity(
                id=MORE_AVAILABLE_ID,
                kind=ActivityType.DUMMY_MORE_AVAILABLE,
                account_name=self.account_name,
                subject=_("For more activities please open the Activity app."),
                link=link,
            )
        )
        position = len(self._activities) - 1
        return RowRange(position, position)

    # ── Reset ────────────────────────────────────────────────────────────────

    def reset(self, account_name: Optional[str] = None) -> None:
        """Drop everything, e.g. when the active account changes."""
        if account_name is not None:
            self.account_name = account_name
        self._activities.clear()
        self._local_categories.clear()
        self._restart_pagination()
        logger.info("Feed reset for account %r", self.account_name)

    def clear_fetched(self) -> int:
        """Drop server-fetched rows and sentinels, keep local ones, restart pagination."""
        before = len(self._activities)
        self._activities = [
            activity
            for activity in self._activities
            if activity.identity in self._local_categories
        ]
        self._restart_pagination()
        return before - len(self._activities)

    def fetched_snapshot(self) -> FetchedSnapshot:
        """Server rows (and the more-available row) with the cursor they were fetched up to."""
        rows = [
            activity
            for activity in self._activities
            if activity.identity not in self._local_categories
            and activity.kind != ActivityType.DUMMY_FETCHING
        ]
        return FetchedSnapshot(rows, self.current_item)

    def restore_fetched(self, snapshot: FetchedSnapshot) -> Optional[RowRange]:
        """Put back rows taken by fetched_snapshot() after clear_fetched(), if nothing was fetched since."""
        if not snapshot.rows or self.fetched_activities():
            return None
        self.hide_placeholder()
        local = {activity.identity for activity in self._activities}
        rows = [activity for activity in snapshot.rows if activity.identity not in local]
        first = len(self._activities)
        self._activities.extend(rows)
        self.current_item = snapshot.current_item
        logger.info("Restored %d previously fetched activities", len(rows))
        return RowRange(first, len(self._activities) - 1) if rows else None

    # ── Internals ────────────────────────────────────────────────────────────

    def _restart_pagination(self) -> None:
        self.current_item = 0
        self.currently_fetching = False
        self.generation += 1

    def _is_fetched(self, activity: Activity) -> bool:
        return not activity.is_sentinel and activity.identity not in self._local_categories

    def _index_of(self, identity: Identity) -> Optional[int]:
        for position, activity in enumerate(self._activities):
            if activity.identity == identity:
                return position
        return None

    def _index_of_kind(self, kind: ActivityType) -> Optional[int]:
        for position, activity in enumerate(self._activities):
            if activity.kind == kind:
                return position
        return None
