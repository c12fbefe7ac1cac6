from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class ActivityType(str, Enum):
    ACTIVITY = "activity"
    NOTIFICATION = "notification"
    SYNC_RESULT_ERROR = "sync_result_error"
    SYNC_FILE_ITEM = "sync_file_item"
    FILE_IGNORED = "file_ignored"
    DUMMY_FETCHING = "dummy_fetching"
    DUMMY_MORE_AVAILABLE = "dummy_more_available"


SENTINEL_TYPES = frozenset({ActivityType.DUMMY_FETCHING, ActivityType.DUMMY_MORE_AVAILABLE})


class SyncResultStatus(str, Enum):
    UNDEFINED = "undefined"
    NOT_YET_STARTED = "not_yet_started"
    SYNC_PREPARE = "sync_prepare"
    SYNC_RUNNING = "sync_running"
    SYNC_ABORT_REQUESTED = "sync_abort_requested"
    SUCCESS = "success"
    PROBLEM = "problem"
    ERROR = "error"
    SETUP_ERROR = "setup_error"
    PAUSED = "paused"


class SyncFileItemStatus(str, Enum):
    NO_STATUS = "no_status"
    FATAL_ERROR = "fatal_error"
    NORMAL_ERROR = "normal_error"
    SOFT_ERROR = "soft_error"
    SUCCESS = "success"
    CONFLICT = "conflict"
    FILE_IGNORED = "file_ignored"
    RESTORATION = "restoration"
    DETAIL_ERROR = "detail_error"
    BLACKLISTED_ERROR = "blacklisted_error"
    FILE_LOCKED = "file_locked"
    FILE_NAME_INVALID = "file_name_invalid"
    FILE_NAME_CLASH = "file_name_clash"


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    return bool(value)


class ActivityLink(BaseModel):
    """One user-facing action attached to an activity (accept, reply, dismiss...)."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    label: str = ""
    link: str = ""
    verb: str = ""
    primary: bool = False
    image_source: str = ""
    image_source_hovered: str = ""

    @classmethod
    def from_payload(cls, payload: Any) -> "ActivityLink":
        """Build a link from a server action object. Never raises; unknown keys are ignored."""
        if not isinstance(payload, dict):
            return cls()
        verb = payload.get("type")
        if verb is None:
            verb = payload.get("verb")
        return cls(
            label=_as_text(payload.get("label")),
            link=_as_text(payload.get("link")),
            verb=_as_text(verb).upper(),
            primary=_as_bool(payload.get("primary", False)),
        )


class TalkNotificationData(BaseModel):
    conversation_token: str = ""
    message_id: str = ""
    message_sent: str = ""


class Activity(BaseModel):
    id: int
    kind: ActivityType
    account_name: str = ""
    subject: str = ""
    message: str = ""
    link: str = ""
    date_time: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    sync_result_status: Optional[SyncResultStatus] = None
    sync_file_item_status: Optional[SyncFileItemStatus] = None
    file: str = ""
    folder: str = ""

    # Server-side metadata, carried through for presentation only
    app: str = ""
    object_type: str = ""
    object_id: str = ""
    object_name: str = ""
    icon: str = ""
    talk_notification: Optional[TalkNotificationData] = None

    # May be empty when fetched and filled in later by an action source
    links: list[ActivityLink] = Field(default_factory=list)

    @property
    def identity(self) -> tuple[ActivityType, int, str]:
        return (self.kind, self.id, self.account_name)

    @property
    def is_sentinel(self) -> bool:
        return self.kind in SENTINEL_TYPES

    @property
    def primary_link(self) -> Optional[ActivityLink]:
        return next((link for link in self.links if link.primary), None)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Activity):
            return NotImplemented
        return self.identity == other.identity

    def __hash__(self) -> int:
        return hash(self.identity)


class AccountContext(BaseModel):
    """The account a feed belongs to. Passed in explicitly, never looked up globally."""

    display_name: str
    url: str = ""
    connected: bool = True
