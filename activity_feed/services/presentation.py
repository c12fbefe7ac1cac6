"""
Per-row presentation values for the rendering layer.

Everything here is derived from an Activity plus per-pass flags; nothing is
stored. build_row() flattens the values into the schema served over HTTP.
"""
from datetime import datetime, timezone
from typing import Optional

from activity_feed.config import settings
from activity_feed.models import Activity, ActivityLink, ActivityType, SyncFileItemStatus
from activity_feed.schemas import ActivityRowSchema
from activity_feed.services.action_classifier import classify

ICON_SCHEME = "image://svgimage-custom-color/"

TEXT_COLOR = "#222222"
MUTED_TEXT_COLOR = "#808080"
ERROR_TEXT_COLOR = "#e9322d"

_ERROR_FILE_STATUSES = frozenset({
    SyncFileItemStatus.FATAL_ERROR,
    SyncFileItemStatus.NORMAL_ERROR,
    SyncFileItemStatus.DETAIL_ERROR,
    SyncFileItemStatus.BLACKLISTED_ERROR,
    SyncFileItemStatus.FILE_NAME_INVALID,
    SyncFileItemStatus.FILE_NAME_CLASH,
})

_WARNING_FILE_STATUSES = frozenset({
    SyncFileItemStatus.SOFT_ERROR,
    SyncFileItemStatus.CONFLICT,
    SyncFileItemStatus.FILE_LOCKED,
    SyncFileItemStatus.RESTORATION,
})


def button_actions(activity: Activity, max_buttons: Optional[int] = None) -> list[ActivityLink]:
    cap = settings.MAX_ACTION_BUTTONS if max_buttons is None else max_buttons
    return classify(activity.links, cap, activity.object_type).buttons


def overflow_actions(activity: Activity, max_buttons: Optional[int] = None) -> list[ActivityLink]:
    cap = settings.MAX_ACTION_BUTTONS if max_buttons is None else max_buttons
    return classify(activity.links, cap, activity.object_type).overflow


def point_in_time(dt: datetime | None, now: datetime | None = None) -> str:
    if not dt:
        return ""
    now = now or datetime.now(timezone.utc)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    seconds = int((now - dt).total_seconds())
    if seconds < 60:
        return "just now"
    if seconds < 3600:
        mins = seconds // 60
        return f"{mins} minute{'s' if mins != 1 else ''} ago"
    if seconds < 86400:
        hrs = seconds // 3600
        return f"{hrs} hour{'s' if hrs != 1 else ''} ago"
    days = seconds // 86400
    return f"{days} day{'s' if days != 1 else ''} ago"


def _icon_name(activity: Activity) -> str:
    if activity.kind == ActivityType.SYNC_RESULT_ERROR:
        return "state-error.svg"
    if activity.kind == ActivityType.FILE_IGNORED:
        return "state-info.svg"
    if activity.kind == ActivityType.SYNC_FILE_ITEM:
        status = activity.sync_file_item_status
        if status in _ERROR_FILE_STATUSES:
            return "state-error.svg"
        if status in _WARNING_FILE_STATUSES:
            return "state-warning.svg"
        if status == SyncFileItemStatus.FILE_IGNORED:
            return "state-info.svg"
        return "state-ok.svg"
    if activity.kind == ActivityType.NOTIFICATION:
        return "bell.svg"
    return "activity.svg"


def icon_path(activity: Activity, dark: bool = True) -> str:
    """Themed icon for the row; server-provided icons are tinted through the same scheme."""
    colour = "white" if dark else "black"
    if activity.icon and activity.kind in (ActivityType.ACTIVITY, ActivityType.NOTIFICATION):
        return f"{ICON_SCHEME}{activity.icon}/{colour}"
    return f"{ICON_SCHEME}{_icon_name(activity)}/{colour}"


def action_text_color(activity: Activity) -> str:
    if activity.kind == ActivityType.SYNC_RESULT_ERROR:
        return ERROR_TEXT_COLOR
    if activity.kind == ActivityType.SYNC_FILE_ITEM and activity.sync_file_item_status in _ERROR_FILE_STATUSES:
        return ERROR_TEXT_COLOR
    if activity.is_sentinel:
        return MUTED_TEXT_COLOR
    return TEXT_COLOR


def display_path(activity: Activity) -> str:
    if activity.folder and activity.file:
        return f"{activity.folder.rstrip('/')}/{activity.file}"
    return activity.file or activity.folder


def build_row(
    activity: Activity,
    position: int,
    account_connected: bool,
    display_actions: bool = True,
    max_buttons: Optional[int] = None,
) -> ActivityRowSchema:
    cap = settings.MAX_ACTION_BUTTONS if max_buttons is None else max_buttons
    partition = classify(activity.links, cap, activity.object_type)
    talk = activity.talk_notification
    return ActivityRowSchema(
        position=position,
        id=activity.id,
        kind=activity.kind,
        account=activity.account_name,
        action_text=activity.subject,
        action_text_color=action_text_color(activity),
        message=activity.message,
        link=activity.link,
        point_in_time=point_in_time(activity.date_time),
        date_time=activity.date_time,
        dark_icon=icon_path(activity, dark=True),
        light_icon=icon_path(activity, dark=False),
        object_type=activity.object_type,
        object_name=activity.object_name,
        object_id=activity.object_id,
        file=activity.file,
        folder=activity.folder,
        display_path=display_path(activity),
        actions_links=list(activity.links),
        actions_links_for_action_buttons=partition.buttons,
        actions_links_context_menu=partition.overflow,
        account_connected=account_connected,
        display_actions=display_actions and account_connected and bool(activity.links),
        talk_conversation_token=talk.conversation_token if talk else "",
        talk_message_id=talk.message_id if talk else "",
        talk_message_sent=talk.message_sent if talk else "",
    )
