from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel

from activity_feed.models import ActivityLink, ActivityType


class ActivityPage(BaseModel):
    records: list[dict[str, Any]] = []
    status_code: int = 200
    not_modified: bool = False


class FetchOutcome(BaseModel):
    since: int
    limit: int
    received: int = 0
    added: int = 0
    first_row: Optional[int] = None
    last_row: Optional[int] = None
    current_item: int = 0
    end_of_feed: bool = False
    discarded: bool = False
    error: Optional[str] = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None


class ActivityRowSchema(BaseModel):
    position: int
    id: int
    kind: ActivityType
    account: str
    action_text: str
    action_text_color: str
    message: str
    link: str
    point_in_time: str
    date_time: datetime
    dark_icon: str
    light_icon: str
    object_type: str
    object_name: str
    object_id: str
    file: str
    folder: str
    display_path: str
    actions_links: list[ActivityLink]
    actions_links_for_action_buttons: list[ActivityLink]
    actions_links_context_menu: list[ActivityLink]
    account_connected: bool
    display_actions: bool
    talk_conversation_token: str
    talk_message_id: str
    talk_message_sent: str


class FeedStatusSchema(BaseModel):
    account: str
    row_count: int
    current_item: int
    currently_fetching: bool


class ActionResultSchema(BaseModel):
    verb: str
    open_url: Optional[str] = None
    status_code: Optional[int] = None
    removed: bool = False
