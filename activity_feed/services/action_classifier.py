"""
Splits an activity's links into action buttons and overflow-menu entries.
Pure functions only: the same links and button cap always give the same partition.
"""
from gettext import gettext as _
from typing import NamedTuple, Optional, Sequence

from activity_feed.models import ActivityLink

REPLY_VERB = "REPLY"
WEB_VERB = "WEB"

REPLY_ICON = "image://svgimage-custom-color/reply.svg/"
CALL_ICON = "image://svgimage-custom-color/call.svg/"

# Where the reply-capable link sits per conversational object type.
# Call activities carry the "answer" link at index 0.
_REPLY_ACTION_POSITIONS: dict[str, int] = {
    "chat": 0,
    "room": 0,
    "call": 1,
}


class ActionPartition(NamedTuple):
    buttons: list[ActivityLink]
    overflow: list[ActivityLink]


def reply_action_position(object_type: str) -> Optional[int]:
    """Index of the reply link for chat/room/call activities, None for anything else."""
    return _REPLY_ACTION_POSITIONS.get(object_type)


def _representative_index(links: Sequence[ActivityLink], object_type: str) -> int:
    for index, link in enumerate(links):
        if link.primary:
            return index
    position = reply_action_position(object_type)
    if position is not None and position < len(links) and links[position].verb == REPLY_VERB:
        return position
    return 0


def _button_label(link: ActivityLink, object_type: str, button_index: int) -> str:
    if object_type == "call" and button_index == 0:
        return _("Call back")
    # "chat", or any object type that is neither a room nor a call
    if link.verb == REPLY_VERB and (object_type == "chat" or object_type not in ("room", "call")):
        return _("Reply")
    return link.label


def _as_button(link: ActivityLink, object_type: str, button_index: int) -> ActivityLink:
    update: dict[str, object] = {}

    label = _button_label(link, object_type, button_index)
    if label != link.label:
        update["label"] = label

    if link.verb == REPLY_VERB:
        update["image_source"] = REPLY_ICON
        update["image_source_hovered"] = REPLY_ICON
    elif link.verb == WEB_VERB and object_type == "call":
        update["image_source"] = CALL_ICON
        update["image_source_hovered"] = CALL_ICON

    return link.model_copy(update=update) if update else link


def _as_menu_entry(link: ActivityLink) -> ActivityLink:
    # only one primary survives as the button; any extra primary is demoted
    if link.primary:
        return link.model_copy(update={"primary": False})
    return link


def classify(
    links: Sequence[ActivityLink],
    max_buttons: int,
    object_type: str = "",
) -> ActionPartition:
    """
    Partition links into (buttons, overflow).

    Up to max_buttons links are all shown as buttons. Past the cap a single
    representative button is kept (the primary link, else the reply link of a
    conversational activity, else the first link) and every other link moves
    to the overflow menu in its original order.
    """
    if not links:
        return ActionPartition([], [])

    if len(links) <= max_buttons:
        buttons = [
            _as_button(link, object_type, index) for index, link in enumerate(links)
        ]
        return ActionPartition(buttons, [])

    chosen = _representative_index(links, object_type)
    buttons = [_as_button(links[chosen], object_type, 0)]
    overflow = [
        _as_menu_entry(link) for index, link in enumerate(links) if index != chosen
    ]
    return ActionPartition(buttons, overflow)
