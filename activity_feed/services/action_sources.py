"""
Secondary lookups for action links.

The activity endpoint omits per-item actions for some object types; they are
looked up by id from one of these sources after a page arrives.
"""
import logging
from typing import AbstractSet, Any, Mapping, Optional, Protocol

from activity_feed.models import ActivityLink, ActivityType
from activity_feed.services.activity_api import ActivityApiClient

logger = logging.getLogger(__name__)


class ActionSource(Protocol):
    # kinds whose ids this source is keyed by; None means any kind
    kinds: Optional[AbstractSet[ActivityType]]

    def lookup_actions_by_id(self, activity_id: int) -> Optional[dict[str, Any]]: ...


def links_from_payload(payload: Optional[Mapping[str, Any]]) -> list[ActivityLink]:
    if not payload:
        return []
    actions = payload.get("actions") or []
    if not isinstance(actions, list):
        return []
    return [ActivityLink.from_payload(action) for action in actions]


class DictActionSource:
    def __init__(
        self,
        payloads: Optional[Mapping[int, dict[str, Any]]] = None,
        kinds: Optional[AbstractSet[ActivityType]] = None,
    ) -> None:
        self.kinds = kinds
        self._payloads: dict[int, dict[str, Any]] = dict(payloads or {})

    def add(self, activity_id: int, payload: dict[str, Any]) -> None:
        self._payloads[activity_id] = payload

    def lookup_actions_by_id(self, activity_id: int) -> Optional[dict[str, Any]]:
        return self._payloads.get(activity_id)


class NotificationActionSource:
    """Action lists of the account's server notifications, keyed by notification id."""

    def __init__(self) -> None:
        self.kinds = frozenset({ActivityType.NOTIFICATION})
        self._by_id: dict[int, dict[str, Any]] = {}

    async def refresh(self, client: ActivityApiClient) -> int:
        notifications = await client.fetch_notifications()
        by_id: dict[int, dict[str, Any]] = {}
        for notification in notifications:
            raw_id = notification.get("notification_id", notification.get("id"))
            try:
                notification_id = int(raw_id)
            except (TypeError, ValueError):
                logger.debug("Skipping notification without id: %s", notification)
                continue
            by_id[notification_id] = {"actions": notification.get("actions") or []}
        self._by_id = by_id
        logger.info("Loaded actions for %d notifications", len(by_id))
        return len(by_id)

    def lookup_actions_by_id(self, activity_id: int) -> Optional[dict[str, Any]]:
        return self._by_id.get(activity_id)
