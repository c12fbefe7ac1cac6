"""
Recent feed events (page merges, fetch failures, local inserts, triggered actions),
newest first, for GET /feed/log. Each event records the account it concerns and,
where there is one, the activity id.
"""
from collections import deque
from datetime import datetime, timezone
from typing import Optional, TypedDict


class PipelineEvent(TypedDict):
    timestamp: str               # ISO-8601 UTC
    level: str                   # "info" | "success" | "error" | "warn"
    category: str                # "fetch" | "local" | "action" | "refresh"
    account: str
    activity_id: Optional[int]
    message: str


MAX_EVENTS = 200

PIPELINE_LOG: deque[PipelineEvent] = deque(maxlen=MAX_EVENTS)


def log_event(
    level: str,
    category: str,
    message: str,
    account: str = "",
    activity_id: Optional[int] = None,
) -> None:
    PIPELINE_LOG.appendleft(
        PipelineEvent(
            timestamp=datetime.now(timezone.utc).isoformat(timespec="seconds"),
            level=level,
            category=category,
            account=account,
            activity_id=activity_id,
            message=message,
        )
    )


def recent_events(
    limit: int = 60,
    account: Optional[str] = None,
    category: Optional[str] = None,
) -> list[PipelineEvent]:
    events = [
        event
        for event in PIPELINE_LOG
        if (account is None or event["account"] == account)
        and (category is None or event["category"] == category)
    ]
    return events[:limit]
