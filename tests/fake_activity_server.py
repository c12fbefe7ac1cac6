"""
Fake activity server: an in-memory activity store behind the same OCS
endpoints the real client talks to, served through httpx.ASGITransport.
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse, Response

FAKE_SERVER_URL = "http://example.de"

ACTIVITY_PATH = "/ocs/v2.php/apps/activity/api/v2/activity"
NOTIFICATIONS_PATH = "/ocs/v2.php/apps/notifications/api/v2/notifications"

_ERROR_MESSAGES = {
    400: "Parameter is incorrect.",
    404: "Invalid query, please check the syntax.",
    500: "Internal Server Error.",
}


def ocs_body(data: Any, status_code: int = 200, message: str = "OK") -> dict:
    status = "ok" if status_code < 400 else "failure"
    return {"ocs": {"meta": {"status": status, "statuscode": status_code, "message": message}, "data": data}}


def _action(label: str, verb: str, primary: bool, link: str = "") -> dict:
    return {"label": label, "link": link, "type": verb, "primary": primary}


class FakeRemoteActivityStorage:
    """
    120 activities, ids 1..120, served newest first.

    Talk activities (chat, call, room) are served without their actions; those
    are only available through actions_by_id(), like the secondary lookup the
    client does after a page arrives.
    """

    NUM_CALENDAR = 60
    NUM_PER_KIND = 10

    def __init__(self) -> None:
        self._activities: list[dict[str, Any]] = []
        self._actions: dict[int, list[dict[str, Any]]] = {}
        self.fail_with: Optional[int] = None
        self.not_modified_when_empty = False
        self.requests: list[dict[str, int]] = []
        self.actions_received: list[tuple[str, int]] = []
        self._build()

    def _notification_link(self, activity_id: int) -> str:
        return f"{FAKE_SERVER_URL}{NOTIFICATIONS_PATH}/{activity_id}"

    def _add(self, object_type: str, subject: str, actions: list[dict], embed_actions: bool, **extra: Any) -> None:
        activity_id = len(self._activities) + 1
        activity = {
            "activity_id": activity_id,
            "app": extra.pop("app", "activity"),
            "type": extra.pop("type", object_type),
            "user": "alice",
            "subject": subject.format(id=activity_id),
            "message": "",
            "object_type": object_type,
            "object_id": extra.pop("object_id", str(activity_id)),
            "object_name": f"{object_type}-{activity_id}",
            "link": f"{FAKE_SERVER_URL}/apps/activity/{activity_id}",
            "icon": f"{FAKE_SERVER_URL}/apps/{object_type}/img/{object_type}.svg",
            "datetime": (self._now - timedelta(minutes=activity_id)).isoformat(),
        }
        if actions:
            self._actions[activity_id] = actions
            if embed_actions:
                activity["actions"] = actions
        self._activities.append(activity)

    def _build(self) -> None:
        self._now = datetime.now(timezone.utc)
        for _ in range(self.NUM_CALENDAR):
            self._add("calendar", "You created event {id} in calendar Events", [], False, type="calendar_event")

        for _ in range(self.NUM_PER_KIND):
            activity_id = len(self._activities) + 1
            self._add(
                "2fa_id",
                "Login attempt {id}",
                [
                    _action("Approve", "POST", True, self._notification_link(activity_id)),
                    _action("Deny", "DELETE", False, self._notification_link(activity_id)),
                ],
                True,
            )
        for _ in range(self.NUM_PER_KIND):
            self._add(
                "create",
                "Generate backup codes {id}",
                [_action("Generate backup codes", "WEB", False, f"{FAKE_SERVER_URL}/settings/user/security")],
                True,
            )
        for _ in range(self.NUM_PER_KIND):
            activity_id = len(self._activities) + 1
            self._add(
                "chat",
                "New message {id}",
                [
                    _action("Reply", "REPLY", True),
                    _action("View chat", "WEB", False, f"{FAKE_SERVER_URL}/call/token{activity_id}"),
                ],
                False,
                app="spreed",
                object_id=f"token{activity_id}/{activity_id}",
            )
        for _ in range(self.NUM_PER_KIND):
            activity_id = len(self._activities) + 1
            self._add(
                "call",
                "Missed call {id}",
                [
                    _action("Answer call", "WEB", True, f"{FAKE_SERVER_URL}/call/token{activity_id}"),
                    _action("Reply", "REPLY", False),
                ],
                False,
                app="spreed",
                object_id=f"token{activity_id}",
            )
        for _ in range(self.NUM_PER_KIND):
            activity_id = len(self._activities) + 1
            self._add(
                "room",
                "You were invited to room {id}",
                [
                    _action("Reply", "REPLY", False),
                    _action("Join", "WEB", True, f"{FAKE_SERVER_URL}/call/token{activity_id}"),
                ],
                False,
                app="spreed",
                object_id=f"token{activity_id}",
            )
        for _ in range(self.NUM_PER_KIND):
            activity_id = len(self._activities) + 1
            self._add(
                "chat",
                "Busy conversation {id}",
                [
                    _action("Reply", "REPLY", True),
                    _action("View chat", "WEB", False, f"{FAKE_SERVER_URL}/call/token{activity_id}"),
                    _action("Mark as read", "POST", False, self._notification_link(activity_id)),
                    _action("Dismiss", "DELETE", False, self._notification_link(activity_id)),
                ],
                False,
                app="spreed",
                object_id=f"token{activity_id}/{activity_id}",
            )

    @property
    def total(self) -> int:
        return len(self._activities)

    @property
    def starting_id_last(self) -> int:
        return self.total + 1

    def activity_page(self, since: int, limit: int) -> list[dict[str, Any]]:
        newest_first = sorted(self._activities, key=lambda a: a["activity_id"], reverse=True)
        if since > 0:
            newest_first = [a for a in newest_first if a["activity_id"] < since]
        return newest_first[:limit]

    def activity_by_id(self, activity_id: int) -> Optional[dict[str, Any]]:
        for activity in self._activities:
            if activity["activity_id"] == activity_id:
                return {**activity, "actions": self._actions.get(activity_id, [])}
        return None

    def actions_by_id(self) -> dict[int, dict[str, Any]]:
        return {activity_id: {"actions": actions} for activity_id, actions in self._actions.items()}

    def notifications(self) -> list[dict[str, Any]]:
        return [
            {"notification_id": activity_id, "app": "twofactor", "actions": actions}
            for activity_id, actions in self._actions.items()
        ]


def create_fake_server(storage: FakeRemoteActivityStorage) -> FastAPI:
    app = FastAPI()

    def _failure() -> Optional[JSONResponse]:
        if storage.fail_with is None:
            return None
        message = _ERROR_MESSAGES.get(storage.fail_with, "Unexpected error.")
        return JSONResponse(ocs_body([], storage.fail_with, message), status_code=storage.fail_with)

    @app.get(ACTIVITY_PATH)
    async def activities(
        since: int = 0,
        limit: int = 50,
        response_format: str = Query("", alias="format"),
    ):
        storage.requests.append({"since": since, "limit": limit})
        if response_format != "json":
            return JSONResponse(ocs_body([], 400, _ERROR_MESSAGES[400]), status_code=400)
        failure = _failure()
        if failure is not None:
            return failure
        data = storage.activity_page(since, limit)
        if not data and storage.not_modified_when_empty:
            return Response(status_code=304)
        return ocs_body(data)

    @app.get(NOTIFICATIONS_PATH)
    async def notifications():
        failure = _failure()
        if failure is not None:
            return failure
        return ocs_body(storage.notifications())

    @app.api_route(f"{NOTIFICATIONS_PATH}/{{notification_id}}", methods=["POST", "DELETE"])
    async def notification_action(notification_id: int, request: Request):
        failure = _failure()
        if failure is not None:
            return failure
        storage.actions_received.append((request.method, notification_id))
        return ocs_body([])

    @app.get("/status.php")
    async def status():
        return {"installed": True, "maintenance": False, "version": "28.0.0"}

    return app
