"""Push delivery transport.

The notification core hands payloads to a transport and never learns
whether they were displayed. Two implementations ship here: an
in-process transport that records what it was given, and a gateway
transport that forwards to the church web API over HTTP.
"""

import logging
from datetime import datetime, timezone
from typing import Optional, Protocol, runtime_checkable

import httpx

from src.logging_config import log_performance
from src.notifications.api_client import ChurchApiClient
from src.notifications.exceptions import ErrorCode, TransportError, UnsupportedEnvironmentError
from src.notifications.models import ChurchNotification, NotificationSchedule, PushSubscription

logger = logging.getLogger(__name__)

SCHEDULE_NOTIFICATION = "SCHEDULE_NOTIFICATION"
CANCEL_SCHEDULE = "CANCEL_SCHEDULE"


def schedule_message(schedule: NotificationSchedule, delay_seconds: float) -> dict:
    """Deferred recurring delivery: ``{type, schedule, delay}`` (delay in ms)."""
    return {
        "type": SCHEDULE_NOTIFICATION,
        "schedule": schedule.to_dict(),
        "delay": int(delay_seconds * 1000),
    }


def deferred_notification_message(notification: ChurchNotification, schedule_time: datetime) -> dict:
    """One-shot deferred delivery: ``{type, notification, scheduleTime}`` (epoch ms)."""
    return {
        "type": SCHEDULE_NOTIFICATION,
        "notification": notification.to_payload(),
        "scheduleTime": int(schedule_time.timestamp() * 1000),
    }


def cancel_message(schedule_id: str) -> dict:
    return {"type": CANCEL_SCHEDULE, "id": schedule_id}


@runtime_checkable
class PushTransport(Protocol):
    """What the core needs from the delivery surface."""

    def is_supported(self) -> bool: ...

    async def show(self, notification: ChurchNotification) -> None: ...

    async def post_message(self, message: dict) -> None: ...

    async def subscribe(self, subscription: PushSubscription) -> bool: ...

    async def unsubscribe(self, subscription: PushSubscription) -> bool: ...


class InMemoryTransport:
    """Records every call; used in development and tests.

    ``supported=False`` models an environment without push capability.
    Set ``fail_with`` to an exception to make every call raise it.
    """

    def __init__(self, supported: bool = True):
        self.supported = supported
        self.shown: list[dict] = []
        self.messages: list[dict] = []
        self.subscriptions: dict[str, PushSubscription] = {}
        self.fail_with: Optional[Exception] = None

    def is_supported(self) -> bool:
        return self.supported

    def _check(self) -> None:
        if not self.supported:
            raise UnsupportedEnvironmentError()
        if self.fail_with is not None:
            raise self.fail_with

    async def show(self, notification: ChurchNotification) -> None:
        self._check()
        self.shown.append(notification.to_payload())

    async def post_message(self, message: dict) -> None:
        self._check()
        self.messages.append(message)

    async def subscribe(self, subscription: PushSubscription) -> bool:
        self._check()
        self.subscriptions[subscription.endpoint] = subscription
        return True

    async def unsubscribe(self, subscription: PushSubscription) -> bool:
        self._check()
        return self.subscriptions.pop(subscription.endpoint, None) is not None

    @property
    def shown_tags(self) -> list[str]:
        return [p["tag"] for p in self.shown]


class GatewayTransport:
    """Forwards deliveries to the web API, which fans out to push subscriptions."""

    def __init__(
        self,
        api: Optional[ChurchApiClient] = None,
        user_id: str = "anonymous",
    ):
        self.api = api or ChurchApiClient()
        self.user_id = user_id

    def is_supported(self) -> bool:
        return True

    async def _post(self, path: str, body: dict) -> httpx.Response:
        try:
            resp = await self.api.post_json(path, body)
        except httpx.HTTPError as e:
            raise TransportError(f"POST {path} failed: {e}") from e
        if resp.status_code >= 400:
            raise TransportError(
                f"POST {path} returned {resp.status_code}",
                error_code=(
                    ErrorCode.SUBSCRIPTION_GONE if resp.status_code in (404, 410)
                    else ErrorCode.TRANSPORT_FAILED
                ),
                status_code=resp.status_code,
            )
        return resp

    @log_performance()
    async def show(self, notification: ChurchNotification) -> None:
        await self._post("/api/notifications/send", {
            "userId": self.user_id,
            "notificationType": notification.notification_type.value,
            "payload": notification.to_payload(),
            "immediate": True,
        })

    @log_performance()
    async def post_message(self, message: dict) -> None:
        await self._post("/api/notifications/schedule", {
            "userId": self.user_id,
            **message,
            "postedAt": datetime.now(timezone.utc).isoformat(),
        })

    async def subscribe(self, subscription: PushSubscription) -> bool:
        await self._post("/api/push/subscribe", {
            "subscription": subscription.to_dict(),
            "userId": subscription.user_id,
            "userAgent": subscription.user_agent,
            "timestamp": int(subscription.created_at.timestamp() * 1000),
        })
        return True

    async def unsubscribe(self, subscription: PushSubscription) -> bool:
        await self._post("/api/push/unsubscribe", {"subscription": subscription.to_dict()})
        return True
