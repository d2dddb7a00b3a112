"""Engagement tracking: click/close handling, reporting and summaries."""

import logging
from collections import deque
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional, Protocol, Union
from urllib.parse import quote

import httpx

from src.cache.keys import saved_items_key
from src.cache.memory_store import InMemoryKeyValueStore
from src.notifications.api_client import ChurchApiClient
from src.notifications.config import (
    DEFAULT_NOTIFICATION_CONFIG,
    EngagementAction,
    NotificationConfig,
)
from src.notifications.exceptions import ReportingError
from src.notifications.models import EngagementEvent, SavedItem

logger = logging.getLogger(__name__)

ENGAGEMENT_PATH = "/api/analytics/notification"
ERRORS_PATH = "/api/analytics/errors"


class Navigator(Protocol):
    """In-app effects of a click."""

    def navigate(self, url: str) -> None: ...

    def open_external(self, url: str) -> None: ...


class RecordingNavigator:
    """Navigator that remembers where it was sent."""

    def __init__(self):
        self.visited: list[str] = []
        self.external: list[str] = []

    def navigate(self, url: str) -> None:
        self.visited.append(url)

    def open_external(self, url: str) -> None:
        self.external.append(url)

    @property
    def last(self) -> Optional[str]:
        return self.visited[-1] if self.visited else None


class SavedItemsStore:
    """Per-user "saved for later" list kept in the key-value backend."""

    def __init__(self, backend=None, ttl: Optional[int] = None):
        self.backend = backend or InMemoryKeyValueStore()
        self.ttl = ttl

    async def get_items(self, user_id: str) -> list[dict]:
        return await self.backend.get_json(saved_items_key(user_id)) or []

    async def add(self, user_id: str, item: SavedItem) -> list[dict]:
        items = await self.get_items(user_id)
        items.append(item.to_dict())
        await self.backend.set_json(saved_items_key(user_id), items, ttl=self.ttl)
        return items


class EngagementReporter:
    """Fire-and-forget upstream reporting.

    Every event is also kept in a bounded in-process history so the
    engagement summary can be computed without the ingestion endpoint.
    """

    def __init__(
        self,
        api: Optional[ChurchApiClient] = None,
        enabled: bool = True,
        history_size: int = 1000,
    ):
        self.api = api
        self.enabled = enabled
        self.history: deque[EngagementEvent] = deque(maxlen=history_size)

    async def _post(self, path: str, body: dict) -> None:
        try:
            resp = await self.api.post_json(path, body)
        except httpx.HTTPError as e:
            raise ReportingError(f"POST {path} failed: {e}") from e
        if resp.status_code >= 400:
            raise ReportingError(f"POST {path} returned {resp.status_code}")

    async def report(self, event: EngagementEvent) -> bool:
        self.history.append(event)
        if self.api is None or not self.enabled:
            return False
        try:
            await self._post(ENGAGEMENT_PATH, event.to_report())
        except ReportingError as e:
            logger.warning("Engagement report dropped: %s", e)
            return False
        return True

    async def report_error(self, kind: str, message: str, context: Optional[dict] = None) -> bool:
        if self.api is None or not self.enabled:
            return False
        body = {
            "type": kind,
            "message": message,
            "context": context or {},
            "timestamp": int(datetime.now(timezone.utc).timestamp() * 1000),
        }
        try:
            await self._post(ERRORS_PATH, body)
        except ReportingError as e:
            logger.warning("Error report dropped: %s", e)
            return False
        return True

    def summary(self) -> dict:
        return summarize_engagement(self.history)


class EngagementTracker:
    """Maps click/close events from the delivery surface to in-app effects."""

    def __init__(
        self,
        navigator: Navigator,
        reporter: EngagementReporter,
        saved_items: Optional[SavedItemsStore] = None,
        user_id: str = "anonymous",
        config: Optional[NotificationConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.navigator = navigator
        self.reporter = reporter
        self.saved_items = saved_items or SavedItemsStore()
        self.user_id = user_id
        self.config = config or DEFAULT_NOTIFICATION_CONFIG
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @staticmethod
    def _notification_id(data: dict) -> Optional[str]:
        source_id, kind = data.get("id"), data.get("type")
        if source_id and kind:
            return f"{kind}-{source_id}"
        return source_id

    def _event(self, kind: EngagementAction, data: dict, **metadata) -> EngagementEvent:
        return EngagementEvent(
            action=kind,
            notification_id=self._notification_id(data),
            notification_type=data.get("type"),
            user_id=self.user_id,
            metadata={k: v for k, v in metadata.items() if v is not None},
            timestamp=self._clock(),
        )

    async def _save(self, data: dict, url: str) -> None:
        item = SavedItem(
            id=str(data.get("id", "")),
            type=str(data.get("type", "")),
            url=url,
            saved_at=self._clock(),
        )
        try:
            await self.saved_items.add(self.user_id, item)
        except Exception as e:
            logger.warning("Could not save item %s for later: %s", item.id, e)

    async def handle_click(self, data: dict, action: Optional[str] = None) -> str:
        """Apply the effect for ``action`` and report the click.

        Returns the effect applied: ``navigate``, ``save``, ``pray`` or
        ``directions``.
        """
        action = action or data.get("action") or None
        url = data.get("url") or "/"

        if action == "save":
            await self._save(data, url)
            effect = "save"
        elif action == "pray":
            self.navigator.navigate(f"/prayers/{data.get('id')}?mode=pray")
            effect = "pray"
        elif action == "directions" and data.get("location"):
            self.navigator.open_external(self.config.maps_search_url.format(query=quote(data["location"])))
            effect = "directions"
        else:
            self.navigator.navigate(url)
            effect = "navigate"

        logger.debug("Notification click %s -> %s", action or "default", effect)
        await self.reporter.report(self._event(EngagementAction.CLICK, data, action=action))
        return effect

    async def handle_close(self, data: dict) -> None:
        await self.reporter.report(self._event(EngagementAction.CLOSE, data))


# =========================================================================
# Summary
# =========================================================================


def _blank() -> dict:
    return {"sent": 0, "clicks": 0, "dismissals": 0}


def _rate(numerator: int, sent: int) -> float:
    return round(numerator / sent * 100, 2) if sent > 0 else 0.0


def _count(stats: dict, action: str) -> None:
    if action == EngagementAction.SENT.value:
        stats["sent"] += 1
    elif action == EngagementAction.CLICK.value:
        stats["clicks"] += 1
    elif action in (EngagementAction.CLOSE.value, EngagementAction.DISMISS.value):
        stats["dismissals"] += 1


def summarize_engagement(records: Iterable[Union[EngagementEvent, dict]]) -> dict:
    """Fold engagement records into totals and rates.

    Records are EngagementEvent objects or dicts with ``action``,
    ``notification_type`` and ``created_at`` keys (the stored row layout).
    Rates are percentages; 0 when nothing was sent.
    """
    totals = _blank()
    by_type: dict[str, dict] = {}
    by_day: dict[str, dict] = {}
    actions: dict[str, int] = {}

    for record in records:
        if isinstance(record, EngagementEvent):
            action = record.action.value
            kind = record.notification_type or "unknown"
            when = record.timestamp
        else:
            action = str(record.get("action"))
            kind = record.get("notification_type") or record.get("notificationType") or "unknown"
            when = record.get("created_at")
            if isinstance(when, str):
                when = datetime.fromisoformat(when)

        day = when.date().isoformat() if isinstance(when, datetime) else "unknown"

        _count(totals, action)
        _count(by_type.setdefault(kind, _blank()), action)
        _count(by_day.setdefault(day, _blank()), action)
        actions[action] = actions.get(action, 0) + 1

    for stats in by_type.values():
        stats["click_through_rate"] = _rate(stats["clicks"], stats["sent"])
        stats["engagement_rate"] = _rate(stats["clicks"] + stats["dismissals"], stats["sent"])

    return {
        "total_sent": totals["sent"],
        "total_clicks": totals["clicks"],
        "total_dismissals": totals["dismissals"],
        "click_through_rate": _rate(totals["clicks"], totals["sent"]),
        "engagement_rate": _rate(totals["clicks"] + totals["dismissals"], totals["sent"]),
        "by_type": by_type,
        "by_day": by_day,
        "top_actions": dict(sorted(actions.items(), key=lambda kv: kv[1], reverse=True)),
    }
