"""User notification preferences: local cache plus optional server mirror."""

import copy
import logging
from typing import Awaitable, Callable, Optional

import httpx

from src.cache.keys import preferences_key
from src.cache.memory_store import InMemoryKeyValueStore
from src.logging_config import log_performance
from src.notifications.api_client import ChurchApiClient
from src.notifications.config import DEFAULT_NOTIFICATION_CONFIG, NotificationConfig
from src.notifications.exceptions import (
    ErrorCode,
    InvalidPreferencesError,
    PreferenceStoreError,
)
from src.notifications.models import NotificationPreferences

logger = logging.getLogger(__name__)

PREFERENCES_PATH = "/api/notifications/preferences"

PreferencesListener = Callable[[NotificationPreferences], Awaitable[None]]


class PreferenceServerClient:
    """Server-side copy of each user's preferences (the source of truth)."""

    def __init__(self, api: Optional[ChurchApiClient] = None):
        self.api = api or ChurchApiClient()

    async def fetch(self, user_id: str) -> Optional[dict]:
        """Stored preference document, or None when the server has none."""
        try:
            resp = await self.api.get_json(PREFERENCES_PATH, params={"userId": user_id})
        except httpx.HTTPError as e:
            raise PreferenceStoreError(f"Preference fetch failed: {e}", ErrorCode.SERVER_MIRROR_FAILED) from e
        if resp.status_code == 404:
            return None
        if resp.status_code >= 400:
            raise PreferenceStoreError(
                f"Preference fetch returned {resp.status_code}", ErrorCode.SERVER_MIRROR_FAILED,
            )
        return resp.json().get("preferences")

    async def store(self, user_id: str, preferences: NotificationPreferences) -> None:
        body = preferences.to_server_dict()
        body["user_id"] = user_id
        try:
            resp = await self.api.post_json(PREFERENCES_PATH, body)
        except httpx.HTTPError as e:
            raise PreferenceStoreError(f"Preference store failed: {e}", ErrorCode.SERVER_MIRROR_FAILED) from e
        if resp.status_code >= 400:
            raise PreferenceStoreError(
                f"Preference store returned {resp.status_code}", ErrorCode.SERVER_MIRROR_FAILED,
            )


class PreferenceStore:
    """Reads and replaces whole preference records.

    ``get`` never fails: when storage is unreachable it answers from the
    last value seen in this process, or fresh defaults. ``set`` replaces
    the record wholesale and then notifies listeners (the scheduling
    engine recomputes recurring schedules from there).
    """

    def __init__(
        self,
        backend=None,
        mirror: Optional[PreferenceServerClient] = None,
        config: Optional[NotificationConfig] = None,
        ttl: Optional[int] = None,
    ):
        self.backend = backend or InMemoryKeyValueStore()
        self.mirror = mirror
        self.config = config or DEFAULT_NOTIFICATION_CONFIG
        self.ttl = ttl
        self._ephemeral: dict[str, NotificationPreferences] = {}
        self._listeners: list[PreferencesListener] = []

    def add_listener(self, listener: PreferencesListener) -> None:
        self._listeners.append(listener)

    def _remember(self, preferences: NotificationPreferences) -> NotificationPreferences:
        self._ephemeral[preferences.user_id] = copy.deepcopy(preferences)
        return preferences

    def _fallback(self, user_id: str) -> NotificationPreferences:
        known = self._ephemeral.get(user_id)
        if known is not None:
            return copy.deepcopy(known)
        return self._remember(NotificationPreferences.defaults(user_id, self.config))

    async def _write_local(self, preferences: NotificationPreferences) -> bool:
        try:
            await self.backend.set_json(preferences_key(preferences.user_id), preferences.to_dict(), ttl=self.ttl)
            return True
        except Exception as e:
            logger.warning("Local preference write failed for %s: %s", preferences.user_id, e)
            return False

    async def _from_mirror(self, user_id: str) -> Optional[NotificationPreferences]:
        try:
            data = await self.mirror.fetch(user_id)
        except PreferenceStoreError as e:
            logger.warning("Preference mirror unavailable for %s: %s", user_id, e)
            return None
        if data is None:
            return None
        try:
            return NotificationPreferences.from_dict(data, user_id=user_id, config=self.config)
        except InvalidPreferencesError as e:
            logger.warning("Ignoring malformed server preferences for %s: %s", user_id, e)
            return None

    @log_performance(threshold_ms=200.0)
    async def get(self, user_id: str) -> NotificationPreferences:
        """Resolved preferences for ``user_id``; creates and persists defaults on first access."""
        if self.mirror is not None:
            prefs = await self._from_mirror(user_id)
            if prefs is not None:
                await self._write_local(prefs)
                return self._remember(prefs)

        try:
            data = await self.backend.get_json(preferences_key(user_id))
        except Exception as e:
            logger.warning("Preference storage unavailable for %s, using ephemeral copy: %s", user_id, e)
            return self._fallback(user_id)

        if data is not None:
            try:
                prefs = NotificationPreferences.from_dict(data, user_id=user_id, config=self.config)
                return self._remember(prefs)
            except InvalidPreferencesError as e:
                logger.warning("Discarding malformed stored preferences for %s: %s", user_id, e)

        prefs = NotificationPreferences.defaults(user_id, self.config)
        await self._write_local(prefs)
        logger.debug("Created default preferences for %s", user_id)
        return self._remember(prefs)

    @log_performance(threshold_ms=200.0)
    async def set(self, user_id: str, preferences: NotificationPreferences) -> None:
        """Replace the stored record, mirror it, then notify listeners.

        Raises InvalidPreferencesError for a malformed record; storage
        failures are logged and do not reach the caller.
        """
        preferences = copy.deepcopy(preferences)
        preferences.user_id = user_id
        preferences.validate()

        self._remember(preferences)
        await self._write_local(preferences)

        if self.mirror is not None:
            try:
                await self.mirror.store(user_id, preferences)
            except PreferenceStoreError as e:
                logger.warning("Preference mirror write failed for %s: %s", user_id, e)

        logger.info("Preferences updated for %s", user_id)
        for listener in self._listeners:
            await listener(copy.deepcopy(preferences))
