"""Push subscription registration and management."""

import logging
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Optional

from src.notifications.models import PushSubscription

logger = logging.getLogger(__name__)


class SubscriptionManager:
    """Keeps the push subscriptions known for each user, keyed by endpoint."""

    def __init__(self):
        self._subscriptions: dict[str, PushSubscription] = {}  # endpoint -> subscription
        self._user_endpoints: dict[str, list[str]] = defaultdict(list)  # user_id -> [endpoints]

    def register(
        self,
        endpoint: str,
        user_id: str = "anonymous",
        keys: Optional[dict] = None,
        user_agent: Optional[str] = None,
    ) -> PushSubscription:
        """Register a subscription, or refresh the one already held for ``endpoint``."""
        existing = self._subscriptions.get(endpoint)
        if existing:
            if existing.user_id != user_id:
                self._detach(existing)
                existing.user_id = user_id
                self._user_endpoints[user_id].append(endpoint)
            existing.keys = keys or existing.keys
            existing.user_agent = user_agent or existing.user_agent
            existing.is_active = True
            existing.mark_used()
            return existing

        subscription = PushSubscription(
            endpoint=endpoint,
            user_id=user_id,
            keys=keys or {},
            user_agent=user_agent,
        )
        self._subscriptions[endpoint] = subscription
        self._user_endpoints[user_id].append(endpoint)
        logger.info("Registered push subscription for %s", user_id)
        return subscription

    def _detach(self, subscription: PushSubscription) -> None:
        endpoints = self._user_endpoints.get(subscription.user_id, [])
        if subscription.endpoint in endpoints:
            endpoints.remove(subscription.endpoint)
        if not endpoints:
            self._user_endpoints.pop(subscription.user_id, None)

    def get(self, endpoint: str) -> Optional[PushSubscription]:
        return self._subscriptions.get(endpoint)

    def get_user_subscriptions(self, user_id: str, active_only: bool = True) -> list[PushSubscription]:
        endpoints = self._user_endpoints.get(user_id, [])
        subscriptions = [self._subscriptions[e] for e in endpoints if e in self._subscriptions]
        if active_only:
            subscriptions = [s for s in subscriptions if s.is_active]
        return subscriptions

    def unregister(self, endpoint: str) -> bool:
        subscription = self._subscriptions.pop(endpoint, None)
        if not subscription:
            return False
        self._detach(subscription)
        return True

    def mark_invalid(self, endpoint: str) -> bool:
        """Deactivate a subscription the push gateway reported as gone."""
        subscription = self._subscriptions.get(endpoint)
        if not subscription:
            return False
        subscription.deactivate()
        logger.info("Push subscription deactivated (gone): %s", endpoint)
        return True

    def get_stale(self, days: int = 90) -> list[PushSubscription]:
        cutoff = datetime.now(timezone.utc) - timedelta(days=days)
        return [
            s for s in self._subscriptions.values()
            if (s.last_used_at or s.created_at) < cutoff
        ]

    def cleanup_stale(self, days: int = 90) -> int:
        return sum(1 for s in self.get_stale(days) if self.unregister(s.endpoint))

    def get_stats(self) -> dict:
        total = len(self._subscriptions)
        active = sum(1 for s in self._subscriptions.values() if s.is_active)
        return {
            "total_subscriptions": total,
            "active_subscriptions": active,
            "inactive_subscriptions": total - active,
            "unique_users": len(self._user_endpoints),
        }
