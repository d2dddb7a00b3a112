"""Redis key naming conventions.

All keys are namespaced with the 'church:' prefix and keyed by user id
(or "anonymous" before sign-in).
"""

# Notification preferences, JSON (TTL: 30d, refreshed on every write)
PREFERENCES = "church:prefs:{user_id}"

# Saved-for-later items from notification actions (TTL: 90d)
SAVED_ITEMS = "church:saved_items:{user_id}"


def preferences_key(user_id: str) -> str:
    return PREFERENCES.format(user_id=user_id)


def saved_items_key(user_id: str) -> str:
    return SAVED_ITEMS.format(user_id=user_id)
