"""Notification Log Context.

Context-local binding of user, notification and trace identifiers so that
every log line emitted while a notification is being gated, flushed or
tracked carries them.
"""

import uuid
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any


_trace_id_var: ContextVar[str] = ContextVar("trace_id", default="")
_user_id_var: ContextVar[str] = ContextVar("user_id", default="")
_notification_id_var: ContextVar[str] = ContextVar("notification_id", default="")
_extra_context_var: ContextVar[dict] = ContextVar("extra_context", default={})


def generate_trace_id() -> str:
    """Generate a unique trace ID using UUID4."""
    return str(uuid.uuid4())


def get_trace_id() -> str:
    return _trace_id_var.get()


def get_user_id() -> str:
    return _user_id_var.get()


def get_notification_id() -> str:
    return _notification_id_var.get()


def get_context_dict() -> dict[str, Any]:
    """Get all bound context values as a dictionary for log records."""
    ctx = {}
    trace_id = _trace_id_var.get()
    if trace_id:
        ctx["trace_id"] = trace_id
    user_id = _user_id_var.get()
    if user_id:
        ctx["user_id"] = user_id
    notification_id = _notification_id_var.get()
    if notification_id:
        ctx["notification_id"] = notification_id
    extra = _extra_context_var.get()
    if extra:
        ctx.update(extra)
    return ctx


@dataclass
class NotificationContext:
    """Context manager binding identifiers to every log entry inside it.

    Example:
        with NotificationContext(user_id="anonymous", notification_id="prayer-p1"):
            logger.info("queued for batch")  # carries user_id, notification_id
    """

    user_id: str = ""
    notification_id: str = ""
    trace_id: str = ""
    extra: dict[str, Any] = field(default_factory=dict)

    _tokens: list = field(default_factory=list, repr=False)

    def __post_init__(self):
        if not self.trace_id:
            self.trace_id = generate_trace_id()

    def __enter__(self) -> "NotificationContext":
        self._tokens = [
            (_trace_id_var, _trace_id_var.set(self.trace_id)),
            (_user_id_var, _user_id_var.set(self.user_id)),
            (_notification_id_var, _notification_id_var.set(self.notification_id)),
            (_extra_context_var, _extra_context_var.set(self.extra.copy())),
        ]
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens.clear()

    def bind(self, **kwargs: Any) -> None:
        """Add extra key-value pairs to the context."""
        current = _extra_context_var.get()
        _extra_context_var.set({**current, **kwargs})
        self.extra.update(kwargs)
