"""Logging configuration for the notification core."""

import os
from dataclasses import dataclass, field, replace
from enum import Enum

ENV_LEVEL = "CHURCH_LOG_LEVEL"
ENV_FORMAT = "CHURCH_LOG_FORMAT"


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """JSON lines in deployment, colored text at a terminal."""
    JSON = "json"
    CONSOLE = "console"


# ``extra=`` keys the delivery path attaches to its records
NOTIFICATION_LOG_FIELDS = (
    "duration_ms",
    "notification_type",
    "delivery_status",
    "reason",
    "schedule_id",
    "queue_size",
    "extra_data",
)


@dataclass
class LoggingConfig:
    level: LogLevel = LogLevel.INFO
    format: LogFormat = LogFormat.JSON
    include_caller: bool = True
    # Storage and transport round-trips slower than this are logged at WARNING
    slow_threshold_ms: float = 500.0
    service_name: str = "church-notify"
    extra_fields: tuple[str, ...] = NOTIFICATION_LOG_FIELDS
    # HTTP and Redis client chatter is held at WARNING
    quiet_loggers: list[str] = field(
        default_factory=lambda: ["httpx", "httpcore", "redis", "asyncio"]
    )

    def with_env_overrides(self) -> "LoggingConfig":
        """Copy with CHURCH_LOG_LEVEL / CHURCH_LOG_FORMAT applied when they hold a known value."""
        config = self
        level = os.environ.get(ENV_LEVEL, "").upper()
        if level in LogLevel.__members__:
            config = replace(config, level=LogLevel(level))
        fmt = os.environ.get(ENV_FORMAT, "").lower()
        if fmt in {f.value for f in LogFormat}:
            config = replace(config, format=LogFormat(fmt))
        return config


DEFAULT_LOGGING_CONFIG = LoggingConfig()
