"""Logging Setup.

``configure_logging`` installs a single stdout handler on the root
logger. Every line carries the bound notification context (user,
notification and trace ids) so one delivery can be followed from the
gate through the transport.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Optional

from src.logging_config.config import (
    DEFAULT_LOGGING_CONFIG,
    NOTIFICATION_LOG_FIELDS,
    LogFormat,
    LoggingConfig,
)
from src.logging_config.context import get_context_dict


def _exception_info(record: logging.LogRecord, formatter: logging.Formatter) -> Optional[dict]:
    if not record.exc_info or record.exc_info[0] is None:
        return None
    exc_type, exc, _ = record.exc_info
    return {
        "type": exc_type.__name__,
        "message": str(exc),
        "traceback": formatter.formatException(record.exc_info),
    }


class StructuredFormatter(logging.Formatter):
    """One JSON object per line.

    Chinese notification text is written as-is rather than escaped.
    """

    def __init__(
        self,
        service_name: str = "church-notify",
        include_caller: bool = True,
        extra_fields: tuple[str, ...] = NOTIFICATION_LOG_FIELDS,
    ):
        super().__init__()
        self.service_name = service_name
        self.include_caller = include_caller
        self.extra_fields = extra_fields

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service_name,
        }
        if self.include_caller:
            entry.update(module=record.module, function=record.funcName, line=record.lineno)

        entry.update(get_context_dict())
        entry.update({k: getattr(record, k) for k in self.extra_fields if hasattr(record, k)})

        exception = _exception_info(record, self)
        if exception:
            entry["exception"] = exception

        return json.dumps(entry, default=str, ensure_ascii=False)


class ConsoleFormatter(logging.Formatter):
    """Colored single-line output for local runs and the CLI."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)
        clock = datetime.now(timezone.utc).strftime("%H:%M:%S.%f")[:-3]
        line = f"{color}{clock} {record.levelname:8s}{self.RESET} {record.name}: {record.getMessage()}"

        ctx = get_context_dict()
        status = getattr(record, "delivery_status", None)
        if status:
            ctx = {**ctx, "status": status}
        if ctx:
            line += " [" + ", ".join(f"{k}={v}" for k, v in ctx.items()) + "]"

        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def build_formatter(config: LoggingConfig) -> logging.Formatter:
    if config.format == LogFormat.JSON:
        return StructuredFormatter(
            service_name=config.service_name,
            include_caller=config.include_caller,
            extra_fields=config.extra_fields,
        )
    return ConsoleFormatter()


def configure_logging(config: Optional[LoggingConfig] = None) -> logging.Handler:
    """Install the root handler; call once at startup.

    CHURCH_LOG_LEVEL and CHURCH_LOG_FORMAT in the environment win over
    ``config``. Returns the installed handler.
    """
    config = (config or DEFAULT_LOGGING_CONFIG).with_env_overrides()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(build_formatter(config))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(config.level.value)

    for name in config.quiet_loggers:
        logging.getLogger(name).setLevel(logging.WARNING)
    return handler
