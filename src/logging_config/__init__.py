"""Structured Logging for the notification core.

Provides structured JSON logging, per-notification context binding,
and timing of slow storage/transport round-trips.
"""

from src.logging_config.config import LogFormat, LoggingConfig, LogLevel
from src.logging_config.context import NotificationContext, generate_trace_id
from src.logging_config.performance import PerformanceTimer, log_performance
from src.logging_config.setup import configure_logging

__all__ = [
    "LogFormat",
    "LogLevel",
    "LoggingConfig",
    "NotificationContext",
    "PerformanceTimer",
    "configure_logging",
    "generate_trace_id",
    "log_performance",
]
