"""Timing for preference storage and transport round-trips.

Every timed call is logged at DEBUG; calls over the slow threshold and
calls that raise are logged at WARNING with ``duration_ms`` attached.
"""

import asyncio
import functools
import logging
import time
from typing import Any, Callable, Optional

from src.logging_config.config import DEFAULT_LOGGING_CONFIG

logger = logging.getLogger(__name__)


def _report(
    log: logging.Logger,
    name: str,
    started: float,
    threshold_ms: float,
    failure: Optional[type] = None,
) -> float:
    duration_ms = (time.perf_counter() - started) * 1000
    extra = {"duration_ms": round(duration_ms, 2)}
    if failure is not None:
        log.warning("%s failed after %.1fms: %s", name, duration_ms, failure.__name__, extra=extra)
    elif duration_ms >= threshold_ms:
        log.warning("Slow operation: %s took %.1fms", name, duration_ms, extra=extra)
    else:
        log.debug("%s completed in %.1fms", name, duration_ms, extra=extra)
    return duration_ms


def log_performance(
    threshold_ms: Optional[float] = None,
    logger_name: Optional[str] = None,
) -> Callable:
    """Decorator timing a sync or async callable; exceptions are re-raised unchanged.

    Example:
        @log_performance(threshold_ms=200)
        async def get(self, user_id):
            ...
    """
    if threshold_ms is None:
        threshold_ms = DEFAULT_LOGGING_CONFIG.slow_threshold_ms

    def decorator(func: Callable) -> Callable:
        log = logging.getLogger(logger_name or func.__module__)
        name = func.__qualname__

        if asyncio.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                started = time.perf_counter()
                try:
                    result = await func(*args, **kwargs)
                except Exception as exc:
                    _report(log, name, started, threshold_ms, type(exc))
                    raise
                _report(log, name, started, threshold_ms)
                return result
            return async_wrapper

        @functools.wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
            started = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as exc:
                _report(log, name, started, threshold_ms, type(exc))
                raise
            _report(log, name, started, threshold_ms)
            return result
        return sync_wrapper

    return decorator


class PerformanceTimer:
    """Times a block, e.g. one batch flush.

    Example:
        with PerformanceTimer("batch_flush") as timer:
            for notification in batch:
                await transport.show(notification)
        timer.duration_ms
    """

    def __init__(self, operation_name: str, threshold_ms: Optional[float] = None):
        self.operation_name = operation_name
        self.threshold_ms = threshold_ms or DEFAULT_LOGGING_CONFIG.slow_threshold_ms
        self.started: float = 0
        self.duration_ms: float = 0

    def __enter__(self) -> "PerformanceTimer":
        self.started = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.duration_ms = _report(logger, self.operation_name, self.started, self.threshold_ms, exc_type)
