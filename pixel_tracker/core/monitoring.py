"""
Monitoring utilities: metrics and error tracking as structured log lines.

Metric lines carry pixel_app_id / duration_ms as record extras, so the JSON
formatter turns them into queryable fields.
"""
from typing import Dict, Any, Optional
from datetime import datetime, timezone
from functools import wraps
import asyncio
import logging
import time

from pixel_tracker.core.errors import TrackingError

logger = logging.getLogger(__name__)


def track_error(
    error_type: str,
    pixel_app_id: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None
):
    """
    Track error for monitoring.

    Args:
        error_type: Type of error (e.g. "forwarding_failed")
        pixel_app_id: PixelApp UUID (optional)
        metadata: Additional metadata
    """
    logger.error(
        f"Error tracked: {error_type} {metadata or {}}",
        extra={
            "pixel_app_id": pixel_app_id,
            "error_type": error_type,
            "tracked_at": datetime.now(timezone.utc).isoformat(),
        },
    )


def track_metric(
    metric_name: str,
    value: float,
    pixel_app_id: Optional[str] = None,
    tags: Optional[Dict[str, str]] = None
):
    """
    Track metric for monitoring.

    Args:
        metric_name: Name of metric (e.g. "capi.forward")
        value: Metric value
        pixel_app_id: PixelApp UUID (optional)
        tags: Additional tags
    """
    tag_text = ",".join(f"{key}={val}" for key, val in sorted((tags or {}).items()))
    logger.info(
        f"Metric: {metric_name}={value} [{tag_text}]",
        extra={"pixel_app_id": pixel_app_id, "metric": metric_name, "value": value},
    )


def monitor_performance(func):
    """
    Decorator timing a coroutine and reporting its outcome.

    Outcomes: success, rejected (a 4xx TrackingError), error (anything else).

    Usage:
        @monitor_performance
        async def track(...):
            ...
    """
    if not asyncio.iscoroutinefunction(func):
        raise TypeError("monitor_performance only wraps coroutine functions")

    def _report(status: str, started: float, error: Optional[BaseException] = None) -> None:
        duration_ms = round((time.monotonic() - started) * 1000, 2)
        tags = {"status": status}
        if error is not None:
            tags["error"] = type(error).__name__
        track_metric(f"{func.__name__}.duration_ms", duration_ms, tags=tags)

    @wraps(func)
    async def async_wrapper(*args, **kwargs):
        started = time.monotonic()
        try:
            result = await func(*args, **kwargs)
        except TrackingError as e:
            _report("rejected" if e.status_code < 500 else "error", started, e)
            raise
        except Exception as e:
            _report("error", started, e)
            raise
        _report("success", started)
        return result

    return async_wrapper
