"""
Health check utilities
"""
from typing import Dict, Any
import logging

from pixel_tracker.core.cache import TTLCache
from pixel_tracker.core.config import settings
from pixel_tracker.core.resilience import ResilientDatabase
from pixel_tracker.services.forwarding import BackgroundForwarder

logger = logging.getLogger(__name__)


async def get_health_status(
    db: ResilientDatabase,
    cache: TTLCache,
    forwarder: BackgroundForwarder,
) -> Dict[str, Any]:
    """
    Get overall health status.

    Returns:
        Dictionary with health status of all components
    """
    db_status = await db.ping()

    overall_status = "healthy"
    if db_status["status"] != "healthy":
        overall_status = "unhealthy"
        logger.warning(f"Health check: database unhealthy - {db_status['message']}")

    return {
        "status": overall_status,
        "version": "0.1.0",
        "environment": settings.ENVIRONMENT,
        "components": {
            "database": db_status,
            "cache": {"status": "healthy", "size": cache.stats()["size"]},
            "forwarder": {"status": "healthy", "pending": forwarder.pending},
        }
    }
