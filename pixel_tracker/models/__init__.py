"""
SQLAlchemy models
"""
from pixel_tracker.models.pixel_app import PixelApp
from pixel_tracker.models.pixel_settings import PixelSettings
from pixel_tracker.models.event import Event
from pixel_tracker.models.analytics_session import AnalyticsSession
from pixel_tracker.models.daily_stat import DailyStat
from pixel_tracker.models.custom_event import CustomEvent

__all__ = [
    "PixelApp",
    "PixelSettings",
    "Event",
    "AnalyticsSession",
    "DailyStat",
    "CustomEvent",
]

# Import Base for Alembic
from pixel_tracker.core.database import Base
