"""
AnalyticsSession model - rolling per-visit counters keyed by the pixel's session id
"""
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Text, Uuid
from sqlalchemy.sql import func
import uuid

from pixel_tracker.core.database import Base


class AnalyticsSession(Base):
    """Created on first sight of a session id, touched on every later event"""

    __tablename__ = "analytics_sessions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    pixel_app_id = Column(Uuid, ForeignKey("pixel_apps.id", ondelete="CASCADE"), nullable=False, index=True)
    session_id = Column(String(200), nullable=False, unique=True)  # globally unique
    fingerprint = Column(String(200), nullable=True)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(Text, nullable=True)
    browser = Column(String(50), nullable=True)
    os = Column(String(50), nullable=True)
    device_type = Column(String(20), nullable=True)
    country = Column(String(100), nullable=True)
    pageviews = Column(Integer, default=0, nullable=False)
    started_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    last_seen = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<AnalyticsSession(session_id={self.session_id}, pageviews={self.pageviews})>"
