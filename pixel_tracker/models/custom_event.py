"""
CustomEvent model - maps an internal event name to a Conversions API standard event
"""
from sqlalchemy import Column, String, Boolean, DateTime, JSON, ForeignKey, UniqueConstraint, Text, Uuid
from sqlalchemy.sql import func
import uuid

from pixel_tracker.core.database import Base


class CustomEvent(Base):
    """Per-pixel event mapping with a default payload merged under request data"""

    __tablename__ = "custom_events"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    pixel_app_id = Column(Uuid, ForeignKey("pixel_apps.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)  # internal event name sent by the pixel
    display_name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    external_event_name = Column(String(100), nullable=True)  # e.g. "AddToCart"
    event_data = Column(JSON, nullable=True)  # default custom_data
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("pixel_app_id", "name", name="uq_custom_events_app_name"),
    )

    def __repr__(self):
        return f"<CustomEvent(name={self.name}, external={self.external_event_name})>"
