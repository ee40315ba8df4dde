"""
PixelSettings model - Conversions API credentials and capability flags (1:1 with PixelApp)
"""
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Text, Uuid
from sqlalchemy.orm import relationship
import uuid

from pixel_tracker.core.database import Base


class PixelSettings(Base):
    """Per-pixel settings"""

    __tablename__ = "pixel_settings"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    pixel_app_id = Column(Uuid, ForeignKey("pixel_apps.id", ondelete="CASCADE"), nullable=False, unique=True)

    external_pixel_id = Column(String(100), nullable=True)
    external_access_token = Column(Text, nullable=True)  # Fernet-encrypted
    token_expires_at = Column(DateTime(timezone=True), nullable=True)  # NULL = never expires
    test_event_code = Column(String(100), nullable=True)

    record_ip = Column(Boolean, default=True, nullable=False)
    record_location = Column(Boolean, default=True, nullable=False)
    record_session = Column(Boolean, default=True, nullable=False)
    custom_events_enabled = Column(Boolean, default=True, nullable=False)
    forwarding_enabled = Column(Boolean, default=False, nullable=False)

    pixel_app = relationship("PixelApp", back_populates="settings")

    def __repr__(self):
        return f"<PixelSettings(pixel_app_id={self.pixel_app_id}, pixel={self.external_pixel_id})>"
