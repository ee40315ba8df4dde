"""
Event model - immutable record of one pixel-fired event
"""
from sqlalchemy import Column, String, Integer, Float, DateTime, JSON, ForeignKey, Index, Text, Uuid, event
from sqlalchemy.sql import func
import uuid

from pixel_tracker.core.database import Base


class Event(Base):
    """Event model - source of truth; aggregates and forwarding are projections of it"""

    __tablename__ = "events"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    pixel_app_id = Column(Uuid, ForeignKey("pixel_apps.id", ondelete="CASCADE"), nullable=False, index=True)
    event_name = Column(String(100), nullable=False, index=True)  # e.g., "pageview", "add_to_cart"
    url = Column(Text, nullable=True)
    referrer = Column(Text, nullable=True)
    session_id = Column(String(200), nullable=True, index=True)
    fingerprint = Column(String(200), nullable=True)
    page_title = Column(String(500), nullable=True)

    # Device snapshot at receipt
    ip_address = Column(String(64), nullable=True)  # only when record_ip is on
    user_agent = Column(Text, nullable=True)
    browser = Column(String(50), nullable=True)
    browser_version = Column(String(50), nullable=True)
    os = Column(String(50), nullable=True)
    os_version = Column(String(50), nullable=True)
    device_type = Column(String(20), nullable=True)  # desktop, mobile, tablet
    screen_width = Column(Integer, nullable=True)
    screen_height = Column(Integer, nullable=True)

    # Geo snapshot, only when record_location is on
    city = Column(String(100), nullable=True)
    region = Column(String(100), nullable=True)
    country = Column(String(100), nullable=True)
    country_code = Column(String(10), nullable=True)
    timezone = Column(String(64), nullable=True)

    # UTM parameters
    utm_source = Column(String(200), nullable=True)
    utm_medium = Column(String(200), nullable=True)
    utm_campaign = Column(String(200), nullable=True)
    utm_term = Column(String(200), nullable=True)
    utm_content = Column(String(200), nullable=True)

    # E-commerce
    value = Column(Float, nullable=True)
    currency = Column(String(10), nullable=True)
    product_id = Column(String(200), nullable=True)
    product_name = Column(String(500), nullable=True)
    quantity = Column(Integer, nullable=True)

    custom_data = Column(JSON, nullable=True)  # opaque string -> JSON value map
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    __table_args__ = (
        Index("idx_events_app_event", "pixel_app_id", "event_name"),
        Index("idx_events_app_date", "pixel_app_id", "created_at"),
    )

    def __repr__(self):
        return f"<Event(id={self.id}, pixel_app_id={self.pixel_app_id}, event={self.event_name})>"


@event.listens_for(Event, "before_update")
def _reject_event_update(mapper, connection, target):
    raise ValueError(f"Event {target.id} is immutable")
