"""
DailyStat model - one row per pixel per UTC day
"""
from sqlalchemy import Column, Integer, Float, Date, DateTime, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.sql import func
import uuid

from pixel_tracker.core.database import Base


class DailyStat(Base):
    """Daily counters, only ever written through atomic upserts"""

    __tablename__ = "daily_stats"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    pixel_app_id = Column(Uuid, ForeignKey("pixel_apps.id", ondelete="CASCADE"), nullable=False)
    date = Column(Date, nullable=False)
    pageviews = Column(Integer, default=0, nullable=False)
    unique_users = Column(Integer, default=0, nullable=False)
    sessions = Column(Integer, default=0, nullable=False)
    purchases = Column(Integer, default=0, nullable=False)
    revenue = Column(Float, default=0.0, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("pixel_app_id", "date", name="uq_daily_stats_app_date"),
    )

    def __repr__(self):
        return f"<DailyStat(pixel_app_id={self.pixel_app_id}, date={self.date}, pageviews={self.pageviews})>"
