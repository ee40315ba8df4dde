"""
PixelApp model - one tracked destination (one external pixel) per row
"""
from sqlalchemy import Column, String, Boolean, DateTime, Index, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from pixel_tracker.core.database import Base


class PixelApp(Base):
    """PixelApp model - owned by a store, assigned to at most one website domain"""

    __tablename__ = "pixel_apps"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    external_id = Column(String(100), nullable=False, unique=True)  # public id embedded in the pixel script
    name = Column(String(200), nullable=False)
    enabled = Column(Boolean, default=True, nullable=False)
    website_domain = Column(String(255), nullable=True)  # stored normalized, NULL = tracking locked
    shop = Column(String(255), nullable=False, index=True)  # owner store, e.g. mystore.myshopify.com
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    settings = relationship(
        "PixelSettings",
        back_populates="pixel_app",
        uselist=False,
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("idx_pixel_apps_shop_enabled", "shop", "enabled"),
    )

    def __repr__(self):
        return f"<PixelApp(id={self.id}, external_id={self.external_id}, domain={self.website_domain})>"
