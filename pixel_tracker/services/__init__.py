"""
Business logic services - ingestion, aggregates, token lifecycle, enrichment
"""
from pixel_tracker.services.aggregate_service import AggregateService
from pixel_tracker.services.forwarding import BackgroundForwarder
from pixel_tracker.services.geo_service import GeoService
from pixel_tracker.services.token_service import TokenService
from pixel_tracker.services.tracking_service import TrackingService

__all__ = [
    "AggregateService",
    "BackgroundForwarder",
    "GeoService",
    "TokenService",
    "TrackingService",
]
