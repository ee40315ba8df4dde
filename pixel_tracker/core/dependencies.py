"""
FastAPI dependencies - process-wide services.

Each factory is cached so the whole process shares one gate, one cache and
one forwarder. Tests replace them through app.dependency_overrides.
"""
from functools import lru_cache

from fastapi import Depends

from pixel_tracker.adapters.base import BaseConversionsAdapter
from pixel_tracker.adapters.meta import MetaConversionsAdapter
from pixel_tracker.core.cache import TTLCache
from pixel_tracker.core.database import SessionLocal, engine
from pixel_tracker.core.resilience import ResilientDatabase
from pixel_tracker.services.aggregate_service import AggregateService
from pixel_tracker.services.forwarding import BackgroundForwarder
from pixel_tracker.services.geo_service import GeoService
from pixel_tracker.services.token_service import TokenService
from pixel_tracker.services.tracking_service import TrackingService


@lru_cache
def get_database() -> ResilientDatabase:
    return ResilientDatabase(SessionLocal, engine=engine)


@lru_cache
def get_cache() -> TTLCache:
    return TTLCache()


@lru_cache
def get_adapter() -> BaseConversionsAdapter:
    return MetaConversionsAdapter()


@lru_cache
def get_forwarder() -> BackgroundForwarder:
    return BackgroundForwarder()


def get_geo_service(cache: TTLCache = Depends(get_cache)) -> GeoService:
    return GeoService(cache)


def get_token_service(
    db: ResilientDatabase = Depends(get_database),
    adapter: BaseConversionsAdapter = Depends(get_adapter),
    cache: TTLCache = Depends(get_cache),
) -> TokenService:
    return TokenService(db, adapter, cache)


def get_tracking_service(
    db: ResilientDatabase = Depends(get_database),
    cache: TTLCache = Depends(get_cache),
    adapter: BaseConversionsAdapter = Depends(get_adapter),
    forwarder: BackgroundForwarder = Depends(get_forwarder),
    geo: GeoService = Depends(get_geo_service),
    tokens: TokenService = Depends(get_token_service),
) -> TrackingService:
    """
    Assemble the ingestion pipeline.
    Services are cheap wrappers; the shared state lives in the cached factories above.
    """
    return TrackingService(
        db=db,
        cache=cache,
        aggregates=AggregateService(db),
        tokens=tokens,
        adapter=adapter,
        geo=geo,
        forwarder=forwarder,
    )
