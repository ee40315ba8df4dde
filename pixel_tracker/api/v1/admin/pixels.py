"""
Pixel endpoints for Admin API.
Listing, cached daily stats and website domain assignment.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload

from pixel_tracker.core.cache import TTLCache, cache_key
from pixel_tracker.core.dependencies import get_cache, get_database
from pixel_tracker.core.errors import NotFoundError, ValidationError
from pixel_tracker.core.resilience import ResilientDatabase
from pixel_tracker.core.security import get_current_admin
from pixel_tracker.models.daily_stat import DailyStat
from pixel_tracker.models.pixel_app import PixelApp
from pixel_tracker.schemas.admin import (
    DailyStatResponse,
    DomainUpdate,
    PixelResponse,
    StatsResponse,
    StatsTotals,
)
from pixel_tracker.services.domain_guard import normalize_domain

logger = logging.getLogger(__name__)
router = APIRouter()

STATS_CACHE_TTL = 300


def pixel_summary(pixel: PixelApp) -> Dict[str, Any]:
    pixel_settings = pixel.settings
    return PixelResponse(
        id=pixel.id,
        external_id=pixel.external_id,
        name=pixel.name,
        shop=pixel.shop,
        enabled=pixel.enabled,
        website_domain=pixel.website_domain,
        forwarding_enabled=bool(pixel_settings and pixel_settings.forwarding_enabled),
        external_pixel_id=pixel_settings.external_pixel_id if pixel_settings else None,
        has_access_token=bool(pixel_settings and pixel_settings.external_access_token),
        token_expires_at=pixel_settings.token_expires_at if pixel_settings else None,
        created_at=pixel.created_at,
    ).model_dump()


def _load_pixel(session: Session, external_id: str) -> PixelApp:
    pixel = session.execute(
        select(PixelApp)
        .options(joinedload(PixelApp.settings))
        .where(PixelApp.external_id == external_id)
    ).scalars().first()
    if pixel is None:
        raise NotFoundError(f"Pixel {external_id} not found")
    return pixel


@router.get("/pixels", response_model=List[PixelResponse])
async def list_pixels(
    shop: str = Query(..., min_length=1),
    db: ResilientDatabase = Depends(get_database),
    cache: TTLCache = Depends(get_cache),
    admin: dict = Depends(get_current_admin),
):
    """
    List the pixels owned by a store.
    Cached per store until a domain or token change invalidates it.
    """
    async def produce() -> List[Dict[str, Any]]:
        def _list(session: Session) -> List[Dict[str, Any]]:
            pixels = session.execute(
                select(PixelApp)
                .options(joinedload(PixelApp.settings))
                .where(PixelApp.shop == shop)
                .order_by(PixelApp.created_at)
            ).scalars().all()
            return [pixel_summary(pixel) for pixel in pixels]

        return await db.run(_list, name="list_pixels")

    return await cache.get_or_compute(cache_key("pixels", shop, "list"), None, produce)


@router.get("/pixels/{external_id}/stats", response_model=StatsResponse)
async def get_pixel_stats(
    external_id: str,
    days: int = Query(30, ge=1, le=365),
    refresh: bool = Query(False, description="Bypass and rebuild the cached entry"),
    db: ResilientDatabase = Depends(get_database),
    cache: TTLCache = Depends(get_cache),
    admin: dict = Depends(get_current_admin),
):
    """
    Daily stats for the last `days` UTC days, with totals.
    """
    pixel = await db.run(lambda s: _load_pixel(s, external_id), name="load_pixel")
    since = datetime.now(timezone.utc).date() - timedelta(days=days - 1)

    async def produce() -> Dict[str, Any]:
        def _stats(session: Session) -> List[Dict[str, Any]]:
            rows = session.execute(
                select(DailyStat)
                .where(DailyStat.pixel_app_id == pixel.id, DailyStat.date >= since)
                .order_by(DailyStat.date)
            ).scalars().all()
            return [DailyStatResponse.model_validate(row).model_dump() for row in rows]

        daily = await db.run(_stats, name="load_daily_stats")
        totals = StatsTotals(
            pageviews=sum(row["pageviews"] for row in daily),
            unique_users=sum(row["unique_users"] for row in daily),
            sessions=sum(row["sessions"] for row in daily),
            purchases=sum(row["purchases"] for row in daily),
            revenue=round(sum(row["revenue"] for row in daily), 2),
        )
        return {
            "external_id": external_id,
            "days": days,
            "totals": totals.model_dump(),
            "daily": daily,
            "cached_at": datetime.now(timezone.utc),
        }

    key = cache_key("pixels", pixel.shop, "stats", external_id, days)
    if refresh:
        return await cache.refresh(key, STATS_CACHE_TTL, produce)
    return await cache.get_or_compute(key, STATS_CACHE_TTL, produce)


@router.put("/pixels/{external_id}/domain", response_model=PixelResponse)
async def assign_domain(
    external_id: str,
    update: DomainUpdate,
    db: ResilientDatabase = Depends(get_database),
    cache: TTLCache = Depends(get_cache),
    admin: dict = Depends(get_current_admin),
):
    """
    Assign the website domain a pixel accepts events from.
    Stored normalized; the store's cached entries are invalidated.
    """
    domain = normalize_domain(update.website_domain)
    if not domain:
        raise ValidationError("website_domain must not be blank")

    def _assign(session: Session) -> Dict[str, Any]:
        pixel = _load_pixel(session, external_id)
        pixel.website_domain = domain
        session.flush()
        return pixel_summary(pixel)

    summary = await db.run(_assign, name="assign_domain")
    cache.invalidate_pattern(cache_key("pixels", summary["shop"]) + ":")
    logger.info(f"✅ Pixel {external_id} assigned to domain {domain}")
    return summary
