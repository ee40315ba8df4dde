"""
Tracking Service - event ingestion pipeline.

resolve pixel -> authorize -> enrich -> persist Event -> aggregates -> schedule forwarding

Only the Event write can fail the request. Aggregates are best-effort and
forwarding runs on the background forwarder after the response.
"""
import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload

from pixel_tracker.adapters.base import BaseConversionsAdapter
from pixel_tracker.adapters.meta import build_conversion_event
from pixel_tracker.core.cache import TTLCache
from pixel_tracker.core.errors import AuthorizationError, NotFoundError, ValidationError
from pixel_tracker.core.monitoring import monitor_performance, track_metric
from pixel_tracker.core.resilience import ResilientDatabase
from pixel_tracker.models.custom_event import CustomEvent
from pixel_tracker.models.event import Event
from pixel_tracker.models.pixel_app import PixelApp
from pixel_tracker.schemas.track import ClientContext, TrackRequest, TrackResponse
from pixel_tracker.services.aggregate_service import AggregateService, SessionSnapshot
from pixel_tracker.services.device_service import get_device_type, parse_user_agent
from pixel_tracker.services.domain_guard import check_domain, extract_host, normalize_domain
from pixel_tracker.services.forwarding import BackgroundForwarder
from pixel_tracker.services.geo_service import GeoData, GeoService
from pixel_tracker.services.token_service import TokenService

logger = logging.getLogger(__name__)

PIXEL_DISABLED = "pixel_disabled"


class TrackingService:
    """Ingests one pixel event at a time."""

    def __init__(
        self,
        db: ResilientDatabase,
        cache: TTLCache,
        aggregates: AggregateService,
        tokens: TokenService,
        adapter: BaseConversionsAdapter,
        geo: GeoService,
        forwarder: BackgroundForwarder,
    ):
        self.db = db
        self.cache = cache
        self.aggregates = aggregates
        self.tokens = tokens
        self.adapter = adapter
        self.geo = geo
        self.forwarder = forwarder

    @monitor_performance
    async def track(self, request: TrackRequest, shop: Optional[str], client: ClientContext) -> TrackResponse:
        """
        Ingest one event.

        Raises:
            ValidationError: nothing to resolve the pixel with
            NotFoundError: no matching pixel
            AuthorizationError: pixel disabled or domain check failed
            TransientInfraError: database unavailable
        """
        request_host = extract_host(request.url)
        pixel = await self.resolve_pixel(request.app_id, shop, request_host)

        if not pixel.enabled:
            logger.warning(f"Tracking refused for disabled pixel {pixel.external_id}")
            raise AuthorizationError(PIXEL_DISABLED, "Tracking is disabled for this pixel")

        if request.url:
            check = check_domain(request_host, pixel.website_domain)
            if not check.allowed:
                logger.warning(
                    f"Domain check failed for pixel {pixel.external_id}: "
                    f"host={request_host} assigned={pixel.website_domain} reason={check.reason}"
                )
                raise AuthorizationError(check.reason, check.message)

        pixel_settings = pixel.settings
        record_ip = pixel_settings.record_ip if pixel_settings else True
        record_location = pixel_settings.record_location if pixel_settings else True
        record_session = pixel_settings.record_session if pixel_settings else True

        device = parse_user_agent(client.user_agent)
        device_type = get_device_type(client.user_agent, request.screen_width)
        geo: Optional[GeoData] = await self.geo.lookup(client.ip) if record_location else None

        now = datetime.now(timezone.utc)
        event = Event(
            pixel_app_id=pixel.id,
            event_name=request.event_name,
            url=request.url,
            referrer=request.referrer,
            session_id=request.session_id,
            fingerprint=request.visitor_fingerprint,
            page_title=request.page_title,
            ip_address=client.ip if record_ip else None,
            user_agent=client.user_agent or None,
            browser=device.browser,
            browser_version=device.browser_version,
            os=device.os,
            os_version=device.os_version,
            device_type=device_type,
            screen_width=request.screen_width,
            screen_height=request.screen_height,
            city=geo.city if geo else None,
            region=geo.region if geo else None,
            country=geo.country if geo else None,
            country_code=geo.country_code if geo else None,
            timezone=geo.timezone if geo else None,
            utm_source=request.utm_source,
            utm_medium=request.utm_medium,
            utm_campaign=request.utm_campaign,
            utm_term=request.utm_term,
            utm_content=request.utm_content,
            value=request.numeric_value,
            currency=request.currency,
            product_id=request.product_id,
            product_name=request.product_name,
            quantity=request.numeric_quantity,
            custom_data=request.payload,
            created_at=now,
        )
        await self.db.run(lambda s: s.add(event), name="insert_event")
        logger.info(
            f"Event {event.event_name} stored for pixel {pixel.external_id}",
            extra={"pixel_app_id": str(pixel.id), "event_id": str(event.id)},
        )

        await self.aggregates.record_event(
            pixel.id,
            request.event_name,
            session_id=request.session_id,
            snapshot=SessionSnapshot(
                fingerprint=request.visitor_fingerprint,
                ip_address=client.ip if record_ip else None,
                user_agent=client.user_agent or None,
                browser=device.browser,
                os=device.os,
                device_type=device_type,
                country=geo.country if geo else None,
            ),
            value=request.numeric_value,
            record_session=record_session,
            occurred_at=now,
        )

        if self.should_forward(pixel, request):
            await self.forwarder.schedule(
                self.forward_event(pixel, event, client),
                name=f"forward:{event.id}",
            )

        return TrackResponse(
            success=True,
            event_id=event.id,
            pixel_name=pixel.name,
            website_domain=pixel.website_domain,
        )

    async def resolve_pixel(self, app_id: Optional[str], shop: Optional[str], request_host: Optional[str]) -> PixelApp:
        """
        Find the pixel by explicit appId, else by the store's domain assignment.
        """
        if not app_id and not (shop and request_host):
            raise ValidationError("appId, or shop together with url, is required")

        if app_id:
            pixel = await self.db.run(
                lambda s: s.execute(
                    select(PixelApp)
                    .options(joinedload(PixelApp.settings))
                    .where(PixelApp.external_id == app_id)
                ).scalars().first(),
                name="load_pixel_by_app_id",
            )
            if pixel is not None:
                return pixel

        if shop and request_host:
            pixel = await self._find_by_domain(shop, request_host)
            if pixel is not None:
                return pixel

        logger.warning(f"No pixel found for appId={app_id} shop={shop} host={request_host}")
        raise NotFoundError("Pixel not found")

    async def _find_by_domain(self, shop: str, request_host: str) -> Optional[PixelApp]:
        host = normalize_domain(request_host)

        def _load(session: Session) -> List[PixelApp]:
            return session.execute(
                select(PixelApp)
                .options(joinedload(PixelApp.settings))
                .where(PixelApp.shop == shop, PixelApp.enabled.is_(True))
                .order_by(PixelApp.created_at)
            ).scalars().all()

        for pixel in await self.db.run(_load, name="load_pixels_by_shop"):
            if pixel.website_domain and normalize_domain(pixel.website_domain) == host:
                return pixel
        return None

    @staticmethod
    def should_forward(pixel: PixelApp, request: TrackRequest) -> bool:
        pixel_settings = pixel.settings
        reasons = []
        if pixel_settings is None or not pixel_settings.forwarding_enabled:
            reasons.append("forwarding disabled")
        elif not pixel_settings.external_pixel_id:
            reasons.append("no external pixel id")
        elif not pixel_settings.external_access_token:
            reasons.append("no access token")
        elif request.is_test_event and not pixel_settings.test_event_code:
            reasons.append("test event without test event code")

        if reasons:
            logger.debug(f"Forwarding skipped for pixel {pixel.external_id}: {', '.join(reasons)}")
            return False
        return True

    async def forward_event(self, pixel: PixelApp, event: Event, client: ClientContext) -> None:
        """Token check, mapping and delivery of one stored Event. Never raises on delivery failure."""
        pixel_settings = pixel.settings
        access_token = await self.tokens.get_usable_token(pixel_settings, shop=pixel.shop)
        if not access_token:
            logger.warning(f"Forwarding skipped for event {event.id}: no usable access token")
            track_metric("capi.skipped", 1, pixel_app_id=str(pixel.id), tags={"reason": "token"})
            return

        custom_event = None
        if pixel_settings.custom_events_enabled:
            try:
                custom_event = await self.db.run(
                    lambda s: s.execute(
                        select(CustomEvent).where(
                            CustomEvent.pixel_app_id == pixel.id,
                            CustomEvent.name == event.event_name,
                            CustomEvent.is_active.is_(True),
                        )
                    ).scalars().first(),
                    name="load_custom_event",
                )
            except Exception as e:
                logger.warning(f"Custom event lookup failed for {event.event_name}, using default mapping: {e}")

        conversion = build_conversion_event(event, custom_event, client.ip, client.user_agent)
        result = await self.adapter.send_events(
            pixel_settings.external_pixel_id,
            access_token,
            [conversion],
            test_event_code=pixel_settings.test_event_code,
        )

        track_metric(
            "capi.forward",
            1 if result.success else 0,
            pixel_app_id=str(pixel.id),
            tags={
                "platform": self.adapter.platform_name,
                "event": conversion["event_name"],
                "attempts": str(result.attempts),
                "status": "success" if result.success else "failed",
            },
        )
        if result.success:
            logger.info(
                f"✅ Event {event.event_name} forwarded as {conversion['event_name']} "
                f"({'custom' if custom_event else 'default'} mapping)",
                extra={"pixel_app_id": str(pixel.id), "event_id": str(event.id)},
            )
        else:
            logger.warning(
                f"Forwarding failed for event {event.id}: {result.error}",
                extra={"pixel_app_id": str(pixel.id), "event_id": str(event.id)},
            )
