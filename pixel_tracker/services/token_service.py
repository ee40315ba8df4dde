"""
Token Service - lifecycle of the Conversions API access token.

States:
    VALID   - no expiry recorded, or expiry in the future
    EXPIRED - expiry in the past

An expired token gets exactly one refresh attempt per forwarding attempt.
A failed refresh skips forwarding for that event; it never fails ingestion.
"""
import enum
import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional
from uuid import UUID

from sqlalchemy import or_, select, update
from sqlalchemy.orm import Session, joinedload

from pixel_tracker.adapters.base import BaseConversionsAdapter
from pixel_tracker.core.cache import TTLCache, cache_key
from pixel_tracker.core.resilience import ResilientDatabase
from pixel_tracker.models.pixel_app import PixelApp
from pixel_tracker.models.pixel_settings import PixelSettings
from pixel_tracker.utils.encryption import encrypt_token, reveal_token

logger = logging.getLogger(__name__)


class TokenState(str, enum.Enum):
    VALID = "valid"
    EXPIRED = "expired"


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def token_state(expires_at: Optional[datetime], now: Optional[datetime] = None) -> TokenState:
    now = now or datetime.now(timezone.utc)
    expires_at = as_utc(expires_at)
    if expires_at is None or expires_at > now:
        return TokenState.VALID
    return TokenState.EXPIRED


class TokenService:
    """Hands out usable access tokens, refreshing expired ones on demand."""

    def __init__(self, db: ResilientDatabase, adapter: BaseConversionsAdapter, cache: TTLCache):
        self.db = db
        self.adapter = adapter
        self.cache = cache

    async def get_usable_token(self, pixel_settings: PixelSettings, shop: Optional[str] = None) -> Optional[str]:
        """
        Return a plain access token ready for forwarding, or None to skip.

        Args:
            pixel_settings: Settings row loaded with the PixelApp
            shop: Owner store, used for cache invalidation after a refresh
        """
        if not pixel_settings.external_access_token:
            return None

        try:
            current = reveal_token(pixel_settings.external_access_token)
        except ValueError:
            logger.warning(f"Stored access token for pixel app {pixel_settings.pixel_app_id} cannot be decrypted")
            return None

        if token_state(pixel_settings.token_expires_at) is TokenState.VALID:
            return current

        logger.info(f"Access token for pixel app {pixel_settings.pixel_app_id} expired, refreshing")
        return await self._refresh(pixel_settings.pixel_app_id, current, shop)

    async def _refresh(self, pixel_app_id: UUID, current: str, shop: Optional[str]) -> Optional[str]:
        result = await self.adapter.refresh_access_token(current)
        if not result.success or not result.access_token:
            logger.warning(f"Token refresh failed for pixel app {pixel_app_id}: {result.error}")
            return None

        encrypted = encrypt_token(result.access_token)
        try:
            await self.db.run(
                lambda s: s.execute(
                    update(PixelSettings)
                    .where(PixelSettings.pixel_app_id == pixel_app_id)
                    .values(external_access_token=encrypted, token_expires_at=result.expires_at)
                ),
                name="store_refreshed_token",
            )
        except Exception as e:
            # The new token is still good for this event
            logger.warning(f"Refreshed token for pixel app {pixel_app_id} could not be stored: {e}")

        if shop:
            self.cache.invalidate_pattern(cache_key("pixels", shop) + ":")
        logger.info(f"✅ Access token refreshed for pixel app {pixel_app_id}")
        return result.access_token

    async def refresh_expiring_tokens(self, window_days: int = 7) -> Dict[str, int]:
        """
        Refresh every stored token that expires within window_days.
        Tokens without a recorded expiry are included (legacy rows).

        Returns:
            {"refreshed": n, "failed": n, "total": n}
        """
        horizon = datetime.now(timezone.utc) + timedelta(days=window_days)

        def _load(session: Session):
            return session.execute(
                select(PixelSettings)
                .options(joinedload(PixelSettings.pixel_app))
                .where(
                    PixelSettings.external_access_token.is_not(None),
                    or_(PixelSettings.token_expires_at.is_(None), PixelSettings.token_expires_at < horizon),
                )
            ).scalars().all()

        candidates = await self.db.run(_load, name="load_expiring_tokens")
        logger.info(f"Found {len(candidates)} pixel apps with expiring tokens")

        refreshed = failed = 0
        for pixel_settings in candidates:
            app: Optional[PixelApp] = pixel_settings.pixel_app
            try:
                current = reveal_token(pixel_settings.external_access_token)
            except ValueError:
                failed += 1
                continue
            token = await self._refresh(pixel_settings.pixel_app_id, current, app.shop if app else None)
            if token:
                refreshed += 1
            else:
                failed += 1

        logger.info(f"Batch token refresh complete: {refreshed} refreshed, {failed} failed, {len(candidates)} total")
        return {"refreshed": refreshed, "failed": failed, "total": len(candidates)}
