"""
Tests for the access token lifecycle
"""
from datetime import datetime, timedelta, timezone

import pytest

from pixel_tracker.adapters.base import TokenRefreshResult
from pixel_tracker.core.cache import cache_key
from pixel_tracker.models.pixel_settings import PixelSettings
from pixel_tracker.services.token_service import TokenService, TokenState, token_state
from pixel_tracker.utils.encryption import decrypt_token, encrypt_token, is_encrypted

SHOP = "mystore.myshopify.com"


def _expired():
    return datetime.now(timezone.utc) - timedelta(hours=1)


def _fresh_result(token="EAAB-fresh"):
    return TokenRefreshResult(
        success=True,
        access_token=token,
        expires_at=datetime.now(timezone.utc) + timedelta(days=60),
    )


def test_token_state():
    now = datetime(2026, 5, 1, tzinfo=timezone.utc)

    assert token_state(None, now) is TokenState.VALID
    assert token_state(now + timedelta(seconds=1), now) is TokenState.VALID
    assert token_state(now - timedelta(seconds=1), now) is TokenState.EXPIRED


def test_naive_expiry_is_read_as_utc():
    now = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)

    assert token_state(datetime(2026, 5, 1, 11, 59), now) is TokenState.EXPIRED
    assert token_state(datetime(2026, 5, 1, 12, 1), now) is TokenState.VALID


@pytest.mark.asyncio
async def test_valid_token_is_used_without_refresh(database, cache, adapter, make_pixel):
    pixel = make_pixel(external_access_token=encrypt_token("EAAB-current"))
    tokens = TokenService(database, adapter, cache)

    token = await tokens.get_usable_token(pixel.settings, shop=SHOP)

    assert token == "EAAB-current"
    assert adapter.refresh_calls == []


@pytest.mark.asyncio
async def test_legacy_plain_token_is_accepted(database, cache, adapter, make_pixel):
    pixel = make_pixel(external_access_token="EAAB-plain-legacy")

    token = await TokenService(database, adapter, cache).get_usable_token(pixel.settings)

    assert token == "EAAB-plain-legacy"


@pytest.mark.asyncio
async def test_expired_token_is_refreshed_exactly_once(database, cache, adapter, db_session, make_pixel):
    pixel = make_pixel(external_access_token=encrypt_token("EAAB-old"), token_expires_at=_expired())
    adapter.refresh_result = _fresh_result()
    cache.set(cache_key("pixels", SHOP, "list"), ["stale"])
    tokens = TokenService(database, adapter, cache)

    token = await tokens.get_usable_token(pixel.settings, shop=SHOP)

    assert token == "EAAB-fresh"
    assert adapter.refresh_calls == ["EAAB-old"]
    assert cache.get(cache_key("pixels", SHOP, "list")) is None

    db_session.expire_all()
    stored = db_session.query(PixelSettings).filter_by(pixel_app_id=pixel.id).one()
    assert is_encrypted(stored.external_access_token)
    assert decrypt_token(stored.external_access_token) == "EAAB-fresh"
    assert token_state(stored.token_expires_at) is TokenState.VALID


@pytest.mark.asyncio
async def test_failed_refresh_returns_none(database, cache, adapter, make_pixel):
    pixel = make_pixel(external_access_token=encrypt_token("EAAB-old"), token_expires_at=_expired())
    adapter.refresh_result = TokenRefreshResult(success=False, error="Session has expired")

    token = await TokenService(database, adapter, cache).get_usable_token(pixel.settings)

    assert token is None
    assert len(adapter.refresh_calls) == 1


@pytest.mark.asyncio
async def test_missing_token_is_not_refreshed(database, cache, adapter, make_pixel):
    pixel = make_pixel()

    assert await TokenService(database, adapter, cache).get_usable_token(pixel.settings) is None
    assert adapter.refresh_calls == []


@pytest.mark.asyncio
async def test_batch_refresh_covers_expiring_tokens(database, cache, adapter, make_pixel):
    soon = datetime.now(timezone.utc) + timedelta(days=2)
    later = datetime.now(timezone.utc) + timedelta(days=30)
    make_pixel(external_access_token=encrypt_token("EAAB-soon"), token_expires_at=soon)
    make_pixel(external_access_token=encrypt_token("EAAB-later"), token_expires_at=later)
    make_pixel(external_access_token=encrypt_token("EAAB-no-expiry"))
    make_pixel()
    adapter.refresh_result = _fresh_result()

    result = await TokenService(database, adapter, cache).refresh_expiring_tokens(window_days=7)

    assert result == {"refreshed": 2, "failed": 0, "total": 2}
    assert sorted(adapter.refresh_calls) == ["EAAB-no-expiry", "EAAB-soon"]
