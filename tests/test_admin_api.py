"""
Tests for the Admin API
"""
from datetime import datetime, timedelta, timezone

from pixel_tracker.adapters.base import TokenRefreshResult
from pixel_tracker.models.pixel_app import PixelApp
from pixel_tracker.utils.encryption import encrypt_token

SHOP = "mystore.myshopify.com"


def test_login_returns_token(client):
    response = client.post(
        "/api/v1/admin/auth/login",
        json={"username": "admin", "password": "test-admin-password"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["token_type"] == "bearer"
    assert data["access_token"]


def test_login_rejects_wrong_password(client):
    response = client.post(
        "/api/v1/admin/auth/login",
        json={"username": "admin", "password": "wrong"},
    )

    assert response.status_code == 401


def test_admin_endpoints_require_token(client):
    response = client.get("/api/v1/admin/pixels", params={"shop": SHOP})

    assert response.status_code in (401, 403)


def test_admin_endpoints_reject_invalid_token(client):
    response = client.get(
        "/api/v1/admin/pixels",
        params={"shop": SHOP},
        headers={"Authorization": "Bearer not-a-jwt"},
    )

    assert response.status_code == 401


def test_list_pixels_is_cached_until_domain_change(client, admin_headers, db_session, make_pixel):
    pixel = make_pixel(website_domain=None, external_access_token=encrypt_token("EAAB"))

    first = client.get("/api/v1/admin/pixels", params={"shop": SHOP}, headers=admin_headers)
    assert first.status_code == 200
    assert first.json()[0]["website_domain"] is None
    assert first.json()[0]["has_access_token"] is True

    # Direct write bypasses invalidation, so the cached listing is served
    db_session.query(PixelApp).filter_by(id=pixel.id).update({"name": "Renamed"})
    db_session.commit()
    cached = client.get("/api/v1/admin/pixels", params={"shop": SHOP}, headers=admin_headers)
    assert cached.json()[0]["name"] == "Main pixel"

    update = client.put(
        f"/api/v1/admin/pixels/{pixel.external_id}/domain",
        json={"website_domain": "HTTPS://www.MyStore.com/"},
        headers=admin_headers,
    )
    assert update.status_code == 200
    assert update.json()["website_domain"] == "mystore.com"

    fresh = client.get("/api/v1/admin/pixels", params={"shop": SHOP}, headers=admin_headers)
    assert fresh.json()[0]["name"] == "Renamed"
    assert fresh.json()[0]["website_domain"] == "mystore.com"


def test_assigned_domain_opens_tracking(client, admin_headers, make_pixel):
    pixel = make_pixel(website_domain=None)
    payload = {"appId": pixel.external_id, "eventName": "pageview", "url": "https://mystore.com/"}

    assert client.post("/track", json=payload).status_code == 403

    client.put(
        f"/api/v1/admin/pixels/{pixel.external_id}/domain",
        json={"website_domain": "mystore.com"},
        headers=admin_headers,
    )

    assert client.post("/track", json=payload).status_code == 200


def test_blank_domain_is_rejected(client, admin_headers, make_pixel):
    pixel = make_pixel()

    response = client.put(
        f"/api/v1/admin/pixels/{pixel.external_id}/domain",
        json={"website_domain": "https://"},
        headers=admin_headers,
    )

    assert response.status_code == 400


def test_domain_update_for_unknown_pixel(client, admin_headers):
    response = client.put(
        "/api/v1/admin/pixels/px_missing/domain",
        json={"website_domain": "mystore.com"},
        headers=admin_headers,
    )

    assert response.status_code == 404


def test_stats_are_cached_and_refreshable(client, admin_headers, make_pixel):
    pixel = make_pixel()
    stats_url = f"/api/v1/admin/pixels/{pixel.external_id}/stats"
    track = {"appId": pixel.external_id, "eventName": "pageview", "sessionId": "s1"}

    client.post("/track", json=track)
    first = client.get(stats_url, params={"days": 7}, headers=admin_headers)
    assert first.status_code == 200
    assert first.json()["totals"]["pageviews"] == 1
    assert first.json()["totals"]["sessions"] == 1
    assert len(first.json()["daily"]) == 1

    client.post("/track", json=track)
    cached = client.get(stats_url, params={"days": 7}, headers=admin_headers)
    assert cached.json()["totals"]["pageviews"] == 1

    refreshed = client.get(stats_url, params={"days": 7, "refresh": True}, headers=admin_headers)
    assert refreshed.json()["totals"]["pageviews"] == 2


def test_batch_token_refresh(client, admin_headers, adapter, make_pixel):
    make_pixel(
        external_access_token=encrypt_token("EAAB-expiring"),
        token_expires_at=datetime.now(timezone.utc) + timedelta(days=1),
    )
    adapter.refresh_result = TokenRefreshResult(
        success=True,
        access_token="EAAB-renewed",
        expires_at=datetime.now(timezone.utc) + timedelta(days=60),
    )

    response = client.post("/api/v1/admin/tokens/refresh", headers=admin_headers)

    assert response.status_code == 200
    assert response.json() == {"refreshed": 1, "failed": 0, "total": 1}
    assert adapter.refresh_calls == ["EAAB-expiring"]
