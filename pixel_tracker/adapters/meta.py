"""
Meta Conversions API adapter implementation
"""
import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import httpx

from pixel_tracker.adapters.base import BaseConversionsAdapter, ForwardResult, TokenRefreshResult
from pixel_tracker.core.config import settings
from pixel_tracker.models.custom_event import CustomEvent
from pixel_tracker.models.event import Event
from pixel_tracker.schemas.track import CustomPayload, merge_custom_data
from pixel_tracker.utils.encryption import hash_identifier

logger = logging.getLogger(__name__)

# Standard e-commerce names the storefront pixel emits in several spellings
DEFAULT_EVENT_MAPPING: Dict[str, str] = {
    "pageview": "PageView",
    "page_view": "PageView",
    "viewContent": "ViewContent",
    "view_content": "ViewContent",
    "addToCart": "AddToCart",
    "add_to_cart": "AddToCart",
    "initiateCheckout": "InitiateCheckout",
    "initiate_checkout": "InitiateCheckout",
    "purchase": "Purchase",
    "addPaymentInfo": "AddPaymentInfo",
    "add_payment_info": "AddPaymentInfo",
    "lead": "Lead",
    "contact": "Contact",
    "search": "Search",
}

NUMERIC_FIELDS = ("value", "quantity", "num_items")

# Graph API throttling codes
RATE_LIMIT_ERROR_CODES = {4, 17, 32, 613}


def map_event_name(event_name: str, custom_event: Optional[CustomEvent] = None) -> str:
    """Custom mapping first, then the default table, then passthrough."""
    if custom_event is not None and custom_event.external_event_name:
        return custom_event.external_event_name
    return DEFAULT_EVENT_MAPPING.get(event_name, event_name)


def _is_template(value: str) -> bool:
    return "{{" in value and "}}" in value


def sanitize_custom_data(data: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Drop nulls and unrendered Liquid templates, coerce numeric fields.
    Nested objects are sanitized recursively; empty ones are dropped.
    """
    sanitized: Dict[str, Any] = {}
    for key, value in (data or {}).items():
        if value is None:
            continue

        if key in NUMERIC_FIELDS:
            if isinstance(value, bool):
                continue
            if isinstance(value, (int, float)):
                sanitized[key] = value
            elif isinstance(value, str) and not _is_template(value):
                try:
                    sanitized[key] = float(value)
                except ValueError:
                    logger.debug(f"Dropping non-numeric {key}: {value!r}")
            continue

        if isinstance(value, str):
            if not _is_template(value):
                sanitized[key] = value
        elif isinstance(value, (bool, int, float)):
            sanitized[key] = value
        elif isinstance(value, list):
            items = [item for item in value if not (isinstance(item, str) and _is_template(item))]
            if items:
                sanitized[key] = items
        elif isinstance(value, dict):
            nested = sanitize_custom_data(value)
            if nested:
                sanitized[key] = nested
    return sanitized


def build_conversion_event(
    event: Event,
    custom_event: Optional[CustomEvent] = None,
    client_ip: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> Dict[str, Any]:
    """Translate a stored Event into one Conversions API event."""
    defaults: CustomPayload = (custom_event.event_data or {}) if custom_event is not None else {}
    payload: CustomPayload = dict(event.custom_data or {})

    # Typed e-commerce columns are request data too
    for key, value in (
        ("value", event.value),
        ("currency", event.currency),
        ("content_ids", [event.product_id] if event.product_id else None),
        ("content_name", event.product_name),
        ("num_items", event.quantity),
    ):
        if value is not None and key not in payload:
            payload[key] = value

    custom_data = sanitize_custom_data(merge_custom_data(defaults, payload))
    custom_data.pop("test_event", None)

    user_data: Dict[str, Any] = {}
    if client_ip:
        user_data["client_ip_address"] = client_ip
    if user_agent:
        user_data["client_user_agent"] = user_agent
    if event.fingerprint:
        user_data["external_id"] = [hash_identifier(event.fingerprint)]

    created_at = event.created_at or datetime.now(timezone.utc)
    conversion: Dict[str, Any] = {
        "event_name": map_event_name(event.event_name, custom_event),
        "event_time": int(created_at.replace(tzinfo=created_at.tzinfo or timezone.utc).timestamp()),
        "event_id": str(event.id),
        "action_source": "website",
        "user_data": user_data,
    }
    if event.url:
        conversion["event_source_url"] = event.url
    if custom_data:
        conversion["custom_data"] = custom_data
    return conversion


class MetaConversionsAdapter(BaseConversionsAdapter):
    """Meta Graph API: Conversions API delivery and long-lived token exchange"""

    def __init__(
        self,
        graph_url: str = settings.META_GRAPH_URL,
        api_version: str = settings.META_API_VERSION,
        timeout: float = settings.CAPI_TIMEOUT,
        max_retries: int = settings.CAPI_MAX_RETRIES,
        retry_delay: float = settings.CAPI_RETRY_DELAY,
        refresh_timeout: float = settings.TOKEN_REFRESH_TIMEOUT,
        app_id: Optional[str] = settings.META_APP_ID,
        app_secret: Optional[str] = settings.META_APP_SECRET,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = f"{graph_url.rstrip('/')}/{api_version}"
        self.timeout = httpx.Timeout(timeout, connect=min(timeout, 3.0))
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.refresh_timeout = refresh_timeout
        self.app_id = app_id
        self.app_secret = app_secret
        self._transport = transport

    @property
    def platform_name(self) -> str:
        return "meta"

    async def send_events(
        self,
        pixel_id: str,
        access_token: str,
        events: List[Dict[str, Any]],
        test_event_code: Optional[str] = None,
    ) -> ForwardResult:
        url = f"{self.base_url}/{pixel_id}/events"
        body: Dict[str, Any] = {"data": events, "access_token": access_token}
        if test_event_code:
            body["test_event_code"] = test_event_code

        result = ForwardResult(success=False)
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                for attempt in range(1, self.max_retries + 1):
                    result = await self._post_once(client, url, body)
                    result.attempts = attempt

                    if result.success:
                        if attempt > 1:
                            logger.info(f"Conversions API delivery succeeded on attempt {attempt} (pixel={pixel_id})")
                        return result
                    if not result.retryable:
                        logger.error(
                            f"Conversions API rejected events for pixel {pixel_id}: "
                            f"{result.status_code} - {result.error}"
                        )
                        return result
                    if attempt < self.max_retries:
                        logger.warning(
                            f"Conversions API retryable failure for pixel {pixel_id} "
                            f"(attempt {attempt}/{self.max_retries}), retrying in {self.retry_delay}s: {result.error}"
                        )
                        await asyncio.sleep(self.retry_delay)
        except Exception as e:
            logger.error(f"Unexpected Conversions API error for pixel {pixel_id}: {e}", exc_info=True)
            result.success = False
            result.retryable = False
            result.error = str(e)
            return result

        logger.error(
            f"Conversions API delivery failed after {result.attempts} attempts "
            f"(pixel={pixel_id}): {result.error}"
        )
        return result

    async def _post_once(self, client: httpx.AsyncClient, url: str, body: Dict[str, Any]) -> ForwardResult:
        try:
            response = await client.post(url, json=body)
        except httpx.TransportError as e:
            return ForwardResult(success=False, error=f"{type(e).__name__}: {e}", retryable=True)

        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if not isinstance(payload, dict):
            payload = {}

        if response.is_success:
            return ForwardResult(success=True, status_code=response.status_code, response=payload)

        error = payload.get("error") or {}
        message = error.get("message") if isinstance(error, dict) else None
        code = error.get("code") if isinstance(error, dict) else None
        retryable = (
            response.status_code >= 500
            or response.status_code == 429
            or code in RATE_LIMIT_ERROR_CODES
        )
        return ForwardResult(
            success=False,
            status_code=response.status_code,
            error=message or response.text[:500],
            retryable=retryable,
            response=payload,
        )

    async def refresh_access_token(self, access_token: str) -> TokenRefreshResult:
        if not self.app_id or not self.app_secret:
            return TokenRefreshResult(success=False, error="META_APP_ID / META_APP_SECRET not configured")

        params = {
            "grant_type": "fb_exchange_token",
            "client_id": self.app_id,
            "client_secret": self.app_secret,
            "fb_exchange_token": access_token,
        }
        try:
            async with httpx.AsyncClient(timeout=self.refresh_timeout, transport=self._transport) as client:
                response = await client.get(f"{self.base_url}/oauth/access_token", params=params)
                payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            return TokenRefreshResult(success=False, error=f"{type(e).__name__}: {e}")

        if response.status_code != 200 or not isinstance(payload, dict) or not payload.get("access_token"):
            error = payload.get("error", {}) if isinstance(payload, dict) else {}
            message = error.get("message") if isinstance(error, dict) else None
            return TokenRefreshResult(success=False, error=message or f"HTTP {response.status_code}")

        expires_at = None
        try:
            expires_in = int(payload.get("expires_in") or 0)
        except (TypeError, ValueError):
            logger.warning(f"Ignoring unusable expires_in from token exchange: {payload.get('expires_in')!r}")
            expires_in = 0
        if expires_in > 0:
            expires_at = datetime.now(timezone.utc) + timedelta(seconds=expires_in)
        return TokenRefreshResult(success=True, access_token=payload["access_token"], expires_at=expires_at)
