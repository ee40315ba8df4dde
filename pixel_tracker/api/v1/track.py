"""
Tracking Endpoints
Receives events fired by the storefront pixel (JSON POST or image beacon)
"""
import base64
import binascii
import json
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from pydantic import ValidationError as PydanticValidationError

from pixel_tracker.core.config import settings
from pixel_tracker.core.dependencies import get_tracking_service
from pixel_tracker.core.errors import TrackingError, ValidationError
from pixel_tracker.core.rate_limit import get_client_ip, limiter
from pixel_tracker.schemas.track import ClientContext, TrackRequest, TrackResponse
from pixel_tracker.services.tracking_service import TrackingService

logger = logging.getLogger(__name__)
router = APIRouter()

# 1x1 transparent GIF
PIXEL_GIF = base64.b64decode("R0lGODlhAQABAIAAAAAAAP///yH5BAEAAAAALAAAAAABAAEAAAIBRAA7")


def unwrap_payload(body: Any) -> Dict[str, Any]:
    """Accept the bare event object or a GraphQL-style {query, variables: {input}} envelope."""
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")

    variables = body.get("variables")
    if isinstance(variables, dict) and isinstance(variables.get("input"), dict):
        return variables["input"]
    return body


def parse_track_request(body: Any) -> TrackRequest:
    try:
        return TrackRequest.model_validate(unwrap_payload(body))
    except PydanticValidationError as e:
        details = [
            {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
            for err in e.errors()
        ]
        raise ValidationError("Invalid event payload", details=details)


def client_context(request: Request) -> ClientContext:
    return ClientContext(
        ip=get_client_ip(request),
        user_agent=request.headers.get("user-agent", ""),
    )


@router.post("/track", response_model=TrackResponse)
@router.post("/apps/proxy/track", response_model=TrackResponse)
@limiter.limit(settings.TRACK_RATE_LIMIT)
async def track_event(
    request: Request,
    shop: Optional[str] = Query(None),
    service: TrackingService = Depends(get_tracking_service),
):
    """
    Ingest one pixel event.

    Args:
        shop: Owner store, used to resolve the pixel by domain when appId is absent

    Returns:
        {success, eventId, pixelName, websiteDomain}
    """
    try:
        body = await request.json()
    except ValueError:
        raise ValidationError("Malformed JSON body")

    track_request = parse_track_request(body)
    return await service.track(track_request, shop, client_context(request))


@router.get("/track")
@limiter.limit(settings.TRACK_RATE_LIMIT)
async def track_beacon(
    request: Request,
    e: Optional[str] = Query(None, description="Event name"),
    d: Optional[str] = Query(None, description="Base64 JSON event payload"),
    shop: Optional[str] = Query(None),
    service: TrackingService = Depends(get_tracking_service),
):
    """
    Image beacon for clients that cannot POST.
    Always answers with a 1x1 GIF; failures are only logged.
    """
    if e and d:
        try:
            payload = json.loads(base64.b64decode(d))
            if isinstance(payload, dict):
                payload.setdefault("eventName", e)
            await service.track(parse_track_request(payload), shop, client_context(request))
        except (binascii.Error, ValueError) as exc:
            logger.warning(f"Undecodable beacon payload for event {e}: {exc}")
        except TrackingError as exc:
            logger.warning(f"Beacon event {e} rejected: {exc.to_dict()}")
        except Exception as exc:
            logger.error(f"Beacon event {e} failed: {exc}", exc_info=True)

    return Response(
        content=PIXEL_GIF,
        media_type="image/gif",
        headers={"Cache-Control": "no-store, no-cache, must-revalidate"},
    )
