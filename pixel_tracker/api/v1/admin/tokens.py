"""
Token endpoints for Admin API.
Batch refresh of expiring Conversions API tokens, meant for a cron job.
"""
import logging
from fastapi import APIRouter, Depends, Query

from pixel_tracker.core.dependencies import get_token_service
from pixel_tracker.core.security import get_current_admin
from pixel_tracker.schemas.admin import TokenRefreshResponse
from pixel_tracker.services.token_service import TokenService

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/tokens/refresh", response_model=TokenRefreshResponse)
async def refresh_tokens(
    window_days: int = Query(7, ge=0, le=60),
    tokens: TokenService = Depends(get_token_service),
    admin: dict = Depends(get_current_admin),
):
    """Refresh every token expiring within `window_days`."""
    result = await tokens.refresh_expiring_tokens(window_days=window_days)
    logger.info(f"Token refresh run: {result}")
    return result
