"""
Authentication endpoints for Admin API.
"""
import logging
from fastapi import APIRouter, HTTPException, Request

from pixel_tracker.core.config import settings
from pixel_tracker.core.rate_limit import limiter
from pixel_tracker.core.security import create_access_token, verify_admin_credentials
from pixel_tracker.schemas.admin import LoginRequest, LoginResponse

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/auth/login", response_model=LoginResponse)
@limiter.limit("5/minute")  # Prevent brute force attacks
async def admin_login(request: Request, credentials: LoginRequest):
    """
    Admin login endpoint.
    Returns JWT token for authentication.

    Raises:
        HTTPException: If credentials are invalid
    """
    if not verify_admin_credentials(credentials.username, credentials.password):
        logger.warning(f"Failed login attempt for username: {credentials.username}")
        raise HTTPException(
            status_code=401,
            detail="Incorrect username or password",
        )

    access_token = create_access_token(data={"sub": "admin"})
    logger.info(f"Admin user '{credentials.username}' logged in successfully")

    return LoginResponse(
        access_token=access_token,
        token_type="bearer",
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )
