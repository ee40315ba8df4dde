"""
Security utilities: JWT and admin authentication
"""
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
import logging
import secrets

from jose import JWTError, jwt
from fastapi import HTTPException, Security
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from pixel_tracker.core.config import settings

logger = logging.getLogger(__name__)

security_scheme = HTTPBearer()


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT access token"""
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> Optional[dict]:
    """Decode and verify JWT token"""
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None


def verify_admin_credentials(username: str, password: str) -> bool:
    """
    Verify admin username and password against settings.
    Always fails when no admin password is configured.
    """
    if not settings.ADMIN_PASSWORD:
        return False
    return (
        secrets.compare_digest(username, settings.ADMIN_USERNAME)
        and secrets.compare_digest(password, settings.ADMIN_PASSWORD)
    )


async def get_current_admin(
    credentials: HTTPAuthorizationCredentials = Security(security_scheme)
) -> Dict[str, Any]:
    """
    FastAPI dependency to verify admin JWT token.

    Raises:
        HTTPException: If token is invalid or user is not admin
    """
    payload = decode_access_token(credentials.credentials)

    if not payload:
        logger.warning("Invalid or expired token")
        raise HTTPException(
            status_code=401,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if payload.get("sub") != "admin":
        logger.warning(f"Non-admin token attempt: {payload.get('sub')}")
        raise HTTPException(
            status_code=403,
            detail="Not authorized - admin access required",
        )

    return payload
