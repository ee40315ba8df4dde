"""
Admin API module.

Modular structure:
- auth.py: Authentication endpoints (login)
- pixels.py: Pixel listing, stats, domain assignment
- tokens.py: Batch token refresh

All endpoints require admin authentication except /auth/login.
"""
from fastapi import APIRouter

from .auth import router as auth_router
from .pixels import router as pixels_router
from .tokens import router as tokens_router

# Main admin router
router = APIRouter()

router.include_router(auth_router, tags=["auth"])
router.include_router(pixels_router, tags=["pixels"])
router.include_router(tokens_router, tags=["tokens"])

__all__ = ["router"]
