"""
Application configuration using Pydantic Settings
"""
from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    """Application settings"""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    # App
    APP_NAME: str = "Pixel Tracker"
    DEBUG: bool = False
    ENVIRONMENT: str = "production"
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"  # json | text

    # CORS - the pixel is fired from arbitrary storefront origins
    CORS_ORIGINS: List[str] = ["*"]

    # Database
    DATABASE_URL: str = Field(...)
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_MAX_CONCURRENCY: int = 10
    DB_QUEUE_TIMEOUT: float = 10.0
    DB_OPERATION_TIMEOUT: float = 15.0
    DB_MAX_RETRIES: int = 3
    DB_RETRY_BASE_DELAY: float = 0.5
    DB_PING_TIMEOUT: float = 3.0

    # Security
    SECRET_KEY: str = Field(...)
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30
    ADMIN_USERNAME: str = "admin"
    ADMIN_PASSWORD: Optional[str] = None

    # Meta Graph / Conversions API
    META_GRAPH_URL: str = "https://graph.facebook.com"
    META_API_VERSION: str = "v18.0"
    META_APP_ID: Optional[str] = None
    META_APP_SECRET: Optional[str] = None

    # Forwarding
    CAPI_TIMEOUT: float = 5.0
    CAPI_MAX_RETRIES: int = 3
    CAPI_RETRY_DELAY: float = 1.0
    TOKEN_REFRESH_TIMEOUT: float = 5.0
    # Must cover one token refresh plus every CAPI attempt and retry delay
    FORWARDING_BUDGET: float = 30.0

    # Geolocation
    GEO_LOOKUP_URL: str = "http://ip-api.com/json"
    GEO_LOOKUP_TIMEOUT: float = 2.0
    GEO_CACHE_TTL: int = 3600

    # Cache
    CACHE_DEFAULT_TTL: int = 60

    # Tracking
    PAGEVIEW_EVENT_NAME: str = "pageview"
    TRACK_RATE_LIMIT: str = "600/minute"

    # Railway
    PORT: int = 8000


settings = Settings()
