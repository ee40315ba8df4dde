"""
Database connection and session management
"""
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from pixel_tracker.core.config import settings


def build_engine(database_url: str) -> Engine:
    """
    Create engine with timeout settings.
    SQLite (tests, local runs) gets a busy timeout instead of pool tuning.
    """
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False, "timeout": 30},
        )

    return create_engine(
        database_url,
        pool_pre_ping=True,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_QUEUE_TIMEOUT,
        connect_args={
            "connect_timeout": 10,  # 10 second connection timeout
            "options": "-c statement_timeout=30000"  # 30 second query timeout (PostgreSQL)
        },
        pool_recycle=3600,  # Recycle connections after 1 hour
    )


def build_session_factory(bind: Engine) -> sessionmaker:
    # Objects outlive the worker-thread session that loaded them
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=bind)


engine = build_engine(settings.DATABASE_URL)

# Session factory
SessionLocal = build_session_factory(engine)

# Base class for models
Base = declarative_base()
