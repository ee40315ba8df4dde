"""
Resilient data access layer.

Wraps the synchronous SQLAlchemy session factory with:
- a bounded-concurrency gate (callers queue with a timeout)
- a per-operation timeout
- retries with exponential backoff and reconnect for connection-class errors
- a liveness probe that bypasses the gate
"""
import asyncio
import logging
import time
from typing import Any, Callable, Dict, Optional, TypeVar

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from pixel_tracker.core.config import settings
from pixel_tracker.core.errors import (
    OperationTimeoutError,
    QueueTimeoutError,
    TransientInfraError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Prisma-style pool codes, PostgreSQL SQLSTATEs for connection trouble
CONNECTION_ERROR_CODES = frozenset({
    "P2024",  # pool timeout
    "P1001",  # can't reach server
    "P1017",  # server closed connection
    "53300",  # too_many_connections
    "57P01",  # admin_shutdown
    "08000",
    "08001",
    "08003",
    "08004",
    "08006",
})

CONNECTION_ERROR_MARKERS = (
    "connection pool",
    "maxclientsinsessionmode",
    "queuepool limit",
    "too many connections",
    "remaining connection slots",
    "server closed the connection",
    "could not connect",
    "connection refused",
    "connection reset",
    "timed out",
    "timeout",
    "database is locked",
)


def is_connection_error(exc: BaseException) -> bool:
    """
    Decide whether an error is worth a reconnect-and-retry.

    Constraint violations never are. Everything else is matched against a fixed
    set of provider codes and message markers, walking the exception chain.
    """
    if isinstance(exc, IntegrityError):
        return False

    seen = set()
    current: Optional[BaseException] = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))

        for attr in ("code", "pgcode"):
            code = getattr(current, attr, None)
            if isinstance(code, str) and code in CONNECTION_ERROR_CODES:
                return True

        message = str(current).lower()
        if any(marker in message for marker in CONNECTION_ERROR_MARKERS):
            return True

        current = getattr(current, "orig", None) or current.__cause__
    return False


class ResilientDatabase:
    """Process-wide gateway to the database for request-path operations."""

    def __init__(
        self,
        session_factory: sessionmaker,
        engine: Optional[Engine] = None,
        max_concurrency: int = settings.DB_MAX_CONCURRENCY,
        queue_timeout: float = settings.DB_QUEUE_TIMEOUT,
        operation_timeout: float = settings.DB_OPERATION_TIMEOUT,
        max_retries: int = settings.DB_MAX_RETRIES,
        retry_base_delay: float = settings.DB_RETRY_BASE_DELAY,
        ping_timeout: float = settings.DB_PING_TIMEOUT,
    ):
        self._session_factory = session_factory
        self._engine = engine
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self.max_concurrency = max_concurrency
        self.queue_timeout = queue_timeout
        self.operation_timeout = operation_timeout
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay
        self.ping_timeout = ping_timeout

    async def run(self, operation: Callable[[Session], T], name: str = "operation") -> T:
        """
        Run `operation(session)` in a worker thread inside its own transaction.

        Raises:
            QueueTimeoutError: no slot became free within queue_timeout
            OperationTimeoutError: the operation exceeded operation_timeout
            TransientInfraError: connection-class errors persisted after retries
        """
        try:
            await asyncio.wait_for(self._semaphore.acquire(), timeout=self.queue_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"DB queue timeout for '{name}' after {self.queue_timeout}s")
            raise QueueTimeoutError("Database temporarily unavailable")

        work: Optional[asyncio.Future] = None
        try:
            attempt = 0
            while True:
                work = asyncio.ensure_future(asyncio.to_thread(self._execute, operation))
                try:
                    return await asyncio.wait_for(asyncio.shield(work), timeout=self.operation_timeout)
                except asyncio.TimeoutError:
                    logger.warning(f"DB operation '{name}' timed out after {self.operation_timeout}s")
                    raise OperationTimeoutError("Database operation timed out")
                except Exception as e:
                    if not is_connection_error(e):
                        raise

                    attempt += 1
                    if attempt >= self.max_retries:
                        logger.error(
                            f"DB operation '{name}' failed after {attempt} attempts: {e}",
                            exc_info=True,
                        )
                        raise TransientInfraError("Database temporarily unavailable") from e

                    delay = self.retry_base_delay * (2 ** (attempt - 1))
                    logger.warning(
                        f"Connection error in '{name}' (attempt {attempt}/{self.max_retries}), "
                        f"reconnecting in {delay:.2f}s: {e}"
                    )
                    await asyncio.sleep(delay)
                    await asyncio.to_thread(self.reconnect)
        finally:
            # A timed-out or cancelled caller leaves its worker thread running;
            # the slot stays taken until that thread returns.
            if work is not None and not work.done():
                work.add_done_callback(self._release_abandoned(name))
            else:
                self._semaphore.release()

    def _release_abandoned(self, name: str) -> Callable[[asyncio.Future], None]:
        def _done(work: asyncio.Future) -> None:
            self._semaphore.release()
            if not work.cancelled() and work.exception() is not None:
                logger.warning(f"Abandoned DB operation '{name}' failed: {work.exception()}")

        return _done

    def _execute(self, operation: Callable[[Session], T]) -> T:
        session = self._session_factory()
        try:
            result = operation(session)
            session.commit()
            return result
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def reconnect(self) -> None:
        """Drop pooled connections so the next checkout opens fresh ones."""
        if self._engine is not None:
            self._engine.dispose()
            logger.info("Database connection pool disposed for reconnect")

    async def ping(self) -> Dict[str, Any]:
        """
        Liveness probe for startup and health checks.
        Does not take a slot from the request-path gate.
        """
        start = time.monotonic()

        def _select_one(session: Session) -> None:
            session.execute(text("SELECT 1"))

        try:
            await asyncio.wait_for(
                asyncio.to_thread(self._execute, _select_one),
                timeout=self.ping_timeout,
            )
        except asyncio.TimeoutError:
            logger.error(f"Database ping timed out after {self.ping_timeout}s")
            return {"status": "unhealthy", "message": "Database ping timed out"}
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return {"status": "unhealthy", "message": f"Database connection failed: {str(e)}"}

        return {
            "status": "healthy",
            "message": "Database connection successful",
            "latency_ms": round((time.monotonic() - start) * 1000, 2),
        }
