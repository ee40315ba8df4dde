"""
In-process TTL read-through cache.
Used for dashboard reads, pixel listings and geo lookups.

Entries live per process; instances in a multi-instance deployment may
disagree for up to one TTL window.
"""
import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, TypeVar

from pixel_tracker.core.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


def cache_key(prefix: str, *parts: Any) -> str:
    """
    Build cache key from prefix and parts.
    Format: prefix:part1:part2
    """
    return ":".join([prefix, *(str(part) for part in parts)])


class ProducerCancelled(Exception):
    """The caller computing a key was cancelled before producing a value."""


class TTLCache:
    """Single-flight TTL cache with explicit invalidation."""

    def __init__(
        self,
        default_ttl: int = settings.CACHE_DEFAULT_TTL,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: Dict[str, Tuple[Any, float]] = {}
        self._inflight: Dict[str, asyncio.Future] = {}

    def get(self, key: str) -> Optional[Any]:
        """
        Get value from cache.

        Returns:
            Cached value or None if not found/expired
        """
        entry = self._entries.get(key)
        if entry is None:
            return None

        value, expires_at = entry
        if self._clock() >= expires_at:
            self._entries.pop(key, None)
            return None
        return value

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        """Set value in cache with TTL (seconds)."""
        ttl = self.default_ttl if ttl is None else ttl
        self._entries[key] = (value, self._clock() + ttl)

    def delete(self, key: str) -> bool:
        """
        Delete key from cache.
        A computation already running for the key will not store its result.

        Returns:
            True if a key was removed
        """
        self._inflight.pop(key, None)
        return self._entries.pop(key, None) is not None

    def invalidate_pattern(self, prefix: str) -> int:
        """
        Delete all keys starting with prefix (e.g., "pixels:mystore.myshopify.com:").
        Running computations for those keys are detached the same way as delete().

        Returns:
            Number of keys deleted
        """
        for key in [key for key in self._inflight if key.startswith(prefix)]:
            del self._inflight[key]

        keys = [key for key in self._entries if key.startswith(prefix)]
        for key in keys:
            del self._entries[key]
        if keys:
            logger.info(f"Cache invalidated {len(keys)} keys with prefix '{prefix}'")
        return len(keys)

    def clear(self) -> None:
        self._entries.clear()

    async def get_or_compute(
        self,
        key: str,
        ttl: Optional[int],
        producer: Callable[[], Awaitable[T]],
    ) -> T:
        """
        Return the cached value for key, or produce and cache it.

        Concurrent callers for a key that is already being produced await the
        same result instead of invoking the producer again. Producer errors are
        raised to every waiter and nothing is cached. If the producing caller is
        cancelled, its waiters start over instead of being cancelled too.
        """
        while True:
            entry = self._entries.get(key)
            if entry is not None and self._clock() < entry[1]:
                logger.debug(f"Cache HIT: {key}")
                return entry[0]

            pending = self._inflight.get(key)
            if pending is None:
                break

            logger.debug(f"Cache WAIT: {key}")
            try:
                return await asyncio.shield(pending)
            except ProducerCancelled:
                logger.debug(f"Cache RETRY: {key}")

        logger.debug(f"Cache MISS: {key}")
        future = asyncio.get_running_loop().create_future()
        self._inflight[key] = future
        try:
            value = await producer()
        except asyncio.CancelledError:
            future.set_exception(ProducerCancelled(key))
            future.exception()
            raise
        except Exception as e:
            future.set_exception(e)
            # Mark retrieved so a lone caller does not trigger a loop warning
            future.exception()
            raise
        else:
            # Skip the store when the key was deleted or invalidated meanwhile
            if self._inflight.get(key) is future:
                self.set(key, value, ttl)
            future.set_result(value)
            return value
        finally:
            if self._inflight.get(key) is future:
                del self._inflight[key]

    async def refresh(
        self,
        key: str,
        ttl: Optional[int],
        producer: Callable[[], Awaitable[T]],
    ) -> T:
        """
        Force refresh: delete the key, then recompute it.
        Never joins a computation that started before the refresh.
        """
        self.delete(key)
        return await self.get_or_compute(key, ttl, producer)

    def stats(self) -> Dict[str, Any]:
        now = self._clock()
        live = [key for key, (_, expires_at) in self._entries.items() if now < expires_at]
        return {
            "size": len(live),
            "keys": live,
            "inflight": len(self._inflight),
        }
