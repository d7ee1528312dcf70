"""In-memory TTL cache with async refresh."""

import asyncio
import time
from collections.abc import Awaitable, Callable, Hashable
from typing import Generic, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class TtlCache(Generic[K, V]):
    """Keyed cache whose entries go stale after a caller-supplied TTL.

    Concurrent refreshes of the same key share one loader call.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        """Initialize the cache.

        Args:
            clock: Monotonic time source in seconds, injectable for tests.
        """
        self._clock = clock
        self._entries: dict[K, tuple[V, float]] = {}
        self._inflight: dict[K, asyncio.Future[V]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: K, ttl: float) -> V | None:
        """Return the cached value if it is younger than ttl seconds."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, stored_at = entry
        if self._clock() - stored_at >= ttl:
            return None
        return value

    def put(self, key: K, value: V) -> None:
        """Store value as fresh."""
        self._entries[key] = (value, self._clock())

    def invalidate(self, key: K) -> None:
        """Drop the entry for key, if any."""
        self._entries.pop(key, None)

    async def get_or_refresh(
        self, key: K, ttl: float, loader: Callable[[], Awaitable[V]]
    ) -> V:
        """Return a fresh cached value, loading and storing it when stale.

        Args:
            key: Cache key.
            ttl: Maximum age in seconds of a usable entry.
            loader: Coroutine factory producing a fresh value.

        Returns:
            The cached or freshly loaded value.

        Raises:
            Exception: Whatever loader raises; nothing is cached in that case.
        """
        cached = self.get(key, ttl)
        if cached is not None:
            return cached

        pending = self._inflight.get(key)
        if pending is not None:
            return await asyncio.shield(pending)

        future: asyncio.Future[V] = asyncio.get_running_loop().create_future()
        self._inflight[key] = future
        try:
            value = await loader()
        except Exception as e:
            future.set_exception(e)
            # Waiters re-raise; mark retrieved for the no-waiter case
            future.exception()
            raise
        except BaseException:
            future.cancel()
            raise
        else:
            self.put(key, value)
            future.set_result(value)
            return value
        finally:
            del self._inflight[key]
