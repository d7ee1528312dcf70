"""Tests for TtlCache."""

import asyncio

import pytest

from slackdigest.infrastructure.cache import TtlCache


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> TtlCache[str, str]:
    return TtlCache(clock=clock)


class TestGetPut:
    """Plain get/put behaviour."""

    def test_missing_key_returns_none(self, cache: TtlCache[str, str]) -> None:
        assert cache.get("U1", ttl=60) is None

    def test_fresh_entry_is_returned(
        self, cache: TtlCache[str, str], clock: FakeClock
    ) -> None:
        """An entry younger than the TTL is served."""
        cache.put("U1", "alice")
        clock.now += 59

        assert cache.get("U1", ttl=60) == "alice"

    def test_entry_expires_at_ttl(
        self, cache: TtlCache[str, str], clock: FakeClock
    ) -> None:
        """An entry exactly TTL seconds old is stale."""
        cache.put("U1", "alice")
        clock.now += 60

        assert cache.get("U1", ttl=60) is None

    def test_invalidate(self, cache: TtlCache[str, str]) -> None:
        cache.put("U1", "alice")

        cache.invalidate("U1")
        cache.invalidate("missing")

        assert cache.get("U1", ttl=60) is None
        assert len(cache) == 0


class TestGetOrRefresh:
    """Loader-backed refresh."""

    async def test_loads_once_while_fresh(
        self, cache: TtlCache[str, str], clock: FakeClock
    ) -> None:
        """A fresh entry is served without calling the loader again."""
        calls = 0

        async def loader() -> str:
            nonlocal calls
            calls += 1
            return f"alice-{calls}"

        first = await cache.get_or_refresh("U1", 60, loader)
        clock.now += 30
        second = await cache.get_or_refresh("U1", 60, loader)

        assert first == second == "alice-1"
        assert calls == 1

    async def test_reloads_when_stale(
        self, cache: TtlCache[str, str], clock: FakeClock
    ) -> None:
        """A stale entry triggers a fresh load."""
        calls = 0

        async def loader() -> str:
            nonlocal calls
            calls += 1
            return f"alice-{calls}"

        await cache.get_or_refresh("U1", 60, loader)
        clock.now += 61
        value = await cache.get_or_refresh("U1", 60, loader)

        assert value == "alice-2"
        assert calls == 2

    async def test_concurrent_refreshes_share_one_load(
        self, cache: TtlCache[str, str]
    ) -> None:
        """Callers racing on the same key wait for a single loader call."""
        calls = 0
        release = asyncio.Event()

        async def loader() -> str:
            nonlocal calls
            calls += 1
            await release.wait()
            return "alice"

        tasks = [
            asyncio.create_task(cache.get_or_refresh("U1", 60, loader))
            for _ in range(3)
        ]
        await asyncio.sleep(0)
        release.set()
        results = await asyncio.gather(*tasks)

        assert results == ["alice", "alice", "alice"]
        assert calls == 1

    async def test_failed_load_caches_nothing(self, cache: TtlCache[str, str]) -> None:
        """A loader error propagates and leaves the key empty."""

        async def failing() -> str:
            raise RuntimeError("users.info failed")

        with pytest.raises(RuntimeError):
            await cache.get_or_refresh("U1", 60, failing)

        assert len(cache) == 0

        async def loader() -> str:
            return "alice"

        assert await cache.get_or_refresh("U1", 60, loader) == "alice"

    async def test_concurrent_waiters_see_failure(
        self, cache: TtlCache[str, str]
    ) -> None:
        """Waiters sharing a failed load receive the same error."""
        release = asyncio.Event()

        async def failing() -> str:
            await release.wait()
            raise RuntimeError("boom")

        first = asyncio.create_task(cache.get_or_refresh("U1", 60, failing))
        await asyncio.sleep(0)
        second = asyncio.create_task(cache.get_or_refresh("U1", 60, failing))
        await asyncio.sleep(0)
        release.set()

        results = await asyncio.gather(first, second, return_exceptions=True)

        assert all(isinstance(r, RuntimeError) for r in results)
