import asyncio

import pytest

from api.infra.token_cache import TokenCache


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.mark.asyncio
async def test_token_reused_within_validity_window():
    clock = FakeClock()
    cache = TokenCache(refresh_margin_s=30, clock=clock)
    calls = 0

    async def fetch():
        nonlocal calls
        calls += 1
        return f"token-{calls}", 300

    assert await cache.get_or_refresh(fetch) == "token-1"
    clock.now += 200
    assert await cache.get_or_refresh(fetch) == "token-1"
    assert calls == 1

    # Inside the refresh margin
    clock.now += 80
    assert await cache.get_or_refresh(fetch) == "token-2"
    assert calls == 2


@pytest.mark.asyncio
async def test_invalidate_forces_refresh():
    cache = TokenCache(clock=FakeClock())
    cache.store("old", 3600)
    assert cache.is_valid()

    cache.invalidate()

    assert cache.token is None

    async def fetch():
        return "new", 3600

    assert await cache.get_or_refresh(fetch) == "new"


@pytest.mark.asyncio
async def test_concurrent_callers_share_one_refresh():
    cache = TokenCache()
    calls = 0

    async def fetch():
        nonlocal calls
        calls += 1
        await asyncio.sleep(0.01)
        return "shared", 3600

    tokens = await asyncio.gather(*(cache.get_or_refresh(fetch) for _ in range(5)))

    assert tokens == ["shared"] * 5
    assert calls == 1
