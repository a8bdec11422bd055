import asyncio

import pytest

from core.errors import FetchError
from data.cache import TTLCache


class Ticker:
    def __init__(self):
        self.t = 0.0

    def __call__(self):
        return self.t


def test_entries_expire_at_ttl():
    ticker = Ticker()
    cache = TTLCache(60, clock=ticker)
    cache.set("k", "v")

    ticker.t = 59.9
    assert cache.get("k") == "v"
    ticker.t = 60.0
    assert cache.get("k") is None
    assert len(cache) == 0


def test_get_or_fetch_only_fetches_once_per_ttl():
    ticker = Ticker()
    cache = TTLCache(10, clock=ticker)
    calls = []

    async def fetch():
        calls.append(ticker.t)
        return len(calls)

    async def scenario():
        first = await cache.get_or_fetch("k", fetch)
        second = await cache.get_or_fetch("k", fetch)
        ticker.t = 11
        third = await cache.get_or_fetch("k", fetch)
        return first, second, third

    assert asyncio.run(scenario()) == (1, 1, 2)
    assert calls == [0.0, 11]


def test_fetch_errors_are_not_cached():
    cache = TTLCache(10, clock=Ticker())

    async def boom():
        raise FetchError("down")

    async def ok():
        return "fresh"

    with pytest.raises(FetchError):
        asyncio.run(cache.get_or_fetch("k", boom))
    assert asyncio.run(cache.get_or_fetch("k", ok)) == "fresh"


def test_clear():
    cache = TTLCache(10, clock=Ticker())
    cache.set("a", 1)
    cache.set("b", 2)
    cache.clear()
    assert len(cache) == 0


def test_expired_entries_are_swept_on_insert():
    ticker = Ticker()
    cache = TTLCache(10, clock=ticker)

    for i in range(100):
        cache.set(f"mint{i}", i)
        ticker.t += 20

    assert len(cache) == 1
    assert cache.get("mint99") is None


def test_oldest_entry_evicted_when_full():
    ticker = Ticker()
    cache = TTLCache(60, clock=ticker, max_size=2)
    cache.set("a", 1)
    ticker.t = 1
    cache.set("b", 2)
    ticker.t = 2
    cache.set("a", 10)
    cache.set("c", 3)

    assert len(cache) == 2
    assert cache.get("b") is None
    assert cache.get("a") == 10
    assert cache.get("c") == 3
    assert cache.evictions == 1
