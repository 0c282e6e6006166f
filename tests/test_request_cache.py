import asyncio

import pytest

from tour_gateway.providers.base import Failure, FailureKind
from tour_gateway.services.request_cache import RequestCache, cache_key


def test_cache_key_ignores_param_order():
    a = cache_key('/tour', {'page': 1, 'lang': 'en', 'per_page': 12})
    b = cache_key('/tour', {'per_page': 12, 'page': 1, 'lang': 'en'})
    assert a == b


def test_cache_key_drops_none_and_separates_endpoints():
    assert cache_key('/tour', {'search': None, 'page': 1}) == cache_key('/tour', {'page': 1})
    assert cache_key('/tour', {'page': 1}) != cache_key('/posts', {'page': 1})
    assert cache_key('/tour', {'lang': 'en'}) != cache_key('/tour', {'lang': 'zh'})


@pytest.mark.asyncio
async def test_identical_calls_share_one_fetch():
    cache = RequestCache()
    calls = []

    async def producer():
        calls.append(1)
        await asyncio.sleep(0.01)
        return 'tours'

    key = cache_key('/tour', {'page': 1})
    results = await asyncio.gather(*(cache.get_or_fetch(key, producer) for _ in range(5)))

    assert results == ['tours'] * 5
    assert len(calls) == 1
    assert cache.misses == 1
    assert cache.hits == 4


@pytest.mark.asyncio
async def test_failures_are_cached_for_the_scope():
    cache = RequestCache()
    calls = []

    async def producer():
        calls.append(1)
        return Failure(FailureKind.UNAVAILABLE, 'down')

    first = await cache.get_or_fetch('k', producer)
    second = await cache.get_or_fetch('k', producer)
    assert first is second
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_raised_errors_reach_every_caller_once():
    cache = RequestCache()
    calls = []

    async def producer():
        calls.append(1)
        raise RuntimeError('boom')

    for _ in range(2):
        with pytest.raises(RuntimeError):
            await cache.get_or_fetch('k', producer)
    assert len(calls) == 1
    cache.clear()


@pytest.mark.asyncio
async def test_clear_starts_a_new_scope():
    cache = RequestCache()
    calls = []

    async def producer():
        calls.append(1)
        return len(calls)

    assert await cache.get_or_fetch('k', producer) == 1
    assert 'k' in cache
    cache.clear()
    assert len(cache) == 0
    assert await cache.get_or_fetch('k', producer) == 2


@pytest.mark.asyncio
async def test_separate_caches_do_not_share():
    calls = []

    async def producer():
        calls.append(1)
        return 'x'

    await RequestCache().get_or_fetch('k', producer)
    await RequestCache().get_or_fetch('k', producer)
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_clear_cancels_pending_fetches():
    cache = RequestCache()
    started = asyncio.Event()

    async def slow():
        started.set()
        await asyncio.sleep(60)

    waiter = asyncio.ensure_future(cache.get_or_fetch('slow', slow))
    await started.wait()
    task = cache._entries['slow'].future

    cache.clear()
    with pytest.raises(asyncio.CancelledError):
        await waiter
    assert task.cancelled()
    assert len(cache) == 0
