"""Tests for the stale-while-revalidate query cache."""

import asyncio

import pytest

from openswitch.core.cache import CacheSlot, QueryCache
from openswitch.core.errors import HostCallFailure


class _Source:
    """Fetcher returning an incrementing value, optionally gated or failing."""

    def __init__(self) -> None:
        self.calls = 0
        self.failures_left = 0
        self.gate: asyncio.Event | None = None

    async def __call__(self):
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.failures_left:
            self.failures_left -= 1
            raise OSError("disk unavailable")
        return self.calls


def _cache(clock, **sources):
    fetchers = {slot: sources.get(slot.value, _Source()) for slot in CacheSlot}
    return QueryCache(fetchers, stale_after_seconds=60.0, refetch_retries=1, clock=clock)


@pytest.mark.asyncio
async def test_fresh_value_is_served_from_cache(clock):
    source = _Source()
    cache = _cache(clock, config=source)
    assert await cache.get(CacheSlot.CONFIG) == 1
    clock.advance(30)
    assert await cache.get(CacheSlot.CONFIG) == 1
    assert source.calls == 1


@pytest.mark.asyncio
async def test_invalidate_forces_refetch(clock):
    source = _Source()
    cache = _cache(clock, config=source)
    await cache.get(CacheSlot.CONFIG)
    cache.invalidate(CacheSlot.CONFIG)
    assert cache.is_stale(CacheSlot.CONFIG)
    assert await cache.get(CacheSlot.CONFIG) == 2
    assert not cache.is_stale(CacheSlot.CONFIG)


@pytest.mark.asyncio
async def test_slots_are_independent(clock):
    config, mcp = _Source(), _Source()
    cache = _cache(clock, config=config, mcp=mcp)
    await cache.get(CacheSlot.CONFIG)
    await cache.get(CacheSlot.MCP)
    cache.invalidate(CacheSlot.MCP)
    await cache.get(CacheSlot.CONFIG)
    await cache.get(CacheSlot.MCP)
    assert config.calls == 1
    assert mcp.calls == 2


@pytest.mark.asyncio
async def test_aged_value_is_returned_while_refreshing(clock):
    source = _Source()
    cache = _cache(clock, prompts=source)
    assert await cache.get(CacheSlot.PROMPTS) == 1
    clock.advance(61)

    source.gate = asyncio.Event()
    assert await cache.get(CacheSlot.PROMPTS) == 1
    assert cache.is_fetching(CacheSlot.PROMPTS)
    # Reads during the refetch keep returning the previous value.
    assert await cache.get(CacheSlot.PROMPTS) == 1

    source.gate.set()
    await asyncio.sleep(0)
    await asyncio.sleep(0)
    assert not cache.is_fetching(CacheSlot.PROMPTS)
    assert cache.peek(CacheSlot.PROMPTS) == 2


@pytest.mark.asyncio
async def test_reads_during_refetch_after_invalidate_return_previous_value(clock):
    source = _Source()
    cache = _cache(clock, mcp=source)
    await cache.get(CacheSlot.MCP)
    cache.invalidate(CacheSlot.MCP)

    source.gate = asyncio.Event()
    waiter = asyncio.ensure_future(cache.get(CacheSlot.MCP))
    await asyncio.sleep(0)
    assert cache.is_fetching(CacheSlot.MCP)
    assert await cache.get(CacheSlot.MCP) == 1

    source.gate.set()
    assert await waiter == 2


@pytest.mark.asyncio
async def test_concurrent_first_reads_share_one_fetch(clock):
    source = _Source()
    source.gate = asyncio.Event()
    cache = _cache(clock, credentials=source)
    first = asyncio.ensure_future(cache.get(CacheSlot.CREDENTIALS))
    second = asyncio.ensure_future(cache.get(CacheSlot.CREDENTIALS))
    await asyncio.sleep(0)
    source.gate.set()
    assert await first == await second == 1
    assert source.calls == 1


@pytest.mark.asyncio
async def test_refetch_is_retried_once(clock):
    source = _Source()
    source.failures_left = 1
    cache = _cache(clock, config=source)
    assert await cache.get(CacheSlot.CONFIG) == 2
    assert source.calls == 2


@pytest.mark.asyncio
async def test_refetch_failure_after_retry_raises_host_call_failure(clock):
    source = _Source()
    source.failures_left = 2
    cache = _cache(clock, config=source)
    with pytest.raises(HostCallFailure) as excinfo:
        await cache.get(CacheSlot.CONFIG)
    assert excinfo.value.command == "get_config"
    assert "disk unavailable" in str(excinfo.value)
    assert not cache.has_value(CacheSlot.CONFIG)


@pytest.mark.asyncio
async def test_invalidate_during_fetch_keeps_slot_due(clock):
    source = _Source()
    source.gate = asyncio.Event()
    cache = _cache(clock, config=source)
    pending = asyncio.ensure_future(cache.get(CacheSlot.CONFIG))
    await asyncio.sleep(0)
    cache.invalidate(CacheSlot.CONFIG)
    source.gate.set()
    assert await pending == 1
    assert cache.is_stale(CacheSlot.CONFIG)

    source.gate = None
    assert await cache.get(CacheSlot.CONFIG) == 2


@pytest.mark.asyncio
async def test_refresh_waits_for_new_value(clock):
    source = _Source()
    cache = _cache(clock, credentials=source)
    await cache.get(CacheSlot.CREDENTIALS)
    assert await cache.refresh(CacheSlot.CREDENTIALS) == 2
    assert cache.fetch_count(CacheSlot.CREDENTIALS) == 2
