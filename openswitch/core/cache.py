"""Read-through cache of host collections.

Four independent slots hold the latest successful fetch of ``config``,
``credentials``, ``mcp`` and ``prompts``. Slots are only ever refreshed by
refetching from the host after ``invalidate``; cached values are never
patched locally.

Reads while a refetch is running return the previous value instead of
waiting (stale-while-revalidate). A read that finds the slot invalidated,
or empty, starts the refetch and waits for it.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

from openswitch.core.errors import HostCallFailure
from openswitch.utils.log import get_logger


logger = get_logger()

Fetcher = Callable[[], Awaitable[Any]]


class CacheSlot(str, Enum):
    CONFIG = "config"
    CREDENTIALS = "credentials"
    MCP = "mcp"
    PROMPTS = "prompts"


@dataclass
class _SlotState:
    value: Any = None
    has_value: bool = False
    fetched_at: Optional[float] = None
    invalidated: bool = False
    # Bumped on every invalidate so a fetch that started earlier cannot mark the slot fresh.
    generation: int = 0
    inflight: Optional["asyncio.Task[Any]"] = None
    fetch_count: int = 0


class QueryCache:
    """Named cache slots with invalidate-then-refetch semantics."""

    def __init__(
        self,
        fetchers: Mapping[CacheSlot, Fetcher],
        *,
        stale_after_seconds: float = 60.0,
        refetch_retries: int = 1,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._fetchers: Dict[CacheSlot, Fetcher] = dict(fetchers)
        self._slots: Dict[CacheSlot, _SlotState] = {slot: _SlotState() for slot in CacheSlot}
        self.stale_after_seconds = stale_after_seconds
        self.refetch_retries = refetch_retries
        self._clock = clock

    def peek(self, slot: CacheSlot) -> Any:
        """Return the cached value (possibly stale) without fetching."""
        return self._slots[slot].value

    def has_value(self, slot: CacheSlot) -> bool:
        return self._slots[slot].has_value

    def is_fetching(self, slot: CacheSlot) -> bool:
        task = self._slots[slot].inflight
        return task is not None and not task.done()

    def fetch_count(self, slot: CacheSlot) -> int:
        return self._slots[slot].fetch_count

    def is_stale(self, slot: CacheSlot) -> bool:
        state = self._slots[slot]
        if not state.has_value or state.invalidated or state.fetched_at is None:
            return True
        return (self._clock() - state.fetched_at) >= self.stale_after_seconds

    def invalidate(self, slot: CacheSlot) -> None:
        """Mark a slot for refetch on its next read. The old value is kept only as a stale fallback."""
        state = self._slots[slot]
        state.invalidated = True
        state.generation += 1
        logger.debug("[cache] Invalidated slot", extra={"slot": slot.value})

    async def get(self, slot: CacheSlot) -> Any:
        state = self._slots[slot]

        if self.is_fetching(slot):
            if state.has_value:
                return state.value
            assert state.inflight is not None
            return await asyncio.shield(state.inflight)

        if state.has_value and not state.invalidated:
            if not self.is_stale(slot):
                return state.value
            # Aged out: serve the current value and refresh in the background.
            task = self._start_fetch(slot)
            task.add_done_callback(self._log_background_failure)
            return state.value

        task = self._start_fetch(slot)
        return await asyncio.shield(task)

    async def refresh(self, slot: CacheSlot) -> Any:
        """Force a refetch now and wait for it."""
        self.invalidate(slot)
        return await self.get(slot)

    def _start_fetch(self, slot: CacheSlot) -> "asyncio.Task[Any]":
        state = self._slots[slot]
        task = asyncio.ensure_future(self._fetch(slot, state.generation))
        state.inflight = task
        return task

    async def _fetch(self, slot: CacheSlot, generation: int) -> Any:
        state = self._slots[slot]
        fetcher = self._fetchers[slot]
        attempts = 1 + max(0, self.refetch_retries)
        try:
            for attempt in range(1, attempts + 1):
                try:
                    value = await fetcher()
                except Exception as exc:
                    if attempt < attempts:
                        logger.warning(
                            "[cache] Fetch failed, retrying: %s: %s",
                            type(exc).__name__,
                            exc,
                            extra={"slot": slot.value, "attempt": attempt},
                        )
                        continue
                    logger.warning(
                        "[cache] Fetch failed: %s: %s",
                        type(exc).__name__,
                        exc,
                        extra={"slot": slot.value, "attempts": attempts},
                    )
                    if isinstance(exc, HostCallFailure):
                        raise
                    raise HostCallFailure(f"get_{slot.value}", str(exc)) from exc
                state.value = value
                state.has_value = True
                state.fetched_at = self._clock()
                state.fetch_count += 1
                # An invalidate that landed mid-fetch keeps the slot due for another fetch.
                state.invalidated = state.generation != generation
                logger.debug(
                    "[cache] Fetched slot",
                    extra={"slot": slot.value, "attempt": attempt},
                )
                return value
        finally:
            state.inflight = None
        raise AssertionError("unreachable")  # pragma: no cover

    @staticmethod
    def _log_background_failure(task: "asyncio.Task[Any]") -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning(
                "[cache] Background refresh failed: %s: %s",
                type(exc).__name__,
                exc,
            )
