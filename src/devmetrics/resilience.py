"""Resilient, cache-aware fetch orchestration.

Every external fetch goes through :class:`ResilientFetcher`:

1. A valid cache entry is returned without touching the network.
2. On a miss the fetch is retried with exponential backoff.
3. Fresh results are written back to the cache.
4. When every attempt fails, an expired cache entry is served if one exists.
5. Otherwise synthetic data is served when fallback is enabled, or the error
   propagates.

Configuration errors skip all of the above and propagate immediately.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, Set, Tuple, TypeVar, Union

from .cache import CacheService
from .errors import ConfigurationError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_RETRIES = 3
DEFAULT_INITIAL_DELAY_SECONDS = 1.0

SleepFn = Callable[[float], Awaitable[None]]
FetchFn = Callable[[], Awaitable[T]]
FallbackFn = Callable[[], Union[T, Awaitable[T]]]


async def retry_with_backoff(
    fn: FetchFn[T],
    max_retries: int = DEFAULT_MAX_RETRIES,
    initial_delay: float = DEFAULT_INITIAL_DELAY_SECONDS,
    sleep: SleepFn = asyncio.sleep,
) -> T:
    """Await ``fn`` up to ``max_retries`` times.

    Waits ``initial_delay * 2 ** attempt`` seconds between attempts; no wait
    follows the final attempt, whose error is re-raised.

    Raises:
        ConfigurationError: Immediately, without retrying.
    """
    last_error: Optional[BaseException] = None

    for attempt in range(max_retries):
        try:
            return await fn()
        except ConfigurationError:
            raise
        except Exception as exc:
            last_error = exc
            logger.warning(
                "Fetch attempt failed",
                extra={"attempt": attempt + 1, "max_retries": max_retries, "error": str(exc)},
            )
            if attempt < max_retries - 1:
                delay = initial_delay * (2 ** attempt)
                logger.info("Retrying fetch", extra={"delay_seconds": delay})
                await sleep(delay)

    if last_error is None:
        raise RuntimeError("All retry attempts failed")
    raise last_error


class ResilientFetcher:
    """Cache-first fetcher with retry, stale fallback and synthetic fallback.

    Concurrent misses on the same key are not deduplicated; each performs its
    own fetch and the last cache write wins.
    """

    def __init__(
        self,
        cache: CacheService,
        fallback_to_mock: bool = False,
        max_retries: int = DEFAULT_MAX_RETRIES,
        initial_delay: float = DEFAULT_INITIAL_DELAY_SECONDS,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self._cache = cache
        self._fallback_to_mock = fallback_to_mock
        self._max_retries = max_retries
        self._initial_delay = initial_delay
        self._sleep = sleep
        self._background: Set["asyncio.Task[None]"] = set()

    @property
    def cache(self) -> CacheService:
        return self._cache

    async def fetch(
        self,
        key: str,
        fetch_fn: FetchFn[T],
        fallback_fn: Optional[FallbackFn[T]] = None,
        ttl_minutes: Optional[float] = None,
    ) -> T:
        """Return data for ``key`` following the cache/retry/fallback sequence."""
        entry = self._cache.get_entry(key)
        if entry is not None and entry.is_valid(self._cache.now_ms()):
            logger.debug("Using cached data", extra={"cache_key": key})
            return entry.data

        try:
            data = await retry_with_backoff(
                fetch_fn,
                max_retries=self._max_retries,
                initial_delay=self._initial_delay,
                sleep=self._sleep,
            )
        except ConfigurationError:
            raise
        except Exception as exc:
            logger.error("Failed to fetch", extra={"cache_key": key, "error": str(exc)})

            stale = self._cache.get_stale(key)
            if stale is not None:
                logger.warning("Serving stale cache after fetch failure", extra={"cache_key": key})
                return stale

            if self._fallback_to_mock and fallback_fn is not None:
                logger.warning("Falling back to synthetic data", extra={"cache_key": key})
                result = fallback_fn()
                if inspect.isawaitable(result):
                    return await result
                return result

            raise

        self._cache.set(key, data, ttl_minutes)
        return data

    async def fetch_with_stale(
        self,
        key: str,
        fetch_fn: FetchFn[T],
        ttl_minutes: Optional[float] = None,
    ) -> Tuple[T, bool]:
        """Stale-while-revalidate read.

        On a cache hit the cached value is returned at once as ``(data, True)``
        and a background refresh is started; its result only reaches the
        cache, and its failure is only logged. On a miss the fetch is awaited
        and ``(data, False)`` returned.
        """
        cached = self._cache.get(key)
        if cached is not None:
            self._schedule_refresh(key, fetch_fn, ttl_minutes)
            return cached, True

        data = await fetch_fn()
        self._cache.set(key, data, ttl_minutes)
        return data, False

    def _schedule_refresh(self, key: str, fetch_fn: FetchFn[Any], ttl_minutes: Optional[float]) -> None:
        task = asyncio.get_running_loop().create_task(self._refresh(key, fetch_fn, ttl_minutes))
        # Hold a reference until the task finishes so it is not garbage collected.
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _refresh(self, key: str, fetch_fn: FetchFn[Any], ttl_minutes: Optional[float]) -> None:
        try:
            data = await fetch_fn()
        except Exception:
            logger.exception("Background refresh failed", extra={"cache_key": key})
            return
        self._cache.set(key, data, ttl_minutes)
        logger.debug("Background refresh stored", extra={"cache_key": key})

    async def drain(self) -> None:
        """Wait for outstanding background refreshes, e.g. before the event loop closes."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
