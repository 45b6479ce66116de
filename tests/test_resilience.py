"""Tests for retry with backoff and the resilient cache-aware fetcher."""

import asyncio
import sys
from pathlib import Path
from unittest.mock import Mock

import pytest

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from devmetrics.cache import CACHE_PREFIX, CacheService, FileStore, MemoryStore
from devmetrics.errors import ApiError, ConfigurationError
from devmetrics.resilience import ResilientFetcher, retry_with_backoff


class _Clock:
    def __init__(self) -> None:
        self.now = 1_700_000_000.0

    def __call__(self) -> float:
        return self.now


class _Sleeper:
    def __init__(self) -> None:
        self.delays = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def _flaky(failures: int, result="fresh", error=None):
    calls = Mock()

    async def fetch():
        calls()
        if calls.call_count <= failures:
            raise error or ApiError("boom")
        return result

    return fetch, calls


def _fetcher(fallback_to_mock=False, clock=None):
    clock = clock or _Clock()
    sleeper = _Sleeper()
    cache = CacheService(MemoryStore(), default_ttl_minutes=15, clock=clock)
    return ResilientFetcher(cache, fallback_to_mock=fallback_to_mock, sleep=sleeper), sleeper, clock


def test_retry_succeeds_on_third_attempt_after_two_delays():
    """Verify two failures then success return the result after exactly two waits."""
    fetch, calls = _flaky(2)
    sleeper = _Sleeper()

    result = asyncio.run(retry_with_backoff(fetch, max_retries=3, initial_delay=1.0, sleep=sleeper))

    assert result == "fresh"
    assert calls.call_count == 3
    assert sleeper.delays == [1.0, 2.0]


def test_retry_raises_last_error_without_trailing_delay():
    """Verify exhausted retries raise the final error and skip the last wait."""
    fetch, calls = _flaky(5)
    sleeper = _Sleeper()

    with pytest.raises(ApiError):
        asyncio.run(retry_with_backoff(fetch, max_retries=3, initial_delay=0.5, sleep=sleeper))

    assert calls.call_count == 3
    assert sleeper.delays == [0.5, 1.0]


def test_retry_does_not_retry_configuration_errors():
    """Verify configuration errors propagate on the first attempt."""
    fetch, calls = _flaky(5, error=ConfigurationError("missing org"))
    sleeper = _Sleeper()

    with pytest.raises(ConfigurationError):
        asyncio.run(retry_with_backoff(fetch, sleep=sleeper))

    assert calls.call_count == 1
    assert sleeper.delays == []


def test_fetch_serves_valid_cache_without_calling_source():
    """Verify a valid cache entry short-circuits the fetch."""
    fetcher, _, _ = _fetcher()
    fetcher.cache.set("key", "cached")
    fetch, calls = _flaky(0)

    assert asyncio.run(fetcher.fetch("key", fetch)) == "cached"
    assert calls.call_count == 0


def test_fetch_stores_fresh_result_in_cache():
    """Verify a successful fetch is written back to the cache."""
    fetcher, _, _ = _fetcher()
    fetch, _ = _flaky(1)

    assert asyncio.run(fetcher.fetch("key", fetch, ttl_minutes=5)) == "fresh"
    assert fetcher.cache.get("key") == "fresh"


def test_fetch_serves_stale_cache_after_failures():
    """Verify an expired entry is served when every attempt fails."""
    fetcher, sleeper, clock = _fetcher(fallback_to_mock=True)
    fetcher.cache.set("key", "old", ttl_minutes=1)
    clock.now += 3600
    fetch, calls = _flaky(10)
    fallback = Mock(return_value="synthetic")

    assert asyncio.run(fetcher.fetch("key", fetch, fallback)) == "old"
    assert calls.call_count == 3
    assert len(sleeper.delays) == 2
    fallback.assert_not_called()


def test_fetch_uses_fallback_when_enabled_and_no_cache():
    """Verify synthetic data is returned when allowed and nothing is cached."""
    fetcher, _, _ = _fetcher(fallback_to_mock=True)
    fetch, _ = _flaky(10)

    async def fallback():
        return "synthetic"

    assert asyncio.run(fetcher.fetch("key", fetch, fallback)) == "synthetic"
    assert fetcher.cache.get("key") is None


def test_fetch_raises_when_fallback_disabled():
    """Verify the fetch error propagates when synthetic fallback is off."""
    fetcher, _, _ = _fetcher(fallback_to_mock=False)
    fetch, _ = _flaky(10)
    fallback = Mock(return_value="synthetic")

    with pytest.raises(ApiError):
        asyncio.run(fetcher.fetch("key", fetch, fallback))

    fallback.assert_not_called()


def test_fetch_never_hides_configuration_errors():
    """Verify configuration errors bypass stale cache and synthetic fallback."""
    fetcher, _, clock = _fetcher(fallback_to_mock=True)
    fetcher.cache.set("key", "old", ttl_minutes=1)
    clock.now += 3600
    fetch, calls = _flaky(10, error=ConfigurationError("bad config"))

    with pytest.raises(ConfigurationError):
        asyncio.run(fetcher.fetch("key", fetch, lambda: "synthetic"))

    assert calls.call_count == 1


def test_fetch_with_stale_returns_cached_and_refreshes_in_background():
    """Verify a cache hit is returned immediately and refreshed afterwards."""
    fetcher, _, _ = _fetcher()
    fetcher.cache.set("key", "cached")
    fetch, calls = _flaky(0, result="refreshed")

    async def scenario():
        result = await fetcher.fetch_with_stale("key", fetch)
        await fetcher.drain()
        return result

    assert asyncio.run(scenario()) == ("cached", True)
    assert calls.call_count == 1
    assert fetcher.cache.get("key") == "refreshed"


def test_fetch_with_stale_background_failure_keeps_cached_value():
    """Verify a failed background refresh is only logged."""
    fetcher, _, _ = _fetcher()
    fetcher.cache.set("key", "cached")
    fetch, _ = _flaky(10)

    async def scenario():
        result = await fetcher.fetch_with_stale("key", fetch)
        await fetcher.drain()
        return result

    assert asyncio.run(scenario()) == ("cached", True)
    assert fetcher.cache.get("key") == "cached"


def test_fetch_with_stale_miss_fetches_synchronously():
    """Verify a cache miss awaits the fetch and reports fresh data."""
    fetcher, _, _ = _fetcher()
    fetch, _ = _flaky(0)

    assert asyncio.run(fetcher.fetch_with_stale("key", fetch)) == ("fresh", False)
    assert fetcher.cache.get("key") == "fresh"


def test_fetch_treats_undecodable_cache_file_as_miss(tmp_path):
    """Verify a cache file with non-UTF-8 bytes does not break the fetch."""
    store = FileStore(tmp_path)
    store._path(f"{CACHE_PREFIX}key").write_bytes(b"\xff\xfe\xfa not utf8")
    cache = CacheService(store, default_ttl_minutes=15, clock=_Clock())
    fetcher = ResilientFetcher(cache, sleep=_Sleeper())
    fetch, calls = _flaky(0)

    result = asyncio.run(fetcher.fetch("key", fetch))

    assert result == "fresh"
    assert calls.call_count == 1
    assert cache.get("key") == "fresh"
