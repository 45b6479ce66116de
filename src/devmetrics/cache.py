"""TTL cache over a flat key-value store.

Entries are stored as JSON strings ``{"data": ..., "timestamp": ms, "ttlMs": ms}``
under keys namespaced by a common prefix so the whole dashboard cache can be
cleared at once. Expired entries are evicted lazily when read through
:meth:`CacheService.get`; nothing sweeps them proactively.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Protocol, Union
from urllib.parse import quote, unquote

from .config import DEFAULT_CACHE_TTL_MINUTES

logger = logging.getLogger(__name__)

CACHE_PREFIX = "dashboard_cache_"
MS_PER_MINUTE = 60 * 1000


@dataclass(frozen=True)
class CacheEntry:
    """Cached value with its write time and time-to-live, both in milliseconds."""

    data: Any
    timestamp: int
    ttl_ms: int

    def is_valid(self, now_ms: int) -> bool:
        """An entry is valid while ``now - timestamp <= ttl``; a ttl of zero never is."""
        return self.ttl_ms > 0 and now_ms - self.timestamp <= self.ttl_ms

    def to_json(self) -> str:
        return json.dumps({"data": self.data, "timestamp": self.timestamp, "ttlMs": self.ttl_ms})

    @classmethod
    def from_json(cls, raw: str) -> "CacheEntry":
        """Parse a stored entry.

        Raises:
            ValueError: If ``raw`` is not a well-formed entry.
        """
        payload = json.loads(raw)
        if not isinstance(payload, dict):
            raise ValueError("cache entry is not a JSON object")
        try:
            return cls(data=payload["data"], timestamp=int(payload["timestamp"]), ttl_ms=int(payload["ttlMs"]))
        except (KeyError, TypeError) as exc:
            raise ValueError(f"cache entry is missing fields: {exc}") from exc


class KeyValueStore(Protocol):
    """Minimal string key-value storage used by :class:`CacheService`."""

    def get_item(self, key: str) -> Optional[str]:
        ...

    def set_item(self, key: str, value: str) -> None:
        ...

    def remove_item(self, key: str) -> None:
        ...

    def keys(self) -> List[str]:
        ...


class MemoryStore:
    """Process-local store; contents vanish with the process."""

    def __init__(self) -> None:
        self._items: Dict[str, str] = {}

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._items)


class FileStore:
    """Store that keeps one JSON file per key inside ``directory``."""

    _SUFFIX = ".json"

    def __init__(self, directory: Union[str, Path]) -> None:
        self._directory = Path(directory).expanduser()

    def _path(self, key: str) -> Path:
        return self._directory / f"{quote(key, safe='')}{self._SUFFIX}"

    def get_item(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set_item(self, key: str, value: str) -> None:
        self._directory.mkdir(parents=True, exist_ok=True)
        self._path(key).write_text(value, encoding="utf-8")

    def remove_item(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)

    def keys(self) -> List[str]:
        if not self._directory.is_dir():
            return []
        return [
            unquote(path.name[: -len(self._SUFFIX)])
            for path in sorted(self._directory.glob(f"*{self._SUFFIX}"))
        ]


class CacheService:
    """TTL cache with prefix-namespaced keys.

    Args:
        store: Backing key-value store. Defaults to a :class:`MemoryStore`.
        default_ttl_minutes: TTL used when ``set`` is called without one.
        clock: Returns the current time in seconds since the epoch.
    """

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        default_ttl_minutes: int = DEFAULT_CACHE_TTL_MINUTES,
        clock: Callable[[], float] = time.time,
        prefix: str = CACHE_PREFIX,
    ) -> None:
        self._store: KeyValueStore = store if store is not None else MemoryStore()
        self._default_ttl_minutes = default_ttl_minutes
        self._clock = clock
        self._prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    def now_ms(self) -> int:
        return int(self._clock() * 1000)

    def get_entry(self, key: str) -> Optional[CacheEntry]:
        """Return the stored entry regardless of expiry.

        Unreadable or corrupt entries are logged, removed and reported as absent.
        """
        cache_key = self._key(key)
        try:
            raw = self._store.get_item(cache_key)
        except ValueError as exc:
            # Undecodable bytes on disk (UnicodeDecodeError).
            logger.warning("Discarding unreadable cache entry", extra={"cache_key": key, "error": str(exc)})
            self._remove(cache_key)
            return None
        except OSError as exc:
            logger.warning("Cache read failed", extra={"cache_key": key, "error": str(exc)})
            return None

        if raw is None:
            return None

        try:
            return CacheEntry.from_json(raw)
        except ValueError as exc:
            logger.warning("Discarding corrupt cache entry", extra={"cache_key": key, "error": str(exc)})
            self._remove(cache_key)
            return None

    def get(self, key: str) -> Any:
        """Return cached data if present and unexpired; expired entries are evicted."""
        entry = self.get_entry(key)
        if entry is None:
            return None

        if not entry.is_valid(self.now_ms()):
            self._remove(self._key(key))
            return None

        return entry.data

    def get_stale(self, key: str) -> Any:
        """Return cached data even if it has expired."""
        entry = self.get_entry(key)
        return entry.data if entry is not None else None

    def set(self, key: str, data: Any, ttl_minutes: Optional[float] = None) -> None:
        """Store ``data`` under ``key``.

        Failures (unserialisable data, storage errors) are logged and otherwise
        ignored so a broken cache never breaks a fetch.
        """
        minutes = self._default_ttl_minutes if ttl_minutes is None else ttl_minutes
        entry = CacheEntry(data=data, timestamp=self.now_ms(), ttl_ms=int(minutes * MS_PER_MINUTE))

        try:
            self._store.set_item(self._key(key), entry.to_json())
        except (TypeError, ValueError) as exc:
            logger.error("Cache value is not JSON serialisable", extra={"cache_key": key, "error": str(exc)})
        except OSError as exc:
            logger.error("Cache write failed", extra={"cache_key": key, "error": str(exc)})

    def clear(self, key: Optional[str] = None) -> None:
        """Remove one key, or every key under the cache prefix."""
        if key is not None:
            self._remove(self._key(key))
            return

        for stored_key in self._store.keys():
            if stored_key.startswith(self._prefix):
                self._remove(stored_key)

    def has(self, key: str) -> bool:
        return self.get(key) is not None

    def cache_info(self) -> Dict[str, Any]:
        """Number of keys, total serialised size and the unprefixed keys."""
        keys = [stored_key for stored_key in self._store.keys() if stored_key.startswith(self._prefix)]
        total_size = 0
        for stored_key in keys:
            try:
                raw = self._store.get_item(stored_key)
            except (OSError, ValueError) as exc:
                logger.warning("Cache read failed", extra={"cache_key": stored_key, "error": str(exc)})
                continue
            total_size += len(raw) if raw else 0

        return {
            "total_keys": len(keys),
            "total_size": total_size,
            "keys": [stored_key[len(self._prefix):] for stored_key in keys],
        }

    def _remove(self, cache_key: str) -> None:
        try:
            self._store.remove_item(cache_key)
        except OSError as exc:
            logger.warning("Cache eviction failed", extra={"cache_key": cache_key, "error": str(exc)})
