"""
Cache services for embeddings, scraped content and analysis results.

The cache is advisory: every backend failure is logged and treated as a miss,
so callers behave correctly against a permanently empty cache.
"""
import json
import threading
import time
from typing import Any, Callable, Dict, Iterable, Optional, Tuple

import redis

from ..core.interfaces import Cache
from ..utils import logger, sha256_hex

DEFAULT_TTL = 86400  # 24 hours
DEFAULT_MAX_SIZE = 1000
DEFAULT_CLEANUP_INTERVAL = 300  # 5 minutes


# ============================================================================
# KEYS
# ============================================================================

def make_cache_key(text: str, prefix: str = 'cache') -> str:
    """Build a stable key from arbitrary text."""
    return f"{prefix}:{sha256_hex(text)[:16]}"


def content_cache_key(url: str) -> str:
    return make_cache_key(url, 'content')


def embedding_cache_key(text: str, model: str) -> str:
    return f"embedding:{model}:{sha256_hex(text)}"


def analysis_cache_key(target_url: str, competitor_urls: Iterable[str],
                       queries: Iterable[str] = (),
                       options: Optional[Dict[str, Any]] = None) -> str:
    """Key for a full analysis; competitor order does not matter, query order does.

    ``options`` holds every other setting that changes the report (request
    flags, thresholds) so differing runs never share an entry.
    """
    material = f"{target_url}:{','.join(sorted(competitor_urls))}:{'|'.join(queries)}"
    if options:
        material += ':' + ','.join(f"{name}={options[name]}" for name in sorted(options))
    return make_cache_key(material, 'analysis')


# ============================================================================
# MEMORY CACHE
# ============================================================================

class MemoryCache(Cache):
    """In-process cache with per-entry expiry and a size bound."""

    def __init__(self, ttl: int = DEFAULT_TTL, max_size: int = DEFAULT_MAX_SIZE,
                 cleanup_interval: float = DEFAULT_CLEANUP_INTERVAL,
                 clock: Callable[[], float] = time.time):
        self.ttl = ttl
        self.max_size = max_size
        self.cleanup_interval = cleanup_interval
        self.clock = clock
        self._entries: Dict[str, Tuple[Any, float]] = {}
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires = entry
        if self.clock() >= expires:
            self._entries.pop(key, None)
            return None
        return value

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        ttl = self.ttl if ttl is None else ttl
        self._entries[key] = (value, self.clock() + ttl)
        if len(self._entries) > self.max_size:
            self.cleanup()

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def cleanup(self) -> int:
        """Drop expired entries, then evict those closest to expiry until
        the size bound holds. Returns the number of entries removed."""
        now = self.clock()
        entries = list(self._entries.items())
        removed = 0

        for key, (_, expires) in entries:
            if now >= expires:
                self._entries.pop(key, None)
                removed += 1

        overflow = len(self._entries) - self.max_size
        if overflow > 0:
            by_expiry = sorted(self._entries.items(), key=lambda item: item[1][1])
            for key, _ in by_expiry[:overflow]:
                self._entries.pop(key, None)
                removed += 1

        if removed:
            logger.debug(f"Cache cleanup removed {removed} entries")
        return removed

    def __len__(self) -> int:
        return len(self._entries)

    def start(self) -> None:
        """Run cleanup() every cleanup_interval seconds on a daemon thread."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run_cleanup, name="cache-cleanup", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=1.0)
            self._thread = None

    def _run_cleanup(self) -> None:
        while not self._stop_event.wait(self.cleanup_interval):
            self.cleanup()


# ============================================================================
# REDIS CACHE
# ============================================================================

class RedisCache(Cache):
    """Redis-backed cache storing JSON values with SETEX."""

    def __init__(self, client: Optional[redis.Redis] = None, url: Optional[str] = None,
                 ttl: int = DEFAULT_TTL, prefix: str = 'topic-coverage:'):
        if client is None:
            client = redis.Redis.from_url(url or "redis://localhost:6379/0")
        self.client = client
        self.ttl = ttl
        self.prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def get(self, key: str) -> Optional[Any]:
        try:
            raw = self.client.get(self._key(key))
            return json.loads(raw) if raw else None
        except (redis.RedisError, ValueError, TypeError) as e:
            logger.warning(f"Cache get error for {key}: {e}")
            return None

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        ttl = self.ttl if ttl is None else ttl
        try:
            self.client.setex(self._key(key), int(ttl), json.dumps(value))
        except (redis.RedisError, ValueError, TypeError) as e:
            logger.warning(f"Cache set error for {key}: {e}")

    def delete(self, key: str) -> None:
        try:
            self.client.delete(self._key(key))
        except redis.RedisError as e:
            logger.warning(f"Cache delete error for {key}: {e}")

    def clear(self) -> None:
        """Delete this cache's keys only; other data in the database is left alone."""
        try:
            keys = list(self.client.scan_iter(match=f"{self.prefix}*"))
            if keys:
                self.client.delete(*keys)
        except redis.RedisError as e:
            logger.warning(f"Cache clear error: {e}")


def create_cache(config: Dict[str, Any]) -> Cache:
    """Build the cache backend named in the 'cache' configuration section."""
    section = config.get('cache', {})
    ttl = section.get('ttl', DEFAULT_TTL)
    if section.get('backend') == 'redis':
        return RedisCache(url=section.get('redis_url'), ttl=ttl)
    return MemoryCache(
        ttl=ttl,
        max_size=section.get('max_size', DEFAULT_MAX_SIZE),
        cleanup_interval=section.get('cleanup_interval', DEFAULT_CLEANUP_INTERVAL),
    )
