"""In-memory cache for resolved content blobs.

Content identifiers name their bytes, so an entry can never become stale;
TTL and LRU eviction only bound memory. Failures are never cached.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional

log = logging.getLogger(__name__)


@dataclass
class CachedContent:
    """Cached blob with metadata.

    Attributes:
        content: The raw bytes served for the identifier.
        source_url: Gateway that served the bytes.
        cached_at: Unix timestamp when the entry was cached.
        expires_at: Unix timestamp when this entry expires.
        last_access: Unix timestamp of last access (for LRU).
    """

    content: bytes
    source_url: str
    cached_at: float = field(default_factory=time.time)
    expires_at: float = 0.0
    last_access: float = field(default_factory=time.time)


@dataclass
class ContentCacheConfig:
    """Configuration for the content cache.

    Attributes:
        ttl_seconds: Time-to-live for cache entries.
        max_entries: Maximum entries before LRU eviction.
    """

    ttl_seconds: int = 3600
    max_entries: int = 1000


@dataclass
class ContentCacheMetrics:
    """Hit/miss/eviction counters."""

    hits: int = 0
    misses: int = 0
    evictions: int = 0
    expirations: int = 0

    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0

    def to_dict(self) -> Dict[str, float]:
        """Convert to dictionary for JSON serialization."""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
            "expirations": self.expirations,
            "hit_rate": round(self.hit_rate(), 4),
        }


class ContentCache:
    """Async-safe LRU/TTL cache keyed by normalized content identifier."""

    def __init__(self, config: Optional[ContentCacheConfig] = None):
        self._config = config or ContentCacheConfig()
        self._entries: Dict[str, CachedContent] = {}
        self._access_order: List[str] = []  # LRU tracking, most recent last
        self._lock = asyncio.Lock()
        self._metrics = ContentCacheMetrics()

    @property
    def metrics(self) -> ContentCacheMetrics:
        return self._metrics

    async def get_entry(self, content_id: str) -> Optional[CachedContent]:
        """Return the cached entry for ``content_id`` or None if absent/expired."""
        async with self._lock:
            entry = self._entries.get(content_id)

            if entry is None:
                self._metrics.misses += 1
                return None

            now = time.time()
            if now >= entry.expires_at:
                self._remove(content_id)
                self._metrics.expirations += 1
                self._metrics.misses += 1
                log.debug(f"Content {content_id[:16]}... expired in cache")
                return None

            entry.last_access = now
            self._touch(content_id)
            self._metrics.hits += 1
            return entry

    async def get(self, content_id: str) -> Optional[bytes]:
        entry = await self.get_entry(content_id)
        return entry.content if entry else None

    async def put(self, content_id: str, content: bytes, source_url: str) -> None:
        """Store a successfully resolved blob."""
        async with self._lock:
            now = time.time()

            if content_id not in self._entries:
                while len(self._entries) >= self._config.max_entries and self._access_order:
                    lru_id = self._access_order.pop(0)
                    if self._entries.pop(lru_id, None) is not None:
                        self._metrics.evictions += 1
                        log.debug(f"Evicted LRU content {lru_id[:16]}...")

            self._entries[content_id] = CachedContent(
                content=content,
                source_url=source_url,
                cached_at=now,
                expires_at=now + self._config.ttl_seconds,
                last_access=now,
            )
            self._touch(content_id)

    async def invalidate(self, content_id: str) -> bool:
        async with self._lock:
            if content_id in self._entries:
                self._remove(content_id)
                return True
            return False

    async def clear(self) -> int:
        """Clear all entries; returns the number removed."""
        async with self._lock:
            count = len(self._entries)
            self._entries.clear()
            self._access_order.clear()
            return count

    async def size(self) -> int:
        async with self._lock:
            return len(self._entries)

    def _touch(self, content_id: str) -> None:
        if content_id in self._access_order:
            self._access_order.remove(content_id)
        self._access_order.append(content_id)

    def _remove(self, content_id: str) -> None:
        self._entries.pop(content_id, None)
        if content_id in self._access_order:
            self._access_order.remove(content_id)


# Singleton instance
_content_cache: Optional[ContentCache] = None


def get_content_cache(config: Optional[ContentCacheConfig] = None) -> ContentCache:
    """Get or create the singleton content cache.

    Args:
        config: Configuration used on first creation; ignored afterwards.
    """
    global _content_cache

    if _content_cache is None:
        if config is None:
            from certreg.core.config import (
                CONTENT_CACHE_MAX_ENTRIES,
                CONTENT_CACHE_TTL_SECONDS,
            )
            config = ContentCacheConfig(
                ttl_seconds=CONTENT_CACHE_TTL_SECONDS,
                max_entries=CONTENT_CACHE_MAX_ENTRIES,
            )
        _content_cache = ContentCache(config)
        log.info("Created content cache singleton")

    return _content_cache


def reset_content_cache() -> None:
    """Reset the singleton for testing."""
    global _content_cache
    _content_cache = None
