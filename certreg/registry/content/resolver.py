"""Resilient multi-gateway content resolution.

A content identifier is resolved by trying each configured gateway in
order. Transport failures, timeouts and 5xx responses are retried a
bounded number of times on the same gateway; any remaining failure moves
on to the next gateway. ResolutionFailedError is raised only once every
gateway has been exhausted.

Content addressing guarantees every gateway serves identical bytes for
one identifier, so the first successful response wins and nothing is
reconciled.
"""

import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from certreg.core.config import (
    CONTENT_CACHE_ENABLED,
    CONTENT_MAX_SIZE_BYTES,
    GATEWAY_MAX_ATTEMPTS,
    GATEWAY_RETRY_BACKOFF_SECONDS,
    GATEWAY_TIMEOUT_SECONDS,
    IPFS_GATEWAYS,
)

from ..exceptions import InvalidInputError, ResolutionFailedError
from ..metadata import ProfileMetadata, parse_metadata
from ..models import Role
from .cache import ContentCache, get_content_cache
from .gateways import GatewayEndpoint, build_gateways, normalize_content_id

log = logging.getLogger(__name__)


@dataclass
class ContentResolverConfig:
    """Configuration for content resolution.

    Attributes:
        gateways: Gateway base URLs in fallback order.
        timeout_seconds: Per-attempt HTTP timeout.
        max_attempts_per_gateway: Attempts on one gateway before falling back.
        retry_backoff_seconds: Pause between attempts on the same gateway.
        max_size_bytes: Responses larger than this are rejected.
        cache_enabled: Whether resolved blobs are cached.
    """

    gateways: List[str] = field(default_factory=lambda: list(IPFS_GATEWAYS))
    timeout_seconds: float = GATEWAY_TIMEOUT_SECONDS
    max_attempts_per_gateway: int = GATEWAY_MAX_ATTEMPTS
    retry_backoff_seconds: float = GATEWAY_RETRY_BACKOFF_SECONDS
    max_size_bytes: int = CONTENT_MAX_SIZE_BYTES
    cache_enabled: bool = CONTENT_CACHE_ENABLED


@dataclass
class ResolvedContent:
    """Result of a successful resolution.

    Attributes:
        content_id: Normalized identifier that was resolved.
        content: Raw bytes.
        source_url: Gateway base URL that served the bytes.
        fetch_time_ms: Wall time spent resolving.
        from_cache: True when served from the content cache.
    """

    content_id: str
    content: bytes
    source_url: str
    fetch_time_ms: float = 0.0
    from_cache: bool = False


@dataclass
class ResolverMetrics:
    """Counters for resolution operations.

    Attributes:
        attempts: Number of resolve() calls.
        successes: Resolutions that returned content.
        failures: Resolutions that exhausted every gateway.
        cache_hits: Resolutions served from cache.
        fallbacks: Resolutions that succeeded on a non-primary gateway.
        gateway_errors: Individual failed HTTP attempts.
    """

    attempts: int = 0
    successes: int = 0
    failures: int = 0
    cache_hits: int = 0
    fallbacks: int = 0
    gateway_errors: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "attempts": self.attempts,
            "successes": self.successes,
            "failures": self.failures,
            "cache_hits": self.cache_hits,
            "fallbacks": self.fallbacks,
            "gateway_errors": self.gateway_errors,
            "success_rate": (
                round(self.successes / self.attempts, 4)
                if self.attempts > 0
                else 0.0
            ),
        }


class ContentResolver:
    """Fetches blobs by content identifier with ordered gateway fallback.

    The resolver holds no mutable state beyond metrics and the optional
    cache, so an abandoned call leaves nothing inconsistent behind.
    """

    def __init__(
        self,
        config: Optional[ContentResolverConfig] = None,
        cache: Optional[ContentCache] = None,
    ):
        self._config = config or ContentResolverConfig()
        self._gateways: List[GatewayEndpoint] = build_gateways(self._config.gateways)
        self._cache = cache
        self._metrics = ResolverMetrics()

        if not self._gateways:
            log.warning("ContentResolver initialized with no usable gateways")

    @property
    def metrics(self) -> ResolverMetrics:
        return self._metrics

    @property
    def config(self) -> ContentResolverConfig:
        return self._config

    @property
    def gateways(self) -> List[GatewayEndpoint]:
        return list(self._gateways)

    def _get_cache(self) -> Optional[ContentCache]:
        if not self._config.cache_enabled:
            return None
        if self._cache is None:
            self._cache = get_content_cache()
        return self._cache

    async def resolve(self, content_id: str) -> ResolvedContent:
        """Resolve a content identifier to its bytes.

        Args:
            content_id: Bare identifier, ``ipfs://`` URI or gateway path.

        Returns:
            ResolvedContent from the first gateway that served it.

        Raises:
            InvalidInputError: If the identifier is empty or malformed.
            ResolutionFailedError: If every gateway failed.
        """
        cid = normalize_content_id(content_id)
        self._metrics.attempts += 1
        start_time = time.time()

        cache = self._get_cache()
        if cache is not None:
            cached = await cache.get_entry(cid)
            if cached is not None:
                self._metrics.cache_hits += 1
                self._metrics.successes += 1
                return ResolvedContent(
                    content_id=cid,
                    content=cached.content,
                    source_url=cached.source_url,
                    from_cache=True,
                )

        for gateway in self._gateways:
            content = await self._fetch_from_gateway(gateway, cid)
            if content is None:
                continue

            elapsed_ms = (time.time() - start_time) * 1000
            if gateway.position > 0:
                self._metrics.fallbacks += 1
                log.info(
                    f"Resolved {cid[:16]}... via fallback gateway {gateway.url} "
                    f"(position={gateway.position})"
                )
            self._metrics.successes += 1
            if cache is not None:
                await cache.put(cid, content, gateway.url)
            return ResolvedContent(
                content_id=cid,
                content=content,
                source_url=gateway.url,
                fetch_time_ms=elapsed_ms,
            )

        self._metrics.failures += 1
        log.warning(
            f"Failed to resolve {cid[:16]}... from any gateway "
            f"({len(self._gateways)} tried)"
        )
        raise ResolutionFailedError(
            f"Content {cid} unavailable from all {len(self._gateways)} gateways"
        )

    async def get(self, content_id: str) -> bytes:
        """Return the raw bytes for ``content_id``."""
        return (await self.resolve(content_id)).content

    async def get_json(self, content_id: str) -> Any:
        """Return the decoded JSON document for ``content_id``.

        Raises:
            ResolutionFailedError: If unavailable or not valid JSON.
        """
        content = await self.get(content_id)
        try:
            return json.loads(content)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ResolutionFailedError(f"Content {content_id[:32]} is not valid JSON: {e}") from e

    async def get_json_or_none(self, content_id: str) -> Optional[Any]:
        """Best-effort JSON fetch for read paths; None when unresolvable."""
        try:
            return await self.get_json(content_id)
        except (InvalidInputError, ResolutionFailedError) as e:
            log.info(f"Metadata unavailable for {(content_id or '')[:32]}: {e.message}")
            return None

    async def get_metadata(
        self,
        content_id: str,
        role: Optional[Role] = None,
    ) -> ProfileMetadata:
        """Fetch and validate profile metadata.

        Raises:
            ResolutionFailedError: If unavailable, not JSON, or not a valid
                profile of the expected role.
        """
        return parse_metadata(await self.get_json(content_id), role)

    async def _fetch_from_gateway(
        self,
        gateway: GatewayEndpoint,
        cid: str,
    ) -> Optional[bytes]:
        """Fetch from one gateway, retrying transient failures.

        Returns:
            The response body, or None if this gateway could not serve it.
        """
        url = gateway.content_url(cid)
        attempts = max(1, self._config.max_attempts_per_gateway)

        for attempt in range(1, attempts + 1):
            retryable = False
            try:
                async with httpx.AsyncClient(
                    timeout=self._config.timeout_seconds,
                    follow_redirects=True,
                ) as client:
                    response = await client.get(url)

                if 200 <= response.status_code < 300:
                    content = response.content
                    if len(content) > self._config.max_size_bytes:
                        self._metrics.gateway_errors += 1
                        log.warning(
                            f"Content {cid[:16]}... from {gateway.url} exceeds "
                            f"{self._config.max_size_bytes} bytes"
                        )
                        return None
                    return content

                self._metrics.gateway_errors += 1
                retryable = response.status_code >= 500
                log.warning(
                    f"Gateway {gateway.url} returned {response.status_code} "
                    f"for {cid[:16]}... (attempt {attempt}/{attempts})"
                )

            except httpx.TimeoutException:
                self._metrics.gateway_errors += 1
                retryable = True
                log.warning(
                    f"Timeout fetching {cid[:16]}... from {gateway.url} "
                    f"(attempt {attempt}/{attempts})"
                )
            except httpx.RequestError as e:
                self._metrics.gateway_errors += 1
                retryable = True
                log.warning(
                    f"Network error fetching {cid[:16]}... from {gateway.url}: {e} "
                    f"(attempt {attempt}/{attempts})"
                )

            if not retryable:
                return None
            if attempt < attempts and self._config.retry_backoff_seconds > 0:
                await asyncio.sleep(self._config.retry_backoff_seconds)

        return None


# Singleton resolver
_content_resolver: Optional[ContentResolver] = None


def get_content_resolver(
    config: Optional[ContentResolverConfig] = None,
) -> ContentResolver:
    """Get or create the singleton content resolver.

    Args:
        config: Configuration used on first creation; ignored afterwards.
    """
    global _content_resolver

    if _content_resolver is None:
        _content_resolver = ContentResolver(config)
        log.info("Created content resolver singleton")

    return _content_resolver


def reset_content_resolver() -> None:
    """Reset the singleton for testing."""
    global _content_resolver
    _content_resolver = None
