"""Content-addressed metadata storage: gateway reads, pinned writes."""

from .cache import (
    ContentCache,
    ContentCacheConfig,
    get_content_cache,
    reset_content_cache,
)
from .gateways import GatewayEndpoint, build_gateways, normalize_content_id
from .resolver import (
    ContentResolver,
    ContentResolverConfig,
    ResolvedContent,
    get_content_resolver,
    reset_content_resolver,
)
from .store import ContentStore, get_content_store, reset_content_store

__all__ = [
    "ContentCache",
    "ContentCacheConfig",
    "ContentResolver",
    "ContentResolverConfig",
    "ContentStore",
    "GatewayEndpoint",
    "ResolvedContent",
    "build_gateways",
    "get_content_cache",
    "get_content_resolver",
    "get_content_store",
    "normalize_content_id",
    "reset_content_cache",
    "reset_content_resolver",
    "reset_content_store",
]
