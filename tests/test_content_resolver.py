"""Tests for multi-gateway content resolution."""

import json

import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from certreg.registry.content.cache import ContentCache, ContentCacheConfig
from certreg.registry.content.resolver import (
    ContentResolver,
    ContentResolverConfig,
    ResolverMetrics,
    get_content_resolver,
    reset_content_resolver,
)
from certreg.registry.exceptions import InvalidInputError, ResolutionFailedError
from certreg.registry.metadata import ProviderMetadata, StudentMetadata
from certreg.registry.models import Role

CID = "QmYwAPJzv5CZsnA625s3Xf2nemtYgPpHdWEz79ojWnPbdG"
PRIMARY = "https://gateway.pinata.cloud"
FALLBACK = "https://ipfs.io"


def _response(status_code: int, content: bytes = b"") -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.content = content
    return response


def _mock_client(mock_client, get):
    mock_instance = MagicMock()
    mock_instance.get = get
    mock_instance.__aenter__ = AsyncMock(return_value=mock_instance)
    mock_instance.__aexit__ = AsyncMock(return_value=None)
    mock_client.return_value = mock_instance
    return mock_instance


@pytest.fixture
def resolver():
    """Two gateways, no cache, no backoff."""
    return ContentResolver(
        config=ContentResolverConfig(
            gateways=[PRIMARY, FALLBACK],
            timeout_seconds=1.0,
            max_attempts_per_gateway=2,
            retry_backoff_seconds=0,
            cache_enabled=False,
        )
    )


class TestResolverMetrics:
    """Tests for ResolverMetrics."""

    def test_to_dict(self):
        metrics = ResolverMetrics(attempts=4, successes=3, failures=1, fallbacks=2)
        d = metrics.to_dict()
        assert d["attempts"] == 4
        assert d["fallbacks"] == 2
        assert d["success_rate"] == 0.75

    def test_success_rate_zero_attempts(self):
        assert ResolverMetrics().to_dict()["success_rate"] == 0.0


class TestGatewayFallback:
    """Ordered fallback across gateways."""

    @pytest.mark.asyncio
    async def test_primary_success(self, resolver):
        with patch("httpx.AsyncClient") as mock_client:
            instance = _mock_client(mock_client, AsyncMock(return_value=_response(200, b"hello")))

            result = await resolver.resolve(CID)

        assert result.content == b"hello"
        assert result.source_url == PRIMARY
        instance.get.assert_called_once_with(f"{PRIMARY}/ipfs/{CID}")
        assert resolver.metrics.fallbacks == 0

    @pytest.mark.asyncio
    async def test_falls_back_after_server_errors(self, resolver):
        """Primary 500s on every attempt; the fallback's bytes are returned."""
        async def get(url):
            if url.startswith(PRIMARY):
                return _response(500)
            return _response(200, b"from-fallback")

        with patch("httpx.AsyncClient") as mock_client:
            instance = _mock_client(mock_client, AsyncMock(side_effect=get))

            content = await resolver.get(CID)

        assert content == b"from-fallback"
        # Two attempts on primary, one on fallback
        assert instance.get.call_count == 3
        assert resolver.metrics.fallbacks == 1
        assert resolver.metrics.gateway_errors == 2

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self, resolver):
        """A 404 moves straight to the next gateway."""
        async def get(url):
            if url.startswith(PRIMARY):
                return _response(404)
            return _response(200, b"ok")

        with patch("httpx.AsyncClient") as mock_client:
            instance = _mock_client(mock_client, AsyncMock(side_effect=get))

            await resolver.get(CID)

        assert instance.get.call_count == 2

    @pytest.mark.asyncio
    async def test_retry_succeeds_on_same_gateway(self, resolver):
        responses = [httpx.ConnectError("refused"), _response(200, b"second-try")]

        with patch("httpx.AsyncClient") as mock_client:
            _mock_client(mock_client, AsyncMock(side_effect=responses))

            result = await resolver.resolve(CID)

        assert result.content == b"second-try"
        assert result.source_url == PRIMARY

    @pytest.mark.asyncio
    async def test_timeout_falls_back(self, resolver):
        async def get(url):
            if url.startswith(PRIMARY):
                raise httpx.ReadTimeout("slow")
            return _response(200, b"ok")

        with patch("httpx.AsyncClient") as mock_client:
            _mock_client(mock_client, AsyncMock(side_effect=get))

            result = await resolver.resolve(CID)

        assert result.source_url == FALLBACK

    @pytest.mark.asyncio
    async def test_all_gateways_fail(self, resolver):
        with patch("httpx.AsyncClient") as mock_client:
            _mock_client(mock_client, AsyncMock(return_value=_response(503)))

            with pytest.raises(ResolutionFailedError):
                await resolver.get(CID)

        assert resolver.metrics.failures == 1

    @pytest.mark.asyncio
    async def test_oversized_content_rejected(self):
        resolver = ContentResolver(
            config=ContentResolverConfig(
                gateways=[PRIMARY],
                max_size_bytes=4,
                cache_enabled=False,
            )
        )
        with patch("httpx.AsyncClient") as mock_client:
            _mock_client(mock_client, AsyncMock(return_value=_response(200, b"too large")))

            with pytest.raises(ResolutionFailedError):
                await resolver.get(CID)

    @pytest.mark.asyncio
    async def test_ipfs_uri_is_normalized(self, resolver):
        with patch("httpx.AsyncClient") as mock_client:
            instance = _mock_client(mock_client, AsyncMock(return_value=_response(200, b"x")))

            await resolver.get(f"ipfs://{CID}")

        instance.get.assert_called_once_with(f"{PRIMARY}/ipfs/{CID}")

    @pytest.mark.asyncio
    async def test_empty_id_rejected(self, resolver):
        with pytest.raises(InvalidInputError):
            await resolver.get("")


class TestResolverCache:
    """Cache integration."""

    @pytest.mark.asyncio
    async def test_success_is_cached(self):
        cache = ContentCache(ContentCacheConfig(ttl_seconds=60, max_entries=10))
        resolver = ContentResolver(
            config=ContentResolverConfig(gateways=[PRIMARY], cache_enabled=True),
            cache=cache,
        )

        with patch("httpx.AsyncClient") as mock_client:
            instance = _mock_client(mock_client, AsyncMock(return_value=_response(200, b"cached")))

            first = await resolver.resolve(CID)
            second = await resolver.resolve(CID)

        assert first.from_cache is False
        assert second.from_cache is True
        assert second.content == b"cached"
        assert instance.get.call_count == 1
        assert resolver.metrics.cache_hits == 1

    @pytest.mark.asyncio
    async def test_failure_not_cached(self):
        cache = ContentCache(ContentCacheConfig(ttl_seconds=60, max_entries=10))
        resolver = ContentResolver(
            config=ContentResolverConfig(
                gateways=[PRIMARY],
                max_attempts_per_gateway=1,
                cache_enabled=True,
            ),
            cache=cache,
        )

        with patch("httpx.AsyncClient") as mock_client:
            _mock_client(mock_client, AsyncMock(return_value=_response(500)))
            with pytest.raises(ResolutionFailedError):
                await resolver.get(CID)

        assert await cache.size() == 0


class TestJsonAndMetadata:
    """Decoding helpers."""

    @pytest.mark.asyncio
    async def test_get_json(self, resolver):
        doc = {"name": "Diploma", "attributes": [1, 2]}
        with patch("httpx.AsyncClient") as mock_client:
            _mock_client(mock_client, AsyncMock(return_value=_response(200, json.dumps(doc).encode())))

            assert await resolver.get_json(CID) == doc

    @pytest.mark.asyncio
    async def test_get_json_malformed(self, resolver):
        with patch("httpx.AsyncClient") as mock_client:
            _mock_client(mock_client, AsyncMock(return_value=_response(200, b"{not json")))

            with pytest.raises(ResolutionFailedError):
                await resolver.get_json(CID)

    @pytest.mark.asyncio
    async def test_get_json_or_none_degrades(self, resolver):
        with patch("httpx.AsyncClient") as mock_client:
            _mock_client(mock_client, AsyncMock(return_value=_response(500)))

            assert await resolver.get_json_or_none(CID) is None

    @pytest.mark.asyncio
    async def test_get_metadata_student(self, resolver):
        doc = {"name": "Ada", "email": "ada@example.edu", "studentId": "S-1"}
        with patch("httpx.AsyncClient") as mock_client:
            _mock_client(mock_client, AsyncMock(return_value=_response(200, json.dumps(doc).encode())))

            metadata = await resolver.get_metadata(CID, Role.STUDENT)

        assert isinstance(metadata, StudentMetadata)
        assert metadata.student_id == "S-1"

    @pytest.mark.asyncio
    async def test_get_metadata_wrong_variant(self, resolver):
        doc = {"institutionName": "Uni", "accreditationNumber": "A1", "documentCid": CID}
        with patch("httpx.AsyncClient") as mock_client:
            _mock_client(mock_client, AsyncMock(return_value=_response(200, json.dumps(doc).encode())))

            with pytest.raises(ResolutionFailedError):
                await resolver.get_metadata(CID, Role.STUDENT)
            assert isinstance(await resolver.get_metadata(CID), ProviderMetadata)


class TestSingleton:
    """Tests for the singleton accessor."""

    def test_singleton_reused(self):
        assert get_content_resolver() is get_content_resolver()

    def test_reset(self):
        first = get_content_resolver()
        reset_content_resolver()
        assert get_content_resolver() is not first
