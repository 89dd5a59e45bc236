"""Uploads to the authoritative pinning store.

Writes go to exactly one store. There is no fallback for uploads: a blob
that was not pinned has no identifier anyone else can resolve, so any
failure here aborts the calling workflow before a ledger write happens.
"""

import json
import logging
from typing import Any, Optional

import httpx

from certreg.core.config import PINATA_API_URL, PINATA_JWT, UPLOAD_TIMEOUT_SECONDS

from ..exceptions import UploadFailedError
from ..metadata import ProfileMetadata, encode_metadata

log = logging.getLogger(__name__)

PIN_FILE_PATH = "/pinning/pinFileToIPFS"


class ContentStore:
    """Pinata-backed content store.

    ``put`` sends the blob as a multipart file and returns the ``IpfsHash``
    from the response. The bytes are sent unmodified, so resolving the
    returned identifier yields exactly what was uploaded.
    """

    def __init__(
        self,
        api_url: str = PINATA_API_URL,
        jwt: str = PINATA_JWT,
        timeout: float = UPLOAD_TIMEOUT_SECONDS,
    ):
        self._api_url = api_url.rstrip("/")
        self._jwt = jwt
        self._timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self._jwt)

    async def put(self, blob: bytes, filename: str = "blob") -> str:
        """Upload ``blob`` and return its content identifier.

        Raises:
            UploadFailedError: On transport error, non-2xx status, or a
                response without an ``IpfsHash``.
        """
        if not self._jwt:
            raise UploadFailedError("Pinning service credentials not configured")

        url = f"{self._api_url}{PIN_FILE_PATH}"
        headers = {"Authorization": f"Bearer {self._jwt}"}
        files = {"file": (filename, blob, "application/octet-stream")}

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(url, files=files, headers=headers)
        except httpx.TimeoutException as e:
            log.error(f"Timeout uploading {filename} ({len(blob)} bytes)")
            raise UploadFailedError(f"Upload timed out: {e}") from e
        except httpx.RequestError as e:
            log.error(f"Network error uploading {filename}: {e}")
            raise UploadFailedError(f"Upload failed: {e}") from e

        if not 200 <= response.status_code < 300:
            log.warning(f"Pinning service returned {response.status_code} for {filename}")
            raise UploadFailedError(f"Pinning service returned HTTP {response.status_code}")

        try:
            body = response.json()
        except ValueError as e:
            raise UploadFailedError("Pinning service returned a non-JSON response") from e

        cid = body.get("IpfsHash") if isinstance(body, dict) else None
        if not cid:
            raise UploadFailedError("Pinning service response has no IpfsHash")

        log.info(f"Pinned {filename} ({len(blob)} bytes) as {cid[:16]}...")
        return cid

    async def put_json(self, document: Any, filename: str = "metadata.json") -> str:
        """Upload a JSON document encoded compactly in insertion order."""
        blob = json.dumps(document, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
        return await self.put(blob, filename)

    async def put_metadata(self, metadata: ProfileMetadata) -> str:
        """Upload profile metadata using its wire encoding."""
        return await self.put(encode_metadata(metadata), "metadata.json")


# Singleton store
_content_store: Optional[ContentStore] = None


def get_content_store() -> ContentStore:
    """Get or create the singleton content store."""
    global _content_store

    if _content_store is None:
        _content_store = ContentStore()
        if not _content_store.configured:
            log.warning("Content store created without pinning credentials")

    return _content_store


def reset_content_store() -> None:
    """Reset the singleton for testing."""
    global _content_store
    _content_store = None
