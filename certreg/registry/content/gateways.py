"""
Content gateway endpoints and content identifier handling.

Gateways are HTTP endpoints that resolve ``/ipfs/<content-id>`` to the
blob named by that identifier. The configured list is ordered: the
pinning gateway first, public fallbacks after it.
"""

import logging
import re
from dataclasses import dataclass
from typing import List, Optional
from urllib.parse import urlparse

from ..exceptions import InvalidInputError

log = logging.getLogger(__name__)

ALLOWED_SCHEMES = {"http", "https"}

IPFS_URI_PREFIX = "ipfs://"

# CIDv0 (base58 "Qm...") and CIDv1 (base32/base36) plus an optional path
_CONTENT_ID_RE = re.compile(r"^[A-Za-z0-9]+(/[A-Za-z0-9._-]+)*$")


@dataclass(frozen=True)
class GatewayEndpoint:
    """One content gateway.

    Attributes:
        url: Normalized base URL (scheme://host[:port]).
        position: Index in the fallback order (0 = tried first).
    """

    url: str
    position: int

    def content_url(self, content_id: str) -> str:
        return f"{self.url}/ipfs/{content_id}"


def validate_gateway_url(url: str) -> Optional[str]:
    """Validate and normalize a gateway base URL.

    Returns:
        ``scheme://netloc`` or None if the URL is unusable.
    """
    if not url:
        return None

    try:
        parsed = urlparse(url.strip())
    except ValueError as e:
        log.warning(f"Failed to parse gateway URL: {e}")
        return None

    if parsed.scheme not in ALLOWED_SCHEMES:
        log.warning(f"Rejected gateway URL with invalid scheme: {parsed.scheme}")
        return None

    if not parsed.netloc:
        log.warning(f"Rejected gateway URL with no host: {url[:50]}")
        return None

    return f"{parsed.scheme}://{parsed.netloc}"


def build_gateways(urls: List[str]) -> List[GatewayEndpoint]:
    """Build the ordered, de-duplicated gateway list from raw URLs."""
    seen = set()
    gateways: List[GatewayEndpoint] = []
    for raw in urls:
        normalized = validate_gateway_url(raw)
        if not normalized or normalized in seen:
            continue
        seen.add(normalized)
        gateways.append(GatewayEndpoint(url=normalized, position=len(gateways)))
    return gateways


def normalize_content_id(value: str) -> str:
    """Reduce a content pointer to a bare identifier (plus optional path).

    Accepts ``<cid>``, ``ipfs://<cid>``, ``/ipfs/<cid>`` and gateway URLs of
    the form ``https://host/ipfs/<cid>``.

    Raises:
        InvalidInputError: If nothing resembling a content id remains.
    """
    if not value or not value.strip():
        raise InvalidInputError("Content identifier is empty")

    cid = value.strip()
    if cid.startswith(IPFS_URI_PREFIX):
        cid = cid[len(IPFS_URI_PREFIX):]
        if cid.startswith("ipfs/"):
            cid = cid[len("ipfs/"):]
    elif "/ipfs/" in cid:
        cid = cid.split("/ipfs/", 1)[1]

    cid = cid.strip("/")
    if not cid or not _CONTENT_ID_RE.match(cid) or ".." in cid.split("/"):
        raise InvalidInputError(f"Invalid content identifier: {value[:64]!r}")
    return cid
