"""
Certificate registry configuration constants.

Constants are organized into:
- POLICY: Implementation choices (timeouts, retry bounds, fan-out limits)
- OPERATIONAL: Deployment-specific settings (env vars)

Contract addresses are read-only configuration shared by all operations.
An empty address means "not configured" and surfaces as
ContractUnavailableError at the call site, never at import time.
"""

import os
from typing import List


# =============================================================================
# POLICY CONSTANTS
# =============================================================================

# Content gateway fetch constraints
# Every attempt is bounded so a hung gateway cannot block fallback
GATEWAY_TIMEOUT_SECONDS: float = float(os.getenv("CERTREG_GATEWAY_TIMEOUT", "5.0"))

# Attempts per gateway before moving on to the next one.
# Only transport errors, timeouts and 5xx are retried; 4xx moves on directly.
GATEWAY_MAX_ATTEMPTS: int = int(os.getenv("CERTREG_GATEWAY_MAX_ATTEMPTS", "2"))
GATEWAY_RETRY_BACKOFF_SECONDS: float = float(
    os.getenv("CERTREG_GATEWAY_RETRY_BACKOFF", "0.2")
)

# Maximum accepted size of a single content blob
CONTENT_MAX_SIZE_BYTES: int = 5_242_880  # 5 MB

# Upload to the authoritative pinning store (no fallback store for writes)
UPLOAD_TIMEOUT_SECONDS: float = float(os.getenv("CERTREG_UPLOAD_TIMEOUT", "30.0"))

# Ledger writes block until the receipt is available or this expires.
# Writes are never retried.
TX_RECEIPT_TIMEOUT_SECONDS: float = float(os.getenv("CERTREG_TX_RECEIPT_TIMEOUT", "120"))
TX_RECEIPT_POLL_LATENCY_SECONDS: float = 1.0

# Bounded fan-out for batch ledger/content reads
LEDGER_READ_CONCURRENCY: int = int(os.getenv("CERTREG_READ_CONCURRENCY", "8"))


# =============================================================================
# CONTENT CACHE
# =============================================================================

# Content is immutable per identifier, so cached entries never go stale;
# TTL only bounds memory held for rarely used blobs.
CONTENT_CACHE_ENABLED: bool = os.getenv("CERTREG_CONTENT_CACHE", "true").lower() == "true"
CONTENT_CACHE_TTL_SECONDS: int = int(os.getenv("CERTREG_CONTENT_CACHE_TTL", "3600"))
CONTENT_CACHE_MAX_ENTRIES: int = int(os.getenv("CERTREG_CONTENT_CACHE_MAX", "1000"))


# =============================================================================
# OPERATIONAL SETTINGS (deployment-specific, via environment variables)
# =============================================================================

# JSON-RPC endpoint of the ledger node
RPC_URL: str = os.getenv("CERTREG_RPC_URL", "http://127.0.0.1:8545")

# Contract addresses (empty = unconfigured)
IDENTITY_REGISTRY_ADDRESS: str = os.getenv("CERTREG_IDENTITY_REGISTRY_ADDRESS", "").strip()
CREDENTIAL_LEDGER_ADDRESS: str = os.getenv("CERTREG_CREDENTIAL_LEDGER_ADDRESS", "").strip()

# Pinning service (authoritative write store)
PINATA_API_URL: str = os.getenv("CERTREG_PINATA_API_URL", "https://api.pinata.cloud")
PINATA_JWT: str = os.getenv("CERTREG_PINATA_JWT", "")

# Private key of the operator account used by the HTTP surface for writes.
# Absent means the HTTP surface is read-only (writes raise WalletNotConnectedError).
OPERATOR_KEY: str = os.getenv("CERTREG_OPERATOR_KEY", "")

# Development/test only: accept a per-request signing key in the
# X-Signer-Key header so several accounts can act through one server.
# Never enable where the server is reachable by untrusted callers.
ALLOW_CALLER_KEYS: bool = os.getenv("CERTREG_ALLOW_CALLER_KEYS", "false").lower() == "true"

# Admin endpoint visibility
ADMIN_ENDPOINT_ENABLED: bool = os.getenv("ADMIN_ENDPOINT_ENABLED", "true").lower() == "true"


DEFAULT_IPFS_GATEWAYS: List[str] = [
    "https://gateway.pinata.cloud",
    "https://ipfs.io",
]


def _parse_gateways() -> List[str]:
    """Parse comma-separated gateway base URLs from environment.

    Order matters: the first entry is tried first.

    Environment variable format:
        CERTREG_IPFS_GATEWAYS=https://gateway.pinata.cloud,https://ipfs.io

    Returns:
        List of gateway base URLs in fallback order.
    """
    env_value = os.getenv("CERTREG_IPFS_GATEWAYS", "")
    if env_value:
        return [g.strip() for g in env_value.split(",") if g.strip()]
    return list(DEFAULT_IPFS_GATEWAYS)


# Ordered content gateway list (>=2 in production: pinning gateway, public fallback)
IPFS_GATEWAYS: List[str] = _parse_gateways()


def get_config_summary() -> dict:
    """Return non-secret configuration for the /admin endpoint."""
    return {
        "rpc_url": RPC_URL,
        "identity_registry_address": IDENTITY_REGISTRY_ADDRESS or None,
        "credential_ledger_address": CREDENTIAL_LEDGER_ADDRESS or None,
        "ipfs_gateways": IPFS_GATEWAYS,
        "pinata_api_url": PINATA_API_URL,
        "pinata_configured": bool(PINATA_JWT),
        "operator_configured": bool(OPERATOR_KEY),
        "caller_keys_allowed": ALLOW_CALLER_KEYS,
        "gateway_timeout_seconds": GATEWAY_TIMEOUT_SECONDS,
        "gateway_max_attempts": GATEWAY_MAX_ATTEMPTS,
        "upload_timeout_seconds": UPLOAD_TIMEOUT_SECONDS,
        "tx_receipt_timeout_seconds": TX_RECEIPT_TIMEOUT_SECONDS,
        "ledger_read_concurrency": LEDGER_READ_CONCURRENCY,
        "content_cache": {
            "enabled": CONTENT_CACHE_ENABLED,
            "ttl_seconds": CONTENT_CACHE_TTL_SECONDS,
            "max_entries": CONTENT_CACHE_MAX_ENTRIES,
        },
    }
