"""
Certificate registry API models.

Error codes, the recoverability map, and the request/response schemas
served by the HTTP surface.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


# =============================================================================
# Error Models
# =============================================================================

class ErrorDetail(BaseModel):
    """Classified error returned to callers."""
    code: str
    message: str
    recoverable: bool


class ErrorCode:
    """Error code registry."""
    # Session / configuration
    WALLET_NOT_CONNECTED = "WALLET_NOT_CONNECTED"
    CONTRACT_UNAVAILABLE = "CONTRACT_UNAVAILABLE"

    # Local pre-checks (never submitted to the ledger)
    NOT_OWNER = "NOT_OWNER"
    NOT_AUTHORIZED_CALLER = "NOT_AUTHORIZED_CALLER"
    REQUEST_NOT_PENDING = "REQUEST_NOT_PENDING"
    NOT_REGISTERED = "NOT_REGISTERED"
    INVALID_INPUT = "INVALID_INPUT"

    # Ledger layer
    TRANSACTION_FAILED = "TRANSACTION_FAILED"
    LEDGER_READ_FAILED = "LEDGER_READ_FAILED"

    # Content layer
    RESOLUTION_FAILED = "RESOLUTION_FAILED"
    UPLOAD_FAILED = "UPLOAD_FAILED"

    INTERNAL_ERROR = "INTERNAL_ERROR"


# Recoverable errors may succeed on a later attempt without any change by
# the caller; nothing in the core retries them automatically except the
# per-gateway retry in the content resolver.
ERROR_RECOVERABILITY: Dict[str, bool] = {
    ErrorCode.WALLET_NOT_CONNECTED: False,
    ErrorCode.CONTRACT_UNAVAILABLE: False,
    ErrorCode.NOT_OWNER: False,
    ErrorCode.NOT_AUTHORIZED_CALLER: False,
    ErrorCode.REQUEST_NOT_PENDING: False,
    ErrorCode.NOT_REGISTERED: False,
    ErrorCode.INVALID_INPUT: False,
    ErrorCode.TRANSACTION_FAILED: False,
    ErrorCode.LEDGER_READ_FAILED: True,   # Recoverable
    ErrorCode.RESOLUTION_FAILED: True,    # Recoverable
    ErrorCode.UPLOAD_FAILED: False,
    ErrorCode.INTERNAL_ERROR: True,       # Recoverable
}


# =============================================================================
# Response Models
# =============================================================================

class IdentityResponse(BaseModel):
    address: str
    role: str
    metadata_pointer: str


class CertificateResponse(BaseModel):
    id: str
    name: str
    institute: str
    issue_date: int
    certificate_type: str
    student: str
    token_uri: str
    metadata: Optional[Any] = None


class CertificateRequestResponse(BaseModel):
    id: int
    student: str
    institute: str
    name: str
    message: str
    student_metadata_hash: str
    approved: bool
    state: Optional[str] = None


class ProviderClassificationResponse(BaseModel):
    authorized: List[IdentityResponse] = Field(default_factory=list)
    pending: List[IdentityResponse] = Field(default_factory=list)
    unresolved: List[str] = Field(default_factory=list)


class StudentMatchResponse(BaseModel):
    address: str
    metadata: Dict[str, Any]


# =============================================================================
# Request Models
# =============================================================================

class RegisterStudentRequest(BaseModel):
    """Body for /register/student."""
    name: str = Field(min_length=1)
    email: str
    student_id: str = Field(min_length=1)


class IssuanceRequest(BaseModel):
    """Body for POST /requests."""
    institute: str
    name: str
    message: str = ""


class ApproveRequest(BaseModel):
    """Body for POST /requests/{id}/approve."""
    certificate_type: str
    token_uri: str
    institution_name: str
