import logging
import os
import time
from typing import List, Optional

from fastapi import Depends, FastAPI, File, Form, Request, UploadFile
from fastapi.responses import JSONResponse

from certreg.audit import get_audit_logger
from certreg.core.config import (
    ADMIN_ENDPOINT_ENABLED,
    ALLOW_CALLER_KEYS,
    OPERATOR_KEY,
    get_config_summary,
)
from certreg.logging_config import configure_logging
from certreg.registry.api_models import (
    ApproveRequest,
    CertificateRequestResponse,
    CertificateResponse,
    ErrorCode,
    IdentityResponse,
    IssuanceRequest,
    ProviderClassificationResponse,
    RegisterStudentRequest,
    StudentMatchResponse,
)
from certreg.registry.authorization import AuthorizationChecker
from certreg.registry.content.cache import get_content_cache
from certreg.registry.content.resolver import get_content_resolver
from certreg.registry.content.store import get_content_store
from certreg.registry.directory import Directory
from certreg.registry.exceptions import CertRegError, InvalidInputError
from certreg.registry.issuance import IssuanceWorkflow
from certreg.registry.ledger.gateway import get_ledger_gateway
from certreg.registry.metadata import ProviderProfile, StudentMetadata
from certreg.registry.models import IdentityRecord, Role, require_address
from certreg.registry.registration import RegistrationWorkflow
from certreg.registry.session import Session

configure_logging()
log = logging.getLogger("certreg")

app = FastAPI(title="Certificate Registry", version="0.1.0")


# HTTP status per error code; anything unlisted is a 500
ERROR_STATUS = {
    ErrorCode.INVALID_INPUT: 400,
    ErrorCode.WALLET_NOT_CONNECTED: 401,
    ErrorCode.NOT_OWNER: 403,
    ErrorCode.NOT_AUTHORIZED_CALLER: 403,
    ErrorCode.NOT_REGISTERED: 404,
    ErrorCode.REQUEST_NOT_PENDING: 409,
    ErrorCode.TRANSACTION_FAILED: 502,
    ErrorCode.LEDGER_READ_FAILED: 502,
    ErrorCode.RESOLUTION_FAILED: 502,
    ErrorCode.UPLOAD_FAILED: 502,
    ErrorCode.CONTRACT_UNAVAILABLE: 503,
}


# =============================================================================
# Service wiring
# =============================================================================

_operator_session: Optional[Session] = None


def get_operator_session() -> Session:
    """Session the HTTP surface signs writes with.

    Without CERTREG_OPERATOR_KEY the session has no signer and every
    write fails with WalletNotConnectedError.

    Every write signs as this one account, so flows that need several
    parties (student requests, owner authorizes, institute approves)
    cannot run end to end over HTTP unless CERTREG_ALLOW_CALLER_KEYS is
    set. Writes from one account are serialized up to submission by the
    contract client, so concurrent requests never reuse a pending nonce.
    """
    global _operator_session

    if _operator_session is None:
        if OPERATOR_KEY:
            _operator_session = Session.from_private_key(OPERATOR_KEY)
            log.info(f"Operator account {_operator_session.account[:10]}... loaded")
        else:
            _operator_session = Session()
            log.warning("No operator key configured; write endpoints are disabled")

    return _operator_session


def reset_operator_session() -> None:
    """Reset the operator session (for testing)."""
    global _operator_session
    _operator_session = None


def write_session(request: Request) -> Session:
    """Session for a write endpoint.

    With ALLOW_CALLER_KEYS the X-Signer-Key header, when present, selects
    the signing account for this request only. Otherwise the operator
    session is used.
    """
    key = request.headers.get("X-Signer-Key")
    if key and ALLOW_CALLER_KEYS:
        try:
            return Session.from_private_key(key)
        except Exception as e:
            raise InvalidInputError("Malformed X-Signer-Key") from e
    return get_operator_session()


def _directory() -> Directory:
    return Directory(get_ledger_gateway(), get_content_resolver())


def _issuance() -> IssuanceWorkflow:
    return IssuanceWorkflow(get_ledger_gateway())


def _authorization() -> AuthorizationChecker:
    return AuthorizationChecker(get_ledger_gateway())


def _registration() -> RegistrationWorkflow:
    return RegistrationWorkflow(get_ledger_gateway(), get_content_store())


def _identity(record: IdentityRecord) -> IdentityResponse:
    return IdentityResponse(**record.to_dict())


# =============================================================================
# Middleware and error handling
# =============================================================================

@app.middleware("http")
async def req_log(request: Request, call_next):
    start = time.time()
    route = request.url.path
    remote = request.client.host if request.client else "-"
    request_id = request.headers.get("X-Request-ID", "-")
    resp = await call_next(request)
    duration_ms = int((time.time() - start) * 1000)
    log.info(f"request_complete status={resp.status_code} duration_ms={duration_ms}",
             extra={"request_id": request_id, "route": route, "remote_addr": remote})
    return resp


@app.exception_handler(CertRegError)
async def certreg_error_handler(request: Request, exc: CertRegError):
    status = ERROR_STATUS.get(exc.code, 500)
    if status >= 500:
        log.warning(f"{request.url.path} failed: {exc.code} {exc.message}")
    return JSONResponse(status_code=status, content=exc.to_detail().model_dump())


# =============================================================================
# Operational endpoints
# =============================================================================

@app.get("/healthz")
def healthz():
    return {"ok": True}


@app.get("/version")
def version():
    # GIT_SHA is injected at deploy time
    return {"git_sha": os.getenv("GIT_SHA", "unknown")}


@app.get("/admin")
def admin():
    """Return non-secret configuration and runtime metrics.

    Gated by ADMIN_ENDPOINT_ENABLED.
    """
    if not ADMIN_ENDPOINT_ENABLED:
        return JSONResponse(
            status_code=404,
            content={"detail": "Admin endpoint disabled"}
        )

    ledger = get_ledger_gateway()
    return {
        "config": get_config_summary(),
        "contracts": {
            "identity_registry_configured": ledger.registry_configured,
            "credential_ledger_configured": ledger.credentials_configured,
        },
        "environment": {
            "log_level": logging.getLogger().getEffectiveLevel(),
            "log_level_name": logging.getLevelName(logging.getLogger().getEffectiveLevel()),
        },
        "metrics": {
            "content_resolver": get_content_resolver().metrics.to_dict(),
            "content_cache": get_content_cache().metrics.to_dict(),
        },
        "audit": get_audit_logger().get_buffer_stats(),
    }


# =============================================================================
# Directory
# =============================================================================

@app.get("/users", response_model=List[IdentityResponse])
async def list_users(role: Optional[str] = None):
    role_filter = None
    if role:
        role_filter = Role.parse(role)
        if role_filter == Role.UNSET and role.strip().lower() != Role.UNSET.value:
            raise InvalidInputError(f"Unknown role: {role}")
    users = await _directory().list_users(role_filter)
    return [_identity(u) for u in users]


@app.get("/users/{address}")
async def get_user(address: str):
    record = await _directory().get_user(address)
    if record is None:
        return JSONResponse(status_code=404, content={"detail": "Not registered"})
    return _identity(record)


@app.get("/users/{address}/profile")
async def get_user_profile(address: str):
    directory = _directory()
    record = await directory.get_user(address)
    if record is None:
        return JSONResponse(status_code=404, content={"detail": "Not registered"})

    profile = None
    if record.role == Role.STUDENT:
        profile = await directory.student_profile(address)
    elif record.role == Role.PROVIDER:
        profile = await directory.provider_profile(address)

    return {
        "address": record.address,
        "role": record.role.value,
        "metadata_pointer": record.metadata_pointer,
        "metadata": profile.model_dump(by_alias=True) if profile is not None else None,
    }


@app.get("/students/search")
async def search_student(student_id: str):
    match = await _directory().find_student_by_external_id(student_id)
    if match is None:
        return JSONResponse(status_code=404, content={"detail": "No student with that id"})
    return StudentMatchResponse(
        address=match.address,
        metadata=match.metadata.model_dump(by_alias=True),
    )


@app.get("/certificates/{address}", response_model=List[CertificateResponse])
async def certificates_of(address: str):
    certificates = await _directory().certificates_owned_by(address)
    return [CertificateResponse(**c.to_dict()) for c in certificates]


# =============================================================================
# Authorization
# =============================================================================

@app.get("/providers", response_model=ProviderClassificationResponse)
async def providers():
    classification = await _authorization().classify_providers()
    return ProviderClassificationResponse(
        authorized=[_identity(p) for p in classification.authorized],
        pending=[_identity(p) for p in classification.pending],
        unresolved=classification.unresolved,
    )


@app.get("/owner/{address}")
async def owner_check(address: str):
    require_address(address)
    return {"address": address, "is_owner": await _authorization().is_owner(address)}


@app.post("/institutes/{address}/authorize")
async def authorize_institute(address: str, session: Session = Depends(write_session)):
    result = await _authorization().authorize(session, address)
    return {"institute": address, "authorized": True, "tx_hash": result.tx_hash}


@app.post("/institutes/{address}/revoke")
async def revoke_institute(address: str, session: Session = Depends(write_session)):
    result = await _authorization().revoke(session, address)
    return {"institute": address, "authorized": False, "tx_hash": result.tx_hash}


# =============================================================================
# Issuance
# =============================================================================

@app.get("/institutes/{address}/requests", response_model=List[CertificateRequestResponse])
async def pending_requests(address: str):
    requests = await _issuance().list_pending_for_institute(address)
    return [
        CertificateRequestResponse(**r.to_dict(), state=r.state.value)
        for r in requests
    ]


@app.get("/requests/{request_id}")
async def get_request(request_id: int):
    issuance = _issuance()
    record = await issuance.get_request(request_id)
    if record is None:
        state = await issuance.request_state(request_id)
        return JSONResponse(
            status_code=404,
            content={"detail": "Request not found", "id": request_id, "state": state.value},
        )
    return CertificateRequestResponse(**record.to_dict(), state=record.state.value)


@app.post("/requests")
async def submit_request(req: IssuanceRequest, session: Session = Depends(write_session)):
    request_id = await _issuance().request_issuance(
        session, req.institute, req.name, req.message
    )
    return {"request_id": request_id}


@app.post("/requests/{request_id}/approve")
async def approve_request(
    request_id: int,
    req: ApproveRequest,
    session: Session = Depends(write_session),
):
    result = await _issuance().approve(
        session,
        request_id,
        req.certificate_type,
        req.token_uri,
        req.institution_name,
    )
    return {"request_id": request_id, "state": "APPROVED", "tx_hash": result.tx_hash}


@app.post("/requests/{request_id}/cancel")
async def cancel_request(request_id: int, session: Session = Depends(write_session)):
    result = await _issuance().cancel(session, request_id)
    return {"request_id": request_id, "state": "CANCELLED", "tx_hash": result.tx_hash}


# =============================================================================
# Registration
# =============================================================================

@app.post("/register/student", response_model=IdentityResponse)
async def register_student(req: RegisterStudentRequest, session: Session = Depends(write_session)):
    profile = StudentMetadata(name=req.name, email=req.email, student_id=req.student_id)
    record = await _registration().register(session, Role.STUDENT, profile)
    if record is None:
        return JSONResponse(status_code=202, content={"detail": "Registration submitted, not yet visible"})
    return _identity(record)


@app.post("/register/provider", response_model=IdentityResponse)
async def register_provider(
    institution_name: str = Form(...),
    accreditation_number: str = Form(...),
    document: UploadFile = File(...),
    session: Session = Depends(write_session),
):
    profile = ProviderProfile(
        institution_name=institution_name,
        accreditation_number=accreditation_number,
        document=await document.read(),
        document_name=document.filename or "accreditation-document",
    )
    record = await _registration().register(session, Role.PROVIDER, profile)
    if record is None:
        return JSONResponse(status_code=202, content={"detail": "Registration submitted, not yet visible"})
    return _identity(record)
