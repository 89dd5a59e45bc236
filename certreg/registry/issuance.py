"""Certificate request lifecycle.

    (none) -> PENDING -> APPROVED (minted)
                      -> CANCELLED

APPROVED and CANCELLED are terminal and ids are never reused. Approval
leaves the record in place with ``approved`` set; cancellation removes it,
so a missing record for an id at or below the request counter means
CANCELLED.

Approve and cancel check locally that the request is pending and names
the caller as institute before anything is signed. The ledger enforces
the same rules; if state moved between the check and the write, its
rejection is surfaced unchanged as TransactionFailedError.
"""

import logging
from typing import List, Optional

from certreg.audit import AuditLogger, get_audit_logger
from certreg.core.config import LEDGER_READ_CONCURRENCY

from .concurrency import gather_bounded
from .exceptions import (
    CertRegError,
    InvalidInputError,
    NotAuthorizedCallerError,
    NotRegisteredError,
    RequestNotPendingError,
)
from .ledger.contracts import TxResult
from .ledger.gateway import LedgerGateway
from .models import CertificateRequest, RequestState, Role, require_address, same_address
from .session import Session

log = logging.getLogger(__name__)


class IssuanceWorkflow:
    """Request, approve and cancel certificate issuance."""

    def __init__(
        self,
        ledger: LedgerGateway,
        audit: Optional[AuditLogger] = None,
        read_concurrency: int = LEDGER_READ_CONCURRENCY,
    ):
        self._ledger = ledger
        self._audit = audit or get_audit_logger()
        self._read_concurrency = read_concurrency

    async def request_issuance(
        self,
        session: Session,
        institute: str,
        name: str,
        message: str = "",
    ) -> int:
        """Submit a certificate request to ``institute`` as the session's student.

        The caller's own metadata pointer is embedded in the request so the
        institute can resolve the student's details without another
        registry lookup.

        Returns:
            The ledger-assigned request id.

        Raises:
            WalletNotConnectedError: No signer in the session.
            NotRegisteredError: Caller has no identity record.
            NotAuthorizedCallerError: Caller is registered but not a student.
        """
        signer = session.require_signer()
        require_address(institute, "institute address")
        if not name or not name.strip():
            raise InvalidInputError("Certificate name is required")

        try:
            identity = await self._ledger.read_identity(signer.address)
            if identity is None:
                raise NotRegisteredError(f"Account {signer.address} is not registered")
            if identity.role != Role.STUDENT:
                raise NotAuthorizedCallerError("Only registered students can request certificates")

            request_id = await self._ledger.submit_certificate_request(
                session,
                institute,
                name,
                message,
                identity.metadata_pointer,
            )
        except CertRegError as e:
            self._audit.log(
                "request.submit",
                principal=signer.address,
                resource=institute,
                status="error",
                details={"code": e.code},
            )
            raise

        self._audit.log(
            "request.submit",
            principal=signer.address,
            resource=str(request_id),
            details={"institute": institute},
        )
        log.info(f"Request {request_id} submitted by {signer.address[:10]}... to {institute[:10]}...")
        return request_id

    async def approve(
        self,
        session: Session,
        request_id: int,
        certificate_type: str,
        token_uri: str,
        institution_name: str,
    ) -> TxResult:
        """Approve a pending request, minting its certificate.

        Raises:
            WalletNotConnectedError: No signer in the session.
            RequestNotPendingError: Request is approved, cancelled or unknown.
            NotAuthorizedCallerError: Caller is not the request's institute.
            TransactionFailedError: The ledger rejected the approval.
        """
        signer = session.require_signer()
        if not certificate_type or not token_uri:
            raise InvalidInputError("Certificate type and token URI are required")

        try:
            await self._require_pending_for(signer.address, request_id)
            result = await self._ledger.approve_certificate_request(
                session,
                request_id,
                certificate_type,
                token_uri,
                institution_name,
            )
        except CertRegError as e:
            self._audit_failure("request.approve", signer.address, request_id, e)
            raise

        self._audit.log(
            "request.approve",
            principal=signer.address,
            resource=str(request_id),
            details={"certificate_type": certificate_type, "tx_hash": result.tx_hash},
        )
        return result

    async def cancel(self, session: Session, request_id: int) -> TxResult:
        """Cancel a pending request; no certificate is created.

        Raises:
            WalletNotConnectedError: No signer in the session.
            RequestNotPendingError: Request is approved, cancelled or unknown.
            NotAuthorizedCallerError: Caller is not the request's institute.
            TransactionFailedError: The ledger rejected the cancellation.
        """
        signer = session.require_signer()

        try:
            await self._require_pending_for(signer.address, request_id)
            result = await self._ledger.cancel_certificate_request(session, request_id)
        except CertRegError as e:
            self._audit_failure("request.cancel", signer.address, request_id, e)
            raise

        self._audit.log(
            "request.cancel",
            principal=signer.address,
            resource=str(request_id),
            details={"tx_hash": result.tx_hash},
        )
        return result

    async def list_pending_for_institute(self, institute: str) -> List[CertificateRequest]:
        """Pending requests addressed to ``institute``, in id order.

        Reads the request counter once and fetches ids 1..count with
        bounded concurrency. Requests created after the counter read are
        not included. An id whose read fails is logged and skipped.
        """
        require_address(institute, "institute address")
        count = await self._ledger.request_count()
        if count <= 0:
            return []

        ids = list(range(1, count + 1))
        results = await gather_bounded(
            ids,
            self._ledger.read_certificate_request,
            limit=self._read_concurrency,
        )

        pending: List[CertificateRequest] = []
        for request_id, result in zip(ids, results):
            if isinstance(result, Exception):
                log.warning(f"Skipping request {request_id}: {result}")
                continue
            if result is None or result.approved:
                continue
            if same_address(result.institute, institute):
                pending.append(result)
        return pending

    async def request_state(self, request_id: int) -> RequestState:
        """Lifecycle state of ``request_id`` as currently recorded."""
        request = await self._ledger.read_certificate_request(request_id)
        if request is not None:
            return request.state
        if 1 <= request_id <= await self._ledger.request_count():
            return RequestState.CANCELLED
        return RequestState.UNKNOWN

    async def get_request(self, request_id: int) -> Optional[CertificateRequest]:
        return await self._ledger.read_certificate_request(request_id)

    async def _require_pending_for(self, caller: str, request_id: int) -> CertificateRequest:
        request = await self._ledger.read_certificate_request(request_id)
        if request is None:
            state = await self.request_state(request_id)
            raise RequestNotPendingError(request_id, state.value)
        if request.approved:
            raise RequestNotPendingError(request_id, RequestState.APPROVED.value)
        if not same_address(request.institute, caller):
            raise NotAuthorizedCallerError(
                f"Request {request_id} is addressed to a different institute"
            )
        return request

    def _audit_failure(self, action: str, principal: str, request_id: int, error: CertRegError) -> None:
        status = "denied" if isinstance(error, (NotAuthorizedCallerError, RequestNotPendingError)) else "error"
        self._audit.log(
            action,
            principal=principal,
            resource=str(request_id),
            status=status,
            details={"code": error.code},
        )
