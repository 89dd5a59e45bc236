"""Typed, stateless proxy over the identity registry and credential ledger.

Reads take no session. Writes take an explicit Session and require its
signer; the signer check happens before anything is sent. The gateway
never re-derives business rules (ownership, request state); callers do
their own pre-checks and the ledger has the final word.
"""

import logging
from typing import List, Optional

from certreg.core.config import (
    CREDENTIAL_LEDGER_ADDRESS,
    IDENTITY_REGISTRY_ADDRESS,
    RPC_URL,
)

from ..exceptions import ContractUnavailableError, InvalidInputError
from ..models import (
    ZERO_ADDRESS,
    Certificate,
    CertificateRequest,
    IdentityRecord,
    Role,
    require_address,
)
from ..session import Session
from .abi import CREDENTIAL_LEDGER_ABI, IDENTITY_REGISTRY_ABI
from .contracts import ContractClient, TxResult, Web3ContractClient, create_web3

log = logging.getLogger(__name__)

CERTIFICATE_REQUESTED_EVENT = "CertificateRequested"


class LedgerGateway:
    """Async ledger access for workflows and read composites.

    Either client may be None when its contract address is not configured;
    operations on that contract then raise ContractUnavailableError.
    """

    def __init__(
        self,
        registry: Optional[ContractClient],
        credentials: Optional[ContractClient],
    ):
        self._registry = registry
        self._credentials = credentials

    @property
    def registry_configured(self) -> bool:
        return self._registry is not None

    @property
    def credentials_configured(self) -> bool:
        return self._credentials is not None

    def _require_registry(self) -> ContractClient:
        if self._registry is None:
            raise ContractUnavailableError("Identity registry address not configured")
        return self._registry

    def _require_credentials(self) -> ContractClient:
        if self._credentials is None:
            raise ContractUnavailableError("Credential ledger address not configured")
        return self._credentials

    # -------------------------------------------------------------------------
    # Identity registry
    # -------------------------------------------------------------------------

    async def read_identity(self, address: str) -> Optional[IdentityRecord]:
        """Return the identity record for ``address`` or None if unregistered.

        Registration is checked with ``isUserRegistered`` first; ``getUser``
        may revert for unknown accounts.
        """
        require_address(address)
        registry = self._require_registry()
        if not await registry.call("isUserRegistered", address):
            return None
        role, pointer = await registry.call("getUser", address)
        if not role:
            return None
        return IdentityRecord(address=address, role=Role.parse(role), metadata_pointer=pointer)

    async def list_identities(self) -> List[str]:
        """All registered addresses in ledger enumeration order."""
        return list(await self._require_registry().call("getAllUsers"))

    async def write_identity(
        self,
        session: Session,
        role: Role,
        content_pointer: str,
    ) -> TxResult:
        signer = session.require_signer()
        registry = self._require_registry()
        if not content_pointer:
            raise InvalidInputError("Metadata pointer is required")
        log.info(f"Registering {signer.address[:10]}... as {role.value}")
        return await registry.transact(signer, "registerUser", role.value, content_pointer)

    # -------------------------------------------------------------------------
    # Credential ledger: authorization
    # -------------------------------------------------------------------------

    async def owner(self) -> str:
        return await self._require_credentials().call("owner")

    async def read_authorization(self, address: str) -> bool:
        require_address(address)
        return bool(await self._require_credentials().call("authorizedInstitutes", address))

    async def write_authorization(
        self,
        session: Session,
        address: str,
        authorized: bool,
    ) -> TxResult:
        """Submit authorizeInstitute or revokeInstitute as-is."""
        signer = session.require_signer()
        credentials = self._require_credentials()
        require_address(address, "institute address")
        fn_name = "authorizeInstitute" if authorized else "revokeInstitute"
        log.info(f"{fn_name} {address[:10]}... by {signer.address[:10]}...")
        return await credentials.transact(signer, fn_name, address)

    # -------------------------------------------------------------------------
    # Credential ledger: requests
    # -------------------------------------------------------------------------

    async def request_count(self) -> int:
        return int(await self._require_credentials().call("requestCounter"))

    async def read_certificate_request(self, request_id: int) -> Optional[CertificateRequest]:
        """Return the request, or None if it never existed or was removed."""
        if request_id < 1:
            return None
        (
            student,
            institute,
            name,
            message,
            metadata_hash,
            approved,
        ) = await self._require_credentials().call("certificateRequests", request_id)
        if not student or student == ZERO_ADDRESS:
            return None
        return CertificateRequest(
            id=request_id,
            student=student,
            institute=institute,
            name=name,
            message=message,
            student_metadata_hash=metadata_hash,
            approved=bool(approved),
        )

    async def submit_certificate_request(
        self,
        session: Session,
        institute: str,
        name: str,
        message: str,
        student_metadata_hash: str,
    ) -> int:
        """Submit a request and return its ledger-assigned id.

        The id is taken from the CertificateRequested event in the receipt;
        if the node returned no decodable event, the post-finality request
        counter is used instead.
        """
        signer = session.require_signer()
        credentials = self._require_credentials()
        require_address(institute, "institute address")

        result = await credentials.transact(
            signer,
            "requestCertificate",
            institute,
            name,
            message,
            student_metadata_hash,
        )
        event = result.first_event(CERTIFICATE_REQUESTED_EVENT)
        if event is not None and "requestId" in event:
            return int(event["requestId"])

        log.warning(f"No {CERTIFICATE_REQUESTED_EVENT} event in tx {result.tx_hash[:18]}...")
        return await self.request_count()

    async def approve_certificate_request(
        self,
        session: Session,
        request_id: int,
        certificate_type: str,
        token_uri: str,
        institution_name: str,
    ) -> TxResult:
        signer = session.require_signer()
        return await self._require_credentials().transact(
            signer,
            "approveCertificateRequest",
            request_id,
            certificate_type,
            token_uri,
            institution_name,
        )

    async def cancel_certificate_request(self, session: Session, request_id: int) -> TxResult:
        signer = session.require_signer()
        return await self._require_credentials().transact(
            signer, "cancelCertificateRequest", request_id
        )

    # -------------------------------------------------------------------------
    # Credential ledger: certificates
    # -------------------------------------------------------------------------

    async def minted_certificates_of(self, address: str) -> List[int]:
        require_address(address)
        ids = await self._require_credentials().call("getStudentCertificates", address)
        return [int(i) for i in ids]

    async def read_certificate(self, token_id: int) -> Certificate:
        """Core certificate fields plus tokenURI; metadata is left unset."""
        credentials = self._require_credentials()
        name, institute, issue_date, certificate_type, student = await credentials.call(
            "getCertificateDetails", token_id
        )
        token_uri = await credentials.call("tokenURI", token_id)
        return Certificate(
            id=str(token_id),
            name=name,
            institute=institute,
            issue_date=int(issue_date),
            certificate_type=certificate_type,
            student=student,
            token_uri=token_uri,
        )


def build_ledger_gateway(
    rpc_url: str = RPC_URL,
    registry_address: str = IDENTITY_REGISTRY_ADDRESS,
    credentials_address: str = CREDENTIAL_LEDGER_ADDRESS,
) -> LedgerGateway:
    """Build a web3-backed gateway from configured addresses.

    An empty address leaves that contract unconfigured rather than failing.
    """
    w3 = create_web3(rpc_url)
    registry = None
    credentials = None
    if registry_address:
        registry = Web3ContractClient(
            w3, registry_address, IDENTITY_REGISTRY_ABI, name="IdentityRegistry"
        )
    else:
        log.warning("Identity registry address not configured")
    if credentials_address:
        credentials = Web3ContractClient(
            w3, credentials_address, CREDENTIAL_LEDGER_ABI, name="CredentialLedger"
        )
    else:
        log.warning("Credential ledger address not configured")
    return LedgerGateway(registry, credentials)


# Singleton gateway
_ledger_gateway: Optional[LedgerGateway] = None


def get_ledger_gateway() -> LedgerGateway:
    """Get or create the singleton ledger gateway."""
    global _ledger_gateway

    if _ledger_gateway is None:
        _ledger_gateway = build_ledger_gateway()
        log.info("Created ledger gateway singleton")

    return _ledger_gateway


def reset_ledger_gateway() -> None:
    """Reset the singleton for testing."""
    global _ledger_gateway
    _ledger_gateway = None
