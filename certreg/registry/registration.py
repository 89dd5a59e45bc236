"""Identity registration.

Unregistered -> Registered is the only transition; there is no
de-registration. Blobs are uploaded before the ledger write, so an upload
failure leaves the ledger untouched, while a ledger failure after upload
only leaves unreferenced blobs behind.
"""

import logging
from typing import Optional, Union

from certreg.audit import AuditLogger, get_audit_logger

from .content.store import ContentStore
from .exceptions import AlreadyRegisteredError, CertRegError, ContractUnavailableError
from .ledger.gateway import LedgerGateway
from .metadata import (
    ProfileMetadata,
    ProviderMetadata,
    ProviderProfile,
    StudentMetadata,
    validate_profile,
)
from .models import IdentityRecord, Role
from .session import Session

log = logging.getLogger(__name__)


class RegistrationWorkflow:
    """Registers the session's account as a student or provider."""

    def __init__(
        self,
        ledger: LedgerGateway,
        store: ContentStore,
        audit: Optional[AuditLogger] = None,
    ):
        self._ledger = ledger
        self._store = store
        self._audit = audit or get_audit_logger()

    async def register(
        self,
        session: Session,
        role: Union[Role, str],
        profile: Union[StudentMetadata, ProviderProfile],
    ) -> Optional[IdentityRecord]:
        """Register the caller and return the identity as re-read from the ledger.

        Args:
            session: Signing session for the account being registered.
            role: Role.STUDENT or Role.PROVIDER.
            profile: StudentMetadata for students, ProviderProfile for providers.

        Raises:
            WalletNotConnectedError: No signer in the session.
            ContractUnavailableError: Registry address not configured.
            InvalidInputError: Payload missing or mismatched with the role.
            AlreadyRegisteredError: The account already holds a record.
            UploadFailedError: Document or metadata upload failed.
            TransactionFailedError: The ledger rejected the registration.
        """
        signer = session.require_signer()
        if not self._ledger.registry_configured:
            raise ContractUnavailableError("Identity registry address not configured")

        role = Role.parse(role)
        try:
            validate_profile(role, profile)

            existing = await self._ledger.read_identity(signer.address)
            if existing is not None:
                raise AlreadyRegisteredError(signer.address)

            metadata = await self._build_metadata(role, profile)
            pointer = await self._store.put_metadata(metadata)
            await self._ledger.write_identity(session, role, pointer)
        except CertRegError as e:
            self._audit.log(
                "identity.register",
                principal=signer.address,
                status="error",
                details={"role": role.value, "code": e.code},
            )
            raise

        self._audit.log(
            "identity.register",
            principal=signer.address,
            resource=pointer,
            details={"role": role.value},
        )
        log.info(f"Registered {signer.address[:10]}... as {role.value} ({pointer[:16]}...)")

        return await self._ledger.read_identity(signer.address)

    async def _build_metadata(
        self,
        role: Role,
        profile: Union[StudentMetadata, ProviderProfile],
    ) -> ProfileMetadata:
        if role == Role.STUDENT:
            return profile

        document_pointer = await self._store.put(profile.document, profile.document_name)
        return ProviderMetadata(
            institution_name=profile.institution_name,
            accreditation_number=profile.accreditation_number,
            document_pointer=document_pointer,
        )
