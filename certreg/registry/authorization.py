"""Joins registry roles with ledger authorization state.

The registry says who claims to be a provider; the credential ledger says
which of them may issue. Neither is cached: every classification reads
both live.
"""

import logging
from typing import List, Optional, Tuple

from certreg.audit import AuditLogger, get_audit_logger
from certreg.core.config import LEDGER_READ_CONCURRENCY

from .concurrency import gather_bounded
from .exceptions import CertRegError, NotOwnerError
from .ledger.contracts import TxResult
from .ledger.gateway import LedgerGateway
from .models import IdentityRecord, ProviderClassification, Role, require_address, same_address
from .session import Session

log = logging.getLogger(__name__)


class AuthorizationChecker:
    """Provider classification and the owner-only authorization gate."""

    def __init__(
        self,
        ledger: LedgerGateway,
        audit: Optional[AuditLogger] = None,
        read_concurrency: int = LEDGER_READ_CONCURRENCY,
    ):
        self._ledger = ledger
        self._audit = audit or get_audit_logger()
        self._read_concurrency = read_concurrency

    async def classify_providers(self) -> ProviderClassification:
        """Split registered providers into authorized and pending.

        Identity and authorization reads run concurrently. A provider whose
        reads fail is reported in ``unresolved`` rather than guessed into
        either bucket. Non-provider identities are ignored.
        """
        addresses = await self._ledger.list_identities()
        results = await gather_bounded(
            addresses,
            self._read_provider,
            limit=self._read_concurrency,
        )

        classification = ProviderClassification()
        for address, result in zip(addresses, results):
            if isinstance(result, Exception):
                log.warning(f"Could not classify {address[:10]}...: {result}")
                classification.unresolved.append(address)
                continue
            if result is None:
                continue
            identity, authorized = result
            if authorized:
                classification.authorized.append(identity)
            else:
                classification.pending.append(identity)
        return classification

    async def _read_provider(self, address: str) -> Optional[Tuple[IdentityRecord, bool]]:
        identity = await self._ledger.read_identity(address)
        if identity is None or identity.role != Role.PROVIDER:
            return None
        return identity, await self._ledger.read_authorization(address)

    async def authorized_providers(self) -> List[IdentityRecord]:
        return (await self.classify_providers()).authorized

    async def pending_providers(self) -> List[IdentityRecord]:
        return (await self.classify_providers()).pending

    async def set_authorization(
        self,
        session: Session,
        institute: str,
        authorized: bool,
    ) -> TxResult:
        """Authorize or revoke ``institute`` as the ledger owner.

        The owner is read and compared with the caller before anything is
        signed.

        Raises:
            WalletNotConnectedError: No signer in the session.
            NotOwnerError: Caller is not the ledger owner.
            TransactionFailedError: The ledger rejected the change.
        """
        signer = session.require_signer()
        require_address(institute, "institute address")
        action = "institute.authorize" if authorized else "institute.revoke"

        try:
            owner = await self._ledger.owner()
            if not same_address(owner, signer.address):
                raise NotOwnerError()
            result = await self._ledger.write_authorization(session, institute, authorized)
        except NotOwnerError:
            self._audit.log(action, principal=signer.address, resource=institute, status="denied")
            raise
        except CertRegError as e:
            self._audit.log(
                action,
                principal=signer.address,
                resource=institute,
                status="error",
                details={"code": e.code},
            )
            raise

        self._audit.log(
            action,
            principal=signer.address,
            resource=institute,
            details={"tx_hash": result.tx_hash},
        )
        return result

    async def authorize(self, session: Session, institute: str) -> TxResult:
        return await self.set_authorization(session, institute, True)

    async def revoke(self, session: Session, institute: str) -> TxResult:
        return await self.set_authorization(session, institute, False)

    async def is_owner(self, address: Optional[str]) -> bool:
        """True if ``address`` is the ledger owner; False if the owner is unreadable."""
        if not address:
            return False
        try:
            owner = await self._ledger.owner()
        except CertRegError as e:
            log.warning(f"Owner check failed: {e.message}")
            return False
        return same_address(owner, address)

    async def is_authorized(self, address: str) -> bool:
        return await self._ledger.read_authorization(address)
