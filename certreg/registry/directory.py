"""Read-only lookups over registry, ledger and content store.

None of these operations write. A failure reading one item of a batch
drops or degrades only that item.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from certreg.core.config import LEDGER_READ_CONCURRENCY

from .concurrency import gather_bounded
from .content.resolver import ContentResolver
from .exceptions import CertRegError, InvalidInputError
from .ledger.gateway import LedgerGateway
from .metadata import ProviderMetadata, StudentMetadata
from .models import Certificate, IdentityRecord, Role, require_address

log = logging.getLogger(__name__)


@dataclass
class StudentMatch:
    """A student identity whose metadata matched a search."""
    identity: IdentityRecord
    metadata: StudentMetadata

    @property
    def address(self) -> str:
        return self.identity.address


class Directory:
    """Users, profiles and certificates as currently recorded."""

    def __init__(
        self,
        ledger: LedgerGateway,
        resolver: ContentResolver,
        read_concurrency: int = LEDGER_READ_CONCURRENCY,
    ):
        self._ledger = ledger
        self._resolver = resolver
        self._read_concurrency = read_concurrency

    async def certificates_owned_by(self, address: str) -> List[Certificate]:
        """Certificates minted to ``address``, in ledger order.

        Each certificate's tokenURI document is fetched best-effort; when
        no gateway serves it the certificate is returned with
        ``metadata=None``. A certificate whose core fields cannot be read
        is logged and left out.
        """
        require_address(address)
        token_ids = await self._ledger.minted_certificates_of(address)
        results = await gather_bounded(
            token_ids,
            self._load_certificate,
            limit=self._read_concurrency,
        )

        certificates: List[Certificate] = []
        for token_id, result in zip(token_ids, results):
            if isinstance(result, Exception):
                log.warning(f"Skipping certificate {token_id}: {result}")
                continue
            certificates.append(result)
        return certificates

    async def _load_certificate(self, token_id: int) -> Certificate:
        certificate = await self._ledger.read_certificate(token_id)
        if not certificate.token_uri:
            return certificate
        metadata = await self._resolver.get_json_or_none(certificate.token_uri)
        return certificate.with_metadata(metadata)

    async def find_student_by_external_id(
        self,
        student_id: str,
        batch_size: Optional[int] = None,
    ) -> Optional[StudentMatch]:
        """Find the first student whose metadata ``studentId`` matches.

        There is no ledger index by student id, so this is a linear scan:
        every registered identity is read and every student's metadata is
        resolved until a match is found. Cost is O(n) ledger reads and
        gateway fetches. Reads run in concurrent batches and the scan stops
        after the first batch containing a match; the earliest match in
        enumeration order wins. Comparison is case-insensitive.

        Returns:
            The match, or None. Students whose metadata cannot be resolved
            are skipped.
        """
        if not student_id or not student_id.strip():
            raise InvalidInputError("Student id is required")

        target = student_id.strip().lower()
        addresses = await self._ledger.list_identities()
        size = max(1, batch_size or self._read_concurrency)

        for start in range(0, len(addresses), size):
            batch = addresses[start:start + size]
            results = await gather_bounded(batch, self._load_student, limit=size)
            for address, result in zip(batch, results):
                if isinstance(result, Exception):
                    log.info(f"Search skipped {address[:10]}...: {result}")
                    continue
                if result is None:
                    continue
                identity, metadata = result
                if metadata.student_id.strip().lower() == target:
                    return StudentMatch(identity=identity, metadata=metadata)
        return None

    async def _load_student(self, address: str) -> Optional[Tuple[IdentityRecord, StudentMetadata]]:
        identity = await self._ledger.read_identity(address)
        if identity is None or identity.role != Role.STUDENT:
            return None
        metadata = await self._resolver.get_metadata(identity.metadata_pointer, Role.STUDENT)
        return identity, metadata

    async def list_users(self, role: Optional[Role] = None) -> List[IdentityRecord]:
        """Registered identities in enumeration order, optionally by role."""
        addresses = await self._ledger.list_identities()
        results = await gather_bounded(
            addresses,
            self._ledger.read_identity,
            limit=self._read_concurrency,
        )

        users: List[IdentityRecord] = []
        for address, result in zip(addresses, results):
            if isinstance(result, Exception):
                log.warning(f"Skipping identity {address[:10]}...: {result}")
                continue
            if result is None:
                continue
            if role is None or result.role == role:
                users.append(result)
        return users

    async def get_user(self, address: str) -> Optional[IdentityRecord]:
        return await self._ledger.read_identity(address)

    async def student_profile(self, address: str) -> Optional[StudentMetadata]:
        """Resolved student metadata, or None if absent or unresolvable."""
        return await self._profile(address, Role.STUDENT)

    async def provider_profile(self, address: str) -> Optional[ProviderMetadata]:
        """Resolved provider metadata, or None if absent or unresolvable."""
        return await self._profile(address, Role.PROVIDER)

    async def _profile(self, address: str, role: Role):
        identity = await self._ledger.read_identity(address)
        if identity is None or identity.role != role:
            return None
        try:
            return await self._resolver.get_metadata(identity.metadata_pointer, role)
        except CertRegError as e:
            log.info(f"Profile for {address[:10]}... unavailable: {e.message}")
            return None
