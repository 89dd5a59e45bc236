"""Ledger entity projections.

These are transient views rebuilt on every read; the ledgers remain the
source of truth. Nothing here is cached as authoritative.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional

from eth_utils import is_address

from .exceptions import InvalidInputError


ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


class Role(str, Enum):
    """Identity role recorded in the registry."""
    STUDENT = "student"
    PROVIDER = "provider"
    UNSET = "unset"

    @classmethod
    def parse(cls, value: Optional[str]) -> "Role":
        """Map a ledger role string to a Role; unknown or empty is UNSET."""
        if not value:
            return cls.UNSET
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.UNSET


class RequestState(str, Enum):
    """Lifecycle state of a certificate request."""
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    CANCELLED = "CANCELLED"   # Id was assigned but the record is gone
    UNKNOWN = "UNKNOWN"       # Id beyond the ledger's request counter


def same_address(a: Optional[str], b: Optional[str]) -> bool:
    """Case-insensitive address comparison."""
    if not a or not b:
        return False
    return a.lower() == b.lower()


def require_address(value: Optional[str], label: str = "address") -> str:
    """Validate an address argument, raising InvalidInputError if malformed."""
    if not value or not is_address(value):
        raise InvalidInputError(f"Invalid {label}: {value!r}")
    return value


@dataclass(frozen=True)
class IdentityRecord:
    """One identity registry entry.

    Attributes:
        address: Registered account (immutable).
        role: Role the account registered with.
        metadata_pointer: Content identifier of the profile metadata.
    """
    address: str
    role: Role
    metadata_pointer: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "address": self.address,
            "role": self.role.value,
            "metadata_pointer": self.metadata_pointer,
        }


@dataclass(frozen=True)
class CertificateRequest:
    """A student's request for a certificate from an institute."""
    id: int
    student: str
    institute: str
    name: str
    message: str
    student_metadata_hash: str
    approved: bool

    @property
    def state(self) -> RequestState:
        return RequestState.APPROVED if self.approved else RequestState.PENDING

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "student": self.student,
            "institute": self.institute,
            "name": self.name,
            "message": self.message,
            "student_metadata_hash": self.student_metadata_hash,
            "approved": self.approved,
        }


@dataclass
class Certificate:
    """A minted certificate.

    ``metadata`` is a soft-loaded projection of the JSON document that
    ``token_uri`` points to. It is None when no gateway could serve it;
    the certificate itself is still valid.
    """
    id: str
    name: str
    institute: str
    issue_date: int
    certificate_type: str
    student: str
    token_uri: str
    metadata: Optional[Any] = None

    def with_metadata(self, metadata: Optional[Any]) -> "Certificate":
        return replace(self, metadata=metadata)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "institute": self.institute,
            "issue_date": self.issue_date,
            "certificate_type": self.certificate_type,
            "student": self.student,
            "token_uri": self.token_uri,
            "metadata": self.metadata,
        }


@dataclass
class ProviderClassification:
    """Providers split by live authorization state.

    A provider whose identity or authorization read failed is listed in
    ``unresolved`` and appears in neither bucket.
    """
    authorized: List[IdentityRecord] = field(default_factory=list)
    pending: List[IdentityRecord] = field(default_factory=list)
    unresolved: List[str] = field(default_factory=list)
